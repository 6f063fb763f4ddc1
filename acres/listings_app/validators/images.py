from django.core.exceptions import ValidationError
from PIL import Image, UnidentifiedImageError


def validate_image_upload(file_obj, *, max_bytes, label="Image"):
    """
    Accept only real images no larger than ``max_bytes``.

    The declared content type must be image/*, and Pillow must be able to
    parse the payload.
    """
    if file_obj is None:
        raise ValidationError(f"{label} file is required.")

    ctype = getattr(file_obj, "content_type", "") or ""
    if not ctype.startswith("image"):
        raise ValidationError(f"Please upload an image file (got {ctype or 'unknown type'}).")

    size = getattr(file_obj, "size", 0) or 0
    if size <= 0:
        raise ValidationError(f"{label} file is empty.")
    if size > max_bytes:
        raise ValidationError(f"Please upload an image less than {max_bytes} bytes.")

    try:
        file_obj.seek(0)
        with Image.open(file_obj) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValidationError(f"{label} file is not a valid image.") from exc
    finally:
        file_obj.seek(0)
    return file_obj
