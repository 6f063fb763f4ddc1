import logging
import time
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Max, Q
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

from listings_app.api.exceptions import Forbidden, ResourceNotFound
from listings_app.models import Property, PropertyImage, UserProfile
from listings_app.services.media import MediaStore
from listings_app.validators import sanitize_search_text, validate_image_upload

logger = logging.getLogger(__name__)

CREATOR_ROLES = {UserProfile.ROLE_OWNER, UserProfile.ROLE_ADMIN}


def _decimal_param(params, name):
    raw = params.get(name)
    if raw in (None, ""):
        return None
    try:
        return Decimal(str(raw))
    except (InvalidOperation, TypeError):
        raise ValidationError({name: ["Enter a valid number."]})


def _date_param(params, name):
    raw = params.get(name)
    if raw in (None, ""):
        return None
    parsed = parse_date(str(raw)[:10])
    if parsed is None:
        raise ValidationError({name: ["Enter a valid date (YYYY-MM-DD)."]})
    return parsed


def _bool_param(params, name):
    raw = params.get(name)
    if raw in (None, ""):
        return None
    value = str(raw).strip().lower()
    if value in ("1", "true", "yes"):
        return True
    if value in ("0", "false", "no"):
        return False
    raise ValidationError({name: ["Enter true or false."]})


class PropertyRegistry:
    """Property CRUD, search and image management."""

    def __init__(self, media_store=None, max_upload_bytes=None):
        self.media = media_store or MediaStore()
        self.max_upload_bytes = max_upload_bytes or getattr(settings, "MAX_FILE_UPLOAD", 1_000_000)

    # ---- lookups ----
    def get(self, property_id):
        prop = Property.objects.select_related("created_by").filter(pk=property_id).first()
        if prop is None:
            raise ResourceNotFound(f"Property not found with id of {property_id}")
        return prop

    def ensure_can_manage(self, prop, identity):
        if not (identity.is_admin or identity.owns(prop.created_by_id)):
            raise Forbidden(f"User {identity.user_id} is not authorized to manage this property")

    def get_for_update(self, property_id, identity):
        prop = self.get(property_id)
        self.ensure_can_manage(prop, identity)
        return prop

    # ---- writes ----
    def ensure_can_create(self, identity):
        if identity.role not in CREATOR_ROLES:
            raise Forbidden("Only owners and administrators can list properties")

    def create(self, data, identity):
        self.ensure_can_create(identity)
        prop = Property.objects.create(created_by_id=identity.user_id, **data)
        logger.info("Property %s created by user %s", prop.pk, identity.user_id)
        return prop

    def update(self, property_id, data, identity):
        prop = self.get_for_update(property_id, identity)
        for field, value in data.items():
            setattr(prop, field, value)

        if prop.available_to and prop.available_to < prop.available_from:
            raise ValidationError({"available_to": ["Available-to date must be on or after available-from date."]})

        prop.save()
        return prop

    def delete(self, property_id, identity):
        prop = self.get_for_update(property_id, identity)
        public_ids = list(prop.images.values_list("public_id", flat=True))
        prop.delete()
        for public_id in public_ids:
            self.media.release_quietly(public_id)
        logger.info("Property %s deleted by user %s", property_id, identity.user_id)

    # ---- search ----
    def search(self, params, queryset=None):
        qs = queryset if queryset is not None else Property.objects.all()

        keyword = sanitize_search_text(params.get("keyword") or params.get("q") or "")
        if keyword:
            qs = qs.filter(Q(title__icontains=keyword) | Q(description__icontains=keyword))

        city = sanitize_search_text(params.get("city") or "")
        if city:
            qs = qs.filter(city__icontains=city)

        min_price = _decimal_param(params, "min_price")
        max_price = _decimal_param(params, "max_price")
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValidationError({"min_price": ["min_price cannot be greater than max_price."]})
        if min_price is not None:
            qs = qs.filter(price__gte=min_price)
        if max_price is not None:
            qs = qs.filter(price__lte=max_price)

        available_from = _date_param(params, "available_from")
        if available_from:
            qs = qs.filter(available_from__lte=available_from).filter(
                Q(available_to__isnull=True) | Q(available_to__gte=available_from)
            )
        available_to = _date_param(params, "available_to")
        if available_to:
            qs = qs.filter(Q(available_to__isnull=True) | Q(available_to__gte=available_to))

        is_available = _bool_param(params, "is_available")
        if is_available is not None:
            qs = qs.filter(is_available=is_available)

        created_by = params.get("created_by")
        if created_by:
            if not str(created_by).isdigit():
                raise ValidationError({"created_by": ["Enter a valid user id."]})
            qs = qs.filter(created_by_id=int(created_by))

        return qs.order_by("-created_at", "-id")

    # ---- images ----
    def add_image(self, property_id, identity, upload):
        prop = self.get_for_update(property_id, identity)
        if upload is None:
            raise ValidationError({"file": ["Please upload a file"]})
        try:
            validate_image_upload(upload, max_bytes=self.max_upload_bytes)
        except DjangoValidationError as e:
            raise ValidationError({"file": e.messages})

        url, public_id = self.media.upload(
            upload,
            subfolder="properties",
            public_id=f"photo_{prop.pk}_{int(time.time() * 1000)}",
        )

        with transaction.atomic():
            # serialise position and featured assignment per property
            Property.objects.select_for_update().get(pk=prop.pk)
            images = prop.images.all()
            next_position = (images.aggregate(m=Max("position"))["m"] or 0) + 1
            image = PropertyImage.objects.create(
                property=prop,
                url=url,
                public_id=public_id,
                position=next_position,
                is_featured=not images.exists(),
            )
        logger.info("Image %s added to property %s", image.pk, prop.pk)
        return image

    def remove_image(self, property_id, photo_id, identity):
        prop = self.get_for_update(property_id, identity)
        image = prop.images.filter(pk=photo_id).first()
        if image is None:
            raise ResourceNotFound(f"Photo not found with id of {photo_id}")

        self.media.release_quietly(image.public_id)

        with transaction.atomic():
            was_featured = image.is_featured
            image.delete()
            if was_featured:
                first = prop.images.order_by("position", "id").first()
                if first is not None:
                    first.is_featured = True
                    first.save(update_fields=["is_featured"])
        return prop

    def set_featured(self, property_id, photo_id, identity):
        prop = self.get_for_update(property_id, identity)
        image = prop.images.filter(pk=photo_id).first()
        if image is None:
            raise ResourceNotFound(f"Photo not found with id of {photo_id}")

        with transaction.atomic():
            prop.images.exclude(pk=image.pk).update(is_featured=False)
            if not image.is_featured:
                image.is_featured = True
                image.save(update_fields=["is_featured"])
        return prop
