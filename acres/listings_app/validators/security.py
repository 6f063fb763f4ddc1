import re

import bleach
from django.core.exceptions import ValidationError


def strip_html(text: str, *, max_len: int) -> str:
    """
    Remove all markup from user-supplied text and enforce a max length
    on what remains.
    """
    cleaned = bleach.clean((text or "").strip(), tags=[], attributes={}, strip=True).strip()
    if len(cleaned) > max_len:
        raise ValidationError(f"Text too long (max {max_len} chars).")
    return cleaned


def sanitize_search_text(text: str, *, max_len: int = 200) -> str:
    """
    Normalise free-text search input:
      - Trim, collapse whitespace
      - Remove control chars
      - Restrict length
    """
    text = (text or "").strip()
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[\x00-\x1f\x7f]", "", text)
    if len(text) > max_len:
        text = text[:max_len].rstrip()
    return text


def normalise_phone(value: str) -> str:
    """Very light E.164-ish normaliser (keeps digits + optional leading '+')."""
    value = (value or "").strip()
    value = re.sub(r"[^\d+]", "", value)
    if len(value.replace("+", "")) < 7:
        raise ValidationError("Enter a valid phone number.")
    return value
