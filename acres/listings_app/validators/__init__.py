"""
Public facade for custom validators.

Usage everywhere:
    from listings_app.validators import validate_image_upload, ranges_overlap, ...
"""

from .images import validate_image_upload

from .booking import (
    ranges_overlap,
    validate_booking_window,
    parse_query_datetime,
)

from .security import (
    strip_html,
    sanitize_search_text,
    normalise_phone,
)

__all__ = [
    "validate_image_upload",
    "ranges_overlap", "validate_booking_window", "parse_query_datetime",
    "strip_html", "sanitize_search_text", "normalise_phone",
]
