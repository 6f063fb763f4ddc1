from rest_framework.throttling import UserRateThrottle


# Per-user (or per-IP when anonymous) throttles. Scope names must exist in
# DEFAULT_THROTTLE_RATES.
class BookingCreateThrottle(UserRateThrottle):
    scope = "booking-create"


class ReviewCreateThrottle(UserRateThrottle):
    scope = "review-create"


class UploadThrottle(UserRateThrottle):
    scope = "upload"


class PasswordResetThrottle(UserRateThrottle):
    scope = "password-reset"


class PasswordResetConfirmThrottle(UserRateThrottle):
    scope = "password-reset-confirm"
