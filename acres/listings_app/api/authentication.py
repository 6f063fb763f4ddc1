from django.utils.translation import gettext_lazy as _
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from rest_framework_simplejwt.settings import api_settings

from listings_app.services.identity import resolve_provider_user


class ProviderTokenAuthentication(JWTAuthentication):
    """
    Bearer tokens issued by the external identity provider.

    SimpleJWT validates signature, expiry, audience and issuer (see SIMPLE_JWT);
    the subject claim is then mapped onto a local user + profile.
    """

    def get_user(self, validated_token):
        subject = validated_token.get(api_settings.USER_ID_CLAIM)
        if not subject:
            raise InvalidToken(_("Token contained no recognizable user identification"))

        user = resolve_provider_user(
            str(subject),
            email=validated_token.get("email"),
            name=validated_token.get("name"),
            role=validated_token.get("role"),
        )
        if not user.is_active:
            raise AuthenticationFailed(_("User is inactive"), code="user_inactive")
        return user
