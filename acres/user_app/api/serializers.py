from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from listings_app.models import UserProfile
from listings_app.services.identity import role_for
from listings_app.validators import normalise_phone, strip_html

User = get_user_model()


class MeSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    phone = serializers.SerializerMethodField()
    role = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "name", "email", "phone", "role", "date_joined"]

    def get_name(self, obj):
        return obj.get_full_name() or obj.username

    def get_phone(self, obj):
        profile = getattr(obj, "profile", None)
        return profile.phone if profile else ""

    def get_role(self, obj):
        return role_for(obj)


class MeUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, max_length=300)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)

    def validate_name(self, value):
        try:
            clean = strip_html(value, max_len=150)
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.messages)
        if not clean:
            raise serializers.ValidationError("Name cannot be blank.")
        return clean

    def validate_phone(self, value):
        if not value:
            return ""
        try:
            return normalise_phone(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.messages)

    def save(self, user):
        data = self.validated_data
        if "name" in data:
            first, _, last = data["name"].partition(" ")
            user.first_name = first[:150]
            user.last_name = last[:150]
            user.save(update_fields=["first_name", "last_name"])
        if "phone" in data:
            profile, _ = UserProfile.objects.get_or_create(user=user)
            profile.phone = data["phone"]
            profile.save(update_fields=["phone"])
            # keep the cached reverse relation in step with the saved row
            user.profile = profile
        return user


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=UserProfile.ROLE_CHOICES)


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordResetConfirmSerializer(serializers.Serializer):
    token = serializers.CharField()
    password = serializers.CharField(write_only=True)
