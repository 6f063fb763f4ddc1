import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from listings_app.models import UserProfile


class Command(BaseCommand):
    help = "Create or reset the bootstrap admin account (opt-in via CREATE_SUPERUSER=1)"

    def handle(self, *args, **options):
        if os.environ.get("CREATE_SUPERUSER") != "1":
            self.stdout.write("CREATE_SUPERUSER not enabled; skipping.")
            return

        username = os.environ.get("SU_USERNAME", "acres_admin")
        password = os.environ.get("SU_PASSWORD")
        email = os.environ.get("SU_EMAIL", "admin@acres.co.za")
        if not password:
            self.stderr.write("SU_PASSWORD is required.")
            return

        User = get_user_model()
        user = User.objects.filter(username=username).first()
        created = user is None

        if created:
            user = User.objects.create_superuser(username=username, email=email, password=password)
        else:
            user.email = email
            user.is_staff = True
            user.is_superuser = True
            user.is_active = True
            user.set_password(password)
            user.save()

        UserProfile.objects.update_or_create(user=user, defaults={"role": UserProfile.ROLE_ADMIN})
        self.stdout.write(f"Superuser {'created' if created else 'password reset'}: {username}")
