from django.core.management.base import BaseCommand

from notifications.models import NotificationTemplate
from notifications.services import DEFAULT_TEMPLATES


class Command(BaseCommand):
    help = "Seed default notification templates"

    def add_arguments(self, parser):
        parser.add_argument(
            "--overwrite",
            action="store_true",
            help="Replace subject/body of templates that already exist.",
        )

    def handle(self, *args, **options):
        created = 0
        updated = 0
        for key, t in DEFAULT_TEMPLATES.items():
            obj, was_created = NotificationTemplate.objects.get_or_create(
                key=key,
                defaults={"subject": t["subject"], "body": t["body"], "is_active": True},
            )
            if was_created:
                created += 1
            elif options["overwrite"]:
                obj.subject = t["subject"]
                obj.body = t["body"]
                obj.save(update_fields=["subject", "body"])
                updated += 1
        self.stdout.write(self.style.SUCCESS(f"Seeded templates. New created: {created}, updated: {updated}"))
