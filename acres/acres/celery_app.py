# acres/celery_app.py
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "acres.settings")

app = Celery("acres")

# Read CELERY_* settings from Django settings.py (namespace), including
# CELERY_BEAT_SCHEDULE.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks.py in installed apps
app.autodiscover_tasks()
