import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "unidocs_backend.settings")

app = Celery("unidocs_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
