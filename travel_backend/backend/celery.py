# backend/celery.py
"""
PATH: backend/celery.py

Celery application for background work.

- Reads CELERY_* keys from Django settings
- Autodiscovers tasks.py in installed apps
- The overdue invoice sweep runs from CELERY_BEAT_SCHEDULE:
    celery -A backend worker -B -l info
"""

from __future__ import annotations

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

celery_app = Celery("backend")

celery_app.config_from_object("django.conf:settings", namespace="CELERY")

celery_app.autodiscover_tasks()
