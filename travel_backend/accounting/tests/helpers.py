# accounting/tests/helpers.py

from __future__ import annotations

from io import StringIO

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Permission
from django.core.management import call_command
from django.utils import timezone

User = get_user_model()


def seed_ledger(year: int | None = None) -> int:
    """
    Seed the travel chart, default mappings and one calendar fiscal year.
    """
    year = year or timezone.localdate().year
    call_command("seed_travel_chart", year=year, stdout=StringIO())
    return year


def make_user(username: str, *perms: str):
    """
    perms are "app_label.codename" strings.
    """
    user = User.objects.create_user(username=username, password="password123")
    for perm in perms:
        app_label, codename = perm.split(".", 1)
        user.user_permissions.add(
            Permission.objects.get(content_type__app_label=app_label, codename=codename)
        )
    # fresh instance, no cached permissions
    return User.objects.get(pk=user.pk)
