# PATH: accounting/services/chart_registry.py

"""
CHART OF ACCOUNTS REGISTRY

Answers "which account is this code, and may it receive postings?"

Design goals:
- deterministic
- hard-fail on missing setup (so we don't post to wrong accounts)
- leaves only: header accounts group children and are never posted to
"""

from __future__ import annotations

import logging

from django.db import transaction

from accounting.models.account import ChartOfAccount
from accounting.services.exceptions import AccountResolutionError

logger = logging.getLogger(__name__)


def assert_postable(account: ChartOfAccount) -> ChartOfAccount:
    if account.is_header:
        raise AccountResolutionError(
            f"Account {account.code} is a header account and cannot receive postings"
        )
    if not account.is_active:
        raise AccountResolutionError(f"Account {account.code} is inactive")
    return account


def get_account(code: str) -> ChartOfAccount:
    code = (code or "").strip()
    if not code:
        raise AccountResolutionError("Account code is required")

    try:
        return ChartOfAccount.objects.get(code=code)
    except ChartOfAccount.DoesNotExist as exc:
        logger.warning("Account code not found", extra={"account_code": code})
        raise AccountResolutionError(f"Account with code={code} not found") from exc


def get_postable_account(code_or_account) -> ChartOfAccount:
    if isinstance(code_or_account, ChartOfAccount):
        return assert_postable(code_or_account)
    return assert_postable(get_account(str(code_or_account)))


@transaction.atomic
def register_account(
    *,
    code: str,
    name: str,
    account_type: str,
    parent_code: str | None = None,
    is_header: bool = False,
    currency: str = "IDR",
    sort_order: int = 0,
) -> tuple[ChartOfAccount, bool]:
    """
    Create or update one node of the tree by code (idempotent).
    """
    parent = get_account(parent_code) if parent_code else None

    account = ChartOfAccount.objects.filter(code=code).first()
    created = account is None
    if created:
        account = ChartOfAccount(code=code)

    account.name = name
    account.account_type = account_type
    account.parent = parent
    account.is_header = is_header
    account.currency = currency
    account.sort_order = sort_order
    account.save()

    return account, created


def account_tree(*, include_inactive: bool = False) -> list[dict]:
    """
    Return the chart as nested dicts, roots first, children ordered by code.
    """
    qs = ChartOfAccount.objects.all().order_by("sort_order", "code")
    if not include_inactive:
        qs = qs.filter(is_active=True)

    nodes: dict[int, dict] = {}
    for account in qs:
        nodes[account.id] = {
            "id": account.id,
            "code": account.code,
            "name": account.name,
            "account_type": account.account_type,
            "level": account.level,
            "is_header": account.is_header,
            "currency": account.currency,
            "is_active": account.is_active,
            "parent_id": account.parent_id,
            "children": [],
        }

    roots: list[dict] = []
    for node in nodes.values():
        parent = nodes.get(node["parent_id"])
        if parent is None:
            roots.append(node)
        else:
            parent["children"].append(node)

    return roots
