# PATH: accounting/services/account_mapping.py

"""
ACCOUNT MAPPING TABLE

Static lookup: business-event category -> (debit account, credit account).

Rules:
- A missing or inactive mapping is a configuration error: it is logged loudly
  and raised. There is no fallback account.
- Both sides must resolve to active leaf accounts.
"""

from __future__ import annotations

import logging

from accounting.models.mapping import AccountMapping
from accounting.services.chart_registry import assert_postable, get_account
from accounting.services.exceptions import (
    AccountResolutionError,
    UnmappedCategoryError,
)

logger = logging.getLogger(__name__)

CATEGORY_CASH_RECEIPT = "cash_receipt"
CATEGORY_CASH_DISBURSEMENT = "cash_disbursement"
CATEGORY_BANK_TRANSFER = "bank_transfer"
CATEGORY_PAYROLL = "payroll"
CATEGORY_OVERPAYMENT_TRANSFER = "overpayment_transfer"
CATEGORY_OVERPAYMENT_REFUND = "overpayment_refund"


def normalize_category(category: str) -> str:
    return (category or "").strip().lower()


def resolve_mapping(category: str):
    """
    Return (debit_account, credit_account) for a category.

    Raises:
        UnmappedCategoryError when no active mapping exists or a side is not postable.
    """
    key = normalize_category(category)

    mapping = (
        AccountMapping.objects.select_related("debit_account", "credit_account")
        .filter(mapping_type=key, is_active=True)
        .first()
    )
    if mapping is None:
        logger.error(
            "No active account mapping for posting category",
            extra={"category": key},
        )
        raise UnmappedCategoryError(
            f"No active account mapping configured for category '{key}'"
        )

    try:
        debit = assert_postable(mapping.debit_account)
        credit = assert_postable(mapping.credit_account)
    except AccountResolutionError as exc:
        logger.error(
            "Account mapping points at a non-postable account",
            extra={"category": key, "error": str(exc)},
        )
        raise UnmappedCategoryError(
            f"Account mapping for '{key}' is misconfigured: {exc}"
        ) from exc

    return debit, credit


def set_mapping(
    *,
    category: str,
    debit_code: str,
    credit_code: str,
    description: str = "",
) -> tuple[AccountMapping, bool]:
    """
    Create or update a mapping by category (idempotent). Used by seeders.
    """
    key = normalize_category(category)
    debit = get_account(debit_code)
    credit = get_account(credit_code)

    mapping = AccountMapping.objects.filter(mapping_type=key).first()
    created = mapping is None
    if created:
        mapping = AccountMapping(mapping_type=key)

    mapping.debit_account = debit
    mapping.credit_account = credit
    mapping.description = description
    mapping.is_active = True
    mapping.save()

    return mapping, created
