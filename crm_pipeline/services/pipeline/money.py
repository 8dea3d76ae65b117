"""Parsing and display of lead monetary values.

Lead values are free text. Integrations write machine decimals ("1500.00")
while people type Brazilian currency ("R$ 1.200,00"). Every rollup goes
through :func:`parse_money` so all totals agree on which branch applies.
"""

from __future__ import annotations

import re
from decimal import Decimal

from babel.numbers import format_currency

from crm_pipeline.config import settings
from crm_pipeline.schemas.pipeline import MoneyValue

_NORMALIZED_RE = re.compile(r"-?\d+(\.\d+)?")
_NON_NUMERIC_RE = re.compile(r"[^\d,-]")
_LEADING_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)")


def parse_money(raw: str | int | Decimal | None) -> MoneyValue:
    if raw is None:
        return MoneyValue(raw=None, error="empty")
    if isinstance(raw, int | Decimal):
        return MoneyValue(raw=str(raw), parsed=Decimal(raw))
    if raw == "":
        return MoneyValue(raw=raw, error="empty")
    if _NORMALIZED_RE.fullmatch(raw):
        return MoneyValue(raw=raw, parsed=Decimal(raw))

    # Brazilian format: dot groups thousands, comma marks decimals.
    cleaned = _NON_NUMERIC_RE.sub("", raw).replace(",", ".", 1)
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return MoneyValue(raw=raw, error="unparseable")
    return MoneyValue(raw=raw, parsed=Decimal(match.group(0)))


def money_amount(raw: str | None) -> Decimal:
    return parse_money(raw).amount


def format_money(amount: Decimal | int, currency: str | None = None, locale: str | None = None) -> str:
    return format_currency(
        Decimal(amount),
        currency or settings.currency,
        locale=locale or settings.locale,
    )
