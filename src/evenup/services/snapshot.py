from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from evenup.domain.models import BalanceSnapshot, Currency, Member
from evenup.logging import get_logger
from evenup.utils.money import ledger_tolerance, to_decimal

log = get_logger(__name__)


class InconsistentLedger(ValueError):
    def __init__(self, currency: Currency, total: Decimal) -> None:
        super().__init__(f"balances in {currency} sum to {total}, expected 0")
        self.currency = currency
        self.total = total


def normalize_snapshot(snapshot: BalanceSnapshot) -> dict[Member, dict[Currency, Decimal]]:
    return {
        member: {currency: to_decimal(amount) for currency, amount in amounts.items()}
        for member, amounts in snapshot.items()
    }


def currencies_of(snapshot: BalanceSnapshot) -> list[Currency]:
    seen: dict[Currency, None] = {}
    for amounts in snapshot.values():
        for currency in amounts:
            seen.setdefault(currency, None)
    return list(seen)


def currency_totals(snapshot: BalanceSnapshot) -> dict[Currency, Decimal]:
    totals: dict[Currency, Decimal] = {}
    for amounts in snapshot.values():
        for currency, amount in amounts.items():
            totals[currency] = totals.get(currency, Decimal(0)) + to_decimal(amount)
    return totals


def assert_conserved(snapshot: BalanceSnapshot, fraction: Optional[Decimal] = None) -> None:
    """Raise :class:`InconsistentLedger` for the first currency whose total drifts off zero."""
    for currency, total in currency_totals(snapshot).items():
        if abs(total) > ledger_tolerance(currency, fraction):
            log.warning("ledger.inconsistent", currency=currency, total=str(total))
            raise InconsistentLedger(currency, total)


def has_activity(snapshot: BalanceSnapshot) -> bool:
    return any(amounts for amounts in snapshot.values())


def snapshot_from_rows(rows: Iterable[Mapping[str, Any]]) -> dict[Member, dict[Currency, Decimal]]:
    snapshot: dict[Member, dict[Currency, Decimal]] = {}
    for row in rows:
        amounts = snapshot.setdefault(str(row["member_id"]), {})
        currency = row["currency"]
        amounts[currency] = amounts.get(currency, Decimal(0)) + to_decimal(row["amount"])
    return snapshot
