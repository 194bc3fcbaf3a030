from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional

from evenup.utils.money import Amount, is_negligible

Member = str
Currency = str
BalanceSnapshot = Mapping[Member, Mapping[Currency, Amount]]


class BalanceStatus(str, Enum):
    OWED = "owed"
    OWES = "owes"
    SETTLED = "settled"
    NO_ACTIVITY = "no_activity"


@dataclass(frozen=True, slots=True)
class Transaction:
    """``payer`` owes ``receiver`` ``amount`` in ``currency``."""

    payer: Member
    receiver: Member
    currency: Currency
    amount: Decimal


@dataclass(frozen=True, slots=True)
class SettlementInstruction:
    payer: Member
    receiver: Member
    currency: Currency
    amount: Decimal


@dataclass(frozen=True, slots=True)
class CounterpartyBalance:
    # positive: counterparty owes the viewer, negative: viewer owes counterparty
    member: Member
    currency: Currency
    amount: Decimal


@dataclass(frozen=True, slots=True)
class Headline:
    status: BalanceStatus
    currency: Optional[Currency] = None
    amount: Decimal = Decimal(0)
    multi_currency: bool = False


@dataclass(frozen=True, slots=True)
class MemberBalanceView:
    member: Member
    net: tuple[tuple[Currency, Decimal], ...] = ()
    counterparties: tuple[CounterpartyBalance, ...] = ()
    headline: Headline = field(default_factory=lambda: Headline(BalanceStatus.NO_ACTIVITY))

    @property
    def is_settled(self) -> bool:
        return all(is_negligible(amount, currency) for currency, amount in self.net)

    def owed_to_member(self) -> list[CounterpartyBalance]:
        return [entry for entry in self.counterparties if entry.amount > 0]

    def owed_by_member(self) -> list[CounterpartyBalance]:
        return [entry for entry in self.counterparties if entry.amount < 0]

    def amounts_with(self, other: Member) -> dict[Currency, Decimal]:
        return {entry.currency: entry.amount for entry in self.counterparties if entry.member == other}
