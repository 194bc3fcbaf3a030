from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from evenup.domain.models import BalanceSnapshot, Currency, Member, Transaction
from evenup.logging import get_logger
from evenup.services.snapshot import assert_conserved, currencies_of, normalize_snapshot

log = get_logger(__name__)


def simplify(
    snapshot: BalanceSnapshot,
    *,
    tolerance_fraction: Optional[Decimal] = None,
) -> dict[Currency, List[Transaction]]:
    """Suggest settle-up transactions for every currency of ``snapshot``.

    The whole snapshot is validated before any currency is simplified, so an
    unbalanced currency yields no output at all.
    """
    balances = normalize_snapshot(snapshot)
    assert_conserved(balances, tolerance_fraction)

    result: dict[Currency, List[Transaction]] = {}
    for currency in currencies_of(balances):
        per_member = {
            member: amounts[currency]
            for member, amounts in balances.items()
            if currency in amounts
        }
        result[currency] = simplify_currency(currency, per_member)
        log.info("settlement.simplified", currency=currency, transactions=len(result[currency]))
    return result


def simplify_currency(
    currency: Currency,
    balances: Mapping[Member, Decimal],
) -> List[Transaction]:
    creditors: list[tuple[Member, Decimal]] = []
    debtors: list[tuple[Member, Decimal]] = []

    for member, balance in balances.items():
        if balance > 0:
            creditors.append((member, balance))
        elif balance < 0:
            debtors.append((member, -balance))

    # smallest first on both sides; sort is stable so ties keep snapshot order
    creditors.sort(key=lambda x: x[1])
    debtors.sort(key=lambda x: x[1])

    transactions: list[Transaction] = []
    i, j = 0, 0

    # a partially consumed entry stays at the head of its pool
    while i < len(creditors) and j < len(debtors):
        cred_id, cred_amount = creditors[i]
        debt_id, debt_amount = debtors[j]

        amount = min(cred_amount, debt_amount)
        transactions.append(Transaction(payer=debt_id, receiver=cred_id, currency=currency, amount=amount))

        cred_amount -= amount
        debt_amount -= amount

        if cred_amount == 0:
            i += 1
        else:
            creditors[i] = (cred_id, cred_amount)

        if debt_amount == 0:
            j += 1
        else:
            debtors[j] = (debt_id, debt_amount)

    return transactions


def apply_transactions(transactions: Iterable[Transaction]) -> dict[Member, dict[Currency, Decimal]]:
    """Net position per member implied by settling ``transactions``.

    The receiver is owed the amount, the payer owes it, so for a simplified
    snapshot this reproduces the input balances.
    """
    net: dict[Member, dict[Currency, Decimal]] = {}
    for tx in transactions:
        receiver = net.setdefault(tx.receiver, {})
        receiver[tx.currency] = receiver.get(tx.currency, Decimal(0)) + tx.amount
        payer = net.setdefault(tx.payer, {})
        payer[tx.currency] = payer.get(tx.currency, Decimal(0)) - tx.amount
    return net
