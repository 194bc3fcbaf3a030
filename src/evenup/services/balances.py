from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterable, Mapping, Optional, Sequence

from evenup.config import get_settings
from evenup.domain.models import (
    BalanceSnapshot,
    BalanceStatus,
    CounterpartyBalance,
    Currency,
    Headline,
    Member,
    MemberBalanceView,
    Transaction,
)
from evenup.services.settlement import simplify
from evenup.services.snapshot import currencies_of, has_activity, normalize_snapshot
from evenup.utils.money import is_negligible

NameResolver = Callable[[Member], str]


def _identity(member: Member) -> str:
    return member


def order_members(
    members: Iterable[Member],
    viewer: Optional[Member],
    name_of: Optional[NameResolver] = None,
) -> list[Member]:
    """Viewer first, everybody else alphabetically by display name."""
    resolve = name_of or _identity
    return sorted(members, key=lambda member: (member != viewer, resolve(member), member))


def select_headline(
    net: Sequence[tuple[Currency, Decimal]],
    default_currency: Optional[Currency],
    active: bool,
) -> Headline:
    multi_currency = len(net) > 1
    nonzero = [(currency, amount) for currency, amount in net if not is_negligible(amount, currency)]
    if not nonzero:
        status = BalanceStatus.SETTLED if active else BalanceStatus.NO_ACTIVITY
        return Headline(status=status, multi_currency=multi_currency)

    currency, amount = next(
        ((c, a) for c, a in nonzero if c == default_currency),
        nonzero[0],
    )
    status = BalanceStatus.OWED if amount > 0 else BalanceStatus.OWES
    return Headline(status=status, currency=currency, amount=amount, multi_currency=multi_currency)


def _counterparties(
    viewer: Member,
    transactions: Iterable[Transaction],
    currency_order: Sequence[Currency],
    resolve: NameResolver,
) -> tuple[CounterpartyBalance, ...]:
    amounts: dict[tuple[Member, Currency], Decimal] = {}
    for tx in transactions:
        if tx.receiver == viewer:
            key, delta = (tx.payer, tx.currency), tx.amount
        elif tx.payer == viewer:
            key, delta = (tx.receiver, tx.currency), -tx.amount
        else:
            continue
        amounts[key] = amounts.get(key, Decimal(0)) + delta

    rank = {currency: index for index, currency in enumerate(currency_order)}
    keys = sorted(
        (key for key, amount in amounts.items() if not is_negligible(amount, key[1])),
        key=lambda key: (resolve(key[0]), key[0], rank.get(key[1], len(rank))),
    )
    return tuple(CounterpartyBalance(member=m, currency=c, amount=amounts[(m, c)]) for m, c in keys)


def _build_view(
    balances: Mapping[Member, Mapping[Currency, Decimal]],
    viewer: Member,
    transactions: Sequence[Transaction],
    currency_order: Sequence[Currency],
    default_currency: Optional[Currency],
    active: bool,
    resolve: NameResolver,
) -> MemberBalanceView:
    own = balances.get(viewer, {})
    net = tuple(own.items())
    return MemberBalanceView(
        member=viewer,
        net=net,
        counterparties=_counterparties(viewer, transactions, currency_order, resolve),
        headline=select_headline(net, default_currency, active),
    )


def _flatten(transactions: Mapping[Currency, Sequence[Transaction]]) -> list[Transaction]:
    return [tx for txs in transactions.values() for tx in txs]


def present(
    snapshot: BalanceSnapshot,
    viewer: Member,
    *,
    default_currency: Optional[Currency] = None,
    name_of: Optional[NameResolver] = None,
    transactions: Optional[Mapping[Currency, Sequence[Transaction]]] = None,
    has_expenses: Optional[bool] = None,
) -> MemberBalanceView:
    """Balance view of ``snapshot`` as seen by ``viewer``.

    Counterparty amounts come from the simplified transactions, so they show
    whom the viewer should actually pay or collect from. Pass ``transactions``
    to reuse an earlier :func:`simplify` result. Amounts within the ledger
    tolerance of zero count as settled.
    """
    balances = normalize_snapshot(snapshot)
    if transactions is None:
        transactions = simplify(balances)
    if default_currency is None:
        default_currency = get_settings().default_currency
    active = has_activity(balances) if has_expenses is None else has_expenses

    return _build_view(
        balances,
        viewer,
        _flatten(transactions),
        currencies_of(balances),
        default_currency,
        active,
        name_of or _identity,
    )


def present_group(
    snapshot: BalanceSnapshot,
    viewer: Optional[Member],
    *,
    default_currency: Optional[Currency] = None,
    name_of: Optional[NameResolver] = None,
    has_expenses: Optional[bool] = None,
) -> tuple[MemberBalanceView, ...]:
    """One view per group member, viewer first then by display name."""
    balances = normalize_snapshot(snapshot)
    transactions = _flatten(simplify(balances))
    if default_currency is None:
        default_currency = get_settings().default_currency
    active = has_activity(balances) if has_expenses is None else has_expenses
    currency_order = currencies_of(balances)
    resolve = name_of or _identity

    return tuple(
        _build_view(balances, member, transactions, currency_order, default_currency, active, resolve)
        for member in order_members(balances, viewer, resolve)
    )
