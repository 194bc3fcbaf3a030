from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol

from evenup.domain.models import Currency, Member, SettlementInstruction, Transaction
from evenup.logging import get_logger
from evenup.utils.money import Amount, to_decimal

log = get_logger(__name__)


class SettlementRecorder(Protocol):
    async def record(self, payer: Member, receiver: Member, currency: Currency, amount: Decimal) -> bool: ...


class InvalidSettlement(ValueError):
    pass


def build_instruction(payer: Member, receiver: Member, currency: Currency, amount: Amount) -> SettlementInstruction:
    try:
        value = to_decimal(amount)
    except ValueError as exc:
        raise InvalidSettlement(str(exc)) from exc
    if value <= 0:
        raise InvalidSettlement("settlement amount must be positive")
    if payer == receiver:
        raise InvalidSettlement("payer and receiver must differ")
    if not currency:
        raise InvalidSettlement("currency is required")
    return SettlementInstruction(payer=payer, receiver=receiver, currency=currency, amount=value)


def instruction_from(transaction: Transaction, amount: Optional[Amount] = None) -> SettlementInstruction:
    """Settle a suggested transaction, in full or for a custom amount."""
    return build_instruction(
        transaction.payer,
        transaction.receiver,
        transaction.currency,
        transaction.amount if amount is None else amount,
    )


async def hand_off(recorder: SettlementRecorder, instruction: SettlementInstruction) -> bool:
    ok = await recorder.record(
        instruction.payer,
        instruction.receiver,
        instruction.currency,
        instruction.amount,
    )
    log.info(
        "settlement.handoff",
        payer=instruction.payer,
        receiver=instruction.receiver,
        currency=instruction.currency,
        amount=str(instruction.amount),
        ok=ok,
    )
    return ok
