"""
Normal-side signing of journal lines.

A debit-normal account (asset, expense) grows with debits; a credit-normal
account (liability, equity, income) grows with credits.  Every balance in
the ledger is the sum of ``signed_amount`` over posted lines.
"""

from decimal import Decimal

from ledger_kernel.models.account import NormalBalance


def signed_amount(normal_balance: NormalBalance | str, debit: Decimal, credit: Decimal) -> Decimal:
    """Effect of one line on a balance kept on ``normal_balance``'s side."""
    if normal_balance == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


def split_balance(normal_balance: NormalBalance | str, balance: Decimal) -> tuple[Decimal, Decimal]:
    """
    Present a normal-side balance as (debit, credit) trial balance columns.

    A negative balance lands on the opposite column.
    """
    zero = Decimal("0")
    if normal_balance == NormalBalance.DEBIT:
        return (balance, zero) if balance >= 0 else (zero, -balance)
    return (zero, balance) if balance >= 0 else (-balance, zero)
