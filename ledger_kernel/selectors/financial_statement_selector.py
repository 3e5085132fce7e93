"""
Module: ledger_kernel.selectors.financial_statement_selector
Responsibility: Balance sheet and income statement built from replayed
    account balances.
Architecture position: Kernel > Selectors.  Reads balances exclusively
    through LedgerSelector so every figure matches the account ledger.

Invariants enforced:
    - Balance sheet accounts are the active asset, liability and equity
      accounts of the company, each balanced over its full history up to
      as_of_date.
    - is_balanced is exact equality of total_assets with total_liabilities
      plus total_equity.  No tolerance, no rounding upstream.
    - An unbalanced sheet is returned as data and logged at WARNING; it is
      never raised.

Failure modes:
    - InvalidDateRangeError from get_income_statement when from > to.

Audit relevance:
    Unclosed earnings (income minus expense not yet moved to retained
    earnings by a closing entry) is reported as its own equity line so the
    sheet balances between closings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import BalanceSheetSectionDef, LedgerSettings
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import BALANCE_SHEET_TYPES, AccountType
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import AccountBalance, LedgerSelector

logger = get_logger("selectors.financial_statements")

ZERO = Decimal("0")

_TYPE_ORDER = (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)

_OTHER_SECTION_NAMES = {
    AccountType.ASSET: "Other Assets",
    AccountType.LIABILITY: "Other Liabilities",
    AccountType.EQUITY: "Other Equity",
}


@dataclass(frozen=True)
class BalanceSheetTaxonomy:
    """
    Ordered section definitions used to group balance sheet accounts.

    An account joins the first section of its type whose code prefixes
    match its code.  A section with no prefixes matches every account of
    its type.
    """

    sections: tuple[BalanceSheetSectionDef, ...] = ()

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> BalanceSheetTaxonomy:
        return cls(sections=settings.balance_sheet.sections)

    def section_for(self, account_type: AccountType, account_code: str) -> str:
        for section in self.sections:
            if AccountType(section.account_type) != account_type:
                continue
            if not section.code_prefixes or any(
                account_code.startswith(prefix) for prefix in section.code_prefixes
            ):
                return section.name
        return _OTHER_SECTION_NAMES[account_type]


@dataclass(frozen=True)
class StatementLine:
    account_id: UUID | None
    account_code: str
    account_name: str
    balance: Decimal


@dataclass(frozen=True)
class BalanceSheetSection:
    name: str
    account_type: AccountType
    lines: tuple[StatementLine, ...]

    @property
    def total(self) -> Decimal:
        return sum((line.balance for line in self.lines), ZERO)


@dataclass(frozen=True)
class BalanceSheet:
    company_id: UUID
    as_of_date: date
    sections: tuple[BalanceSheetSection, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    unclosed_earnings: Decimal | None
    is_balanced: bool

    @property
    def difference(self) -> Decimal:
        return self.total_assets - (self.total_liabilities + self.total_equity)

    def section(self, name: str) -> BalanceSheetSection | None:
        for section in self.sections:
            if section.name == name:
                return section
        return None


@dataclass(frozen=True)
class IncomeStatement:
    company_id: UUID
    from_date: date | None
    to_date: date | None
    income: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]
    total_income: Decimal
    total_expenses: Decimal

    @property
    def net_profit(self) -> Decimal:
        return self.total_income - self.total_expenses


class FinancialStatementSelector(BaseSelector):
    """Balance sheet and income statement queries."""

    def __init__(self, session: Session, settings: LedgerSettings | None = None):
        super().__init__(session, settings)
        self._ledger = LedgerSelector(session, self.settings)

    @staticmethod
    def _line(balance: AccountBalance) -> StatementLine:
        return StatementLine(
            account_id=balance.account_id,
            account_code=balance.account_code,
            account_name=balance.account_name,
            balance=balance.balance,
        )

    def unclosed_earnings(self, company_id: UUID, as_of_date: date) -> Decimal:
        """Income minus expense over the full history up to as_of_date."""
        net = ZERO
        for balance in self._ledger.account_balances(
            company_id,
            to_date=as_of_date,
            account_types=(AccountType.INCOME, AccountType.EXPENSE),
            active_only=False,
        ):
            if balance.account_type == AccountType.INCOME:
                net += balance.balance
            else:
                net -= balance.balance
        return net

    def get_balance_sheet(
        self,
        company_id: UUID,
        as_of_date: date,
        taxonomy: BalanceSheetTaxonomy | None = None,
        include_unclosed_earnings: bool | None = None,
    ) -> BalanceSheet:
        """
        Balance sheet as of a date.

        Sections appear in taxonomy order, followed by any "Other <Type>"
        catch-all sections that received accounts, followed by the unclosed
        earnings line when it is included.
        """
        taxonomy = taxonomy or BalanceSheetTaxonomy.from_settings(self.settings)
        if include_unclosed_earnings is None:
            include_unclosed_earnings = self.settings.balance_sheet.include_unclosed_earnings

        balances = self._ledger.account_balances(
            company_id,
            to_date=as_of_date,
            account_types=BALANCE_SHEET_TYPES,
            active_only=True,
        )

        grouped: dict[str, list[StatementLine]] = {s.name: [] for s in taxonomy.sections}
        section_types: dict[str, AccountType] = {
            s.name: AccountType(s.account_type) for s in taxonomy.sections
        }
        totals = {account_type: ZERO for account_type in _TYPE_ORDER}

        for balance in balances:
            name = taxonomy.section_for(balance.account_type, balance.account_code)
            grouped.setdefault(name, []).append(self._line(balance))
            section_types.setdefault(name, balance.account_type)
            totals[balance.account_type] += balance.balance

        sections = [
            BalanceSheetSection(name=name, account_type=section_types[name], lines=tuple(lines))
            for name, lines in grouped.items()
        ]

        unclosed = None
        if include_unclosed_earnings:
            unclosed = self.unclosed_earnings(company_id, as_of_date)
            label = self.settings.balance_sheet.unclosed_earnings_label
            sections.append(
                BalanceSheetSection(
                    name=label,
                    account_type=AccountType.EQUITY,
                    lines=(
                        StatementLine(
                            account_id=None,
                            account_code="",
                            account_name=label,
                            balance=unclosed,
                        ),
                    ),
                )
            )
            totals[AccountType.EQUITY] += unclosed

        total_assets = totals[AccountType.ASSET]
        total_liabilities = totals[AccountType.LIABILITY]
        total_equity = totals[AccountType.EQUITY]
        sheet = BalanceSheet(
            company_id=company_id,
            as_of_date=as_of_date,
            sections=tuple(sections),
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity=total_equity,
            unclosed_earnings=unclosed,
            is_balanced=total_assets == total_liabilities + total_equity,
        )

        if not sheet.is_balanced:
            logger.warning(
                "balance_sheet_unbalanced",
                extra={
                    "company_id": str(company_id),
                    "as_of_date": as_of_date,
                    "total_assets": total_assets,
                    "total_liabilities": total_liabilities,
                    "total_equity": total_equity,
                    "difference": sheet.difference,
                },
            )
        else:
            logger.debug(
                "balance_sheet_computed",
                extra={"company_id": str(company_id), "as_of_date": as_of_date},
            )
        return sheet

    def get_income_statement(
        self,
        company_id: UUID,
        from_date: date | None,
        to_date: date | None,
    ) -> IncomeStatement:
        """
        Income and expense totals over a date range.

        Inactive accounts are listed only when they carry a balance.
        """
        income: list[StatementLine] = []
        expenses: list[StatementLine] = []
        for balance in self._ledger.account_balances(
            company_id,
            from_date=from_date,
            to_date=to_date,
            account_types=(AccountType.INCOME, AccountType.EXPENSE),
            active_only=False,
        ):
            if not balance.is_active and balance.balance == 0:
                continue
            target = income if balance.account_type == AccountType.INCOME else expenses
            target.append(self._line(balance))

        return IncomeStatement(
            company_id=company_id,
            from_date=from_date,
            to_date=to_date,
            income=tuple(income),
            expenses=tuple(expenses),
            total_income=sum((line.balance for line in income), ZERO),
            total_expenses=sum((line.balance for line in expenses), ZERO),
        )
