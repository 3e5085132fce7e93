"""
AccountRegistry -- chart of accounts maintenance and lookup.

Responsibility:
    Creates accounts, toggles their active flag and answers the posting
    engine's account lookups.  Returns AccountInfo DTOs to callers outside
    the kernel; ORM Account objects stay inside services and selectors.

Invariants enforced:
    - (company_id, code) unique; checked up front to raise a typed error
      rather than an IntegrityError.
    - Structural immutability of referenced accounts is enforced by the ORM
      listeners in db/immutability.py.

Failure modes:
    - DuplicateAccountCodeError on code clash within a company.
    - AccountNotFoundError on unknown id or code.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import AccountNotFoundError, DuplicateAccountCodeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_registry")


class AccountRegistry(BaseService[Account]):
    """
    Chart of accounts service.

    Contract:
        ``lookup`` never raises; it returns None for unknown ids so the
        posting engine can report the offending line itself.
    """

    def create_account(
        self,
        company_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        parent_id: UUID | None = None,
    ) -> AccountInfo:
        """
        Create an active account.

        Raises:
            DuplicateAccountCodeError: code already used within the company.
            AccountNotFoundError: parent_id does not exist in the company.
            ValueError: unknown account_type.
        """
        account_type = AccountType(account_type)

        existing = self.session.execute(
            select(Account.id).where(
                Account.company_id == company_id,
                Account.code == code,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateAccountCodeError(str(company_id), code)

        if parent_id is not None:
            parent = self.session.get(Account, parent_id)
            if parent is None or parent.company_id != company_id:
                raise AccountNotFoundError(str(parent_id))

        account = Account(
            company_id=company_id,
            code=code,
            name=name,
            account_type=account_type.value,
            is_active=True,
            parent_id=parent_id,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "company_id": str(company_id),
                "account_code": code,
                "account_type": account_type.value,
            },
        )
        return AccountInfo.from_model(account)

    def _load(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get(self, account_id: UUID) -> AccountInfo:
        return AccountInfo.from_model(self._load(account_id))

    def get_by_code(self, company_id: UUID, code: str) -> AccountInfo:
        account = self.session.execute(
            select(Account).where(
                Account.company_id == company_id,
                Account.code == code,
            )
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(f"{company_id}:{code}")
        return AccountInfo.from_model(account)

    def lookup(self, account_id: UUID) -> AccountInfo | None:
        account = self.session.get(Account, account_id)
        return AccountInfo.from_model(account) if account is not None else None

    def lookup_many(self, account_ids: Iterable[UUID]) -> dict[UUID, AccountInfo]:
        """Batch lookup; unknown ids are simply absent from the result."""
        ids = set(account_ids)
        if not ids:
            return {}
        rows = self.session.execute(select(Account).where(Account.id.in_(ids))).scalars()
        return {row.id: AccountInfo.from_model(row) for row in rows}

    def _set_active(self, account_id: UUID, actor_id: UUID, active: bool) -> AccountInfo:
        account = self._load(account_id)
        if account.is_active != active:
            account.is_active = active
            account.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "account_activated" if active else "account_deactivated",
                extra={"account_id": str(account_id), "account_code": account.code},
            )
        return AccountInfo.from_model(account)

    def deactivate(self, account_id: UUID, actor_id: UUID) -> AccountInfo:
        """Inactive accounts keep their history but reject new postings."""
        return self._set_active(account_id, actor_id, False)

    def activate(self, account_id: UUID, actor_id: UUID) -> AccountInfo:
        return self._set_active(account_id, actor_id, True)

    def list_accounts(
        self,
        company_id: UUID,
        types: Iterable[AccountType | str] | None = None,
        active_only: bool = True,
    ) -> list[AccountInfo]:
        """Accounts of a company ordered by code."""
        stmt = select(Account).where(Account.company_id == company_id)
        if types is not None:
            stmt = stmt.where(Account.account_type.in_([AccountType(t).value for t in types]))
        if active_only:
            stmt = stmt.where(Account.is_active.is_(True))
        stmt = stmt.order_by(Account.code)
        return [AccountInfo.from_model(a) for a in self.session.execute(stmt).scalars()]
