"""
AccountRegistry tests: chart of accounts maintenance and lookup.
"""

from uuid import uuid4

import pytest

from ledger_kernel.exceptions import AccountNotFoundError, DuplicateAccountCodeError
from ledger_kernel.models.account import AccountType, NormalBalance


class TestCreateAccount:
    def test_create_returns_snapshot(self, account_registry, company_id, test_actor_id):
        info = account_registry.create_account(
            company_id, "1100", "Cash in Hand", "asset", test_actor_id
        )

        assert info.code == "1100"
        assert info.account_type == AccountType.ASSET
        assert info.normal_balance == NormalBalance.DEBIT
        assert info.is_active is True
        assert info.company_id == company_id

    def test_credit_normal_types(self, account_registry, company_id, test_actor_id):
        for code, account_type in (
            ("2100", AccountType.LIABILITY),
            ("3100", AccountType.EQUITY),
            ("4100", AccountType.INCOME),
        ):
            info = account_registry.create_account(
                company_id, code, code, account_type, test_actor_id
            )
            assert info.normal_balance == NormalBalance.CREDIT

    def test_duplicate_code_in_same_company(self, account_registry, company_id, test_actor_id):
        account_registry.create_account(company_id, "1100", "Cash", "asset", test_actor_id)

        with pytest.raises(DuplicateAccountCodeError) as exc_info:
            account_registry.create_account(company_id, "1100", "Petty", "asset", test_actor_id)

        assert exc_info.value.account_code == "1100"

    def test_same_code_in_another_company(self, account_registry, company_id, test_actor_id):
        account_registry.create_account(company_id, "1100", "Cash", "asset", test_actor_id)

        other = account_registry.create_account(uuid4(), "1100", "Cash", "asset", test_actor_id)

        assert other.code == "1100"

    def test_unknown_type(self, account_registry, company_id, test_actor_id):
        with pytest.raises(ValueError):
            account_registry.create_account(company_id, "9000", "Odd", "suspense", test_actor_id)

    def test_parent_must_belong_to_company(self, account_registry, company_id, test_actor_id):
        parent = account_registry.create_account(
            uuid4(), "1000", "Assets", "asset", test_actor_id
        )

        with pytest.raises(AccountNotFoundError):
            account_registry.create_account(
                company_id, "1100", "Cash", "asset", test_actor_id, parent_id=parent.id
            )


class TestLookup:
    def test_get_by_code(self, account_registry, standard_accounts, company_id):
        info = account_registry.get_by_code(company_id, "4100")

        assert info.id == standard_accounts["REVENUE"].id

    def test_get_unknown(self, account_registry):
        with pytest.raises(AccountNotFoundError):
            account_registry.get(uuid4())

    def test_lookup_returns_none_for_unknown(self, account_registry):
        assert account_registry.lookup(uuid4()) is None

    def test_lookup_many_omits_unknown(self, account_registry, standard_accounts):
        cash = standard_accounts["CASH"].id
        missing = uuid4()

        found = account_registry.lookup_many([cash, missing])

        assert set(found) == {cash}

    def test_list_accounts_filters(self, account_registry, standard_accounts, company_id,
                                   test_actor_id):
        account_registry.deactivate(standard_accounts["LOAN"].id, test_actor_id)

        liabilities = account_registry.list_accounts(company_id, types=["liability"])
        everything = account_registry.list_accounts(company_id, active_only=False)

        assert [a.code for a in liabilities] == ["2100"]
        assert len(everything) == 10
        assert [a.code for a in everything] == sorted(a.code for a in everything)
        assert "2500" in {a.code for a in everything}


class TestActivation:
    def test_deactivate_and_reactivate(self, account_registry, standard_accounts, test_actor_id):
        account_id = standard_accounts["EQUIPMENT"].id

        assert account_registry.deactivate(account_id, test_actor_id).is_active is False
        assert account_registry.activate(account_id, test_actor_id).is_active is True

    def test_deactivate_logs(self, account_registry, standard_accounts, test_actor_id,
                             captured_logs):
        account_registry.deactivate(standard_accounts["EQUIPMENT"].id, test_actor_id)

        events = [r["message"] for r in captured_logs()]
        assert "account_deactivated" in events
