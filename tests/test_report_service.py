from __future__ import annotations

import pytest
from sqlalchemy import select, update

from creditledger.db.models import LedgerEntry
from creditledger.db.session import get_session
from creditledger.services.ledger_service import InvalidKind, LedgerService, NotAuthorized, NotFound
from creditledger.services.report_service import ReportService
from creditledger.services.role_service import RoleService


@pytest.fixture()
def populated(make_user):
    admin = make_user("admin_boss", role="admin")
    seller = make_user("seller_one", role="seller")
    alice = make_user("alice_01")
    bob = make_user("bob_user", credits=0, days=0)
    ledger = LedgerService()
    ledger.grant(seller.id, alice.id, "credits", 5)
    ledger.grant(seller.id, alice.id, "credits", 10)
    ledger.grant(seller.id, bob.id, "days", 30)
    ledger.grant(admin.id, bob.id, "credits", 100)
    return {"admin": admin, "seller": seller, "alice": alice, "bob": bob}


def test_seller_stats_from_ledger(populated):
    stats = ReportService().seller_stats(populated["seller"].id)
    assert stats == {
        "total_users_credited": 2,
        "total_credits_given": 15,
        "total_days_given": 30,
        "total_transactions": 3,
    }


def test_seller_transactions_newest_first_with_usernames(populated):
    data = ReportService().seller_transactions(populated["seller"].id, page=1, limit=2)
    rows = data["transactions"]
    assert len(rows) == 2
    assert rows[0]["to_username"] == "bob_user"
    assert rows[0]["transaction_type"] == "days"
    assert rows[1]["amount"] == 10
    assert all(row["from_username"] == "seller_one" for row in rows)

    second_page = ReportService().seller_transactions(populated["seller"].id, page=2, limit=2)
    assert [row["amount"] for row in second_page["transactions"]] == [5]


def test_admin_view_lists_only_seller_sources(populated):
    rows = ReportService().seller_transactions_all()["transactions"]
    assert len(rows) == 3
    assert {row["seller_username"] for row in rows} == {"seller_one"}
    assert {row["user_username"] for row in rows} == {"alice_01", "bob_user"}


def test_platform_stats(populated):
    stats = ReportService().platform_stats()
    assert stats["total_users"] == 4
    assert stats["admin_count"] == 1
    assert stats["seller_count"] == 1
    assert stats["user_count"] == 2
    assert stats["total_transactions"] == 4
    assert stats["total_credits_given"] == 115
    assert stats["total_days_given"] == 30
    assert stats["total_sellers_active"] == 2
    assert stats["new_users_30d"] == 4


def test_ledger_history_in_commit_order(populated):
    admin, alice = populated["admin"], populated["alice"]
    RoleService().change_role(admin.id, alice.id, "seller")

    history = ReportService().ledger_history(alice.id)
    assert [row["transaction_type"] for row in history] == ["credits", "credits", "role_change"]
    assert ReportService().ledger_history(alice.id, "credits")[1]["new_amount"] == 35

    with pytest.raises(NotFound):
        ReportService().ledger_history(9999)
    with pytest.raises(InvalidKind):
        ReportService().ledger_history(alice.id, "lives")


def test_replay_matches_stored_balance(populated):
    result = ReportService().replay_balance(populated["alice"].id, "credits", 20)
    assert result.consistent
    assert result.replayed == result.stored == 35
    assert result.entries == 2


def test_replay_reports_chain_break(populated):
    alice = populated["alice"]
    with get_session() as session:
        stmt = select(LedgerEntry.id).where(LedgerEntry.to_user_id == alice.id).order_by(LedgerEntry.id)
        first_id = session.execute(stmt).scalars().first()
        session.execute(update(LedgerEntry).where(LedgerEntry.id == first_id).values(previous_amount=19))
        session.commit()

    result = ReportService().replay_balance(alice.id, "credits", 20)
    assert not result.consistent
    assert result.breaks == [first_id]


def test_list_users_scoped_by_viewer(populated):
    report = ReportService()
    as_seller = report.list_users("seller", role="admin")
    assert {user["role"] for user in as_seller["users"]} == {"user"}

    as_admin = report.list_users("admin", role="seller")
    assert [user["username"] for user in as_admin["users"]] == ["seller_one"]
    assert len(report.list_users("admin")["users"]) == 4

    with pytest.raises(NotAuthorized):
        report.list_users("user")


def test_search_users_substring_regular_only(populated):
    results = ReportService().search_users("USER")
    assert [user["username"] for user in results] == ["bob_user"]
    assert ReportService().search_users("seller") == []
    assert ReportService().search_users("  ") == []
