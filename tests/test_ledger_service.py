from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select, update

from creditledger.db.models import ActivityLog, LedgerEntry, User
from creditledger.db.session import get_session
from creditledger.domain.roles import GrantKind
from creditledger.repositories import ledger_writer
from creditledger.services.ledger_service import (
    InvalidAmount,
    InvalidKind,
    InvalidTarget,
    MAX_BALANCE,
    LedgerService,
    NotAuthorized,
    SelfGrant,
)


def _user(user_id: int) -> User:
    with get_session() as session:
        return session.get(User, user_id)


def _entries(target_id: int) -> list[LedgerEntry]:
    with get_session() as session:
        stmt = select(LedgerEntry).where(LedgerEntry.to_user_id == target_id).order_by(LedgerEntry.id)
        return list(session.execute(stmt).scalars().all())


def _entry_count() -> int:
    with get_session() as session:
        return session.execute(select(func.count(LedgerEntry.id))).scalar_one()


def test_two_sellers_chain_balances(make_user):
    alice = make_user("alice_01")
    s1 = make_user("seller_one", role="seller")
    s2 = make_user("seller_two", role="seller")
    service = LedgerService()

    first = service.grant(s1.id, alice.id, "credits", 5, "promo")
    second = service.grant(s2.id, alice.id, GrantKind.CREDITS, 10)

    assert (first.previous_amount, first.new_amount) == (20, 25)
    assert (second.previous_amount, second.new_amount) == (25, 35)
    assert first.target_username == "alice_01"
    assert _user(alice.id).credits == 35

    entries = _entries(alice.id)
    assert [(e.from_user_id, e.amount, e.previous_amount, e.new_amount) for e in entries] == [
        (s1.id, 5, 20, 25),
        (s2.id, 10, 25, 35),
    ]
    assert entries[0].reason == "promo"
    assert all(e.transaction_type == "credits" for e in entries)


def test_days_grant_touches_only_days(make_user):
    bob = make_user("bob_user", credits=3, days=1)
    seller = make_user("seller_one", role="seller")

    result = LedgerService().grant(seller.id, bob.id, "days", 30)

    refreshed = _user(bob.id)
    assert (result.previous_amount, result.new_amount) == (1, 31)
    assert refreshed.days_remaining == 31
    assert refreshed.credits == 3


@pytest.mark.parametrize("amount", [-5, 0])
def test_non_positive_amount_rejected(make_user, amount):
    alice = make_user("alice_01")
    seller = make_user("seller_one", role="seller")

    with pytest.raises(InvalidAmount) as excinfo:
        LedgerService().grant(seller.id, alice.id, "credits", amount)

    assert excinfo.value.code == "invalid_amount"
    assert _user(alice.id).credits == 20
    assert _entry_count() == 0


def test_amount_beyond_column_range_rejected(make_user):
    alice = make_user("alice_01")
    seller = make_user("seller_one", role="seller")

    with pytest.raises(InvalidAmount):
        LedgerService().grant(seller.id, alice.id, "credits", 2**63)

    assert _user(alice.id).credits == 20
    assert _entry_count() == 0


def test_balance_overflow_rejected(make_user):
    alice = make_user("alice_01", credits=MAX_BALANCE - 10)
    seller = make_user("seller_one", role="seller")

    with pytest.raises(InvalidAmount):
        LedgerService().grant(seller.id, alice.id, "credits", 11)

    result = LedgerService().grant(seller.id, alice.id, "credits", 10)
    assert result.new_amount == MAX_BALANCE
    assert len(_entries(alice.id)) == 1


def test_seller_counter_overflow_rejected(make_user):
    alice = make_user("alice_01")
    seller = make_user("seller_one", role="seller")
    with get_session() as session:
        session.execute(update(User).where(User.id == seller.id).values(total_days_given=MAX_BALANCE))
        session.commit()

    with pytest.raises(InvalidAmount):
        LedgerService().grant(seller.id, alice.id, "days", 1)

    assert _user(alice.id).days_remaining == 7
    assert _user(seller.id).total_days_given == MAX_BALANCE
    assert _entry_count() == 0


def test_self_grant_rejected(make_user):
    seller = make_user("seller_one", role="seller")
    with pytest.raises(SelfGrant):
        LedgerService().grant(seller.id, seller.id, "credits", 5)
    assert _entry_count() == 0


def test_target_must_be_regular_user(make_user):
    s1 = make_user("seller_one", role="seller")
    s2 = make_user("seller_two", role="seller")
    with pytest.raises(InvalidTarget):
        LedgerService().grant(s1.id, s2.id, "credits", 5)
    with pytest.raises(InvalidTarget):
        LedgerService().grant(s1.id, 9999, "credits", 5)
    assert _user(s2.id).credits == 20
    assert _entry_count() == 0


def test_regular_user_cannot_grant(make_user):
    alice = make_user("alice_01")
    bob = make_user("bob_user")
    with pytest.raises(NotAuthorized):
        LedgerService().grant(alice.id, bob.id, "credits", 5)
    with pytest.raises(NotAuthorized):
        LedgerService().grant(4242, bob.id, "credits", 5)
    assert _user(bob.id).credits == 20


def test_unknown_kind_rejected(make_user):
    alice = make_user("alice_01")
    seller = make_user("seller_one", role="seller")
    with pytest.raises(InvalidKind):
        LedgerService().grant(seller.id, alice.id, "password_hash", 5)


def test_seller_counters_count_distinct_recipients(make_user):
    alice = make_user("alice_01")
    bob = make_user("bob_user")
    seller = make_user("seller_one", role="seller")
    service = LedgerService()

    service.grant(seller.id, alice.id, "credits", 5)
    service.grant(seller.id, alice.id, "days", 3)
    service.grant(seller.id, bob.id, "credits", 7)

    refreshed = _user(seller.id)
    assert refreshed.total_credited_users == 2
    assert refreshed.total_credits_given == 12
    assert refreshed.total_days_given == 3

    target = _user(bob.id)
    assert target.last_credited_user_id == seller.id
    assert target.last_credited_date is not None


def test_admin_grant_skips_seller_counters(make_user):
    alice = make_user("alice_01")
    admin = make_user("admin_boss", role="admin")

    LedgerService().grant(admin.id, alice.id, "credits", 50)

    refreshed = _user(admin.id)
    assert refreshed.total_credited_users == 0
    assert refreshed.total_credits_given == 0
    assert _user(alice.id).credits == 70


def test_grant_writes_activity_log(make_user):
    alice = make_user("alice_01")
    seller = make_user("seller_one", role="seller")

    LedgerService().grant(seller.id, alice.id, "credits", 5, ip_address="10.0.0.1", user_agent="pytest")

    with get_session() as session:
        rows = session.execute(select(ActivityLog)).scalars().all()
    assert len(rows) == 1
    assert rows[0].action_type == "add_credits"
    assert rows[0].target_id == alice.id
    assert rows[0].details["new"] == 25
    assert _entries(alice.id)[0].ip_address == "10.0.0.1"


def test_failure_inside_transaction_rolls_back(make_user, monkeypatch):
    alice = make_user("alice_01")
    seller = make_user("seller_one", role="seller")

    def boom(*_args, **_kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(ledger_writer, "append_grant_entry", boom)

    with pytest.raises(RuntimeError):
        LedgerService().grant(seller.id, alice.id, "credits", 5)

    assert _user(alice.id).credits == 20
    refreshed_seller = _user(seller.id)
    assert refreshed_seller.total_credits_given == 0
    assert refreshed_seller.total_credited_users == 0
    assert _entry_count() == 0


def test_concurrent_grants_form_gap_free_chain(make_user):
    alice = make_user("alice_01")
    sellers = [make_user(f"seller_{n:02d}", role="seller") for n in range(8)]
    amounts = [1, 2, 3, 4, 5, 6, 7, 8]

    def _grant(pair):
        seller, amount = pair
        return LedgerService().grant(seller.id, alice.id, "credits", amount)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(_grant, zip(sellers, amounts)))

    assert len(results) == 8
    assert _user(alice.id).credits == 20 + sum(amounts)

    entries = _entries(alice.id)
    assert entries[0].previous_amount == 20
    for before, after in zip(entries, entries[1:]):
        assert after.previous_amount == before.new_amount
    assert entries[-1].new_amount == 20 + sum(amounts)
    for entry in entries:
        assert entry.new_amount == entry.previous_amount + entry.amount
