from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

import config
from models import CampaignReaction, PaymentTransaction, UserProfile
from ledger_system.errors import CampaignNotFound, TransactionConflict
from ledger_system.utils.time_machine import timeMachine
from ledger_system.utils.transaction_runner import forUpdate, isConflict, runOptimistic


async def test_retries_until_commit(session):
    calls = []

    async def work(startedAt):
        calls.append(startedAt)
        if len(calls) < 3:
            raise StaleDataError("row changed")
        session.add(CampaignReaction(campaignID="c1", userID="u1", reactionType="like"))
        return "done"

    assert await runOptimistic(session, work, label="test", maxAttempts=5) == "done"
    assert len(calls) == 3
    assert session.query(CampaignReaction).count() == 1


async def test_integrity_error_is_a_conflict(session):
    calls = []

    async def work(startedAt):
        calls.append(startedAt)
        if len(calls) == 1:
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        return len(calls)

    assert await runOptimistic(session, work, label="test") == 2


async def test_gives_up_without_side_effects(session, monkeypatch):
    monkeypatch.setattr(config, "TRANSACTION_MAX_ATTEMPTS", 4)
    calls = []

    async def work(startedAt):
        calls.append(startedAt)
        session.add(CampaignReaction(campaignID="c1", userID=f"u{len(calls)}", reactionType="like"))
        raise StaleDataError("row changed")

    with pytest.raises(TransactionConflict) as info:
        await runOptimistic(session, work, label="toggle")

    assert info.value.attempts == 4
    assert len(calls) == 4
    assert session.query(CampaignReaction).count() == 0


async def test_other_errors_propagate_immediately(session):
    calls = []

    async def work(startedAt):
        calls.append(startedAt)
        session.add(CampaignReaction(campaignID="c1", userID="u1", reactionType="like"))
        raise CampaignNotFound("c1")

    with pytest.raises(CampaignNotFound):
        await runOptimistic(session, work, label="test")

    assert len(calls) == 1
    assert session.query(CampaignReaction).count() == 0


async def test_started_at_comes_from_time_machine(session):
    moment = datetime(2026, 10, 19, 12, 0)
    timeMachine.setTime(moment)

    async def work(startedAt):
        return startedAt

    assert await runOptimistic(session, work, label="test") == moment


def test_for_update_only_when_enabled(session, monkeypatch):
    query = session.query(CampaignReaction)

    monkeypatch.setattr(config, "TRANSACTION_LOCK_ROWS", False)
    assert forUpdate(query) is query

    monkeypatch.setattr(config, "TRANSACTION_LOCK_ROWS", True)
    assert "FOR UPDATE" in str(forUpdate(query).statement.compile(
        compile_kwargs={"literal_binds": True}, dialect=postgresql.dialect()
    ))


async def test_each_attempt_reads_fresh_rows(session, seed, session_factory):
    seed.profile(balance="20")
    cached = session.query(UserProfile).filter_by(uid="u1").one()
    assert cached.walletBalance == Decimal("20")

    with session_factory() as other:
        other.query(UserProfile).filter_by(uid="u1").one().walletBalance = Decimal("100")
        other.commit()

    async def work(startedAt):
        return session.query(UserProfile).filter_by(uid="u1").one().walletBalance

    assert await runOptimistic(session, work, label="test") == Decimal("100")


async def test_not_null_violation_is_not_retried(session):
    calls = []

    async def work(startedAt):
        calls.append(startedAt)
        session.add(PaymentTransaction(
            transactionID="t1", userID="u1", campaignID="c1", method="WalletDebit", status="Pending"
        ))

    with pytest.raises(IntegrityError):
        await runOptimistic(session, work, label="test", maxAttempts=5)

    assert len(calls) == 1
    assert session.query(PaymentTransaction).count() == 0


class DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


@pytest.mark.parametrize("orig, expected", [
    (DriverError("UNIQUE constraint failed: campaign_reactions.campaignID"), True),
    (DriverError("Duplicate entry 'e1-u1' for key 'PRIMARY'"), True),
    (DriverError("duplicate key value violates unique constraint", pgcode="23505"), True),
    (DriverError("null value in column \"amount\" violates not-null constraint", pgcode="23502"), False),
    (DriverError("NOT NULL constraint failed: payment_transactions.amount"), False),
])
def test_is_conflict(orig, expected):
    assert isConflict(IntegrityError("INSERT", {}, orig)) is expected


def test_stale_data_is_conflict():
    assert isConflict(StaleDataError("row changed"))
    assert not isConflict(ValueError("nope"))
