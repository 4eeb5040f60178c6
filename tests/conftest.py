from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.orm import sessionmaker

from init import get_session, init_tables
from models import Campaign, ElectionCandidate, Event, UserProfile
from ledger_system.auth import CallerContext
from ledger_system.config.statuses import Role
from ledger_system.events.event_bus import eventBus
from ledger_system.utils.time_machine import timeMachine


@pytest.fixture
def engine(tmp_path):
    _, engine = get_session(f"sqlite:///{tmp_path / 'ledger_test.db'}")
    init_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def clean_bus():
    eventBus.clear()
    yield
    eventBus.clear()


@pytest.fixture(autouse=True)
def real_time():
    yield
    timeMachine.resetToRealTime()


@pytest.fixture
def seed(session_factory):
    """Commits fixture rows through a separate session."""

    class Seed:
        def _add(self, obj):
            with session_factory() as s:
                s.add(obj)
                s.commit()
            return obj

        def campaign(self, campaignId="c1", title="Flood Relief", raised="0", likes=0, supports=0):
            return self._add(Campaign(
                campaignID=campaignId,
                campaignTitle=title,
                goalAmount=Decimal("1000"),
                raisedAmount=Decimal(raised),
                likeCount=likes,
                supportCount=supports
            ))

        def profile(self, uid="u1", balance="0", role=Role.USER, mobile="8801700000001", email=None):
            return self._add(UserProfile(
                uid=uid,
                displayName=f"User {uid}",
                email=email,
                mobileNumber=mobile,
                wardNo="5",
                role=role.value,
                walletBalance=Decimal(balance)
            ))

        def event(self, eventId="e1", title="Annual Meetup", participants=0):
            return self._add(Event(eventID=eventId, title=title, participantCount=participants))

        def candidate(self, candidateId="k1", name="Rahim", position="President"):
            return self._add(ElectionCandidate(
                candidateID=candidateId, name=name, electionSymbol="Boat", position=position
            ))

    return Seed()


@pytest.fixture
def user():
    return CallerContext(userId="u1", role=Role.USER)


@pytest.fixture
def admin():
    return CallerContext(userId="admin1", role=Role.ADMIN)


@pytest.fixture
def interleave(session_factory):
    """
    Runs `competitor(other_session)` and commits it right before the given
    session flushes, i.e. after its reads and before its writes.
    times=None fires on every flush.
    """

    def install(session, competitor, times=1):
        state = {"fired": 0}

        def before_flush(flushing_session, flush_context, instances):
            if times is not None and state["fired"] >= times:
                return
            state["fired"] += 1
            with session_factory() as other:
                competitor(other)
                other.commit()

        event.listen(session, "before_flush", before_flush)
        return state

    return install
