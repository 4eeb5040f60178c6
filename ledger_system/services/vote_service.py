# ledger_system/services/vote_service.py
"""
Election vote service - one vote per user and position, counted atomically.
"""
from typing import Optional, Union
from sqlalchemy.orm import Session
import logging

from models import ElectionCandidate, ElectionControl, ElectionVote
from ledger_system.auth import CallerContext, admin_only
from ledger_system.config.statuses import CandidatePosition, VOTE_FIELDS, ELECTION_CONTROL_ID
from ledger_system.errors import AlreadyVoted, CandidateNotFound, ValidationError, VotingClosed
from ledger_system.events.event_bus import eventBus, EventBus, LedgerEvents
from ledger_system.utils.transaction_runner import forUpdate, runOptimistic

logger = logging.getLogger(__name__)


def toPosition(value: Union[CandidatePosition, str]) -> CandidatePosition:
    try:
        return value if isinstance(value, CandidatePosition) else CandidatePosition(value)
    except ValueError:
        raise ValidationError(f"Unknown candidate position: {value}")


class VoteService:
    """Records votes and controls whether voting is open."""

    def __init__(self, session: Session, bus: Optional[EventBus] = None):
        self.session = session
        self.bus = bus or eventBus

    def getControl(self) -> ElectionControl:
        """Current control row, or unsaved defaults if it was never set."""
        control = self.session.query(ElectionControl).filter_by(
            controlID=ELECTION_CONTROL_ID
        ).first()
        if control:
            return control
        logger.warning(f"Election control '{ELECTION_CONTROL_ID}' not found, using defaults")
        return ElectionControl(controlID=ELECTION_CONTROL_ID, resultsPublished=False, votingClosed=False)

    def getUserVote(self, userId: str) -> Optional[ElectionVote]:
        return self.session.query(ElectionVote).filter_by(userID=userId).first()

    async def recordVote(
            self,
            caller: CallerContext,
            candidateId: str,
            position: Union[CandidatePosition, str]
    ) -> None:
        """Cast the caller's vote for a candidate. Each position can be voted once."""
        position = toPosition(position)
        voteField = VOTE_FIELDS[position]

        async def work(startedAt):
            control = self.session.query(ElectionControl).filter_by(
                controlID=ELECTION_CONTROL_ID
            ).first()
            if control and control.votingClosed:
                raise VotingClosed()

            candidate = forUpdate(self.session.query(ElectionCandidate).filter_by(
                candidateID=candidateId
            )).first()
            if not candidate:
                raise CandidateNotFound(candidateId)
            if candidate.position != position.value:
                raise ValidationError(
                    f"Candidate {candidate.name} is not running for the {position.value} position"
                )

            vote = forUpdate(self.session.query(ElectionVote).filter_by(
                userID=caller.userId
            )).first()
            if vote and getattr(vote, voteField):
                raise AlreadyVoted(caller.userId, position.value)

            if not vote:
                vote = ElectionVote(userID=caller.userId)
                self.session.add(vote)

            setattr(vote, voteField, candidateId)
            vote.lastVotedAt = startedAt
            candidate.voteCount = (candidate.voteCount or 0) + 1

            return {
                "userId": caller.userId,
                "candidateId": candidateId,
                "candidateName": candidate.name,
                "position": position.value,
                "voteCount": candidate.voteCount,
            }

        payload = await runOptimistic(
            self.session, work, label=f"recordVote[{candidateId}]"
        )

        logger.info(
            f"Vote by {caller.userId} for {payload['candidateName']} ({candidateId}) "
            f"for {position.value} recorded"
        )
        self.bus.publish(LedgerEvents.VOTE_RECORDED, payload)

    @admin_only(action="publish election results")
    async def setResultsPublished(self, caller: CallerContext, published: bool) -> ElectionControl:
        """Publishing results also closes voting; unpublishing reopens it."""

        async def work(startedAt):
            control = forUpdate(self.session.query(ElectionControl).filter_by(
                controlID=ELECTION_CONTROL_ID
            )).first()
            if not control:
                control = ElectionControl(controlID=ELECTION_CONTROL_ID)
                self.session.add(control)

            control.resultsPublished = published
            control.votingClosed = published
            control.lastUpdated = startedAt
            return control

        control = await runOptimistic(self.session, work, label="setResultsPublished")

        logger.info(f"Election results {'published' if published else 'hidden'} by admin {caller.userId}")
        self.bus.publish(LedgerEvents.RESULTS_PUBLISHED, {
            "resultsPublished": published,
            "adminId": caller.userId,
        })
        return control
