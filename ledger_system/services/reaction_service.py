# ledger_system/services/reaction_service.py
"""
Reaction toggle service - like/support membership and campaign counters.
"""
from dataclasses import dataclass
from typing import Optional, Union
from sqlalchemy.orm import Session
import logging

from models import Campaign, CampaignReaction
from ledger_system.auth import CallerContext
from ledger_system.config.statuses import ReactionType, REACTION_COUNTERS
from ledger_system.errors import CampaignNotFound, ValidationError
from ledger_system.events.event_bus import eventBus, EventBus, LedgerEvents
from ledger_system.utils.transaction_runner import forUpdate, runOptimistic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReactionResult:
    newCount: int
    userHasReacted: bool


def toReactionType(value: Union[ReactionType, str]) -> ReactionType:
    try:
        return value if isinstance(value, ReactionType) else ReactionType(value)
    except ValueError:
        raise ValidationError(f"Unknown reaction type: {value}")


class ReactionService:
    """Flips a user's reaction on a campaign together with its counter."""

    def __init__(self, session: Session, bus: Optional[EventBus] = None):
        self.session = session
        self.bus = bus or eventBus

    def hasReacted(self, campaignId: str, userId: str, reactionType: Union[ReactionType, str]) -> bool:
        reactionType = toReactionType(reactionType)
        return self.session.query(CampaignReaction).filter_by(
            campaignID=campaignId,
            userID=userId,
            reactionType=reactionType.value
        ).first() is not None

    async def toggleReaction(
            self,
            caller: CallerContext,
            campaignId: str,
            reactionType: Union[ReactionType, str]
    ) -> ReactionResult:
        """
        Toggle the caller's reaction. Calling twice restores the original state.
        Two users never conflict on the membership row, only on the counter,
        which the version check serializes.
        """
        reactionType = toReactionType(reactionType)
        counterField = REACTION_COUNTERS[reactionType]

        async def work(startedAt) -> ReactionResult:
            campaign = forUpdate(self.session.query(Campaign).filter_by(
                campaignID=campaignId
            )).first()
            if not campaign:
                raise CampaignNotFound(campaignId)

            currentCount = getattr(campaign, counterField) or 0

            membership = forUpdate(self.session.query(CampaignReaction).filter_by(
                campaignID=campaignId,
                userID=caller.userId,
                reactionType=reactionType.value
            )).first()

            if membership:
                self.session.delete(membership)
                newCount = max(0, currentCount - 1)
                userHasReacted = False
            else:
                self.session.add(CampaignReaction(
                    campaignID=campaignId,
                    userID=caller.userId,
                    reactionType=reactionType.value,
                    createdAt=startedAt
                ))
                newCount = currentCount + 1
                userHasReacted = True

            setattr(campaign, counterField, newCount)
            return ReactionResult(newCount=newCount, userHasReacted=userHasReacted)

        result = await runOptimistic(
            self.session, work, label=f"toggleReaction[{campaignId}:{reactionType.value}]"
        )

        logger.info(
            f"User {caller.userId} {'added' if result.userHasReacted else 'removed'} "
            f"{reactionType.value} on campaign {campaignId}, count={result.newCount}"
        )

        self.bus.publish(LedgerEvents.REACTION_TOGGLED, {
            "campaignId": campaignId,
            "userId": caller.userId,
            "reactionType": reactionType.value,
            "newCount": result.newCount,
            "userHasReacted": result.userHasReacted,
        })
        return result
