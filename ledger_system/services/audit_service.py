# ledger_system/services/audit_service.py
"""
Read-only consistency audit for stored counters.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from models import Campaign, CampaignReaction, Event, EventRegistration, PaymentTransaction
from ledger_system.config.statuses import PaymentStatus, ReactionType

logger = logging.getLogger(__name__)


def toCents(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class Discrepancy:
    recordType: str  # campaign, event
    recordId: str
    field: str
    stored: Any
    expected: Any


class AuditService:
    """
    Recomputes totals from source records and compares them with the
    incrementally maintained counters. Reports, never repairs.
    """

    def __init__(self, session: Session):
        self.session = session

    def verifyCampaignTotals(self) -> List[Discrepancy]:
        """Compare raisedAmount and reaction counters of every campaign."""
        succeeded = dict(
            self.session.query(
                PaymentTransaction.campaignID,
                func.sum(PaymentTransaction.amount)
            ).filter(
                PaymentTransaction.status == PaymentStatus.SUCCEEDED.value
            ).group_by(PaymentTransaction.campaignID).all()
        )

        reactions = {}
        rows = self.session.query(
            CampaignReaction.campaignID,
            CampaignReaction.reactionType,
            func.count()
        ).group_by(CampaignReaction.campaignID, CampaignReaction.reactionType).all()
        for campaignId, reactionType, count in rows:
            reactions[(campaignId, reactionType)] = count

        discrepancies = []
        for campaign in self.session.query(Campaign).all():
            expectedRaised = toCents(succeeded.get(campaign.campaignID))
            storedRaised = toCents(campaign.raisedAmount)
            if storedRaised != expectedRaised:
                discrepancies.append(Discrepancy(
                    "campaign", campaign.campaignID, "raisedAmount", storedRaised, expectedRaised
                ))

            expectedLikes = reactions.get((campaign.campaignID, ReactionType.LIKE.value), 0)
            if (campaign.likeCount or 0) != expectedLikes:
                discrepancies.append(Discrepancy(
                    "campaign", campaign.campaignID, "likeCount", campaign.likeCount, expectedLikes
                ))

            expectedSupports = reactions.get((campaign.campaignID, ReactionType.SUPPORT.value), 0)
            if (campaign.supportCount or 0) != expectedSupports:
                discrepancies.append(Discrepancy(
                    "campaign", campaign.campaignID, "supportCount", campaign.supportCount, expectedSupports
                ))

        return discrepancies

    def verifyEventCounts(self) -> List[Discrepancy]:
        """Compare participantCount of every event with its registrations."""
        registrations = dict(
            self.session.query(
                EventRegistration.eventID,
                func.count()
            ).group_by(EventRegistration.eventID).all()
        )

        discrepancies = []
        for event in self.session.query(Event).all():
            expected = registrations.get(event.eventID, 0)
            if (event.participantCount or 0) != expected:
                discrepancies.append(Discrepancy(
                    "event", event.eventID, "participantCount", event.participantCount, expected
                ))
        return discrepancies

    def verifyAll(self) -> List[Discrepancy]:
        discrepancies = self.verifyCampaignTotals() + self.verifyEventCounts()
        if discrepancies:
            for d in discrepancies:
                logger.error(
                    f"Audit mismatch {d.recordType} {d.recordId}.{d.field}: "
                    f"stored={d.stored}, expected={d.expected}"
                )
        else:
            logger.info("Audit passed: all counters match their source records")
        return discrepancies
