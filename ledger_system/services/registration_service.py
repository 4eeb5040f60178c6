# ledger_system/services/registration_service.py
"""
Event registration service - one registration per user, counted atomically.
"""
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session
import logging

from models import Event, EventRegistration
from ledger_system.auth import CallerContext
from ledger_system.errors import AlreadyRegistered, EventNotFound, ValidationError
from ledger_system.events.event_bus import eventBus, EventBus, LedgerEvents
from ledger_system.utils.transaction_runner import forUpdate, runOptimistic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationDetails:
    name: str
    mobileNumber: str
    wardNo: str
    userEmail: Optional[str] = None

    def validate(self):
        for field in ("name", "mobileNumber", "wardNo"):
            if not (getattr(self, field) or "").strip():
                raise ValidationError(f"Registration field '{field}' is required")


class RegistrationService:
    """Registers users for events and keeps participantCount in step."""

    def __init__(self, session: Session, bus: Optional[EventBus] = None):
        self.session = session
        self.bus = bus or eventBus

    def isRegistered(self, eventId: str, userId: str) -> bool:
        return self.session.query(EventRegistration).filter_by(
            eventID=eventId,
            userID=userId
        ).first() is not None

    async def register(
            self,
            caller: CallerContext,
            eventId: str,
            details: RegistrationDetails
    ) -> EventRegistration:
        """
        Create the caller's registration and bump the participant counter
        in one transaction. A second call for the same user fails with
        AlreadyRegistered and changes nothing.
        """
        details.validate()

        async def work(startedAt):
            event = forUpdate(self.session.query(Event).filter_by(eventID=eventId)).first()
            if not event:
                raise EventNotFound(eventId)

            existing = self.session.query(EventRegistration).filter_by(
                eventID=eventId,
                userID=caller.userId
            ).first()
            if existing:
                raise AlreadyRegistered(eventId, caller.userId)

            registration = EventRegistration(
                eventID=eventId,
                userID=caller.userId,
                name=details.name.strip(),
                mobileNumber=details.mobileNumber.strip(),
                wardNo=details.wardNo.strip(),
                userEmail=details.userEmail,
                registeredAt=startedAt
            )
            self.session.add(registration)
            event.participantCount = (event.participantCount or 0) + 1

            payload = {
                "eventId": eventId,
                "eventTitle": event.title,
                "userId": caller.userId,
                "phone": registration.mobileNumber,
                "name": registration.name,
                "wardNo": registration.wardNo,
                "userEmail": registration.userEmail,
                "registeredAt": startedAt,
                "participantCount": event.participantCount,
            }
            return registration, payload

        registration, payload = await runOptimistic(
            self.session, work, label=f"register[{eventId}]"
        )

        logger.info(
            f"User {caller.userId} registered for event {eventId}, "
            f"participants={payload['participantCount']}"
        )

        self.bus.publish(LedgerEvents.EVENT_REGISTERED, payload)
        return registration
