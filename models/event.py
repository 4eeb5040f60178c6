# models/event.py
"""
Event and EventRegistration models.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from models.base import Base, AuditMixin


class Event(Base, AuditMixin):
    __tablename__ = 'events'

    eventID = Column(String, primary_key=True)

    title = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    eventDate = Column(DateTime, nullable=True)
    imageUrl = Column(String, nullable=True)

    participantCount = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Event(eventID={self.eventID}, participants={self.participantCount})>"


class EventRegistration(Base):
    __tablename__ = 'event_registrations'

    # One registration per (event, user)
    eventID = Column(String, primary_key=True)
    userID = Column(String, primary_key=True)

    name = Column(String, nullable=False)
    mobileNumber = Column(String, nullable=False)
    wardNo = Column(String, nullable=False)
    userEmail = Column(String, nullable=True)

    registeredAt = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<EventRegistration(eventID={self.eventID}, userID={self.userID})>"
