# models/__init__.py
"""
Database models for the donation ledger.
Import all models here so Base.metadata knows every table.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Identity and funds
from models.user import UserProfile
from models.campaign import Campaign
from models.payment_transaction import PaymentTransaction
from models.reaction import CampaignReaction

# Events
from models.event import Event, EventRegistration

# Election
from models.election import ElectionCandidate, ElectionVote, ElectionControl

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Identity and funds
    'UserProfile',
    'Campaign',
    'PaymentTransaction',
    'CampaignReaction',

    # Events
    'Event',
    'EventRegistration',

    # Election
    'ElectionCandidate',
    'ElectionVote',
    'ElectionControl',
]
