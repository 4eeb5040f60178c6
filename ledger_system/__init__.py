# ledger_system/__init__.py
"""
Ledger system - donations, reactions, registrations and votes
kept consistent with optimistic transactions.
"""

# Services
from ledger_system.services.donation_service import DonationService
from ledger_system.services.reaction_service import ReactionService, ReactionResult
from ledger_system.services.registration_service import RegistrationService, RegistrationDetails
from ledger_system.services.vote_service import VoteService
from ledger_system.services.identity_service import IdentityService
from ledger_system.services.audit_service import AuditService, Discrepancy

# Config and auth
from ledger_system.config.statuses import (
    PaymentMethod, PaymentStatus, ReactionType, CandidatePosition, Role, STATUS_TRANSITIONS
)
from ledger_system.auth import CallerContext, admin_only

# Utilities
from ledger_system.utils.time_machine import timeMachine
from ledger_system.utils.transaction_runner import runOptimistic

# Events
from ledger_system.events.event_bus import eventBus, LedgerEvents

__all__ = [
    # Services
    'DonationService',
    'ReactionService',
    'ReactionResult',
    'RegistrationService',
    'RegistrationDetails',
    'VoteService',
    'IdentityService',
    'AuditService',
    'Discrepancy',

    # Config and auth
    'PaymentMethod',
    'PaymentStatus',
    'ReactionType',
    'CandidatePosition',
    'Role',
    'STATUS_TRANSITIONS',
    'CallerContext',
    'admin_only',

    # Utils
    'timeMachine',
    'runOptimistic',

    # Events
    'eventBus',
    'LedgerEvents',
]
