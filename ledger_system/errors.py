# ledger_system/errors.py
"""
Typed errors raised by ledger services.

Every precondition error is raised before any write is staged,
so callers can retry NotFound / InsufficientFunds without double effect.
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""


# Not found

class NotFoundError(LedgerError):
    pass


class CampaignNotFound(NotFoundError):
    def __init__(self, campaignId: str):
        super().__init__(f"Campaign {campaignId} not found")
        self.campaignId = campaignId


class EventNotFound(NotFoundError):
    def __init__(self, eventId: str):
        super().__init__(f"Event {eventId} not found")
        self.eventId = eventId


class TransactionNotFound(NotFoundError):
    def __init__(self, transactionId: str):
        super().__init__(f"Payment transaction {transactionId} not found")
        self.transactionId = transactionId


class UserProfileNotFound(NotFoundError):
    def __init__(self, userId: str):
        super().__init__(f"User profile {userId} not found")
        self.userId = userId


class CandidateNotFound(NotFoundError):
    def __init__(self, candidateId: str):
        super().__init__(f"Candidate {candidateId} not found")
        self.candidateId = candidateId


# Already exists

class AlreadyExistsError(LedgerError):
    pass


class AlreadyRegistered(AlreadyExistsError):
    def __init__(self, eventId: str, userId: str):
        super().__init__(f"User {userId} is already registered for event {eventId}")
        self.eventId = eventId
        self.userId = userId


class AlreadyVoted(AlreadyExistsError):
    def __init__(self, userId: str, position: str):
        super().__init__(f"User {userId} has already voted for {position}")
        self.userId = userId
        self.position = position


# Money

class InsufficientFunds(LedgerError):
    def __init__(self, userId: str, balance, amount):
        super().__init__(f"Insufficient wallet balance for user {userId}: {balance} < {amount}")
        self.userId = userId
        self.balance = balance
        self.amount = amount


# Access

class PermissionDenied(LedgerError):
    def __init__(self, userId: str, action: str):
        super().__init__(f"User {userId} is not allowed to {action}")
        self.userId = userId
        self.action = action


# Concurrency

class TransactionConflict(LedgerError):
    def __init__(self, label: str, attempts: int):
        super().__init__(f"{label}: gave up after {attempts} conflicting attempts")
        self.label = label
        self.attempts = attempts


# Validation

class ValidationError(LedgerError):
    pass


class InvalidAmount(ValidationError):
    def __init__(self, amount):
        super().__init__(f"Amount must be positive, got {amount}")
        self.amount = amount


class InvalidStatusTransition(ValidationError):
    def __init__(self, transactionId: str, current: str, new: str):
        super().__init__(f"Transaction {transactionId}: transition {current} -> {new} is not allowed")
        self.transactionId = transactionId
        self.current = current
        self.new = new


class VotingClosed(ValidationError):
    def __init__(self):
        super().__init__("Voting is closed")
