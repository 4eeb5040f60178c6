# ledger_system/config/statuses.py
"""
Ledger enums and the payment status transition table.
"""
from enum import Enum


class PaymentMethod(Enum):
    BANK_TRANSFER_MANUAL = "BankTransferManual"
    WALLET_DEBIT = "WalletDebit"


class PaymentStatus(Enum):
    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class ReactionType(Enum):
    LIKE = "like"
    SUPPORT = "support"


class CandidatePosition(Enum):
    PRESIDENT = "President"
    GENERAL_SECRETARY = "GeneralSecretary"


class Role(Enum):
    ADMIN = "admin"
    USER = "user"


# current -> allowed next. Failed and Refunded are terminal.
STATUS_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.SUCCEEDED,
        PaymentStatus.FAILED,
        PaymentStatus.REFUNDED,
    },
    PaymentStatus.SUCCEEDED: {
        PaymentStatus.REFUNDED,
    },
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

# Initial status by payment method
INITIAL_STATUS = {
    PaymentMethod.WALLET_DEBIT: PaymentStatus.SUCCEEDED,  # Деньги списываются сразу
    PaymentMethod.BANK_TRANSFER_MANUAL: PaymentStatus.PENDING,  # Ждет проверки админом
}

# Counter column on Campaign for each reaction type
REACTION_COUNTERS = {
    ReactionType.LIKE: "likeCount",
    ReactionType.SUPPORT: "supportCount",
}

# Vote field on ElectionVote for each position
VOTE_FIELDS = {
    CandidatePosition.PRESIDENT: "presidentCandidateID",
    CandidatePosition.GENERAL_SECRETARY: "generalSecretaryCandidateID",
}

ELECTION_CONTROL_ID = "mainElection"


def isTransitionAllowed(current: PaymentStatus, new: PaymentStatus) -> bool:
    return new in STATUS_TRANSITIONS.get(current, set())
