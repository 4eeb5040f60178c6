# models/payment_transaction.py
"""
PaymentTransaction model - one donation attempt.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime
from datetime import datetime, timezone
from models.base import Base, AuditMixin


class PaymentTransaction(Base, AuditMixin):
    __tablename__ = 'payment_transactions'

    transactionID = Column(String, primary_key=True)

    # Donor. No foreign keys: the record outlives its campaign or profile
    userID = Column(String, nullable=False, index=True)
    userEmail = Column(String, nullable=True)

    # Denormalized campaign info
    campaignID = Column(String, nullable=False, index=True)
    campaignName = Column(String, nullable=True)

    # Payment details
    amount = Column(DECIMAL(12, 2), nullable=False)
    method = Column(String, nullable=False)  # BankTransferManual, WalletDebit
    status = Column(String, nullable=False, default="Pending")  # Pending, Succeeded, Failed, Refunded
    date = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Attestation for manual transfers
    lastFourDigits = Column(String, nullable=True)
    receiverReference = Column(String, nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return (f"<PaymentTransaction(transactionID={self.transactionID}, "
                f"amount={self.amount}, status={self.status})>")
