# ledger_system/services/donation_service.py
"""
Donation ledger service - the only writer of Campaign.raisedAmount
and UserProfile.walletBalance.
"""
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Tuple, Union
from uuid import uuid4
from sqlalchemy.orm import Session
import logging

from models import Campaign, PaymentTransaction, UserProfile
from ledger_system.auth import CallerContext, admin_only
from ledger_system.config.statuses import (
    PaymentMethod, PaymentStatus, INITIAL_STATUS, isTransitionAllowed
)
from ledger_system.errors import (
    CampaignNotFound, InsufficientFunds, InvalidAmount, InvalidStatusTransition,
    TransactionNotFound, UserProfileNotFound, ValidationError
)
from ledger_system.events.event_bus import eventBus, EventBus, LedgerEvents
from ledger_system.utils.transaction_runner import forUpdate, runOptimistic

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def toAmount(value: Union[Decimal, int, float, str]) -> Decimal:
    """Normalize an incoming amount to a positive 2-place Decimal."""
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(value)
    if amount <= ZERO:
        raise InvalidAmount(value)
    return amount


def toMethod(value: Union[PaymentMethod, str]) -> PaymentMethod:
    try:
        return value if isinstance(value, PaymentMethod) else PaymentMethod(value)
    except ValueError:
        raise ValidationError(f"Unknown payment method: {value}")


def toStatus(value: Union[PaymentStatus, str]) -> PaymentStatus:
    try:
        return value if isinstance(value, PaymentStatus) else PaymentStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown payment status: {value}")


class DonationService:
    """Creates, settles, refunds and deletes payment transactions."""

    def __init__(self, session: Session, bus: Optional[EventBus] = None):
        self.session = session
        self.bus = bus or eventBus

    def getDonation(self, transactionId: str) -> Optional[PaymentTransaction]:
        return self.session.query(PaymentTransaction).filter_by(
            transactionID=transactionId
        ).first()

    async def createDonation(
            self,
            caller: CallerContext,
            campaignId: str,
            amount: Union[Decimal, int, float, str],
            method: Union[PaymentMethod, str],
            lastFourDigits: Optional[str] = None,
            receiverReference: Optional[str] = None,
            userEmail: Optional[str] = None
    ) -> str:
        """
        Record a donation in one optimistic transaction.

        WalletDebit moves funds immediately (Succeeded, campaign credited,
        wallet debited). BankTransferManual is recorded as Pending and
        waits for an admin to settle it.

        Returns the new transaction id.
        """
        amount = toAmount(amount)
        method = toMethod(method)

        async def work(startedAt) -> Tuple[str, Dict]:
            campaign = forUpdate(self.session.query(Campaign).filter_by(
                campaignID=campaignId
            )).first()
            if not campaign:
                raise CampaignNotFound(campaignId)

            profile = forUpdate(self.session.query(UserProfile).filter_by(
                uid=caller.userId
            )).first()

            # Balance check happens before anything is staged
            if method == PaymentMethod.WALLET_DEBIT:
                if not profile:
                    raise UserProfileNotFound(caller.userId)
                if profile.walletBalance < amount:
                    raise InsufficientFunds(caller.userId, profile.walletBalance, amount)

            status = INITIAL_STATUS[method]

            transaction = PaymentTransaction(
                transactionID=uuid4().hex,
                userID=caller.userId,
                userEmail=userEmail or (profile.email if profile else None),
                campaignID=campaign.campaignID,
                campaignName=campaign.campaignTitle,
                amount=amount,
                method=method.value,
                status=status.value,
                date=startedAt,
                lastFourDigits=lastFourDigits,
                receiverReference=receiverReference
            )
            self.session.add(transaction)

            if status == PaymentStatus.SUCCEEDED:
                campaign.raisedAmount = (campaign.raisedAmount or ZERO) + amount

            if method == PaymentMethod.WALLET_DEBIT:
                profile.walletBalance = profile.walletBalance - amount

            payload = self._notificationPayload(transaction, profile)
            return transaction.transactionID, payload

        transactionId, payload = await runOptimistic(
            self.session, work, label=f"createDonation[{campaignId}]"
        )

        logger.info(
            f"Donation {transactionId} created: user={caller.userId}, "
            f"campaign={campaignId}, amount={amount}, method={method.value}, "
            f"status={payload['status']}"
        )

        self.bus.publish(LedgerEvents.DONATION_CREATED, payload)
        return transactionId

    @admin_only(action="update donation status")
    async def updateDonationStatus(
            self,
            caller: CallerContext,
            transactionId: str,
            newStatus: Union[PaymentStatus, str]
    ) -> PaymentStatus:
        """
        Move a transaction to newStatus and apply the funding side effects
        implied by the old status read in the same transaction.

        Returns the previous status. Setting the current status again is a no-op.
        A vanished campaign or profile is logged and skipped; the status still changes.
        """
        newStatus = toStatus(newStatus)

        async def work(startedAt) -> Tuple[PaymentStatus, Optional[Dict]]:
            transaction = forUpdate(self.session.query(PaymentTransaction).filter_by(
                transactionID=transactionId
            )).first()
            if not transaction:
                raise TransactionNotFound(transactionId)

            oldStatus = toStatus(transaction.status)
            if oldStatus == newStatus:
                return oldStatus, None

            if not isTransitionAllowed(oldStatus, newStatus):
                raise InvalidStatusTransition(transactionId, oldStatus.value, newStatus.value)

            amount = transaction.amount
            enteringSucceeded = oldStatus != PaymentStatus.SUCCEEDED and newStatus == PaymentStatus.SUCCEEDED
            leavingSucceeded = oldStatus == PaymentStatus.SUCCEEDED and newStatus != PaymentStatus.SUCCEEDED

            if enteringSucceeded or leavingSucceeded:
                campaign = forUpdate(self.session.query(Campaign).filter_by(
                    campaignID=transaction.campaignID
                )).first()
                if not campaign:
                    logger.warning(
                        f"Campaign {transaction.campaignID} for transaction {transactionId} "
                        f"not found, raised amount not adjusted"
                    )
                elif enteringSucceeded:
                    campaign.raisedAmount = (campaign.raisedAmount or ZERO) + amount
                else:
                    campaign.raisedAmount = max(ZERO, (campaign.raisedAmount or ZERO) - amount)

            profile = forUpdate(self.session.query(UserProfile).filter_by(
                uid=transaction.userID
            )).first()

            # Refund of settled money always lands in the wallet
            if newStatus == PaymentStatus.REFUNDED and oldStatus == PaymentStatus.SUCCEEDED:
                if not profile:
                    logger.warning(
                        f"Profile {transaction.userID} for transaction {transactionId} "
                        f"not found, wallet not credited"
                    )
                else:
                    profile.walletBalance = (profile.walletBalance or ZERO) + amount

            transaction.status = newStatus.value

            payload = self._notificationPayload(transaction, profile)
            payload["previousStatus"] = oldStatus.value
            return oldStatus, payload

        oldStatus, payload = await runOptimistic(
            self.session, work, label=f"updateDonationStatus[{transactionId}]"
        )

        if payload is None:
            logger.info(f"Transaction {transactionId} already {newStatus.value}, nothing to do")
            return oldStatus

        logger.info(
            f"Transaction {transactionId}: {oldStatus.value} -> {newStatus.value} "
            f"by admin {caller.userId}"
        )
        self.bus.publish(LedgerEvents.DONATION_STATUS_CHANGED, payload)
        return oldStatus

    @admin_only(action="delete donation")
    async def deleteDonation(self, caller: CallerContext, transactionId: str) -> bool:
        """
        Delete a transaction, reversing its campaign credit if it had succeeded.
        The wallet is not credited back; only an explicit refund does that.

        Missing record is a no-op. Returns True if a record was deleted.
        """

        async def work(startedAt) -> Tuple[bool, Optional[Dict]]:
            transaction = forUpdate(self.session.query(PaymentTransaction).filter_by(
                transactionID=transactionId
            )).first()
            if not transaction:
                return False, None

            if transaction.status == PaymentStatus.SUCCEEDED.value:
                campaign = forUpdate(self.session.query(Campaign).filter_by(
                    campaignID=transaction.campaignID
                )).first()
                if campaign:
                    campaign.raisedAmount = max(ZERO, (campaign.raisedAmount or ZERO) - transaction.amount)
                else:
                    logger.warning(
                        f"Campaign {transaction.campaignID} for transaction {transactionId} "
                        f"not found, raised amount not adjusted"
                    )

            payload = {
                "transactionId": transaction.transactionID,
                "userId": transaction.userID,
                "campaignId": transaction.campaignID,
                "amount": transaction.amount,
                "status": transaction.status,
            }
            self.session.delete(transaction)
            return True, payload

        deleted, payload = await runOptimistic(
            self.session, work, label=f"deleteDonation[{transactionId}]"
        )

        if not deleted:
            logger.info(f"Transaction {transactionId} not found, nothing to delete")
            return False

        logger.info(f"Transaction {transactionId} deleted by admin {caller.userId}")
        self.bus.publish(LedgerEvents.DONATION_DELETED, payload)
        return True

    @staticmethod
    def _notificationPayload(transaction: PaymentTransaction, profile: Optional[UserProfile]) -> Dict:
        """Snapshot of everything a confirmation message needs, taken before commit."""
        return {
            "transactionId": transaction.transactionID,
            "userId": transaction.userID,
            "userEmail": transaction.userEmail,
            "campaignId": transaction.campaignID,
            "campaignName": transaction.campaignName,
            "amount": transaction.amount,
            "method": transaction.method,
            "status": transaction.status,
            "date": transaction.date,
            "lastFourDigits": transaction.lastFourDigits,
            "phone": profile.mobileNumber if profile else None,
            "name": (profile.displayName or profile.uid) if profile else None,
        }
