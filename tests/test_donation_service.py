from decimal import Decimal

import pytest

from models import Campaign, PaymentTransaction, UserProfile
from ledger_system import AuditService, DonationService, IdentityService, PaymentMethod, PaymentStatus
from ledger_system.auth import CallerContext
from ledger_system.errors import (
    CampaignNotFound, InsufficientFunds, InvalidAmount, InvalidStatusTransition,
    PermissionDenied, TransactionNotFound, UserProfileNotFound
)


def raised(session, campaignId="c1"):
    session.expire_all()
    return session.query(Campaign).filter_by(campaignID=campaignId).one().raisedAmount


def balance(session, uid="u1"):
    session.expire_all()
    return session.query(UserProfile).filter_by(uid=uid).one().walletBalance


async def test_wallet_donation_then_refund(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="100")
    service = DonationService(session)

    transactionId = await service.createDonation(user, "c1", 50, PaymentMethod.WALLET_DEBIT)

    assert service.getDonation(transactionId).status == PaymentStatus.SUCCEEDED.value
    assert raised(session) == Decimal("50")
    assert balance(session) == Decimal("50")

    previous = await service.updateDonationStatus(admin, transactionId, PaymentStatus.REFUNDED)

    assert previous == PaymentStatus.SUCCEEDED
    assert raised(session) == Decimal("0")
    assert balance(session) == Decimal("100")


async def test_manual_donation_lifecycle(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="0")
    service = DonationService(session)

    transactionId = await service.createDonation(
        user, "c1", "30", "BankTransferManual", lastFourDigits="4321", receiverReference="017XXXXXXXX"
    )

    donation = service.getDonation(transactionId)
    assert donation.status == "Pending"
    assert donation.lastFourDigits == "4321"
    assert donation.campaignName == "Flood Relief"
    assert raised(session) == Decimal("0")

    await service.updateDonationStatus(admin, transactionId, "Succeeded")
    assert raised(session) == Decimal("30")

    await service.updateDonationStatus(admin, transactionId, "Refunded")
    assert raised(session) == Decimal("0")
    assert balance(session) == Decimal("30")


async def test_manual_donation_does_not_need_profile(session, seed, user):
    seed.campaign()
    service = DonationService(session)

    transactionId = await service.createDonation(user, "c1", 10, PaymentMethod.BANK_TRANSFER_MANUAL)

    assert service.getDonation(transactionId).userID == "u1"


async def test_insufficient_funds_writes_nothing(session, seed, user):
    seed.campaign()
    seed.profile(balance="20")
    service = DonationService(session)

    with pytest.raises(InsufficientFunds):
        await service.createDonation(user, "c1", 50, PaymentMethod.WALLET_DEBIT)

    assert session.query(PaymentTransaction).count() == 0
    assert raised(session) == Decimal("0")
    assert balance(session) == Decimal("20")


async def test_wallet_donation_requires_profile(session, seed, user):
    seed.campaign()

    with pytest.raises(UserProfileNotFound):
        await DonationService(session).createDonation(user, "c1", 5, PaymentMethod.WALLET_DEBIT)

    assert session.query(PaymentTransaction).count() == 0


async def test_unknown_campaign(session, seed, user):
    seed.profile(balance="100")

    with pytest.raises(CampaignNotFound):
        await DonationService(session).createDonation(user, "missing", 5, PaymentMethod.WALLET_DEBIT)

    assert balance(session) == Decimal("100")


@pytest.mark.parametrize("amount", [0, -5, "abc"])
async def test_amount_must_be_positive(session, seed, user, amount):
    seed.campaign()

    with pytest.raises(InvalidAmount):
        await DonationService(session).createDonation(user, "c1", amount, PaymentMethod.BANK_TRANSFER_MANUAL)


async def test_terminal_statuses_reject_transitions(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="100")
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 40, PaymentMethod.WALLET_DEBIT)
    await service.updateDonationStatus(admin, transactionId, PaymentStatus.REFUNDED)

    with pytest.raises(InvalidStatusTransition):
        await service.updateDonationStatus(admin, transactionId, PaymentStatus.SUCCEEDED)

    assert service.getDonation(transactionId).status == "Refunded"
    assert raised(session) == Decimal("0")
    assert balance(session) == Decimal("100")


async def test_succeeded_cannot_go_back_to_pending(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="100")
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 40, PaymentMethod.WALLET_DEBIT)

    with pytest.raises(InvalidStatusTransition):
        await service.updateDonationStatus(admin, transactionId, PaymentStatus.PENDING)

    assert raised(session) == Decimal("40")


async def test_failed_pending_donation_moves_no_money(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="0")
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 25, PaymentMethod.BANK_TRANSFER_MANUAL)

    await service.updateDonationStatus(admin, transactionId, PaymentStatus.FAILED)

    assert raised(session) == Decimal("0")
    assert balance(session) == Decimal("0")


async def test_refund_of_pending_donation_does_not_credit_wallet(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="0")
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 25, PaymentMethod.BANK_TRANSFER_MANUAL)

    await service.updateDonationStatus(admin, transactionId, PaymentStatus.REFUNDED)

    assert balance(session) == Decimal("0")


async def test_same_status_is_noop(session, seed, user, admin):
    seed.campaign()
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 25, PaymentMethod.BANK_TRANSFER_MANUAL)
    version = service.getDonation(transactionId).version

    previous = await service.updateDonationStatus(admin, transactionId, PaymentStatus.PENDING)

    session.expire_all()
    assert previous == PaymentStatus.PENDING
    assert service.getDonation(transactionId).version == version


async def test_status_update_requires_admin(session, seed, user):
    seed.campaign()
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 25, PaymentMethod.BANK_TRANSFER_MANUAL)

    with pytest.raises(PermissionDenied):
        await service.updateDonationStatus(user, transactionId, PaymentStatus.SUCCEEDED)

    assert service.getDonation(transactionId).status == "Pending"


async def test_status_update_unknown_transaction(session, admin):
    with pytest.raises(TransactionNotFound):
        await DonationService(session).updateDonationStatus(admin, "nope", PaymentStatus.SUCCEEDED)


async def test_status_update_survives_missing_campaign(session, seed, user, admin, session_factory):
    seed.campaign()
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 25, PaymentMethod.BANK_TRANSFER_MANUAL)

    with session_factory() as other:
        other.delete(other.query(Campaign).filter_by(campaignID="c1").one())
        other.commit()

    await service.updateDonationStatus(admin, transactionId, PaymentStatus.SUCCEEDED)

    session.expire_all()
    assert service.getDonation(transactionId).status == "Succeeded"


async def test_delete_reverses_campaign_but_not_wallet(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="100")
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 60, PaymentMethod.WALLET_DEBIT)

    assert await service.deleteDonation(admin, transactionId) is True

    assert service.getDonation(transactionId) is None
    assert raised(session) == Decimal("0")
    assert balance(session) == Decimal("40")


async def test_delete_is_idempotent(session, seed, user, admin):
    seed.campaign()
    seed.profile(balance="100")
    service = DonationService(session)
    keep = await service.createDonation(user, "c1", 30, PaymentMethod.WALLET_DEBIT)
    gone = await service.createDonation(user, "c1", 20, PaymentMethod.WALLET_DEBIT)

    assert await service.deleteDonation(admin, gone) is True
    assert raised(session) == Decimal("30")

    assert await service.deleteDonation(admin, gone) is False
    assert raised(session) == Decimal("30")
    assert service.getDonation(keep) is not None


async def test_delete_pending_leaves_total(session, seed, user, admin):
    seed.campaign(raised="15")
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 30, PaymentMethod.BANK_TRANSFER_MANUAL)

    await service.deleteDonation(admin, transactionId)

    assert raised(session) == Decimal("15")


async def test_delete_requires_admin(session, seed, user):
    seed.campaign()
    service = DonationService(session)
    transactionId = await service.createDonation(user, "c1", 30, PaymentMethod.BANK_TRANSFER_MANUAL)

    with pytest.raises(PermissionDenied):
        await service.deleteDonation(user, transactionId)

    assert service.getDonation(transactionId) is not None


async def test_raised_amount_matches_succeeded_sum(session, seed, admin):
    seed.campaign()
    seed.campaign(campaignId="c2", title="School Books")
    for uid in ("u1", "u2", "u3"):
        seed.profile(uid=uid, balance="500")
    service = DonationService(session)

    a = await service.createDonation(CallerContext("u1"), "c1", 100, PaymentMethod.WALLET_DEBIT)
    b = await service.createDonation(CallerContext("u2"), "c1", 70, PaymentMethod.BANK_TRANSFER_MANUAL)
    c = await service.createDonation(CallerContext("u3"), "c2", 45, PaymentMethod.BANK_TRANSFER_MANUAL)
    d = await service.createDonation(CallerContext("u3"), "c2", 15, PaymentMethod.WALLET_DEBIT)

    await service.updateDonationStatus(admin, b, PaymentStatus.SUCCEEDED)
    await service.updateDonationStatus(admin, c, PaymentStatus.FAILED)
    await service.updateDonationStatus(admin, a, PaymentStatus.REFUNDED)
    await service.deleteDonation(admin, d)

    assert raised(session, "c1") == Decimal("70")
    assert raised(session, "c2") == Decimal("0")
    assert AuditService(session).verifyCampaignTotals() == []
    for uid in ("u1", "u2", "u3"):
        assert balance(session, uid) >= 0


async def test_concurrent_wallet_debit_rechecks_balance(session, seed, user, interleave):
    seed.campaign()
    seed.profile(balance="100")

    def spend_elsewhere(other):
        profile = other.query(UserProfile).filter_by(uid="u1").one()
        profile.walletBalance = profile.walletBalance - Decimal("80")

    state = interleave(session, spend_elsewhere)

    with pytest.raises(InsufficientFunds):
        await DonationService(session).createDonation(user, "c1", 50, PaymentMethod.WALLET_DEBIT)

    assert state["fired"] == 1
    assert session.query(PaymentTransaction).count() == 0
    assert balance(session) == Decimal("20")
    assert raised(session) == Decimal("0")


async def test_concurrent_donations_both_count(session, seed, user, interleave):
    seed.campaign()
    seed.profile(balance="100")

    def other_donor(other):
        other.add(PaymentTransaction(
            transactionID="other-tx", userID="u9", campaignID="c1", campaignName="Flood Relief",
            amount=Decimal("25"), method="WalletDebit", status="Succeeded"
        ))
        campaign = other.query(Campaign).filter_by(campaignID="c1").one()
        campaign.raisedAmount = campaign.raisedAmount + Decimal("25")

    interleave(session, other_donor)

    await DonationService(session).createDonation(user, "c1", 50, PaymentMethod.WALLET_DEBIT)

    assert raised(session) == Decimal("75")
    assert AuditService(session).verifyCampaignTotals() == []


async def test_balance_is_read_fresh_after_outside_top_up(session, seed, user, session_factory):
    seed.campaign()
    seed.profile(balance="20")
    profile = IdentityService(session).getProfile("u1")
    assert profile.walletBalance == Decimal("20")

    with session_factory() as other:
        other.query(UserProfile).filter_by(uid="u1").one().walletBalance = Decimal("100")
        other.commit()

    await DonationService(session).createDonation(user, "c1", 50, PaymentMethod.WALLET_DEBIT)

    assert balance(session) == Decimal("50")
    assert raised(session) == Decimal("50")


async def settle_two_donations(session, seed):
    """c1 ends at 100: u1 gives 60 out of a 100 wallet, u2 gives 40. Returns u1's transaction id."""
    seed.campaign()
    seed.profile(uid="u1", balance="100")
    seed.profile(uid="u2", balance="40")
    service = DonationService(session)
    transactionId = await service.createDonation(CallerContext("u1"), "c1", 60, PaymentMethod.WALLET_DEBIT)
    await service.createDonation(CallerContext("u2"), "c1", 40, PaymentMethod.WALLET_DEBIT)
    assert raised(session) == Decimal("100")
    return transactionId


async def test_refund_racing_delete(session, seed, admin, interleave):
    transactionId = await settle_two_donations(session, seed)

    def delete_elsewhere(other):
        transaction = other.query(PaymentTransaction).filter_by(transactionID=transactionId).one()
        campaign = other.query(Campaign).filter_by(campaignID="c1").one()
        campaign.raisedAmount = campaign.raisedAmount - transaction.amount
        other.delete(transaction)

    state = interleave(session, delete_elsewhere)

    with pytest.raises(TransactionNotFound):
        await DonationService(session).updateDonationStatus(admin, transactionId, PaymentStatus.REFUNDED)

    assert state["fired"] == 1
    assert raised(session) == Decimal("40")
    assert balance(session, "u1") == Decimal("40")
    assert AuditService(session).verifyCampaignTotals() == []


async def test_delete_racing_refund(session, seed, admin, interleave):
    transactionId = await settle_two_donations(session, seed)

    def refund_elsewhere(other):
        transaction = other.query(PaymentTransaction).filter_by(transactionID=transactionId).one()
        campaign = other.query(Campaign).filter_by(campaignID="c1").one()
        profile = other.query(UserProfile).filter_by(uid="u1").one()
        transaction.status = "Refunded"
        campaign.raisedAmount = campaign.raisedAmount - transaction.amount
        profile.walletBalance = profile.walletBalance + transaction.amount

    state = interleave(session, refund_elsewhere)

    service = DonationService(session)
    assert await service.deleteDonation(admin, transactionId) is True

    assert state["fired"] == 1
    assert service.getDonation(transactionId) is None
    assert raised(session) == Decimal("40")
    assert balance(session, "u1") == Decimal("100")
    assert AuditService(session).verifyCampaignTotals() == []


async def test_two_admins_settle_same_donation(session, seed, admin, interleave):
    await settle_two_donations(session, seed)
    service = DonationService(session)
    pending = await service.createDonation(CallerContext("u2"), "c1", 30, PaymentMethod.BANK_TRANSFER_MANUAL)

    def settle_elsewhere(other):
        transaction = other.query(PaymentTransaction).filter_by(transactionID=pending).one()
        campaign = other.query(Campaign).filter_by(campaignID="c1").one()
        transaction.status = "Succeeded"
        campaign.raisedAmount = campaign.raisedAmount + transaction.amount

    interleave(session, settle_elsewhere)

    # The retry sees the donation already settled and does nothing
    previous = await service.updateDonationStatus(admin, pending, PaymentStatus.SUCCEEDED)

    assert previous == PaymentStatus.SUCCEEDED
    assert raised(session) == Decimal("130")
    assert AuditService(session).verifyCampaignTotals() == []


async def test_settle_racing_rejection(session, seed, admin, interleave):
    await settle_two_donations(session, seed)
    service = DonationService(session)
    pending = await service.createDonation(CallerContext("u2"), "c1", 30, PaymentMethod.BANK_TRANSFER_MANUAL)

    def reject_elsewhere(other):
        other.query(PaymentTransaction).filter_by(transactionID=pending).one().status = "Failed"

    interleave(session, reject_elsewhere)

    with pytest.raises(InvalidStatusTransition):
        await service.updateDonationStatus(admin, pending, PaymentStatus.SUCCEEDED)

    session.expire_all()
    assert service.getDonation(pending).status == "Failed"
    assert raised(session) == Decimal("100")
    assert AuditService(session).verifyCampaignTotals() == []


async def test_refund_racing_wallet_spend(session, seed, admin, interleave):
    transactionId = await settle_two_donations(session, seed)

    def spend_elsewhere(other):
        other.add(PaymentTransaction(
            transactionID="phone-tx", userID="u1", campaignID="c1", campaignName="Flood Relief",
            amount=Decimal("25"), method="WalletDebit", status="Succeeded"
        ))
        campaign = other.query(Campaign).filter_by(campaignID="c1").one()
        profile = other.query(UserProfile).filter_by(uid="u1").one()
        campaign.raisedAmount = campaign.raisedAmount + Decimal("25")
        profile.walletBalance = profile.walletBalance - Decimal("25")

    state = interleave(session, spend_elsewhere)

    await DonationService(session).updateDonationStatus(admin, transactionId, PaymentStatus.REFUNDED)

    assert state["fired"] == 1
    assert raised(session) == Decimal("65")
    assert balance(session, "u1") == Decimal("75")
    assert AuditService(session).verifyCampaignTotals() == []
