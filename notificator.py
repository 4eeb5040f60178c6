import logging
from datetime import datetime
from typing import Optional

import aiohttp

import config
from email_sender import SMTPProvider
from ledger_system.events.event_bus import EventBus, LedgerEvents
from templates import MessageTemplates, format_date

logger = logging.getLogger(__name__)


class BipSmsClient:
    """WhatsApp text messages through the BIPSMS HTTP API."""

    def __init__(self, api_secret: str = None, account_id: str = None, url: str = None,
                 timeout: int = None):
        self.api_secret = api_secret if api_secret is not None else config.BIPSMS_API_SECRET
        self.account_id = account_id if account_id is not None else config.BIPSMS_ACCOUNT_ID
        self.url = url or config.BIPSMS_URL
        self.timeout = aiohttp.ClientTimeout(total=timeout or config.NOTIFICATION_TIMEOUT)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_secret and self.account_id)

    async def send_text(self, recipient: str, message: str) -> bool:
        """
        Отправляет текстовое сообщение в WhatsApp.

        Returns:
            bool: True if the API accepted the message
        """
        if not self.is_configured:
            logger.warning("WhatsApp API credentials are not set. Skipping notification.")
            return False

        if not recipient:
            logger.warning("Recipient phone number is missing. Skipping notification.")
            return False

        data = {
            'secret': self.api_secret,
            'account': self.account_id,
            'recipient': recipient,
            'type': 'text',
            'message': message,
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.url, data=data) as response:
                    response_text = await response.text()

                    if response.status != 200:
                        logger.error(
                            f"Error sending WhatsApp notification to {recipient}. "
                            f"Status: {response.status}, Data: {response_text}"
                        )
                        return False

                    logger.info(f"WhatsApp notification sent successfully to {recipient}")
                    logger.debug(f"BIPSMS response: {response_text}")
                    return True

        except aiohttp.ClientError as e:
            logger.error(f"Network error sending WhatsApp notification to {recipient}: {e}")
            return False


class NotificationDispatcher:
    """
    Fire-and-forget confirmations for committed ledger operations.

    Every public coroutine swallows and logs delivery errors: a failed
    message never reaches the caller and never touches committed state.
    """

    def __init__(self, transport: Optional[BipSmsClient] = None,
                 email_provider: Optional[SMTPProvider] = None):
        self.transport = transport or BipSmsClient()
        self.email_provider = email_provider if email_provider is not None else SMTPProvider.from_config()

    def bind(self, bus: EventBus) -> "NotificationDispatcher":
        """Подписывает диспетчер на события леджера"""
        bus.subscribe(LedgerEvents.DONATION_CREATED, self.on_donation_created)
        bus.subscribe(LedgerEvents.DONATION_STATUS_CHANGED, self.on_donation_status_changed)
        bus.subscribe(LedgerEvents.EVENT_REGISTERED, self.on_event_registered)
        return self

    def unbind(self, bus: EventBus):
        bus.unsubscribe(LedgerEvents.DONATION_CREATED, self.on_donation_created)
        bus.unsubscribe(LedgerEvents.DONATION_STATUS_CHANGED, self.on_donation_status_changed)
        bus.unsubscribe(LedgerEvents.EVENT_REGISTERED, self.on_event_registered)

    async def _deliver(self, recipient: str, message: str, kind: str) -> bool:
        try:
            return bool(await self.transport.send_text(recipient, message))
        except Exception as e:
            logger.error(f"Failed to deliver {kind} notification to {recipient}: {e}")
            return False

    async def _deliver_email(self, to: Optional[str], subject: str, body: str) -> bool:
        if not to or not self.email_provider:
            return False
        try:
            return bool(await self.email_provider.send_email(to, subject, body))
        except Exception as e:
            logger.error(f"Failed to deliver email to {to}: {e}")
            return False

    async def notifyDonation(self, phone: str, name: str, details: dict) -> bool:
        """Confirmation that a donation was received (details: amount, campaignName, date, method, lastFourDigits, status)"""
        variables = MessageTemplates.payment_variables(name, details)
        message = MessageTemplates.render('donation_received', variables)
        return await self._deliver(phone, message, 'donation')

    async def notifyDonationStatus(self, phone: str, name: str, details: dict) -> bool:
        """Status change of an existing donation"""
        variables = MessageTemplates.payment_variables(name, details)
        message = MessageTemplates.render('donation_status_update', variables)
        return await self._deliver(phone, message, 'status update')

    async def notifyRegistration(self, phone: str, name: str, wardNo: str, eventTitle: str,
                                 registeredAt: datetime) -> bool:
        message = MessageTemplates.render('event_registration', {
            'name': name,
            'wardNo': wardNo or 'N/A',
            'eventTitle': eventTitle,
            'registeredAt': format_date(registeredAt),
        })
        return await self._deliver(phone, message, 'registration')

    async def on_donation_created(self, data: dict):
        if not data.get('phone'):
            logger.warning(f"No phone number for donor {data.get('userId')}, WhatsApp confirmation skipped")
        else:
            await self.notifyDonation(data['phone'], data.get('name') or data.get('userId'), data)

        if data.get('userEmail'):
            variables = MessageTemplates.payment_variables(data.get('name') or data.get('userId'), data)
            await self._deliver_email(
                data['userEmail'],
                MessageTemplates.render('donation_email_subject', variables),
                MessageTemplates.render('donation_received', variables)
            )

    async def on_donation_status_changed(self, data: dict):
        if not data.get('phone'):
            logger.warning(f"No phone number for donor {data.get('userId')}, status update skipped")
            return
        await self.notifyDonationStatus(data['phone'], data.get('name') or data.get('userId'), data)

    async def on_event_registered(self, data: dict):
        await self.notifyRegistration(
            data.get('phone'),
            data.get('name'),
            data.get('wardNo'),
            data.get('eventTitle'),
            data.get('registeredAt')
        )
