from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

import config


class SafeDict(dict):
    def __missing__(self, key):
        # Отсутствующая переменная остается в тексте как есть
        return '{' + key + '}'


def format_amount(amount) -> str:
    return f"{Decimal(str(amount or 0)):.2f}"


def format_date(value: Optional[datetime]) -> str:
    """Formats like en-US numeric date with 12h time: 10/19/2026, 3:05 PM"""
    if not value:
        return 'N/A'
    hour = value.hour % 12 or 12
    suffix = 'AM' if value.hour < 12 else 'PM'
    return f"{value.month}/{value.day}/{value.year}, {hour}:{value.minute:02d} {suffix}"


class MessageTemplates:
    """Outbound message texts keyed by template name."""

    _templates: Dict[str, str] = {
        'donation_received': (
            "প্রিয় {name},\n"
            "দান করার জন্য আপনাকে ধন্যবাদ। আমরা আপনার মেসেজ পেয়েছি। যত দ্রুত সম্ভব আমরা কনর্ফাম করছি।\n"
            "\n"
            "*Amount:* {currency} {amount},\n"
            "*Campaign:* {campaignName},\n"
            "*Date:* {date},\n"
            "*Method:* {method},\n"
            "*Last 4 Digits:* {lastFourDigits},\n"
            "\n"
            "*Current Status:* {status}"
        ),
        'donation_status_update': (
            "প্রিয় {name},\n"
            "{organization} থেকে আপনাকে স্বাগতম।\n"
            "\n"
            "*Amount:* {currency} {amount},\n"
            "*Campaign:* {campaignName},\n"
            "*Date:* {date},\n"
            "*Method:* {method},\n"
            "*Last 4 Digits:* {lastFourDigits},\n"
            "*Current Status:* {status},\n"
            "\n"
            "দান করার জন্য আপনাকে ধন্যবাদ"
        ),
        'event_registration': (
            "প্রিয় {name},\n"
            "*{eventTitle}* ইভেন্টে আপনার নিবন্ধন সম্পন্ন হয়েছে।\n"
            "\n"
            "*Ward No:* {wardNo},\n"
            "*Registered At:* {registeredAt}\n"
            "\n"
            "{organization}"
        ),
        'donation_email_subject': "Donation {status}: {currency} {amount}",
    }

    @staticmethod
    def get_template(key: str) -> str:
        template = MessageTemplates._templates.get(key)
        if template is None:
            raise ValueError(f"Template not found: {key}")
        return template

    @staticmethod
    def render(key: str, variables: dict) -> str:
        defaults = {
            'currency': config.CURRENCY_LABEL,
            'organization': config.ORGANIZATION_NAME,
        }
        defaults.update(variables)
        return MessageTemplates.get_template(key).format_map(SafeDict(defaults))

    @staticmethod
    def payment_variables(name: str, details: dict) -> dict:
        """Template variables shared by donation messages."""
        return {
            'name': name,
            'amount': format_amount(details.get('amount')),
            'campaignName': details.get('campaignName') or config.DEFAULT_CAMPAIGN_NAME,
            'date': format_date(details.get('date')),
            'method': details.get('method') or 'Unknown',
            'lastFourDigits': details.get('lastFourDigits') or 'N/A',
            'status': details.get('status') or 'Pending',
        }
