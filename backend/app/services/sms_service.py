"""
SMS Service
Sends parent exit alerts through the Twilio REST client. The client is
synchronous, so calls run in the default thread pool executor.
"""

import asyncio
import re
from datetime import datetime
from typing import Optional

from twilio.rest import Client

from app.core.config import settings
from app.core.logging_config import logger


def normalize_phone_number(phone_number: Optional[str], default_country_code: Optional[str] = None) -> str:
    """
    Convert a phone number to E.164.

    Numbers already starting with '+' keep their country code; 10-digit local
    numbers get the default country code prepended. Returns '' for empty input.
    """
    if not phone_number:
        return ""
    country_code = default_country_code or settings.SMS_DEFAULT_COUNTRY_CODE
    raw = str(phone_number).strip()
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return ""
    if raw.startswith("+"):
        return "+" + digits

    code_digits = country_code.lstrip("+")
    if len(digits) == 10:
        return f"+{code_digits}{digits}"
    if digits.startswith(code_digits) and len(digits) >= 10 + len(code_digits):
        return "+" + digits
    return f"+{code_digits}{digits.lstrip('0')}"


def parent_exit_message(student_name: str, when: datetime) -> str:
    formatted_time = when.strftime("%I:%M %p").lstrip("0")
    formatted_date = when.strftime("%b %d, %Y")
    return (
        f"IMPORTANT: Your child {student_name} has left the college campus "
        f"at {formatted_time} on {formatted_date}. - College Management"
    )


class SmsService:
    """Async wrapper around the Twilio messages API"""

    def __init__(self):
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        self.from_number = settings.TWILIO_FROM_NUMBER
        self._client: Optional[Client] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def _send_sync(self, to_number: str, body: str) -> bool:
        message = self._get_client().messages.create(
            body=body,
            from_=self.from_number,
            to=to_number,
        )
        return message.sid is not None

    async def send_sms(self, phone_number: str, body: str) -> bool:
        """Send a text message. Returns True if Twilio accepted it, False otherwise."""
        if not self.is_configured:
            logger.warning("[SMS] Twilio not configured, skipping SMS send")
            return False

        to_number = normalize_phone_number(phone_number)
        if not to_number:
            logger.warning("[SMS] No usable phone number, skipping SMS send")
            return False

        try:
            loop = asyncio.get_running_loop()
            sent = await loop.run_in_executor(None, self._send_sync, to_number, body)
            if sent:
                logger.info(f"[SMS/Twilio] Successfully sent SMS to {to_number}")
            else:
                logger.error(f"[SMS/Twilio] No message SID returned for {to_number}")
            return sent
        except Exception as e:
            logger.error(f"[SMS/Twilio] Failed to send SMS to {to_number}: {e}")
            return False

    async def send_parent_exit_notification(self, phone_number: str, student_name: str,
                                            when: datetime) -> bool:
        return await self.send_sms(phone_number, parent_exit_message(student_name, when))


# Singleton instance
sms_service = SmsService()
