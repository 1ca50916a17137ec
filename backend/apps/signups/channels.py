"""
Message channels for delivering verification codes.

SMS goes through AWS End User Messaging (pinpoint-sms-voice-v2), email
through the Resend HTTP API. Both are best-effort from the ledger's point of
view: a send either returns a receipt or raises ChannelError.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ChannelError(Exception):
    """Exception raised when a message could not be handed to the channel."""

    pass


@dataclass(frozen=True)
class DeliveryReceipt:
    """Channel acknowledgement of a send. Not proof of delivery."""

    channel: str
    message_id: str = ""


class MessageChannel(Protocol):
    name: str

    def send(self, address: str, text: str, subject: str | None = None) -> DeliveryReceipt: ...


@lru_cache(maxsize=1)
def get_sms_client() -> Any:
    """
    Get AWS SMS client (pinpoint-sms-voice-v2).

    Credentials come from the environment or the task's IAM role.
    """
    timeout = settings.CHANNEL_TIMEOUT_SECONDS
    return boto3.client(
        "pinpoint-sms-voice-v2",
        region_name=settings.AWS_SMS_REGION,
        config=Config(connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 2}),
    )


class SMSChannel:
    """Transactional SMS via AWS End User Messaging."""

    name = "sms"

    def __init__(self, client: Any = None, origination_identity: str | None = None) -> None:
        self._client = client
        self.origination_identity = (
            origination_identity if origination_identity is not None else settings.AWS_SMS_ORIGINATION_IDENTITY
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_sms_client()
        return self._client

    def send(self, address: str, text: str, subject: str | None = None) -> DeliveryReceipt:
        if not self.origination_identity:
            logger.error("AWS_SMS_ORIGINATION_IDENTITY not configured")
            raise ChannelError("SMS service not configured")

        try:
            response = self.client.send_text_message(
                DestinationPhoneNumber=address,
                OriginationIdentity=self.origination_identity,
                MessageBody=text,
                MessageType="TRANSACTIONAL",
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            logger.error("AWS SMS ClientError: %s - %s", error_code, error_message)
            raise ChannelError(f"Failed to send SMS: {error_message}") from e
        except BotoCoreError as e:
            logger.error("AWS SMS BotoCoreError: %s", str(e))
            raise ChannelError(f"SMS service error: {str(e)}") from e

        message_id = response.get("MessageId", "")
        logger.info("SMS sent to %s (message_id: %s)", address[-4:], message_id)
        return DeliveryReceipt(channel=self.name, message_id=message_id)


class EmailChannel:
    """Transactional email via the Resend API."""

    name = "email"

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str = "SMS Hub <noreply@sms-hub.com>",
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_address = from_address
        self.timeout = timeout if timeout is not None else settings.CHANNEL_TIMEOUT_SECONDS

    def send(self, address: str, text: str, subject: str | None = None) -> DeliveryReceipt:
        if not self.api_key:
            logger.error("RESEND_API_KEY not configured")
            raise ChannelError("Email service not configured")

        try:
            response = httpx.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.from_address,
                    "to": [address],
                    "subject": subject or "Your verification code",
                    "text": text,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Resend API error: %s", e.response.status_code)
            raise ChannelError(f"Failed to send email: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Resend request failed: %s", str(e))
            raise ChannelError(f"Email service error: {str(e)}") from e

        message_id = response.json().get("id", "")
        logger.info("Verification email sent (message_id: %s)", message_id)
        return DeliveryReceipt(channel=self.name, message_id=message_id)


def default_channels() -> dict[str, MessageChannel]:
    return {"sms": SMSChannel(), "email": EmailChannel()}
