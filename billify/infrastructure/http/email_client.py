# billify/infrastructure/http/email_client.py
import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

import aiohttp
from pydantic import BaseModel

from billify.config.settings import settings
from billify.domain.errors import RemoteServiceError

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS_DAYS = 30


class EmailInvoiceData(BaseModel):
    client_email: str
    invoice_link: str
    due_date: str
    client_name: str
    company_name: str
    invoice_number: str


def format_date_for_email(value: Union[str, date, datetime]) -> str:
    """YYYY-MM-DD"""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def generate_due_date(invoice_date: Union[str, date, datetime, None], days: int = DEFAULT_PAYMENT_TERMS_DAYS) -> str:
    if invoice_date is None:
        invoice_date = date.today()
    if isinstance(invoice_date, str):
        invoice_date = datetime.fromisoformat(invoice_date)
    if isinstance(invoice_date, datetime):
        invoice_date = invoice_date.date()
    return format_date_for_email(invoice_date + timedelta(days=days))


class EmailNotifier:
    """POSTs invoice notifications to the remote email endpoint."""

    def __init__(self, endpoint: Optional[str] = settings.EMAIL_API_ENDPOINT,
                 timeout: int = settings.EMAIL_TIMEOUT_SECONDS):
        self.endpoint = endpoint
        self.timeout = timeout

    def validate_config(self) -> bool:
        return bool(self.endpoint)

    async def send_invoice_email(self, email: EmailInvoiceData) -> dict:
        if not self.endpoint:
            raise RemoteServiceError("Email endpoint not configured")

        logger.info(f"Sending invoice email for {email.invoice_number} to {email.client_email}")
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(
                    self.endpoint,
                    json=email.model_dump(),
                    headers={"Accept": "application/json"},
                ) as response:
                    if response.status < 200 or response.status >= 300:
                        body = await response.text()
                        logger.error(f"Email API response {response.status}: {body[:200]}")
                        raise RemoteServiceError(f"Email API error: {response.status} - {body[:200]}")
                    result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to send invoice email: {type(e).__name__}: {e}")
            raise RemoteServiceError("Failed to send invoice email") from e

        logger.info(f"Email sent successfully for invoice {email.invoice_number}")
        return result
