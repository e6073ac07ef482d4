# billify/domain/invoice_number.py
import logging
import random
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billify.infrastructure.database.models import Invoice

logger = logging.getLogger(__name__)


def _month_bounds(now: datetime):
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def format_invoice_number(now: datetime, sequence: int) -> str:
    """DDMMYYINV#### with a 4-digit, zero-padded sequence."""
    return f"{now:%d%m%y}INV{sequence:04d}"


async def generate_invoice_number(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: str,
    now: Optional[datetime] = None,
) -> str:
    """Next number in ``user_id``'s sequence for the current month."""
    now = now or datetime.now(timezone.utc)
    start, end = _month_bounds(now)
    try:
        async with session_factory() as session:
            count = await session.scalar(
                select(func.count()).select_from(Invoice)
                .where(Invoice.user_id == user_id, Invoice.created_at >= start, Invoice.created_at < end)
            )
        return format_invoice_number(now, (count or 0) + 1)
    except SQLAlchemyError as e:
        # Storage unavailable: fall back to a random sequence
        logger.error(f"Error counting invoices: {e}")
        return format_invoice_number(now, random.randint(0, 9999))
