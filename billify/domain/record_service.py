# billify/domain/record_service.py
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from billify.delivery.schemas.invoice import Client, CompanyProfile, Invoice, InvoiceData, InvoiceItem
from billify.domain.errors import InvalidInputError, NotFoundError, RemoteServiceError
from billify.domain.invoice_math import line_total
from billify.infrastructure.database import models

logger = logging.getLogger(__name__)

_PROTECTED = {"id", "user_id", "created_at", "updated_at"}


def _parse_id(record_id) -> Optional[uuid.UUID]:
    try:
        return record_id if isinstance(record_id, uuid.UUID) else uuid.UUID(str(record_id))
    except ValueError:
        return None


def row_to_dict(row) -> dict:
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        data[column.name] = str(value) if isinstance(value, uuid.UUID) else value
    return data


class RecordService:
    """User-scoped CRUD over one business table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], model: Type[models.Base], label: str):
        self._sessions = session_factory
        self.model = model
        self.label = label

    def _clean(self, values: dict) -> dict:
        columns = {c.name for c in self.model.__table__.columns}
        unknown = set(values) - columns
        if unknown:
            raise InvalidInputError(f"Unknown {self.label} fields: {', '.join(sorted(unknown))}")
        cleaned = {k: v for k, v in values.items() if k not in _PROTECTED}
        for key, value in cleaned.items():
            if key.endswith("_id") and value is not None:
                parsed = _parse_id(value)
                if parsed is None:
                    raise InvalidInputError(f"Invalid {key}")
                cleaned[key] = parsed
        return cleaned

    def _check_required(self, values: dict) -> None:
        missing = [
            c.name for c in self.model.__table__.columns
            if not c.nullable and c.default is None and c.name not in _PROTECTED and values.get(c.name) is None
        ]
        if missing:
            raise InvalidInputError(f"Missing {self.label} fields: {', '.join(missing)}")

    async def _fetch(self, session: AsyncSession, user_id: str, record_id):
        key = _parse_id(record_id)
        row = await session.get(self.model, key) if key else None
        if row is None or row.user_id != user_id:
            raise NotFoundError(f"{self.label.capitalize()} {record_id} not found")
        return row

    async def list(self, user_id: str) -> List[dict]:
        try:
            async with self._sessions() as session:
                rows = await session.scalars(
                    select(self.model)
                    .where(self.model.user_id == user_id)
                    .order_by(self.model.created_at.desc())
                )
                return [row_to_dict(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching {self.label} list: {e}")
            raise RemoteServiceError(f"Failed to fetch {self.label} list") from e

    async def get(self, user_id: str, record_id) -> dict:
        try:
            async with self._sessions() as session:
                return row_to_dict(await self._fetch(session, user_id, record_id))
        except SQLAlchemyError as e:
            logger.error(f"Error fetching {self.label} {record_id}: {e}")
            raise RemoteServiceError(f"Failed to fetch {self.label}") from e

    async def create(self, user_id: str, values: dict) -> dict:
        cleaned = self._clean(values)
        self._check_required(cleaned)
        try:
            async with self._sessions() as session:
                row = self.model(user_id=user_id, **cleaned)
                session.add(row)
                await session.commit()
                await session.refresh(row)
                logger.info(f"Created {self.label} {row.id} for user {user_id}")
                return row_to_dict(row)
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.label}: {e}")
            raise RemoteServiceError(f"Failed to create {self.label}") from e

    async def update(self, user_id: str, record_id, values: dict) -> dict:
        cleaned = self._clean(values)
        try:
            async with self._sessions() as session:
                row = await self._fetch(session, user_id, record_id)
                for key, value in cleaned.items():
                    setattr(row, key, value)
                row.updated_at = datetime.now(timezone.utc)
                await session.commit()
                await session.refresh(row)
                return row_to_dict(row)
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.label} {record_id}: {e}")
            raise RemoteServiceError(f"Failed to update {self.label}") from e

    async def delete(self, user_id: str, record_id) -> None:
        try:
            async with self._sessions() as session:
                row = await self._fetch(session, user_id, record_id)
                await session.delete(row)
                await session.commit()
                logger.info(f"Deleted {self.label} {record_id}")
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.label} {record_id}: {e}")
            raise RemoteServiceError(f"Failed to delete {self.label}") from e


class InvoiceService(RecordService):
    """Invoices with their line items; totals computed when not supplied."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__(session_factory, models.Invoice, "invoice")

    @staticmethod
    def _item_rows(items: List[dict]) -> List[models.InvoiceItem]:
        rows = []
        for item in items:
            parsed = InvoiceItem.model_validate(item)
            product_id = _parse_id(item["product_id"]) if item.get("product_id") else None
            rows.append(models.InvoiceItem(
                product_id=product_id,
                item_name=parsed.item_name,
                description=parsed.description,
                hsn_code=parsed.hsn_code,
                quantity=parsed.quantity,
                unit_price=parsed.unit_price,
                tax_rate=parsed.tax_rate,
                line_total=float(line_total(parsed)),
            ))
        return rows

    @staticmethod
    def _fill_totals(row: models.Invoice, values: dict) -> None:
        subtotal = sum((Decimal(str(i.line_total)) for i in row.items), Decimal("0"))
        tax = sum((Decimal(str(i.line_total)) * Decimal(str(i.tax_rate)) / 100 for i in row.items), Decimal("0"))
        if values.get("subtotal") is None:
            row.subtotal = float(round(subtotal, 2))
        if values.get("tax_amount") is None:
            row.tax_amount = float(round(tax, 2))
        if values.get("total_amount") is None:
            row.total_amount = float(round(Decimal(str(row.subtotal)) + Decimal(str(row.tax_amount)), 2))

    @staticmethod
    async def _owned_row(session: AsyncSession, model, user_id: str, record_id, label: str):
        key = _parse_id(record_id)
        row = await session.get(model, key) if key else None
        if row is None or row.user_id != user_id:
            raise NotFoundError(f"{label} {record_id} not found")
        return row

    async def _check_references(self, session: AsyncSession, user_id: str, values: dict,
                                items: Optional[List[dict]]) -> None:
        """Referenced client, company and products must belong to ``user_id``."""
        if values.get("client_id") is not None:
            await self._owned_row(session, models.Client, user_id, values["client_id"], "Client")
        if values.get("company_id") is not None:
            await self._owned_row(session, models.CompanyProfile, user_id, values["company_id"], "Company")
        for item in items or []:
            if item.get("product_id"):
                await self._owned_row(session, models.Product, user_id, item["product_id"], "Product")

    def _with_items(self, row: models.Invoice) -> dict:
        data = row_to_dict(row)
        data["items"] = [row_to_dict(item) for item in row.items]
        return data

    async def _fetch(self, session: AsyncSession, user_id: str, record_id):
        key = _parse_id(record_id)
        row = None
        if key:
            row = await session.scalar(
                select(models.Invoice).options(selectinload(models.Invoice.items)).where(models.Invoice.id == key)
            )
        if row is None or row.user_id != user_id:
            raise NotFoundError(f"Invoice {record_id} not found")
        return row

    async def get(self, user_id: str, record_id) -> dict:
        try:
            async with self._sessions() as session:
                return self._with_items(await self._fetch(session, user_id, record_id))
        except SQLAlchemyError as e:
            logger.error(f"Error fetching invoice {record_id}: {e}")
            raise RemoteServiceError("Failed to fetch invoice") from e

    async def create(self, user_id: str, values: dict) -> dict:
        values = dict(values)
        items = values.pop("items", None) or []
        if not values.get("invoice_number"):
            raise InvalidInputError("Invoice number required")
        if not values.get("client_id"):
            raise InvalidInputError("Client required")
        cleaned = self._clean(values)
        try:
            async with self._sessions() as session:
                await self._check_references(session, user_id, cleaned, items)
                row = models.Invoice(user_id=user_id, **cleaned)
                row.items = self._item_rows(items)
                self._fill_totals(row, values)
                session.add(row)
                await session.commit()
                logger.info(f"Created invoice {row.invoice_number} ({row.id}) with {len(items)} items")
                return self._with_items(await self._fetch(session, user_id, row.id))
        except SQLAlchemyError as e:
            logger.error(f"Error creating invoice: {e}")
            raise RemoteServiceError("Failed to create invoice") from e

    async def update(self, user_id: str, record_id, values: dict) -> dict:
        values = dict(values)
        items = values.pop("items", None)
        cleaned = self._clean(values)
        try:
            async with self._sessions() as session:
                row = await self._fetch(session, user_id, record_id)
                await self._check_references(session, user_id, cleaned, items)
                for key, value in cleaned.items():
                    setattr(row, key, value)
                if items is not None:
                    row.items = self._item_rows(items)
                    self._fill_totals(row, values)
                row.updated_at = datetime.now(timezone.utc)
                await session.commit()
                return self._with_items(await self._fetch(session, user_id, record_id))
        except SQLAlchemyError as e:
            logger.error(f"Error updating invoice {record_id}: {e}")
            raise RemoteServiceError("Failed to update invoice") from e

    async def load_invoice_data(self, user_id: str, invoice_id) -> InvoiceData:
        """Collect invoice, items, client and company into one InvoiceData."""
        try:
            async with self._sessions() as session:
                row = await self._fetch(session, user_id, invoice_id)
                client = await session.get(models.Client, row.client_id)
                if client is None or client.user_id != user_id:
                    raise NotFoundError(f"Client for invoice {invoice_id} not found")
                if row.company_id is not None:
                    company = await session.get(models.CompanyProfile, row.company_id)
                    if company is not None and company.user_id != user_id:
                        company = None
                else:
                    company = await session.scalar(
                        select(models.CompanyProfile)
                        .where(models.CompanyProfile.user_id == user_id)
                        .order_by(models.CompanyProfile.created_at.desc())
                        .limit(1)
                    )
                if company is None:
                    raise NotFoundError("Company profile not found")

                return InvoiceData(
                    invoice=Invoice.model_validate(row),
                    items=[InvoiceItem.model_validate(item) for item in row.items],
                    client=Client.model_validate(client),
                    company=CompanyProfile.model_validate(company),
                )
        except SQLAlchemyError as e:
            logger.error(f"Error loading invoice data for {invoice_id}: {e}")
            raise RemoteServiceError("Failed to load invoice data") from e


def build_record_services(session_factory) -> Dict[str, RecordService]:
    return {
        "companies": RecordService(session_factory, models.CompanyProfile, "company"),
        "clients": RecordService(session_factory, models.Client, "client"),
        "products": RecordService(session_factory, models.Product, "product"),
        "invoices": InvoiceService(session_factory),
    }
