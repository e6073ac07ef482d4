# billify/domain/document_pipeline.py
import asyncio
import logging
import os
import time
import traceback
import uuid
from concurrent.futures import Executor
from typing import Optional

import aiofiles
import psutil
from pydantic import BaseModel

from billify.config.settings import settings
from billify.delivery.schemas.invoice import InvoiceData
from billify.domain.errors import DegradedDeliveryError, RemoteServiceError
from billify.domain.pdf_templates import render_invoice_html
from billify.domain.settings_service import SettingsService
from billify.infrastructure.http.email_client import (
    EmailInvoiceData, EmailNotifier, format_date_for_email, generate_due_date,
)
from billify.infrastructure.images.logo import LogoResolver
from billify.infrastructure.render.paginate import paginate

# --- LOGGER ---
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


class GenerationOptions(BaseModel):
    upload: bool = True
    deliver: bool = True
    send_email: bool = True


class GenerationResult(BaseModel):
    success: bool
    s3_url: Optional[str] = None
    local_download: bool = False
    email_sent: bool = False
    pdf_bytes: Optional[bytes] = None
    page_count: int = 0
    filename: str


def _memory_mb() -> float:
    return psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024


def invoice_filename(data: InvoiceData) -> str:
    return f"Invoice-{data.invoice.invoice_number}"


class DocumentPipeline:
    """Render -> rasterize -> paginate -> upload? -> email? -> deliver?

    Stages run strictly in order. Upload and email failures are logged and
    reflected in the result; every other failure propagates.
    """

    def __init__(self, rasterizer, storage=None, notifier: Optional[EmailNotifier] = None,
                 output_dir: Optional[str] = settings.PDF_OUTPUT_DIR,
                 executor: Optional[Executor] = None,
                 logo_resolver: Optional[LogoResolver] = None):
        self.rasterizer = rasterizer
        self.storage = storage
        self.notifier = notifier
        self.output_dir = output_dir
        self.executor = executor
        self.logo_resolver = logo_resolver or LogoResolver(storage)

    def _storage_ready(self) -> bool:
        return self.storage is not None and self.storage.validate_config()

    def _email_ready(self) -> bool:
        return self.notifier is not None and self.notifier.validate_config()

    async def _upload(self, pdf_bytes: bytes, filename: str) -> str:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, self.storage.upload_pdf, pdf_bytes, filename)
        except Exception as e:
            raise DegradedDeliveryError(f"PDF upload failed: {type(e).__name__}: {e}") from e

    async def _notify(self, data: InvoiceData, link: str) -> None:
        invoice, client = data.invoice, data.client
        due_date = (format_date_for_email(invoice.due_date) if invoice.due_date
                    else generate_due_date(invoice.invoice_date))
        email = EmailInvoiceData(
            client_email=client.email,
            invoice_link=link,
            due_date=due_date,
            client_name=client.name or client.company_name or "Valued Client",
            company_name=data.company.company_name or "Your Company",
            invoice_number=invoice.invoice_number,
        )
        try:
            await self.notifier.send_invoice_email(email)
        except RemoteServiceError as e:
            raise DegradedDeliveryError(str(e)) from e

    async def _deliver(self, pdf_bytes: bytes, filename: str) -> None:
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, f"{filename}.pdf")
        async with aiofiles.open(path, "wb") as f:
            await f.write(pdf_bytes)
        logger.info(f"PDF written to {path}")

    async def generate(self, data: InvoiceData, template_id: Optional[str] = None,
                       options: Optional[GenerationOptions] = None) -> GenerationResult:
        options = options or GenerationOptions()
        run_id = uuid.uuid4().hex[:8]
        filename = invoice_filename(data)
        start = time.time()
        logger.info(f"=== START PDF Run ID: {run_id} invoice={data.invoice.invoice_number} template={template_id} ===")
        logger.info(f"Memory usage at start: {_memory_mb():.1f}MB for Run ID: {run_id}")

        try:
            html = await render_invoice_html(template_id, data, self.logo_resolver)
            logger.info(f"Stage 1/3: Rendered {len(html)} chars of HTML for Run ID: {run_id}")

            image = await self.rasterizer.rasterize(html)
            logger.info(f"Stage 2/3: Rasterized {image.width}x{image.height}px for Run ID: {run_id}")

            loop = asyncio.get_running_loop()
            pdf_bytes, page_count = await loop.run_in_executor(self.executor, paginate, image, filename)
            logger.info(f"Stage 3/3: Paginated into {page_count} page(s), {len(pdf_bytes)} bytes for Run ID: {run_id}")
            logger.info(f"Memory after pagination: {_memory_mb():.1f}MB for Run ID: {run_id}")
        except Exception as e:
            logger.error(f"=== PDF generation failed for Run ID {run_id}: {e}\n{traceback.format_exc()} ===")
            raise

        s3_url = None
        if options.upload and self._storage_ready():
            try:
                s3_url = await self._upload(pdf_bytes, filename)
                logger.info(f"PDF uploaded for Run ID {run_id}: {s3_url}")
            except DegradedDeliveryError as e:
                logger.error(f"Upload skipped for Run ID {run_id}: {e}")

        email_sent = False
        if options.send_email and s3_url and data.client.email and self._email_ready():
            try:
                await self._notify(data, s3_url)
                email_sent = True
                logger.info(f"Invoice email sent to {data.client.email} for Run ID {run_id}")
            except DegradedDeliveryError as e:
                logger.error(f"Email skipped for Run ID {run_id}: {e}")

        local_download = False
        if options.deliver:
            if self.output_dir:
                await self._deliver(pdf_bytes, filename)
            local_download = True

        logger.info(f"=== COMPLETED PDF Run ID: {run_id} in {time.time() - start:.2f}s ===")
        return GenerationResult(
            success=True,
            s3_url=s3_url,
            local_download=local_download,
            email_sent=email_sent,
            pdf_bytes=pdf_bytes,
            page_count=page_count,
            filename=f"{filename}.pdf",
        )


async def generate_with_settings(
    pipeline: DocumentPipeline,
    settings_service: SettingsService,
    user_id: str,
    data: InvoiceData,
    template_id: Optional[str] = None,
    upload: Optional[bool] = None,
    deliver: Optional[bool] = None,
    send_email: Optional[bool] = None,
) -> GenerationResult:
    """Resolve options from the user's settings; explicit arguments win."""
    try:
        user_settings = await settings_service.get_or_create_settings(user_id)
    except RemoteServiceError as e:
        logger.error(f"Error reading settings for user {user_id}, using defaults: {e}")
        options = GenerationOptions(
            upload=True if upload is None else upload,
            deliver=True if deliver is None else deliver,
            send_email=True if send_email is None else send_email,
        )
        return await pipeline.generate(data, template_id, options)

    options = GenerationOptions(
        upload=user_settings.enable_s3_upload if upload is None else upload,
        deliver=True if deliver is None else deliver,
        # Email links to the uploaded copy
        send_email=(user_settings.enable_email_notifications and user_settings.enable_s3_upload)
        if send_email is None else send_email,
    )
    final_template = template_id or user_settings.default_template_id
    logger.info(f"Generating PDF with settings: template={final_template} options={options.model_dump()}")
    return await pipeline.generate(data, final_template, options)


async def generate_with_default_template(
    pipeline: DocumentPipeline,
    settings_service: SettingsService,
    user_id: str,
    data: InvoiceData,
) -> GenerationResult:
    return await generate_with_settings(pipeline, settings_service, user_id, data)
