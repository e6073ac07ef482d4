# billify/delivery/api/generation.py
import logging
import threading

from fastapi import APIRouter, Depends, HTTPException, Response

from billify.delivery.api.deps import Services, current_user, get_services, to_http_error, verify_basic_auth
from billify.delivery.schemas.body import GenerationRequest
from billify.domain.document_pipeline import generate_with_default_template, generate_with_settings

router = APIRouter(tags=["generation"], dependencies=[Depends(verify_basic_auth)])
logger = logging.getLogger("uvicorn.error")


@router.post("/invoices/{invoice_id}/pdf")
async def generate_invoice_pdf(invoice_id: str, body: GenerationRequest, user_id: str = Depends(current_user),
                               services: Services = Depends(get_services)):
    logger.info(f"=== ENDPOINT START pdf for invoice {invoice_id} (threads={threading.active_count()}) ===")
    try:
        data = await services.invoices.load_invoice_data(user_id, invoice_id)
        result = await generate_with_settings(
            services.pipeline, services.settings, user_id, data,
            template_id=body.template_id,
            upload=body.upload,
            deliver=body.deliver,
            send_email=body.send_email,
        )
        logger.info(f"=== ENDPOINT SUCCESS pdf for invoice {invoice_id} ===")
        if body.download:
            return Response(
                content=result.pdf_bytes,
                media_type="application/pdf",
                headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
            )
        return result.model_dump(exclude={"pdf_bytes"})
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "generate_invoice_pdf")


@router.post("/invoices/{invoice_id}/pdf/default")
async def generate_invoice_pdf_default(invoice_id: str, user_id: str = Depends(current_user),
                                       services: Services = Depends(get_services)):
    try:
        data = await services.invoices.load_invoice_data(user_id, invoice_id)
        result = await generate_with_default_template(services.pipeline, services.settings, user_id, data)
        return result.model_dump(exclude={"pdf_bytes"})
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "generate_invoice_pdf_default")
