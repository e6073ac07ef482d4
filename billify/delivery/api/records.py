# billify/delivery/api/records.py
import asyncio
import logging
from typing import Type

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from billify.delivery.api.deps import Services, current_user, get_services, to_http_error, verify_basic_auth
from billify.delivery.schemas.body import (
    ClientBody, CompanyBody, InvoiceBody, LogoUpload, ProductBody, record_values,
)
from billify.domain.errors import InvalidInputError
from billify.domain.invoice_number import generate_invoice_number
from billify.infrastructure.images.logo import decode_data_url, probe_image, validate_base64_image

router = APIRouter(tags=["records"], dependencies=[Depends(verify_basic_auth)])
logger = logging.getLogger("uvicorn.error")


@router.post("/invoices/number")
async def next_invoice_number(user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    return {"invoice_number": await generate_invoice_number(services.session_factory, user_id)}


@router.post("/companies/{record_id}/logo")
async def upload_company_logo(record_id: str, body: LogoUpload, user_id: str = Depends(current_user),
                              services: Services = Depends(get_services)):
    """Store a base64 logo and point the company profile at it.

    Without configured object storage the data URL itself is kept.
    """
    companies = services.records["companies"]
    try:
        await companies.get(user_id, record_id)
        check = validate_base64_image(body.data_url)
        if not check.is_valid or not await probe_image(body.data_url):
            raise InvalidInputError(f"Invalid logo image: {'; '.join(check.issues) or 'cannot be decoded'}")

        logo_url = body.data_url
        storage = services.pipeline.storage
        if storage is not None and storage.validate_config():
            mime_type, data = decode_data_url(body.data_url)
            extension = mime_type.split("/", 1)[-1].split("+", 1)[0]
            loop = asyncio.get_running_loop()
            logo_url = await loop.run_in_executor(
                services.pipeline.executor, storage.upload_logo, data, f"logo.{extension}", mime_type
            )
            logger.info(f"Logo for company {record_id} uploaded: {logo_url}")
        return await companies.update(user_id, record_id, {"logo_url": logo_url})
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "upload_company_logo")


def _register(collection: str, body_model: Type[BaseModel]) -> None:
    """CRUD routes for one record collection, all scoped to the calling user."""

    async def list_records(user_id: str = Depends(current_user), services: Services = Depends(get_services)):
        try:
            return await services.records[collection].list(user_id)
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, f"list {collection}")

    async def get_record(record_id: str, user_id: str = Depends(current_user),
                         services: Services = Depends(get_services)):
        try:
            return await services.records[collection].get(user_id, record_id)
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, f"get {collection}")

    async def create_record(body: body_model, user_id: str = Depends(current_user),
                            services: Services = Depends(get_services)):
        try:
            return await services.records[collection].create(user_id, record_values(body))
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, f"create {collection}")

    async def update_record(record_id: str, body: body_model, user_id: str = Depends(current_user),
                            services: Services = Depends(get_services)):
        try:
            return await services.records[collection].update(user_id, record_id, record_values(body))
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, f"update {collection}")

    async def delete_record(record_id: str, user_id: str = Depends(current_user),
                            services: Services = Depends(get_services)):
        try:
            await services.records[collection].delete(user_id, record_id)
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, f"delete {collection}")

    path = f"/{collection}"
    router.add_api_route(path, list_records, methods=["GET"], name=f"list_{collection}")
    router.add_api_route(path, create_record, methods=["POST"], status_code=status.HTTP_201_CREATED,
                         name=f"create_{collection}")
    router.add_api_route(f"{path}/{{record_id}}", get_record, methods=["GET"], name=f"get_{collection}")
    router.add_api_route(f"{path}/{{record_id}}", update_record, methods=["PUT"], name=f"update_{collection}")
    router.add_api_route(f"{path}/{{record_id}}", delete_record, methods=["DELETE"],
                         status_code=status.HTTP_204_NO_CONTENT, name=f"delete_{collection}")


_register("companies", CompanyBody)
_register("clients", ClientBody)
_register("products", ProductBody)
_register("invoices", InvoiceBody)
