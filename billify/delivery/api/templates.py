# billify/delivery/api/templates.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from billify.delivery.api.deps import Services, current_user, get_services, to_http_error, verify_basic_auth
from billify.delivery.schemas.body import TemplateCreate, TemplateDuplicate, TemplateUpdate
from billify.domain import component_registry
from billify.domain.errors import NotFoundError
from billify.domain.pdf_templates import INVOICE_TEMPLATES

router = APIRouter(prefix="/templates", tags=["templates"], dependencies=[Depends(verify_basic_auth)])
logger = logging.getLogger("uvicorn.error")


async def _owned(services: Services, user_id: str, template_id: str):
    template = await services.templates.get_template(template_id)
    if template is None or template.user_id != user_id:
        raise NotFoundError(f"Template {template_id} not found")
    return template


@router.get("/components")
async def list_components():
    return {
        category: [d.model_dump(by_alias=True) for d in definitions]
        for category, definitions in component_registry.by_category().items()
    }


@router.get("/catalog")
async def list_catalog():
    return [t.model_dump() for t in INVOICE_TEMPLATES]


@router.get("")
async def list_templates(user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    try:
        return [t.model_dump(mode="json", by_alias=True) for t in await services.templates.get_user_templates(user_id)]
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "list_templates")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_template(body: TemplateCreate, user_id: str = Depends(current_user),
                          services: Services = Depends(get_services)):
    try:
        layout = body.layout or component_registry.create_blank_template(body.name, body.description or "")
        saved = await services.templates.save_template(
            user_id, body.name, layout,
            description=body.description, is_default=body.is_default, thumbnail=body.thumbnail,
        )
        logger.info(f"Template '{saved.name}' ({saved.id}) created for user {user_id}")
        return saved.model_dump(mode="json", by_alias=True)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "create_template")


@router.get("/default")
async def get_default_template(user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    try:
        template = await services.templates.get_default_template(user_id)
        if template is None:
            raise NotFoundError("No default template")
        return template.model_dump(mode="json", by_alias=True)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "get_default_template")


@router.get("/{template_id}")
async def get_template(template_id: str, user_id: str = Depends(current_user),
                       services: Services = Depends(get_services)):
    try:
        return (await _owned(services, user_id, template_id)).model_dump(mode="json", by_alias=True)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "get_template")


@router.put("/{template_id}")
async def update_template(template_id: str, body: TemplateUpdate, user_id: str = Depends(current_user),
                          services: Services = Depends(get_services)):
    try:
        await _owned(services, user_id, template_id)
        updates = {name: getattr(body, name) for name in body.model_fields_set}
        updated = await services.templates.update_template(template_id, **updates)
        return updated.model_dump(mode="json", by_alias=True)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "update_template")


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(template_id: str, user_id: str = Depends(current_user),
                          services: Services = Depends(get_services)):
    try:
        await _owned(services, user_id, template_id)
        await services.templates.delete_template(template_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "delete_template")


@router.post("/{template_id}/default")
async def set_default_template(template_id: str, user_id: str = Depends(current_user),
                               services: Services = Depends(get_services)):
    try:
        await _owned(services, user_id, template_id)
        await services.templates.set_default_template(user_id, template_id)
        return {"status": "ok", "default_template_id": template_id}
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "set_default_template")


@router.post("/{template_id}/duplicate", status_code=status.HTTP_201_CREATED)
async def duplicate_template(template_id: str, body: TemplateDuplicate, user_id: str = Depends(current_user),
                             services: Services = Depends(get_services)):
    try:
        await _owned(services, user_id, template_id)
        copy = await services.templates.duplicate_template(template_id, user_id, body.name)
        return copy.model_dump(mode="json", by_alias=True)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "duplicate_template")
