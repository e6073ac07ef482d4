# billify/delivery/api/settings.py
from fastapi import APIRouter, Depends, HTTPException

from billify.delivery.api.deps import Services, current_user, get_services, to_http_error, verify_basic_auth
from billify.domain.settings_service import SettingsUpdate

router = APIRouter(prefix="/settings", tags=["settings"], dependencies=[Depends(verify_basic_auth)])


@router.get("")
async def get_settings(user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    try:
        return (await services.settings.get_or_create_settings(user_id)).model_dump()
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "get_settings")


@router.patch("")
async def update_settings(body: SettingsUpdate, user_id: str = Depends(current_user),
                          services: Services = Depends(get_services)):
    try:
        # Settings rows are created lazily on first access
        await services.settings.get_or_create_settings(user_id)
        return (await services.settings.update_settings(user_id, body)).model_dump()
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "update_settings")
