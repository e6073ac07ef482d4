# billify/delivery/api/deps.py
import logging
import secrets
import traceback
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from billify.config.settings import settings
from billify.domain.document_pipeline import DocumentPipeline
from billify.domain.errors import BillifyError, InvalidInputError, NotFoundError, RemoteServiceError
from billify.domain.record_service import InvoiceService, RecordService
from billify.domain.settings_service import SettingsService
from billify.domain.template_service import TemplateService

security = HTTPBasic()
logger = logging.getLogger("uvicorn.error")


@dataclass
class Services:
    templates: TemplateService
    settings: SettingsService
    records: Dict[str, RecordService]
    pipeline: DocumentPipeline
    session_factory: object
    sessions: Dict[str, object] = field(default_factory=dict)  # editor sessions by id

    @property
    def invoices(self) -> InvoiceService:
        return self.records["invoices"]


def verify_basic_auth(creds: HTTPBasicCredentials = Depends(security)) -> str:
    ok_user = secrets.compare_digest(creds.username, settings.BASIC_AUTH_USERNAME)
    ok_pass = secrets.compare_digest(creds.password, settings.BASIC_AUTH_PASSWORD)
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return creds.username


def current_user(
    username: str = Depends(verify_basic_auth),
    x_user_id: Optional[str] = Header(None),
) -> str:
    """Owning user id for storage scoping; the basic-auth user when no header is sent."""
    return x_user_id or username


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.error("Services not initialized")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready. Please try again in a moment.",
        )
    return services


_STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidInputError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RemoteServiceError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_error(e: Exception, context: str) -> HTTPException:
    """Map a domain error onto an HTTPException; anything unexpected becomes a logged 500."""
    if isinstance(e, BillifyError):
        for error_type, code in _STATUS_BY_ERROR:
            if isinstance(e, error_type):
                if code >= 500:
                    logger.error(f"{context}: {e}")
                return HTTPException(status_code=code, detail=str(e))
    logger.error(f"=== ENDPOINT ERROR in {context}: {e} ===\n{traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error.",
    )
