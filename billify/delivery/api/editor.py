# billify/delivery/api/editor.py
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse

from billify.config.settings import settings
from billify.delivery.api.deps import Services, current_user, get_services, to_http_error, verify_basic_auth
from billify.delivery.schemas.body import ComponentDrop, ComponentPatch, PointerEvent, SessionCreate, Selection, ViewUpdate
from billify.domain.errors import NotFoundError
from billify.domain.preview import render_preview
from billify.domain.template_editor import TemplateEditor

logger = logging.getLogger("uvicorn.error")


def require_template_builder() -> None:
    if not settings.ENABLE_TEMPLATE_BUILDER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Template builder is disabled")


router = APIRouter(
    prefix="/editor/sessions",
    tags=["editor"],
    dependencies=[Depends(verify_basic_auth), Depends(require_template_builder)],
)


def _now() -> float:
    return time.monotonic()


@dataclass
class EditorSession:
    id: str
    user_id: str
    editor: TemplateEditor
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_seen: float = field(default_factory=lambda: _now())

    def state(self) -> dict:
        return {"session_id": self.id, **self.editor.snapshot()}


def evict_idle_sessions(services: Services) -> int:
    """Drop sessions idle for longer than EDITOR_SESSION_TTL_SECONDS."""
    now = _now()
    expired = [
        session_id for session_id, session in services.sessions.items()
        if now - session.last_seen > settings.EDITOR_SESSION_TTL_SECONDS
    ]
    for session_id in expired:
        del services.sessions[session_id]
    if expired:
        logger.info(f"Evicted {len(expired)} idle editor session(s)")
    return len(expired)


def _make_room(services: Services, user_id: str) -> None:
    # Least recently used sessions of the user go first
    owned = sorted(
        (s for s in services.sessions.values() if s.user_id == user_id),
        key=lambda s: s.last_seen,
    )
    while owned and len(owned) >= settings.EDITOR_SESSIONS_PER_USER:
        oldest = owned.pop(0)
        del services.sessions[oldest.id]
        logger.info(f"Editor session {oldest.id} closed: user {user_id} reached the session limit")


def _session(services: Services, user_id: str, session_id: str) -> EditorSession:
    evict_idle_sessions(services)
    session = services.sessions.get(session_id)
    if session is None or session.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Editor session {session_id} not found")
    session.last_seen = _now()
    return session


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(body: SessionCreate, user_id: str = Depends(current_user),
                         services: Services = Depends(get_services)):
    try:
        editor = TemplateEditor(history_limit=settings.HISTORY_LIMIT, grid_size=settings.GRID_SIZE)
        if body.template_id:
            saved = await services.templates.get_template(body.template_id)
            if saved is None or saved.user_id != user_id:
                raise NotFoundError(f"Template {body.template_id} not found")
            editor.replace_layout(saved.layout)
        else:
            editor.new_template(body.name or "Untitled Template", body.description)

        evict_idle_sessions(services)
        _make_room(services, user_id)
        session = EditorSession(id=uuid.uuid4().hex, user_id=user_id, editor=editor)
        services.sessions[session.id] = session
        logger.info(f"Editor session {session.id} opened for user {user_id}")
        return session.state()
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "create_session")


@router.get("/{session_id}")
async def get_session(session_id: str, user_id: str = Depends(current_user),
                      services: Services = Depends(get_services)):
    return _session(services, user_id, session_id).state()


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: str, user_id: str = Depends(current_user),
                        services: Services = Depends(get_services)):
    _session(services, user_id, session_id)
    del services.sessions[session_id]


@router.post("/{session_id}/components", status_code=status.HTTP_201_CREATED)
async def drop_component(session_id: str, body: ComponentDrop, user_id: str = Depends(current_user),
                         services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    async with session.lock:
        try:
            component = session.editor.canvas.drop(body.type, body.x, body.y)
            return {"component": component.model_dump(by_alias=True), **session.state()}
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, "drop_component")


@router.patch("/{session_id}/components/{component_id}")
async def update_component(session_id: str, component_id: str, body: ComponentPatch,
                           user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    async with session.lock:
        try:
            session.editor.select(component_id)
            component = session.editor.properties.apply(body.model_dump(exclude_unset=True))
            return {"component": component.model_dump(by_alias=True), **session.state()}
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, "update_component")


@router.delete("/{session_id}/components/{component_id}")
async def delete_component(session_id: str, component_id: str, user_id: str = Depends(current_user),
                           services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    async with session.lock:
        try:
            session.editor.delete_component(component_id)
            return session.state()
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, "delete_component")


@router.post("/{session_id}/select")
async def select_component(session_id: str, body: Selection, user_id: str = Depends(current_user),
                           services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    async with session.lock:
        try:
            session.editor.select(body.component_id)
            return {"editable": session.editor.properties.editable_fields(), **session.state()}
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, "select_component")


@router.post("/{session_id}/pointer")
async def pointer(session_id: str, body: PointerEvent, user_id: str = Depends(current_user),
                  services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    canvas = session.editor.canvas
    async with session.lock:
        try:
            update = None
            if body.action == "down":
                canvas.pointer_down(body.x, body.y)
            elif body.action == "move":
                update = canvas.pointer_move(body.x, body.y)
            elif body.action == "up":
                canvas.pointer_up()
            else:
                canvas.pointer_leave()
            return {"update": update, **session.state()}
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, "pointer")


@router.post("/{session_id}/undo")
async def undo(session_id: str, user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    async with session.lock:
        changed = session.editor.undo() is not None
        return {"changed": changed, **session.state()}


@router.post("/{session_id}/redo")
async def redo(session_id: str, user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    async with session.lock:
        changed = session.editor.redo() is not None
        return {"changed": changed, **session.state()}


@router.put("/{session_id}/view")
async def update_view(session_id: str, body: ViewUpdate, user_id: str = Depends(current_user),
                      services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    canvas = session.editor.canvas
    async with session.lock:
        if body.zoom is not None:
            canvas.set_zoom(body.zoom)
        if body.grid_snap is not None:
            canvas.grid_snap = body.grid_snap
        if body.show_grid is not None:
            canvas.show_grid = body.show_grid
        return session.state()


@router.post("/{session_id}/save")
async def save_session(session_id: str, user_id: str = Depends(current_user),
                       services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    async with session.lock:
        try:
            saved = await services.templates.save_layout(user_id, session.editor.layout)
            return {"template": saved.model_dump(mode="json", by_alias=True), **session.state()}
        except HTTPException:
            raise
        except Exception as e:
            raise to_http_error(e, "save_session")


@router.get("/{session_id}/preview", response_class=HTMLResponse)
async def preview(session_id: str, invoice_id: Optional[str] = None, user_id: str = Depends(current_user),
                  services: Services = Depends(get_services)):
    session = _session(services, user_id, session_id)
    try:
        data = await services.invoices.load_invoice_data(user_id, invoice_id) if invoice_id else None
        logo_src = None
        if data and data.company.logo_url:
            logo_src = await services.pipeline.logo_resolver.resolve(data.company.logo_url)
        return HTMLResponse(render_preview(session.editor.layout, data, logo_src=logo_src))
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "preview")
