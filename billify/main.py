# billify/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
import threading
import logging
import os

from billify.config.database import AsyncSessionLocal, init_db
from billify.config.settings import settings
from billify.delivery.api import editor, generation, records, templates
from billify.delivery.api import settings as settings_api
from billify.delivery.api.deps import Services
from billify.domain.document_pipeline import DocumentPipeline
from billify.domain.record_service import build_record_services
from billify.domain.settings_service import SettingsService
from billify.domain.template_service import TemplateService
from billify.infrastructure.cloudinary.upload_file import CloudinaryStorage
from billify.infrastructure.http.email_client import EmailNotifier
from billify.infrastructure.render.rasterizer import PlaywrightRasterizer

logging.getLogger("PIL").setLevel(logging.WARNING)
logger = logging.getLogger("uvicorn.error")

# --- Lazy service bootstrap state ---
_service_lock = threading.Lock()


def build_services(session_factory=AsyncSessionLocal, executor=None) -> Services:
    storage = CloudinaryStorage()
    return Services(
        templates=TemplateService(session_factory),
        settings=SettingsService(session_factory),
        records=build_record_services(session_factory),
        pipeline=DocumentPipeline(
            rasterizer=PlaywrightRasterizer(),
            storage=storage,
            notifier=EmailNotifier(),
            executor=executor,
        ),
        session_factory=session_factory,
    )


def _ensure_services(app: FastAPI) -> None:
    with _service_lock:  # Always acquire lock first
        if getattr(app.state, "services", None) is not None:
            return
        logger.info("Initializing Billify services (lazy-init)...")
        app.state.services = build_services(executor=getattr(app.state, "executor", None))
        logger.info(
            f"Services ready (cloudinary={settings.cloudinary_configured}, "
            f"email={bool(settings.EMAIL_API_ENDPOINT)})."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    max_workers = min(4, os.cpu_count() or 1)  # Conservative limit
    app.state.executor = ThreadPoolExecutor(max_workers=max_workers)
    logger.info(f"Service '{settings.PROJECT_NAME}' starting (mode: {settings.ENVIRONMENT}).")
    logger.info(f"Shared ThreadPoolExecutor created with {max_workers} workers.")
    app.state.db_ready = await init_db()
    yield
    logger.info("Shutting down ThreadPoolExecutor...")
    app.state.executor.shutdown(wait=True)
    logger.info(f"Service '{settings.PROJECT_NAME}' stopped.")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Billify Invoice Service",
        description="Invoice template designer, business records and PDF invoice generation",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Lazy-load only for API routes
    @app.middleware("http")
    async def lazy_boot(request: Request, call_next):
        if request.url.path.startswith(settings.API_V1_STR):
            _ensure_services(request.app)
        return await call_next(request)

    for module in (templates, editor, records, settings_api, generation):
        app.include_router(module.router, prefix=settings.API_V1_STR)

    @app.get("/")
    async def root():
        return {"message": "Billify Invoice Service", "version": "1.0.0", "status": "ok"}

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "service": "Billify 1.0",
            "services_loaded": getattr(app.state, "services", None) is not None,
            "database": getattr(app.state, "db_ready", None),
            "template_builder": settings.ENABLE_TEMPLATE_BUILDER,
        }

    return app


app = create_app()
