import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from cloudcapsule.blobstore import LocalBlobStore
from cloudcapsule.config import Settings, configure_logging
from cloudcapsule.database import init_db, make_engine
from cloudcapsule.errors import CapsuleError

from cloudcapsule.routes.auth import router as auth_router
from cloudcapsule.routes.capsules import router as capsules_router
from cloudcapsule.routes.uploads import router as uploads_router

logger = logging.getLogger(__name__)


def utc_clock() -> datetime:
    return datetime.now(timezone.utc)


def create_app(settings: Optional[Settings] = None, clock: Optional[Callable[[], datetime]] = None) -> FastAPI:
    """
    Builds the API with its own engine, blob store and clock.

    Run with: uvicorn cloudcapsule.main:create_app --factory
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Cloud Capsule", description="Time-sealed capsules that open on their date")
    app.state.settings = settings
    app.state.clock = clock or utc_clock
    app.state.engine = make_engine(settings.db_url)
    app.state.blob_store = LocalBlobStore(settings.upload_dir, max_bytes=settings.max_upload_bytes)
    init_db(app.state.engine)

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    app.include_router(auth_router)
    app.include_router(capsules_router)
    app.include_router(uploads_router)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.exception_handler(CapsuleError)
    async def handle_capsule_error(request: Request, exc: CapsuleError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/")
    def root():
        return {"status": "Cloud Capsule backend alive"}

    logger.info("Cloud Capsule ready (db=%s)", settings.db_url.split("://", 1)[0])
    return app
