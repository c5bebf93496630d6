"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

import aiohttp
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from userfiles.config import settings
from userfiles.database import engine, get_db
from userfiles.middleware import RequestLoggingMiddleware
from userfiles.models import Base
from userfiles.services.identity import IdentityClient
from userfiles.services.object_store import create_object_store

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, build external clients, ensure the default bucket exists."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    http = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT_SECONDS))
    app.state.object_store = create_object_store(settings, http)
    app.state.identity = IdentityClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY or settings.SUPABASE_SERVICE_KEY,
        http,
    )

    from userfiles.database import async_session
    from userfiles.dependencies import default_storage_config
    from userfiles.services.file_repository import FileRepository
    from userfiles.services.file_service import FileService
    async with async_session() as session:
        service = FileService(FileRepository(session), app.state.object_store, default_storage_config())
        await service.ensure_bucket()

    logger.info("Storage backend: %s, bucket: %s", settings.FILE_STORAGE_TYPE, settings.STORAGE_BUCKET)

    yield

    # Cleanup
    await http.close()
    await engine.dispose()


app = FastAPI(
    title="User Files API",
    version="1.0.0",
    description="Auth, role-based user views and file storage backend.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from userfiles.routes.auth import router as auth_router
from userfiles.routes.users import router as users_router
from userfiles.routes.files import router as files_router
from userfiles.routes.storage import router as storage_router
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(files_router)
app.include_router(storage_router)
