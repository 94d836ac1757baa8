from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, Dict, List
from datetime import datetime
import time
import uuid
from contextlib import asynccontextmanager

from common.config import settings
from common.logger import setup_logging, get_logger, LogContext
from recents import (
    CacheManager,
    EntityRef,
    SessionCacheRegistry,
    is_valid_session_id,
    new_session_id,
    sweep_session_dirs,
)

# Setup logging
setup_logging()
logger = get_logger(__name__)


class CompareRequest(BaseModel):
    users: List[EntityRef] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Recents service starting...")
    logger.info(f"Environment: {'DEBUG' if settings.debug else 'PRODUCTION'}")
    logger.info(
        f"Storage backend: {settings.recents_storage_backend} "
        f"(max {settings.recents_max_entries} entries, {settings.recents_max_sessions} sessions)"
    )
    app.state.recents = SessionCacheRegistry.from_settings(settings)
    if settings.recents_storage_backend.strip().lower() == "file":
        sweep_session_dirs(
            settings.recents_storage_dir,
            max_age_seconds=settings.recents_session_ttl_hours * 3600,
        )
    try:
        yield
    finally:
        # Shutdown
        logger.info(f"Recents service stopping ({len(app.state.recents)} live sessions)")


app = FastAPI(
    title="Recents API",
    description="Session cache of recently viewed and compared users",
    version="0.1.0",
    lifespan=lifespan,
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing information."""
    request_id = str(uuid.uuid4())[:8]
    start_time = time.time()

    context = {"request_id": request_id}
    session_id = request.cookies.get(settings.session_cookie_name)
    if is_valid_session_id(session_id):
        context["session_id"] = session_id

    with LogContext(logger, **context):
        logger.info(
            f"Request started | {request.method} {request.url.path} | "
            f"ID: {request_id} | Client: {request.client.host if request.client else 'unknown'}"
        )

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            logger.info(
                f"Request completed | {request.method} {request.url.path} | "
                f"ID: {request_id} | Status: {response.status_code} | "
                f"Duration: {duration:.3f}s"
            )
            return response
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed | {request.method} {request.url.path} | "
                f"ID: {request_id} | Duration: {duration:.3f}s | Error: {str(e)}",
                exc_info=True
            )
            raise


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_registry(request: Request) -> SessionCacheRegistry:
    return request.app.state.recents


def get_session_id(request: Request, response: Response) -> str:
    """Session id from the session cookie; starts a new session when missing or invalid."""
    session_id = request.cookies.get(settings.session_cookie_name)
    if not is_valid_session_id(session_id):
        session_id = new_session_id()
        # No max_age: the cookie ends with the browser session
        response.set_cookie(
            settings.session_cookie_name,
            session_id,
            httponly=True,
            samesite="lax",
        )
    return session_id


def get_cache(
    session_id: str = Depends(get_session_id),
    registry: SessionCacheRegistry = Depends(get_registry),
) -> CacheManager:
    return registry.get(session_id)


def _recent_payload(cache: CacheManager) -> List[Dict[str, Any]]:
    return [entry.to_record() for entry in cache.list_recent_users()]


def _compared_payload(cache: CacheManager) -> List[Dict[str, Any]]:
    return [group.to_record() for group in cache.list_compared_groups()]


@app.get("/health")
def health(registry: SessionCacheRegistry = Depends(get_registry)):
    """Detailed health check."""
    return {
        "status": "healthy",
        "storage_backend": settings.recents_storage_backend,
        "sessions": len(registry),
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/api/recents")
def get_recents(cache: CacheManager = Depends(get_cache)):
    return {
        "ready": cache.ready(),
        "recent_users": _recent_payload(cache),
        "compared_users": _compared_payload(cache),
    }


@app.delete("/api/recents")
def clear_recents(cache: CacheManager = Depends(get_cache)):
    cache.clear_all()
    return {"ready": cache.ready(), "recent_users": [], "compared_users": []}


@app.get("/api/recents/users")
def list_recent_users(cache: CacheManager = Depends(get_cache)):
    return {"recent_users": _recent_payload(cache)}


@app.post("/api/recents/users")
def add_recent_user(payload: EntityRef, cache: CacheManager = Depends(get_cache)):
    entry = cache.add_recent_user(payload)
    return {"entry": entry.to_record(), "recent_users": _recent_payload(cache)}


@app.delete("/api/recents/users/{login}")
def remove_recent_user(login: str, cache: CacheManager = Depends(get_cache)):
    removed = cache.remove_recent_user(login)
    return {"removed": removed, "recent_users": _recent_payload(cache)}


@app.get("/api/recents/comparisons")
def list_compared_groups(cache: CacheManager = Depends(get_cache)):
    return {"compared_users": _compared_payload(cache)}


@app.post("/api/recents/comparisons")
def add_compared_pair(payload: CompareRequest, cache: CacheManager = Depends(get_cache)):
    group = cache.add_compared_pair(payload.users)
    return {"added": group is not None, "compared_users": _compared_payload(cache)}


@app.delete("/api/session")
def end_session(
    request: Request,
    response: Response,
    registry: SessionCacheRegistry = Depends(get_registry),
):
    """End the browser session: clear its cache and drop the cookie."""
    session_id = request.cookies.get(settings.session_cookie_name)
    if not is_valid_session_id(session_id):
        return {"status": "no_session"}
    registry.end_session(session_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"status": "ended"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
