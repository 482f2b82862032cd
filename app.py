import logging
import os
import uuid

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_settings
from core.http.session import cleanup_session
from db import DatabaseManager
from routing.api import router as routing_router
from streets.api import router as zones_router
from tracking.api.sessions import router as sessions_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()
db_manager = DatabaseManager(settings)

app = FastAPI(
    title="Round Planner",
    description="Zones, street sides, optimized rounds and live progress.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
logger.info("CORS origins: %s", ", ".join(settings.cors_allowed_origins))

for router in (zones_router, routing_router, sessions_router):
    app.include_router(router)


@app.on_event("startup")
async def startup_event():
    """Bind the document models to MongoDB before serving."""
    try:
        await db_manager.init_beanie()
    except Exception:
        logger.critical("Database initialization failed, refusing to start", exc_info=True)
        raise
    logger.info("Round planner ready on database %s", settings.mongo_db)


@app.on_event("shutdown")
async def shutdown_event():
    await cleanup_session()
    db_manager.close()
    logger.info("Round planner stopped")


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    logger.warning("404 for %s: %s", request.url.path, exc.detail)
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"status": "error", "detail": exc.detail},
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    error_id = uuid.uuid4().hex
    logger.error(
        "Unhandled error %s on %s %s",
        error_id,
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "error", "error_id": error_id, "detail": str(exc)},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        log_level="info",
    )
