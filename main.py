import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

import database
from auth_routes import router as auth_router
from config import config
from course_routes import router as course_router
from errors import AppError
from quiz_routes import router as quiz_router
from storage import get_media_store
from user_routes import router as user_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    for problem in config.validate():
        logger.warning(f"Configuration: {problem}")
    os.makedirs(config.UPLOAD_FOLDER, exist_ok=True)
    if database.db is not None:
        try:
            database.ensure_indexes(database.db)
        except Exception as e:
            logger.error(f"Could not ensure indexes: {e}")
    yield


app = FastAPI(title="LMS Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------- Error Handlers --------------------
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error(exc.status_code, exc.message)


def _describe(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid value"))
    return "Invalid request: " + "; ".join(parts)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, _describe(exc.errors()))


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_handler(request: Request, exc: PydanticValidationError):
    return _error(400, _describe(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, "Internal server error")


# -------------------- Root & Health --------------------
@app.get("/")
def read_root():
    return {"message": "LMS backend is running"}


@app.get("/health")
def health_check():
    """Check that the database and media host are reachable"""
    response = {
        "backend": "running",
        "database": "not configured",
        "media": "not configured",
        "config_problems": config.validate(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if database.db is not None:
        try:
            database.db.command("ping")
            response["database"] = "healthy"
        except Exception as e:
            response["database"] = f"unhealthy: {str(e)[:50]}"

    if config.BUCKET_NAME:
        response["media"] = "healthy" if get_media_store().ping() else "unhealthy"

    healthy = response["database"] == "healthy" and response["media"] == "healthy"
    return JSONResponse(status_code=200 if healthy else 503, content=response)


app.include_router(user_router)
app.include_router(auth_router)
app.include_router(course_router)
app.include_router(quiz_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
