# Leadline backend entrypoint: public lead intake plus the admin lead API.

import logging
from urllib.parse import urlsplit

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from leadline.api import leads
from leadline.core.errors import StorageError
from leadline.core.logging import setup_logging
from leadline.core.settings import Settings, get_settings
from leadline.db.base import Base
from leadline.db.session import engine

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.api_version)

ALLOWED_METHODS = ["GET", "POST", "PATCH", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization"]


def allowed_origin(settings: Settings) -> str:
    parts = urlsplit(settings.site_url.strip())
    if not parts.scheme or not parts.netloc:
        return "*"
    return f"{parts.scheme}://{parts.netloc}"


def cors_headers(settings: Settings) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allowed_origin(settings),
        "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
        "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=[allowed_origin(settings)],
    allow_methods=ALLOWED_METHODS,
    allow_headers=ALLOWED_HEADERS,
)


@app.middleware("http")
async def answer_preflight(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=cors_headers(get_settings()))
    return await call_next(request)


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message}, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(400, "Invalid request")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("STORE: request failed on mandatory write: %s", exc)
    return error_response(500, "Server error")


app.include_router(leads.router)


@app.get("/")
def read_root():
    return {"app": "Leadline backend", "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("leadline.main:app", host="0.0.0.0", port=8080)
