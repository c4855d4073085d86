import logging
import re

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import CORS_ORIGINS, LOG_LEVEL
from .core.errors import HitboxError, UpstreamUnavailable
from .db import init_db
from .routes import auth, comments, game_status, games, lists, reviews, stats, users

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Hitbox API", version="0.1.0")

_LOCAL_ORIGIN_REGEX = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$", re.IGNORECASE)


def _is_origin_allowed(origin: str) -> bool:
    if not origin:
        return False
    if "*" in CORS_ORIGINS or origin in CORS_ORIGINS:
        return True
    return bool(_LOCAL_ORIGIN_REGEX.match(origin))


def _error_response(request: Request, status_code: int, detail) -> JSONResponse:
    """JSON error body that still carries CORS headers for allowed origins."""
    origin = request.headers.get("origin", "")
    response = JSONResponse(status_code=status_code, content={"detail": detail})
    if _is_origin_allowed(origin):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "*"
    return response


@app.exception_handler(UpstreamUnavailable)
async def upstream_exception_handler(request: Request, exc: UpstreamUnavailable):
    logger.error("%s %s: upstream failure: %s", request.method, request.url.path, exc.reason)
    return _error_response(request, exc.status_code, exc.detail)


@app.exception_handler(HitboxError)
async def hitbox_exception_handler(request: Request, exc: HitboxError):
    return _error_response(request, exc.status_code, exc.detail)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        errors.append(f"{location}: {message}" if location else message)
    return _error_response(request, 400, "; ".join(errors) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(request, exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(request, 500, "Server error")


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    logger.info("Hitbox API started")


@app.get("/")
def root():
    return {"message": "Hitbox API is running"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(games.router, prefix="/games", tags=["games"])
app.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
app.include_router(lists.router, prefix="/lists", tags=["lists"])
app.include_router(game_status.router, prefix="/game-status", tags=["game-status"])
app.include_router(comments.router, prefix="/comments", tags=["comments"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(stats.router, prefix="/stats", tags=["stats"])
