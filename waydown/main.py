import logging
import os
import random
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .database import create_tables
from .exceptions import ImageValidationError
from .routers.ai import router as ai_router
from .routers.auth import router as auth_router
from .routers.community import router as community_router
from .routers.errors import router as errors_router
from .routers.health import router as health_router
from .routers.interests import router as interests_router
from .routers.spots import router as spots_router
from .routers.users import router as users_router
from .routers.welcome import router as welcome_router
from .routers.ws import router as ws_router
from .services.rate_limit import general_limiter, strict_limiter
from .services.realtime import manager

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    429: "too_many_requests",
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "X-XSS-Protection": "0",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.storage_backend == "local":
        os.makedirs(settings.media_root, exist_ok=True)
    await create_tables()
    yield
    await manager.shutdown()


app = FastAPI(
    title="Waydown API",
    description="""
# Waydown API

Waydown is a social travel-discovery backend: submit geotagged spots, follow
other travelers, like and review spots and browse feeds ranked by your
interests and location.

## Authentication

`POST /api/auth/register` or `POST /api/auth/login` return an access token and
a refresh token. Send `Authorization: Bearer <access_token>`; renew it with
`POST /api/auth/refresh`.

## Pagination

List endpoints take `page` (from 1) and `limit` (1-100, default 10) and answer
with `items`, `total`, `page`, `limit` and `total_pages`.

## Real time

Connect to `/ws?token=<access_token>` and join rooms with `joinUser`,
`joinSpot` or `joinPost` messages.

## Rate limits

- All `/api` routes: 500 requests per 15 minutes per IP
- Auth and community: 50 requests per 15 minutes per IP
- Likes, reviews and comments: 50 per 15 minutes per user
""",
    version="1.0.0",
    lifespan=lifespan,
)

api_limits = [Depends(general_limiter)]
strict_limits = [Depends(general_limiter), Depends(strict_limiter)]

app.include_router(health_router)
app.include_router(auth_router, dependencies=strict_limits)
app.include_router(users_router, dependencies=api_limits)
app.include_router(spots_router, dependencies=api_limits)
app.include_router(community_router, dependencies=strict_limits)
app.include_router(interests_router, dependencies=api_limits)
app.include_router(welcome_router, dependencies=api_limits)
app.include_router(errors_router, dependencies=api_limits)
app.include_router(ai_router, dependencies=api_limits)
app.include_router(ws_router)

# Serve uploaded media
app.mount("/media", StaticFiles(directory=settings.media_root, check_dir=False), name="media")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", [
                        "method", "route", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5)
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def error_response(request: Request, status_code: int, message: str, details=None,
                   headers=None, code: str | None = None) -> JSONResponse:
    request_id = _request_id(request)
    error = {"code": code or ERROR_CODES.get(status_code, "error"), "message": message}
    if details is not None:
        error["details"] = details
    response_headers = {"X-Request-ID": request_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(status_code=status_code,
                        content={"error": error, "request_id": request_id},
                        headers=response_headers)


@app.middleware("http")
async def add_request_id_and_errors(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    if settings.debug or random.random() < settings.log_sample_rate:
        logger.info({
            "event": "request",
            "method": request.method,
            "path": request.url.path,
            "rid": request_id,
        })

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(f"Unhandled error rid={request_id}")
        response = error_response(request, 500, "Internal Server Error",
                                  code="internal_server_error")
    elapsed = time.perf_counter() - start

    REQUEST_LATENCY.observe(elapsed)
    route = getattr(request.scope.get("route"), "path", request.url.path)
    REQUEST_COUNT.labels(method=request.method,
                         route=route, status=response.status_code).inc()
    response.headers["X-Request-ID"] = request_id
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
            "type": err.get("type", "value_error"),
        }
        for err in exc.errors()
    ]
    return error_response(request, 400, "Validation error", details=details,
                          code="validation_error")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(request, exc.status_code, message,
                          headers=getattr(exc, "headers", None))


@app.exception_handler(ImageValidationError)
async def image_validation_handler(request: Request, exc: ImageValidationError):
    return error_response(request, exc.status_code, str(exc))


@app.get("/")
async def root():
    return {"message": f"{settings.app_name} API is running"}


@app.get("/metrics")
async def metrics(request: Request):
    # In dev/debug mode, expose metrics without auth
    if not settings.debug:
        token = request.headers.get("X-Metrics-Token")
        if not settings.metrics_token or token != settings.metrics_token:
            return error_response(request, 403, "Forbidden")
    data = generate_latest()
    return PlainTextResponse(content=data, media_type=CONTENT_TYPE_LATEST)
