"""
Main FastAPI application for the Content Paywall API.
Serves orders, settlement (client callback + gateway webhook), entitlements,
admin, health and metrics.
"""
import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.deps import close_process_clients
from app.api.routes import admin, entitlements, health, orders, payments
from app.core.config import settings
from app.core.errors import FulfillmentPersistenceError, PaywallError
from app.core.logging import configure_logging
from app.utils.metrics import router as metrics_router


configure_logging()
logger = logging.getLogger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_process_clients()


app = FastAPI(
    title="Content Paywall API",
    description="Payment orders and idempotent content fulfillment",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8888"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Razorpay-Signature", settings.request_id_header],
)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or str(uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    logger.info(
        "http_request",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "latency_ms": round((time.perf_counter() - start) * 1000, 1),
        },
    )
    return response


# Errors
@app.exception_handler(FulfillmentPersistenceError)
async def fulfillment_persistence_handler(request: Request, exc: FulfillmentPersistenceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "verified": True, "status": "fulfillment_pending", "error": exc.message},
    )


@app.exception_handler(PaywallError)
async def paywall_error_handler(request: Request, exc: PaywallError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Missing required parameters", "detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(entitlements.router)
app.include_router(admin.router)
app.include_router(metrics_router)
