import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, Request, Depends, HTTPException, status
from pydantic import ValidationError

from sms_relay.cache import SmsCacheStore
from sms_relay.config import settings
from sms_relay.errors import (
    CorruptRecord,
    InvalidRecord,
    NoCodeFound,
    SerializationFailed,
    SmsNotFound,
    StoreError,
    StoreUnavailable,
)
from sms_relay.extractor import CodeExtractor
from sms_relay.logging_utils import setup_logging, RequestLoggingMiddleware, log_sms_data
from sms_relay.metrics import (
    get_metrics,
    get_metrics_content_type,
    record_latest_write_failure,
    record_lookup_outcome,
    record_receive_outcome,
)
from sms_relay.redis_client import build_redis_client, check_redis_health
from sms_relay.schemas import (
    ErrorResponse,
    HealthResponse,
    LatestSmsResponse,
    ReceiveSmsData,
    ReceiveSmsRequest,
    ReceiveSmsResponse,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Connect to Redis (unless a client was injected) and build the cache store
    - Shutdown: Release the connection pool we created
    """
    owns_client = getattr(app.state, "redis", None) is None
    if owns_client:
        app.state.redis = build_redis_client(settings)

    # An unreachable Redis fails requests, not the process; /health/ready reports it
    if await check_redis_health(app.state.redis):
        logger.info(f"Redis connected: {settings.REDIS_HOST}:{settings.REDIS_PORT} db={settings.REDIS_DB}")
    else:
        logger.error(f"Redis not reachable at {settings.REDIS_HOST}:{settings.REDIS_PORT}, starting anyway")

    app.state.cache_store = SmsCacheStore(
        app.state.redis,
        extractor=CodeExtractor(settings.CODE_ANCHORS),
        ttl_seconds=settings.SMS_TTL_SECONDS,
        read_timeout=settings.REDIS_READ_TIMEOUT,
        write_timeout=settings.REDIS_WRITE_TIMEOUT,
    )
    yield
    if owns_client:
        await app.state.redis.aclose()
        app.state.redis = None


app = FastAPI(
    title="SMS Code Relay",
    description="Extracts verification codes from inbound SMS and serves the latest one per sender",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


def get_cache_store(request: Request) -> SmsCacheStore:
    """Dependency returning the cache store built at startup."""
    return request.app.state.cache_store


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(request: Request, response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if Redis answers PING, 503 otherwise.
    """
    if not await check_redis_health(request.app.state.redis):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Redis not reachable"
        )

    return HealthResponse(status="ready")


# =============================================================================
# SMS Routes
# =============================================================================

@app.post(
    "/api/receive_sms",
    response_model=ReceiveSmsResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No verification code in content"},
        422: {"description": "Validation error"},
        500: {"model": ErrorResponse, "description": "Serialization or cache failure"},
        503: {"model": ErrorResponse, "description": "Redis unavailable"},
    }
)
async def receive_sms(
    request: Request,
    store: SmsCacheStore = Depends(get_cache_store),
) -> ReceiveSmsResponse:
    """
    Ingest an inbound SMS and cache its verification code.

    - Validates the body: from, content, received_at (ms, number or numeric string)
    - Extracts a 4-8 digit code; only the code is stored
    - Writes sms:<from>:<received_at> and latest_sms:<from>, both with the configured TTL
    """
    raw_body = await request.body()
    logger.debug(f"Request body size: {len(raw_body)} bytes")

    try:
        body_dict = json.loads(raw_body)
        sms = ReceiveSmsRequest.model_validate(body_dict)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON: {e}")
        record_receive_outcome("validation_error")
        log_sms_data(request=request, result="validation_error")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid JSON: {str(e)}"
        )
    except ValidationError as e:
        logger.warning(f"Validation error: {e}")
        record_receive_outcome("validation_error")
        log_sms_data(
            request=request,
            sender=body_dict.get("from") if isinstance(body_dict, dict) else None,
            result="validation_error"
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    try:
        outcome = await store.record(sms.sender, sms.content, sms.received_at)
    except NoCodeFound as e:
        record_receive_outcome("no_code")
        log_sms_data(request=request, sender=sms.sender, result="no_code")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except InvalidRecord as e:
        record_receive_outcome("validation_error")
        log_sms_data(request=request, sender=sms.sender, result="validation_error")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except StoreUnavailable:
        record_receive_outcome("error")
        log_sms_data(request=request, sender=sms.sender, result="error")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="cache unavailable"
        )
    except (SerializationFailed, StoreError) as e:
        logger.error(f"Failed to store SMS from {sms.sender}: {e}")
        record_receive_outcome("error")
        log_sms_data(request=request, sender=sms.sender, result="error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="failed to store SMS"
        )

    if not outcome.latest_written:
        record_latest_write_failure()

    record = outcome.record
    logger.info(
        f"SMS received - from: {record.sender}, code: {record.code}, "
        f"received at: {record.received_at_display()}"
    )
    record_receive_outcome("stored")
    log_sms_data(
        request=request,
        sender=record.sender,
        result="stored",
        latest_written=outcome.latest_written
    )

    return ReceiveSmsResponse(
        data=ReceiveSmsData(
            cache_key=outcome.historic_key,
            sender=record.sender,
            timestamp=record.received_at,
            code=record.code,
        )
    )


@app.get(
    "/api/latest_sms/{phone}",
    response_model=LatestSmsResponse,
    responses={
        404: {"model": ErrorResponse, "description": "No SMS cached for this sender"},
        500: {"model": ErrorResponse, "description": "Cache read or decode failure"},
        503: {"model": ErrorResponse, "description": "Redis unavailable"},
    }
)
async def latest_sms(
    request: Request,
    phone: str,
    store: SmsCacheStore = Depends(get_cache_store),
) -> LatestSmsResponse:
    """
    Return the most recently received code for a sender.

    Only the latest pointer is consulted; it expires together with the
    historic key after the configured TTL.
    """
    logger.info(f"GET /api/latest_sms: phone={phone}")

    try:
        record = await store.latest(phone)
    except SmsNotFound:
        record_lookup_outcome("not_found")
        log_sms_data(request=request, sender=phone, result="not_found")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no SMS found for this phone number"
        )
    except StoreUnavailable:
        record_lookup_outcome("error")
        log_sms_data(request=request, sender=phone, result="error")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="cache unavailable"
        )
    except (CorruptRecord, StoreError) as e:
        logger.error(f"Failed to read latest SMS for {phone}: {e}")
        record_lookup_outcome("error")
        log_sms_data(request=request, sender=phone, result="error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="failed to read SMS"
        )

    record_lookup_outcome("found")
    log_sms_data(request=request, sender=phone, result="found")
    return LatestSmsResponse(data=record)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )


def run() -> None:
    """Console entry point: serve the app with uvicorn on SERVER_PORT."""
    import uvicorn

    logger.info(f"SMS relay starting on port {settings.SERVER_PORT}")
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVER_PORT, log_config=None)
