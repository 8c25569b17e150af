import json
import logging
import time
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .assistant import ROLES, AssistantAdapter, build_adapter, request_id
from .metrics import (
    LIMITER_DECISIONS,
    LIMITER_IDENTITIES,
    METRICS_CONTENT_TYPE,
    REQUEST_LATENCY,
    REQUESTS_TOTAL,
    render_metrics,
)
from .rate_limit import UsageLimiter
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

app = FastAPI(title="GreenPay Assistant")
load_dotenv()


class AppState:
    def __init__(self, settings: Settings, limiter: UsageLimiter | None = None):
        self.settings = settings
        self.adapter: AssistantAdapter = build_adapter(settings)
        self.limiter = limiter or UsageLimiter(settings.limit_config())
        self.started_at = time.time()
        self.total_requests = 0
        self.total_invalid = 0
        self.total_unauthorized = 0
        self.total_rate_limited = 0
        self.total_errors = 0


async def get_state() -> AppState:
    if not hasattr(app.state, "app_state"):
        app.state.app_state = AppState(get_settings())
    return app.state.app_state


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/version")
async def version(state: AppState = Depends(get_state)):
    return {
        "service": state.settings.service_name,
        "version": state.settings.version,
        "git": state.settings.git_sha,
    }


@app.get("/status")
async def status(state: AppState = Depends(get_state)):
    uptime = int(time.time() - state.started_at)
    return {
        "status": "ok",
        "uptime_seconds": uptime,
        "requests_total": state.total_requests,
        "invalid_requests_total": state.total_invalid,
        "unauthorized_total": state.total_unauthorized,
        "rate_limited_total": state.total_rate_limited,
        "errors_total": state.total_errors,
        "tracked_identities": state.limiter.tracked_identities,
        "limits": {
            "rate_limit_per_minute": state.limiter.config.minute_limit,
            "rate_limit_per_day": state.limiter.config.daily_limit,
            "max_identities": state.limiter.config.max_identities,
        },
    }


@app.get("/metrics")
async def metrics():
    return Response(render_metrics(), media_type=METRICS_CONTENT_TYPE)


@app.get("/v1/assistant/usage")
async def assistant_usage(request: Request, state: AppState = Depends(get_state)):
    identity = caller_identity(request)
    return {
        "remainingRequests": state.limiter.remaining_requests(identity),
        "dailyLimit": state.limiter.config.daily_limit,
        "minuteLimit": state.limiter.config.minute_limit,
    }


@app.post("/v1/assistant/chat")
async def assistant_chat(request: Request, state: AppState = Depends(get_state)):
    state.total_requests += 1
    started = time.time()
    try:
        ensure_json_request(request)
        await enforce_body_size(request, state.settings.max_body_bytes)
        body = await parse_json_body(request)
        messages = validate_messages(
            body.get("messages"), state.settings.max_chars, state.settings.max_messages
        )
    except HTTPException:
        state.total_invalid += 1
        REQUESTS_TOTAL.labels(endpoint="chat", outcome="invalid_input").inc()
        REQUEST_LATENCY.labels(endpoint="chat").observe(time.time() - started)
        raise
    try:
        identity = caller_identity(request)
    except HTTPException:
        state.total_unauthorized += 1
        REQUESTS_TOTAL.labels(endpoint="chat", outcome="unauthorized").inc()
        REQUEST_LATENCY.labels(endpoint="chat").observe(time.time() - started)
        raise

    decision = state.limiter.check_limit(identity)
    LIMITER_IDENTITIES.set(state.limiter.tracked_identities)
    if not decision.allowed:
        state.total_rate_limited += 1
        LIMITER_DECISIONS.labels(outcome=f"{decision.reason}_limited").inc()
        REQUESTS_TOTAL.labels(endpoint="chat", outcome="rate_limited").inc()
        REQUEST_LATENCY.labels(endpoint="chat").observe(time.time() - started)
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limited",
                "message": decision.error,
                "remainingRequests": decision.remaining_requests,
            },
        )
    LIMITER_DECISIONS.labels(outcome="allowed").inc()

    rid = request_id()
    try:
        reply = await state.adapter.reply(messages, rid)
    except Exception as err:  # noqa: BLE001
        logger.exception("assistant reply failed request_id=%s", rid)
        state.total_errors += 1
        REQUESTS_TOTAL.labels(endpoint="chat", outcome="error").inc()
        REQUEST_LATENCY.labels(endpoint="chat").observe(time.time() - started)
        raise HTTPException(
            status_code=500, detail={"error": "server_error", "request_id": rid}
        ) from err

    latency = int((time.time() - started) * 1000)
    REQUESTS_TOTAL.labels(endpoint="chat", outcome="ok").inc()
    REQUEST_LATENCY.labels(endpoint="chat").observe(time.time() - started)
    return {
        "request_id": rid,
        "reply": reply,
        "remainingRequests": decision.remaining_requests,
        "meta": {"model_backend": state.adapter.name, "latency_ms": latency},
    }


def caller_identity(request: Request) -> str:
    identity = request.headers.get("x-user-id", "").strip()
    if not identity:
        raise HTTPException(status_code=401, detail={"error": "unauthorized"})
    return identity


def validate_messages(raw: Any, max_chars: int, max_messages: int) -> list[dict[str, str]]:
    if not isinstance(raw, list) or not raw:
        raise HTTPException(
            status_code=400, detail={"error": "invalid_input", "message": "no_messages"}
        )
    if len(raw) > max_messages:
        raise HTTPException(
            status_code=400, detail={"error": "invalid_input", "message": "too_many_messages"}
        )
    messages = []
    for item in raw:
        if not isinstance(item, dict) or item.get("role") not in ROLES:
            raise HTTPException(
                status_code=400, detail={"error": "invalid_input", "message": "invalid_message"}
            )
        content = str(item.get("content") or "")
        if not content.strip():
            raise HTTPException(
                status_code=400, detail={"error": "invalid_input", "message": "empty"}
            )
        if len(content) > max_chars:
            raise HTTPException(
                status_code=400, detail={"error": "invalid_input", "message": "too_long"}
            )
        messages.append({"role": item["role"], "content": content})
    return messages


def ensure_json_request(request: Request) -> None:
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != "application/json":
        raise HTTPException(status_code=415, detail={"error": "unsupported_media_type"})


async def enforce_body_size(request: Request, max_bytes: int) -> None:
    length = request.headers.get("content-length")
    if length:
        try:
            if int(length) > max_bytes:
                raise HTTPException(status_code=413, detail={"error": "payload_too_large"})
        except ValueError:
            pass
    body = await request.body()
    if len(body) > max_bytes:
        raise HTTPException(status_code=413, detail={"error": "payload_too_large"})


async def parse_json_body(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_input", "message": "invalid_json"},
        ) from err
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_input", "message": "invalid_body"},
        )
    return payload


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
