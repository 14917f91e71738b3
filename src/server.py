"""
HTTP service for the identity provider's pre-issue access token extension.

Endpoints:
- POST /token-validation: the extension callback. Decodes the issuance
  event, runs the partner scope decision and returns the patch operations
- GET /health, /healthz: liveness probes for the gateway, plain "OK"
- GET /ready: readiness probe, checks that the entitlement policy loads

Request flow:

    1. The identity provider POSTs the issuance event as JSON
    2. The body is decoded into an ExtensionRequest (400 if malformed)
    3. The partner id is extracted once and handed to engine.decide(),
       which, if there is one, asks the FileEntitlementStore for the
       current snapshot
    4. The DecisionResult is serialized back. ERROR results (policy
       unavailable) are sent with HTTP 500, everything else with 200

Every decision is logged as one structured JSON line.

Running the server:
    python -m src.server
"""

import json
import logging
import sys
import uuid

import uvicorn
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from src.config import settings
from src.engine import decide, extract_partner_id
from src.entitlements import EntitlementSnapshot, EntitlementStoreError, FileEntitlementStore
from src.models import ActionStatus, ExtensionRequest

# ---------------------------------------------------------------------------
# Structured JSON Logging
# ---------------------------------------------------------------------------


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "INFO",
         "logger": "token-extension", "message": "Scopes granted",
         "partner_id": "ACME", "scopes": ["partner:read"], "decision": "granted"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Structured fields passed via logger.info("msg", extra={"decision_data": {...}})
        if hasattr(record, "decision_data"):
            log_entry.update(record.decision_data)
        return json.dumps(log_entry, default=str)


handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(JSONLogFormatter())

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    handlers=[handler],
)
logger = logging.getLogger("token-extension")

JSON_CONTENT_TYPE = "application/json;charset=UTF-8"


class ExtensionResponse(JSONResponse):
    media_type = JSON_CONTENT_TYPE


def _log_request_details(request: Request, body: bytes) -> None:
    logger.debug(
        "Callback request received",
        extra={
            "decision_data": {
                "method": request.method,
                "url": str(request.url),
                "client": request.client.host if request.client else None,
                "headers": dict(request.headers),
                "body": body.decode("utf-8", errors="replace"),
            }
        },
    )


def create_app(store: FileEntitlementStore | None = None) -> Starlette:
    """
    Build the ASGI app.

    Args:
        store: Entitlement source. Defaults to the file at
               settings.entitlements_path.
    """
    if store is None:
        store = FileEntitlementStore(settings.entitlements_path)

    def load_snapshot(request_id: str) -> EntitlementSnapshot:
        try:
            return store.snapshot()
        except EntitlementStoreError as e:
            logger.error(
                "Entitlement policy unavailable",
                extra={
                    "decision_data": {
                        "request_id": request_id,
                        "path": str(store.path),
                        "error": e.message,
                    }
                },
            )
            raise

    async def token_validation(request: Request) -> Response:
        request_id = str(uuid.uuid4())[:8]
        body = await request.body()

        if settings.log_request_details:
            _log_request_details(request, body)

        try:
            payload = ExtensionRequest.model_validate_json(body)
        except ValidationError as e:
            logger.warning(
                "Rejected malformed callback request",
                extra={
                    "decision_data": {
                        "request_id": request_id,
                        "errors": e.error_count(),
                        "decision": "rejected",
                    }
                },
            )
            return PlainTextResponse("Invalid request", status_code=400)

        event = payload.event

        if settings.log_request_details and event.additional_headers:
            logger.debug(
                "Additional headers",
                extra={
                    "decision_data": {
                        "request_id": request_id,
                        "additional_headers": {h.name: h.values for h in event.additional_headers},
                    }
                },
            )

        partner_id = extract_partner_id(event.additional_headers)
        result = decide(event, lambda: load_snapshot(request_id), partner_id=partner_id)

        log_data = {
            "request_id": request_id,
            "action_type": payload.action_type,
            "client_id": event.client_id,
            "partner_id": partner_id,
            "allowed_operations": [op.op for op in payload.allowed_operations],
        }

        if result.action_status is ActionStatus.ERROR:
            logger.error(
                "Token extension failed closed",
                extra={"decision_data": {**log_data, "decision": "error"}},
            )
            return ExtensionResponse(result.to_response(), status_code=500)

        scopes = result.scopes
        if partner_id is None:
            logger.warning(
                "Partner header not found in additional headers",
                extra={"decision_data": {**log_data, "decision": "no_partner"}},
            )
        elif scopes:
            logger.info(
                "Scopes granted",
                extra={"decision_data": {**log_data, "scopes": scopes, "decision": "granted"}},
            )
        else:
            logger.info(
                "No entitlements matched",
                extra={"decision_data": {**log_data, "decision": "no_match"}},
            )

        return ExtensionResponse(result.to_response())

    async def health_check(request: Request) -> Response:
        """Liveness probe for the gateway."""
        return PlainTextResponse("OK")

    async def readiness_check(request: Request) -> Response:
        """Readiness probe: can the entitlement policy be loaded?"""
        try:
            snapshot = store.snapshot()
        except EntitlementStoreError as e:
            logger.warning("Readiness check failed: %s", e.message)
            return JSONResponse(
                {"status": "not_ready", "reason": "entitlements unavailable"},
                status_code=503,
            )
        return JSONResponse({"status": "ready", "entitlements": len(snapshot)})

    return Starlette(
        routes=[
            Route("/token-validation", token_validation, methods=["POST"]),
            Route("/health", health_check, methods=["GET"]),
            Route("/healthz", health_check, methods=["GET"]),
            Route("/ready", readiness_check, methods=["GET"]),
        ]
    )


app = create_app()


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    logger.info(
        "Starting token extension service on %s:%d (entitlements=%s)",
        settings.host,
        settings.port,
        settings.entitlements_path,
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
