"""
API endpoint for payment processor webhooks.

Signature verification happens upstream; this handler receives the logical
event as JSON: ``{"type": "invoice.paid", "data": {...}}``.
"""
import json
import logging

from aiohttp import web

from services.payment_events import PaymentEventDispatcher

logger = logging.getLogger(__name__)


async def payment_webhook_handler(request: web.Request) -> web.Response:
    """
    Handle payment processor webhook notifications.

    Always acknowledges with 200 once the body is readable JSON, even when
    the event was declined or its handler failed, so the transport does not
    redeliver an event whose side effects may already be partially applied.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Payment webhook with unreadable body")
        return web.json_response({"error": "invalid json"}, status=400)

    if not isinstance(body, dict):
        return web.json_response({"error": "event must be an object"}, status=400)

    event_type = body.get("type")
    payload = body.get("data") or {}
    logger.info(f"Received payment webhook: {event_type}", extra={"event_type": event_type})

    dispatcher = PaymentEventDispatcher(request.app.get("session_maker"))
    outcome = await dispatcher.dispatch(event_type, payload)

    return web.json_response({
        "received": True,
        "kind": outcome.kind.value,
        "handled": outcome.handled,
        "detail": outcome.detail,
    })


async def health_handler(request: web.Request) -> web.Response:
    """Liveness probe."""
    return web.json_response({"status": "ok"})


def setup_webhook_routes(app: web.Application, webhook_path: str):
    """Setup payment webhook routes."""
    app.router.add_post(webhook_path, payment_webhook_handler)
    app.router.add_get('/health', health_handler)
    logger.info(f"Payment webhook route registered: POST {webhook_path}")
