"""
Handlers package initialization.

- webhooks.py: payment processor webhook and health endpoints (aiohttp)
"""

from api.handlers.webhooks import setup_webhook_routes

__all__ = ["setup_webhook_routes"]
