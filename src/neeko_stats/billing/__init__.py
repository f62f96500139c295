"""Stripe billing: webhook reconciliation, checkout and portal sessions."""

from neeko_stats.billing.checkout import (
    create_checkout_session,
    create_portal_session,
    manage_subscription,
)
from neeko_stats.billing.webhooks import WebhookResult, construct_event, handle_event, set_premium

__all__ = [
    "WebhookResult",
    "construct_event",
    "create_checkout_session",
    "create_portal_session",
    "handle_event",
    "manage_subscription",
    "set_premium",
]
