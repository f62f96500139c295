"""Stripe webhook reconciliation.

Each webhook is verified, recorded in ``stripe_events`` by event id and
then applied to the local ``subscriptions`` mirror. The user's premium
role follows the subscription status. An event id that was already
recorded is acknowledged without touching any state, so Stripe retries
and replays are harmless.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import stripe
from sqlalchemy.orm import Session

from neeko_stats.config import settings
from neeko_stats.db.models import StripeCustomer, StripeEvent, Subscription, User
from neeko_stats.errors import BillingConfigError, WebhookVerificationError
from neeko_stats.access import PREMIUM_ROLE, set_role
from neeko_stats.utils.logging import get_logger
from neeko_stats.utils.time import from_unix

logger = get_logger(__name__)

SubscriptionFetcher = Callable[[str], Mapping[str, Any]]


@dataclass
class WebhookResult:
    """Outcome of handling one event."""

    event_id: str
    event_type: str
    duplicate: bool = False
    user_id: Optional[int] = None
    premium: Optional[bool] = None

    def to_dict(self) -> dict:
        return {"received": True, "duplicate": self.duplicate}


def construct_event(payload: bytes, signature: Optional[str], secret: Optional[str] = None) -> dict:
    """Verify a webhook payload and return the event as a plain dict.

    Raises:
        BillingConfigError: if no webhook secret is configured
        WebhookVerificationError: if the signature is missing or invalid
    """
    secret = secret or settings.stripe_webhook_secret
    if not secret:
        raise BillingConfigError("STRIPE_WEBHOOK_SECRET not configured")
    if not signature:
        raise WebhookVerificationError("Missing signature")
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise WebhookVerificationError(str(e)) from e
    return json.loads(payload)


def retrieve_subscription(subscription_id: str) -> Mapping[str, Any]:
    """Fetch a subscription from the Stripe API."""
    if not settings.stripe_secret_key:
        raise BillingConfigError("STRIPE_SECRET_KEY not configured")
    subscription = stripe.Subscription.retrieve(subscription_id, api_key=settings.stripe_secret_key)
    return subscription.to_dict()


def is_premium_status(status: Optional[str]) -> bool:
    return status in settings.premium_statuses


def _plain(obj: Any) -> Any:
    """JSON-safe copy of a Stripe object (or plain mapping)."""
    return json.loads(json.dumps(obj, default=str))


def _first_item(subscription: Mapping[str, Any]) -> Mapping[str, Any]:
    items = subscription.get("items") or {}
    data = items.get("data") if isinstance(items, Mapping) else None
    return data[0] if data else {}


def _period_end(subscription: Mapping[str, Any]):
    # Newer API versions moved current_period_end onto subscription items
    end = subscription.get("current_period_end")
    if end is None:
        end = _first_item(subscription).get("current_period_end")
    return from_unix(end)


def _price_id(subscription: Mapping[str, Any]) -> str:
    price = _first_item(subscription).get("price") or {}
    return price.get("id") or ""


def _user_id_from_metadata(obj: Mapping[str, Any]) -> Optional[int]:
    metadata = obj.get("metadata") or {}
    raw = metadata.get("user_id") or obj.get("client_reference_id")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric user_id in metadata: %r", raw)
        return None


def set_premium(session: Session, user_id: int, is_premium: bool) -> None:
    """Grant or revoke the premium role."""
    logger.info("Updating premium status for user %s to %s", user_id, is_premium)
    set_role(session, user_id, PREMIUM_ROLE, is_premium)


def _handle_checkout_completed(
    session: Session, obj: Mapping[str, Any], fetch_subscription: SubscriptionFetcher, result: WebhookResult
) -> None:
    user_id = _user_id_from_metadata(obj)
    subscription_id = obj.get("subscription")
    if not user_id or not subscription_id:
        logger.warning("Checkout session %s has no user_id or subscription", obj.get("id"))
        return
    if session.get(User, user_id) is None:
        logger.warning("Checkout session %s references unknown user %s", obj.get("id"), user_id)
        return

    customer_id = obj.get("customer")
    if customer_id:
        customer = session.query(StripeCustomer).filter_by(user_id=user_id).first()
        if customer:
            customer.customer_id = customer_id
        else:
            session.add(StripeCustomer(user_id=user_id, customer_id=customer_id))

    subscription = fetch_subscription(subscription_id)
    row = session.query(Subscription).filter_by(stripe_subscription_id=subscription["id"]).first()
    if row is None:
        row = Subscription(stripe_subscription_id=subscription["id"], user_id=user_id, status="")
        session.add(row)
    row.user_id = user_id
    row.status = subscription.get("status") or "active"
    row.price_id = _price_id(subscription)
    row.current_period_end = _period_end(subscription)

    set_premium(session, user_id, True)
    result.user_id, result.premium = user_id, True


def _update_known_subscription(
    session: Session,
    subscription_id: Optional[str],
    status: str,
    result: WebhookResult,
    period_end=None,
) -> None:
    if not subscription_id:
        return
    row = session.query(Subscription).filter_by(stripe_subscription_id=subscription_id).first()
    if row is None:
        logger.info("Subscription %s not tracked locally; ignoring", subscription_id)
        return

    row.status = status
    if period_end is not None:
        row.current_period_end = period_end
    premium = is_premium_status(status)
    set_premium(session, row.user_id, premium)
    result.user_id, result.premium = row.user_id, premium


def handle_event(
    session: Session,
    event: Mapping[str, Any],
    fetch_subscription: SubscriptionFetcher = retrieve_subscription,
) -> WebhookResult:
    """Apply a verified Stripe event.

    Args:
        session: Open session; the caller commits
        event: Event mapping with ``id``, ``type`` and ``data.object``
        fetch_subscription: Callable used to load a subscription by id

    Returns:
        WebhookResult describing what happened
    """
    event_id = event["id"]
    event_type = event["type"]
    obj = event["data"]["object"]
    result = WebhookResult(event_id=event_id, event_type=event_type)

    if session.query(StripeEvent).filter_by(event_id=event_id).first() is not None:
        logger.info("Event %s already processed - ignoring replay", event_id)
        result.duplicate = True
        return result

    session.add(StripeEvent(event_id=event_id, type=event_type, data=_plain(obj)))
    session.flush()
    logger.info("Processing webhook event: %s", event_type)

    if event_type == "checkout.session.completed":
        _handle_checkout_completed(session, obj, fetch_subscription, result)
    elif event_type == "customer.subscription.updated":
        _update_known_subscription(
            session, obj.get("id"), obj.get("status") or "", result, _period_end(obj)
        )
    elif event_type == "customer.subscription.deleted":
        _update_known_subscription(session, obj.get("id"), "canceled", result)
    elif event_type == "invoice.payment_failed":
        _update_known_subscription(session, _invoice_subscription(obj), "past_due", result)
    else:
        logger.info("Unhandled event type %s recorded", event_type)

    logger.info("Webhook processed successfully: %s", event_type)
    return result


def _invoice_subscription(invoice: Mapping[str, Any]) -> Optional[str]:
    subscription = invoice.get("subscription")
    if subscription is None:
        # Newer API versions nest it under parent.subscription_details
        parent = invoice.get("parent") or {}
        details = parent.get("subscription_details") or {}
        subscription = details.get("subscription")
    if isinstance(subscription, Mapping):
        return subscription.get("id")
    return subscription
