"""Stripe checkout / customer-portal sessions and local subscription actions."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

import stripe
from sqlalchemy.orm import Session

from neeko_stats.config import settings
from neeko_stats.db.models import StripeCustomer, Subscription, User
from neeko_stats.errors import BillingConfigError, SubscriptionNotFoundError
from neeko_stats.billing.webhooks import is_premium_status, set_premium
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)

SUBSCRIPTION_ACTIONS = {
    "pause": "paused",
    "cancel": "canceled",
    "reactivate": "active",
    "update_payment": None,
}


def _api_key() -> str:
    if not settings.stripe_secret_key:
        raise BillingConfigError("STRIPE_SECRET_KEY not configured")
    return settings.stripe_secret_key


def create_checkout_session(
    user: User,
    price_id: Optional[str] = None,
    create: Callable[..., Mapping[str, Any]] = None,
) -> str:
    """Start a subscription checkout and return its hosted URL.

    The user id is carried in the session metadata so the
    ``checkout.session.completed`` webhook can grant premium.
    """
    price_id = price_id or settings.stripe_price_id
    if not price_id:
        raise BillingConfigError("STRIPE_PRICE_ID not configured")
    create = create or stripe.checkout.Session.create

    session = create(
        api_key=_api_key(),
        mode="subscription",
        payment_method_types=["card"],
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=settings.checkout_success_url,
        cancel_url=settings.checkout_cancel_url,
        client_reference_id=str(user.id),
        customer_email=user.email,
        metadata={"user_id": str(user.id)},
        subscription_data={"metadata": {"user_id": str(user.id)}},
    )
    logger.info("Checkout session created: %s", session["id"])
    return session["url"]


def get_or_create_customer(
    session: Session,
    user: User,
    create: Callable[..., Mapping[str, Any]] = None,
) -> str:
    """Stripe customer id for ``user``, creating the customer on first use."""
    row = session.query(StripeCustomer).filter_by(user_id=user.id).first()
    if row is not None:
        return row.customer_id

    create = create or stripe.Customer.create
    customer = create(
        api_key=_api_key(),
        email=user.email,
        metadata={"user_id": str(user.id)},
    )
    session.add(StripeCustomer(user_id=user.id, customer_id=customer["id"]))
    session.flush()
    return customer["id"]


def create_portal_session(
    session: Session,
    user: User,
    return_url: Optional[str] = None,
    create_customer: Callable[..., Mapping[str, Any]] = None,
    create_portal: Callable[..., Mapping[str, Any]] = None,
) -> str:
    """Open a billing-portal session and return its URL."""
    customer_id = get_or_create_customer(session, user, create_customer)
    create_portal = create_portal or stripe.billing_portal.Session.create
    portal = create_portal(
        api_key=_api_key(),
        customer=customer_id,
        return_url=return_url or settings.portal_return_url,
    )
    return portal["url"]


def manage_subscription(session: Session, user: User, action: str) -> str:
    """Apply a local subscription action and return a status message.

    Raises:
        ValueError: for an unknown action
        SubscriptionNotFoundError: when the user has no subscription
    """
    if action not in SUBSCRIPTION_ACTIONS:
        raise ValueError(f"Invalid action: {action}")

    subscription = (
        session.query(Subscription)
        .filter_by(user_id=user.id)
        .order_by(Subscription.updated_at.desc())
        .first()
    )
    if subscription is None:
        raise SubscriptionNotFoundError(f"No subscription found for user {user.id}")

    new_status = SUBSCRIPTION_ACTIONS[action]
    if new_status is None:
        return "Payment method update would be handled by Stripe"

    subscription.status = new_status
    # Premium is only granted by Stripe webhooks; a local action can only revoke it
    if not is_premium_status(new_status):
        set_premium(session, user.id, False)
    logger.info("Subscription %s set to %s by user %s", subscription.stripe_subscription_id, new_status, user.id)
    return "Subscription updated successfully"
