"""Tests for checkout, portal and subscription actions."""

import pytest

from conftest import stripe_event
from neeko_stats.access import is_premium
from neeko_stats.billing.checkout import (
    create_checkout_session,
    create_portal_session,
    get_or_create_customer,
    manage_subscription,
)
from neeko_stats.billing.webhooks import handle_event
from neeko_stats.config import settings
from neeko_stats.db.models import StripeCustomer, Subscription
from neeko_stats.errors import BillingConfigError, SubscriptionNotFoundError


@pytest.fixture
def stripe_keys(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
    monkeypatch.setattr(settings, "stripe_price_id", "price_default")


class Recorder:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return self.response


def test_checkout_session_carries_user_id(stripe_keys, free_user):
    create = Recorder({"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"})
    url = create_checkout_session(free_user, create=create)

    assert url == "https://checkout.stripe.com/c/cs_1"
    kwargs = create.calls[0]
    assert kwargs["mode"] == "subscription"
    assert kwargs["line_items"] == [{"price": "price_default", "quantity": 1}]
    assert kwargs["metadata"] == {"user_id": str(free_user.id)}
    assert kwargs["client_reference_id"] == str(free_user.id)
    assert kwargs["api_key"] == "sk_test_123"


def test_checkout_session_explicit_price(stripe_keys, free_user):
    create = Recorder({"id": "cs_1", "url": "u"})
    create_checkout_session(free_user, price_id="price_other", create=create)
    assert create.calls[0]["line_items"][0]["price"] == "price_other"


def test_checkout_requires_configuration(monkeypatch, free_user):
    monkeypatch.setattr(settings, "stripe_secret_key", None)
    monkeypatch.setattr(settings, "stripe_price_id", "price_default")
    with pytest.raises(BillingConfigError):
        create_checkout_session(free_user, create=Recorder({}))

    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")
    monkeypatch.setattr(settings, "stripe_price_id", None)
    with pytest.raises(BillingConfigError):
        create_checkout_session(free_user, create=Recorder({}))


def test_customer_created_once(stripe_keys, session, free_user):
    create = Recorder({"id": "cus_new"})
    assert get_or_create_customer(session, free_user, create) == "cus_new"
    assert get_or_create_customer(session, free_user, create) == "cus_new"
    assert len(create.calls) == 1
    assert session.query(StripeCustomer).one().user_id == free_user.id


def test_portal_session(stripe_keys, session, free_user):
    session.add(StripeCustomer(user_id=free_user.id, customer_id="cus_existing"))
    session.flush()
    portal = Recorder({"url": "https://billing.stripe.com/p/session"})

    url = create_portal_session(
        session,
        free_user,
        create_customer=lambda **kw: pytest.fail("customer exists"),
        create_portal=portal,
    )
    assert url == "https://billing.stripe.com/p/session"
    assert portal.calls[0]["customer"] == "cus_existing"
    assert portal.calls[0]["return_url"] == settings.portal_return_url


@pytest.fixture
def subscribed_user(session, premium_user):
    session.add(
        Subscription(stripe_subscription_id="sub_1", user_id=premium_user.id, status="active")
    )
    session.commit()
    return premium_user


@pytest.mark.parametrize("action,status", [("pause", "paused"), ("cancel", "canceled")])
def test_manage_subscription_revokes_premium(session, subscribed_user, action, status):
    assert manage_subscription(session, subscribed_user, action) == "Subscription updated successfully"
    session.commit()
    assert session.query(Subscription).one().status == status
    assert is_premium(session, subscribed_user.id) is False


def test_reactivate_does_not_grant_premium(session, premium_user):
    session.add(
        Subscription(stripe_subscription_id="sub_1", user_id=premium_user.id, status="active")
    )
    session.commit()
    handle_event(
        session,
        stripe_event("evt_deleted", "customer.subscription.deleted", {"id": "sub_1"}),
    )
    session.commit()
    assert is_premium(session, premium_user.id) is False

    manage_subscription(session, premium_user, "reactivate")
    session.commit()

    assert session.query(Subscription).one().status == "active"
    # only a Stripe event can restore premium
    assert is_premium(session, premium_user.id) is False


def test_update_payment_leaves_status(session, subscribed_user):
    message = manage_subscription(session, subscribed_user, "update_payment")
    assert "Stripe" in message
    assert session.query(Subscription).one().status == "active"


def test_manage_subscription_errors(session, free_user):
    with pytest.raises(ValueError):
        manage_subscription(session, free_user, "upgrade")
    with pytest.raises(SubscriptionNotFoundError):
        manage_subscription(session, free_user, "cancel")
