"""Exception types shared across the Neeko Stats backend."""

from datetime import datetime
from typing import Optional


class NeekoStatsError(Exception):
    """Base class for all domain errors."""


class InvalidSportError(NeekoStatsError):
    """Raised when a sport key is not one of afl / epl / nba."""

    def __init__(self, sport: Optional[str]):
        super().__init__(f"Invalid sport specified: {sport!r}")
        self.sport = sport


class BillingConfigError(NeekoStatsError):
    """Stripe credentials or secrets are missing."""


class WebhookVerificationError(NeekoStatsError):
    """Webhook payload could not be authenticated."""


class SubscriptionNotFoundError(NeekoStatsError):
    """No subscription row exists for the user."""


class SheetFetchError(NeekoStatsError):
    """A Google Sheets tab could not be downloaded."""


class GatewayError(NeekoStatsError):
    """The LLM gateway is misconfigured or returned an error."""


class InsightParseError(NeekoStatsError):
    """LLM output could not be decoded as a list of insights."""


class LockHeldError(NeekoStatsError):
    """Another caller holds the advisory lock for an operation."""

    def __init__(self, operation: str, locked_by: Optional[str], locked_at: Optional[datetime]):
        super().__init__(f"{operation} already in progress")
        self.operation = operation
        self.locked_by = locked_by
        self.locked_at = locked_at


class RefreshCooldownError(NeekoStatsError):
    """A refresh was requested before the cooldown elapsed."""

    def __init__(self, minutes_remaining: int, next_available: datetime):
        super().__init__(
            f"Please wait {minutes_remaining} minutes before refreshing again"
        )
        self.minutes_remaining = minutes_remaining
        self.next_available = next_available
