"""Client for an OpenAI-compatible chat-completions gateway."""

from typing import Optional

import httpx

from neeko_stats.config import settings
from neeko_stats.errors import GatewayError
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)

ANALYST_SYSTEM_PROMPT = (
    "You are a sports analyst. Provide concise, insightful analysis in 1-2 sentences."
)


class AIGateway:
    """Thin wrapper over ``POST {base_url}/chat/completions``."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        if not api_key:
            raise GatewayError("AI gateway API key not configured")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.client = client or httpx.Client(timeout=httpx.Timeout(timeout, connect=10.0))
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(cls) -> "AIGateway":
        return cls(
            base_url=settings.ai_gateway_url,
            api_key=settings.ai_gateway_api_key,
            model=settings.ai_model,
            timeout=settings.ai_timeout_seconds,
        )

    def chat(self, system: str, user: str) -> str:
        """Send one system + user exchange and return the reply text.

        Raises:
            GatewayError: on transport failures, non-2xx responses or a
                reply with no message content
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        try:
            response = self.client.post(
                f"{self.base_url}/chat/completions", json=payload, headers=self._headers
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"AI gateway request failed: {e}") from e

        if response.status_code >= 400:
            raise GatewayError(f"AI API error: {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GatewayError("AI gateway returned an unexpected payload") from e
        if not content:
            raise GatewayError("AI gateway returned an empty message")
        return content

    def close(self) -> None:
        self.client.close()


def from_settings() -> AIGateway:
    """Gateway configured from environment settings."""
    return AIGateway.from_settings()
