"""Cloudflare Turnstile verification client."""
import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

GENERIC_FAILURE = "Bot verification failed"
TRANSPORT_FAILURE = "Could not verify captcha"


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    error: str | None = None


class TurnstileVerifier:
    """Verifies client proof-of-humanity tokens. Fails closed, never retries."""

    def __init__(
        self,
        secret: str,
        http_client: httpx.AsyncClient,
        verify_url: str = DEFAULT_VERIFY_URL,
    ):
        """Initialize with the site secret and a shared HTTP client."""
        self.secret = secret
        self.verify_url = verify_url
        self._client = http_client

    async def verify(self, token: str, remote_ip: str | None = None) -> VerificationResult:
        """Check *token* against the verification endpoint."""
        data = {"secret": self.secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            response = await self._client.post(self.verify_url, data=data)
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Turnstile verification error: {e}")
            return VerificationResult(valid=False, error=TRANSPORT_FAILURE)

        if not isinstance(result, dict) or result.get("success") is not True:
            codes = result.get("error-codes") if isinstance(result, dict) else None
            if codes and isinstance(codes, list):
                return VerificationResult(valid=False, error=", ".join(str(c) for c in codes))
            return VerificationResult(valid=False, error=GENERIC_FAILURE)

        return VerificationResult(valid=True)
