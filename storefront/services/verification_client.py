"""Verifiers used by the checkout result view to ask for an order's payment state."""
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..logging_config import get_logger
from ..psp.errors import StatusFetchFailed
from ..schemas.orders import VerificationResponse
from .order_service import OrderService

logger = get_logger(__name__)


class LocalVerifier:
    """In-process verification against this service's own order store."""

    def __init__(self, service: OrderService):
        self.service = service

    async def verify(self, identifier: str, order_id: Optional[str] = None) -> VerificationResponse:
        return await self.service.verify_payment(identifier, order_id)


class VerificationClient:
    """
    Calls GET {base_url}/orders/verify-payment/{identifier} on a remote order API.
    Any transport, HTTP or shape error surfaces as StatusFetchFailed.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def verify(self, identifier: str, order_id: Optional[str] = None) -> VerificationResponse:
        params = {"order_id": order_id} if order_id else None
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout,
                                         transport=self._transport) as client:
                r = await client.get(f"/orders/verify-payment/{identifier}", params=params)
            if r.is_error and not self._is_negative_answer(r):
                r.raise_for_status()
            return VerificationResponse.model_validate(r.json())
        except (httpx.HTTPError, ValueError, PydanticValidationError) as e:
            logger.error("verification_request_failed", identifier=identifier, order_id=order_id,
                         error_type=type(e).__name__, error=str(e))
            raise StatusFetchFailed("Failed to verify payment")

    @staticmethod
    def _is_negative_answer(r: httpx.Response) -> bool:
        """An error status whose body still says ``success: false`` is an answer, not an outage."""
        try:
            body = r.json()
        except ValueError:
            return False
        return isinstance(body, dict) and body.get("success") is False
