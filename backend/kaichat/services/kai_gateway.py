"""
Kai AI gateway.

The only component that talks to the external AI service. One POST per call,
no retries; failures surface as InternalError carrying the remote message.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from kaichat.core.exceptions import InternalError
from kaichat.core.logger import logger
from kaichat.models.gateway import GatewayPayload, GatewayResult

GENERIC_FAILURE_MESSAGE = "Kai AI service request failed"


def extract_error_message(response: httpx.Response) -> Optional[str]:
    """
    Pull the message out of a Kai AI error envelope.

    Accepts ``{"message": ...}`` and ``{"data": {"message": ...}}``. Returns
    None when the body is not JSON or carries no usable message.
    """
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    candidates: list[Any] = [body.get("message")]
    nested = body.get("data")
    if isinstance(nested, dict):
        candidates.append(nested.get("message"))
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return None


class KaiGateway:
    """HTTP client for the Kai AI endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        debug: bool = False,
    ):
        """
        Initialize the gateway.

        Args:
            endpoint: Kai AI endpoint URL
            api_key: Value sent in the ``API-Key`` header
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
            debug: Log request payloads and response bodies
        """
        self.endpoint = endpoint
        self._debug = debug
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "API-Key": api_key,
                "Content-Type": "application/json",
            },
        )

    async def send(self, payload: GatewayPayload) -> GatewayResult:
        """
        Send a session or tool payload to Kai AI.

        Returns:
            ``GatewayResult`` wrapping the remote response body unmodified

        Raises:
            InternalError: Network failure, non-2xx status or non-JSON body
        """
        body = payload.to_request_body()
        if self._debug:
            logger.debug(f"Kai AI request: {body}")

        try:
            response = await self._client.post(self.endpoint, json=body)
        except httpx.HTTPError as e:
            logger.error(f"Kai AI request failed: {e}")
            raise InternalError(GENERIC_FAILURE_MESSAGE) from e

        if response.is_error:
            message = extract_error_message(response)
            logger.error(f"Kai AI returned {response.status_code}: {message or response.text[:200]}")
            raise InternalError(message or GENERIC_FAILURE_MESSAGE)

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Kai AI returned a non-JSON body")
            raise InternalError(GENERIC_FAILURE_MESSAGE) from e

        if self._debug:
            logger.debug(f"Kai AI response: {data}")
        return GatewayResult(data=data)

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
