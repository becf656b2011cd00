# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Shared httpx plumbing for adapters that speak plain HTTP.
"""

from typing import Any, Dict, Optional

import httpx

from storyflow.core.errors import ProviderError
from storyflow.llm.base import ProviderAdapter


class HTTPProviderAdapter(ProviderAdapter):
    """
    Adapter base with one httpx request helper.

    ``transport`` is handed to httpx.AsyncClient, which lets tests plug in
    httpx.MockTransport.
    """

    unreachable_hint = ""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, **kwargs):
        super().__init__(**kwargs)
        self.transport = transport

    async def _request(
        self,
        method: str,
        url: str,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        client_timeout = httpx.Timeout(timeout or self.timeout, connect=5.0)
        try:
            async with httpx.AsyncClient(timeout=client_timeout, transport=self.transport) as client:
                response = await client.request(method, url, headers=headers, json=json)
        except httpx.TimeoutException:
            raise ProviderError(
                f"Request to {url} timed out after {timeout or self.timeout}s",
                ProviderError.NETWORK, self.type
            )
        except httpx.TransportError as e:
            raise ProviderError(
                f"Cannot connect to {url}. {self.unreachable_hint}".strip() + f" ({e})",
                ProviderError.NETWORK, self.type
            )

        if response.status_code >= 400:
            raise self.status_error(response)

        try:
            return response.json()
        except ValueError:
            raise ProviderError(
                f"Invalid JSON response from {url}", ProviderError.BACKEND, self.type
            )

    def status_error(self, response: httpx.Response) -> ProviderError:
        return self.error_for_status(response.status_code, response_error_message(response))


def response_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", error))
        if error:
            return str(error)
    return str(body)[:200]
