import os
from typing import Any, Dict, Optional

import httpx

from ..core.error_handling import ErrorContext, ErrorHandler
from ..core.logging import logger


class UpstreamClient:
    """
    Opens requests against the configured upstream API.

    The response is returned unread so the relays own reading and closing it.
    """

    def __init__(self, config: Dict[str, Any], client: httpx.AsyncClient):
        self.base_url = (config.get("base_url") or "").rstrip("/")
        self.api_key_env = config.get("api_key_env")
        self.headers = dict(config.get("headers") or {})
        self.api_key = os.environ.get(self.api_key_env) if self.api_key_env else None
        self.client = client

        timeout = config.get("timeout") or {}
        self.timeout = httpx.Timeout(
            connect=timeout.get("connect", 10.0),
            read=timeout.get("read", 60.0),
            write=timeout.get("write", 10.0),
            pool=timeout.get("pool", 10.0)
        )

        if not self.base_url:
            raise ValueError("Upstream base_url is not configured.")

        self.headers["Content-Type"] = "application/json"
        if self.api_key:
            self.headers["Authorization"] = f"Bearer {self.api_key}"
        elif self.api_key_env:
            logger.warning(
                f"API key for {self.api_key_env} is not set in environment variables",
                component="upstream_client"
            )

    async def open(
        self,
        path: str,
        request_body: Dict[str, Any],
        request_id: str = "unknown",
        context: Optional[ErrorContext] = None
    ) -> httpx.Response:
        """
        Send ``request_body`` to ``base_url + path`` and return the streaming response.

        Raises:
            RelayError: provider_network_error when the upstream cannot be reached
        """
        url = f"{self.base_url}{path}"

        logger.debug_data(
            title="Upstream Request",
            data={
                "url": url,
                "request_body": request_body
            },
            request_id=request_id,
            component="upstream_client",
            data_flow="to_upstream"
        )

        request = self.client.build_request(
            "POST",
            url,
            headers=self.headers,
            json=request_body,
            timeout=self.timeout
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.RequestError as e:
            raise ErrorHandler.handle_provider_network_error(
                e, context or ErrorContext(request_id=request_id, endpoint_path=path)
            ) from e

        logger.debug_data(
            title="Upstream Response Headers",
            data={
                "status_code": response.status_code,
                "headers": dict(response.headers)
            },
            request_id=request_id,
            component="upstream_client",
            data_flow="from_upstream"
        )
        return response
