from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from lxd_vault.core.config import get_settings
from lxd_vault.utils.logging import trace

logger = logging.getLogger(__name__)

settings = get_settings()

LXD_PROJECT = "multipass"


class LXDRequestError(Exception):
    """Raised when a request to the LXD daemon does not yield a usable reply."""


class LXDNotFoundError(LXDRequestError):
    """Raised when the requested LXD resource does not exist."""


class LXDTransportError(LXDRequestError):
    """Raised on connection failures, timeouts and unsuccessful replies."""


class LXDMalformedResponseError(LXDRequestError):
    """Raised when a reply is not a single JSON object."""


class LXDRequestClient:
    """Blocking request/response bridge to the LXD REST API."""

    def __init__(self, client: httpx.Client, base_url: str | None = None, timeout: float | None = None) -> None:
        self._client = client
        self.base_url = (base_url or settings.lxd_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.lxd_request_timeout

    def url_for(self, *segments: str) -> str:
        return "/".join([self.base_url, *(segment.strip("/") for segment in segments)])

    def request(
        self,
        method: str,
        url: str,
        json_data: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON object reply."""

        trace(logger, "Requesting LXD: %s %s", method, url)

        content = None
        if json_data is not None:
            content = json.dumps(json_data, separators=(",", ":"))
            trace(logger, "Sending data: %s", content)

        try:
            response = self._client.request(
                method,
                url,
                params={"project": LXD_PROJECT},
                content=content,
                headers={"Content-Type": "application/json"} if content is not None else None,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("Request timed out: %s %s", method, url)
            raise LXDTransportError(f"{url}: request timed out") from exc
        except httpx.HTTPError as exc:
            raise LXDTransportError(f"{url}: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise LXDNotFoundError(f"{url}: not found")

        if response.is_error:
            raise LXDTransportError(f"{url}: {_error_detail(response)}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise LXDMalformedResponseError(f"{url}: {exc}") from exc

        if not isinstance(payload, dict):
            raise LXDMalformedResponseError(f"Invalid LXD response for url {url}: {response.text}")

        trace(logger, "Got reply: %s", json.dumps(payload, indent=2))
        return payload


def _error_detail(response: httpx.Response) -> str:
    detail = response.reason_phrase or str(response.status_code)
    try:
        body = response.json()
    except ValueError:
        return detail
    if isinstance(body, dict) and body.get("error"):
        return f"{detail}: {body['error']}"
    return detail
