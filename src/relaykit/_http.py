"""HTTP client infrastructure for relaykit.

Handles:
- Shared default headers
- Per-request deadlines that cancel the in-flight request
- Transport error mapping
- Vendor error message extraction
"""

from __future__ import annotations

import builtins
from typing import Any

import anyio
import httpx

from relaykit._version import __version__
from relaykit.exceptions import ConnectionError, RelayError, TimeoutError, ValidationError

USER_AGENT = f"relaykit/{__version__}"

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json",
}

TIMEOUT_MESSAGE = "Request timeout"


class AsyncHttpClient:
    """Asynchronous HTTP client for absolute-URL POSTs.

    Webhook endpoints and provider endpoints live on arbitrary hosts, so
    unlike a single-API client this one has no base URL.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=DEFAULT_HEADERS.copy(),
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def post(
        self,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """POST and return the raw response, whatever its status.

        Args:
            url: Absolute destination URL.
            json: Body to serialize as JSON.
            content: Pre-serialized body, sent byte for byte.
            headers: Per-request headers, merged over the defaults.
            params: Query-string parameters.
            timeout: Total deadline in seconds; defaults to the client timeout.

        Raises:
            TimeoutError: The deadline passed before a response arrived.
            ConnectionError: The host could not be reached.
            ValidationError: The URL, a header value or the JSON body is invalid.
            RelayError: Any other transport failure.
        """
        deadline = timeout if timeout is not None else self._timeout
        try:
            with anyio.fail_after(deadline):
                return await self._client.post(
                    url,
                    json=json,
                    content=content,
                    headers=headers,
                    params=_filter_none(params) if params else None,
                    timeout=deadline,
                )
        except (httpx.TimeoutException, builtins.TimeoutError) as e:
            raise TimeoutError(TIMEOUT_MESSAGE) from e
        except httpx.ConnectError as e:
            raise ConnectionError(f"Failed to connect: {e}") from e
        except httpx.InvalidURL as e:
            raise ValidationError(f"Invalid URL: {e}") from e
        except UnicodeEncodeError as e:
            # httpx encodes header values as ASCII
            raise ValidationError(f"Invalid header value: {e}") from e
        except TypeError as e:
            raise ValidationError(f"Invalid request body: {e}") from e
        except httpx.HTTPError as e:
            raise RelayError(str(e) or e.__class__.__name__) from e


def parse_json(response: httpx.Response) -> Any:
    """Decode a JSON body, returning None when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


def status_line(response: httpx.Response) -> str:
    """Human-readable ``HTTP <status>: <reason>`` string."""
    return f"HTTP {response.status_code}: {response.reason_phrase}"


def extract_error_message(data: Any, response: httpx.Response) -> str:
    """Extract error message from a vendor error body."""
    if isinstance(data, dict):
        if "error" in data:
            error = data["error"]
            if isinstance(error, str):
                return error
            if isinstance(error, dict) and "message" in error:
                return error["message"]
        if "message" in data:
            return data["message"]
        if "detail" in data:
            return str(data["detail"])

    return status_line(response)


def _filter_none(params: dict[str, Any]) -> dict[str, Any]:
    """Remove None values from params dict."""
    return {k: v for k, v in params.items() if v is not None}
