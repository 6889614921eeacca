"""HTTP access to the Guillotine GraphQL API.

Every failure leaves this module as a :class:`~xpfetch.core.exceptions.FetchError`
carrying ``code`` and ``message``:

- transport failures (connection refused, timeouts): code ``"API"``
- non-success status: the HTTP status, with the response text
- unparseable or empty JSON: ``500``
- a Guillotine ``errors`` collection: ``500``, details only in the log
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from types import TracebackType
from typing import Any

import httpx
from pydantic import ValidationError

from xpfetch.core.exceptions import ApiResponseError, BackendError, InvalidInputError, TransportFailureError
from xpfetch.core.types import RawMetaData

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}

_COMPONENT_FIELDS = """
        type
        path
        page {
          descriptor
          configAsJson
          template
        }
        layout {
          descriptor
          configAsJson
        }
        text {
          value
        }
        part {
          descriptor
          configAsJson
        }
        image {
          caption
          image {
            imageUrl(type: absolute, scale: "width(768)")
          }
        }"""


def page_fragment_query() -> str:
    """Selection of the component fields, including one level of fragment contents."""
    return f"""{_COMPONENT_FIELDS}
        fragment {{
          id
          fragment {{
            components {{{_COMPONENT_FIELDS}
            }}
          }}
        }}"""


def get_meta_query(component_selection: str) -> str:
    """The metadata query: content type, resolved path and component tree."""
    return f"""query($path:ID!){{
  guillotine {{
    get(key:$path) {{
      _path
      type
      pageAsJson(resolveTemplate: true, resolveFragment: false)
      components(resolveTemplate: true, resolveFragment: false) {{{component_selection}
      }}
    }}
  }}
}}"""


class GuillotineClient:
    """Sends queries to one Guillotine endpoint.

    Usage:
        async with GuillotineClient("https://xp.example.com/site/default/draft/hmdb/api") as client:
            meta = await client.fetch_meta_data("${site}/movies")
    """

    def __init__(
        self,
        api_url: str,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: URL of the Guillotine endpoint
            timeout: Request timeout in seconds, applied to every call even on a
                shared ``http_client``. None waits indefinitely on an owned client
                and keeps the shared client's own timeout otherwise.
            http_client: Optional client to reuse; it is not closed by :meth:`aclose`

        """
        self.api_url = api_url
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> GuillotineClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http_client.aclose()

    # ========== Generic fetch ==========

    async def fetch_from_api(self, body: dict[str, Any], method: str = "POST") -> Any:
        """Send ``body`` as JSON and return the parsed response.

        Raises:
            TransportFailureError: If the request could not be sent or answered
            ApiResponseError: If the status is not a success, or the body is not
                JSON or is empty

        """
        try:
            response = await self._http_client.request(
                method,
                self.api_url,
                json=body,
                headers=DEFAULT_HEADERS,
                timeout=self.timeout if self.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.RequestError as exc:
            logger.warning("Request to %s failed: %s", self.api_url, exc)
            raise TransportFailureError(str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            msg = f"Data fetching failed (message: '{response.text}')"
            raise ApiResponseError(msg, code=response.status_code)

        try:
            parsed = response.json()
        except ValueError as exc:
            msg = f"API call completed but with non-JSON data: {json.dumps(response.text)}"
            raise ApiResponseError(msg, code=500) from exc

        if not parsed:
            msg = f"API call completed but with unexpectedly empty data: {json.dumps(response.text)}"
            raise ApiResponseError(msg, code=500)

        return parsed

    # ========== Guillotine fetch ==========

    async def fetch_guillotine(self, body: dict[str, Any], content_path: str) -> dict[str, Any]:
        """Send a Guillotine query and return its ``data`` object.

        Raises:
            InvalidInputError: If the body has no query (nothing is sent)
            BackendError: If the response carries an ``errors`` collection
            TransportFailureError, ApiResponseError: See :meth:`fetch_from_api`

        """
        query = body.get("query")
        if not isinstance(query, str) or not query.strip():
            msg = f"Invalid or missing query. JSON.stringify(query) = {json.dumps(query)}"
            raise InvalidInputError(msg, code=400)

        parsed = await self.fetch_from_api(body)

        errors = parsed.get("errors") if isinstance(parsed, dict) else None
        if errors:
            if not isinstance(errors, Sequence) or isinstance(errors, (str, bytes)):
                errors = [errors]
            logger.warning(
                "%d error(s) when trying to fetch data (path = %s):", len(errors), json.dumps(content_path)
            )
            for error in errors:
                logger.error("%s", error)
            logger.warning("Query:\n%s", query)
            logger.warning("Variables: %s", json.dumps(body.get("variables"), indent=2, default=str))
            raise BackendError(len(errors))

        data = parsed.get("data") if isinstance(parsed, dict) else None
        return data or {}

    async def fetch_meta_data(self, content_path: str) -> RawMetaData | None:
        """First call: content type, resolved ``_path`` and component tree.

        Returns:
            The metadata, or None when no content exists at ``content_path``.

        """
        body = {
            "query": get_meta_query(page_fragment_query()),
            "variables": {"path": content_path},
        }
        data = await self.fetch_guillotine(body, content_path)
        meta = (data.get("guillotine") or {}).get("get")
        if not meta:
            return None
        try:
            return RawMetaData.model_validate(meta)
        except ValidationError as exc:
            msg = f"Server responded with malformed meta data: {exc.error_count()} validation error(s)"
            raise ApiResponseError(msg, code=500) from exc

    async def fetch_content_data(
        self,
        content_path: str,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Second call: the batched content query.

        Returns:
            The ``data`` object, keyed by request alias.

        """
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables
        return await self.fetch_guillotine(body, content_path)
