"""HTTP Request node - makes HTTP requests to external APIs."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, TYPE_CHECKING

import httpx

from .base import (
    BaseNode,
    NodeTypeDescription,
    NodeProperty,
    NodePropertyOption,
)
from ..core.config import settings
from ..core.exceptions import StepExecutionError

if TYPE_CHECKING:
    from ..engine.types import RunContext, StepOutput

logger = logging.getLogger(__name__)

METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD")


class HttpRequestNode(BaseNode):
    """HTTP Request node - makes HTTP requests to external APIs."""

    node_description = NodeTypeDescription(
        name="http.request",
        display_name="HTTP Request",
        description="Makes HTTP requests to external APIs",
        group=["action"],
        properties=[
            NodeProperty(
                display_name="Method",
                name="method",
                type="options",
                default="GET",
                options=[NodePropertyOption(name=m, value=m) for m in METHODS],
            ),
            NodeProperty(
                display_name="URL",
                name="url",
                type="string",
                required=True,
                description="The URL to make the request to. Supports expressions.",
            ),
            NodeProperty(
                display_name="Headers",
                name="headers",
                type="json",
                default={},
                description="Mapping of header names to values, or a list of {name, value}",
            ),
            NodeProperty(
                display_name="Body",
                name="body",
                type="json",
                description="Request body (for POST, PUT, PATCH)",
            ),
            NodeProperty(
                display_name="Timeout (ms)",
                name="timeoutMs",
                type="number",
                description="Per-request timeout. Defaults to the engine setting.",
            ),
            NodeProperty(
                display_name="Response Type",
                name="responseType",
                type="options",
                default="json",
                options=[
                    NodePropertyOption(name="JSON", value="json", description="Parse response as JSON"),
                    NodePropertyOption(name="Text", value="text", description="Return raw text"),
                ],
            ),
            NodeProperty(
                display_name="Ignore HTTP Errors",
                name="ignoreHttpErrors",
                type="boolean",
                default=False,
                description="Return 4xx/5xx responses as output instead of failing",
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "http.request"

    @property
    def description(self) -> str:
        return "Makes HTTP requests to external APIs"

    async def execute(self, params: Mapping[str, Any], context: RunContext) -> StepOutput:
        url = self.get_parameter(params, "url")
        method = str(self.get_parameter(params, "method", "GET")).upper()
        response_type = self.get_parameter(params, "responseType", "json")
        ignore_errors = bool(self.get_parameter(params, "ignoreHttpErrors", False))
        timeout_ms = self.get_parameter(params, "timeoutMs", settings.http_timeout_ms)

        if method not in METHODS:
            raise StepExecutionError(f'Unsupported HTTP method "{method}"')

        headers = self._build_headers(self.get_parameter(params, "headers", {}))

        # Process body
        body = None
        if method in ("POST", "PUT", "PATCH"):
            body = params.get("body")
            if isinstance(body, str) and body:
                try:
                    body = json.loads(body)
                except json.JSONDecodeError:
                    pass  # Keep as string

        request_kwargs: dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": headers,
            "timeout": float(timeout_ms) / 1000,
        }
        if isinstance(body, (dict, list)):
            request_kwargs["json"] = body
        elif isinstance(body, str):
            request_kwargs["content"] = body

        if context.http_client is not None:
            response = await self._send(context.http_client, request_kwargs)
        else:
            async with httpx.AsyncClient() as client:
                response = await self._send(client, request_kwargs)

        result = {
            "statusCode": response.status_code,
            "headers": dict(response.headers),
            "body": self._parse_body(response, response_type),
        }

        if response.status_code >= 400 and not ignore_errors:
            retryable = response.status_code >= 500
            raise StepExecutionError(
                f"{method} {url} returned HTTP {response.status_code}",
                retryable=retryable,
            )

        return self.output(result)

    async def _send(self, client: httpx.AsyncClient, request_kwargs: dict[str, Any]) -> httpx.Response:
        try:
            return await client.request(**request_kwargs)
        except httpx.TimeoutException as e:
            raise StepExecutionError(
                f"{request_kwargs['method']} {request_kwargs['url']} timed out", retryable=True
            ) from e
        except httpx.UnsupportedProtocol as e:
            raise StepExecutionError(f"Invalid request: {e}") from e
        except httpx.TransportError as e:
            raise StepExecutionError(
                f"{request_kwargs['method']} {request_kwargs['url']} failed: {e}", retryable=True
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise StepExecutionError(f"Invalid request: {e}") from e

    def _build_headers(self, headers_param: Any) -> dict[str, str]:
        headers: dict[str, str] = {}
        if isinstance(headers_param, list):
            for h in headers_param:
                if isinstance(h, dict) and h.get("name"):
                    headers[h["name"]] = str(h.get("value", ""))
        elif isinstance(headers_param, dict):
            headers.update({str(k): str(v) for k, v in headers_param.items()})
        return headers

    def _parse_body(self, response: httpx.Response, response_type: str) -> Any:
        if response_type == "text":
            return response.text
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug("Response from %s is not JSON, returning text", response.url)
            return response.text
