"""Turn tool invocations into HTTP requests against registered APIs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

import structlog

from ..client import UpstreamClient
from ..errors import InvocationError, PathTemplateError
from ..models.schemas import SUPPORTED_METHODS
from .api_registry import ApiRegistry
from .catalog import DynamicTool
from .schema_deriver import BODY_PROPERTY

logger = structlog.get_logger(__name__)

_PATH_PARAM = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True)
class DispatchRequest:
    """A dynamic tool call resolved to dispatch arguments."""

    api_name: str
    method: str
    path: str
    params: dict[str, Any] = field(default_factory=dict)
    data: Any = None


class Dispatcher:
    """Execute calls against the registered APIs."""

    def __init__(self, registry: ApiRegistry, client: UpstreamClient):
        self._registry = registry
        self._client = client

    async def dispatch(
        self,
        api_name: str,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        data: Any = None,
        headers: Mapping[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send ``method base_url+path`` and return the upstream body as-is."""
        api = self._registry.lookup(api_name)

        verb = method.lower()
        if verb not in SUPPORTED_METHODS:
            raise InvocationError(f"Unsupported HTTP method: {method}")

        url = f"{api.base_url}{path}"

        logger.info("Dispatching", api=api_name, method=verb.upper(), url=url)

        return await self._client.request(
            method=verb.upper(),
            url=url,
            params=dict(params) if params else None,
            json=data,
            headers=merge_headers(api.static_headers, headers),
            timeout=timeout,
        )

    async def dispatch_dynamic(
        self,
        target: DynamicTool,
        arguments: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> Any:
        request = resolve_dynamic_invocation(target, arguments)
        return await self.dispatch(
            request.api_name,
            request.method,
            request.path,
            params=request.params,
            data=request.data,
            timeout=timeout,
        )


def resolve_dynamic_invocation(
    target: DynamicTool, arguments: Mapping[str, Any]
) -> DispatchRequest:
    """Fill the path template and split the remaining arguments.

    Every ``{name}`` placeholder consumes ``arguments[name]``; ``body`` becomes
    the request body and everything else a query parameter.
    """
    template = target.path_template
    stripped = _PATH_PARAM.sub("", template)
    if "{" in stripped or "}" in stripped:
        raise PathTemplateError(f"Malformed path template: {template}")

    remaining = dict(arguments)
    substituted: dict[str, str] = {}

    def _replacer(match: re.Match) -> str:
        key = match.group(1)
        if key not in substituted:
            if key not in remaining:
                raise PathTemplateError(f"Missing path parameter '{key}' for {template}")
            substituted[key] = str(remaining.pop(key))
        return substituted[key]

    path = _PATH_PARAM.sub(_replacer, template)

    data = remaining.pop(BODY_PROPERTY, None)
    return DispatchRequest(
        api_name=target.api_name,
        method=target.method,
        path=path,
        params=remaining,
        data=data,
    )


def merge_headers(
    static: Mapping[str, str], per_call: Mapping[str, str] | None
) -> dict[str, str]:
    """Static headers overlaid by per-call ones, keys compared case-insensitively."""
    merged = dict(static)
    for key, value in (per_call or {}).items():
        for existing in [k for k in merged if k.lower() == key.lower()]:
            del merged[existing]
        merged[key] = value
    return merged
