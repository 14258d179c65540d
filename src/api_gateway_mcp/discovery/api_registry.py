"""Registry of upstream APIs, populated once at startup."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

import structlog

from ..errors import ApiNotFound, RegistrationError, SpecParseError
from ..models.schemas import ApiConfig
from .openapi_parser import OperationTable, ParsedSpec, SpecLoader, SpecSource

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RegisteredAPI:
    """One upstream API with its parsed description and request defaults."""

    name: str
    specification: ParsedSpec
    base_url: str
    static_headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def operations(self) -> OperationTable:
        return self.specification.operations


@dataclass(frozen=True)
class RegistrationOutcome:
    """Result of registering one configured API."""

    name: str
    api: RegisteredAPI | None = None
    error: RegistrationError | None = None

    @property
    def ok(self) -> bool:
        return self.api is not None


def resolve_base_url(override: str | None, spec: ParsedSpec) -> str:
    """Explicit override, then the first declared server, then ``""``."""
    if override:
        return override
    if spec.servers:
        return spec.servers[0]
    return ""


class ApiRegistry:
    """Holds registered APIs in registration order.

    The registry is filled by :meth:`register_all` at startup and sealed
    afterwards; later registrations are rejected.
    """

    def __init__(self, loader: SpecLoader | None = None):
        self.loader = loader or SpecLoader()
        self._apis: dict[str, RegisteredAPI] = {}
        self._sealed = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(
        self,
        name: str,
        spec_source: SpecSource,
        base_url_override: str | None = None,
        static_headers: Mapping[str, str] | None = None,
    ) -> RegisteredAPI:
        if self._sealed:
            raise RegistrationError(name, "registry is sealed")
        if name in self._apis:
            raise RegistrationError(name, "an API with this name is already registered")

        try:
            spec = await self.loader.load(spec_source)
        except SpecParseError as e:
            raise RegistrationError(name, e) from e

        api = RegisteredAPI(
            name=name,
            specification=spec,
            base_url=resolve_base_url(base_url_override, spec),
            static_headers=MappingProxyType(dict(static_headers or {})),
        )
        self._apis[name] = api
        logger.info(
            "API registered",
            api=name,
            base_url=api.base_url,
            path_count=len(spec.operations),
        )
        return api

    async def register_all(
        self, configs: Iterable[ApiConfig]
    ) -> list[RegistrationOutcome]:
        """Register every config; one failure never stops the others."""
        outcomes: list[RegistrationOutcome] = []
        for config in configs:
            try:
                api = await self.register(
                    config.name,
                    config.spec_location,
                    base_url_override=config.base_url,
                    static_headers=config.headers,
                )
                outcomes.append(RegistrationOutcome(name=config.name, api=api))
            except RegistrationError as e:
                logger.error("API registration failed", api=config.name, error=str(e))
                outcomes.append(RegistrationOutcome(name=config.name, error=e))

        self._sealed = True
        logger.info(
            "API registration complete",
            registered=sum(1 for o in outcomes if o.ok),
            failed=sum(1 for o in outcomes if not o.ok),
        )
        return outcomes

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def lookup(self, name: str) -> RegisteredAPI:
        api = self._apis.get(name)
        if api is None:
            raise ApiNotFound(name)
        return api

    def all(self) -> list[tuple[str, RegisteredAPI]]:
        return list(self._apis.items())

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._apis)

    def __contains__(self, name: object) -> bool:
        return name in self._apis
