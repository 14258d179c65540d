"""Discovery module: API descriptions to tool catalog and request dispatch."""

from .api_registry import ApiRegistry, RegisteredAPI, RegistrationOutcome
from .catalog import Catalog, CatalogCompiler, CatalogEntry, DynamicTool
from .dispatcher import Dispatcher
from .meta_tools import FixedTool, MetaTools
from .openapi_parser import Operation, ParsedSpec, SpecLoader

__all__ = [
    "ApiRegistry",
    "RegisteredAPI",
    "RegistrationOutcome",
    "Catalog",
    "CatalogCompiler",
    "CatalogEntry",
    "DynamicTool",
    "Dispatcher",
    "FixedTool",
    "MetaTools",
    "Operation",
    "ParsedSpec",
    "SpecLoader",
]
