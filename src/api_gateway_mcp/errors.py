"""Exception types raised by the gateway core."""

from typing import Optional


class GatewayError(Exception):
    """Base exception for all gateway errors."""


class SpecParseError(GatewayError):
    """An API description could not be fetched or parsed."""


class RegistrationError(GatewayError):
    """An API could not be added to the registry."""

    def __init__(self, api_name: str, cause: object):
        super().__init__(f"Failed to register API '{api_name}': {cause}")
        self.api_name = api_name
        self.cause = cause


class ApiNotFound(GatewayError):
    def __init__(self, api_name: str):
        super().__init__(f"API '{api_name}' not found")
        self.api_name = api_name


class SchemaDerivationError(GatewayError):
    """An operation definition is too malformed to derive an input schema."""


class UnknownTool(GatewayError):
    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class DispatchError(GatewayError):
    """Base exception for failures while turning a call into an HTTP request."""


class InvocationError(DispatchError):
    """Tool arguments do not match what the tool expects."""


class PathTemplateError(DispatchError):
    """A path template could not be filled from the supplied arguments."""


class UpstreamError(DispatchError):
    """The proxied API failed or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(f"API call failed: {message}")
        self.message = message
        self.status_code = status_code
