"""Exceptions raised by the request path.

Cache backends never raise these; their failures are absorbed inside
:mod:`explorer_gateway.cache` and degrade to a cache miss.
"""


class GatewayError(Exception):
    """Base class for all explorer gateway errors."""


class EndpointError(GatewayError):
    """
    Transient failure of a single upstream endpoint.

    Parameters
    ----------
    message : str
        Human readable description
    address : str | None
        Base address of the endpoint that failed

    """

    def __init__(self, message: str, address: str | None = None) -> None:
        super().__init__(message)
        self.address = address


class EndpointHTTPError(EndpointError):
    """Endpoint answered with a non-2xx status other than 429."""

    def __init__(self, message: str, address: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message, address)
        self.status_code = status_code


class RateLimitedError(EndpointError):
    """Endpoint answered with HTTP 429."""


class EndpointUnavailableError(EndpointError):
    """Network error or timeout while talking to an endpoint."""


class MalformedResponseError(EndpointError):
    """Endpoint answered 2xx but the body was not valid JSON."""


class NoEndpointsError(GatewayError):
    """A logical resource has no configured endpoints."""


class UnknownChainError(GatewayError, KeyError):
    """Chain is not present in the loaded chain configuration."""


class UnknownEndpointError(GatewayError, KeyError):
    """Logical endpoint name is not registered."""
