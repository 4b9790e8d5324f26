"""Core error handling modules."""

from bikesafe.core.exceptions import (
    APIException,
    ValidationException,
    InvalidInputException,
    ServiceUnavailableException,
    RoutingException,
    NoRouteFoundException,
    ProviderRejectedException,
    register_exception_handlers,
    sanitize_error_message,
)

__all__ = [
    "APIException",
    "ValidationException",
    "InvalidInputException",
    "ServiceUnavailableException",
    "RoutingException",
    "NoRouteFoundException",
    "ProviderRejectedException",
    "register_exception_handlers",
    "sanitize_error_message",
]
