# redirect_service/errors.py

from fastapi import status


class RedirectError(Exception):
    """Base class for failures that end a request with a plain-text response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"


class ConfigurationError(RedirectError):
    message = "Service configuration error"


class LinkNotFound(RedirectError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Link not found"


class TargetUrlError(RedirectError):
    message = "Invalid link destination"
