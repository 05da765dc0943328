"""
Domain errors raised by the service layer.

Services raise these exceptions; endpoint modules translate them into
HTTP responses using the ``status_code`` and ``kind`` attributes.
Anything that is not a ``MarketplaceError`` is treated as an internal
failure and answered with HTTP 500.
"""

import logging

from fastapi import HTTPException
from pydantic import ValidationError as PydanticValidationError


logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Base class for expected, client-attributable failures."""

    status_code = 500
    kind = "Internal"

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        # Entity ids, attempted transition etc.; used for logging.
        self.context = context

    def to_http(self) -> HTTPException:
        """Log the failure with its context and build the HTTP error."""
        logger.warning("%s: %s %s", self.kind, self.message, self.context)
        return HTTPException(
            status_code=self.status_code,
            detail={"message": self.message, "error": self.kind},
        )


class NotFoundError(MarketplaceError):
    status_code = 404
    kind = "NotFound"


class InvalidTransitionError(MarketplaceError):
    status_code = 409
    kind = "InvalidTransition"


class ForbiddenError(MarketplaceError):
    status_code = 403
    kind = "Forbidden"


class ValidationError(MarketplaceError):
    status_code = 400
    kind = "ValidationError"


class ConflictError(MarketplaceError):
    """A concurrent writer changed the entity first, or a uniqueness clash."""

    status_code = 409
    kind = "Conflict"


def from_pydantic(error: PydanticValidationError, **context) -> ValidationError:
    """Wrap a Pydantic validation failure raised while building a model by hand."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first['msg']}" if location else first["msg"]
    return ValidationError(message, **context)
