"""Error taxonomy shared by the catalog and session services.

Every error carries an HTTP status so the edge layer can map it without
knowing which service raised it (see ``main.install_exception_handlers``).
"""

from enum import Enum
from http import HTTPStatus
from typing import Any, Mapping, Optional


class AuthFailureReason(str, Enum):
    """Why a credential or token was rejected. For logging/UX only."""

    EXPIRED = "expired"
    MALFORMED = "malformed"
    REVOKED = "revoked"
    INVALID_CREDENTIALS = "invalid_credentials"


class CatalogError(Exception):
    code: str = "error"
    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, context: Optional[Mapping[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.context = dict(context) if context else {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "detail": self.detail}
        if self.context:
            payload["context"] = self.context
        return payload


class NotFoundError(CatalogError):
    """The referenced entity or user does not exist. Terminal."""

    code = "not_found"
    status = HTTPStatus.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} not found",
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(CatalogError):
    """
    The write could not be applied as given.

    Raised when a concurrent writer changed the row first (version mismatch)
    or when a uniqueness constraint rejected the write. The caller may
    re-fetch and retry; the services never retry on their own.
    """

    code = "conflict"
    status = HTTPStatus.CONFLICT

    def __init__(
        self,
        detail: str,
        entity: Optional[str] = None,
        entity_id: Any = None,
        expected_version: Optional[int] = None,
    ):
        context: dict[str, Any] = {}
        if entity is not None:
            context["entity"] = entity
        if entity_id is not None:
            context["id"] = entity_id
        if expected_version is not None:
            context["expected_version"] = expected_version
        super().__init__(detail, context)
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version


class UnauthorizedError(CatalogError):
    code = "unauthorized"
    status = HTTPStatus.UNAUTHORIZED

    def __init__(self, detail: str, reason: AuthFailureReason):
        super().__init__(detail, {"reason": reason.value})
        self.reason = reason


class InvalidCredentialsError(UnauthorizedError):
    """Wrong password and unknown username look the same from outside."""

    code = "invalid_credentials"

    def __init__(self):
        super().__init__(
            "Invalid username or password",
            AuthFailureReason.INVALID_CREDENTIALS,
        )
