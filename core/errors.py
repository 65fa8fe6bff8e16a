"""
core/errors.py -- Domain error taxonomy shared by auth/, inventory/ and api/.

Every expected failure is a DealerAPIError subclass carrying a machine-readable
code, a client-safe message, and the HTTP status the transport maps it to.
api/main.py registers one exception handler for the base class, so services
raise these and never build HTTP responses themselves.

Ownership mismatches raise ResourceNotFound, the same kind as a missing row.
There is no Forbidden kind for inventory resources.

Layer rule: no imports from api/, auth/, or inventory/.
"""

from __future__ import annotations


class DealerAPIError(Exception):
    """Base class for domain failures recovered at the transport boundary."""

    code = "error"
    message = "Request failed."
    status_code = 400

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


class InvalidCredentials(DealerAPIError):
    """Login name/password mismatch. Unknown name and wrong password look identical."""

    code = "bad_credentials"
    message = "Invalid credentials."
    status_code = 401


class Unauthenticated(DealerAPIError):
    """Missing, expired, malformed, or superseded identity assertion."""

    code = "unauthorized"
    message = "Authentication required."
    status_code = 401


class ResourceNotFound(DealerAPIError):
    code = "not_found"
    message = "The resource you are looking for could not be found."
    status_code = 404


class ValidationFailed(DealerAPIError):
    code = "validation_error"
    message = "Request validation failed."
    status_code = 422


class StoreFailure(DealerAPIError):
    """Persistence fault. Logged with detail; the client sees a generic message."""

    code = "store_failure"
    message = "An unexpected error occurred."
    status_code = 500
