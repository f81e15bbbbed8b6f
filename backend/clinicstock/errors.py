# Overview: Error taxonomy shared by the authorization gate and the stock services.

"""
Every error the core raises on purpose derives from ClinicError and carries
the HTTP status the API layer answers with, plus a stable machine code.

Deterministic failures (permissions, units, missing products) surface their
reason. Store failures surface as a generic transient error; the operation
name is kept for logs only.
"""

from __future__ import annotations


class ClinicError(Exception):
    """Base class for expected, classified failures."""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return "Internal server error"

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


# =============================================================================
# AUTHENTICATION
# =============================================================================

class AuthenticationFailure(ClinicError):
    """Missing, malformed or expired bearer credential (401)."""
    status_code = 401
    code = "AUTHENTICATION_FAILED"

    def default_message(self) -> str:
        return "Authentication required"


class MissingToken(AuthenticationFailure):
    code = "TOKEN_MISSING"


class InvalidToken(AuthenticationFailure):
    code = "TOKEN_INVALID"

    def default_message(self) -> str:
        return "Invalid token"


class TokenExpired(AuthenticationFailure):
    code = "TOKEN_EXPIRED"

    def default_message(self) -> str:
        return "Token expired"


class TokenVerificationError(ClinicError):
    """Token verification failed for a reason other than bad input (500)."""
    code = "TOKEN_VERIFICATION_FAILED"

    def default_message(self) -> str:
        return "Authentication failed"


# =============================================================================
# IDENTITY RESOLUTION
# =============================================================================

class IdentityNotFound(ClinicError):
    """No identity record for the id (401 at the gate, 404 elsewhere)."""
    status_code = 401
    code = "IDENTITY_NOT_FOUND"

    def __init__(self, identity_id=None):
        self.identity_id = identity_id
        super().__init__("User not found")


class UserNotFound(ClinicError):
    """Administration target does not exist (404)."""
    status_code = 404
    code = "USER_NOT_FOUND"

    def __init__(self, user_id=None):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class IdentityInactive(ClinicError):
    status_code = 403
    code = "IDENTITY_INACTIVE"

    def __init__(self, identity_id=None):
        self.identity_id = identity_id
        super().__init__("Account is deactivated")


class IdentityResolutionFailed(ClinicError):
    """The store could not be asked; says nothing about the identity itself."""
    status_code = 503
    code = "IDENTITY_RESOLUTION_FAILED"

    def __init__(self, identity_id=None, cause: Exception | None = None):
        self.identity_id = identity_id
        self.cause = cause
        super().__init__("Identity resolution failed")


# =============================================================================
# AUTHORIZATION
# =============================================================================

class PermissionDenied(ClinicError):
    """
    One or more (category, permission) pairs failed.

    category and permission name the first failing pair. The pairs are left
    out of to_dict() unless the caller allows them to be disclosed.
    """
    status_code = 403
    code = "PERMISSION_DENIED"

    def __init__(self, missing):
        self.missing = tuple(missing)
        self.category, self.permission = self.missing[0] if self.missing else (None, None)
        super().__init__("Permission denied")

    @property
    def missing_names(self) -> list[str]:
        return [f"{category}.{permission}" for category, permission in self.missing]

    def to_dict(self, expose: bool = False) -> dict:
        body = super().to_dict()
        if expose:
            names = self.missing_names
            if len(names) == 1:
                body["required_permission"] = names[0]
            body["missing_permissions"] = names
        return body


# =============================================================================
# INPUT / DOMAIN
# =============================================================================

class ValidationError(ClinicError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"


class ProductNotFound(ClinicError):
    status_code = 404
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id=None):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class ProductInactive(ClinicError):
    status_code = 409
    code = "PRODUCT_INACTIVE"

    def __init__(self, product_id=None):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is inactive")


class BatchNotFound(ClinicError):
    status_code = 404
    code = "BATCH_NOT_FOUND"

    def __init__(self, batch_reference=None):
        self.batch_reference = batch_reference
        super().__init__(f"Restock batch {batch_reference} not found")


class SupplierNotFound(ClinicError):
    status_code = 404
    code = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id=None):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier {supplier_id} not found")


class UnitConversionError(ClinicError, ValueError):
    status_code = 400
    code = "UNIT_CONVERSION_ERROR"


class UnknownUnit(UnitConversionError):
    code = "UNKNOWN_UNIT"

    def __init__(self, unit: str):
        self.unit = unit
        super().__init__(f"Unknown unit: {unit}")


class UnitMismatch(UnitConversionError):
    code = "UNIT_MISMATCH"

    def __init__(self, from_unit: str, to_unit: str, detail: str | None = None):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(detail or f"Cannot convert from {from_unit} to {to_unit}")


# =============================================================================
# STORE
# =============================================================================

class StoreUnavailable(ClinicError):
    """The store did not answer within bounds. Never retried in the core."""
    status_code = 503
    code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__("Service temporarily unavailable")


class SequenceAllocationFailure(StoreUnavailable):
    code = "SEQUENCE_ALLOCATION_FAILED"

    def __init__(self, counter_name: str, cause: Exception | None = None):
        self.counter_name = counter_name
        super().__init__(f"sequence:{counter_name}", cause)
