# Overview: Typed failures raised by services and mapped to HTTP responses by routes.

"""
Error taxonomy (authoritative)

- ValidationError: malformed/missing/out-of-range input, detected before any write.
- NotFound: a referenced entity does not exist.
- ConflictError: uniqueness violation or lost race (duplicate SKU, raced identifier).
- PersistenceFailure: storage unavailable or write rejected.
- PartialFailureRolledBack: a multi-step mutation aborted after >= 1 write.
  Always fully undone; the originating error is kept on `cause`.

Every error carries a short `kind` and the HTTP status the routes answer with.
"""

from __future__ import annotations


class RetailError(Exception):
    """Base class for every failure a mutating operation reports."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "details": self.details}


class ValidationError(RetailError, ValueError):
    """400-level input problem."""

    status_code = 400
    kind = "validation"


class InvalidQuantity(ValidationError):
    pass


class InsufficientStock(ValidationError):
    pass


class NotFound(RetailError, LookupError):
    status_code = 404
    kind = "not_found"


class ItemNotFound(NotFound):
    def __init__(self, item_id):
        super().__init__("Item not found", details={"item_id": item_id})


class MemberNotFound(NotFound):
    def __init__(self, member_id):
        super().__init__("Member not found", details={"member_id": member_id})


class ConflictError(RetailError):
    """409-level business rule conflict (e.g., duplicate SKU)."""

    status_code = 409
    kind = "conflict"


class IdentifierConflict(ConflictError):
    def __init__(self, identifier: str):
        super().__init__(
            f"Identifier {identifier} was taken concurrently",
            details={"identifier": identifier},
        )
        self.identifier = identifier


class ConcurrentUpdateError(ConflictError):
    """A row changed between our read and our write (optimistic lock lost)."""


class PersistenceFailure(RetailError):
    status_code = 500
    kind = "persistence"


class UnitOfWorkTimeout(PersistenceFailure):
    pass


class PartialFailureRolledBack(PersistenceFailure):
    kind = "rolled_back"

    def __init__(self, operation: str, writes_undone: int, cause: BaseException):
        super().__init__(
            f"{operation} failed after {writes_undone} write(s); all changes were rolled back",
            details={
                "operation": operation,
                "writes_undone": writes_undone,
                "cause": str(cause),
                "cause_kind": getattr(cause, "kind", type(cause).__name__),
            },
        )
        self.operation = operation
        self.writes_undone = writes_undone
        self.cause = cause
