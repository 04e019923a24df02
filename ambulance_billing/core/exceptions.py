"""
Typed exceptions raised by the bill workflow.

Every error carries a machine-readable ``code`` so the API layer can map it to
a status code without parsing messages:

    WorkflowError (base)
    |
    +-- DomainError              the request itself was refused
    |   +-- ValidationError      malformed or missing input, nothing written
    |   +-- NotFoundError        referenced bill/ambulance/user/region absent
    |   +-- AuthorizationError   role or policy disallows the request
    |   +-- ConflictError        stale precondition or uniqueness clash
    |
    +-- StoreError               infrastructure failure, transaction rolled back

Catch DomainError to handle refusals without also catching store failures.
StoreError signals that the request may be retried as a whole, but only when
it is idempotent. Bill creation is not.
"""

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for all workflow errors."""

    code: str = "WORKFLOW_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class DomainError(WorkflowError):
    """A refusal caused by the request, never by the store."""

    code = "DOMAIN_ERROR"


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"


class NotFoundError(DomainError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            {"entity": entity, "id": str(entity_id)},
        )


class AuthorizationError(DomainError):
    code = "NOT_AUTHORIZED"


class ConflictError(DomainError):
    code = "CONFLICT"


class StoreError(WorkflowError):
    code = "STORE_ERROR"
