"""
Typed Exception Hierarchy for the Siteflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every workflow error is scoped to a single transition attempt and has to be
handled differently by the caller:

  - ValidationError     -> show the missing field, let the actor retry
  - StaleStateError     -> re-fetch the request, let the actor retry
  - ForbiddenTransition -> the actor's dashboard should never offer it
  - StorageError        -> non-fatal alert, no state was mutated

Callers catch by type, never by message. Every class carries a CODE class
attribute (machine-readable, API-safe) and stores its context as attributes.

Example:
    try:
        store.apply_transition(request_id, ActorRole.PM, IndentStatus.QS_ANALYSIS,
                               PMDecision(pm_comments="ok"),
                               expected_status=IndentStatus.PM_REVIEW)
    except StaleStateError as e:
        refresh_inbox(e.entity_id)
    except ValidationError as e:
        highlight(e.fields)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SiteflowError (base)
    |
    +-- WorkflowError
    |   +-- ValidationError
    |   |   +-- IllegalTransitionError
    |   |       +-- TerminalStateError
    |   +-- ForbiddenTransitionError
    |
    +-- NotFoundError
    |
    +-- ConcurrencyError
    |   +-- StaleStateError
    |
    +-- StorageError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                   | When Raised
-------------|------------------------|--------------------------------------------
Workflow     | VALIDATION_ERROR       | Required payload field missing or malformed
             | ILLEGAL_TRANSITION     | (from, to) pair not in the transition table
             | TERMINAL_STATE         | Request already Completed/Closed/Rejected
             | FORBIDDEN_TRANSITION   | Role may not perform a legal transition
-------------|------------------------|--------------------------------------------
Lookup       | NOT_FOUND              | Unknown entity id
-------------|------------------------|--------------------------------------------
Concurrency  | STALE_STATE            | Stored status != expected status at write
-------------|------------------------|--------------------------------------------
Storage      | STORAGE_ERROR          | Persistence failure after bounded retry
-------------|------------------------|--------------------------------------------
Immutability | IMMUTABILITY_VIOLATION | Write outside the sanctioned write path
"""

from collections.abc import Sequence


class SiteflowError(Exception):
    """
    Base exception for all siteflow errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SITEFLOW_ERROR"


# Workflow exceptions


class WorkflowError(SiteflowError):
    """Base exception for transition attempts the engine refuses."""

    code: str = "WORKFLOW_ERROR"


class ValidationError(WorkflowError):
    """A transition or submission lacks a required field or has a bad value."""

    code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        entity_type: str,
        fields: Sequence[str],
        reason: str,
        entity_id: str | None = None,
        guard: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.fields = tuple(fields)
        self.reason = reason
        self.guard = guard
        target = f"{entity_type} {entity_id}" if entity_id else entity_type
        super().__init__(f"Validation failed for {target}: {reason}")


class IllegalTransitionError(ValidationError):
    """The proposed (from, to) pair is not an edge of the workflow."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        from_state: str,
        to_state: str,
        entity_id: str | None = None,
    ):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            entity_type,
            fields=("status",),
            reason=f"no transition from {from_state} to {to_state}",
            entity_id=entity_id,
        )


class TerminalStateError(IllegalTransitionError):
    """The entity is in a terminal state and accepts no further transition."""

    code: str = "TERMINAL_STATE"


class ForbiddenTransitionError(WorkflowError):
    """The actor's role is not permitted to perform this transition."""

    code: str = "FORBIDDEN_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        actor_role: str,
        from_state: str,
        to_state: str,
        entity_id: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.actor_role = actor_role
        self.from_state = from_state
        self.to_state = to_state
        target = f"{entity_type} {entity_id}" if entity_id else entity_type
        super().__init__(
            f"Role {actor_role} may not move {target} from {from_state} to {to_state}"
        )


# Lookup exceptions


class NotFoundError(SiteflowError):
    """Entity with given ID was not found."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Concurrency exceptions


class ConcurrencyError(SiteflowError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleStateError(ConcurrencyError):
    """The stored status no longer matches the status the actor acted on."""

    code: str = "STALE_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_state: str,
        actual_state: str | None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_state = expected_state
        self.actual_state = actual_state
        super().__init__(
            f"Stale state on {entity_type} {entity_id}: "
            f"expected {expected_state}, found {actual_state}"
        )


# Storage exceptions


class StorageError(SiteflowError):
    """The persistence layer failed; nothing was committed."""

    code: str = "STORAGE_ERROR"

    def __init__(self, operation: str, reason: str, attempts: int = 1):
        self.operation = operation
        self.reason = reason
        self.attempts = attempts
        super().__init__(
            f"Storage failure during {operation} after {attempts} attempt(s): {reason}"
        )


# Immutability exceptions


class ImmutabilityError(SiteflowError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """A record was modified outside its sanctioned write path."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
