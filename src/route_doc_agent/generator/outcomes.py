"""Outcome classification table.

Maps the outcome signals found in a handler body to an outcome kind, and each
kind to its status code, shared response template and one-line description.
"""

from dataclasses import dataclass
from enum import Enum

from route_doc_agent.errors import SynthesisError


class OutcomeKind(str, Enum):
    OK_WITH_PAYLOAD = "ok_with_payload"
    OK_WITHOUT_PAYLOAD = "ok_without_payload"
    NO_CONTENT = "no_content"
    INPUT_INVALID = "input_invalid"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    RECORD_ABSENT = "record_absent"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class Outcome:
    status: str
    template: str | None
    description: str


OUTCOMES: dict[OutcomeKind, Outcome] = {
    OutcomeKind.OK_WITH_PAYLOAD: Outcome("200", None, "Successful response"),
    OutcomeKind.OK_WITHOUT_PAYLOAD: Outcome("200", None, "Request accepted"),
    OutcomeKind.NO_CONTENT: Outcome("204", None, "No content"),
    OutcomeKind.INPUT_INVALID: Outcome("400", "BadRequest", "Required input is missing or malformed"),
    OutcomeKind.UNAUTHENTICATED: Outcome("401", "Unauthorized", "Caller is not authenticated"),
    OutcomeKind.FORBIDDEN: Outcome("403", "Forbidden", "Caller is not allowed to perform this action"),
    OutcomeKind.RECORD_ABSENT: Outcome("404", "NotFound", "Record not found"),
    OutcomeKind.CONFLICT: Outcome("409", "Conflict", "Request conflicts with the current state"),
}

ERROR_SIGNALS: dict[str, OutcomeKind] = {
    "BadRequest": OutcomeKind.INPUT_INVALID,
    "ValidationError": OutcomeKind.INPUT_INVALID,
    "InvalidInput": OutcomeKind.INPUT_INVALID,
    "MissingField": OutcomeKind.INPUT_INVALID,
    "Unauthorized": OutcomeKind.UNAUTHENTICATED,
    "Unauthenticated": OutcomeKind.UNAUTHENTICATED,
    "NotAuthenticated": OutcomeKind.UNAUTHENTICATED,
    "AuthenticationError": OutcomeKind.UNAUTHENTICATED,
    "Forbidden": OutcomeKind.FORBIDDEN,
    "PermissionDenied": OutcomeKind.FORBIDDEN,
    "AuthorizationError": OutcomeKind.FORBIDDEN,
    "NotFound": OutcomeKind.RECORD_ABSENT,
    "NotFoundError": OutcomeKind.RECORD_ABSENT,
    "RecordNotFound": OutcomeKind.RECORD_ABSENT,
    "DoesNotExist": OutcomeKind.RECORD_ABSENT,
    "Conflict": OutcomeKind.CONFLICT,
    "ConflictError": OutcomeKind.CONFLICT,
    "AlreadyExists": OutcomeKind.CONFLICT,
}

NO_CONTENT_SIGNALS = {"NoContent", "no_content"}

_ERROR_STATUSES: dict[int, OutcomeKind] = {
    int(OUTCOMES[kind].status): kind for kind in set(ERROR_SIGNALS.values())
}


def classify_signal(name: str, handler: str) -> OutcomeKind:
    """Classify a raised exception name, failing for names outside the table."""
    try:
        return ERROR_SIGNALS[name]
    except KeyError:
        raise SynthesisError(
            f"Cannot classify outcome '{name}' raised by handler '{handler}'",
            construct=name,
            context={"handler": handler},
        ) from None


def classify_status(status: int, handler: str) -> OutcomeKind:
    """Classify an explicit error status (abort(404), HTTPException(403))."""
    try:
        return _ERROR_STATUSES[status]
    except KeyError:
        raise SynthesisError(
            f"Cannot classify status {status} signalled by handler '{handler}'",
            construct=str(status),
            context={"handler": handler},
        ) from None


def status_sort_key(status: str, primary: str | None = None) -> tuple[int, int, str]:
    """Order statuses: primary success first, then ascending, non-numeric last."""
    if status == primary:
        return (0, 0, status)
    if status.isdigit():
        return (1, int(status), status)
    return (2, 0, status)
