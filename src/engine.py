"""
Partner scope decision engine.

Given a token issuance event and an entitlement snapshot, decides which scopes
to append to the access token being issued:

1. The partner is identified by the first value of the `x-b2b-usp-partner`
   entry in the event's additional headers. The header name is matched
   exactly (case-sensitive). No header, or an empty value, means there is
   nothing to add; that is a successful decision, not an error.
2. Every entitlement whose subject is ("partner", <partner id>) grants one
   scope, "partner:<action>".
3. Each granted scope becomes one "add" operation on /accessToken/scopes/-,
   in snapshot order. Duplicates are kept.

The rule is intentionally closed over one subject type and one operation
kind. evaluate() is a pure function: no I/O, no logging, no state kept between
calls. decide() is the entry point for callers that still have to load the
snapshot; it turns a store failure into an ERROR result with no operations.
"""

from typing import Any, Callable, Sequence

from src.entitlements import EntitlementSnapshot, EntitlementStoreError
from src.models import ActionStatus, DecisionResult, Header, IssuanceEvent, PatchOperation

PARTNER_HEADER = "x-b2b-usp-partner"
PARTNER_SUBJECT_TYPE = "partner"

ADD_OPERATION = "add"
# "-" appends to the end of the scopes array (RFC 6901).
SCOPES_APPEND_PATH = "/accessToken/scopes/-"

SERVER_ERROR = "server_error"
POLICY_UNAVAILABLE = "Entitlement policy is unavailable."

_EXTRACT: Any = object()


def extract_partner_id(headers: Sequence[Header]) -> str | None:
    """
    Return the first value of the partner header, or None if there isn't one.

    Header entries with no values are skipped, so a later entry with the same
    name can still supply the partner id.
    """
    for header in headers:
        if header.name == PARTNER_HEADER and header.values:
            return header.values[0] or None
    return None


def scope_for(subject_type: str, action: str) -> str:
    return f"{subject_type}:{action}"


def evaluate(
    event: IssuanceEvent,
    snapshot: EntitlementSnapshot,
    partner_id: str | None = None,
) -> DecisionResult:
    """
    Decide which partner scopes to add to the access token.

    Args:
        event: The issuance event being processed
        snapshot: Entitlements to match against; never modified
        partner_id: Pre-extracted partner id. Extracted from the event when
                    omitted.

    Returns:
        A SUCCESS DecisionResult with one operation per matching entitlement
        (possibly none)
    """
    if partner_id is None:
        partner_id = extract_partner_id(event.additional_headers)

    operations = []
    if partner_id:
        for record in snapshot.lookup(PARTNER_SUBJECT_TYPE, partner_id):
            operations.append(
                PatchOperation(
                    op=ADD_OPERATION,
                    path=SCOPES_APPEND_PATH,
                    value=scope_for(record.subject.type, record.action),
                )
            )

    return DecisionResult(action_status=ActionStatus.SUCCESS, operations=operations)


def error_result(description: str = POLICY_UNAVAILABLE) -> DecisionResult:
    return DecisionResult(
        action_status=ActionStatus.ERROR,
        error_message=SERVER_ERROR,
        error_description=description,
    )


def decide(
    event: IssuanceEvent,
    load_snapshot: Callable[[], EntitlementSnapshot],
    partner_id: str | None = _EXTRACT,
) -> DecisionResult:
    """
    Evaluate an event, loading the entitlement snapshot only when needed.

    The snapshot is not loaded at all when the event carries no partner id,
    so such events succeed even while the policy source is broken.

    Args:
        event: The issuance event being processed
        load_snapshot: Returns the current snapshot, raising
                       EntitlementStoreError when it can't
        partner_id: Partner id already extracted by the caller (None if the
                    event has none). Extracted from the event when omitted.

    Returns:
        The evaluation result, or an ERROR result with no operations if the
        snapshot couldn't be loaded
    """
    if partner_id is _EXTRACT:
        partner_id = extract_partner_id(event.additional_headers)
    if not partner_id:
        return DecisionResult(action_status=ActionStatus.SUCCESS)

    try:
        snapshot = load_snapshot()
    except EntitlementStoreError:
        return error_result()

    return evaluate(event, snapshot, partner_id=partner_id)
