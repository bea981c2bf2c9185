"""
Suggestion workflow: a finite state machine over suggestion statuses plus a
role overlay deciding who may trigger which action.

State validity and permissions are separate checks; `execute_workflow_action`
is the one place that applies both and persists the result.
"""
import logging
from typing import List

from .schemas import SuggestionOut, TransitionResult, WorkflowActionResult, utcnow
from .store import SuggestionStore

logger = logging.getLogger(__name__)

# status -> {action: target status}
STATE_TRANSITIONS = {
    "pending": {"start_review": "under_review"},
    "under_review": {
        "approve": "approved",
        "reject": "rejected",
        "request_changes": "changes_requested",
    },
    "changes_requested": {
        "resubmit": "under_review",
        "reject": "rejected",
        "supersede": "superseded",
    },
    "approved": {
        "merge": "merged",
        "reject": "rejected",
    },
    "rejected": {},
    "merged": {},
    "superseded": {},
}

TERMINAL_STATES = frozenset({"rejected", "merged", "superseded"})

ACTION_LABELS = {
    "start_review": "Start Review",
    "approve": "Approve",
    "reject": "Reject",
    "request_changes": "Request Changes",
    "resubmit": "Resubmit",
    "merge": "Merge",
    "supersede": "Supersede",
}

STATUS_LABELS = {
    "pending": "Pending",
    "under_review": "Under Review",
    "changes_requested": "Changes Requested",
    "approved": "Approved",
    "rejected": "Rejected",
    "merged": "Merged",
    "superseded": "Superseded",
}

ACTION_PERMISSIONS = {
    "start_review": frozenset({"moderator", "admin"}),
    "approve": frozenset({"moderator", "admin"}),
    "reject": frozenset({"moderator", "admin"}),
    "request_changes": frozenset({"moderator", "admin"}),
    "resubmit": frozenset({"contributor", "moderator", "admin"}),
    "merge": frozenset({"moderator", "admin"}),
    "supersede": frozenset({"moderator", "admin"}),
}

# Target statuses that record who reviewed the suggestion and when
REVIEW_STAMPED_STATUSES = frozenset({"approved", "rejected", "changes_requested"})


def can_transition(status: str, action: str) -> bool:
    return action in STATE_TRANSITIONS.get(status, {})


def get_target_status(status: str, action: str) -> str | None:
    return STATE_TRANSITIONS.get(status, {}).get(action)


def transition(status: str, action: str) -> TransitionResult:
    target = get_target_status(status, action)
    if target is None:
        action_label = ACTION_LABELS.get(action, str(action)).lower()
        status_label = STATUS_LABELS.get(status, str(status))
        return TransitionResult(
            success=False,
            error=f"Invalid transition: cannot {action_label} a suggestion in '{status_label}' status",
        )
    return TransitionResult(success=True, new_status=target)


def get_available_actions(status: str) -> List[str]:
    return list(STATE_TRANSITIONS.get(status, {}))


def is_terminal_state(status: str) -> bool:
    return status in TERMINAL_STATES


def can_perform_action(role: str | None, action: str) -> bool:
    if not role:
        return False
    return role in ACTION_PERMISSIONS.get(action, frozenset())


def _fail(error: str, status_code: int) -> WorkflowActionResult:
    return WorkflowActionResult(success=False, error=error, status_code=status_code)


def execute_workflow_action(
    store: SuggestionStore,
    suggestion_id: int,
    action: str,
    role: str | None,
    user_id: str,
    review_notes: str | None = None,
) -> WorkflowActionResult:
    """
    Apply a moderator/contributor action to a stored suggestion.

    Checks run in order: permission (403), existence (404), resubmit ownership
    for contributors (403), review notes for request_changes (400), state
    transition (400). Only then is the new status written.
    """
    if not can_perform_action(role, action):
        return _fail(f"Insufficient permissions to {action}", 403)

    suggestion = store.get(suggestion_id)
    if suggestion is None:
        return _fail("Suggestion not found", 404)

    if action == "resubmit" and role == "contributor" and suggestion.submitted_by != user_id:
        return _fail("Only the original submitter can resubmit this suggestion", 403)

    if action == "request_changes" and not (review_notes or "").strip():
        return _fail("Review notes are required when requesting changes", 400)

    result = transition(suggestion.status, action)
    if not result.success:
        return _fail(result.error, 400)

    updates = {"status": result.new_status}
    if result.new_status in REVIEW_STAMPED_STATUSES:
        updates["reviewed_by"] = user_id
        updates["reviewed_at"] = utcnow()
    if review_notes:
        updates["review_notes"] = review_notes

    updated = store.update(suggestion_id, updates)
    if updated is None:
        return _fail("Suggestion not found", 404)

    logger.info(f"Suggestion {suggestion_id}: {suggestion.status} -> {result.new_status} by {user_id} ({role})")
    return WorkflowActionResult(success=True, suggestion=SuggestionOut.model_validate(updated))
