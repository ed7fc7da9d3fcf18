"""
Document State Machine

This module is the SINGLE SOURCE OF TRUTH for document status transitions.
All status changes must go through this module.

DRAFT documents are editable and recomputed on demand. POSTED documents have
finalized totals, may be appended to a party ledger and are never
recomputed again. Corrections to a posted document are made by posting a
compensating document, not by editing it.
"""

from typing import List, Dict

from gst_ledger.core.exceptions import NotPostableError, ValidationError
from gst_ledger.schemas.document import Document, DocumentStatus, AMOUNT_TYPES


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> [list of allowed next statuses]
DOCUMENT_TRANSITIONS: Dict[DocumentStatus, List[DocumentStatus]] = {
    DocumentStatus.DRAFT: [
        DocumentStatus.POSTED,      # Finalize (received / issued)
        DocumentStatus.CANCELLED,   # Discard draft
    ],
    DocumentStatus.POSTED: [],      # Terminal for tax purposes
    DocumentStatus.CANCELLED: [],   # Terminal state
}

# Human-readable action names for each transition
TRANSITION_ACTIONS: Dict[tuple, str] = {
    (DocumentStatus.DRAFT, DocumentStatus.POSTED): "Post",
    (DocumentStatus.DRAFT, DocumentStatus.CANCELLED): "Cancel",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: DocumentStatus, new_status: DocumentStatus) -> bool:
    """Check if a transition is allowed."""
    return new_status in DOCUMENT_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: DocumentStatus) -> List[DocumentStatus]:
    """Get list of statuses that can be transitioned to from current status."""
    return DOCUMENT_TRANSITIONS.get(current_status, [])


def get_transition_action(current_status: DocumentStatus, new_status: DocumentStatus) -> str:
    """Get human-readable action name for a transition."""
    return TRANSITION_ACTIONS.get(
        (current_status, new_status),
        f"{current_status.value} -> {new_status.value}",
    )


def validate_transition(document: Document, new_status: DocumentStatus) -> None:
    """
    Validate a status transition. Raises ValidationError if invalid.
    """
    current_status = document.status
    if current_status == new_status:
        return

    if not can_transition(current_status, new_status):
        allowed = get_allowed_transitions(current_status)
        if not allowed:
            raise ValidationError(
                f"{document.document_type.value} in '{current_status.value}' status cannot be modified. "
                f"This is a terminal state.",
                {"document_id": str(document.id), "status": current_status.value},
            )
        raise ValidationError(
            f"Cannot change {document.document_type.value} from '{current_status.value}' "
            f"to '{new_status.value}'. Allowed transitions: {', '.join(s.value for s in allowed)}",
            {"document_id": str(document.id), "status": current_status.value},
        )


# =============================================================================
# STATUS CHECK HELPERS
# =============================================================================

def can_edit(status: DocumentStatus) -> bool:
    """Can this document's lines be edited and recomputed?"""
    return status == DocumentStatus.DRAFT


def is_finalized(document: Document) -> bool:
    """POSTED with money in place."""
    return document.status == DocumentStatus.POSTED and document.total_amount is not None


def ensure_editable(document: Document) -> None:
    """Raise unless the document may still be recomputed."""
    if not can_edit(document.status):
        raise ValidationError(
            f"{document.document_type.value} {document.document_number or document.id} is "
            f"{document.status.value} and cannot be recomputed",
            {"document_id": str(document.id), "status": document.status.value},
        )


def ensure_postable(document: Document) -> None:
    """
    Raise NotPostableError unless the document's totals are final.

    This is what keeps the ledger limited to committed business events.
    """
    if document.status != DocumentStatus.POSTED:
        raise NotPostableError(
            f"{document.document_type.value} {document.document_number or document.id} is "
            f"{document.status.value}; only POSTED documents affect the ledger",
            {"document_id": str(document.id), "status": document.status.value},
        )
    if document.total_amount is None:
        field = "amount" if document.document_type in AMOUNT_TYPES else "totals"
        raise NotPostableError(
            f"{document.document_type.value} {document.document_number or document.id} has no finalized {field}",
            {"document_id": str(document.id), "missing": field},
        )


# =============================================================================
# TRANSITION EXECUTOR
# =============================================================================

def transition_document(document: Document, new_status: DocumentStatus) -> Document:
    """
    Transition a document to a new status.

    Returns a new Document; the input is left untouched.

    Raises:
        ValidationError: If transition is not allowed
        NotPostableError: If posting a document without finalized money
    """
    validate_transition(document, new_status)
    updated = document.model_copy(update={"status": new_status})
    if new_status == DocumentStatus.POSTED:
        ensure_postable(updated)
    return updated
