from datetime import date
from decimal import Decimal

import pytest

from gst_ledger.core.exceptions import NotPostableError, ValidationError
from gst_ledger.schemas import Document, DocumentStatus, DocumentType
from gst_ledger.services.document_state_machine import (
    can_transition, ensure_postable, get_allowed_transitions, get_transition_action,
    is_finalized, transition_document,
)


def _payment(party, amount="250", status=DocumentStatus.DRAFT):
    return Document(
        document_type=DocumentType.PAYMENT,
        party_id=party.id,
        document_date=date(2024, 4, 5),
        amount=None if amount is None else Decimal(amount),
        status=status,
    )


@pytest.mark.parametrize("current,new,allowed", [
    (DocumentStatus.DRAFT, DocumentStatus.POSTED, True),
    (DocumentStatus.DRAFT, DocumentStatus.CANCELLED, True),
    (DocumentStatus.POSTED, DocumentStatus.DRAFT, False),
    (DocumentStatus.POSTED, DocumentStatus.CANCELLED, False),
    (DocumentStatus.CANCELLED, DocumentStatus.POSTED, False),
])
def test_transition_table(current, new, allowed):
    assert can_transition(current, new) is allowed


def test_terminal_states_have_no_transitions():
    assert get_allowed_transitions(DocumentStatus.POSTED) == []
    assert get_allowed_transitions(DocumentStatus.CANCELLED) == []


def test_transition_action_names():
    assert get_transition_action(DocumentStatus.DRAFT, DocumentStatus.POSTED) == "Post"
    assert get_transition_action(DocumentStatus.POSTED, DocumentStatus.DRAFT) == "POSTED -> DRAFT"


def test_posting_returns_new_document(vendor):
    draft = _payment(vendor)

    posted = transition_document(draft, DocumentStatus.POSTED)

    assert posted.status == DocumentStatus.POSTED
    assert draft.status == DocumentStatus.DRAFT
    assert is_finalized(posted)


def test_posted_document_cannot_go_back_to_draft(vendor):
    posted = transition_document(_payment(vendor), DocumentStatus.POSTED)

    with pytest.raises(ValidationError, match="terminal state"):
        transition_document(posted, DocumentStatus.DRAFT)


def test_posting_without_money_is_refused(vendor):
    bill = Document(
        document_type=DocumentType.BILL,
        party_id=vendor.id,
        document_date=date(2024, 4, 1),
    )

    with pytest.raises(NotPostableError) as exc:
        transition_document(bill, DocumentStatus.POSTED)
    assert exc.value.details["missing"] == "totals"

    with pytest.raises(NotPostableError):
        transition_document(_payment(vendor, amount=None), DocumentStatus.POSTED)


def test_draft_and_cancelled_are_not_postable(vendor):
    with pytest.raises(NotPostableError):
        ensure_postable(_payment(vendor))

    cancelled = transition_document(_payment(vendor), DocumentStatus.CANCELLED)
    with pytest.raises(NotPostableError):
        ensure_postable(cancelled)
