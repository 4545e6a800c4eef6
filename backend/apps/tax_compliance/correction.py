"""Korrekturbelege (Gutschriften) zu finalisierten Originalbelegen."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping, Optional, Sequence

from .dto import BillingDocumentSnapshot, CreditNotePayload, LineItem, non_empty_str
from .errors import InvalidInputError, StateConflictError

DEFAULT_CORRECTION_REASON = "Korrekturbeleg"


def correction_reason(reason: Optional[str]) -> str:
    return non_empty_str(reason) or DEFAULT_CORRECTION_REASON


def parse_line_item_overrides(raw: Optional[Iterable[Any]]) -> tuple[LineItem, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise InvalidInputError("invalid_line_items")
    items = []
    for entry in raw:
        if isinstance(entry, LineItem):
            items.append(entry)
        elif isinstance(entry, Mapping):
            items.append(LineItem.from_mapping(entry))
        else:
            raise InvalidInputError("invalid_line_item")
    return tuple(items)


def build_credit_note(
    source: BillingDocumentSnapshot,
    *,
    due_date: Optional[date] = None,
    line_items: Sequence[LineItem] = (),
) -> CreditNotePayload:
    """Credit note payload mirroring ``source`` with sign-flipped lines.

    Overrides replace the source lines when non-empty. The due date is only
    set when the caller supplies one; the source due date is not copied.
    """

    if source.status == "draft":
        raise StateConflictError("correction_requires_finalized_document")
    base = tuple(line_items) if line_items else source.line_items
    return CreditNotePayload(
        reference_document_id=source.document_id,
        line_items=tuple(item.sign_flipped() for item in base),
        due_date=due_date,
    )
