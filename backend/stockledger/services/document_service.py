# Overview: Allocation of human-readable document numbers.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a document type ("S-000001").

    Runs inside the caller's transaction: the increment is rolled back with
    it, so a rejected sale does not burn a number.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    if result.rowcount:
        allocated = db.session.query(DocumentSequence.next_number).filter_by(
            document_type=document_type
        ).scalar() - 1
    else:
        db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        db.session.flush()
        allocated = 1

    return f"{prefix}-{allocated:0{pad}d}"
