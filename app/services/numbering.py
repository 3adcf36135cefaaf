"""Human-readable document numbers: {prefix}-{yy}-{sequence:04d}, sequential per prefix and year."""

from datetime import date as date_type
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session


def next_document_number(db: Session, model, prefix: str, doc_date: Optional[date_type] = None) -> str:
    """
    Next free number for prefix in the year of doc_date (today when omitted).
    Uniqueness is finally enforced by the unique constraint on model.number.
    """
    year = (doc_date or date_type.today()).strftime("%y")
    stem = f"{prefix}-{year}-"

    # Longest first, so 10000 sorts above 9999.
    last = (
        db.query(model.number)
        .filter(model.number.like(f"{stem}%"))
        .order_by(func.length(model.number).desc(), model.number.desc())
        .limit(1)
        .scalar()
    )

    sequence = 1
    if last:
        suffix = last[len(stem):]
        sequence = int(suffix) + 1 if suffix.isdigit() else 1

    return f"{stem}{sequence:04d}"
