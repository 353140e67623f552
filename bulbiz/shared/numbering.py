"""Sequential document numbers (DEV-2026-001, FAC-2026-001), per user and per year"""

import re
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session


def next_document_number(
    db: Session,
    column,
    user_column,
    user_id: str,
    prefix: str,
    today: Optional[date] = None,
) -> str:
    """
    Next free number for this user and year

    Imported documents may carry free-form numbers; only those matching
    PREFIX-YYYY-NNN take part in the sequence.
    """
    year = (today or date.today()).year
    stem = f"{prefix}-{year}-"
    pattern = re.compile(rf"^{re.escape(stem)}(\d+)$")

    existing = db.query(column).filter(user_column == user_id, column.like(f"{stem}%")).all()
    highest = 0
    for (number,) in existing:
        match = pattern.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{stem}{highest + 1:03d}"
