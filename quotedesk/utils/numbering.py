"""Sequential document numbers: QT-0001, QT-0002, INV-0001..."""
import re

_TRAILING_DIGITS = re.compile(r'(\d+)$')


def next_document_number(prefix: str, last_number: str = None) -> str:
    """
    Next number after `last_number` for `prefix`.

    >>> next_document_number('QT')
    'QT-0001'
    >>> next_document_number('QT', 'QT-0041')
    'QT-0042'
    """
    if not last_number:
        return f"{prefix}-0001"
    match = _TRAILING_DIGITS.search(last_number)
    current = int(match.group(1)) if match else 0
    return f"{prefix}-{str(current + 1).zfill(4)}"


def allocate_document_number(session, column, prefix: str) -> str:
    """
    Next number for `prefix`, continuing from the most recent row using it.

    `column` is a mapped attribute such as Quote.quote_number. Uniqueness is
    enforced by its unique constraint; a concurrent allocation surfaces as an
    IntegrityError on flush.
    """
    model = column.class_
    last = (
        session.query(column)
        .filter(column.like(f"{prefix}-%"))
        .order_by(model.id.desc())
        .first()
    )
    return next_document_number(prefix, last[0] if last else None)
