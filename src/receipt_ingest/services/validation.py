from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel

from receipt_ingest.domain.amounts import parse_amount
from receipt_ingest.domain.categories import DEFAULT_CATEGORY, DEFAULT_TYPE, TRANSACTION_TYPES, is_category
from receipt_ingest.domain.dates import parse_date
from receipt_ingest.logger import get_logger
from receipt_ingest.models import ValidatedTransaction

logger = get_logger(__name__)


def _fields(candidate: BaseModel | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(candidate, BaseModel):
        return candidate.model_dump()
    return candidate


def validate_transaction(
    candidate: BaseModel | Mapping[str, Any],
    *,
    today: date | None = None,
) -> ValidatedTransaction | None:
    """
    Normalize one untrusted record.

    Returns None only when the description is missing. Every other defect is
    repaired. Bad amounts become None, unknown categories become "Other Expense"
    and unknown types become "expense"; each of these flags the record for
    review. Unparseable dates become ``today``. Validating a validated record
    returns an equal record.
    """
    fields = _fields(candidate)

    raw_description = fields.get("description")
    description = "" if raw_description is None else str(raw_description).strip()
    if not description:
        return None

    amount = parse_amount(fields.get("amount"))

    raw_category = fields.get("category")
    category = "" if raw_category is None else str(raw_category).strip()
    category_replaced = not is_category(category)
    if category_replaced:
        category = DEFAULT_CATEGORY

    raw_type = fields.get("type")
    tx_type = "" if raw_type is None else str(raw_type).strip().lower()
    type_replaced = tx_type not in TRANSACTION_TYPES
    if type_replaced:
        tx_type = DEFAULT_TYPE

    parsed_date = parse_date(fields.get("date"))
    if parsed_date is None:
        parsed_date = today or date.today()

    flagged = fields.get("needs_manual_review", fields.get("needsManualReview")) is True

    return ValidatedTransaction(
        description=description,
        amount=amount,
        category=category,
        type=tx_type,
        date=parsed_date,
        needs_manual_review=flagged or amount is None or category_replaced or type_replaced,
    )


def validate_transactions(
    candidates: Iterable[BaseModel | Mapping[str, Any]],
    *,
    today: date | None = None,
) -> list[ValidatedTransaction]:
    today = today or date.today()
    validated: list[ValidatedTransaction] = []
    rejected = 0
    for candidate in candidates:
        result = validate_transaction(candidate, today=today)
        if result is None:
            rejected += 1
            continue
        validated.append(result)

    if rejected:
        logger.debug("[VALIDATE] Rejected %s record(s) without a description.", rejected)
    return validated
