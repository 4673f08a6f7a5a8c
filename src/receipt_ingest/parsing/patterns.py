import re

from receipt_ingest.domain.amounts import parse_amount
from receipt_ingest.domain.categories import DEFAULT_CATEGORY, DEFAULT_TYPE, guess_category
from receipt_ingest.logger import get_logger
from receipt_ingest.models import CandidateTransaction, ParsingMethod
from receipt_ingest.parsing.base import ParsingStrategy

logger = get_logger(__name__)

EXCLUDE_KEYWORDS = (
    "total",
    "subtotal",
    "tax",
    "gst",
    "vat",
    "discount",
    "change",
    "payment",
    "cash",
    "card",
    "balance",
    "amount due",
)
MAX_RECORDS = 20
PLACEHOLDER_DESCRIPTION = "Manual entry required"

TRAILING_AMOUNT = re.compile(
    r"(?:₹|Rs\.?|INR|CHF|€|£|\$)?\s*(\d[\d,]*(?:[.,]\d{1,2})?)\s*$",
    re.IGNORECASE,
)
# Separators left dangling once the amount is cut off ("Coffee ....", "Tea -", "Milk @").
_TRAILING_SEPARATORS = re.compile(r"[\s.:\-@*=]+$")
_HAS_LETTER = re.compile(r"[^\W\d_]")


def is_excluded(line: str) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in EXCLUDE_KEYWORDS)


def parse_line(line: str) -> CandidateTransaction | None:
    """One receipt line to a candidate, or None when it holds no priced item."""
    if is_excluded(line):
        return None
    match = TRAILING_AMOUNT.search(line)
    if not match:
        return None
    amount = parse_amount(match.group(1))
    if amount is None:
        return None
    description = _TRAILING_SEPARATORS.sub("", line[: match.start()]).strip()
    # Bare dates and reference numbers ("12/05/2024") are not items.
    if not _HAS_LETTER.search(description):
        return None
    return CandidateTransaction(
        description=description,
        amount=amount,
        category=guess_category(description),
        type=DEFAULT_TYPE,
        needs_manual_review=False,
    )


def placeholder_candidate() -> CandidateTransaction:
    return CandidateTransaction(
        description=PLACEHOLDER_DESCRIPTION,
        amount=None,
        category=DEFAULT_CATEGORY,
        type=DEFAULT_TYPE,
        needs_manual_review=True,
    )


class PatternStrategy(ParsingStrategy):
    method: ParsingMethod = "pattern"

    def __init__(self, max_records: int = MAX_RECORDS):
        self.max_records = max_records

    def parse(self, text: str) -> list[CandidateTransaction] | None:
        candidates: list[CandidateTransaction] = []
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue
            candidate = parse_line(line)
            if candidate is None:
                continue
            candidates.append(candidate)
            if len(candidates) >= self.max_records:
                logger.info("[PARSE] Pattern match capped at %s records.", self.max_records)
                break

        logger.info("[PARSE] Pattern strategy found %s candidate(s).", len(candidates))
        return candidates or None
