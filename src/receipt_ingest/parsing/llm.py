import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx
import openai
from openai import OpenAI

from receipt_ingest.domain.amounts import parse_amount
from receipt_ingest.domain.categories import CATEGORIES, DEFAULT_CATEGORY, DEFAULT_TYPE, TRANSACTION_TYPES
from receipt_ingest.errors import ModelUnavailableError, TransientUpstreamOverload, UnusableModelOutput
from receipt_ingest.logger import get_logger
from receipt_ingest.models import CandidateTransaction, ParsingMethod
from receipt_ingest.parsing.base import ModelClient, ParsingStrategy
from receipt_ingest.parsing.json_tools import extract_json_array
from receipt_ingest.parsing.prompts import EXTRACTION_INSTRUCTIONS, build_extraction_prompt

logger = get_logger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})
MIN_TEXT_LENGTH = 10
_REVIEW_KEYS = ("needsManualReview", "needs_manual_review", "needsManualAmount")
_TRUE_STRINGS = {"true", "yes", "1"}


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Linear backoff: the wait after failed attempt N is N * base_delay."""
    return max(0.0, base_delay) * max(1, attempt)


class OpenAIModelClient(ModelClient):
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: float = 30.0,
        client: OpenAI | None = None,
    ):
        # Retries are owned by LLMStrategy, so the SDK's own retry loop is off.
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=httpx.Timeout(timeout, connect=min(10.0, timeout)),
            max_retries=0,
        )
        self.model = model

    def generate(self, prompt: str) -> str:
        try:
            response = self.client.responses.create(
                model=self.model,
                instructions=EXTRACTION_INSTRUCTIONS,
                input=prompt,
                temperature=0.0,
            )
        except openai.APIConnectionError as e:
            # APITimeoutError is a subclass: a stalled call counts as a failed attempt.
            raise TransientUpstreamOverload(str(e) or e.__class__.__name__) from e
        except openai.APIStatusError as e:
            if e.status_code in TRANSIENT_STATUS_CODES:
                raise TransientUpstreamOverload(f"{e.status_code}: {e.message}") from e
            raise ModelUnavailableError(f"{e.status_code}: {e.message}") from e
        except openai.OpenAIError as e:
            raise ModelUnavailableError(str(e)) from e

        text = extract_output_text(response)
        if text is None:
            raise UnusableModelOutput("Model returned no text.")
        return text


def extract_output_text(response: object) -> str | None:
    output_text = getattr(response, "output_text", None)
    if output_text:
        return output_text

    parts: list[str] = []
    for item in getattr(response, "output", None) or []:
        for block in getattr(item, "content", None) or []:
            if getattr(block, "type", None) in {"output_text", "text"}:
                text = getattr(block, "text", None)
                if text:
                    parts.append(text)
    return "".join(parts) if parts else None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def candidate_from_mapping(item: Mapping[str, Any]) -> CandidateTransaction:
    """Loosely coerce one model item. Shape problems become review flags, not errors."""
    description = item.get("description")
    amount = parse_amount(item.get("amount"))

    raw_category = item.get("category")
    category = str(raw_category).strip() if raw_category is not None else ""
    raw_type = item.get("type")
    tx_type = str(raw_type).strip().lower() if raw_type is not None else ""

    flagged = any(_as_bool(item.get(key)) for key in _REVIEW_KEYS)
    uncertain = amount is None or category not in CATEGORIES or tx_type not in TRANSACTION_TYPES

    return CandidateTransaction(
        description="" if description is None else str(description).strip(),
        amount=amount,
        category=category or DEFAULT_CATEGORY,
        type=tx_type or DEFAULT_TYPE,
        date=item.get("date"),
        needs_manual_review=flagged or uncertain,
    )


class LLMStrategy(ParsingStrategy):
    method: ParsingMethod = "llm"

    def __init__(
        self,
        client: ModelClient,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.sleep = sleep

    def parse(self, text: str) -> list[CandidateTransaction] | None:
        if len(text.strip()) < MIN_TEXT_LENGTH:
            logger.warning("[LLM] Text too short for model parsing (%s chars).", len(text.strip()))
            return None

        response = self._generate_with_retry(build_extraction_prompt(text))
        if response is None:
            return None

        try:
            items = extract_json_array(response)
        except UnusableModelOutput as e:
            logger.warning("[LLM] Unusable response: %s", e)
            return None

        candidates = [candidate_from_mapping(item) for item in items if isinstance(item, Mapping)]
        # Items under invented keys ("item", "price") have no description and would all be rejected later.
        candidates = [candidate for candidate in candidates if candidate.description]
        if not candidates:
            logger.warning("[LLM] Response held no line items (%s array entries).", len(items))
            return None

        logger.info("[LLM] Parsed %s candidate(s).", len(candidates))
        return candidates

    def _generate_with_retry(self, prompt: str) -> str | None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.client.generate(prompt)
            except TransientUpstreamOverload as e:
                if attempt == self.max_attempts:
                    logger.warning(
                        "[LLM] Attempt %s/%s overloaded (%s). Giving up.",
                        attempt,
                        self.max_attempts,
                        e,
                    )
                    return None
                delay = backoff_delay(attempt, self.retry_delay)
                logger.warning(
                    "[LLM] Attempt %s/%s overloaded (%s). Retrying in %.1fs.",
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                self.sleep(delay)
            except (ModelUnavailableError, UnusableModelOutput) as e:
                logger.error("[LLM] Model call failed: %s", e)
                return None
        return None
