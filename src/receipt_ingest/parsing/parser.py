from dataclasses import dataclass, field

from receipt_ingest.logger import get_logger
from receipt_ingest.models import CandidateTransaction, ParsingMethod
from receipt_ingest.parsing.base import ParsingStrategy
from receipt_ingest.parsing.llm import LLMStrategy
from receipt_ingest.parsing.patterns import PatternStrategy, placeholder_candidate

logger = get_logger(__name__)


@dataclass(frozen=True)
class ParseResult:
    candidates: list[CandidateTransaction] = field(default_factory=list)
    method: ParsingMethod = "placeholder"


class TransactionParser:
    def __init__(self, strategies: list[ParsingStrategy] | None = None):
        # Pattern strategy last: it is the deterministic floor under the model.
        self.strategies: list[ParsingStrategy] = strategies if strategies is not None else [PatternStrategy()]

    @classmethod
    def with_model(cls, llm: LLMStrategy | None) -> "TransactionParser":
        strategies: list[ParsingStrategy] = []
        if llm is not None:
            strategies.append(llm)
        strategies.append(PatternStrategy())
        return cls(strategies)

    def parse(self, text: str) -> list[CandidateTransaction]:
        return self.parse_detailed(text).candidates

    def parse_detailed(self, text: str) -> ParseResult:
        text = text or ""
        for strategy in self.strategies:
            strategy_name = strategy.__class__.__name__
            logger.debug("[PARSE] Trying %s on %s chars.", strategy_name, len(text))
            try:
                candidates = strategy.parse(text)
            except Exception as e:
                logger.exception("[PARSE] %s failed: %s", strategy_name, e)
                continue

            if candidates:
                logger.debug("[PARSE] %s returned %s candidate(s).", strategy_name, len(candidates))
                return ParseResult(candidates=list(candidates), method=strategy.method)
            logger.debug("[PARSE] %s returned nothing usable.", strategy_name)

        logger.info("[PARSE] No strategy produced line items; emitting manual-entry placeholder.")
        return ParseResult(candidates=[placeholder_candidate()], method="placeholder")
