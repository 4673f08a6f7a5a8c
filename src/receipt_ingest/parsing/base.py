from abc import ABC, abstractmethod

from receipt_ingest.models import CandidateTransaction, ParsingMethod


class ParsingStrategy(ABC):
    method: ParsingMethod

    @abstractmethod
    def parse(self, text: str) -> list[CandidateTransaction] | None:
        """Return candidates, or None when this strategy has nothing usable."""
        pass


class ModelClient(ABC):
    @abstractmethod
    def generate(self, prompt: str) -> str:
        """
        Return the model's raw text answer.

        Raises TransientUpstreamOverload for failures worth retrying and
        ModelUnavailableError for everything else.
        """
        pass
