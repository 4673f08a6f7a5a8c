from datetime import date
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Category = Literal[
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Entertainment",
    "Bills & Utilities",
    "Healthcare",
    "Education",
    "Travel",
    "Groceries",
    "Other Expense",
]
TransactionType = Literal["income", "expense"]
ExtractionMethod = Literal["ocr-multipass", "pdf-text", "vision-api"]
ParsingMethod = Literal["llm", "pattern", "placeholder"]
PipelineOutcome = Literal["success", "empty", "failed"]
PipelineErrorKind = Literal["ExtractionError", "UnsupportedMimeType"]


class PageSegmentation(IntEnum):
    """Tesseract page segmentation modes used for multi-pass OCR."""
    AUTO = 3
    SINGLE_COLUMN = 4
    UNIFORM_BLOCK = 6
    SINGLE_LINE = 7
    SINGLE_WORD = 8


class PipelineStage(str, Enum):
    EXTRACTING = "extracting"
    PARSING = "parsing"
    VALIDATING = "validating"
    DONE = "done"
    FAILED = "failed"


class OcrResult(BaseModel):
    text: str
    confidence: float


class OcrPass(BaseModel):
    mode: PageSegmentation
    text: str
    confidence: float

    @property
    def score(self) -> float:
        return self.confidence * (len(self.text) / 100)


class RawExtraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(ge=0, le=100)
    method: ExtractionMethod
    elapsed_ms: int = 0


class CandidateTransaction(BaseModel):
    # Parser output. Fields stay loose; the validator enforces the closed vocabularies.
    description: str = ""
    amount: Decimal | None = None
    category: str = "Other Expense"
    type: str = "expense"
    date: Any = None
    needs_manual_review: bool = False


class ValidatedTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    amount: Decimal | None
    category: Category
    type: TransactionType
    date: date
    needs_manual_review: bool


class PipelineStats(BaseModel):
    total_count: int = 0
    has_amount_count: int = 0
    needs_manual_review_count: int = 0
    success_rate: float = 0.0
    extraction_method: ExtractionMethod | None = None
    extraction_confidence: float | None = None
    parsing_method: ParsingMethod | None = None
    processing_time_ms: int = 0
    text_length: int = 0


class PipelineError(BaseModel):
    kind: PipelineErrorKind
    message: str


class PipelineResult(BaseModel):
    outcome: PipelineOutcome
    stage: PipelineStage
    transactions: list[ValidatedTransaction] = Field(default_factory=list)
    stats: PipelineStats = Field(default_factory=PipelineStats)
    error: PipelineError | None = None
    document_handle: str | None = None
    text_preview: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome != "failed"
