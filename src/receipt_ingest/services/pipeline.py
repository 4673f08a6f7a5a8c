import asyncio
from datetime import date
from time import perf_counter
from typing import Protocol

from receipt_ingest.domain.timefmt import elapsed_ms, format_duration
from receipt_ingest.errors import ExtractionError, UnsupportedMimeTypeError
from receipt_ingest.extraction.extractor import TextExtractor, normalize_mime_type
from receipt_ingest.integration.storage import DocumentStore
from receipt_ingest.logger import get_logger
from receipt_ingest.models import (
    PipelineError,
    PipelineErrorKind,
    PipelineResult,
    PipelineStage,
    PipelineStats,
    RawExtraction,
    ValidatedTransaction,
)
from receipt_ingest.parsing.parser import ParseResult, TransactionParser
from receipt_ingest.services.validation import validate_transactions

logger = get_logger(__name__)

STAGE_PROGRESS = {
    PipelineStage.EXTRACTING: 0.0,
    PipelineStage.PARSING: 40.0,
    PipelineStage.VALIDATING: 80.0,
    PipelineStage.DONE: 100.0,
    PipelineStage.FAILED: 100.0,
}
PREVIEW_LENGTH = 500


class ProgressListener(Protocol):
    def on_progress(self, stage: PipelineStage, percent: float) -> None: ...


def build_stats(
    transactions: list[ValidatedTransaction],
    *,
    extraction: RawExtraction | None,
    parsed: ParseResult | None,
    processing_time_ms: int,
) -> PipelineStats:
    total = len(transactions)
    has_amount = sum(1 for t in transactions if t.amount is not None)
    return PipelineStats(
        total_count=total,
        has_amount_count=has_amount,
        needs_manual_review_count=sum(1 for t in transactions if t.needs_manual_review),
        success_rate=round(has_amount / total * 100, 1) if total else 0.0,
        extraction_method=extraction.method if extraction else None,
        extraction_confidence=extraction.confidence if extraction else None,
        parsing_method=parsed.method if parsed else None,
        processing_time_ms=processing_time_ms,
        text_length=len(extraction.text) if extraction else 0,
    )


def build_text_preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class ReceiptPipeline:
    """
    Bytes in, validated transactions out.

    Only extraction can fail a request; parsing and validation degrade instead.
    Instances hold collaborators only, so one pipeline can serve concurrent calls.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        parser: TransactionParser,
        *,
        store: DocumentStore | None = None,
        listener: ProgressListener | None = None,
        today: date | None = None,
    ) -> None:
        self.extractor = extractor
        self.parser = parser
        self.store = store
        self.listener = listener
        self.today = today

    async def aprocess(self, data: bytes, mime_type: str) -> PipelineResult:
        return await asyncio.to_thread(self.process, data, mime_type)

    def process(self, data: bytes, mime_type: str) -> PipelineResult:
        started_at = perf_counter()

        normalized = normalize_mime_type(mime_type)
        if normalized is None:
            message = str(UnsupportedMimeTypeError(mime_type))
            logger.warning("[PIPELINE] %s", message)
            return self._failed("UnsupportedMimeType", message, started_at, None)

        handle = self._store(data, normalized)

        self._notify(PipelineStage.EXTRACTING)
        try:
            extraction = self.extractor.extract(data, normalized)
        except UnsupportedMimeTypeError as e:
            return self._failed("UnsupportedMimeType", str(e), started_at, handle)
        except ExtractionError as e:
            logger.warning("[PIPELINE] Extraction failed: %s", e)
            return self._failed("ExtractionError", str(e), started_at, handle)
        except Exception as e:
            logger.exception("[PIPELINE] Unexpected extraction error.")
            return self._failed("ExtractionError", f"Text extraction failed: {e}", started_at, handle)

        self._notify(PipelineStage.PARSING)
        parsed = self.parser.parse_detailed(extraction.text)

        self._notify(PipelineStage.VALIDATING)
        transactions = validate_transactions(parsed.candidates, today=self.today or date.today())

        stats = build_stats(
            transactions,
            extraction=extraction,
            parsed=parsed,
            processing_time_ms=elapsed_ms(started_at),
        )
        self._notify(PipelineStage.DONE)
        logger.info(
            "[PIPELINE] %s transaction(s) via %s/%s, %s need review, in %s",
            stats.total_count,
            stats.extraction_method,
            stats.parsing_method,
            stats.needs_manual_review_count,
            format_duration(stats.processing_time_ms),
        )
        return PipelineResult(
            outcome="success" if transactions else "empty",
            stage=PipelineStage.DONE,
            transactions=transactions,
            stats=stats,
            document_handle=handle,
            text_preview=build_text_preview(extraction.text),
        )

    def _failed(
        self,
        kind: PipelineErrorKind,
        message: str,
        started_at: float,
        handle: str | None,
    ) -> PipelineResult:
        self._notify(PipelineStage.FAILED)
        return PipelineResult(
            outcome="failed",
            stage=PipelineStage.FAILED,
            stats=PipelineStats(processing_time_ms=elapsed_ms(started_at)),
            error=PipelineError(kind=kind, message=message),
            document_handle=handle,
        )

    def _store(self, data: bytes, mime_type: str) -> str | None:
        if self.store is None or not data:
            return None
        try:
            return self.store.store(data, mime_type)
        except Exception as e:
            logger.warning("[STORE] Could not store upload, continuing without a handle: %s", e)
            return None

    def _notify(self, stage: PipelineStage) -> None:
        if self.listener is None:
            return
        try:
            self.listener.on_progress(stage, STAGE_PROGRESS[stage])
        except Exception as e:
            logger.warning("[PIPELINE] Progress listener failed at %s: %s", stage.value, e)
