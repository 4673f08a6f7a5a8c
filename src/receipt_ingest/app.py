import pytesseract

from receipt_ingest.core.settings import PipelineConfig
from receipt_ingest.extraction.extractor import TextExtractor
from receipt_ingest.extraction.pdf import PdfPlumberTextSource
from receipt_ingest.extraction.tesseract import TesseractEngine
from receipt_ingest.extraction.vision import GoogleVisionService
from receipt_ingest.integration.storage import DocumentStore
from receipt_ingest.logger import get_logger
from receipt_ingest.parsing.llm import LLMStrategy, OpenAIModelClient
from receipt_ingest.parsing.parser import TransactionParser
from receipt_ingest.services.pipeline import ProgressListener, ReceiptPipeline

logger = get_logger(__name__)


def create_parser(config: PipelineConfig) -> TransactionParser:
    llm: LLMStrategy | None = None
    if config.openai_api_key:
        client = OpenAIModelClient(
            api_key=config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            timeout=config.llm_timeout,
        )
        llm = LLMStrategy(
            client,
            max_attempts=config.llm_max_attempts,
            retry_delay=config.llm_retry_delay,
        )
        logger.info(
            "LLM parsing enabled: model=%s, base_url=%s",
            config.openai_model,
            config.openai_base_url or "default",
        )
    else:
        logger.warning("OPENAI_API_KEY not found. Only pattern parsing is available.")
    return TransactionParser.with_model(llm)


def create_extractor(config: PipelineConfig) -> TextExtractor:
    vision = None
    if config.vision_enabled:
        vision = GoogleVisionService(max_pages=config.vision_max_pages, dpi=config.vision_dpi)
        logger.info("Vision OCR enabled for scanned PDFs (max %s pages).", config.vision_max_pages)

    # pytesseract reads the binary path from module state only; set it once at wiring time.
    if config.tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = config.tesseract_cmd

    return TextExtractor(
        ocr_engine=TesseractEngine(lang=config.ocr_lang),
        pdf_source=PdfPlumberTextSource(),
        vision=vision,
        max_workers=config.ocr_workers or None,
    )


def create_pipeline(
    config: PipelineConfig | None = None,
    *,
    store: DocumentStore | None = None,
    listener: ProgressListener | None = None,
) -> ReceiptPipeline:
    config = config or PipelineConfig.from_env()
    return ReceiptPipeline(
        extractor=create_extractor(config),
        parser=create_parser(config),
        store=store,
        listener=listener,
    )
