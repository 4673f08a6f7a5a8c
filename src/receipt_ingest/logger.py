import logging
import logging.config
import os


class ColourizedFormatter(logging.Formatter):
    """
    Formatter that colours the level name. Colours are off for file handlers.
    """
    GREY = "\x1b[90m"
    GREEN = "\x1b[32m"
    YELLOW = "\x1b[33m"
    RED = "\x1b[31m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        use_colours: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self.use_colours = use_colours

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLORS.get(record.levelno) if self.use_colours else None
        if colour is None:
            return super().format(record)

        orig_levelname = record.levelname
        record.levelname = f"{colour}{record.levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = orig_levelname

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty below WARNING (pdfminer logs every token at DEBUG).
QUIET_LOGGERS = ("pdfminer", "pdfplumber", "PIL", "httpx", "httpcore", "openai", "google")


def get_logging_config(log_level: str | None = None) -> dict:
    log_level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_dir = os.getenv("LOG_DIR")
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            # stdout is reserved for CLI results
            "stream": "ext://sys.stderr",
            "formatter": "default",
        },
    }
    root_handlers = ["console"]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": os.path.join(log_dir, "app.log"),
            "formatter": "plain",
        }
        root_handlers.append("file")

    loggers: dict[str, dict] = {
        "": {  # Root logger
            "handlers": root_handlers,
            "level": log_level_name,
        },
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "receipt_ingest.logger.ColourizedFormatter",
                "format": LOG_FORMAT,
            },
            "plain": {
                "()": "receipt_ingest.logger.ColourizedFormatter",
                "format": LOG_FORMAT,
                "use_colours": False,
            },
        },
        "handlers": handlers,
        "loggers": loggers,
    }

def setup_logging(log_level: str | None = None) -> None:
    logging.config.dictConfig(get_logging_config(log_level))

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
