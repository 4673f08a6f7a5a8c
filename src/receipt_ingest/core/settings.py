import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dotenv import find_dotenv, load_dotenv

from receipt_ingest.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

SETTING_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "LLM_MAX_ATTEMPTS",
    "LLM_RETRY_DELAY",
    "LLM_TIMEOUT",
    "OCR_WORKERS",
    "OCR_LANG",
    "TESSERACT_CMD",
    "VISION_ENABLED",
    "VISION_MAX_PAGES",
    "VISION_DPI",
)

BOOL_STRINGS = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}

# KEY: value, KEY: "value", KEY: 'value', each with an optional trailing "# comment".
_CONFIG_LINE = re.compile(
    r"""
    ^(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*:\s*
    (?:
        "(?P<double>(?:[^"\\]|\\.)*)"
      | '(?P<single>(?:[^'\\]|\\.)*)'
      | (?P<bare>[^#]*?)
    )
    \s*(?:\#.*)?$
    """,
    re.VERBOSE,
)
_ESCAPED_CHAR = re.compile(r"\\(.)")

_SECRET_NAME = re.compile(r"KEY|TOKEN|SECRET|PASSWORD|CREDENTIAL|AUTH|BEARER|PRIVATE")
_SECRET_PREFIXES = ("sk-", "AIza", "Bearer ", "bearer ")


@dataclass
class _LoadedConfig:
    path: str | None = None
    values: dict[str, str] = field(default_factory=dict)
    external_keys: frozenset[str] = frozenset()


_loaded = _LoadedConfig()


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir and os.path.exists(os.path.join(config_dir, ".env")):
        return os.path.join(config_dir, ".env")
    return find_dotenv(usecwd=True) or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    nested = os.path.join(os.getcwd(), "config", CONFIG_FILENAME)
    if os.path.exists(nested):
        return nested
    return os.path.join(os.getcwd(), CONFIG_FILENAME)


def _line_value(match: re.Match[str]) -> str:
    for group in ("double", "single"):
        quoted = match.group(group)
        if quoted is not None:
            return _ESCAPED_CHAR.sub(r"\1", quoted)
    return match.group("bare").strip()


def read_config_file(path: str | None) -> dict[str, str]:
    """
    Read a flat ``config.yaml``.

    Only ``KEY: value`` lines count; comments, blank values and anything nested
    are skipped.
    """
    if not path or not os.path.isfile(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            match = _CONFIG_LINE.match(line.strip())
            if not match:
                continue
            value = _line_value(match)
            if value:
                values[match.group("key")] = value
    return values


def load_environment() -> None:
    """Load ``.env``, then fill keys the environment leaves unset from ``config.yaml``."""
    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _loaded.external_keys = frozenset(os.environ)
    _loaded.path = _resolve_config_path()
    _loaded.values = read_config_file(_loaded.path)

    for key in SETTING_KEYS:
        if key in _loaded.values:
            os.environ.setdefault(key, _loaded.values[key])


def get_config_path() -> str | None:
    return _loaded.path


def is_env_override(name: str) -> bool:
    """True when ``name`` came from the process environment or ``.env``, not ``config.yaml``."""
    return name in _loaded.external_keys


def _get_env_number(
    name: str,
    default: Any,
    cast: Callable[[str], Any],
    min_value: float | None,
) -> Any:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("[ENV] %s='%s' is not a valid %s, using default %s.", name, raw, cast.__name__, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("[ENV] %s='%s' is below %s, using default %s.", name, raw, min_value, default)
        return default
    return value


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    return _get_env_number(name, default, int, min_value)


def get_env_float(name: str, default: float, min_value: float | None = None) -> float:
    return _get_env_number(name, default, float, min_value)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if not raw:
        return default
    value = BOOL_STRINGS.get(raw.strip().lower())
    if value is None:
        logger.warning("[ENV] %s='%s' is not a boolean, using default %s.", name, raw, default)
        return default
    return value


def mask_value(name: str, value: str) -> str:
    shown = value.replace("\r", "\\r").replace("\n", "\\n")
    if not (_SECRET_NAME.search(name.upper()) or shown.startswith(_SECRET_PREFIXES)):
        return shown
    if len(shown) <= 4:
        return "****"
    return f"{shown[:2]}...{shown[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Settings in effect (secrets masked).")
    for key in SETTING_KEYS:
        raw = os.getenv(key)
        logger.info("[ENV] %s=%s", key, "<unset>" if raw is None else mask_value(key, raw))


DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_LLM_MAX_ATTEMPTS = 3
DEFAULT_LLM_RETRY_DELAY = 1.0
DEFAULT_LLM_TIMEOUT = 30.0
DEFAULT_OCR_LANG = "eng"
DEFAULT_VISION_MAX_PAGES = 5
DEFAULT_VISION_DPI = 300


@dataclass(frozen=True)
class PipelineConfig:
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str | None = None
    llm_max_attempts: int = DEFAULT_LLM_MAX_ATTEMPTS
    llm_retry_delay: float = DEFAULT_LLM_RETRY_DELAY
    llm_timeout: float = DEFAULT_LLM_TIMEOUT
    ocr_workers: int = 0
    ocr_lang: str = DEFAULT_OCR_LANG
    tesseract_cmd: str | None = None
    vision_enabled: bool = False
    vision_max_pages: int = DEFAULT_VISION_MAX_PAGES
    vision_dpi: int = DEFAULT_VISION_DPI

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            llm_max_attempts=get_env_int("LLM_MAX_ATTEMPTS", DEFAULT_LLM_MAX_ATTEMPTS, min_value=1),
            llm_retry_delay=get_env_float("LLM_RETRY_DELAY", DEFAULT_LLM_RETRY_DELAY, min_value=0.0),
            llm_timeout=get_env_float("LLM_TIMEOUT", DEFAULT_LLM_TIMEOUT, min_value=1.0),
            ocr_workers=get_env_int("OCR_WORKERS", 0, min_value=0),
            ocr_lang=os.getenv("OCR_LANG") or DEFAULT_OCR_LANG,
            tesseract_cmd=os.getenv("TESSERACT_CMD") or None,
            vision_enabled=get_env_bool("VISION_ENABLED", False),
            vision_max_pages=get_env_int("VISION_MAX_PAGES", DEFAULT_VISION_MAX_PAGES, min_value=1),
            vision_dpi=get_env_int("VISION_DPI", DEFAULT_VISION_DPI, min_value=72),
        )


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
