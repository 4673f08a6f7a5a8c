import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from receipt_ingest.core import settings
from receipt_ingest.logger import get_logger

SettingKind = Literal["text", "int", "float", "bool", "choice"]

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfigField:
    key: str
    section: str
    help: str
    kind: SettingKind = "text"
    secret: bool = False
    choices: tuple[str, ...] = ()
    minimum: float | None = None
    maximum: float | None = None


CONFIG_FIELDS: tuple[ConfigField, ...] = (
    ConfigField("OPENAI_API_KEY", "LLM", "API key for LLM parsing. Without it only pattern parsing runs.", secret=True),
    ConfigField("OPENAI_MODEL", "LLM", "Model name for the OpenAI-compatible client (defaults to gpt-4o-mini)."),
    ConfigField("OPENAI_BASE_URL", "LLM", "Override the OpenAI base URL for compatible providers."),
    ConfigField("LLM_MAX_ATTEMPTS", "LLM", "Attempts per document when the model is overloaded.", "int", minimum=1, maximum=10),
    ConfigField("LLM_RETRY_DELAY", "LLM", "Base backoff in seconds; attempt N waits N times this value.", "float", minimum=0.0),
    ConfigField("LLM_TIMEOUT", "LLM", "Per-attempt timeout in seconds.", "float", minimum=1.0),
    ConfigField("OCR_WORKERS", "OCR", "Parallel OCR passes per image. 0 uses the CPU count.", "int", minimum=0),
    ConfigField("OCR_LANG", "OCR", "Tesseract language pack (e.g. eng, eng+hin)."),
    ConfigField("TESSERACT_CMD", "OCR", "Path to the tesseract binary when it is not on PATH."),
    ConfigField("VISION_ENABLED", "OCR", "Send scanned PDFs to Google Cloud Vision when the text layer is empty.", "bool"),
    ConfigField("VISION_MAX_PAGES", "OCR", "Maximum PDF pages rendered for Cloud Vision.", "int", minimum=1),
    ConfigField("VISION_DPI", "OCR", "Render resolution for Cloud Vision pages.", "int", minimum=72, maximum=600),
    ConfigField("DATA_DIR", "Storage", "Directory for stored documents (documents/ is created inside)."),
    ConfigField("LOG_DIR", "Storage", "Directory for application logs (app.log)."),
    ConfigField(
        "LOG_LEVEL",
        "Storage",
        "Logging verbosity.",
        "choice",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),
)

_FIELDS_BY_KEY = {config_field.key: config_field for config_field in CONFIG_FIELDS}
_NUMBER_MESSAGES = {"int": "Must be a whole number.", "float": "Must be a number."}
_NEEDS_QUOTES = (":", "#", '"', "'")


def get_config_keys() -> tuple[str, ...]:
    return tuple(_FIELDS_BY_KEY)


def get_config_path() -> str:
    return settings.get_config_path() or os.path.join(os.getcwd(), settings.CONFIG_FILENAME)


def render_config_template() -> str:
    """Commented ``config.yaml`` with one disabled line per setting, grouped by section."""
    lines = [
        "# receipt-ingest configuration",
        "# Environment variables win over values in this file.",
        '# Remove the leading "#" to enable a setting.',
    ]
    section = None
    for config_field in CONFIG_FIELDS:
        if config_field.section != section:
            section = config_field.section
            lines += ["", f"## {section}"]
        lines += [f"# {config_field.help}", f"# {config_field.key}:"]
    return "\n".join(lines) + "\n"


def write_config_template(path: str | None = None, *, overwrite: bool = False) -> str:
    config_path = path or get_config_path()
    if os.path.exists(config_path) and not overwrite:
        raise FileExistsError(config_path)
    _write_lines(config_path, render_config_template().splitlines())
    logger.info("[CONFIG] Wrote template to %s.", config_path)
    return config_path


def _clean_number(config_field: ConfigField, value: str) -> str:
    cast: Callable[[str], float] = int if config_field.kind == "int" else float
    try:
        number = cast(value)
    except ValueError:
        raise ValueError(_NUMBER_MESSAGES[config_field.kind]) from None
    if config_field.minimum is not None and number < config_field.minimum:
        raise ValueError(f"Must be at least {config_field.minimum}.")
    if config_field.maximum is not None and number > config_field.maximum:
        raise ValueError(f"Must be at most {config_field.maximum}.")
    return str(number)


def clean_value(config_field: ConfigField, raw_value: str) -> str:
    """
    Normalize one raw setting value.

    Returns the value as it should be written (empty means unset) and raises
    ValueError with a user-facing message when the value is not acceptable.
    """
    value = raw_value.strip()
    if not value:
        return ""
    if "\n" in value or "\r" in value:
        raise ValueError("Value must be a single line.")

    if config_field.kind == "choice":
        if value.upper() not in config_field.choices:
            raise ValueError(f"Must be one of: {', '.join(config_field.choices)}.")
        return value.upper()
    if config_field.kind == "bool":
        if value.lower() not in settings.BOOL_STRINGS:
            raise ValueError("Must be true or false.")
        return value.lower()
    if config_field.kind in _NUMBER_MESSAGES:
        return _clean_number(config_field, value)
    return value


def validate_config_values(values: dict[str, str]) -> dict[str, str]:
    """Map each bad key to its error message. Unknown keys count as errors."""
    errors: dict[str, str] = {}
    for key, raw_value in values.items():
        config_field = _FIELDS_BY_KEY.get(key)
        if config_field is None:
            errors[key] = "Unknown setting."
            continue
        try:
            clean_value(config_field, raw_value)
        except ValueError as e:
            errors[key] = str(e)
    return errors


def check_config_file(path: str | None = None) -> dict[str, str]:
    config_path = path or get_config_path()
    values = settings.read_config_file(config_path)
    errors = validate_config_values(values)
    for key, error in errors.items():
        logger.warning("[CONFIG] %s: %s", key, error)
    for key in values.keys() - errors.keys():
        if settings.is_env_override(key):
            logger.info("[CONFIG] %s is set in the environment; the file value is ignored.", key)
    return errors


def set_config_value(key: str, raw_value: str, path: str | None = None) -> str:
    """Write one setting, uncommenting its template line when there is one."""
    config_field = _FIELDS_BY_KEY.get(key)
    if config_field is None:
        raise KeyError(key)
    try:
        value = clean_value(config_field, raw_value)
    except ValueError as e:
        raise ValueError(f"{key}: {e}") from e

    config_path = path or get_config_path()
    if os.path.exists(config_path):
        with open(config_path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    else:
        lines = render_config_template().splitlines()

    new_line = f"{key}: {_quote_if_needed(value)}" if value else f"# {key}:"
    index = _find_key_line(lines, key)
    if index is None:
        lines.append(new_line)
    else:
        lines[index] = new_line
    _write_lines(config_path, lines)

    shown = "****" if config_field.secret and value else value
    logger.info("[CONFIG] %s set to '%s' in %s.", key, shown, config_path)
    return config_path


def _find_key_line(lines: list[str], key: str) -> int | None:
    for index, line in enumerate(lines):
        candidate = line.strip().lstrip("#").strip()
        name, colon, _ = candidate.partition(":")
        if colon and name.strip() == key:
            return index
    return None


def _write_lines(config_path: str, lines: list[str]) -> None:
    config_dir = os.path.dirname(config_path)
    if config_dir:
        os.makedirs(config_dir, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as handle:
        handle.write("\n".join(lines).rstrip("\n") + "\n")


def _quote_if_needed(value: str) -> str:
    if value == value.strip() and not any(marker in value for marker in _NEEDS_QUOTES):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
