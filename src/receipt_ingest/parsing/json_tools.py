import json
from typing import Any

from receipt_ingest.errors import UnusableModelOutput

_DECODER = json.JSONDecoder()


def extract_json_array(text: str | None) -> list[Any]:
    """
    Return the first well-formed JSON array embedded in free-form model output.

    Models wrap answers in prose or markdown fences, so every ``[`` is tried as a
    start position with ``raw_decode``. Raises UnusableModelOutput when none decodes
    to a list.
    """
    if not text or not text.strip():
        raise UnusableModelOutput("Empty model response.")

    position = text.find("[")
    while position != -1:
        try:
            value, _ = _DECODER.raw_decode(text, position)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        position = text.find("[", position + 1)

    raise UnusableModelOutput("No JSON array found in model response.")
