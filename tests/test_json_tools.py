import pytest

from receipt_ingest.errors import UnusableModelOutput
from receipt_ingest.parsing.json_tools import extract_json_array


def test_plain_array() -> None:
    assert extract_json_array('[{"description": "Tea", "amount": 2}]') == [
        {"description": "Tea", "amount": 2}
    ]


def test_array_wrapped_in_commentary_and_fences() -> None:
    response = (
        "Sure! Here are the items I found:\n"
        "```json\n"
        '[{"description": "Latte", "amount": 4.5}, {"description": "Muffin", "amount": 3}]\n'
        "```\n"
        "Let me know if you need anything else [happy to help]."
    )

    items = extract_json_array(response)

    assert [item["description"] for item in items] == ["Latte", "Muffin"]


def test_skips_brackets_that_are_not_json() -> None:
    response = 'Receipt [partial scan] gave: [{"description": "Soap", "amount": "1.20"}]'

    assert extract_json_array(response) == [{"description": "Soap", "amount": "1.20"}]


def test_returns_first_array_only() -> None:
    assert extract_json_array("[1, 2] and then [3]") == [1, 2]


def test_nested_brackets_inside_strings() -> None:
    response = '[{"description": "Cable [USB-C] 2m", "amount": 9.99}]'

    assert extract_json_array(response)[0]["description"] == "Cable [USB-C] 2m"


def test_empty_array_is_returned() -> None:
    # Emptiness is a strategy-level decision, not a parse failure.
    assert extract_json_array("No items. []") == []


@pytest.mark.parametrize(
    "response",
    [
        "",
        "   ",
        None,
        "I could not read this receipt.",
        '{"description": "Tea", "amount": 2}',
        '[{"description": "Tea", "amount": 2}',
    ],
)
def test_unusable_responses_raise(response: str | None) -> None:
    with pytest.raises(UnusableModelOutput):
        extract_json_array(response)
