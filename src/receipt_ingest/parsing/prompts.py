from receipt_ingest.domain.categories import CATEGORIES

EXTRACTION_INSTRUCTIONS = "You extract expense line items from OCR text and answer only with JSON."

EXTRACTION_PROMPT = """\
Extract the purchased line items from this receipt or bank-statement text.

RULES:
1. Only extract real line items (products, services, statement entries).
2. Skip totals, subtotals, taxes (GST, VAT), discounts, payment method lines, \
change given, balances, store headers and footers.
3. Each item needs a description. If its amount is unclear use null and set \
"needsManualReview" to true.
4. "amount" is a plain positive number with no currency symbol or thousands separator.
5. "type" is "income" for credits, refunds and deposits; otherwise "expense".
6. "date" is YYYY-MM-DD exactly as written on the document. Do not change the year. \
Use null when no date is shown.
7. "category" must be one of: {categories}.
8. If there are no line items, return [].

OUTPUT: a JSON array and nothing else, for example
[
  {{"description": "Cappuccino", "amount": 4.50, "category": "Food & Dining", \
"type": "expense", "date": "2024-07-30", "needsManualReview": false}}
]

TEXT:
{text}
"""


def build_extraction_prompt(text: str) -> str:
    return EXTRACTION_PROMPT.format(categories=" | ".join(CATEGORIES), text=text.strip())
