import re
from typing import get_args

from rapidfuzz import fuzz, process

from receipt_ingest.models import Category

CATEGORIES: tuple[str, ...] = get_args(Category)
DEFAULT_CATEGORY = "Other Expense"
TRANSACTION_TYPES = ("income", "expense")
DEFAULT_TYPE = "expense"

# Line-item vocabulary seen on receipts. Single words only; matched per token.
CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Food & Dining": (
        "coffee", "cafe", "latte", "cappuccino", "espresso", "tea", "burger", "pizza",
        "sandwich", "restaurant", "meal", "lunch", "dinner", "breakfast", "snack",
        "fries", "biryani", "noodles", "dessert", "juice", "soda", "beer", "wine",
    ),
    "Groceries": (
        "milk", "bread", "eggs", "rice", "flour", "sugar", "butter", "cheese",
        "vegetables", "fruit", "apples", "bananas", "tomatoes", "onions", "potatoes",
        "grocery", "groceries", "supermarket", "yogurt", "cereal", "oil",
    ),
    "Transportation": (
        "uber", "lyft", "taxi", "cab", "fuel", "petrol", "diesel", "gasoline",
        "parking", "toll", "metro", "bus", "train", "subway",
    ),
    "Shopping": (
        "shirt", "tshirt", "jeans", "shoes", "dress", "jacket", "socks", "charger",
        "cable", "headphones", "electronics", "clothing", "bag", "watch",
    ),
    "Entertainment": (
        "movie", "cinema", "netflix", "spotify", "concert", "game", "games",
        "theatre", "theater", "popcorn", "bowling", "arcade",
    ),
    "Bills & Utilities": (
        "electricity", "water", "internet", "broadband", "recharge", "mobile",
        "phone", "utility", "utilities", "rent", "subscription",
    ),
    "Healthcare": (
        "pharmacy", "medicine", "tablets", "capsules", "syrup", "doctor", "clinic",
        "hospital", "dental", "vitamins", "paracetamol", "bandage",
    ),
    "Education": (
        "book", "books", "notebook", "pen", "pencil", "course", "tuition",
        "stationery", "textbook", "workshop",
    ),
    "Travel": (
        "hotel", "flight", "airline", "airfare", "resort", "hostel", "booking",
        "luggage", "visa",
    ),
}

_KEYWORD_INDEX: dict[str, str] = {
    keyword: category
    for category, keywords in CATEGORY_KEYWORDS.items()
    for keyword in keywords
}
_TOKEN = re.compile(r"[a-z]+")


def is_category(value: str) -> bool:
    return value in CATEGORIES


def guess_category(description: str, *, fuzzy_threshold: float = 85.0) -> str:
    """
    Best-effort category for a line-item description.

    Exact keyword hits win; otherwise each token of four or more letters is fuzzy
    matched so OCR misspellings ("cofee", "parkng") still land.
    """
    tokens = _TOKEN.findall(description.lower())
    for token in tokens:
        category = _KEYWORD_INDEX.get(token)
        if category:
            return category

    for token in tokens:
        if len(token) < 4:
            continue
        result = process.extractOne(
            token,
            _KEYWORD_INDEX.keys(),
            scorer=fuzz.ratio,
            score_cutoff=fuzzy_threshold,
        )
        if result:
            keyword, _score, _ = result
            return _KEYWORD_INDEX[keyword]

    return DEFAULT_CATEGORY
