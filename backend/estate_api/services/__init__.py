from estate_api.services.pricing import format_price, format_currency
from estate_api.services.classification import classify_contact, Classification

__all__ = [
    "format_price",
    "format_currency",
    "classify_contact",
    "Classification",
]
