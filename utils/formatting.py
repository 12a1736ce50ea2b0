"""
Display formatting for yen amounts and percentages.
"""

MAN_YEN = 10_000

CURRENCY_SYMBOLS = {
    "JPY": "¥",
    "USD": "$",
}


def format_currency(amount: int, currency: str = "JPY") -> str:
    """
    Format whole currency units with a symbol and thousands separators.

    Example: 31_200_000 -> "¥31,200,000"
    """
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    return f"{symbol}{int(amount):,}"


def format_man_yen(amount: float) -> str:
    """
    Format a yen amount in man-yen (10,000 yen) units, truncating.

    Example: 31_200_000 -> "3,120万円"
    """
    return f"{int(amount // MAN_YEN):,}万円"


def format_price_range(low: float, high: float) -> str:
    """Format a price range in man-yen, e.g. "2,980万円~3,260万円"."""
    return f"{format_man_yen(low)}~{format_man_yen(high)}"


def format_price_per_sqm(price_per_sqm: float) -> str:
    """Format a price per square metre, e.g. "¥452,000/㎡"."""
    return f"{format_currency(int(round(price_per_sqm)))}/㎡"


def format_percent(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"
