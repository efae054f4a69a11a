from decimal import Decimal


def format_currency(amount):
    """Format a number as currency."""
    if amount is None:
        return ""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"
