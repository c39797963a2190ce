from decimal import Decimal, getcontext

# enough precision for any uint256 without falling back to scientific notation
getcontext().prec = 80


def yes_or_no(question: str) -> bool:
    """
    Require y or n (case insenstive) as answer to `question`.
    Defaults to N with no response
    """
    while "the answer is invalid":
        reply = input(f"{question} [y/N]: ")
        if not reply:
            return False
        reply = str(reply).lower().strip()
        if reply[:1] == "y":
            return True
        if reply[:1] == "n":
            return False
    return False


def format_units(amount: int, decimals: int) -> str:
    """Human readable token amount, eg. 150000000 with 8 decimals -> 1.5"""
    text = f"{Decimal(amount) / (Decimal(10) ** decimals):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
