"""Integer fixed-point helpers shared by calculators and the valuator."""


def weighted_amount(raw: int, numerator: int, denominator: int) -> int:
    """``raw * numerator / denominator`` truncated toward zero."""
    product = raw * numerator
    quotient = abs(product) // denominator
    return -quotient if product < 0 else quotient
