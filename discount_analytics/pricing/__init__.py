"""
Pricing Module
"""
from .decomposition import (
    PriceDecomposition,
    decompose_price,
    decompose_unit_price,
    round_amount,
    round_percent,
    to_decimal,
)

__all__ = [
    "PriceDecomposition",
    "decompose_price",
    "decompose_unit_price",
    "round_amount",
    "round_percent",
    "to_decimal",
]
