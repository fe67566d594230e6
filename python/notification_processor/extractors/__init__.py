"""
Extractors

Pattern cascades for amounts and merchants.
"""

from .amount import AmountExtractor, AmountRule, ExtractedAmount, parse_amount_string
from .merchant import MerchantExtractor

__all__ = [
    "AmountExtractor",
    "AmountRule",
    "ExtractedAmount",
    "MerchantExtractor",
    "parse_amount_string",
]
