from gerencia.extractors.base import DEFAULT_CURRENCY, PartialSale, SaleExtractor
from gerencia.extractors.generic import GenericExtractor
from gerencia.extractors.lowify import LowifyExtractor

__all__ = [
    "DEFAULT_CURRENCY",
    "PartialSale",
    "SaleExtractor",
    "GenericExtractor",
    "LowifyExtractor",
]
