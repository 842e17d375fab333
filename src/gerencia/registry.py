from __future__ import annotations

from typing import Callable, Mapping

from gerencia.extractors.base import SaleExtractor
from gerencia.extractors.generic import GenericExtractor
from gerencia.extractors.lowify import LowifyExtractor


ExtractorFactory = Callable[[], SaleExtractor]

DEFAULT_EXTRACTORS: Mapping[str, ExtractorFactory] = {
    "lowify": LowifyExtractor,
}


def build_extractor(
    platform: str,
    *,
    extractors: Mapping[str, ExtractorFactory] | None = None,
) -> SaleExtractor:
    """
    Pick the extractor for a platform name (case-insensitive).

    Platforms registered as webhook configs but without a dedicated entry
    here fall through to the generic extractor.
    """
    table = DEFAULT_EXTRACTORS if extractors is None else extractors
    factory = table.get((platform or "").strip().lower())
    if factory is None:
        return GenericExtractor()
    return factory()
