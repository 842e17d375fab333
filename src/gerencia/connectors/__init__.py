from gerencia.connectors.base import AdsDataSource, GraphContext, MetaApiError
from gerencia.connectors.meta_ads import ACTIONS, MetaAdsClient, normalize_account_id

__all__ = [
    "ACTIONS",
    "AdsDataSource",
    "GraphContext",
    "MetaAdsClient",
    "MetaApiError",
    "normalize_account_id",
]
