from __future__ import annotations


# Checkout/payment platforms a user can register a webhook for.
KNOWN_PLATFORMS: tuple[str, ...] = (
    "AdsRoi", "Hotmart", "Kiwify", "Cartpanda", "Vega 1", "Kirvano", "Shopify", "PerfectPay",
    "Yampi", "Lastlink", "Payt", "Logzz", "Adoorei", "TriboPay", "Paradise", "Clickbank",
    "Ticto", "Eduzz", "Braip", "Pepper", "Woocommerce", "BuyGoods", "MundPay", "Disrupty",
    "Greenn", "Monetizze", "Guru", "Digistore", "Hubla", "Doppus", "Frendz", "InvictusPay",
    "Appmax", "NitroPagamentos", "GoatPay", "Hebreus", "IExperience", "PagTrust", "NuvemShop",
    "FortPay", "Systeme", "IronPay", "CinqPay", "SharkPays", "Maxweb", "Zouti", "Pantherfy",
    "StrivPay", "AtomoPay", "AllPay", "BullPay", "OctusPay", "Zippify", "Masterfy", "InovaPag",
    "SoutPay", "WolfPay", "SigmaPagamentos", "Nexopayt", "WeGate", "Unicornify", "Allpes",
    "VittaPay", "FluxionPay", "NezzyPay", "PMHMPay", "TrivexPay", "GatPay", "BearPay",
    "AmandisPay", "DigiPag", "AlphaPay", "AssetPay", "BrGateway", "Creedx", "Hotfy",
    "KlivoPay", "Plumify", "PrimeGate", "Wise2Pay", "VisionPay", "SharkBytePay", "SigmaPay",
    "ZeroOnePay", "Traxon", "Bloo", "KitePay", "B4you", "Risepay", "Urus", "Cakto",
    "Flashpay", "DigitalMart", "Exattus", "LunarCash", "YouShop", "BlackPay", "VenuzPay",
    "LunaCheckout", "FullSale", "BullsPay", "Moodi", "NikaPay", "GhostsPay", "KeedPay",
    "Salduu", "ViperPay", "Sunize", "Assiny", "Wiapy", "UnicoPag", "ImperialPay", "Zedy",
    "Sinix", "Voomp", "Ombrelone", "PushinPay", "Genesys", "OnProfit", "SacaPay", "Cloudfy",
    "Kuenha", "NinjaPay", "Xgrow", "ggCheckout", "PanteraCheckout", "NublaPay", "Cartly",
    "Pagah", "Pagsafe", "Nomadfy", "Sync", "LPQV", "Lowify",
)

# These only need our receiver URL pasted into their dashboard; the token travels in the URL.
URL_ONLY_PLATFORMS: frozenset[str] = frozenset({"lowify", "adsroi"})


def is_known_platform(platform: str) -> bool:
    p = (platform or "").strip().lower()
    return any(p == k.lower() for k in KNOWN_PLATFORMS)


def receiver_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/webhook-receiver?token={token}"
