from __future__ import annotations

import logging
from typing import Any

import httpx

from gerencia.config import Settings
from gerencia.normalizer import NewSale


logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


def format_sale_message(sale_id: str, sale: NewSale) -> str:
    who = sale.customer_name or sale.platform or "Venda recebida!"
    lines = [
        f"💰 Nova venda: R$ {sale.amount:.2f}",
        who,
        f"status: {sale.status} | plataforma: {sale.platform}",
    ]
    if sale.product_name:
        lines.append(f"produto: {sale.product_name}")
    lines.append(f"id: {sale_id}")
    return "\n".join(lines)


async def _send_message(
    client: httpx.AsyncClient,
    *,
    token: str,
    chat_id: int,
    text: str,
) -> dict[str, Any]:
    r = await client.post(
        f"{TELEGRAM_API}/bot{token}/sendMessage",
        json={"chat_id": chat_id, "text": text},
        timeout=20,
    )
    r.raise_for_status()
    return r.json()


async def notify_new_sale(
    settings: Settings,
    sale_id: str,
    sale: NewSale,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    Push a one-message alert for a freshly recorded sale.

    Runs after the webhook response is sent; delivery problems are logged
    and never reach the vendor.
    """
    if not settings.telegram_bot_token or settings.telegram_chat_id is None:
        return False
    try:
        async with httpx.AsyncClient(transport=transport) as client:
            await _send_message(
                client,
                token=settings.telegram_bot_token,
                chat_id=settings.telegram_chat_id,
                text=format_sale_message(sale_id, sale),
            )
    except httpx.HTTPError as e:
        logger.warning("telegram notification failed for sale %s: %s: %s", sale_id, type(e).__name__, e)
        return False
    return True
