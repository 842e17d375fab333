from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import httpx
import uvicorn

from gerencia.campaign_metrics import LEVELS, merge_entities
from gerencia.classifier import StatusClassifier
from gerencia.config import Settings, configure_logging
from gerencia.connectors import AdsDataSource, GraphContext, MetaAdsClient
from gerencia.db import GerenciaDB
from gerencia.errors import GerenciaError, NotFoundError
from gerencia.notify.telegram_bot import notify_new_sale
from gerencia.plans import OfferPlanTable, sync_plan
from gerencia.receiver import receive_sale
from gerencia.repo import Repo, SalesFilters
from gerencia.sales_metrics import aggregate_sales, attribute_sales, filter_sales


logger = logging.getLogger(__name__)

MetaClientFactory = Callable[[str], AdsDataSource]

_ENTITY_ACTIONS = {"campaign": "get-campaigns", "adset": "get-adsets", "ad": "get-ads"}
_ENTITY_KEYS = {"campaign": "campaigns", "adset": "adsets", "ad": "ads"}
_INSIGHT_ACTIONS = {"campaign": "get-campaign-insights", "adset": "get-adset-insights", "ad": "get-ad-insights"}


def _fail(error: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


async def _json_or_none(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def _today_start_utc() -> datetime:
    now = datetime.now(tz=timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def create_app(
    settings: Settings,
    *,
    classifier: StatusClassifier | None = None,
    offers: OfferPlanTable | None = None,
    meta_client_factory: MetaClientFactory | None = None,
) -> FastAPI:
    GerenciaDB(settings.db_path).init()
    repo = Repo(settings.db_path)
    classifier = classifier or StatusClassifier()
    offers = offers or OfferPlanTable.default()

    def _default_meta_client(access_token: str) -> AdsDataSource:
        return MetaAdsClient(
            GraphContext(
                access_token=access_token,
                base_url=settings.meta_graph_base_url,
                version=settings.meta_graph_api_version,
                timeout_sec=settings.meta_http_timeout_sec,
            )
        )

    meta_client = meta_client_factory or _default_meta_client

    app = FastAPI(title="Gerencia ROI")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return JSONResponse({"ok": True})

    @app.post("/webhook-receiver")
    async def webhook_receiver(request: Request, background_tasks: BackgroundTasks):
        token = request.query_params.get("token") or request.headers.get("x-webhook-token")
        platform = request.query_params.get("platform")
        payload = await _json_or_none(request)
        try:
            result = await run_in_threadpool(
                receive_sale,
                repo,
                token=token,
                platform=platform,
                payload=payload,
                classifier=classifier,
            )
        except GerenciaError as e:
            return _fail(str(e), e.status_code)
        except Exception:  # noqa: BLE001
            logger.exception("webhook-receiver: unexpected failure")
            return _fail("Internal server error", 500)

        background_tasks.add_task(notify_new_sale, settings, result.sale_id, result.sale)
        return JSONResponse({"success": True, "sale_id": result.sale_id})

    @app.post("/payment-webhook")
    async def payment_webhook(request: Request):
        token = request.query_params.get("token")
        payload = await _json_or_none(request)
        try:
            result = await run_in_threadpool(sync_plan, repo, token=token, payload=payload, offers=offers)
        except GerenciaError as e:
            return _fail(str(e), e.status_code)
        except Exception:  # noqa: BLE001
            logger.exception("payment-webhook: unexpected failure")
            return _fail("Internal server error", 500)
        return JSONResponse(
            {"success": True, "email": result.email, "plan": result.plan, "status": result.status}
        )

    @app.get("/api/sales")
    def list_sales(
        user_id: str,
        status: str | None = None,
        platform: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ):
        # One query for the period; the status narrowing happens in memory.
        period = repo.list_sales(user_id, SalesFilters(platform=platform, start=start, end=end))
        sales = filter_sales(period, SalesFilters(status=status))
        return JSONResponse(
            {
                "success": True,
                "sales": sales,
                "metrics": aggregate_sales(sales).to_dict(),
                "period_metrics": aggregate_sales(period).to_dict(),
            }
        )

    @app.delete("/api/sales/{sale_id}")
    def delete_sale(sale_id: str, user_id: str):
        if not repo.delete_sale(sale_id, user_id=user_id):
            return _fail("Sale not found", NotFoundError.status_code)
        logger.info("sale %s deleted by user %s", sale_id, user_id)
        return JSONResponse({"success": True})

    @app.post("/meta-ads")
    async def meta_ads(request: Request):
        body = await _json_or_none(request)
        if not isinstance(body, dict):
            return _fail("Invalid JSON body", 400)
        access_token = str(body.get("accessToken") or "")
        if not access_token:
            return _fail("Access token is required", 400)
        try:
            result = await meta_client(access_token).invoke(
                str(body.get("action") or ""),
                ad_account_id=body.get("adAccountId"),
                campaign_id=body.get("campaignId"),
                adset_id=body.get("adsetId"),
                ad_id=body.get("adId"),
                date_range=body.get("dateRange"),
                updates=body.get("updates") if isinstance(body.get("updates"), dict) else None,
            )
        except ValueError as e:
            return _fail(str(e), 400)
        except GerenciaError as e:
            return _fail(str(e), e.status_code)
        except Exception as e:  # noqa: BLE001
            logger.exception("meta-ads: unexpected failure")
            return _fail(str(e) or "Unknown error", 500)
        return JSONResponse(result)

    @app.post("/campaign-metrics")
    async def campaign_metrics(request: Request):
        body = await _json_or_none(request)
        if not isinstance(body, dict):
            return _fail("Invalid JSON body", 400)
        access_token = str(body.get("accessToken") or "")
        if not access_token:
            return _fail("Access token is required", 400)
        level = str(body.get("level") or "campaign").strip().lower()
        if level not in LEVELS:
            return _fail(f"Unknown level: {level}", 400)
        date_range = body.get("dateRange") or "today"
        only_with_data = body.get("onlyWithData")

        client = meta_client(access_token)
        try:
            listed = await client.invoke(_ENTITY_ACTIONS[level], ad_account_id=body.get("adAccountId"))
        except ValueError as e:
            return _fail(str(e), 400)
        except GerenciaError as e:
            return _fail(str(e), e.status_code)
        except Exception as e:  # noqa: BLE001
            logger.exception("campaign-metrics: listing %s entities failed", level)
            return _fail(str(e) or "Unknown error", 500)

        try:
            insights = (
                await client.invoke(
                    _INSIGHT_ACTIONS[level],
                    ad_account_id=body.get("adAccountId"),
                    date_range=date_range,
                )
            ).get("insights", [])
        except (GerenciaError, httpx.HTTPError) as e:
            # Entities without insights still render (all metrics empty).
            logger.warning("campaign-metrics: insights unavailable (%s)", e)
            insights = []

        attribution = None
        user_id = body.get("userId")
        if user_id:
            since = _today_start_utc() if date_range == "today" else None
            sales = await run_in_threadpool(repo.list_sales, str(user_id), SalesFilters(start=since))
            attribution = attribute_sales(sales).for_level(level)

        merged = merge_entities(
            listed.get(_ENTITY_KEYS[level], []),
            insights,
            level,
            attribution=attribution,
            only_with_data=bool(only_with_data) if only_with_data is not None else None,
        )
        return JSONResponse({"success": True, "level": level, "entities": [m.to_dict() for m in merged]})

    return app


def run_web(settings: Settings) -> None:
    configure_logging(settings)
    app = create_app(settings)
    uvicorn.run(app, host=settings.web_host, port=settings.web_port, log_level=settings.log_level.lower())
