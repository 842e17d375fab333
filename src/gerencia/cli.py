from __future__ import annotations

import json
from datetime import datetime

import typer

from gerencia.campaign_metrics import format_metric
from gerencia.config import Settings, configure_logging
from gerencia.db import GerenciaDB
from gerencia.errors import DuplicateTokenError
from gerencia.platforms import KNOWN_PLATFORMS, URL_ONLY_PLATFORMS, is_known_platform, receiver_url
from gerencia.repo import ACTIVE, INACTIVE, Repo, SalesFilters
from gerencia.sales_metrics import aggregate_sales
from gerencia.util import generate_token
from gerencia.web.app import run_web

app = typer.Typer(no_args_is_help=True)
webhook_app = typer.Typer(no_args_is_help=True)
credential_app = typer.Typer(no_args_is_help=True)
profile_app = typer.Typer(no_args_is_help=True)
sales_app = typer.Typer(no_args_is_help=True)
app.add_typer(webhook_app, name="webhook")
app.add_typer(credential_app, name="credential")
app.add_typer(profile_app, name="profile")
app.add_typer(sales_app, name="sales")


def _open() -> tuple[Settings, Repo]:
    settings = Settings.load()
    configure_logging(settings)
    GerenciaDB(settings.db_path).init()
    return settings, Repo(settings.db_path)


def _done(ok: bool, what: str) -> None:
    if not ok:
        typer.echo(f"ERROR: {what} not found")
        raise typer.Exit(code=2)
    typer.echo(f"OK {what}")


@app.command("db")
def db_cmd(
    action: str = typer.Argument(..., help="init"),
) -> None:
    settings = Settings.load()
    if action == "init":
        GerenciaDB(settings.db_path).init()
        typer.echo(f"OK db init: {settings.db_path}")
        return
    raise typer.BadParameter("action must be: init")


@app.command("web")
def web_cmd() -> None:
    settings = Settings.load()
    run_web(settings)


@app.command("platforms")
def platforms_cmd(
    search: str | None = typer.Option(None, help="Case-insensitive substring filter."),
) -> None:
    """List the checkout platforms a webhook can be registered for."""
    needle = (search or "").strip().lower()
    for name in KNOWN_PLATFORMS:
        if needle and needle not in name.lower():
            continue
        suffix = " (url only)" if name.lower() in URL_ONLY_PLATFORMS else ""
        typer.echo(f"{name}{suffix}")


# ---------------------------------------------------------------------- #
# webhooks                                                                 #
# ---------------------------------------------------------------------- #


@webhook_app.command("create")
def webhook_create(
    user_id: str = typer.Option(...),
    platform: str = typer.Option(..., help="Platform name, e.g. Hotmart, Kiwify, Lowify."),
    name: str = typer.Option(...),
    token: str | None = typer.Option(None, help="Reuse a vendor-issued token instead of generating one."),
    client_id: str | None = typer.Option(None),
    client_secret: str | None = typer.Option(None),
    pixel_id: str | None = typer.Option(None),
) -> None:
    settings, repo = _open()
    if not is_known_platform(platform):
        typer.echo(f"WARN: '{platform}' is not a known platform; the generic payload parser will be used")

    token = token or generate_token()
    url = receiver_url(settings.public_base_url, token)
    try:
        row = repo.create_webhook(
            user_id=user_id,
            platform=platform,
            name=name,
            token=token,
            client_id=client_id,
            client_secret=client_secret,
            pixel_id=pixel_id,
            webhook_url=url if platform.strip().lower() in URL_ONLY_PLATFORMS else None,
        )
    except DuplicateTokenError as e:
        typer.echo(f"ERROR: {e}")
        raise typer.Exit(code=2)

    typer.echo(f"OK webhook {row['id']} ({row['platform']})")
    typer.echo(f"token: {row['token']}")
    typer.echo(f"url:   {url}")


@webhook_app.command("list")
def webhook_list(user_id: str = typer.Option(...)) -> None:
    _, repo = _open()
    for w in repo.list_webhooks(user_id):
        typer.echo(f"{w['id']}\t{w['platform']}\t{w['status']}\t{w['name']}")


@webhook_app.command("enable")
def webhook_enable(webhook_id: str) -> None:
    _, repo = _open()
    _done(repo.set_webhook_status(webhook_id, ACTIVE), f"webhook {webhook_id} {ACTIVE}")


@webhook_app.command("disable")
def webhook_disable(webhook_id: str) -> None:
    _, repo = _open()
    _done(repo.set_webhook_status(webhook_id, INACTIVE), f"webhook {webhook_id} {INACTIVE}")


@webhook_app.command("delete")
def webhook_delete(webhook_id: str) -> None:
    _, repo = _open()
    _done(repo.delete_webhook(webhook_id), f"webhook {webhook_id} deleted")


# ---------------------------------------------------------------------- #
# API credentials                                                          #
# ---------------------------------------------------------------------- #


@credential_app.command("create")
def credential_create(
    user_id: str = typer.Option(...),
    name: str = typer.Option(...),
) -> None:
    _, repo = _open()
    row = repo.create_api_credential(user_id=user_id, name=name)
    typer.echo(f"OK credential {row['id']}")
    typer.echo(f"token: {row['token']}")
    typer.echo("This token is shown only once.")


@credential_app.command("list")
def credential_list(user_id: str = typer.Option(...)) -> None:
    _, repo = _open()
    for c in repo.list_api_credentials(user_id):
        typer.echo(f"{c['id']}\t{c['status']}\t{c['token']}\t{c['name']}")


@credential_app.command("enable")
def credential_enable(credential_id: str) -> None:
    _, repo = _open()
    _done(repo.set_api_credential_status(credential_id, ACTIVE), f"credential {credential_id} {ACTIVE}")


@credential_app.command("disable")
def credential_disable(credential_id: str) -> None:
    _, repo = _open()
    _done(repo.set_api_credential_status(credential_id, INACTIVE), f"credential {credential_id} {INACTIVE}")


@credential_app.command("delete")
def credential_delete(credential_id: str) -> None:
    _, repo = _open()
    _done(repo.delete_api_credential(credential_id), f"credential {credential_id} deleted")


# ---------------------------------------------------------------------- #
# profiles / sales                                                         #
# ---------------------------------------------------------------------- #


@profile_app.command("set")
def profile_set(
    user_id: str = typer.Option(...),
    email: str = typer.Option(...),
    plan: str = typer.Option("free"),
    plan_status: str = typer.Option("active"),
) -> None:
    _, repo = _open()
    repo.upsert_profile(user_id=user_id, email=email, plan=plan, plan_status=plan_status)
    typer.echo(f"OK profile {user_id} <{email}> {plan}/{plan_status}")


def _filters(
    status: str | None,
    platform: str | None,
    since: datetime | None,
    until: datetime | None,
) -> SalesFilters:
    return SalesFilters(status=status, platform=platform, start=since, end=until)


@sales_app.command("list")
def sales_list(
    user_id: str = typer.Option(...),
    status: str | None = typer.Option(None, help="approved|pending|refunded|cancelled|all"),
    platform: str | None = typer.Option(None),
    since: datetime | None = typer.Option(None, formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    until: datetime | None = typer.Option(None, formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
) -> None:
    _, repo = _open()
    for s in repo.list_sales(user_id, _filters(status, platform, since, until)):
        typer.echo(
            f"{s['created_at']}\t{s['id']}\t{s['platform']}\t{s['status']}\t"
            f"{s['amount']:.2f} {s['currency']}\t{s.get('customer_email') or '-'}"
        )


@sales_app.command("metrics")
def sales_metrics(
    user_id: str = typer.Option(...),
    status: str | None = typer.Option(None),
    platform: str | None = typer.Option(None),
    since: datetime | None = typer.Option(None, formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    until: datetime | None = typer.Option(None, formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    as_json: bool = typer.Option(False, "--json", help="Print the raw metrics object."),
) -> None:
    _, repo = _open()
    metrics = aggregate_sales(repo.list_sales(user_id, _filters(status, platform, since, until)))
    if as_json:
        typer.echo(json.dumps(metrics.to_dict(), ensure_ascii=False, indent=2))
        return
    brl = "R$ "
    rows = (
        ("revenue", format_metric(metrics.total_revenue, prefix=brl)),
        ("pending", format_metric(metrics.total_pending, prefix=brl)),
        ("refunds", format_metric(metrics.total_refunds, prefix=brl)),
        ("sales", f"{metrics.approved_sales}/{metrics.total_sales}"),
        ("approval rate", format_metric(metrics.approval_rate, decimals=1, suffix="%")),
        ("avg ticket", format_metric(metrics.avg_ticket, prefix=brl)),
        ("arpu", format_metric(metrics.arpu, prefix=brl)),
    )
    for label, value in rows:
        typer.echo(f"{label + ':':<15}{value}")
