"""Command line interface for the retail ledger service."""

from __future__ import annotations

from typing import Optional

import typer
import uvicorn

from .config import Settings, get_settings
from .database import init_db as create_tables
from .database import session_scope
from .errors import RetailLedgerError
from .logging_config import configure_logging
from .models import VatMode
from .services import catalog, sequences
from .services.totals import compute_order_totals

app = typer.Typer(help="Manage and run the retail ledger service.")


def _resolve_settings() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level)
    create_tables()
    return settings


@app.command()
def run(
    host: Optional[str] = typer.Option(None, help="Hostname to bind"),
    port: Optional[int] = typer.Option(None, help="Port to expose"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the FastAPI service using Uvicorn."""

    settings = _resolve_settings()
    uvicorn.run(
        "retail_ledger.app:create_application",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
        factory=True,
    )


@app.command("init-db")
def init_db() -> None:
    """Create the database tables."""

    settings = _resolve_settings()
    typer.secho(f"Database initialised at {settings.database_url}", fg=typer.colors.GREEN)


@app.command("next-barcode")
def next_barcode(store_id: str = typer.Argument(..., help="Store to allocate for")) -> None:
    """Allocate the next internal EAN-13 barcode for a store."""

    _resolve_settings()
    with session_scope() as session:
        try:
            catalog.get_store(session, store_id)
            barcode = sequences.allocate_internal_barcode(session, store_id)
        except RetailLedgerError as exc:
            typer.secho(exc.message, fg=typer.colors.RED)
            raise typer.Exit(code=1) from exc
    typer.echo(barcode)


@app.command()
def totals(
    subtotal: int = typer.Argument(..., help="Cart subtotal in the smallest currency unit"),
    discount: int = typer.Option(0, help="Discount amount"),
    shipping: int = typer.Option(0, help="Shipping fee charged to the customer"),
    vat_rate: int = typer.Option(700, help="VAT rate in basis points"),
    vat_mode: VatMode = typer.Option(VatMode.EXCLUSIVE, help="How VAT relates to the price"),
    no_vat: bool = typer.Option(False, "--no-vat", help="Disable VAT"),
) -> None:
    """Print order totals for the given amounts."""

    result = compute_order_totals(
        subtotal=subtotal,
        discount=discount,
        vat_enabled=not no_vat,
        vat_rate=vat_rate,
        vat_mode=vat_mode,
        shipping_fee_charged=shipping,
    )
    typer.secho("Order totals", bold=True, fg=typer.colors.CYAN)
    typer.echo(f"- taxable gross: {result.taxable_gross}")
    typer.echo(f"- discount: {result.discount}")
    typer.echo(f"- net before VAT: {result.net_before_vat}")
    typer.echo(f"- VAT: {result.vat_amount}")
    typer.echo(f"- total: {result.total}")


def main() -> None:
    """Entry-point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
