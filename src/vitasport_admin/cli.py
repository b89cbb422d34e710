"""Command line interface for the VitaSport back office."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional

import typer
import uvicorn

from . import crud, export, schemas
from .balances import BalanceProjector
from .config import Settings, get_settings
from .database import get_session_factory, init_database
from .errors import VitaSportError
from .logging_config import setup_logging
from .movements import MovementLog
from .settlement import SaleSettlementEngine
from .store import SqlLedgerStore

app = typer.Typer(help="Manage and run the VitaSport inventory and sales backend.")


def _print_header(title: str) -> None:
    typer.secho(title, bold=True, fg=typer.colors.CYAN)


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _resolve_settings() -> Settings:
    settings = get_settings()
    init_database()
    return settings


def _store() -> SqlLedgerStore:
    return SqlLedgerStore(get_session_factory(), lock_timeout=get_settings().lock_timeout)


@app.command()
def run(
    host: Optional[str] = typer.Option(None, help="Hostname to bind"),
    port: Optional[int] = typer.Option(None, help="Port to expose"),
    reload: Optional[bool] = typer.Option(None, help="Enable auto-reload"),
    log_level: Optional[str] = typer.Option(None, help="Uvicorn log level"),
) -> None:
    """Start the FastAPI service using Uvicorn."""

    settings = _resolve_settings()
    setup_logging(settings)

    uvicorn.run(
        "vitasport_admin.app:create_app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.reload if reload is None else reload,
        log_level=log_level or settings.log_level,
        factory=True,
    )


@app.command()
def init_db() -> None:
    """Create the SQLite database and tables."""

    settings = _resolve_settings()
    typer.echo(f"Database initialised at {settings.database_path}")
    typer.echo(f"Reports directory ready at {settings.reports_dir}")


@app.command()
def create_admin(
    username: str = typer.Argument(..., help="Unique login name"),
    password: Optional[str] = typer.Option(
        None,
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Password for the new administrator",
    ),
    fullname: Optional[str] = typer.Option(None, help="Display name"),
) -> None:
    """Create an administrator user in the database."""

    _resolve_settings()
    with get_session_factory()() as session:
        if crud.get_user_by_username(session, username):
            _fail("User already exists")
        if password is None:
            _fail("Password is required")
        try:
            user = crud.create_user(
                session,
                schemas.UserCreate(
                    username=username,
                    password=password,
                    fullname=fullname,
                    role=crud.DEFAULT_ADMIN_ROLE,
                ),
            )
        except VitaSportError as exc:
            _fail(str(exc))
        typer.secho(f"Created administrator {user.username} (id={user.id})", fg=typer.colors.GREEN)


@app.command("list-users")
def list_users_cmd() -> None:
    """Display users stored in the database."""

    _resolve_settings()
    with get_session_factory()() as session:
        users = crud.list_users(session)
        if not users:
            typer.echo("No users found.")
            return
        _print_header("Existing users")
        for user in users:
            typer.echo(f"- #{user.id} {user.username} | role={user.role} | name={user.fullname or '-'}")


@app.command()
def show_paths() -> None:
    """Print out important filesystem paths."""

    settings = _resolve_settings()
    typer.echo(f"Database: {settings.database_path}")
    typer.echo(f"Data directory: {settings.data_dir}")
    typer.echo(f"Reports directory: {settings.reports_dir}")
    typer.echo(f"Log directory: {settings.log_dir}")


@app.command("add-stock")
def add_stock(
    product_id: int = typer.Argument(..., help="Product receiving the movement"),
    quantity: int = typer.Argument(..., help="Units moved, always positive"),
    kind: str = typer.Option("inflow", "--kind", "-k", help="inflow/outflow (ingreso/egreso accepted)"),
    note: Optional[str] = typer.Option(None, help="Free text stored with the movement"),
) -> None:
    """Append a manual stock movement."""

    _resolve_settings()
    store = _store()
    try:
        movement_id = MovementLog(store).append(
            {"product_id": product_id, "kind": kind, "quantity": quantity, "note": note}
        )
    except VitaSportError as exc:
        _fail(str(exc))
    balance = BalanceProjector(store).balance_of(product_id)
    typer.secho(
        f"Movement #{movement_id} recorded; product {product_id} now has {balance} units",
        fg=typer.colors.GREEN,
    )


@app.command()
def sell(
    product_id: int = typer.Argument(..., help="Product being sold"),
    quantity: int = typer.Argument(..., help="Units sold"),
    price: Optional[float] = typer.Option(None, help="Charged total; defaults to the list price times quantity"),
    discount: Optional[float] = typer.Option(None, help="Discount percentage applied to the list price"),
    channel: str = typer.Option("Tienda", help="Sales channel"),
) -> None:
    """Settle a sale against the current stock."""

    _resolve_settings()
    if price is None:
        with get_session_factory()() as session:
            product = crud.get_product(session, product_id)
            if product is None or product.sale_price is None:
                _fail(f"Product {product_id} has no list price; pass --price")
            price = round(product.sale_price * quantity * (1 - (discount or 0) / 100))
    try:
        sale_id = SaleSettlementEngine(_store()).settle_sale(
            {
                "product_id": product_id,
                "quantity": quantity,
                "sale_price": price,
                "discount": discount,
                "channel": channel,
            }
        )
    except VitaSportError as exc:
        _fail(str(exc))
    typer.secho(f"Sale #{sale_id} settled for {price:.2f}", fg=typer.colors.GREEN)


@app.command()
def balances() -> None:
    """Print the current stock of every product."""

    _resolve_settings()
    store = _store()
    stock = BalanceProjector(store).all_balances()
    with get_session_factory()() as session:
        products = crud.list_products(session, limit=None)
    if not products:
        typer.echo("No products found.")
        return
    _print_header("Current stock")
    for product in products:
        typer.echo(f"- #{product.id} {product.name}: {stock.get(product.id, 0)}")


@app.command("export-reports")
def export_reports(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for the CSV files"),
) -> None:
    """Write every CSV report."""

    settings = _resolve_settings()
    directory = (output or settings.reports_dir).expanduser()
    with get_session_factory()() as session:
        paths = export.export_all(session, directory, low_stock_threshold=settings.low_stock_threshold)
    for path in paths:
        typer.echo(f"- {path}")
    typer.secho(f"{len(paths)} reports written to {directory}", fg=typer.colors.GREEN)


def main() -> None:
    """Entry-point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
