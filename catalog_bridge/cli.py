"""Command-line interface for catalog-bridge."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.json import JSON
from rich.table import Table

from .adapters import Converted, get_adapter
from .clients import ShopifyClient, WooClient, build_client
from .config import BridgeConfig, LoggingConfig
from .convert import convert, convert_payloads
from .errors import CatalogBridgeError
from .mock_client import InMemoryCatalogClient
from .reconciler import SyncReconciler
from .telemetry import get_sync_instruments

app = typer.Typer(
    name="catalog-bridge",
    help="Convert and sync product catalogs between Shopify, WooCommerce and eBay"
)
console = Console()

CLIENT_CLASSES = {"shopify": ShopifyClient, "woo": WooClient}


def load_config(config_path: str) -> BridgeConfig:
    """Load configuration from JSON file."""
    config_file = Path(config_path)
    if not config_file.exists():
        console.print(f"[red]Error: Config file not found: {config_path}[/red]")
        raise typer.Exit(1)

    with open(config_file) as f:
        config_data = json.load(f)

    return BridgeConfig(**config_data)


def configure_logging(settings: LoggingConfig) -> None:
    logging.basicConfig(
        filename=settings.file,
        level=getattr(logging, settings.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def load_payloads(input_path: str) -> List[dict]:
    """Read one record or a list of records from a JSON file."""
    path = Path(input_path)
    if not path.exists():
        console.print(f"[red]Error: Input file not found: {input_path}[/red]")
        raise typer.Exit(1)
    with open(path) as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def _variant_skus(record: dict) -> List[str]:
    """Best-effort SKU list of a dumped record, for display only."""
    if "variants" in record:
        return [variant.get("sku") or "" for variant in record["variants"]]
    if "variations" in record:
        return [variation.get("sku") or "" for variation in record["variations"]]
    if "offers" in record:
        return [offer["sku"].split("::meta=")[0] for offer in record["offers"]]
    return [str(record.get("sku", "")).split("::meta=")[0]]


def _record_title(record: dict) -> str:
    title = record.get("title") or record.get("name") or record.get("product", {}).get("title") or ""
    return title[:50] + "..." if len(title) > 50 else title


@app.command()
def init(
    output: str = typer.Option("config.json", help="Output configuration file path")
):
    """Initialize a new configuration file with example values."""
    example_config = BridgeConfig.model_config["json_schema_extra"]["example"]

    output_path = Path(output)
    with open(output_path, 'w') as f:
        json.dump(example_config, f, indent=2)

    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]⚠ Please edit the file and add your store credentials![/yellow]")


@app.command()
def validate(
    config: str = typer.Option("config.json", help="Configuration file path"),
):
    """Validate configuration file."""
    try:
        cfg = load_config(config)
    except (ValueError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Configuration error:[/red] {str(e)}")
        raise typer.Exit(1)

    console.print("[green]✓[/green] Configuration is valid!")
    console.print(f"\n[bold]Shopify:[/bold] {cfg.shopify.shop_domain if cfg.shopify else '-'}")
    console.print(f"[bold]WooCommerce:[/bold] {cfg.woo.store_url if cfg.woo else '-'}")
    console.print(f"[bold]Webhook targets:[/bold] {', '.join(cfg.webhook_targets) or '-'}")
    console.print(f"[bold]Isolate failures:[/bold] {cfg.sync.isolate_failures}")
    if cfg.shopify and not cfg.shopify.location_id:
        console.print("[yellow]⚠ No Shopify location_id: inventory updates will fail[/yellow]")


@app.command("convert")
def convert_command(
    input_path: str = typer.Argument(..., help="JSON file with one record or a list of records"),
    source: str = typer.Option(..., help="Source platform (shopify, woo, ebay)"),
    target: str = typer.Option(..., help="Target platform (shopify, woo, ebay)"),
    output: Optional[str] = typer.Option(None, help="Output file for JSON (optional)"),
):
    """Convert platform records to another platform's format."""
    try:
        records = convert_payloads(load_payloads(input_path), source, target)
    except CatalogBridgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Converted {source} → {target}")
    table.add_column("Title", style="green")
    table.add_column("Variants", justify="right", style="yellow")
    table.add_column("SKUs", style="cyan")
    for record in records:
        skus = _variant_skus(record)
        table.add_row(_record_title(record), str(len(skus)), ", ".join(skus))
    console.print(table)

    if output:
        with open(Path(output), 'w') as f:
            json.dump(records, f, indent=2)
        console.print(f"\n[green]✓[/green] Saved to {output}")
    elif records:
        console.print("\n[bold]Example record:[/bold]")
        console.print(JSON(json.dumps(records[0], indent=2)))


@app.command()
def sync(
    source: str = typer.Option(..., help="Source platform (shopify, woo, ebay)"),
    target: str = typer.Option(..., help="Destination platform (shopify, woo)"),
    input_path: Optional[str] = typer.Option(
        None, "--input", help="JSON file of source records (fetched from the source store when omitted)"
    ),
    config: str = typer.Option("config.json", help="Configuration file path"),
    sandbox: bool = typer.Option(False, help="Sync against an in-memory destination"),
    metrics: bool = typer.Option(False, help="Export sync metrics to the console"),
):
    """Create or update destination products from source records, matched by SKU."""
    cfg = load_config(config)
    configure_logging(cfg.logging)
    if target not in CLIENT_CLASSES:
        console.print(f"[red]Error: cannot sync to '{target}'[/red]")
        raise typer.Exit(1)

    async def _sync():
        source_adapter = get_adapter(source)
        target_adapter = get_adapter(target)

        if input_path:
            source_records = [source_adapter.parse_record(raw) for raw in load_payloads(input_path)]
        else:
            async with build_client(source, cfg) as source_client:
                source_records = await source_client.get_all_products()

        records: List[Any] = []
        for record in source_records:
            result = convert(record, source_adapter, target_adapter)
            if isinstance(result, Converted):
                records.append(result.value)

        client = InMemoryCatalogClient(CLIENT_CLASSES[target]) if sandbox else build_client(target, cfg)
        instruments = get_sync_instruments() if metrics else None
        async with client:
            reconciler = SyncReconciler(client, cfg.sync, instruments=instruments)
            console.print(f"[blue]Syncing {len(records)} products to {target}...[/blue]")
            return await reconciler.sync(records)

    try:
        report = asyncio.run(_sync())
    except CatalogBridgeError as e:
        console.print(f"[red]✗ Sync failed:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Sync Results")
    table.add_column("Product", style="green")
    table.add_column("Action", style="cyan")
    table.add_column("Remote ID", style="magenta")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Appended", justify="right", style="yellow")
    table.add_column("Error", style="red")
    for result in report.results:
        table.add_row(
            result.title,
            result.action,
            str(result.remote_id or ""),
            str(len(result.updated_skus)),
            str(len(result.appended_skus)),
            result.error or "",
        )
    console.print(table)
    console.print(JSON(json.dumps(report.counts())))
    if report.failed:
        raise typer.Exit(1)


@app.command()
def serve(
    config: str = typer.Option("config.json", help="Configuration file path"),
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
):
    """Start the webhook relay for Shopify product events."""
    from .webhook import create_webhook_app
    import uvicorn

    cfg = load_config(config)
    configure_logging(cfg.logging)
    webhook_app = create_webhook_app(cfg)

    console.print(f"[green]Starting webhook relay on {host}:{port}[/green]")
    console.print(f"[blue]Webhook endpoint: http://{host}:{port}/webhooks/shopify[/blue]")

    uvicorn.run(webhook_app, host=host, port=port)


if __name__ == "__main__":
    app()
