import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from supersearch.core.embedder import run_embed
from supersearch.core.errors import ConfigurationError, SuperSearchError
from supersearch.core.identity import build_pipeline, resolve
from supersearch.core.logging_config import configure_logging
from supersearch.core.models import SearchResult
from supersearch.core.search import SearchSession, render_result
from supersearch.core.settings import SettingsManager, SuperSearchSettings
from supersearch.core.store import PostgresDocumentStore
from supersearch.core.vault import LocalVault

app = typer.Typer(help="SuperSearch: semantic search over your notes and PDFs")
config_app = typer.Typer(help="Show and edit vault settings")
app.add_typer(config_app, name="config")
console = Console()

# Initialize structured logging
configure_logging(
    log_level=os.getenv("LOG_LEVEL", "WARNING"),
    json_logs=os.getenv("JSON_LOGS", "false").lower() == "true"
)


@app.callback()
def main(
    ctx: typer.Context,
    vault: Path = typer.Option(
        Path("."), "--vault", "-V", envvar="SUPERSEARCH_VAULT",
        help="Vault directory to embed and search",
    ),
):
    """SuperSearch CLI."""
    if not vault.is_dir():
        console.print(f"[red]Error:[/] Vault {vault} is not a directory")
        raise typer.Exit(1)
    ctx.obj = {"vault": vault}


def _settings_manager(ctx: typer.Context) -> SettingsManager:
    try:
        return SettingsManager(ctx.obj["vault"])
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)


def _require_database(settings: SuperSearchSettings) -> None:
    if not settings.database_url:
        console.print("[red]Error:[/] No database URL configured. "
                      "Run [bold]supersearch config set database_url <url>[/] first.")
        raise typer.Exit(1)


def _store(settings: SuperSearchSettings) -> PostgresDocumentStore:
    return PostgresDocumentStore(settings.database_url, settings.collection_name)


@app.command()
def embed(ctx: typer.Context):
    """Embed every note and PDF changed since the last successful run."""
    manager = _settings_manager(ctx)
    settings = manager.settings
    _require_database(settings)

    vault = LocalVault(ctx.obj["vault"])
    try:
        with console.status("[bold green]🔮 Embedding..."):
            stats = run_embed(manager, vault, _store(settings))
    except (SuperSearchError, OSError) as e:
        console.print(f"[red]Error embedding files:[/] {escape(str(e))}")
        raise typer.Exit(1)

    console.print("[green]🔮 Embedded[/]")
    console.print(f"[bold]Changed files:[/] {stats.changed_files}")
    console.print(f"[bold]Text files:[/] {stats.text_files}")
    console.print(f"[bold]PDF files:[/] {stats.pdf_files} ({stats.pdf_pages} pages)")
    console.print(f"[bold]Batches upserted:[/] {stats.batches_flushed}")


def _print_results(results: List[SearchResult], snippet_length: int) -> None:
    if not results:
        console.print("[dim]No results[/]")
        return
    for index, result in enumerate(results, start=1):
        header, snippet = render_result(result, snippet_length)
        console.print(f"[bold cyan]{index}.[/] [bold]{escape(header)}[/]")
        console.print(f"   [dim]{escape(snippet)}[/]")


def _open_result(vault: LocalVault, results: List[SearchResult], choice: int) -> None:
    if choice < 1 or choice > len(results):
        console.print(f"[red]Error:[/] No result {choice}")
        raise typer.Exit(1)
    target = vault.resolve(results[choice - 1].path)
    if not target.exists():
        console.print(f"[yellow]⚠️  {results[choice - 1].path} is no longer in the vault[/]")
        return
    console.print(f"[dim]Opening {target}[/]")
    typer.launch(str(target))


@app.command()
def search(
    ctx: typer.Context,
    query: Optional[str] = typer.Argument(None, help="Query; omit for interactive mode"),
    limit: Optional[int] = typer.Option(None, help="Maximum number of results"),
    open_result: Optional[int] = typer.Option(None, "--open", help="Open the Nth result"),
):
    """Search the vault. Without a query, prompts until an empty line."""
    manager = _settings_manager(ctx)
    settings = manager.settings
    _require_database(settings)

    try:
        pipeline = build_pipeline(settings.pipeline_config())
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)

    vault = LocalVault(ctx.obj["vault"])
    session = SearchSession(
        _store(settings),
        pipeline,
        limit=limit or settings.search_limit,
        quiescence=settings.search_delay_ms / 1000,
    )

    if query is not None:
        results = session.suggest(query)
        _print_results(results, settings.snippet_length)
        if open_result is not None:
            _open_result(vault, results, open_result)
        return

    console.print("[dim]Enter a query to super search (empty line to quit)[/]")
    while True:
        text = Prompt.ask("🔮", default="", show_default=False)
        if not text.strip():
            break
        results = session.suggest(text)
        _print_results(results, settings.snippet_length)
        if results:
            choice = Prompt.ask("Open result # (enter to skip)", default="", show_default=False)
            if choice.strip().isdigit():
                _open_result(vault, results, int(choice))


@app.command()
def forget(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Vault path whose documents should be removed"),
):
    """Remove a file's documents (every page of a PDF) from the store."""
    manager = _settings_manager(ctx)
    settings = manager.settings
    _require_database(settings)

    try:
        deleted = _store(settings).delete_documents({"path": path})
    except SuperSearchError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)
    console.print(f"[green]✅ Removed {deleted} document(s) for {path}[/]")


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Show the current settings."""
    manager = _settings_manager(ctx)
    settings = manager.settings

    table = Table(title=f"SuperSearch settings ({manager.config_file})")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in settings.model_dump().items():
        if key == "excluded_directories":
            value = ", ".join(value)
        elif key == "last_run_timestamp" and value:
            value = f"{value} ({datetime.fromtimestamp(value / 1000).isoformat(timespec='seconds')})"
        table.add_row(key, str(value))
    table.add_row("pipeline (derived)", resolve(settings.pipeline_config()), style="dim")
    console.print(table)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value (comma separated for lists)"),
):
    """Change one setting."""
    manager = _settings_manager(ctx)
    try:
        manager.set(key, value)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)
    console.print(f"[green]✅ {key} updated[/]")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Setting name"),
):
    """Reset one setting to its default."""
    manager = _settings_manager(ctx)
    try:
        manager.reset(key)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)
    console.print(f"[green]✅ {key} reset to default[/]")


@config_app.command("validate")
def config_validate(ctx: typer.Context):
    """Check the settings for problems that would block embedding or search."""
    manager = _settings_manager(ctx)
    validation = manager.validate()

    for issue in validation["issues"]:
        console.print(f"[red]✗[/] {issue}")
    for warning in validation["warnings"]:
        console.print(f"[yellow]⚠️  {warning}[/]")

    if not validation["valid"]:
        raise typer.Exit(1)
    console.print("[green]✅ Settings are valid[/]")


if __name__ == "__main__":
    app()
