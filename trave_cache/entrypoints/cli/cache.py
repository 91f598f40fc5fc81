"""
Cache Maintenance CLI

永続キャッシュの確認・削除と接続プローブを行う保守用CLI
"""

from __future__ import annotations

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from trave_cache.application.services.cache_context import CacheContext, build_cache_context
from trave_cache.infrastructure.external_api.reachability_probe import HttpReachabilityProbe
from trave_cache.models.connectivity import ConnectivitySnapshot
from trave_cache.shared.config.settings import Settings, get_settings
from trave_cache.shared.utils.logger_config import setup_logger

console = Console()

app = typer.Typer(
    name="trave-cache",
    help="🗄️ オフラインキャッシュ管理ツール",
    rich_markup_mode="rich",
    add_completion=False,
)


def _settings(ctx: typer.Context) -> Settings:
    settings = get_settings()
    db_path = ctx.obj.get("db_path") if ctx.obj else None
    if db_path:
        settings = settings.model_copy(update={"cache_db_path": db_path})
    return settings


def _context(ctx: typer.Context) -> CacheContext:
    return build_cache_context(_settings(ctx))


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログ出力"),
    db_path: str = typer.Option(None, "--db", help="cache.db のパス（未指定時は TRAVE_CACHE_DB_PATH）"),
) -> None:
    """🗄️ オフラインキャッシュ管理ツール"""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["db_path"] = db_path
    setup_logger(verbose=verbose)


@app.command(name="info")
def info_command(ctx: typer.Context):
    """
    キャッシュ済みキーの一覧と件数を表示

    Examples:
        uv run trave-cache info
    """

    async def _run():
        async with _context(ctx) as cache:
            return await cache.ttl_cache.get_cache_info()

    info = asyncio.run(_run())

    if info.count == 0:
        console.print("[yellow]キャッシュは空です。[/yellow]")
        return

    table = Table(title="Cached Keys", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Key", style="green")
    for i, key in enumerate(info.keys, start=1):
        table.add_row(str(i), key)

    console.print(table)
    console.print(f"\n[bold]合計: {info.count} 件[/bold]\n")


@app.command(name="get")
def get_command(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="論理キャッシュキー"),
):
    """
    有効なキャッシュ値を JSON で表示（無ければ終了コード1）

    Examples:
        uv run trave-cache get user:42
    """

    async def _run():
        async with _context(ctx) as cache:
            return await cache.ttl_cache.get_cached_data(key)

    value = asyncio.run(_run())
    if value is None:
        console.print(f"[red]キャッシュがありません: {key}[/red]")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(value, ensure_ascii=False, indent=2))


@app.command(name="clear")
def clear_command(
    ctx: typer.Context,
    key: str = typer.Argument(None, help="削除する論理キー"),
    all_entries: bool = typer.Option(False, "--all", "-a", help="全エントリを削除"),
):
    """
    キャッシュエントリを削除

    Examples:
        uv run trave-cache clear user:42
        uv run trave-cache clear --all
    """
    if not all_entries and not key:
        console.print("[red]KEY か --all を指定してください[/red]")
        raise typer.Exit(code=2)

    async def _run() -> int:
        async with _context(ctx) as cache:
            if all_entries:
                return await cache.ttl_cache.clear_all_cache()
            info = await cache.ttl_cache.get_cache_info()
            if key not in info.keys:
                return 0
            await cache.ttl_cache.clear_cache(key)
            return 1

    removed = asyncio.run(_run())
    if all_entries:
        console.print(f"[green]{removed} 件のキャッシュを削除しました[/green]")
    elif removed:
        console.print(f"[green]キャッシュを削除しました: {key}[/green]")
    else:
        console.print(f"[red]キャッシュがありません: {key}[/red]")
        raise typer.Exit(code=1)


@app.command(name="purge")
def purge_command(ctx: typer.Context):
    """
    期限切れ・破損エントリを一括削除

    Examples:
        uv run trave-cache purge
    """

    async def _run() -> int:
        async with _context(ctx) as cache:
            return await cache.ttl_cache.purge_expired()

    removed = asyncio.run(_run())
    console.print(f"[green]期限切れキャッシュ {removed} 件を削除しました[/green]")


@app.command(name="probe")
def probe_command(
    url: str = typer.Option(None, "--url", "-u", help="プローブ先 URL"),
):
    """
    接続プローブを1回実行して結果を表示

    Examples:
        uv run trave-cache probe
        uv run trave-cache probe --url https://example.com/health
    """
    settings = get_settings()

    async def _run() -> ConnectivitySnapshot:
        probe = HttpReachabilityProbe(
            url or settings.connectivity_probe_url,
            timeout=settings.connectivity_probe_timeout,
        )
        try:
            return await probe.fetch()
        finally:
            await probe.aclose()

    snapshot = asyncio.run(_run())

    table = Table(title="Connectivity", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("URL", url or settings.connectivity_probe_url)
    table.add_row("Connected", str(snapshot.is_connected))
    table.add_row("Internet Reachable", str(snapshot.is_internet_reachable))
    table.add_row("Online", str(snapshot.is_online))
    console.print(table)

    if snapshot.is_online is False:
        raise typer.Exit(code=1)
