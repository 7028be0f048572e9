"""Rich terminal rendering for notevault output."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from notevault.search.engine import IndexingStats, SearchResult
from notevault.search.keyword import KeywordMatch
from notevault.search.vectordb import IndexStats
from notevault.vault.note import RelatedNote


GIST_PREVIEW_CHARS = 100


def truncate_gist(gist: str, limit: int = GIST_PREVIEW_CHARS) -> str:
    if len(gist) > limit:
        return gist[:limit] + "..."
    return gist


class SearchRenderer:
    """Renders search results and index status."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(highlight=False)

    def render_results(
        self,
        query: str,
        results: list[SearchResult],
        simple: bool = False,
    ) -> None:
        if simple:
            self.console.print(
                "[yellow]![/yellow] Using simple search (semantic index not available)\n"
            )
        if not results:
            self.console.print(f"[dim]→[/dim] No results found for: [cyan]{escape(query)}[/cyan]")
            return

        self.console.print(
            f"[dim]→[/dim] {len(results)} results for: [cyan]{escape(query)}[/cyan]\n"
        )
        for i, result in enumerate(results, start=1):
            if simple:
                score = f"[dim]{result.score * 100:.0f}%[/dim]"
            else:
                style = "green" if result.score > 0.8 else "yellow" if result.score > 0.6 else "dim"
                score = f"[{style}]{result.score:.2f}[/{style}]"
            self.console.print(f"[bold]{i}.[/bold] \\[{score}] [cyan]{escape(result.title)}[/cyan]")
            if result.gist:
                self.console.print(f"   [dim]{escape(truncate_gist(result.gist))}[/dim]")
            if result.category and result.area:
                self.console.print(f"   {escape(result.category)} | {escape(result.area)}")
            self.console.print()

    def render_indexing(self, stats: IndexingStats, db_path: Path) -> None:
        self.console.print(
            f"[bold green]✓[/bold green] Indexed [cyan]{stats.indexed}[/cyan] notes "
            f"in {stats.duration_ms / 1000:.2f}s"
        )
        if stats.unchanged:
            self.console.print(f"  [dim]→[/dim] {stats.unchanged} notes unchanged")
        if stats.skipped:
            self.console.print(f"  [dim]→[/dim] {stats.skipped} notes skipped (no gist)")
        if stats.removed:
            self.console.print(f"  [dim]→[/dim] {stats.removed} stale entries removed")
        if stats.failed:
            self.console.print(f"  [red]✗[/red] {stats.failed} notes failed")
        self.console.print(f"  [dim]→[/dim] Index saved to: {db_path}")

    def render_status(self, status: dict[str, Any]) -> None:
        if not status.get("exists"):
            self.console.print(
                "[bold yellow]![/bold yellow] Index not found. "
                "Run [cyan]notevault index[/cyan] first."
            )
            return

        lines = [
            f"[dim]→[/dim] [cyan]{status['document_count']}[/cyan] notes indexed",
            f"[dim]→[/dim] [cyan]{status['embedding_count']}[/cyan] embeddings",
            f"[dim]→[/dim] Size: {status['file_size_bytes'] / 1024:.2f} KB",
        ]
        if status.get("last_indexed") is not None:
            when = datetime.fromtimestamp(status["last_indexed"]).strftime("%Y-%m-%d %H:%M:%S")
            lines.append(f"[dim]→[/dim] Last indexed: {when}")
        self.console.print(Panel("\n".join(lines), title="Index Status", expand=False))

    def render_related(self, name: str, related: list[RelatedNote], max_shown: int = 20) -> None:
        self.console.print(f"[bold]Related Notes[/bold]\nSource: [cyan]{escape(name)}[/cyan]\n")
        if not related:
            self.console.print("[yellow]No related notes found.[/yellow]")
            return

        self.console.print(f"Found {len(related)} related notes:\n")
        for item in related[:max_shown]:
            self.console.print(
                f"  [cyan]{escape(item.name)}[/cyan] ({item.shared_count} shared: "
                f"{escape(', '.join(item.shared_tags))})"
            )
        if len(related) > max_shown:
            self.console.print(f"\n[dim]... and {len(related) - max_shown} more[/dim]")

    def render_keyword_results(
        self, query: str, matches: list[KeywordMatch], limit: int = 20
    ) -> None:
        self.console.print(f"[bold]Search Results[/bold]\nQuery: \"{escape(query)}\"")
        self.console.print(f"Found: {len(matches)} matches\n")
        if not matches:
            self.console.print("[yellow]No matches found.[/yellow]")
            return

        for match in matches[:limit]:
            self.console.print(f"[cyan]{escape(match.name)}[/cyan] \\[{escape(match.folder)}]")
            self.console.print(f"  [dim]{match.field.capitalize()}: {escape(match.context)}[/dim]\n")
        if len(matches) > limit:
            self.console.print(f"[dim]... and {len(matches) - limit} more results[/dim]")


def index_status(db_path: Path, stats: IndexStats | None) -> dict[str, Any]:
    """Status dict for `notevault index --status`."""
    if stats is None:
        return {"exists": False, "error": "Index not found"}
    return {
        "exists": True,
        **stats.to_dict(),
        "file_size_bytes": db_path.stat().st_size if db_path.exists() else 0,
    }
