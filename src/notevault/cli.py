"""notevault CLI — main entry point.

Commands:
  init      Initialize a vault for semantic search
  index     Build or inspect the semantic search index
  search    Search notes by gist similarity (aliases: semantic-search, ss)
  grep      Find notes containing a keyword
  related   List notes related to a note
  config    View and update vault settings
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="notevault",
        description="notevault — offline semantic search for a markdown note vault",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize a vault for semantic search")
    init_parser.add_argument("path", nargs="?", default=".", help="Vault directory")

    # index
    index_parser = subparsers.add_parser("index", help="Build the semantic search index")
    index_parser.add_argument("--status", action="store_true", help="Show index status only")
    index_parser.add_argument("--rebuild", action="store_true", help="Delete and rebuild the index")
    index_parser.add_argument("--incremental", action="store_true", help="Only re-index changed notes")
    index_parser.add_argument("--json", action="store_true", help="JSON output")

    # search
    search_parser = subparsers.add_parser(
        "search",
        aliases=["semantic-search", "ss"],
        help="Search notes by gist similarity",
    )
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("-l", "--limit", type=int, help="Maximum number of results")
    search_parser.add_argument("--json", action="store_true", help="JSON output")
    search_parser.add_argument("--fallback", action="store_true", help="Use simple string search")

    # grep
    grep_parser = subparsers.add_parser("grep", help="Find notes containing a keyword")
    grep_parser.add_argument("query", help="Text to look for (case-insensitive)")
    grep_parser.add_argument("--gist", action="store_true", help="Only match titles and gists")
    grep_parser.add_argument("-l", "--limit", type=int, default=20, help="Maximum results shown")
    grep_parser.add_argument("--json", action="store_true", help="JSON output")

    # related
    related_parser = subparsers.add_parser("related", help="List notes related to a note")
    related_parser.add_argument("note", help="Note name (file stem)")
    related_parser.add_argument("--min-tags", type=int, default=1, help="Minimum shared tags")
    related_parser.add_argument("--semantic", action="store_true", help="Rank by gist similarity instead of tags")
    related_parser.add_argument("-l", "--limit", type=int, help="Maximum results (--semantic)")
    related_parser.add_argument("--json", action="store_true", help="JSON output")

    # config
    config_parser = subparsers.add_parser("config", help="View and update vault settings")
    config_parser.add_argument(
        "action", choices=["show", "get", "set"], help="Action to perform"
    )
    config_parser.add_argument("key", nargs="?", help="Setting key (for get/set)")
    config_parser.add_argument("value", nargs="?", help="Setting value (for set)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if args.command == "init":
            return cmd_init(args)
        elif args.command == "index":
            return cmd_index(args)
        elif args.command in ("search", "semantic-search", "ss"):
            return cmd_search(args)
        elif args.command == "grep":
            return cmd_grep(args)
        elif args.command == "related":
            return cmd_related(args)
        elif args.command == "config":
            return cmd_config(args)
        else:
            parser.print_help()
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def configure_logging(level: str, verbose: bool = False) -> None:
    """Route library logging to stderr at the configured level."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_vault(args: argparse.Namespace):
    """Find the vault root and its settings, configuring logging."""
    from notevault.config import load_settings
    from notevault.utils.paths import find_vault_root

    vault_root = find_vault_root()
    if vault_root is None:
        print("No vault found. Run 'notevault init' first.", file=sys.stderr)
        return None, None

    settings = load_settings(vault_root)
    configure_logging(settings.log_level, getattr(args, "verbose", False))
    return vault_root, settings


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a vault for semantic search."""
    from notevault.config import NotevaultSettings, save_settings
    from notevault.utils.paths import get_notevault_dir, get_vault_settings_path

    vault_root = Path(args.path).resolve()
    vault_root.mkdir(parents=True, exist_ok=True)
    get_notevault_dir(vault_root)

    settings_path = get_vault_settings_path(vault_root)
    settings = NotevaultSettings()
    if not settings_path.exists():
        save_settings(settings, settings_path)

    for d in settings.content_dirs:
        (vault_root / d).mkdir(exist_ok=True)

    gitignore = vault_root / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text(".notevault/*.db\n")

    print(f"Initialized vault at {vault_root}")
    return 0


def cmd_index(args: argparse.Namespace) -> int:
    """Build the semantic search index, or show its status."""
    from notevault.renderer import SearchRenderer, index_status
    from notevault.search.engine import SearchEngine
    from notevault.search.vectordb import VectorDB
    from notevault.utils.paths import resolve_db_path

    vault_root, settings = _load_vault(args)
    if vault_root is None:
        return 1

    db_path = resolve_db_path(vault_root, settings.db_path)
    renderer = SearchRenderer()

    if args.status:
        stats = None
        if db_path.exists():
            with VectorDB.open(db_path) as db:
                stats = db.get_stats()
        status = index_status(db_path, stats)
        if args.json:
            print(json.dumps(status))
        else:
            renderer.render_status(status)
        return 0

    if args.rebuild and db_path.exists():
        db_path.unlink()
        if not args.json:
            renderer.console.print("[dim]→[/dim] Removed existing index")

    engine = SearchEngine.open(vault_root, db_path, settings.content_dirs)
    try:
        if not args.json:
            renderer.console.print("[dim]→[/dim] Building search index...")
        stats = engine.index_changed() if args.incremental else engine.index_all()
    finally:
        engine.close()

    if args.json:
        print(json.dumps(stats.to_dict()))
    else:
        renderer.render_indexing(stats, db_path)
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    """Search notes, falling back to string matching without an index."""
    from notevault.renderer import SearchRenderer
    from notevault.search.engine import SearchEngine, simple_search
    from notevault.utils.paths import resolve_db_path
    from notevault.vault.note import VaultPaths

    vault_root, settings = _load_vault(args)
    if vault_root is None:
        return 1

    limit = args.limit if args.limit is not None else settings.default_limit
    db_path = resolve_db_path(vault_root, settings.db_path)
    use_fallback = args.fallback or not db_path.exists()

    if use_fallback:
        paths = VaultPaths.from_root(vault_root, settings.content_dirs)
        results = simple_search(paths, args.query, limit)
    else:
        engine = SearchEngine.open(vault_root, db_path, settings.content_dirs)
        try:
            results = engine.search(args.query, limit)
        finally:
            engine.close()

    if args.json:
        payload = []
        for r in results:
            d = r.to_dict()
            if use_fallback:
                d["mode"] = "simple"
            payload.append(d)
        print(json.dumps(payload, indent=2))
    else:
        SearchRenderer().render_results(args.query, results, simple=use_fallback)
    return 0


def cmd_grep(args: argparse.Namespace) -> int:
    """Find notes whose title, gist or body contains the query."""
    from notevault.renderer import SearchRenderer
    from notevault.search.keyword import keyword_search
    from notevault.vault.note import VaultPaths

    vault_root, settings = _load_vault(args)
    if vault_root is None:
        return 1

    paths = VaultPaths.from_root(vault_root, settings.content_dirs)
    matches = keyword_search(paths, args.query, gist_only=args.gist)

    if args.json:
        print(json.dumps([m.to_dict() for m in matches[:args.limit]], indent=2))
    else:
        SearchRenderer().render_keyword_results(args.query, matches, args.limit)
    return 0


def cmd_related(args: argparse.Namespace) -> int:
    """List notes related to a note by shared tags or gist similarity."""
    from notevault.renderer import SearchRenderer
    from notevault.search.engine import SearchEngine
    from notevault.utils.paths import resolve_db_path
    from notevault.vault.note import VaultPaths, collect_all_notes, related_notes

    vault_root, settings = _load_vault(args)
    if vault_root is None:
        return 1

    if args.semantic:
        db_path = resolve_db_path(vault_root, settings.db_path)
        if not db_path.exists():
            print("Index not found. Run 'notevault index' first.", file=sys.stderr)
            return 1
        limit = args.limit if args.limit is not None else settings.default_limit
        engine = SearchEngine.open(vault_root, db_path, settings.content_dirs)
        try:
            results = engine.related(args.note, limit)
        except KeyError:
            print(f"Note '{args.note}' is not indexed.", file=sys.stderr)
            return 1
        finally:
            engine.close()
        if args.json:
            print(json.dumps([r.to_dict() for r in results], indent=2))
        else:
            SearchRenderer().render_results(args.note, results)
        return 0

    notes = collect_all_notes(VaultPaths.from_root(vault_root, settings.content_dirs))
    try:
        related = related_notes(notes, args.note, min_tags=args.min_tags)
    except KeyError:
        print(f"Note '{args.note}' not found.", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(
            [{"name": r.name, "shared_tags": r.shared_tags} for r in related],
            indent=2,
        ))
    else:
        SearchRenderer().render_related(args.note, related)
    return 0


ALLOWED_CONFIG_KEYS = {"db_path", "default_limit", "content_dirs", "log_level"}


def cmd_config(args: argparse.Namespace) -> int:
    """View and update vault settings."""
    from notevault.config import load_json_file, load_settings, validate_settings
    from notevault.utils.paths import find_vault_root, get_vault_settings_path

    vault_root = find_vault_root()
    if vault_root is None:
        print("No vault found.", file=sys.stderr)
        return 1

    action = args.action

    if action == "show":
        settings = load_settings(vault_root)
        print(json.dumps(settings.to_dict(), indent=2))
        return 0

    if not args.key:
        print(f"Usage: notevault config {action} <key>{' <value>' if action == 'set' else ''}", file=sys.stderr)
        return 1
    if args.key not in ALLOWED_CONFIG_KEYS:
        print(
            f"Unknown key: {args.key}. "
            f"Allowed keys: {', '.join(sorted(ALLOWED_CONFIG_KEYS))}",
            file=sys.stderr,
        )
        return 1

    if action == "get":
        value = getattr(load_settings(vault_root), args.key)
        if isinstance(value, list):
            value = ",".join(value)
        print(value if value is not None else "")
        return 0

    if action == "set":
        if args.value is None:
            print("Usage: notevault config set <key> <value>", file=sys.stderr)
            return 1

        # Parse typed values
        value: str | int | list[str] = args.value
        if args.key == "default_limit":
            try:
                value = int(args.value)
            except ValueError:
                print("default_limit must be an integer", file=sys.stderr)
                return 1
        elif args.key == "content_dirs":
            value = [d.strip() for d in args.value.split(",") if d.strip()]
        elif args.key == "log_level":
            value = args.value.upper()

        test_settings = load_settings(vault_root)
        setattr(test_settings, args.key, value)
        errors = validate_settings(test_settings)
        if errors:
            for err in errors:
                print(f"Validation error: {err}", file=sys.stderr)
            return 1

        settings_path = get_vault_settings_path(vault_root)
        data = load_json_file(settings_path)
        data[args.key] = value
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        print(f"{args.key} = {value}")
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
