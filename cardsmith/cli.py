"""
cardsmith/cli.py — Command-line front end.

Usage
-----
  cardsmith extract notes.pdf                 # print generated cards
  cardsmith extract budget.xlsx --json
  cardsmith ingest a.pdf b.docx --user alice  # store cards, merge duplicates
  cardsmith ingest deck.md --user alice --category Leadership --tags "team, growth"
  cardsmith stats --user alice

Options
-------
  --db PATH     SQLite card store (default: <work_dir>/db/cardsmith.db)
  --json        Output machine-readable JSON instead of text.
  -v            Debug logging.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from config import Config, cfg as _module_cfg
from cardsmith.db import get_connection, get_stats
from cardsmith.errors import CardsmithError
from cardsmith.extract import supported_extensions
from cardsmith.ingest import ingest_batch, stage_upload
from cardsmith.models import CardDraft
from cardsmith.pipeline import process_file

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def _setup_logging(cfg_obj: Config, verbose: bool = False) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    try:
        cfg_obj.ensure_dirs()
        handlers.append(logging.FileHandler(
            cfg_obj.get_log_dir() / cfg_obj.log_file, encoding="utf-8",
        ))
    except OSError as e:
        print(f"[WARN] File logging disabled: {e}", file=sys.stderr)
    logging.basicConfig(
        level=logging.DEBUG if verbose else cfg_obj.get_log_level(),
        format="%(asctime)s %(levelname)-7s %(name)s — %(message)s",
        handlers=handlers,
        force=True,
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_draft(n: int, draft: CardDraft) -> str:
    lines = [
        f"[{n}] {draft.title}",
        f"    type: {draft.type}   category: {draft.category}",
        f"    tags: {', '.join(draft.tags) or '-'}",
        f"    source: {draft.source}",
    ]
    preview = draft.content if len(draft.content) <= 200 else draft.content[:197] + "..."
    lines.append(f"    {preview}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def _cmd_extract(args: argparse.Namespace, cfg_obj: Config) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"[ERROR] File does not exist: {path}", file=sys.stderr)
        return 1
    try:
        result = process_file(path.read_bytes(), path.name)
    except CardsmithError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    if args.as_json:
        print(json.dumps({
            "file":    result.file_name,
            "cards":   [d.to_dict() for d in result.drafts],
            "skipped": [{"location": s.location, "reason": s.reason} for s in result.skipped],
        }, indent=2, ensure_ascii=False))
    else:
        for n, draft in enumerate(result.drafts, start=1):
            print(render_draft(n, draft))
        if result.skipped:
            print(f"\n{len(result.skipped)} item(s) skipped")
    return 0


def _cmd_ingest(args: argparse.Namespace, cfg_obj: Config) -> int:
    paths = [Path(p) for p in args.files]
    missing = [p for p in paths if not p.is_file()]
    if missing:
        for p in missing:
            print(f"[ERROR] File does not exist: {p}", file=sys.stderr)
        return 1

    db_path = Path(args.db) if args.db else cfg_obj.get_db_path()
    conn = get_connection(db_path)
    try:
        uploads = [stage_upload(p, cfg_obj.get_upload_dir()) for p in paths]
        try:
            results = ingest_batch(
                conn, args.user, uploads,
                category=args.category, tags=args.tags,
                max_file_bytes=cfg_obj.max_file_bytes,
                max_files=cfg_obj.max_batch_files,
                allowed_mimetypes=cfg_obj.allowed_mimetypes,
            )
        except CardsmithError as e:
            for u in uploads:
                u.path.unlink(missing_ok=True)
            print(f"[ERROR] {e}", file=sys.stderr)
            return 1
    finally:
        conn.close()

    if args.as_json:
        print(json.dumps(results, indent=2, ensure_ascii=False))
    else:
        for r in results:
            if r["success"]:
                print(f"  OK    {r['file']}: {r['created']} created, {r['merged']} merged")
            else:
                print(f"  FAIL  {r['file']}: {r['error']}")
    return 0 if all(r["success"] for r in results) else 1


def _cmd_stats(args: argparse.Namespace, cfg_obj: Config) -> int:
    db_path = Path(args.db) if args.db else cfg_obj.get_db_path()
    conn = get_connection(db_path)
    try:
        stats = get_stats(conn, user_id=args.user)
    finally:
        conn.close()

    if args.as_json:
        print(json.dumps(stats, indent=2))
    else:
        print(f"cards:       {stats['total_cards']}")
        print(f"attachments: {stats['total_attachments']}")
        for category, count in sorted(stats["by_category"].items()):
            print(f"  {category:<28} {count}")
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="cardsmith",
        description="Turn documents into classified learning cards",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    ex = sub.add_parser("extract", help="Generate cards from one file and print them")
    ex.add_argument("file", help=f"File to read ({', '.join(supported_extensions())})")
    ex.add_argument("--json", dest="as_json", action="store_true", help="Output JSON")

    ing = sub.add_parser("ingest", help="Store cards from files for a user")
    ing.add_argument("files", nargs="+", help="Files to upload")
    ing.add_argument("--user", required=True, help="Owner of the cards")
    ing.add_argument("--category", help="Override the category of every card")
    ing.add_argument("--tags", help="Comma-separated tags replacing generated ones")
    ing.add_argument("--db", help="SQLite card store path")
    ing.add_argument("--json", dest="as_json", action="store_true", help="Output JSON")

    st = sub.add_parser("stats", help="Show card counts")
    st.add_argument("--user", help="Limit to one user")
    st.add_argument("--db", help="SQLite card store path")
    st.add_argument("--json", dest="as_json", action="store_true", help="Output JSON")

    return ap


def main(argv: list[str] | None = None, cfg_obj: Config | None = None) -> int:
    args = build_parser().parse_args(argv)
    _cfg = cfg_obj or _module_cfg
    _setup_logging(_cfg, verbose=args.verbose)

    handlers = {
        "extract": _cmd_extract,
        "ingest":  _cmd_ingest,
        "stats":   _cmd_stats,
    }
    return handlers[args.command](args, _cfg)


if __name__ == "__main__":
    sys.exit(main())
