"""Command-line interface for famtree-py.

Usage examples:

famtree serve --port 8000
famtree render --root 1 --out tree.svg
famtree export gedcom --out family.ged
famtree import backup.json
famtree search shrestha
famtree check
"""
from pathlib import Path
from typing import Optional
import argparse
import logging
import os

import uvicorn

from .config import load_config
from .exporters import FORMATS, ImportFormatError, merge_json, write_export
from .fs import PersistenceError, read_text
from .interaction import InteractionController
from .normalizer import find_problems
from .seed import seed_store
from .settings import default_settings, load_settings
from .store import open_store
from .tree import count_nodes, find_roots


def _cmd_serve(args, cfg) -> int:
    if args.config:
        # the app module reads its config at import time
        os.environ["FAMTREE_CONFIG"] = args.config
    uvicorn.run("famtree_py.web.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_render(args, store, cfg) -> int:
    settings = load_settings(cfg.settings_path, default_settings(cfg.max_depth))
    if args.root and args.root not in store:
        print(f"Unknown person: {args.root}")
        return 2
    ctl = InteractionController(store, settings, args.max_depth, cfg.templates_dir)
    try:
        ctl.choose_root(args.root)
        for pid in (args.collapse or "").split(","):
            if pid:
                ctl.toggle_collapse(pid)
        view = ctl.render()
    finally:
        ctl.close()
    if args.out:
        Path(args.out).write_text(view.svg, encoding="utf-8")
        print(f"Rendered {sum(count_nodes(n) for n in view.nodes)} persons to {args.out}")
    else:
        print(view.svg)
    return 0


def _cmd_export(args, store, cfg) -> int:
    out = args.out or f"family-tree.{'ged' if args.format == 'gedcom' else args.format}"
    write_export(store, args.format, out)
    print(f"Exported {len(store)} persons to {out}")
    return 0


def _cmd_import(args, store, cfg) -> int:
    text = read_text(Path(args.file))
    if text is None:
        print(f"Import file not found: {args.file}")
        return 2
    try:
        result = merge_json(store, text)
    except ImportFormatError as exc:
        print(f"Import failed: {exc}")
        return 2
    print(f"Imported {len(result.added)} new and {len(result.updated)} updated persons")
    return 0


def _cmd_search(args, store, cfg) -> int:
    hits = store.search(args.query)
    for p in hits:
        years = f" ({p.birth_year or '?'}-{p.death_year or ''})" if p.birth_year or p.death_year else ""
        print(f"{p.id}\t{p.display_name}{years}")
    if not hits:
        print("No matches.")
    return 0


def _cmd_roots(args, store, cfg) -> int:
    roots = find_roots(store)
    if not roots:
        print("No family members found.")
    for rid in roots:
        print(f"{rid}\t{store.get(rid).display_name}")
    return 0


def _cmd_check(args, store, cfg) -> int:
    persons = store.snapshot()
    problems = find_problems(persons)
    for pr in problems:
        print(pr.describe(persons))
    print(f"{len(problems)} problem(s) in {len(persons)} persons")
    return 1 if problems else 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="famtree")
    p.add_argument("--config", help="Path to a JSON config file (defaults to $FAMTREE_CONFIG)")
    sub = p.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve", help="Run the web app")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--reload", action="store_true")

    ren = sub.add_parser("render", help="Render the tree as SVG")
    ren.add_argument("--root", help="Person id to start from (every root tree when omitted)")
    ren.add_argument("--collapse", help="Comma-separated person ids to collapse")
    ren.add_argument("--max-depth", type=int, default=None, help="Generations to draw (defaults to the saved generation limit)")
    ren.add_argument("--out", "-o", help="Output SVG path (stdout when omitted)")

    exp = sub.add_parser("export", help="Export the family data")
    exp.add_argument("format", choices=FORMATS)
    exp.add_argument("--out", "-o", help="Output path")

    imp = sub.add_parser("import", help="Merge a JSON export into the data file")
    imp.add_argument("file")

    sea = sub.add_parser("search", help="Search by name, occupation or location")
    sea.add_argument("query")

    sub.add_parser("roots", help="List the persons nobody lists as a child")
    sub.add_parser("check", help="Report broken or one-sided references")
    return p


COMMANDS = {
    "render": _cmd_render,
    "export": _cmd_export,
    "import": _cmd_import,
    "search": _cmd_search,
    "roots": _cmd_roots,
    "check": _cmd_check,
}


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.INFO))
    if args.cmd == "serve":
        return _cmd_serve(args, cfg)
    try:
        store, _ = open_store(cfg.data_path, seed_store if cfg.seed else None)
    except PersistenceError as exc:
        print(f"Could not open {cfg.data_path}: {exc}")
        return 2
    return COMMANDS[args.cmd](args, store, cfg)


if __name__ == "__main__":
    raise SystemExit(main())
