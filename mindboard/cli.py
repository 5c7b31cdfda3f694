"""Command line helper for the stored MindBoard idea map.

Usage:
  mindboard-cli show
  mindboard-cli verify
  mindboard-cli export --format md --out plan.md
  mindboard-cli reset --yes

Set MINDBOARD_DATA_DIR to work on a data directory other than
~/.local/share/mindboard.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from mindboard.config import setup_logging
from mindboard.errors import PersistenceCorrupt, PersistenceWriteFailed
from mindboard.export import MindMapExporter, get_export_dir
from mindboard.model import STATUSES, MindMap
from mindboard.storage import Database, MindMapStore, validate_mind_map
from mindboard.tree import check_tree, default_mind_map, iter_children


def _outline(mind_map: MindMap) -> list[str]:
    lines: list[str] = []
    stack = [(mind_map.root, 0)]
    seen: set[str] = set()
    while stack:
        node, depth = stack.pop()
        if node.id in seen:
            continue
        seen.add(node.id)
        marker = "+" if node.is_collapsed and node.children else "-"
        suffix = "" if node.status == "idea" else f" [{node.status}]"
        lines.append(f"{'  ' * depth}{marker} {node.content}{suffix}")
        stack.extend((child, depth + 1) for child in reversed(list(iter_children(mind_map, node.id))))
    return lines


def _open(args: argparse.Namespace) -> tuple[Database, MindMapStore]:
    db = Database(Path(args.db) if args.db else None)
    return db, MindMapStore(db)


def _cmd_show(args: argparse.Namespace) -> int:
    db, store = _open(args)
    try:
        mind_map = store.load()
    finally:
        db.close()
    print(f"{mind_map.name} ({len(mind_map.nodes)} nodes)")
    for line in _outline(mind_map):
        print(line)
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    db, store = _open(args)
    try:
        raw = db.read_slot(store.key)
    finally:
        db.close()

    print("MindBoard data verification")
    print(f"  DB: {db.db_path}")
    if raw is None:
        print("  Slot: empty (the default map will be used)")
        return 0

    try:
        mind_map = validate_mind_map(json.loads(raw))
    except (json.JSONDecodeError, PersistenceCorrupt) as exc:
        print(f"  Slot: CORRUPT ({exc})")
        return 1

    problems = check_tree(mind_map)
    counts = {status: 0 for status in STATUSES}
    for node in mind_map.nodes.values():
        counts[node.status] += 1
    print("  Slot: OK")
    print(f"  Counts: nodes={len(mind_map.nodes)} " +
          " ".join(f"{k}={v}" for k, v in counts.items()))
    print(f"  Tree invariants: {'OK' if not problems else 'FAILED'}")
    for problem in problems:
        print(f"    - {problem}")
    return 0 if not problems else 1


def _cmd_export(args: argparse.Namespace) -> int:
    db, store = _open(args)
    try:
        mind_map = store.load()
    finally:
        db.close()

    out = Path(args.out) if args.out else get_export_dir() / f"{mind_map.name}.{args.format}"
    exporter = MindMapExporter()
    if args.format == "md":
        ok = exporter.export_markdown(mind_map, str(out))
    elif args.format == "json":
        ok = exporter.export_json(mind_map, str(out))
    else:
        ok = exporter.export_png(mind_map, str(out))

    if not ok:
        print("Export failed", file=sys.stderr)
        return 1
    print(f"Exported to {out}")
    return 0


def _cmd_reset(args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to reset without --yes (this clears all your ideas).", file=sys.stderr)
        return 2
    db, store = _open(args)
    try:
        store.create_backup(store.load())
        store.save(default_mind_map())
    except PersistenceWriteFailed as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        db.close()
    print("Idea map reset")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mindboard-cli")
    parser.add_argument("--db", help="Database path (default: mindboard.db in the data dir)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_show = sub.add_parser("show", help="Print the stored map as an outline")
    p_show.set_defaults(func=_cmd_show)

    p_ver = sub.add_parser("verify", help="Validate the stored map")
    p_ver.set_defaults(func=_cmd_verify)

    p_exp = sub.add_parser("export", help="Export the stored map")
    p_exp.add_argument("--format", choices=("md", "json", "png"), default="md")
    p_exp.add_argument("--out", help="Output path (default: exports folder)")
    p_exp.set_defaults(func=_cmd_export)

    p_reset = sub.add_parser("reset", help="Replace the stored map with the default map")
    p_reset.add_argument("--yes", action="store_true", help="Confirm the reset")
    p_reset.set_defaults(func=_cmd_reset)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
