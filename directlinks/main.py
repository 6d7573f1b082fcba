from __future__ import annotations

"""CLI for computing direct link dependencies from a CMake file-API reply."""

import argparse
import json
import logging
import sys
from typing import Dict, Iterable, List

from .artifacts import build_artifact_index
from .backtrace import build_signature_index
from .classifier import LINK_COMMAND, compute_direct_links
from .diagnose import explain_target, find_suspects, summarize
from .models import Reply, Target
from .parser import ReplyError, load_reply, load_targets_file, write_queries

logger = logging.getLogger(__name__)


def write_direct_links(path: str, targets: Iterable[Target]) -> None:
    """Write one direct_links record per target to NDJSON."""
    targets = list(targets)
    names: Dict[str, str] = {t.id: t.name for t in targets}
    with open(path, "w", encoding="utf-8") as f:
        for t in targets:
            rec = {
                "kind": "direct_links",
                "id": t.id,
                "name": t.name,
                "type": t.type,
                "name_on_disk": t.name_on_disk,
                "folder": t.folder,
                "direct_links": list(t.direct_links),
                "direct_names": [names.get(i, i) for i in t.direct_links],
            }
            f.write(json.dumps(rec) + "\n")


def print_direct_links(targets: List[Target]) -> None:
    """Print each target and its direct links, sorted by name."""
    names = {t.id: t.name for t in targets}
    for t in sorted(targets, key=lambda t: t.name):
        extra = "".join(
            f" {k}={v}" for k, v in (("file", t.name_on_disk), ("folder", t.folder)) if v
        )
        print(f"{t.name} ({t.type}){extra}")
        for i in t.direct_links:
            print(f"  -> {names.get(i, i)}")


def print_reply_header(reply: Reply) -> None:
    build_type = reply.cache_value("CMAKE_BUILD_TYPE") or "-"
    print(f"reply: source={reply.source_dir} build={reply.build_dir} build_type={build_type}")


def print_summary(targets: List[Target], link_command: str) -> None:
    s = summarize(targets, link_command)
    print(
        f"targets: total={s.total} no_link={s.no_link_section} "
        f"no_fragments={s.no_fragments} no_link_command={s.no_link_command} "
        f"with_direct={s.with_direct_links} without_direct={s.without_direct_links}"
    )
    if s.unmatched:
        print(f"unmatched fragments ({len(s.unmatched)}):")
        for base in s.unmatched[:20]:
            print(f"  {base}")
        if len(s.unmatched) > 20:
            print(f"  ... and {len(s.unmatched) - 20} more")


def explain(targets: List[Target], name: str, link_command: str) -> bool:
    """Print per-fragment verdicts for the target called name."""
    matches = [t for t in targets if t.name == name or t.id == name]
    if not matches:
        return False
    names = {t.id: t.name for t in targets}
    sig_index = build_signature_index(targets)
    art_index = build_artifact_index(targets)
    for t in matches:
        print(f"{t.name} ({t.type})")
        verdicts = explain_target(t, sig_index, art_index, link_command)
        if not verdicts:
            print("  no library fragments")
        for v in verdicts:
            dest = names.get(v.target_id, "-") if v.target_id else "-"
            print(f"  [{v.verdict}] {v.fragment} -> {dest} (sig: {v.signature})")
    return True


def print_suspects(targets: List[Target], link_command: str) -> None:
    suspects = find_suspects(targets, link_command)
    print(f"suspects (project deps but zero direct links): {len(suspects)}")
    for s in suspects:
        print(
            f"  {s.name}: type={s.type} deps={s.project_deps} "
            f"has_link_command={s.has_link_command} "
            f"lib_fragments={s.library_fragments} "
            f"with_backtrace={s.library_fragments_with_backtrace}"
        )


def main(argv: List[str] | None = None) -> int:
    """Entry point for the direct links CLI."""
    parser = argparse.ArgumentParser(
        description="Compute direct (non-transitive) link dependencies from a CMake file-API reply."
    )
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--build-dir", help="CMake build directory")
    src.add_argument("--targets", help="JSON file holding a list of target objects")
    parser.add_argument(
        "--write-queries",
        action="store_true",
        help="Only write file-API query files into --build-dir",
    )
    parser.add_argument(
        "--link-command",
        default=LINK_COMMAND,
        help="Command name (or substring) that declares links",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--out", help="Write direct_links NDJSON to this path")
    mode.add_argument("--explain", metavar="NAME", help="Show fragment verdicts for a target")
    parser.add_argument("--suspects", action="store_true", help="List targets with missing links")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.write_queries:
        if not args.build_dir:
            parser.error("--write-queries requires --build-dir.")
        for path in write_queries(args.build_dir):
            print(f"wrote {path}")
        return 0

    try:
        if args.build_dir:
            reply = load_reply(args.build_dir)
            targets = reply.targets
            print_reply_header(reply)
        else:
            targets = load_targets_file(args.targets)
    except ReplyError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    compute_direct_links(targets, link_command=args.link_command)

    if args.explain:
        if not explain(targets, args.explain, args.link_command):
            print(f"error: no target named {args.explain}", file=sys.stderr)
            return 1
    elif args.out:
        write_direct_links(args.out, targets)
        logger.debug("wrote %d records to %s", len(targets), args.out)
    else:
        print_direct_links(targets)
        print_summary(targets, args.link_command)

    if args.suspects:
        print_suspects(targets, args.link_command)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
