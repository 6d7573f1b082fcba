from __future__ import annotations

"""Loaders for CMake file-API replies.

CMake writes a reply under <build>/.cmake/api/v1/reply after a configure, as
long as matching query files exist under .../query. The reply is an
index-*.json file pointing at one JSON file per object kind, and the codemodel
object in turn points at one JSON file per target.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from .models import (
    BacktraceGraph,
    BacktraceNode,
    CacheEntry,
    CommandFragment,
    Dependency,
    Link,
    TARGET_TYPES,
    Reply,
    Target,
)

logger = logging.getLogger(__name__)

QUERY_FILES = ("codemodel-v2", "cache-v2", "cmakeFiles-v1", "toolchains-v1")


class ReplyError(RuntimeError):
    """Raised when a reply is missing or cannot be parsed."""


def api_dirs(build_dir: str) -> Tuple[str, str]:
    """Return (query_dir, reply_dir) for a build directory."""
    root = os.path.join(build_dir, ".cmake", "api", "v1")
    return os.path.join(root, "query"), os.path.join(root, "reply")


def write_queries(build_dir: str) -> List[str]:
    """Create the empty query files that make the next configure emit a reply."""
    query_dir, _ = api_dirs(build_dir)
    os.makedirs(query_dir, exist_ok=True)
    out: List[str] = []
    for name in QUERY_FILES:
        path = os.path.join(query_dir, name)
        with open(path, "w", encoding="utf-8"):
            pass
        out.append(path)
    return out


def _index_files(reply_dir: str) -> List[str]:
    try:
        names = os.listdir(reply_dir)
    except OSError:
        return []
    return sorted(n for n in names if n.startswith("index-") and n.endswith(".json"))


def has_reply(build_dir: str) -> bool:
    """Return True if a configure already produced a reply."""
    _, reply_dir = api_dirs(build_dir)
    return bool(_index_files(reply_dir))


def read_json(path: str) -> Any:
    """Read a JSON file, wrapping I/O and decode errors in ReplyError."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        raise ReplyError(f"Unable to read {path}: {exc}") from exc


def read_index(reply_dir: str) -> dict:
    """Load the most recent index file (last in lexicographic order)."""
    files = _index_files(reply_dir)
    if not files:
        raise ReplyError(
            f"No index file found in {reply_dir}.\n"
            "Have you run CMake configure?"
        )
    index = read_json(os.path.join(reply_dir, files[-1]))
    if not isinstance(index, dict):
        raise ReplyError(f"{files[-1]}: expected a JSON object")
    return index


def _find_object(index: dict, kind: str) -> Optional[dict]:
    objects = index.get("objects") or []
    if not isinstance(objects, list):
        raise ReplyError("index 'objects' must be a list")
    for obj in objects:
        if isinstance(obj, dict) and obj.get("kind") == kind:
            return obj
    return None


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def parse_backtrace_graph(rec: dict) -> BacktraceGraph:
    """Convert a backtraceGraph JSON object."""
    nodes = [
        BacktraceNode(
            file=int(n["file"]),
            line=_opt_int(n.get("line")),
            command=_opt_int(n.get("command")),
            parent=_opt_int(n.get("parent")),
        )
        for n in rec.get("nodes", [])
    ]
    return BacktraceGraph(
        nodes=nodes,
        commands=list(rec.get("commands", [])),
        files=list(rec.get("files", [])),
    )


def parse_target(rec: dict, origin: str = "<target>") -> Target:
    """Convert one codemodel-v2 target JSON object into a Target.

    Raises ReplyError if a required key is absent. Malformed nested records
    surface as KeyError/TypeError/ValueError, which the file loaders wrap.
    """
    missing = [k for k in ("id", "name", "type") if k not in rec]
    if missing:
        raise ReplyError(f"{origin}: target is missing {', '.join(missing)}")
    if rec["type"] not in TARGET_TYPES:
        logger.warning("%s: unknown target type %r", origin, rec["type"])

    link = None
    if rec.get("link") is not None:
        frags = [
            CommandFragment(
                fragment=f.get("fragment", ""),
                role=f.get("role", "flags"),
                backtrace=_opt_int(f.get("backtrace")),
            )
            for f in rec["link"].get("commandFragments", [])
        ]
        link = Link(language=rec["link"].get("language", ""), command_fragments=frags)

    graph = None
    if rec.get("backtraceGraph") is not None:
        graph = parse_backtrace_graph(rec["backtraceGraph"])

    folder = rec.get("folder") or {}
    deps = [
        Dependency(id=d["id"], backtrace=_opt_int(d.get("backtrace")))
        for d in rec.get("dependencies", [])
    ]

    return Target(
        id=rec["id"],
        name=rec["name"],
        type=rec["type"],
        artifacts=[a["path"] for a in rec.get("artifacts", []) if "path" in a],
        dependencies=deps,
        link=link,
        backtrace_graph=graph,
        name_on_disk=rec.get("nameOnDisk"),
        folder=folder.get("name"),
    )


def _load_target_file(path: str) -> Target:
    rec = read_json(path)
    if not isinstance(rec, dict):
        raise ReplyError(f"{path}: expected a JSON object")
    try:
        return parse_target(rec, origin=path)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise ReplyError(f"{path}: malformed target: {exc}") from exc


def load_cache(reply_dir: str, json_file: str) -> List[CacheEntry]:
    """Load cache-v2 entries."""
    path = os.path.join(reply_dir, json_file)
    rec = read_json(path)
    out: List[CacheEntry] = []
    try:
        for e in rec.get("entries") or []:
            props: Dict[str, str] = {}
            for p in e.get("properties", []):
                props[p["name"]] = p.get("value", "")
            out.append(
                CacheEntry(
                    name=e["name"],
                    value=e.get("value", ""),
                    type=e.get("type", "UNINITIALIZED"),
                    properties=props,
                )
            )
    except (AttributeError, KeyError, TypeError) as exc:
        raise ReplyError(f"{path}: malformed cache entry: {exc}") from exc
    return out


def _codemodel_json_files(codemodel: dict, origin: str) -> List[str]:
    """Target jsonFiles across all configurations, first occurrence kept."""
    seen = set()
    json_files: List[str] = []
    try:
        for config in codemodel.get("configurations") or []:
            for tref in config.get("targets") or []:
                jf = tref.get("jsonFile")
                if not jf or jf in seen:
                    continue
                if not isinstance(jf, str):
                    raise TypeError(f"jsonFile must be a string, got {jf!r}")
                seen.add(jf)
                json_files.append(jf)
    except (AttributeError, TypeError) as exc:
        raise ReplyError(f"{origin}: malformed configuration: {exc}") from exc
    return json_files


def _json_file_of(ref: Optional[dict]) -> Optional[str]:
    if ref is None:
        return None
    jf = ref.get("jsonFile")
    return jf if isinstance(jf, str) and jf else None


def load_reply(build_dir: str) -> Reply:
    """Load codemodel targets (and the cache, when present) from a build dir.

    Targets that recur across configurations (Debug/Release/...) share the
    same jsonFile; only the first occurrence is kept.
    """
    _, reply_dir = api_dirs(build_dir)
    index = read_index(reply_dir)

    codemodel_file = _json_file_of(_find_object(index, "codemodel"))
    if codemodel_file is None:
        raise ReplyError("CMake API object 'codemodel' not found in index.")
    codemodel = read_json(os.path.join(reply_dir, codemodel_file))
    if not isinstance(codemodel, dict):
        raise ReplyError(f"{codemodel_file}: expected a JSON object")

    json_files = _codemodel_json_files(codemodel, codemodel_file)
    targets = [_load_target_file(os.path.join(reply_dir, jf)) for jf in json_files]

    cache: List[CacheEntry] = []
    cache_ref = _find_object(index, "cache")
    if cache_ref is not None:
        cache_file = _json_file_of(cache_ref)
        if cache_file is None:
            raise ReplyError("CMake API object 'cache' has no jsonFile.")
        cache = load_cache(reply_dir, cache_file)

    paths = codemodel.get("paths") or {}
    if not isinstance(paths, dict):
        raise ReplyError(f"{codemodel_file}: 'paths' must be an object")
    logger.debug("loaded %d targets from %s", len(targets), reply_dir)
    return Reply(
        source_dir=paths.get("source", ""),
        build_dir=paths.get("build", build_dir),
        targets=targets,
        cache=cache,
    )


def load_targets_file(path: str) -> List[Target]:
    """Load a standalone snapshot: a list of target objects or {"targets": [...]}."""
    rec = read_json(path)
    if isinstance(rec, dict):
        rec = rec.get("targets")
    if not isinstance(rec, list):
        raise ReplyError(f"{path}: expected a list of targets")
    out: List[Target] = []
    for i, t in enumerate(rec):
        origin = f"{path}[{i}]"
        if not isinstance(t, dict):
            raise ReplyError(f"{origin}: expected a JSON object")
        try:
            out.append(parse_target(t, origin=origin))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ReplyError(f"{origin}: malformed target: {exc}") from exc
    return out
