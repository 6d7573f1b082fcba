from __future__ import annotations

"""Backtrace chain signatures.

A chain signature identifies a whole call stack in a target's backtrace
graph: "file:line" for every ancestor that carries a line, from the queried
node up to its root, joined by "|". Two fragments share a signature only if
they were produced by the same declaration reached through the same calls.
"""

from typing import Dict, Iterable, List, Optional, Set

from .models import BacktraceGraph, Target

SIGNATURE_SEP = "|"


def normalize_path(path: str) -> str:
    """Make Windows and POSIX separators comparable."""
    return path.replace("\\", "/")


def resolve_chain_signature(graph: BacktraceGraph, node_index: int) -> Optional[str]:
    """Walk node -> parent from node_index and build the chain signature.

    Out-of-range indices end the walk. Returns None if no visited node had
    both a file and a line.
    """
    parts: List[str] = []
    idx: Optional[int] = node_index
    # nodes never cycle, but a corrupt graph must not hang the pass
    budget = len(graph.nodes)
    while idx is not None and budget >= 0:
        node = graph.node(idx)
        if node is None:
            break
        path = graph.file_at(node.file)
        if path and node.line is not None:
            parts.append(f"{normalize_path(path)}:{node.line}")
        idx = node.parent
        budget -= 1
    return SIGNATURE_SEP.join(parts) if parts else None


def link_signatures(target: Target) -> Set[str]:
    """Chain signatures of a target's own 'libraries' link fragments."""
    sigs: Set[str] = set()
    graph = target.backtrace_graph
    if target.link is None or graph is None:
        return sigs
    for frag in target.library_fragments():
        if frag.backtrace is None:
            continue
        sig = resolve_chain_signature(graph, frag.backtrace)
        if sig is not None:
            sigs.add(sig)
    return sigs


def build_signature_index(targets: Iterable[Target]) -> Dict[str, Set[str]]:
    """Return mapping target id -> link signatures, computed once per target."""
    return {t.id: link_signatures(t) for t in targets}
