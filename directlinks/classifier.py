from __future__ import annotations

"""Direct vs. transitive classification of target link dependencies.

CMake only reports the flattened dependency set of a target. Each library
fragment on the link line carries a backtrace, though, and a fragment that was
propagated from a dependency carries the dependency's backtrace chain. So a
fragment is transitive when one of the target's dependencies has a library
fragment with the same full chain signature; everything else that was
declared through target_link_libraries (or a wrapper whose name contains it)
and maps to one of the target's dependencies is a direct link.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Set, Union

from .artifacts import ArtifactIndex, build_artifact_index
from .backtrace import build_signature_index, resolve_chain_signature
from .models import Reply, Target

logger = logging.getLogger(__name__)

LINK_COMMAND = "target_link_libraries"

DIRECT = "direct"
TRANSITIVE = "transitive"
DUPLICATE = "duplicate"
SELF = "self"
UNMATCHED = "unmatched"
NOT_DEPENDENCY = "not_dependency"
NOT_LINK_COMMAND = "not_link_command"
NO_BACKTRACE = "no_backtrace"


@dataclass(frozen=True)
class FragmentVerdict:
    """Classification of one 'libraries' fragment of a target."""
    fragment: str
    backtrace: Optional[int]
    verdict: str
    signature: Optional[str] = None
    target_id: Optional[str] = None


def dependency_signatures(
    target: Target,
    signature_index: Dict[str, Set[str]],
) -> Set[str]:
    """Union of the link signatures of every dependency of target."""
    out: Set[str] = set()
    for dep in target.dependencies:
        out |= signature_index.get(dep.id, set())
    return out


def iter_verdicts(
    target: Target,
    signature_index: Dict[str, Set[str]],
    artifact_index: ArtifactIndex,
    link_command: str = LINK_COMMAND,
) -> Iterator[FragmentVerdict]:
    """Yield a verdict for every 'libraries' fragment of target, in order."""
    frags = target.library_fragments()
    graph = target.backtrace_graph
    if not frags:
        return
    if graph is None:
        for frag in frags:
            yield FragmentVerdict(frag.fragment, frag.backtrace, NO_BACKTRACE)
        return

    link_cmds = graph.command_indices(link_command)
    dep_sigs = dependency_signatures(target, signature_index) if link_cmds else set()
    dep_ids = {d.id for d in target.dependencies}
    seen: Set[str] = set()

    for frag in frags:
        if frag.backtrace is None:
            yield FragmentVerdict(frag.fragment, None, NO_BACKTRACE)
            continue
        node = graph.node(frag.backtrace)
        if node is None or node.command is None or node.command not in link_cmds:
            yield FragmentVerdict(frag.fragment, frag.backtrace, NOT_LINK_COMMAND)
            continue

        sig = resolve_chain_signature(graph, frag.backtrace)
        # an unresolved signature is kept as a direct candidate
        if sig is not None and sig in dep_sigs:
            yield FragmentVerdict(frag.fragment, frag.backtrace, TRANSITIVE, sig)
            continue

        tid = artifact_index.resolve(frag.fragment)
        if tid is None:
            verdict = UNMATCHED
        elif tid == target.id:
            verdict = SELF
        elif tid not in dep_ids:
            verdict = NOT_DEPENDENCY
        elif tid in seen:
            verdict = DUPLICATE
        else:
            seen.add(tid)
            verdict = DIRECT
        yield FragmentVerdict(frag.fragment, frag.backtrace, verdict, sig, tid)


def classify(
    target: Target,
    signature_index: Dict[str, Set[str]],
    artifact_index: ArtifactIndex,
    link_command: str = LINK_COMMAND,
) -> List[str]:
    """Return the ids of target's direct link dependencies.

    Ordered by first occurrence on the link line, without duplicates, never
    containing target.id.
    """
    out: List[str] = []
    for v in iter_verdicts(target, signature_index, artifact_index, link_command):
        logger.debug("%s: %s %s (sig: %s)", target.name, v.verdict, v.fragment, v.signature)
        if v.verdict == DIRECT and v.target_id is not None:
            out.append(v.target_id)
    return out


def compute_direct_links(
    graph: Union[Reply, Sequence[Target]],
    link_command: str = LINK_COMMAND,
) -> Union[Reply, Sequence[Target]]:
    """Set direct_links on every target and return graph.

    Both indexes are built once, before the per-target loop, and are only
    read afterwards, so the result does not depend on target order.
    """
    targets = graph.targets if isinstance(graph, Reply) else graph
    signature_index = build_signature_index(targets)
    artifact_index = build_artifact_index(targets)

    results = {
        t.id: classify(t, signature_index, artifact_index, link_command)
        for t in targets
    }
    for t in targets:
        t.direct_links = results[t.id]

    logger.debug(
        "classified %d targets, %d direct links",
        len(targets),
        sum(len(v) for v in results.values()),
    )
    return graph
