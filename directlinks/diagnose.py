from __future__ import annotations

"""Diagnostics for direct-link classification results."""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Set

from .artifacts import ArtifactIndex, basename, build_artifact_index
from .backtrace import build_signature_index, normalize_path
from .classifier import LINK_COMMAND, UNMATCHED, FragmentVerdict, iter_verdicts
from .models import Target

# Targets that never take part in linking on their own.
NON_LINKING_TYPES = ("UTILITY", "INTERFACE_LIBRARY")


@dataclass(frozen=True)
class Suspect:
    """A target that depends on project targets but got no direct links."""
    id: str
    name: str
    type: str
    project_deps: int
    has_link_command: bool
    library_fragments: int
    library_fragments_with_backtrace: int


@dataclass(frozen=True)
class LinkSummary:
    """Counts over one classified snapshot."""
    total: int
    no_link_section: int
    no_fragments: int
    no_link_command: int
    with_direct_links: int
    without_direct_links: int
    unmatched: List[str]


def explain_target(
    target: Target,
    signature_index: Dict[str, Set[str]],
    artifact_index: ArtifactIndex,
    link_command: str = LINK_COMMAND,
) -> List[FragmentVerdict]:
    """Return one verdict per 'libraries' fragment of target."""
    return list(iter_verdicts(target, signature_index, artifact_index, link_command))


def _has_link_command(target: Target, link_command: str) -> bool:
    graph = target.backtrace_graph
    return graph is not None and bool(graph.command_indices(link_command))


def find_suspects(
    targets: Sequence[Target],
    link_command: str = LINK_COMMAND,
) -> List[Suspect]:
    """Targets with project dependencies but zero direct links.

    Run after classifier.compute_direct_links. UTILITY and INTERFACE_LIBRARY
    targets are ignored on both sides.
    """
    by_id = {t.id: t for t in targets}
    out: List[Suspect] = []
    for t in targets:
        if t.type in NON_LINKING_TYPES or t.direct_links:
            continue
        project_deps = [
            by_id[d.id]
            for d in t.dependencies
            if d.id in by_id and by_id[d.id].type not in NON_LINKING_TYPES
        ]
        if not project_deps:
            continue
        frags = t.library_fragments()
        out.append(
            Suspect(
                id=t.id,
                name=t.name,
                type=t.type,
                project_deps=len(project_deps),
                has_link_command=_has_link_command(t, link_command),
                library_fragments=len(frags),
                library_fragments_with_backtrace=sum(
                    1 for f in frags if f.backtrace is not None
                ),
            )
        )
    return out


def summarize(targets: Sequence[Target], link_command: str = LINK_COMMAND) -> LinkSummary:
    """Count targets by link status and collect unmatched fragment basenames.

    Unmatched basenames are the library fragments declared through the link
    command that map to no project target (system or external libraries),
    deduplicated in first-seen order.
    """
    signature_index = build_signature_index(targets)
    artifact_index = build_artifact_index(targets)
    no_link = 0
    no_frags = 0
    no_cmd = 0
    with_links = 0
    without_links = 0
    unmatched: List[str] = []
    for t in targets:
        if t.link is None:
            no_link += 1
        elif not t.link.command_fragments:
            no_frags += 1
        elif not _has_link_command(t, link_command):
            no_cmd += 1
        if t.direct_links:
            with_links += 1
        else:
            without_links += 1
        for v in iter_verdicts(t, signature_index, artifact_index, link_command):
            if v.verdict != UNMATCHED:
                continue
            base = basename(normalize_path(v.fragment))
            if base not in unmatched:
                unmatched.append(base)
    return LinkSummary(
        total=len(targets),
        no_link_section=no_link,
        no_fragments=no_frags,
        no_link_command=no_cmd,
        with_direct_links=with_links,
        without_direct_links=without_links,
        unmatched=unmatched,
    )
