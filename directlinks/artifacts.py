from __future__ import annotations

"""Artifact path index for mapping linker tokens back to targets."""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .backtrace import normalize_path
from .models import Target


def basename(path: str) -> str:
    i = path.rfind("/")
    return path[i + 1 :] if i >= 0 else path


@dataclass(frozen=True)
class ArtifactIndex:
    """Index of normalized artifact path -> owning target id."""
    by_path: Dict[str, str]

    def resolve(self, fragment: str, exclude: Optional[str] = None) -> Optional[str]:
        """Return the id of the target producing fragment, or None.

        Match order, first hit wins: exact path, suffix in either direction,
        then basename. A hit on a target's own artifact (exclude) yields None
        rather than falling through to a weaker match on another target.
        """
        tid = self._match(normalize_path(fragment))
        if tid is None or tid == exclude:
            return None
        return tid

    def _match(self, frag: str) -> Optional[str]:
        if not frag:
            return None
        tid = self.by_path.get(frag)
        if tid is not None:
            return tid
        for path, tid in self.by_path.items():
            if path.endswith("/" + frag) or frag.endswith("/" + path):
                return tid
        frag_base = basename(frag)
        for path, tid in self.by_path.items():
            if basename(path) == frag_base:
                return tid
        return None


def build_artifact_index(targets: Iterable[Target]) -> ArtifactIndex:
    """Build the artifact index once per pass. First owner of a path wins."""
    by_path: Dict[str, str] = {}
    for t in targets:
        for art in t.artifacts:
            by_path.setdefault(normalize_path(art), t.id)
    return ArtifactIndex(by_path=by_path)


def resolve_fragment_to_target_id(
    fragment: str,
    index: ArtifactIndex,
    exclude: Optional[str] = None,
) -> Optional[str]:
    """Functional wrapper around ArtifactIndex.resolve."""
    return index.resolve(fragment, exclude=exclude)
