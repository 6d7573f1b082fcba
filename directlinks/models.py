from __future__ import annotations

"""Dataclasses for CMake file-API codemodel targets.

These models mirror the shapes of the codemodel-v2 target objects written by
CMake under .cmake/api/v1/reply. Only the fields used by the direct-link
analysis (plus a few informational ones) are kept.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

TARGET_TYPES = (
    "EXECUTABLE",
    "STATIC_LIBRARY",
    "SHARED_LIBRARY",
    "MODULE_LIBRARY",
    "OBJECT_LIBRARY",
    "INTERFACE_LIBRARY",
    "UTILITY",
)


@dataclass(frozen=True)
class BacktraceNode:
    """One node of a backtrace graph (a command invocation or a file)."""
    file: int
    line: Optional[int] = None
    command: Optional[int] = None
    parent: Optional[int] = None


@dataclass(frozen=True)
class BacktraceGraph:
    """Per-target provenance forest.

    Nodes reference files/commands/parents by index; a node without a parent
    is the root of its chain.
    """
    nodes: Sequence[BacktraceNode]
    commands: Sequence[str]
    files: Sequence[str]

    def node(self, index: Optional[int]) -> Optional[BacktraceNode]:
        """Return the node at index, or None when out of range."""
        if index is None or index < 0 or index >= len(self.nodes):
            return None
        return self.nodes[index]

    def file_at(self, index: int) -> Optional[str]:
        if index < 0 or index >= len(self.files):
            return None
        return self.files[index]

    def command_indices(self, token: str) -> Set[int]:
        """Indices of commands whose name contains token."""
        return {i for i, name in enumerate(self.commands) if token in name}


@dataclass(frozen=True)
class CommandFragment:
    """Linker command line fragment."""
    fragment: str
    role: str
    backtrace: Optional[int] = None


@dataclass(frozen=True)
class Link:
    """Link step of a target (absent for archives and non-linkable targets)."""
    language: str
    command_fragments: Sequence[CommandFragment]


@dataclass(frozen=True)
class Dependency:
    """Flattened (transitive) dependency on another target."""
    id: str
    backtrace: Optional[int] = None


@dataclass
class Target:
    """Codemodel target record.

    direct_links is the only mutable field; it is filled by
    classifier.compute_direct_links.
    """
    id: str
    name: str
    type: str
    artifacts: List[str] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    link: Optional[Link] = None
    backtrace_graph: Optional[BacktraceGraph] = None
    name_on_disk: Optional[str] = None
    folder: Optional[str] = None
    direct_links: List[str] = field(default_factory=list)

    def library_fragments(self) -> List[CommandFragment]:
        """Link fragments with the 'libraries' role."""
        if self.link is None:
            return []
        return [f for f in self.link.command_fragments if f.role == "libraries"]


@dataclass(frozen=True)
class CacheEntry:
    """CMakeCache.txt entry from the cache-v2 reply."""
    name: str
    value: str
    type: str
    properties: Dict[str, str]


@dataclass(frozen=True)
class Reply:
    """Everything loaded from one file-API reply."""
    source_dir: str
    build_dir: str
    targets: List[Target]
    cache: List[CacheEntry] = field(default_factory=list)

    def by_id(self) -> Dict[str, Target]:
        return {t.id: t for t in self.targets}

    def cache_value(self, name: str) -> Optional[str]:
        """Return the value of a cache entry, or None if absent."""
        for entry in self.cache:
            if entry.name == name:
                return entry.value
        return None
