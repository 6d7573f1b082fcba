"""Shared target snapshots for the direct-link tests."""

import pytest

from directlinks.models import (
    BacktraceGraph,
    BacktraceNode,
    CommandFragment,
    Dependency,
    Link,
    Target,
)

CMAKELISTS = "/src/CMakeLists.txt"
HELPERS = "/src/cmake/helpers.cmake"


def make_target(tid, type="STATIC_LIBRARY", artifacts=(), deps=(), frags=(), graph=None):
    """Build a Target; frags are (text, backtrace) pairs with role 'libraries'."""
    link = None
    if frags:
        link = Link(
            language="CXX",
            command_fragments=[
                CommandFragment(fragment=text, role="libraries", backtrace=bt)
                for text, bt in frags
            ],
        )
    return Target(
        id=tid,
        name=tid,
        type=type,
        artifacts=list(artifacts),
        dependencies=[Dependency(id=d) for d in deps],
        link=link,
        backtrace_graph=graph,
    )


def tll_graph(*lines, file=CMAKELISTS, command="target_link_libraries"):
    """Flat graph with one root-level link declaration node per line."""
    return BacktraceGraph(
        nodes=[BacktraceNode(file=0, line=ln, command=0) for ln in lines],
        commands=[command],
        files=[file],
    )


@pytest.fixture
def e2e_targets():
    """b <- a <- e, where e also receives b through a."""
    b = make_target("b", artifacts=["/build/libB.a"])
    a = make_target(
        "a",
        artifacts=["/build/libA.a"],
        deps=["b"],
        frags=[("/build/libB.a", 0)],
        graph=tll_graph(5),
    )
    e = make_target(
        "e",
        type="EXECUTABLE",
        artifacts=["/build/e"],
        deps=["a", "b"],
        frags=[("/build/libA.a", 0), ("/build/libB.a", 1)],
        graph=tll_graph(12, 5),
    )
    return [b, a, e]


def helper_graph():
    """Two calls of a link_helper() function from CMakeLists.txt lines 10 and 20."""
    return BacktraceGraph(
        nodes=[
            BacktraceNode(file=0),
            BacktraceNode(file=0, line=10, command=0, parent=0),
            BacktraceNode(file=1, line=3, command=1, parent=1),
            BacktraceNode(file=0, line=20, command=0, parent=0),
            BacktraceNode(file=1, line=3, command=1, parent=3),
        ],
        commands=["link_helper", "target_link_libraries"],
        files=[CMAKELISTS, HELPERS],
    )


@pytest.fixture
def wrapper_targets():
    """app links core via the helper (line 10); core links util via it (line 20)."""
    util = make_target("util", artifacts=["/build/libutil.a"])
    core = make_target(
        "core",
        artifacts=["/build/libcore.a"],
        deps=["util"],
        frags=[("/build/libutil.a", 4)],
        graph=helper_graph(),
    )
    app = make_target(
        "app",
        type="EXECUTABLE",
        artifacts=["/build/app"],
        deps=["core", "util"],
        frags=[("/build/libcore.a", 2), ("/build/libutil.a", 4)],
        graph=helper_graph(),
    )
    return [util, core, app]
