"""Cycle detection over a directed adjacency mapping."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence


def _canonical(cycle: list[str]) -> tuple[str, ...]:
    return tuple(sorted(set(cycle)))


def find_cycles(adjacency: Mapping[str, Sequence[str]]) -> list[list[str]]:
    """Return every distinct cycle reachable by depth-first search.

    Each cycle is the DFS stack slice from the revisited node to the current
    node, closed by repeating the revisited node (``["a", "b", "a"]``). A
    self-loop yields ``["a", "a"]``. Cycles sharing the same set of ids are
    reported once, keeping the first one discovered. Targets missing from
    *adjacency* are treated as leaves.
    """
    cycles: list[list[str]] = []
    seen_forms: set[tuple[str, ...]] = set()
    visited: set[str] = set()

    for start in adjacency:
        if start in visited:
            continue
        visited.add(start)
        path: list[str] = [start]
        on_path: set[str] = {start}
        frames: list[Iterator[str]] = [iter(adjacency.get(start, ()))]

        while frames:
            neighbor = next(frames[-1], None)
            if neighbor is None:
                frames.pop()
                on_path.discard(path.pop())
                continue
            if neighbor in on_path:
                cycle = path[path.index(neighbor) :] + [neighbor]
                form = _canonical(cycle)
                if form not in seen_forms:
                    seen_forms.add(form)
                    cycles.append(cycle)
                continue
            if neighbor in visited:
                continue
            visited.add(neighbor)
            path.append(neighbor)
            on_path.add(neighbor)
            frames.append(iter(adjacency.get(neighbor, ())))

    return cycles


def cycle_containing(adjacency: Mapping[str, Sequence[str]], node_id: str) -> list[str] | None:
    """First detected cycle that includes *node_id*, or None."""
    for cycle in find_cycles(adjacency):
        if node_id in cycle:
            return cycle
    return None
