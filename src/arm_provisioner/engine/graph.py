"""Dependency graph utilities."""

from __future__ import annotations

import heapq
from typing import TYPE_CHECKING

from arm_provisioner.engine.errors import DependencyCycleError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class DependencyGraph:
    """A directed graph where nodes depend on other nodes.

    Edges to nodes outside the graph are dropped. Ties between ready nodes are
    broken by priority (lower first), then by name, so orders are reproducible.
    """

    def __init__(
        self,
        nodes: Iterable[str],
        dependencies: Mapping[str, Iterable[str]],
        priorities: Mapping[str, int] | None = None,
    ) -> None:
        self._nodes = set(nodes)
        self._priorities = dict(priorities or {})
        self._deps: dict[str, set[str]] = {
            node: {d for d in dependencies.get(node, ()) if d in self._nodes and d != node}
            for node in self._nodes
        }

    def _key(self, node: str) -> tuple[int, str]:
        return self._priorities.get(node, 0), node

    def topological_order(self) -> list[str]:
        """Dependencies first."""
        pending = {node: len(deps) for node, deps in self._deps.items()}
        dependents: dict[str, list[str]] = {n: [] for n in self._nodes}
        for node, deps in self._deps.items():
            for dep in deps:
                dependents[dep].append(node)

        ready = [self._key(n) for n, count in pending.items() if count == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for child in dependents[node]:
                pending[child] -= 1
                if pending[child] == 0:
                    heapq.heappush(ready, self._key(child))

        if len(order) != len(self._nodes):
            raise DependencyCycleError(sorted(self._nodes - set(order)))
        return order

    def reverse_topological_order(self) -> list[str]:
        """Dependents first (the order to tear things down in)."""
        return self.topological_order()[::-1]
