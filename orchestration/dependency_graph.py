import heapq
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Sequence

from aws_lambda_powertools import Logger

import common.constants as constants
from orchestration.errors import (
    CycleError,
    DuplicateNameError,
    OrchestrationError,
    ProvisioningError,
    UnknownGroupError,
    UnsatisfiedDependencyError,
)
from orchestration.resource_group import ResourceGroup

logger = Logger(service=constants.LOG_SERVICE, child=True)

ConstructStep = Callable[[ResourceGroup], Mapping[str, Any]]


class DependencyGraph:
    """Resource groups plus the "depends on" edges between them.

    Edges run from a child to each parent it depends on. Cycles are rejected
    when the closing edge is added, so a graph instance is acyclic at all
    times.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, ResourceGroup] = {}
        self._parents: dict[str, list[str]] = {}
        self._children: dict[str, list[str]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ResourceGroup]:
        return iter(self._nodes.values())

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._nodes)

    def get(self, name: str) -> ResourceGroup:
        try:
            return self._nodes[name]
        except KeyError:
            raise UnknownGroupError([name]) from None

    def add(self, group: ResourceGroup) -> ResourceGroup:
        if group.name in self._nodes:
            raise DuplicateNameError(group.name)
        unknown = [parent for parent in group.depends_on if parent not in self._nodes]
        if unknown:
            raise UnknownGroupError(unknown)

        self._nodes[group.name] = group
        self._parents[group.name] = []
        self._children[group.name] = []
        # A new node has no dependents yet, so its own edges cannot close a loop.
        for parent in dict.fromkeys(group.depends_on):
            self._link(group.name, parent)
        return group

    def add_dependency(self, child: str, parent: str) -> None:
        unknown = [name for name in (child, parent) if name not in self._nodes]
        if unknown:
            raise UnknownGroupError(unknown)
        if parent in self._parents[child]:
            return

        path = self._dependency_path(parent, child)
        if path is not None:
            loop = (child, *path)
            raise CycleError(
                f"Dependency {child!r} -> {parent!r} closes the loop "
                f"{' -> '.join(loop)}",
                edge=(child, parent),
                path=loop,
            )
        self._link(child, parent)

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        self.get(name)
        return tuple(self._parents[name])

    def dependents_of(self, name: str) -> tuple[str, ...]:
        self.get(name)
        return tuple(self._children[name])

    def transitive_dependents(self, name: str) -> tuple[str, ...]:
        """Every group that depends on ``name``, directly or not, in declaration order."""
        self.get(name)
        return self._reachable(name, self._children)

    def transitive_dependencies(self, name: str) -> tuple[str, ...]:
        self.get(name)
        return self._reachable(name, self._parents)

    def _reachable(self, name: str, edges: dict[str, list[str]]) -> tuple[str, ...]:
        seen: set[str] = set()
        stack = list(edges[name])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(edges[current])
        return tuple(n for n in self._nodes if n in seen)

    def topological_order(self, subset: Optional[Iterable[str]] = None) -> list[str]:
        """Order ``subset`` (default: every group) so dependencies come first.

        Among groups that are ready at the same time the one declared first
        wins, which keeps the order deterministic.
        """
        names = list(self._nodes) if subset is None else list(dict.fromkeys(subset))
        unknown = [name for name in names if name not in self._nodes]
        if unknown:
            raise UnknownGroupError(unknown)

        members = set(names)
        for name in names:
            for parent in self._parents[name]:
                if parent not in members:
                    raise UnsatisfiedDependencyError(name, parent)

        position = {name: index for index, name in enumerate(self._nodes)}
        pending = {name: len(self._parents[name]) for name in names}
        ready = [(position[name], name) for name in names if pending[name] == 0]
        heapq.heapify(ready)

        order: list[str] = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(name)
            for child in self._children[name]:
                if child not in pending:
                    continue
                pending[child] -= 1
                if pending[child] == 0:
                    heapq.heappush(ready, (position[child], child))

        if len(order) != len(names):
            stuck = [name for name in names if name not in set(order)]
            raise CycleError(
                f"Resource groups {', '.join(stuck)} cannot be ordered", path=stuck
            )
        return order

    def build(self, ordered_names: Sequence[str], construct: ConstructStep) -> None:
        """Run ``construct`` for each group in order and record its outputs.

        The first failure ends the build. Whatever its type, the error names
        the failing group and every group that was never attempted. Failures
        outside the orchestration error hierarchy become ``ProvisioningError``.
        """
        ordered_names = list(ordered_names)
        for index, name in enumerate(ordered_names):
            group = self.get(name)
            not_attempted = ordered_names[index + 1:]
            logger.debug("Building resource group", group=name, kind=group.kind)
            try:
                outputs = construct(group)
            except OrchestrationError as exc:
                raise exc.during_build(name, not_attempted)
            except Exception as exc:
                raise ProvisioningError(
                    f"Provisioning resource group {name!r} failed: {exc}",
                    group=name,
                    not_attempted=not_attempted,
                ) from exc
            group.complete(outputs)

    def _link(self, child: str, parent: str) -> None:
        self._parents[child].append(parent)
        self._children[parent].append(child)
        group = self._nodes[child]
        if parent not in group.depends_on:
            group.depends_on = (*group.depends_on, parent)

    def _dependency_path(self, start: str, goal: str) -> Optional[list[str]]:
        """Return the chain ``start -> ... -> goal`` along dependencies, if any."""
        if start == goal:
            return [start]
        came_from: dict[str, str] = {}
        stack = [start]
        seen = {start}
        while stack:
            current = stack.pop()
            for parent in self._parents[current]:
                if parent in seen:
                    continue
                came_from[parent] = current
                if parent == goal:
                    path = [goal]
                    while path[-1] != start:
                        path.append(came_from[path[-1]])
                    return list(reversed(path))
                seen.add(parent)
                stack.append(parent)
        return None
