from typing import Optional

from attrs import define, field

from orchestration.dependency_graph import DependencyGraph
from orchestration.environment import RunEnvironment
from orchestration.errors import UnsatisfiedDependencyError

MISSING_PRECONDITION = "missing precondition"
EXCLUDED_DEPENDENCY = "depends on excluded group"


@define(slots=True, frozen=True)
class Exclusion:
    group: str
    reason: str
    cause: str
    precondition: Optional[str] = None

    def as_warning(self) -> dict[str, str]:
        return {"group": self.group, "reason": self.reason}


@define(slots=True, frozen=True)
class InclusionResult:
    included: tuple[str, ...] = field(converter=tuple)
    excluded: tuple[Exclusion, ...] = field(converter=tuple)

    @property
    def excluded_names(self) -> tuple[str, ...]:
        return tuple(exclusion.group for exclusion in self.excluded)


def evaluate(graph: DependencyGraph, environment: RunEnvironment) -> InclusionResult:
    """Decide which groups take part in this run.

    An optional group whose precondition is not satisfied is dropped, along
    with everything that depends on it. Groups marked ``required`` are never
    dropped this way: reaching one is a configuration error. Group state is
    only read, never written.
    """
    satisfied = environment.satisfied_preconditions
    exclusions: dict[str, Exclusion] = {}

    for group in graph:
        if not group.optional or group.precondition in satisfied:
            continue
        if group.name in exclusions:
            continue
        exclusions[group.name] = Exclusion(
            group=group.name,
            reason=MISSING_PRECONDITION,
            cause=group.name,
            precondition=group.precondition,
        )
        for dependent in graph.transitive_dependents(group.name):
            if graph.get(dependent).required:
                raise UnsatisfiedDependencyError(dependent, group.name)
            exclusions.setdefault(
                dependent,
                Exclusion(group=dependent, reason=EXCLUDED_DEPENDENCY, cause=group.name),
            )

    included = [name for name in graph.names if name not in exclusions]
    _check_closure(graph, included)
    excluded = [exclusions[name] for name in graph.names if name in exclusions]
    return InclusionResult(included=included, excluded=excluded)


def _check_closure(graph: DependencyGraph, included: list[str]) -> None:
    members = set(included)
    for name in included:
        for parent in graph.dependencies_of(name):
            if parent not in members:
                raise UnsatisfiedDependencyError(name, parent)
