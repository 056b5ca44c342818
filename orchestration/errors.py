from typing import Iterable, Optional, Sequence

GRAPH_VALIDATION = "graph validation"
CONDITIONAL_EVALUATION = "conditional evaluation"
BUILD = "build"
TAGGING = "tagging"


class OrchestrationError(Exception):
    """Base class for every failure surfaced by a run.

    Failures raised while a group is being built also name that ``group`` and
    list, in build order, every group the run ``not_attempted`` as a result.
    """

    stage: str = BUILD
    group: Optional[str] = None
    not_attempted: tuple[str, ...] = ()

    def during_build(self, group: str, not_attempted: Sequence[str]) -> "OrchestrationError":
        self.group = group
        self.not_attempted = tuple(not_attempted)
        return self


class DuplicateNameError(OrchestrationError):
    stage = GRAPH_VALIDATION

    def __init__(self, name: str) -> None:
        super().__init__(f"Resource group {name!r} is already registered")
        self.name = name


class UnknownGroupError(OrchestrationError):
    stage = GRAPH_VALIDATION

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(names)
        super().__init__(
            f"Unknown resource group(s): {', '.join(repr(n) for n in self.names)}"
        )


class CycleError(OrchestrationError):
    """Raised when an edge would close a dependency loop.

    ``edge`` is the ``(child, parent)`` pair that closes the loop and ``path``
    the loop itself, starting and ending at ``child``.
    """

    stage = GRAPH_VALIDATION

    def __init__(
        self,
        message: str,
        edge: Optional[tuple[str, str]] = None,
        path: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.edge = edge
        self.path = tuple(path)


class UnsatisfiedDependencyError(OrchestrationError):
    stage = CONDITIONAL_EVALUATION

    def __init__(self, dependent: str, excluded: str) -> None:
        super().__init__(
            f"Resource group {dependent!r} depends on {excluded!r}, "
            "which is not part of this run"
        )
        self.dependent = dependent
        self.excluded = excluded


class UnresolvedReferenceError(OrchestrationError):
    """An input references an output that is not available yet.

    Only reachable when the build order was violated, so it marks a defect in
    the orchestration logic rather than bad user input.
    """

    def __init__(self, group: str, reference: str, detail: str) -> None:
        super().__init__(
            f"Resource group {group!r} cannot resolve {reference!r}: {detail}"
        )
        self.group = group
        self.reference = reference


class MissingBindingError(OrchestrationError):
    def __init__(self, placeholder: str, template: str) -> None:
        super().__init__(
            f"Template {template!r} has no binding for placeholder {placeholder!r}"
        )
        self.placeholder = placeholder
        self.template = template


class ProvisioningError(OrchestrationError):
    """The resource provider failed to build a group.

    ``not_attempted`` lists, in build order, every group the run never reached
    because of this failure.
    """

    def __init__(
        self,
        message: str,
        group: Optional[str] = None,
        not_attempted: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.group = group
        self.not_attempted = tuple(not_attempted)


class TaggingError(OrchestrationError):
    stage = TAGGING

    def __init__(self, key: str, detail: str) -> None:
        super().__init__(f"Invalid tag {key!r}: {detail}")
        self.key = key
