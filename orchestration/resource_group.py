from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from attrs import define, field, validators
from attrs.validators import deep_iterable, instance_of, min_len

import common.constants as constants

DeriveHook = Callable[[Mapping[str, Any], Mapping[str, Any]], Mapping[str, Any]]


@define(slots=True, frozen=True)
class OutputRef:
    """Input value pointing at ``group.key`` of an upstream group."""

    group: str = field(validator=[instance_of(str), min_len(1)])
    key: str = field(validator=[instance_of(str), min_len(1)])

    @classmethod
    def parse(cls, reference: str) -> "OutputRef":
        group, sep, key = reference.partition(".")
        if not sep or not group or not key:
            raise ValueError(
                f"Output reference {reference!r} must look like 'GroupName.outputKey'"
            )
        return cls(group=group, key=key)

    def __str__(self) -> str:
        return f"{self.group}.{self.key}"


@define(slots=True, frozen=True)
class TemplateValue:
    """Input value rendered from a format template once its bindings resolve.

    Bindings may themselves be literals, ``OutputRef``s or ``SecretRef``s.
    """

    template: str = field(validator=instance_of(str))
    bindings: Mapping[str, Any] = field(factory=dict, converter=dict)


def _frozen(value: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value))


@define(slots=True)
class ResourceGroup:
    name: str = field(validator=[instance_of(str), min_len(1)])
    kind: str = field(validator=instance_of(str))
    inputs: Mapping[str, Any] = field(factory=dict, converter=_frozen)
    depends_on: tuple[str, ...] = field(
        default=(),
        converter=tuple,
        validator=deep_iterable(member_validator=instance_of(str)),
    )
    optional: bool = field(default=False, validator=instance_of(bool))
    precondition: Optional[str] = field(
        default=None, validator=validators.optional(instance_of(str))
    )
    required: bool = field(default=False, validator=instance_of(bool))
    derive: Optional[DeriveHook] = field(default=None, repr=False)
    description: str = field(default="", validator=instance_of(str))
    tags: dict[str, str] = field(factory=dict, init=False)
    _outputs: Optional[Mapping[str, Any]] = field(default=None, init=False, repr=False)

    def __attrs_post_init__(self) -> None:
        if self.kind not in constants.GROUP_KINDS:
            raise ValueError(
                f"Resource group {self.name!r} has unsupported kind {self.kind!r}"
            )
        if self.optional and not self.precondition:
            raise ValueError(
                f"Optional resource group {self.name!r} must name a precondition"
            )
        if self.optional and self.required:
            raise ValueError(
                f"Resource group {self.name!r} cannot be both optional and required"
            )

    @property
    def is_built(self) -> bool:
        return self._outputs is not None

    @property
    def outputs(self) -> Mapping[str, Any]:
        if self._outputs is None:
            return MappingProxyType({})
        return self._outputs

    def complete(self, outputs: Mapping[str, Any]) -> None:
        """Record the group's outputs. Outputs are written exactly once."""
        if self._outputs is not None:
            raise ValueError(f"Outputs of resource group {self.name!r} are already set")
        self._outputs = _frozen(outputs)
