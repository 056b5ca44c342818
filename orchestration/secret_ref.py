from typing import Optional

from attrs import define, field
from attrs.validators import instance_of, min_len, optional


@define(slots=True, frozen=True)
class SecretRef:
    """Pointer to a value held in the secret store.

    Only the locator (an ARN or secret name) is kept here. The secret itself is
    resolved by whichever runtime consumes the rendered marker, never by this
    process. Converting a reference to text raises, so it cannot be pasted into
    a string by accident; use ``render_template`` to embed it.
    """

    locator: str = field(validator=[instance_of(str), min_len(1)])
    json_key: Optional[str] = field(default=None, validator=optional(instance_of(str)))

    def with_key(self, json_key: str) -> "SecretRef":
        """Reference a single key of a JSON secret."""
        return SecretRef(locator=self.locator, json_key=json_key)

    def __str__(self) -> str:
        raise TypeError(
            "SecretRef cannot be converted to text; render it through render_template"
        )

    def __format__(self, format_spec: str) -> str:
        raise TypeError(
            "SecretRef cannot be formatted; render it through render_template"
        )
