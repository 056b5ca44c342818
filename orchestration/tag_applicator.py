from typing import Iterable, Mapping, Sequence, Union

import common.constants as constants
from orchestration.errors import TaggingError
from orchestration.resource_group import ResourceGroup

TagSet = Union[Mapping[str, str], Sequence[tuple[str, str]]]


def _pairs(tag_set: TagSet) -> list[tuple[str, str]]:
    items = tag_set.items() if isinstance(tag_set, Mapping) else tag_set
    return [(key, value) for key, value in items]


def validate_tag(key: str, value: str) -> None:
    if not isinstance(key, str) or not key:
        raise TaggingError(str(key), "tag keys must be non-empty strings")
    if not isinstance(value, str):
        raise TaggingError(key, "tag values must be strings")
    if len(key) > constants.MAX_TAG_KEY_LENGTH:
        raise TaggingError(key, f"longer than {constants.MAX_TAG_KEY_LENGTH} characters")
    if len(value) > constants.MAX_TAG_VALUE_LENGTH:
        raise TaggingError(
            key, f"value longer than {constants.MAX_TAG_VALUE_LENGTH} characters"
        )
    if key.lower().startswith(constants.RESERVED_TAG_PREFIX):
        raise TaggingError(key, f"the {constants.RESERVED_TAG_PREFIX!r} prefix is reserved")


def apply(groups: Iterable[ResourceGroup], tag_set: TagSet) -> None:
    """Attach ``tag_set`` to every group.

    Keys keep the position of their first insertion and the last value written
    for a key wins, so applying the same set again changes nothing.
    """
    pairs = _pairs(tag_set)
    for key, value in pairs:
        validate_tag(key, value)
    for group in groups:
        for key, value in pairs:
            group.tags[key] = value
