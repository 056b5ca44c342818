import re
from typing import Any, Mapping

from attrs import define, field
from attrs.validators import instance_of, matches_re

import common.constants as constants
from orchestration.dependency_graph import DependencyGraph
from orchestration.errors import MissingBindingError, UnresolvedReferenceError
from orchestration.resource_group import OutputRef, ResourceGroup, TemplateValue
from orchestration.secret_ref import SecretRef

_MARKER_BODY = (
    r"\{\{resolve:secretsmanager:(?P<locator>[^{}]+?)"
    r"(?::SecretString:(?P<json_key>[^:{}]+))?\}\}"
)
_MARKER_PATTERN = re.compile(_MARKER_BODY)
_CONNECTION_PATTERN = re.compile(
    r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://"
    r"(?:(?P<userinfo>.*)@)?"
    r"(?P<host>[^@:/]+):(?P<port>[^@:/]+)/(?P<name>[^/?#]+)$"
)
CONNECTION_PARTS = ("host", "port", "name", "credential")
# Host, port and name must survive a round trip through the URL form.
_URL_COMPONENT = r"[^@:/?#\s]+"


# ---------- deferred secret markers ----------
def _deferred_marker(ref: SecretRef) -> str:
    if ref.json_key:
        return constants.DEFERRED_MARKER_WITH_KEY.format(
            locator=ref.locator, json_key=ref.json_key
        )
    return constants.DEFERRED_MARKER.format(locator=ref.locator)


def parse_deferred_marker(text: str) -> SecretRef:
    """Turn a rendered marker back into the reference it was made from."""
    match = _MARKER_PATTERN.fullmatch(text)
    if not match:
        raise ValueError(f"{text!r} is not a deferred secret marker")
    return SecretRef(locator=match["locator"], json_key=match["json_key"])


def extract_deferred_markers(text: str) -> list[SecretRef]:
    return [
        SecretRef(locator=match["locator"], json_key=match["json_key"])
        for match in _MARKER_PATTERN.finditer(text)
    ]


# ---------- templates ----------
_PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


def _as_text(value: Any) -> str:
    if isinstance(value, SecretRef):
        return _deferred_marker(value)
    return str(value)


def render_template(template: str, bindings: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders with their bindings.

    Substitution is literal: every other character, deferred markers
    included, is copied as written. A ``SecretRef`` binding is written as a
    deferred marker built from its locator; the secret value is never looked
    up.

    Examples:
        - "host={host}" with host="db.internal" -> "host=db.internal"
        - "{pw}" with pw=SecretRef("arn:...:db", "password")
          -> "{{resolve:secretsmanager:arn:...:db:SecretString:password}}"
    """

    def substitute(match: re.Match) -> str:
        name = match[1]
        if name not in bindings:
            raise MissingBindingError(name, template)
        return _as_text(bindings[name])

    return _PLACEHOLDER_PATTERN.sub(substitute, template)


# ---------- input resolution ----------
def resolve_inputs(group: ResourceGroup, graph: DependencyGraph) -> dict[str, Any]:
    """Replace every output reference in ``group.inputs`` with its value.

    Templates are rendered once their bindings resolve. Secret references are
    passed through untouched for the provider to hand on.
    """
    upstream = set(graph.transitive_dependencies(group.name))
    return {
        key: _resolve(value, group, graph, upstream)
        for key, value in group.inputs.items()
    }


def _resolve(value: Any, group: ResourceGroup, graph: DependencyGraph, upstream: set) -> Any:
    if isinstance(value, OutputRef):
        return _lookup(value, group, graph, upstream)
    if isinstance(value, TemplateValue):
        bindings = {
            key: _resolve(binding, group, graph, upstream)
            for key, binding in value.bindings.items()
        }
        return render_template(value.template, bindings)
    if isinstance(value, Mapping):
        return {key: _resolve(item, group, graph, upstream) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve(item, group, graph, upstream) for item in value]
    if isinstance(value, tuple):
        return tuple(_resolve(item, group, graph, upstream) for item in value)
    return value


def _lookup(ref: OutputRef, group: ResourceGroup, graph: DependencyGraph, upstream: set) -> Any:
    if ref.group not in graph:
        raise UnresolvedReferenceError(group.name, str(ref), "no such resource group")
    if ref.group not in upstream:
        raise UnresolvedReferenceError(
            group.name, str(ref), f"{ref.group!r} is not a declared dependency"
        )
    source = graph.get(ref.group)
    if not source.is_built:
        raise UnresolvedReferenceError(
            group.name, str(ref), f"{ref.group!r} has not been built yet"
        )
    if ref.key not in source.outputs:
        raise UnresolvedReferenceError(
            group.name, str(ref), f"{ref.group!r} has no output {ref.key!r}"
        )
    return source.outputs[ref.key]


# ---------- connection descriptors ----------
@define(slots=True, frozen=True)
class ConnectionDescriptor:
    host: str = field(validator=[instance_of(str), matches_re(_URL_COMPONENT)])
    port: str = field(converter=str, validator=matches_re(_URL_COMPONENT))
    name: str = field(validator=[instance_of(str), matches_re(_URL_COMPONENT)])
    credential: SecretRef = field(validator=instance_of(SecretRef))
    scheme: str = field(default=constants.CONNECTION_SCHEME)

    @property
    def url(self) -> str:
        """Single-string form; user and password stay deferred markers."""
        return render_template(
            constants.CONNECTION_TEMPLATE,
            {
                "scheme": self.scheme,
                "user": self.credential.with_key("username"),
                "password": self.credential.with_key("password"),
                "host": self.host,
                "port": self.port,
                "name": self.name,
            },
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "name": self.name,
            "credential": self.credential,
        }


def compose_connection_descriptor(parts: Mapping[str, Any]) -> ConnectionDescriptor:
    missing = [part for part in CONNECTION_PARTS if part not in parts]
    if missing:
        raise ValueError(f"Connection descriptor is missing {', '.join(missing)}")
    if not isinstance(parts["credential"], SecretRef):
        raise TypeError("Connection credentials must be given as a SecretRef")
    return ConnectionDescriptor(
        host=parts["host"],
        port=parts["port"],
        name=parts["name"],
        credential=parts["credential"],
        scheme=parts.get("scheme", constants.CONNECTION_SCHEME),
    )


def parse_connection_string(url: str) -> dict[str, str]:
    """Pull scheme, host, port and database name back out of a connection URL."""
    match = _CONNECTION_PATTERN.match(url)
    if not match:
        raise ValueError(f"{url!r} is not a connection string")
    return {
        "scheme": match["scheme"],
        "host": match["host"],
        "port": match["port"],
        "name": match["name"],
    }
