"""Conversion of span and resource attributes into Cloud Trace attribute maps."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

MAX_ATTRIBUTES_PER_SPAN = 32
MAX_ATTRIBUTE_KEY_BYTES = 128

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1

HTTP_PATH = "http.path"
GCP_HTTP_PATH = "/http/path"

# Conventional OpenTelemetry attribute keys and their Cloud Trace counterparts.
KEY_MAP: dict[str, str] = {
    HTTP_PATH: GCP_HTTP_PATH,
    "http.host": "/http/host",
    "http.request.header.host": "/http/host",
    "http.method": "/http/method",
    "http.request.method": "/http/method",
    "http.target": "/http/path",
    "url.path": "/http/path",
    "http.url": "/http/url",
    "url.full": "/http/url",
    "http.user_agent": "/http/user_agent",
    "user_agent.original": "/http/user_agent",
    "http.status_code": "/http/status_code",
    "http.response.status_code": "/http/status_code",
    "k8s.cluster.name": "g.co/r/k8s_container/cluster_name",
    "k8s.namespace.name": "g.co/r/k8s_container/namespace",
    "k8s.pod.name": "g.co/r/k8s_container/pod_name",
    "k8s.container.name": "g.co/r/k8s_container/container_name",
    "http.route": "/http/route",
}


@dataclass(frozen=True)
class TruncatableString:
    """A string value together with the number of bytes cut from it."""

    value: str = ""
    truncated_byte_count: int = 0


AttributeScalar = Union[bool, int, TruncatableString]


@dataclass(frozen=True)
class AttributeValue:
    """A single attribute value: a bool, a 64-bit int or a truncatable string."""

    value: AttributeScalar


def _format_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"
    text = format(Decimal(repr(number)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_element(item: Any) -> str:
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, float):
        return _format_float(item)
    if isinstance(item, str):
        return f'"{item}"'
    return str(item)


def _format_array(items: Iterable[Any]) -> str:
    return "[" + ",".join(_format_element(item) for item in items) + "]"


def to_attribute_value(value: Any) -> AttributeValue:
    """Convert a plain attribute value into a Cloud Trace attribute value.

    Booleans and 64-bit integers are kept as they are; floats, strings and
    sequences become strings; anything else becomes an empty string.
    """
    if isinstance(value, AttributeValue):
        return value
    if isinstance(value, bool):
        return AttributeValue(value)
    if isinstance(value, int):
        if not _I64_MIN <= value <= _I64_MAX:
            raise ValueError(f"integer attribute {value} does not fit in 64 bits")
        return AttributeValue(value)
    if isinstance(value, float):
        return AttributeValue(TruncatableString(_format_float(value)))
    if isinstance(value, str):
        return AttributeValue(TruncatableString(value))
    if isinstance(value, (list, tuple)):
        return AttributeValue(TruncatableString(_format_array(value)))
    return AttributeValue(TruncatableString(""))


@dataclass
class Attributes:
    """A bounded map of span attributes with a count of those left out."""

    attribute_map: dict[str, AttributeValue] = field(default_factory=dict)
    dropped_attributes_count: int = 0

    def push(self, key: str, value: Any) -> None:
        """Add one attribute, mapping well-known keys and dropping what does not fit."""
        if len(self.attribute_map) >= MAX_ATTRIBUTES_PER_SPAN:
            self.dropped_attributes_count += 1
            return
        if len(key.encode("utf-8")) > MAX_ATTRIBUTE_KEY_BYTES:
            self.dropped_attributes_count += 1
            return
        self.attribute_map[KEY_MAP.get(key, key)] = to_attribute_value(value)


def _pairs(source: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> Iterable[tuple[str, Any]]:
    if isinstance(source, Mapping):
        return source.items()
    return source


def build_attributes(
    attributes: Mapping[str, Any] | Iterable[tuple[str, Any]],
    resource: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
) -> Attributes:
    """Combine resource and span attributes into at most 32 entries.

    Resource attributes are added first and so take precedence when the
    limit is reached.
    """
    result = Attributes()
    if resource is not None:
        for key, value in _pairs(resource):
            result.push(key, value)
    for key, value in _pairs(attributes):
        result.push(key, value)
    return result