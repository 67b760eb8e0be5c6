"""Propagation of span context in the X-Cloud-Trace-Context header format.

The header looks like ``TRACE_ID/SPAN_ID;o=FLAGS``: a 32 hex digit trace id,
a decimal span id and an optional decimal flags value (sampled when missing).
"""

from __future__ import annotations

import string
from collections.abc import Mapping, MutableMapping

from .context import Context, SpanContext, TRACE_FLAG_SAMPLED

CLOUD_TRACE_CONTEXT_HEADER = "X-Cloud-Trace-Context"

_DECIMAL_DIGITS = frozenset(string.digits)
_HEX_DIGITS = frozenset(string.hexdigits)


class InvalidTraceHeaderError(ValueError):
    """Raised when the trace context header is missing or malformed."""


def _parse_unsigned(text: str, digits: frozenset[str], base: int, bits: int) -> int:
    body = text[1:] if text.startswith("+") else text
    if not body or not all(ch in digits for ch in body):
        raise InvalidTraceHeaderError(f"not a base-{base} number: {text!r}")
    value = int(body, base)
    if value >= 1 << bits:
        raise InvalidTraceHeaderError(f"number out of range: {text!r}")
    return value


def _lookup(carrier: Mapping[str, str], key: str) -> str | None:
    for candidate in (key, key.lower()):
        if candidate in carrier:
            return carrier[candidate]
    wanted = key.lower()
    for name, value in carrier.items():
        if name.lower() == wanted:
            return value
    return None


class GoogleTraceContextPropagator:
    """Reads and writes span context using the X-Cloud-Trace-Context header."""

    def extract_span_context(self, carrier: Mapping[str, str]) -> SpanContext:
        """Parse the header from ``carrier`` into a remote span context."""
        raw = _lookup(carrier, CLOUD_TRACE_CONTEXT_HEADER)
        if raw is None:
            raise InvalidTraceHeaderError(f"{CLOUD_TRACE_CONTEXT_HEADER} header is missing")
        header_value = raw.strip()

        trace_part, slash, rest = header_value.partition("/")
        if not slash or len(trace_part) != 32:
            raise InvalidTraceHeaderError(f"malformed trace id in {header_value!r}")

        span_part, marker, flags_part = rest.partition(";o=")
        if not marker:
            span_part, flags_part = rest, str(TRACE_FLAG_SAMPLED)

        span_context = SpanContext(
            trace_id=_parse_unsigned(trace_part, _HEX_DIGITS, 16, 128),
            span_id=_parse_unsigned(span_part, _DECIMAL_DIGITS, 10, 64),
            trace_flags=_parse_unsigned(flags_part, _DECIMAL_DIGITS, 10, 8),
            is_remote=True,
        )
        if not span_context.is_valid():
            raise InvalidTraceHeaderError(f"invalid span context in {header_value!r}")
        return span_context

    def inject(self, context: Context, carrier: MutableMapping[str, str]) -> None:
        """Write the context's span into ``carrier`` when that span is valid."""
        span_context = context.span_context
        if not span_context.is_valid():
            return
        carrier[CLOUD_TRACE_CONTEXT_HEADER.lower()] = (
            f"{span_context.trace_id:032x}/{span_context.span_id};o={span_context.trace_flags}"
        )

    def extract(self, context: Context, carrier: Mapping[str, str]) -> Context:
        """Return ``context`` with the carrier's remote span, or unchanged if there is none."""
        try:
            span_context = self.extract_span_context(carrier)
        except InvalidTraceHeaderError:
            return context
        return context.with_remote_span_context(span_context)

    def fields(self) -> tuple[str, ...]:
        """The header names this propagator reads and writes."""
        return (CLOUD_TRACE_CONTEXT_HEADER,)