"""Span identity and the context that carries it between services."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

TRACE_ID_BITS = 128
SPAN_ID_BITS = 64
TRACE_FLAGS_BITS = 8

TRACE_FLAG_SAMPLED = 0x01


def _check_range(name: str, value: int, bits: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{name} {value} does not fit in {bits} unsigned bits")


@dataclass(frozen=True)
class SpanContext:
    """Identifies a span: a 128-bit trace id, a 64-bit span id and 8 bits of flags."""

    trace_id: int = 0
    span_id: int = 0
    trace_flags: int = 0
    is_remote: bool = False
    trace_state: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        _check_range("trace_id", self.trace_id, TRACE_ID_BITS)
        _check_range("span_id", self.span_id, SPAN_ID_BITS)
        _check_range("trace_flags", self.trace_flags, TRACE_FLAGS_BITS)

    def is_valid(self) -> bool:
        """A context is valid when both its trace id and span id are non-zero."""
        return self.trace_id != 0 and self.span_id != 0

    def is_sampled(self) -> bool:
        """Whether the sampled bit is set in the trace flags."""
        return bool(self.trace_flags & TRACE_FLAG_SAMPLED)

    def trace_id_hex(self) -> str:
        """The trace id as 32 lower-case hex digits."""
        return f"{self.trace_id:032x}"

    def span_id_hex(self) -> str:
        """The span id as 16 lower-case hex digits."""
        return f"{self.span_id:016x}"


INVALID_SPAN_CONTEXT = SpanContext()


@dataclass(frozen=True)
class Context:
    """An immutable execution context holding the current span's identity."""

    span_context: SpanContext = field(default=INVALID_SPAN_CONTEXT)

    def with_remote_span_context(self, span_context: SpanContext) -> Context:
        """Return a new context whose current span is the given remote span."""
        return replace(self, span_context=replace(span_context, is_remote=True))