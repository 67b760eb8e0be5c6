"""Export of finished spans, and of span events as log entries, to Cloud Trace."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Coroutine, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Any, Optional, Protocol, Union

from .attributes import TruncatableString, build_attributes, to_attribute_value
from .context import SpanContext
from .resource import LogContext

logger = logging.getLogger(__name__)

TRACE_APPEND = "https://www.googleapis.com/auth/trace.append"
LOGGING_WRITE = "https://www.googleapis.com/auth/logging.write"

DEFAULT_MAXIMUM_SHUTDOWN_DURATION = 5.0
CHANNEL_CAPACITY = 64

# gRPC status codes used for span statuses.
_GRPC_OK = 0
_GRPC_UNKNOWN = 2

AttributeSource = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


class SpanKind(IntEnum):
    """The role of a span, numbered as Cloud Trace numbers it."""

    INTERNAL = 1
    SERVER = 2
    CLIENT = 3
    PRODUCER = 4
    CONSUMER = 5


class StatusCode(Enum):
    """The outcome recorded on a span."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class Status:
    """A span status with an optional description for errors."""

    code: StatusCode = StatusCode.UNSET
    description: str = ""


@dataclass(frozen=True)
class Event:
    """A timestamped event recorded on a span."""

    name: str
    timestamp: datetime
    attributes: AttributeSource = ()


@dataclass(frozen=True)
class Link:
    """A reference from one span to another."""

    span_context: SpanContext


@dataclass(frozen=True)
class SpanData:
    """A finished span ready for export."""

    span_context: SpanContext
    name: str
    start_time: datetime
    end_time: datetime
    parent_span_id: int = 0
    span_kind: SpanKind = SpanKind.INTERNAL
    attributes: AttributeSource = ()
    events: Sequence[Event] = ()
    links: Sequence[Link] = ()
    dropped_links_count: int = 0
    status: Status = field(default_factory=Status)


class LogSeverity(IntEnum):
    """Log entry severities as the logging service defines them."""

    DEFAULT = 0
    DEBUG = 100
    INFO = 200
    WARNING = 400
    ERROR = 500


class StackDriverError(Exception):
    """Base of the errors raised by the exporter."""


class AuthorizerError(StackDriverError):
    """Authorizing a request failed."""

    def __init__(self, source: object) -> None:
        super().__init__(f"authorizer error: {source}")
        self.source = source


class TransportError(StackDriverError):
    """Sending a request failed."""

    def __init__(self, source: object) -> None:
        super().__init__(f"transport error: {source}")
        self.source = source


class ExportError(StackDriverError):
    """A batch could not be queued for export."""


class Authorizer(ABC):
    """Supplies the project id and adds credentials to outgoing requests."""

    @abstractmethod
    def project_id(self) -> str:
        """The project that spans and log entries are written to."""

    @abstractmethod
    async def authorize(self, request: dict[str, Any], scopes: Sequence[str]) -> None:
        """Add credentials for ``scopes`` to ``request["metadata"]``."""


class TraceClient(Protocol):
    async def batch_write_spans(self, request: dict[str, Any]) -> Any: ...


class LogClient(Protocol):
    async def write_log_entries(self, request: dict[str, Any]) -> Any: ...


def log_severity(level: str) -> LogSeverity:
    """Map a tracing level name to a log severity."""
    return {
        "DEBUG": LogSeverity.DEBUG,
        "TRACE": LogSeverity.DEBUG,
        "INFO": LogSeverity.INFO,
        "WARN": LogSeverity.WARNING,
        "ERROR": LogSeverity.ERROR,
    }.get(level, LogSeverity.DEFAULT)


def convert_status(status: Status) -> Optional[dict[str, Any]]:
    """Convert a span status to the wire status, or None when it is unset."""
    if status.code is StatusCode.OK:
        return {"code": _GRPC_OK, "message": "", "details": []}
    if status.code is StatusCode.ERROR:
        return {"code": _GRPC_UNKNOWN, "message": status.description, "details": []}
    return None


def transform_links(links: Sequence[Link], dropped_count: int = 0) -> Optional[dict[str, Any]]:
    """Convert span links, or return None when there are none."""
    if not links:
        return None
    return {
        "dropped_links_count": dropped_count,
        "link": [
            {
                "trace_id": link.span_context.trace_id_hex(),
                "span_id": link.span_context.span_id_hex(),
            }
            for link in links
        ],
    }


def _pairs(source: AttributeSource) -> Iterable[tuple[str, Any]]:
    if isinstance(source, Mapping):
        return source.items()
    return source


def _as_text(value: Any) -> str:
    converted = to_attribute_value(value).value
    if isinstance(converted, TruncatableString):
        return converted.value
    if isinstance(converted, bool):
        return "true" if converted else "false"
    return str(converted)


def convert_span(
    span: SpanData,
    project_id: str,
    resource: Optional[AttributeSource] = None,
    log_context: Optional[LogContext] = None,
) -> dict[str, Any]:
    """Convert a span to a Cloud Trace span.

    Events become annotations unless a log context is given, in which case
    they are written as log entries instead and left out here.
    """
    trace_id = span.span_context.trace_id_hex()
    span_id = span.span_context.span_id_hex()
    if log_context is None:
        time_events = [
            {"time": event.timestamp, "annotation": {"description": TruncatableString(event.name)}}
            for event in span.events
        ]
    else:
        time_events = []
    return {
        "name": f"projects/{project_id}/traces/{trace_id}/spans/{span_id}",
        "display_name": TruncatableString(span.name),
        "span_id": span_id,
        # A root span must have an empty parent span id.
        "parent_span_id": "" if span.parent_span_id == 0 else f"{span.parent_span_id:016x}",
        "start_time": span.start_time,
        "end_time": span.end_time,
        "attributes": build_attributes(span.attributes, resource),
        "time_events": {
            "time_event": time_events,
            "dropped_annotations_count": 0,
            "dropped_message_events_count": 0,
        },
        "links": transform_links(span.links, span.dropped_links_count),
        "status": convert_status(span.status),
        "span_kind": int(span.span_kind),
    }


def convert_log_entries(
    span: SpanData, project_id: str, log_context: LogContext
) -> list[dict[str, Any]]:
    """Convert the span's events into log entries."""
    trace_id = span.span_context.trace_id_hex()
    span_id = span.span_context.span_id_hex()
    entries = []
    for event in span.events:
        level = LogSeverity.DEFAULT
        target: Optional[str] = None
        labels: dict[str, str] = {}
        for key, value in _pairs(event.attributes):
            if key == "level":
                level = log_severity(_as_text(value))
            elif key == "target":
                target = _as_text(value)
            else:
                labels[key] = _as_text(value)
        entries.append(
            {
                "log_name": f"projects/{project_id}/logs/{log_context.log_id}",
                "resource": log_context.resource.to_dict(),
                "severity": int(level),
                "timestamp": event.timestamp,
                "labels": labels,
                "trace": f"projects/{project_id}/traces/{trace_id}",
                "span_id": span_id,
                "source_location": (
                    None if target is None else {"file": "", "line": 0, "function": target}
                ),
                "text_payload": event.name,
            }
        )
    return entries


_CLOSED = object()


class StackDriverExporter:
    """Queues span batches for a background task that uploads them."""

    def __init__(
        self,
        maximum_shutdown_duration: float,
        num_concurrent_requests: Optional[int],
        log_context: Optional[LogContext],
    ) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._pending = 0
        self._closed = False
        self._maximum_shutdown_duration = maximum_shutdown_duration
        self._num_concurrent_requests = num_concurrent_requests
        self._log_context = log_context
        self._resource: Optional[AttributeSource] = None

    def __repr__(self) -> str:
        return (
            f"StackDriverExporter(tx=(elided), pending_count={self._pending}, "
            f"maximum_shutdown_duration={self._maximum_shutdown_duration})"
        )

    def pending_count(self) -> int:
        """The number of queued batches not yet converted for upload."""
        return self._pending

    def export(self, batch: Sequence[SpanData]) -> None:
        """Queue a batch of spans; raise ExportError when the queue is full or closed."""
        if self._closed:
            raise ExportError("exporter is shut down")
        if self._queue.qsize() >= CHANNEL_CAPACITY:
            raise ExportError("export queue is full")
        self._queue.put_nowait(list(batch))
        self._pending += 1

    async def shutdown(self) -> None:
        """Wait, up to the maximum shutdown duration, for queued batches, then close."""
        start = time.monotonic()
        while (
            time.monotonic() - start < self._maximum_shutdown_duration and self._pending > 0
        ):
            await asyncio.sleep(0)
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def set_resource(self, resource: AttributeSource) -> None:
        """Set the resource attributes added to every exported span."""
        self._resource = dict(_pairs(resource))

    async def _run(
        self,
        authorizer: Authorizer,
        trace_client: TraceClient,
        log_client: Optional[LogClient],
        scopes: tuple[str, ...],
    ) -> None:
        limit = self._num_concurrent_requests
        semaphore = asyncio.Semaphore(limit) if limit else None
        tasks: set[asyncio.Task[None]] = set()

        async def guarded(batch: list[SpanData]) -> None:
            try:
                await self._export_batch(batch, authorizer, trace_client, log_client, scopes)
            finally:
                if semaphore is not None:
                    semaphore.release()

        while True:
            if semaphore is not None:
                await semaphore.acquire()
            batch = await self._queue.get()
            if batch is _CLOSED:
                if semaphore is not None:
                    semaphore.release()
                break
            task = asyncio.create_task(guarded(batch))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        if tasks:
            await asyncio.gather(*tasks)

    async def _export_batch(
        self,
        batch: list[SpanData],
        authorizer: Authorizer,
        trace_client: TraceClient,
        log_client: Optional[LogClient],
        scopes: tuple[str, ...],
    ) -> None:
        project_id = authorizer.project_id()
        log_context = self._log_context
        spans: list[dict[str, Any]] = []
        entries: list[dict[str, Any]] = []
        try:
            for span in batch:
                if log_context is not None:
                    entries.extend(convert_log_entries(span, project_id, log_context))
                spans.append(convert_span(span, project_id, self._resource, log_context))
        except Exception as exc:
            logger.error("ExportConversionError: %r", StackDriverError(exc))
            return
        finally:
            self._pending -= 1

        request: dict[str, Any] = {
            "metadata": {},
            "body": {"name": f"projects/{project_id}", "spans": spans},
        }
        await self._send(request, authorizer, scopes, trace_client.batch_write_spans)

        if log_client is None or log_context is None:
            return
        log_request: dict[str, Any] = {
            "metadata": {},
            "body": {
                "log_name": f"projects/{project_id}/logs/{log_context.log_id}",
                "entries": entries,
                "dry_run": False,
                "labels": {},
                "partial_success": True,
                "resource": None,
            },
        }
        await self._send(log_request, authorizer, scopes, log_client.write_log_entries)

    @staticmethod
    async def _send(request, authorizer, scopes, send) -> None:
        try:
            await authorizer.authorize(request, scopes)
        except Exception as exc:
            logger.error("ExportAuthorizeError: %r", AuthorizerError(exc))
            return
        try:
            await send(request)
        except Exception as exc:
            logger.error("ExportTransportError: %r", TransportError(exc))


def _seconds(duration: Union[float, timedelta]) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


class Builder:
    """Configures and builds a StackDriverExporter."""

    def __init__(self) -> None:
        self._maximum_shutdown_duration: Optional[float] = None
        self._num_concurrent_requests: Optional[int] = None
        self._log_context: Optional[LogContext] = None

    def maximum_shutdown_duration(self, duration: Union[float, timedelta]) -> Builder:
        """Set how long shutdown waits for queued batches; 5 seconds by default."""
        self._maximum_shutdown_duration = _seconds(duration)
        return self

    def num_concurrent_requests(self, num_concurrent_requests: int) -> Builder:
        """Limit concurrent uploads; 0 means no limit."""
        self._num_concurrent_requests = num_concurrent_requests
        return self

    def log_context(self, log_context: LogContext) -> Builder:
        """Write span events as log entries in the given log context."""
        self._log_context = log_context
        return self

    async def build(
        self,
        authorizer: Authorizer,
        trace_client: TraceClient,
        log_client: Optional[LogClient] = None,
    ) -> tuple[StackDriverExporter, Coroutine[Any, Any, None]]:
        """Return the exporter and the coroutine that uploads what it queues."""
        if self._log_context is not None and log_client is None:
            raise ValueError("a log client is required when a log context is set")
        scopes = (TRACE_APPEND, LOGGING_WRITE) if self._log_context is not None else (TRACE_APPEND,)
        exporter = StackDriverExporter(
            maximum_shutdown_duration=(
                DEFAULT_MAXIMUM_SHUTDOWN_DURATION
                if self._maximum_shutdown_duration is None
                else self._maximum_shutdown_duration
            ),
            num_concurrent_requests=self._num_concurrent_requests,
            log_context=self._log_context,
        )
        effective_log_client = log_client if self._log_context is not None else None
        return exporter, exporter._run(authorizer, trace_client, effective_log_client, scopes)