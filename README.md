# stackdriver-export

Tools for sending trace data to Google Cloud Trace:

- It turns finished spans into Cloud Trace span records.
- When a log context is given, it turns span events into Cloud Logging entries.
- It queues span batches and hands them to clients you supply.
- It reads and writes trace context in the `X-Cloud-Trace-Context` header.

It has no dependencies outside the standard library.

## Installation

```
pip install stackdriver-export
```

## Span context (`stackdriver_export.context`)

`SpanContext` is a frozen dataclass. It holds:

- a 128-bit `trace_id`;
- a 64-bit `span_id`;
- 8 bits of `trace_flags`;
- `is_remote`;
- `trace_state`.

Values out of range raise `ValueError`. Values that are not integers raise `TypeError`.

- `is_valid()` is true when both ids are non-zero.
- `is_sampled()` tests the sampled bit.
- `trace_id_hex()` and `span_id_hex()` give zero-padded lower-case hex.

`Context` carries the current `span_context`. `with_remote_span_context(span_context)` returns a new context whose span is marked remote.

## Propagating trace context (`stackdriver_export.propagator`)

`GoogleTraceContextPropagator` uses the header form `TRACE_ID/SPAN_ID;o=FLAGS`:

- `TRACE_ID` is exactly 32 hexadecimal characters.
- `SPAN_ID` is an unsigned 64-bit decimal number.
- `;o=FLAGS` is optional and holds a decimal number from 0 to 255. When it is missing, the flags are `1` (sampled).

```python
from stackdriver_export.context import Context
from stackdriver_export.propagator import GoogleTraceContextPropagator

propagator = GoogleTraceContextPropagator()

headers = {"x-cloud-trace-context": "105445aa7843bc8bf206b12000100000/1;o=1"}
context = propagator.extract(Context(), headers)

outgoing = {}
propagator.inject(context, outgoing)
# outgoing == {"x-cloud-trace-context": "105445aa7843bc8bf206b12000100000/1;o=1"}
```

- **Reading the header.** The header name is matched without regard to case, and surrounding whitespace in its value is ignored.
- **`extract_span_context(carrier)`** returns a remote `SpanContext`. It raises `InvalidTraceHeaderError` when the header is missing or malformed, or when it gives an invalid (all-zero) id. `InvalidTraceHeaderError` is a subclass of `ValueError`.
- **`extract(context, carrier)`** returns the context with the extracted span. If there is none, it returns the context unchanged.
- **`inject(context, carrier)`** writes the header under the lower-case key `x-cloud-trace-context`, and only when the context's span is valid.
- **`fields()`** returns `("X-Cloud-Trace-Context",)`.

## Span attributes (`stackdriver_export.attributes`)

`build_attributes(attributes, resource=None)` merges resource attributes and span attributes into an `Attributes` object. Each argument may be a mapping or an iterable of `(key, value)` pairs. The object has an `attribute_map` and a `dropped_attributes_count`.

- **Order and the limit.** Resource attributes are added first, so they are kept when the limit of 32 entries is reached.
- **Dropped attributes.** Attributes beyond the limit are counted as dropped, and so are attributes whose key is longer than 128 bytes in UTF-8.
- **Key renaming.** Well-known HTTP and Kubernetes keys are renamed to their Cloud Trace labels. For example, `http.method` and `http.request.method` become `/http/method`, and `k8s.pod.name` becomes `g.co/r/k8s_container/pod_name`.

`to_attribute_value(value)` converts a single value to an `AttributeValue`:

| Input | Result |
| --- | --- |
| Booleans | kept as they are |
| Integers in the signed 64-bit range | kept as they are |
| Integers outside the signed 64-bit range | raise `ValueError` |
| Floats | `TruncatableString` |
| Strings | `TruncatableString` |
| Lists and tuples | `TruncatableString`, written like `[1,"a",true]` |
| Anything else | empty string |

## Log resources (`stackdriver_export.resource`)

`LogContext(log_id, resource)` says where span events are logged. The resource is one of these frozen dataclasses:

- `GlobalResource`
- `GenericNode`
- `GenericTask`
- `CloudRunJob`
- `CloudRunRevision`

Each takes a `project_id` plus optional labels. `labels()` returns the labels that are set. `to_dict()` returns `{"type": ..., "labels": ...}`; the type is, for example, `"cloud_run_revision"`.

## Exporting (`stackdriver_export.exporter`)

Spans are described with these classes:

- `SpanData`
- `Event`
- `Link`
- `Status` with `StatusCode`
- `SpanKind`

The conversion functions can be used on their own:

- **`convert_span(span, project_id, resource=None, log_context=None)`** returns a Cloud Trace span as a dict. Events become annotations unless a log context is given.
- **`convert_log_entries(span, project_id, log_context)`** returns one log entry per event.
  - The event attribute `level` sets the severity through `log_severity`. `DEBUG` and `TRACE` map to `LogSeverity.DEBUG`, `INFO` to `INFO`, `WARN` to `WARNING` and `ERROR` to `ERROR`; anything else maps to `DEFAULT`.
  - The event attribute `target` becomes the source location's function.
  - Other event attributes become labels.
- **`convert_status(status)`** returns `None` for an unset status. Otherwise it returns gRPC code 0 (ok) or 2 (unknown, with the error description).
- **`transform_links(links, dropped_count=0)`** returns `None` when there are no links.

### Authorizer and clients

To export, implement `Authorizer`. `project_id()` returns the project. `async authorize(request, scopes)` adds credentials to `request["metadata"]`. The scopes are:

- always `TRACE_APPEND`;
- also `LOGGING_WRITE` when a log context is set.

You also supply the clients:

- a trace client with `async batch_write_spans(request)`;
- optionally, a log client with `async write_log_entries(request)`.

Each request is a dict with `"metadata"` and `"body"` keys.

### Building and running the exporter

```python
import asyncio

from stackdriver_export.exporter import Authorizer, Builder


class StaticAuthorizer(Authorizer):
    def project_id(self):
        return "demo-project"

    async def authorize(self, request, scopes):
        request["metadata"]["authorization"] = "Bearer token"


async def run(trace_client, spans):
    exporter, worker = await (
        Builder()
        .maximum_shutdown_duration(5.0)
        .num_concurrent_requests(4)
        .build(StaticAuthorizer(), trace_client)
    )
    task = asyncio.create_task(worker)
    exporter.export(spans)
    await exporter.shutdown()
    await task
```

`Builder` settings:

- **`maximum_shutdown_duration`** takes seconds or a `timedelta`. The default is 5 seconds.
- **`num_concurrent_requests`** limits concurrent uploads. `0` or unset means no limit.
- **`log_context`** turns on log entries. `build` then raises `ValueError` if no log client is passed.

`StackDriverExporter` behaviour:

- **`export(batch)`** queues a batch. It raises `ExportError` when 64 batches are already waiting, or after shutdown.
- **`pending_count()`** gives the number of batches queued but not yet converted.
- **`set_resource(resource)`** sets resource attributes that are added to every span.
- **`await shutdown()`** waits, up to the maximum shutdown duration, for pending batches to be taken up. It then closes the queue so the worker finishes.

### Error handling

Upload failures do not propagate. Authorization, transport and conversion failures are logged through the `stackdriver_export.exporter` logger as `AuthorizerError`, `TransportError` or `StackDriverError`.

## What this package does not do

The package does not talk to Google Cloud itself. It has no gRPC or HTTP clients, no credential lookup and no token provider. You supply the `Authorizer` and the client objects that carry requests to the services.

There is no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```