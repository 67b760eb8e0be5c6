"""Convert spans for Cloud Trace and span events for Cloud Logging, queue them for export, and propagate X-Cloud-Trace-Context."""

__version__ = "0.1.0"
__all__ = ["attributes", "context", "exporter", "propagator", "resource"]