"""Monitored resources that log entries are attributed to."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import ClassVar, Optional


@dataclass(frozen=True)
class MonitoredResource:
    """Base of the monitored resource kinds; subclasses carry the labels."""

    resource_type: ClassVar[str] = ""

    def labels(self) -> dict[str, str]:
        """The resource labels, leaving out those that are not set."""
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }

    def to_dict(self) -> dict[str, object]:
        """The resource as a ``{"type": ..., "labels": ...}`` mapping."""
        return {"type": self.resource_type, "labels": self.labels()}


@dataclass(frozen=True)
class GlobalResource(MonitoredResource):
    """The global resource, identified by project only."""

    resource_type: ClassVar[str] = "global"

    project_id: str


@dataclass(frozen=True)
class GenericNode(MonitoredResource):
    """A generic compute node."""

    resource_type: ClassVar[str] = "generic_node"

    project_id: str
    location: Optional[str] = None
    namespace: Optional[str] = None
    node_id: Optional[str] = None


@dataclass(frozen=True)
class GenericTask(MonitoredResource):
    """A generic task within a job."""

    resource_type: ClassVar[str] = "generic_task"

    project_id: str
    location: Optional[str] = None
    namespace: Optional[str] = None
    job: Optional[str] = None
    task_id: Optional[str] = None


@dataclass(frozen=True)
class CloudRunJob(MonitoredResource):
    """A Cloud Run job."""

    resource_type: ClassVar[str] = "cloud_run_job"

    project_id: str
    job_name: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class CloudRunRevision(MonitoredResource):
    """A revision of a Cloud Run service."""

    resource_type: ClassVar[str] = "cloud_run_revision"

    project_id: str
    service_name: Optional[str] = None
    revision_name: Optional[str] = None
    location: Optional[str] = None
    configuration_name: Optional[str] = None


@dataclass(frozen=True)
class LogContext:
    """Where log entries are written: a log id and the resource they belong to."""

    log_id: str
    resource: MonitoredResource