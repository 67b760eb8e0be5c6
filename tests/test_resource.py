import dataclasses

import pytest

from stackdriver_export.resource import (
    CloudRunJob,
    CloudRunRevision,
    GenericNode,
    GenericTask,
    GlobalResource,
    LogContext,
)


def test_global_resource():
    resource = GlobalResource("proj")
    assert resource.to_dict() == {"type": "global", "labels": {"project_id": "proj"}}


def test_generic_node_omits_unset_labels():
    resource = GenericNode("proj", location="here", node_id="n1")
    assert resource.labels() == {"project_id": "proj", "location": "here", "node_id": "n1"}
    assert "namespace" not in resource.labels()
    assert resource.to_dict()["type"] == "generic_node"


def test_generic_task_all_labels():
    resource = GenericTask("proj", location="loc", namespace="ns", job="j", task_id="t")
    assert resource.to_dict() == {
        "type": "generic_task",
        "labels": {
            "project_id": "proj",
            "location": "loc",
            "namespace": "ns",
            "job": "j",
            "task_id": "t",
        },
    }


def test_cloud_run_job_label_order():
    resource = CloudRunJob("proj", job_name="job", location="loc")
    assert list(resource.labels()) == ["project_id", "job_name", "location"]
    assert resource.to_dict()["type"] == "cloud_run_job"


def test_cloud_run_revision():
    resource = CloudRunRevision("proj", service_name="svc", configuration_name="cfg")
    assert resource.to_dict() == {
        "type": "cloud_run_revision",
        "labels": {"project_id": "proj", "service_name": "svc", "configuration_name": "cfg"},
    }


def test_only_project_id_when_nothing_else_set():
    for resource in (GenericNode("p"), GenericTask("p"), CloudRunJob("p"), CloudRunRevision("p")):
        assert resource.labels() == {"project_id": "p"}


def test_resources_are_immutable():
    resource = GlobalResource("proj")
    with pytest.raises(dataclasses.FrozenInstanceError):
        resource.project_id = "other"
    assert resource.project_id == "proj"
    assert resource.to_dict() == {"type": "global", "labels": {"project_id": "proj"}}


def test_log_context_holds_resource():
    resource = CloudRunJob("proj", job_name="job")
    context = LogContext(log_id="app", resource=resource)
    assert context.log_id == "app"
    assert context.resource.to_dict()["labels"] == {"project_id": "proj", "job_name": "job"}