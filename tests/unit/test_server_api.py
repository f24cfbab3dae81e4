from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from kennel_automation.engine.errors import WorkflowLoadError
from kennel_automation.engine.workflow.definitions import (
    ActionType,
    Node,
    TriggerType,
    WorkflowDefinition,
)
from kennel_automation.engine.workflow.enrollments import Enrollment
from kennel_automation.engine.workflow.events import WorkflowContext
from kennel_automation.server.app import create_app
from kennel_automation.server.config import ServerSettings


@pytest.fixture
def settings(monkeypatch) -> ServerSettings:
    monkeypatch.delenv("KENNEL_SCHEDULER_ENABLED", raising=False)
    return ServerSettings(_env_file=None)


@pytest.fixture
def client(settings, make_engine, purchase_sms_workflow, delayed_task_workflow) -> TestClient:
    unreachable = WorkflowDefinition(
        id="wf-bad",
        name="Broken",
        is_active=False,
        trigger_type=TriggerType.CRM_TAG_ADDED,
        nodes=[
            Node.trigger_node("t", TriggerType.CRM_TAG_ADDED),
            Node.action("tag", ActionType.ADD_TAG, tag="orphan"),
        ],
    )
    engine = make_engine(purchase_sms_workflow, delayed_task_workflow, unreachable)
    return TestClient(create_app(settings, engine))


def test_health(client: TestClient) -> None:
    health = client.get("/api/health").json()

    assert health["status"] == "ok"
    assert health["scheduler"] is False
    assert "version" in health


def test_list_workflows(client: TestClient) -> None:
    workflows = client.get("/api/workflows").json()

    assert [w["id"] for w in workflows] == ["wf-1", "wf-2", "wf-bad"]
    assert workflows[0] == {
        "id": "wf-1",
        "name": "Big spender thanks",
        "is_active": True,
        "trigger_type": "POS_PURCHASE",
        "node_count": 2,
        "edge_count": 1,
        "stats": {"runs": 0, "completed": 0, "failed": 0},
    }


def test_workflow_stats_count_runs_by_outcome(
    settings, make_engine, make_collaborators, purchase_sms_workflow, delayed_task_workflow
) -> None:
    services = make_collaborators()
    engine = make_engine(purchase_sms_workflow, delayed_task_workflow, services=services)
    client = TestClient(create_app(settings, engine))

    client.post("/api/events/POS_PURCHASE", json={"data": {"amount": 80}})
    services.fail_on.add("sms")
    client.post("/api/events/POS_PURCHASE", json={"data": {"amount": 90}})
    client.post("/api/events/POS_PURCHASE", json={"data": {"amount": 10}})

    stats = {w["id"]: w["stats"] for w in client.get("/api/workflows").json()}
    assert stats == {
        "wf-1": {"runs": 2, "completed": 1, "failed": 1},
        "wf-2": {"runs": 3, "completed": 0, "failed": 0},
    }


def test_workflow_validation(client: TestClient) -> None:
    ok = client.get("/api/workflows/wf-1/validation").json()
    bad = client.get("/api/workflows/wf-bad/validation").json()

    assert ok == {"workflow_id": "wf-1", "ok": True, "issues": []}
    assert bad["ok"] is False
    assert bad["issues"][0]["code"] == "unreachable_node"
    assert bad["issues"][0]["node_id"] == "tag"
    assert client.get("/api/workflows/nope/validation").status_code == 404


def test_trigger_event_enrolls_and_lists(client: TestClient, collaborators) -> None:
    resp = client.post(
        "/api/events/POS_PURCHASE",
        json={"subject_id": "owner-1", "data": {"amount": 80, "FirstName": "Dana"}},
    )

    assert resp.status_code == 200
    created = {e["workflow_id"]: e for e in resp.json()}
    assert created["wf-1"]["status"] == "completed"
    assert created["wf-2"]["status"] == "waiting"
    assert created["wf-1"]["context"]["ownerId"] == "owner-1"
    assert collaborators.kinds() == ["sms"]

    listed = client.get("/api/enrollments", params={"subject_id": "owner-1"}).json()
    assert sorted(e["id"] for e in listed) == sorted(e["id"] for e in created.values())
    assert client.get("/api/enrollments", params={"subject_id": "owner-2"}).json() == []

    one = client.get(f"/api/enrollments/{created['wf-2']['id']}").json()
    assert one["current_node_id"] == "wait"


def test_unknown_event_type_is_rejected(client: TestClient) -> None:
    assert client.post("/api/events/BIRTHDAY", json={}).status_code == 422


def test_stop_enrollment(client: TestClient) -> None:
    [waiting] = [
        e
        for e in client.post("/api/events/POS_PURCHASE", json={"data": {"amount": 5}}).json()
        if e["status"] == "waiting"
    ]

    assert client.delete(f"/api/enrollments/{waiting['id']}").status_code == 204
    assert client.get(f"/api/enrollments/{waiting['id']}").status_code == 404
    assert client.delete(f"/api/enrollments/{waiting['id']}").status_code == 204


def test_run_due_resumes_waiting_enrollments(
    settings, make_engine, delayed_task_workflow, collaborators, fixed_now
) -> None:
    now = [fixed_now]
    engine = make_engine(delayed_task_workflow, clock=lambda: now[0])
    client = TestClient(create_app(settings, engine))
    client.post("/api/events/POS_PURCHASE", json={"subject_id": "owner-1", "data": {}})

    assert client.post("/api/scheduler/run-due").json() == []

    now[0] = fixed_now + timedelta(hours=2)
    [resumed] = client.post("/api/scheduler/run-due").json()
    assert resumed["status"] == "completed"
    assert collaborators.kinds() == ["task"]


def test_workflow_load_failure_is_bad_gateway(settings, make_engine) -> None:
    class BrokenSource:
        async def list_workflows(self) -> list[WorkflowDefinition]:
            raise WorkflowLoadError("workflows.json is not valid JSON")

        async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
            raise WorkflowLoadError("workflows.json is not valid JSON")

    client = TestClient(create_app(settings, make_engine(source=BrokenSource())))

    resp = client.post("/api/events/POS_PURCHASE", json={"data": {"amount": 100}})

    assert resp.status_code == 502
    assert "not valid JSON" in resp.json()["detail"]
    assert client.get("/api/workflows").status_code == 502


def test_runs_are_newest_first_and_capped(
    settings, make_engine, purchase_sms_workflow, fixed_now
) -> None:
    engine = make_engine(purchase_sms_workflow)
    trigger = purchase_sms_workflow.trigger_node()
    assert trigger is not None
    ids = []
    for minute in range(55):
        enrollment = Enrollment.start(purchase_sms_workflow, trigger, WorkflowContext())
        enrollment.created_at = fixed_now + timedelta(minutes=minute)
        engine.store.save(enrollment)
        ids.append(enrollment.id)
    client = TestClient(create_app(settings, engine))

    runs = client.get("/api/runs").json()

    assert [r["id"] for r in runs] == ids[::-1][:50]
    assert runs[0]["workflow_name"] == "Big spender thanks"
    assert [r["id"] for r in client.get("/api/runs", params={"limit": 3}).json()] == ids[:-4:-1]
    assert client.get("/api/runs", params={"limit": 51}).status_code == 422
