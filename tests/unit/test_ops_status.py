"""Tests for device status change requests."""

import pytest

from roomflow.contracts import Actor
from roomflow.engine import WorkflowEngine
from roomflow.errors import Forbidden, Invalid, InvalidTransition
from roomflow.ledger import InMemoryAuditLedger
from roomflow.ops import EventSeverity, OpsStatus, OpsStatusDesk, severity_for
from roomflow.pipeline import PipelineStatus

INSTALLER = Actor(name="wang", role="installer")
OPS = Actor(name="zhao", role="ops_manager")


@pytest.fixture
def desk():
    desk = OpsStatusDesk(WorkflowEngine(ledger=InMemoryAuditLedger()))
    desk.register_device("dev-1")
    return desk


def test_request_to_same_status_is_noop(desk):
    assert desk.request_change("dev-1", OpsStatus.INSPECTED, "routine", INSTALLER) is None
    assert desk.device("dev-1").events == []


def test_request_marks_device_pending(desk):
    request = desk.request_change("dev-1", OpsStatus.REPAIRING, "screen flicker", INSTALLER)

    assert request.pipeline.status is PipelineStatus.IN_STAGE
    device = desk.device("dev-1")
    assert device.ops_status is OpsStatus.PENDING_AUDIT
    assert device.events[0].severity is EventSeverity.INFO
    assert "screen flicker" in device.events[0].message


def test_approval_applies_target_and_resets_test_time(desk):
    request = desk.request_change("dev-1", OpsStatus.ABNORMAL, "no signal", INSTALLER)

    desk.approve(request.id, OPS)
    device = desk.device("dev-1")
    assert device.ops_status is OpsStatus.ABNORMAL
    assert device.last_test_time is not None
    assert device.events[0].severity is EventSeverity.ERROR
    assert request.pipeline.status is PipelineStatus.APPROVED


def test_rejection_restores_previous_status(desk):
    desk.register_device("dev-2", OpsStatus.REPAIRING)
    request = desk.request_change("dev-2", OpsStatus.INSPECTED, "fixed", INSTALLER)

    desk.reject(request.id, OPS, "no proof of repair")
    device = desk.device("dev-2")
    assert device.ops_status is OpsStatus.REPAIRING
    assert device.events[0].severity is EventSeverity.WARNING


def test_new_request_supersedes_pending_one(desk):
    first = desk.request_change("dev-1", OpsStatus.REPAIRING, "flicker", INSTALLER)
    second = desk.request_change("dev-1", OpsStatus.HOTEL_COMPLAINT, "guest complaint", INSTALLER)

    assert first.pipeline.status is PipelineStatus.SUPERSEDED
    assert desk.pending_requests("dev-1") == [second]
    with pytest.raises(InvalidTransition):
        desk.approve(first.id, OPS)

    # The superseded request left the device in review, so rejection falls back to inspected.
    desk.reject(second.id, OPS, "not a complaint")
    assert desk.device("dev-1").ops_status is OpsStatus.INSPECTED


def test_request_needs_reason(desk):
    desk.request_change("dev-1", OpsStatus.REPAIRING, "flicker", INSTALLER)
    with pytest.raises(Invalid):
        desk.request_change("dev-1", OpsStatus.ABNORMAL, "", INSTALLER)
    assert len(desk.pending_requests("dev-1")) == 1


def test_pending_audit_cannot_be_requested(desk):
    with pytest.raises(InvalidTransition):
        desk.request_change("dev-1", OpsStatus.PENDING_AUDIT, "x", INSTALLER)


def test_only_permitted_roles_settle_requests(desk):
    request = desk.request_change("dev-1", OpsStatus.REPAIRING, "flicker", INSTALLER)
    with pytest.raises(Forbidden):
        desk.approve(request.id, INSTALLER)
    assert desk.device("dev-1").ops_status is OpsStatus.PENDING_AUDIT


def test_unknown_device():
    desk = OpsStatusDesk(WorkflowEngine())
    with pytest.raises(KeyError):
        desk.request_change("ghost", OpsStatus.REPAIRING, "x", INSTALLER)


def test_severity_mapping():
    assert severity_for(OpsStatus.HOTEL_COMPLAINT) is EventSeverity.ERROR
    assert severity_for(OpsStatus.REPAIRING) is EventSeverity.WARNING
    assert severity_for(OpsStatus.INSPECTED) is EventSeverity.INFO
