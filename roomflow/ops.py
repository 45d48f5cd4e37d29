"""Device operational-status change requests and their review."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from .constants import OPS_STATUS
from .contracts import Actor, utc_now
from .engine import WorkflowEngine
from .errors import InvalidTransition, UnknownWorkflow
from .pipeline import PipelineStatus
from .templates import TemplateRegistry
from .workflow import WorkflowInstance

logger = logging.getLogger(__name__)


class OpsStatus(str, Enum):
    INSPECTED = "inspected"
    REPAIRING = "repairing"
    ABNORMAL = "abnormal"
    PENDING_AUDIT = "pending_audit"
    HOTEL_COMPLAINT = "hotel_complaint"


class EventSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def severity_for(status: Optional[OpsStatus]) -> EventSeverity:
    """Severity of a device event announcing ``status``."""
    if status in (OpsStatus.ABNORMAL, OpsStatus.HOTEL_COMPLAINT):
        return EventSeverity.ERROR
    if status is OpsStatus.REPAIRING:
        return EventSeverity.WARNING
    return EventSeverity.INFO


class DeviceEvent(BaseModel):
    severity: EventSeverity
    message: str
    timestamp: datetime
    operator: str


class DeviceOpsState(BaseModel):
    """Operational status of one device plus its event log, newest first."""

    device_id: str
    ops_status: OpsStatus = OpsStatus.INSPECTED
    last_test_time: Optional[datetime] = None
    events: List[DeviceEvent] = Field(default_factory=list)


class OpsStatusDesk:
    """Opens, supersedes and settles status-change requests for devices.

    A device shows ``pending_audit`` while a request is under review. Each
    request is an ``ops_status`` workflow whose single step holds the target
    status and reason; completing that step submits it for review.
    """

    def __init__(
        self,
        engine: WorkflowEngine,
        registry: Optional[TemplateRegistry] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.engine = engine
        self.registry = registry or TemplateRegistry()
        self._clock = clock
        self.devices: Dict[str, DeviceOpsState] = {}
        self.requests: Dict[str, WorkflowInstance] = {}

    def register_device(self, device_id: str, status: OpsStatus = OpsStatus.INSPECTED) -> DeviceOpsState:
        state = DeviceOpsState(device_id=device_id, ops_status=status)
        self.devices[device_id] = state
        return state

    def device(self, device_id: str) -> DeviceOpsState:
        try:
            return self.devices[device_id]
        except KeyError:
            raise KeyError(f"Unknown device: {device_id}") from None

    def request(self, workflow_id: str) -> WorkflowInstance:
        try:
            return self.requests[workflow_id]
        except KeyError:
            raise UnknownWorkflow(f"no status request {workflow_id}") from None

    def pending_requests(self, device_id: Optional[str] = None) -> List[WorkflowInstance]:
        return [
            wf
            for wf in self.requests.values()
            if wf.pipeline.is_pending and (device_id is None or wf.unit_ref == device_id)
        ]

    def _log_event(self, device: DeviceOpsState, message: str, actor: Actor, status: Optional[OpsStatus]) -> None:
        event = DeviceEvent(
            severity=severity_for(status),
            message=message,
            timestamp=self._clock(),
            operator=actor.name,
        )
        device.events.insert(0, event)
        logger.log(
            {EventSeverity.ERROR: logging.ERROR, EventSeverity.WARNING: logging.WARNING}.get(
                event.severity, logging.INFO
            ),
            f"Device {device.device_id}: {message}",
        )

    def request_change(
        self, device_id: str, target: OpsStatus, reason: str, actor: Actor
    ) -> Optional[WorkflowInstance]:
        """Open a review for moving ``device_id`` to ``target``.

        Returns ``None`` when the device already has that status.
        """
        device = self.device(device_id)
        target = OpsStatus(target)
        if target is OpsStatus.PENDING_AUDIT:
            raise InvalidTransition("pending_audit is set by review, not requested")
        if device.ops_status is target:
            logger.debug(f"Device {device_id} already {target.value}; no request opened")
            return None

        stale = self.pending_requests(device_id)
        instance = self.registry.instantiate(
            OPS_STATUS,
            unit_ref=device_id,
            attributes={"prev_status": device.ops_status.value, "target_status": target.value},
        )
        self.engine.update_step(instance, 0, {"target_status": target.value, "reason": reason})
        self.engine.complete_step(instance, instance.last_index, actor)
        for old in stale:
            self.engine.supersede(old, actor)
        self.requests[instance.id] = instance

        device.ops_status = OpsStatus.PENDING_AUDIT
        self._log_event(device, f"Submitted for review: {target.value} ({reason})", actor, OpsStatus.PENDING_AUDIT)
        return instance

    def approve(self, workflow_id: str, actor: Actor) -> WorkflowInstance:
        """Approve the current stage; the final approval applies the target status."""
        instance = self.request(workflow_id)
        self.engine.approve(instance, actor, instance.pipeline.current_stage_index)
        if instance.pipeline.status is PipelineStatus.APPROVED:
            device = self.device(instance.unit_ref)
            target = OpsStatus(instance.attributes["target_status"])
            device.ops_status = target
            device.last_test_time = self._clock()
            self._log_event(device, f"Approved: status changed to {target.value}", actor, target)
        return instance

    def reject(self, workflow_id: str, actor: Actor, reason: str) -> WorkflowInstance:
        """Reject the request and restore the device's previous status."""
        instance = self.request(workflow_id)
        self.engine.reject(instance, actor, instance.pipeline.current_stage_index, reason)
        device = self.device(instance.unit_ref)
        previous = OpsStatus(instance.attributes["prev_status"])
        if previous is OpsStatus.PENDING_AUDIT:
            previous = OpsStatus.INSPECTED
        device.ops_status = previous
        self._log_event(device, f"Rejected: {reason} (reverted to {previous.value})", actor, previous)
        return instance


__all__ = [
    "DeviceEvent",
    "DeviceOpsState",
    "EventSeverity",
    "OpsStatus",
    "OpsStatusDesk",
    "severity_for",
]
