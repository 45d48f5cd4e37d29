"""Text rendering helpers for the roomflow CLI."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from roomflow.contracts import AuditEntry, ChecklistPayload, SinglePayload, StepState
from roomflow.ledger import PendingReview
from roomflow.workflow import WorkflowInstance


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _summarize_payload(state: StepState) -> str:
    payload = state.payload
    if isinstance(payload, SinglePayload):
        return ", ".join(f"{k}={v}" for k, v in payload.values.items())
    if isinstance(payload, ChecklistPayload):
        return ", ".join(f"{k}={v}" for k, v in payload.items.items())
    parts = []
    for sub_unit_id, record in payload.records.items():
        media = sum(len(c.media) for c in record.categories.values())
        parts.append(f"{sub_unit_id}: {len(record.categories)} categories, {media} media")
    return "; ".join(parts)


def _format_instance_line(wf: WorkflowInstance) -> str:
    return f"{wf.id}\t{wf.unit_ref}\t{wf.template}\t{wf.pipeline.label()}"


def _format_instance(wf: WorkflowInstance) -> list[str]:
    lines = [
        f"Workflow {wf.id}: {wf.pipeline.label()}",
        f"Unit: {wf.unit_ref} ({wf.resource_type}, template {wf.template})",
    ]
    if wf.pipeline.reject_reason:
        lines.append(f"Rejected at stage {wf.pipeline.rejected_stage}: {wf.pipeline.reject_reason}")
    for definition, state in zip(wf.definitions, wf.steps):
        mark = "x" if state.completed else " "
        line = f"[{mark}] {definition.index} {definition.name}"
        if state.completed:
            line += f" by {state.operator} at {_format_time(state.completed_at)}"
        summary = _summarize_payload(state)
        if summary:
            line += f" | {summary}"
        lines.append(line)
    return lines


def _format_entry(entry: AuditEntry) -> str:
    line = (
        f"{entry.sequence}\t{_format_time(entry.timestamp)}\t{entry.actor}\t"
        f"{entry.action.value}\t{entry.ref}"
    )
    if entry.reason:
        line += f"\t{entry.reason}"
    return line


def _format_pending(review: PendingReview) -> str:
    return f"{review.unit_ref}\t{review.workflow_id or '-'}\tstage {review.stage}\tsince {_format_time(review.since)}"
