"""Outcome of device fault tickets."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from .constants import FEEDBACK
from .contracts import SinglePayload
from .pipeline import PipelineStatus
from .templates import FeedbackMethod
from .workflow import WorkflowInstance


class FeedbackOutcome(str, Enum):
    RESOLVED = "resolved"
    FALSE_ALARM = "false_alarm"


def feedback_outcome(instance: WorkflowInstance) -> Optional[FeedbackOutcome]:
    """Outcome of an approved feedback ticket, ``None`` while still open.

    A ticket counts as a false alarm when its result step says so or the
    ticket was flagged ``false_alarm``; every other approved ticket is resolved.
    """
    if instance.resource_type != FEEDBACK:
        raise ValueError(f"{instance.id} is a {instance.resource_type} workflow, not feedback")
    if instance.pipeline.status is not PipelineStatus.APPROVED:
        return None
    result = instance.steps[-1].payload if instance.steps else None
    flagged = bool(instance.attributes.get("false_alarm"))
    if isinstance(result, SinglePayload) and result.values.get("result") == FeedbackOutcome.FALSE_ALARM.value:
        flagged = True
    return FeedbackOutcome.FALSE_ALARM if flagged else FeedbackOutcome.RESOLVED


__all__ = ["FeedbackMethod", "FeedbackOutcome", "feedback_outcome"]
