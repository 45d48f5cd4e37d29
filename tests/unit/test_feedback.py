"""Tests for feedback ticket outcomes."""

import pytest

from roomflow.contracts import Actor
from roomflow.engine import WorkflowEngine
from roomflow.feedback import FeedbackOutcome, feedback_outcome
from roomflow.templates import TemplateRegistry

TECH = Actor(name="li", role="technician")
OPS = Actor(name="zhao", role="ops_manager")


def _approved_ticket(result, **attributes):
    engine = WorkflowEngine()
    ticket = TemplateRegistry().instantiate("feedback", "dev-1", attributes=attributes, method="self")
    engine.update_step(ticket, 0, result)
    engine.complete_step(ticket, 0, TECH)
    assert feedback_outcome(ticket) is None
    engine.approve(ticket, OPS, 0)
    return ticket


def test_approved_ticket_is_resolved():
    assert feedback_outcome(_approved_ticket("rebooted the device")) is FeedbackOutcome.RESOLVED


def test_false_alarm_from_result_or_flag():
    assert feedback_outcome(_approved_ticket("false_alarm")) is FeedbackOutcome.FALSE_ALARM
    assert feedback_outcome(_approved_ticket("nothing found", false_alarm=True)) is FeedbackOutcome.FALSE_ALARM


def test_outcome_only_for_feedback_workflows():
    other = TemplateRegistry().instantiate("ops_status", "dev-1")
    with pytest.raises(ValueError):
        feedback_outcome(other)
