"""roomflow: multi-step data collection and staged approval for hotel IoT work."""

from .contracts import Actor, AuditAction, AuditEntry, DataKind, FieldKind, StepDefinition
from .engine import WorkflowEngine
from .errors import (
    Forbidden,
    Invalid,
    InvalidTransition,
    Locked,
    MissingReason,
    OutOfOrder,
    UnknownWorkflow,
    WorkflowError,
)
from .ledger import get_ledger
from .permissions import PermissionGate, RoleMatrixGate
from .persistence import get_repository
from .pipeline import ApprovalPipeline, PipelineStatus
from .service import WorkflowService
from .templates import TemplateRegistry
from .validation import is_step_valid
from .workflow import WorkflowInstance

__version__ = "0.1.0"
__all__ = [
    "Actor",
    "ApprovalPipeline",
    "AuditAction",
    "AuditEntry",
    "DataKind",
    "FieldKind",
    "Forbidden",
    "Invalid",
    "InvalidTransition",
    "Locked",
    "MissingReason",
    "OutOfOrder",
    "PermissionGate",
    "PipelineStatus",
    "RoleMatrixGate",
    "StepDefinition",
    "TemplateRegistry",
    "UnknownWorkflow",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowInstance",
    "WorkflowService",
    "get_ledger",
    "get_repository",
    "is_step_valid",
]
