"""Core data contracts for roomflow workflows."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

AssetRef = str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DataKind(str, Enum):
    """Shape of the data collected by a step."""

    SINGLE = "single"
    CHECKLIST = "checklist"
    PER_SUB_UNIT = "per_sub_unit"


class FieldKind(str, Enum):
    """How a field decides whether it has been filled in."""

    TEXT = "text"
    BOOLEAN = "boolean"
    CONFIRM = "confirm"
    MEDIA = "media"


class FieldSpec(BaseModel):
    """A required field, checklist item or category parameter."""

    key: str
    label: Optional[str] = None
    kind: FieldKind = FieldKind.TEXT


def _coerce_fields(value: Any) -> Any:
    if isinstance(value, list):
        return [{"key": item} if isinstance(item, str) else item for item in value]
    return value


class CategoryRequirement(BaseModel):
    """What every sub-unit must provide for one category (module)."""

    name: str
    min_media: int = Field(default=1, ge=0)
    params: List[FieldSpec] = Field(default_factory=list)

    @field_validator("params", mode="before")
    @classmethod
    def _plain_param_keys(cls, v: Any) -> Any:
        return _coerce_fields(v)


class StepDefinition(BaseModel):
    """Immutable description of one step in a workflow template."""

    index: int
    name: str
    data_kind: DataKind
    required_fields: List[FieldSpec] = Field(default_factory=list)
    sub_units: List[str] = Field(default_factory=list)
    categories: List[CategoryRequirement] = Field(default_factory=list)
    label: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("required_fields", mode="before")
    @classmethod
    def _plain_field_keys(cls, v: Any) -> Any:
        return _coerce_fields(v)


class SinglePayload(BaseModel):
    kind: Literal["single"] = "single"
    values: Dict[str, Any] = Field(default_factory=dict)


class ChecklistPayload(BaseModel):
    kind: Literal["checklist"] = "checklist"
    items: Dict[str, Any] = Field(default_factory=dict)


class CategoryData(BaseModel):
    """Media and parameters captured for one category of a sub-unit."""

    media: List[AssetRef] = Field(default_factory=list)
    params: Dict[str, Any] = Field(default_factory=dict)


class SubUnitRecord(BaseModel):
    """Data captured for one room or device within a per-sub-unit step."""

    sub_unit_id: str
    categories: Dict[str, CategoryData] = Field(default_factory=dict)


class SubUnitPayload(BaseModel):
    kind: Literal["per_sub_unit"] = "per_sub_unit"
    records: Dict[str, SubUnitRecord] = Field(default_factory=dict)


StepPayload = Annotated[
    Union[SinglePayload, ChecklistPayload, SubUnitPayload],
    Field(discriminator="kind"),
]


def empty_payload(kind: DataKind) -> Union[SinglePayload, ChecklistPayload, SubUnitPayload]:
    """Return an empty payload of the variant matching ``kind``."""
    if kind is DataKind.SINGLE:
        return SinglePayload()
    if kind is DataKind.CHECKLIST:
        return ChecklistPayload()
    return SubUnitPayload()


class StepState(BaseModel):
    """Mutable state of one step within a workflow instance."""

    index: int
    payload: StepPayload
    completed: bool = False
    completed_at: Optional[datetime] = None
    operator: Optional[str] = None


class Gap(BaseModel):
    """One reason a step cannot be completed yet."""

    message: str
    field: Optional[str] = None
    sub_unit: Optional[str] = None
    category: Optional[str] = None


class Actor(BaseModel):
    """Display name and role of whoever performs an action."""

    name: str
    role: str = ""

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return self.name


class AuditAction(str, Enum):
    COMPLETE = "complete"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    RESET = "reset"
    SUPERSEDE = "supersede"


class AuditEntry(BaseModel):
    """Immutable record of one status-changing action."""

    sequence: Optional[int] = None
    unit_ref: str
    workflow_id: Optional[str] = None
    resource_type: str
    actor: str
    action: AuditAction
    ref: str
    timestamp: datetime = Field(default_factory=utc_now)
    reason: Optional[str] = None
    status_after: Optional[str] = None
    stage_after: Optional[int] = None

    model_config = {"frozen": True}
