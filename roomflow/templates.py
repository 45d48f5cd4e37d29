"""Workflow templates for each kind of unit of work."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from .config import RoomflowConfig
from .constants import FEEDBACK, INSPECTION, INSTALLATION, MEASUREMENT, OPS_STATUS
from .contracts import CategoryRequirement, DataKind, FieldKind, FieldSpec, StepDefinition
from .workflow import WorkflowInstance


class FeedbackMethod(str, Enum):
    """How a device fault ticket is handled."""

    REMOTE = "remote"
    ONSITE = "onsite"
    SELF = "self"


class WorkflowTemplate(BaseModel):
    """Step definitions and review chain for one workflow kind."""

    name: str
    resource_type: str
    description: str = ""
    definitions: List[StepDefinition] = Field(default_factory=list)
    stages: List[str] = Field(min_length=1)

    def instantiate(self, unit_ref: str, attributes: Optional[Dict[str, Any]] = None) -> WorkflowInstance:
        return WorkflowInstance.create(
            unit_ref=unit_ref,
            resource_type=self.resource_type,
            definitions=self.definitions,
            stages=self.stages,
            template=self.name,
            attributes=attributes,
        )


ModuleSpec = Union[str, CategoryRequirement, Dict[str, Any]]
Builder = Callable[..., List[StepDefinition]]


def _steps(*specs: Dict[str, Any]) -> List[StepDefinition]:
    return [StepDefinition(index=i, **spec) for i, spec in enumerate(specs)]


def _category(module: ModuleSpec) -> CategoryRequirement:
    if isinstance(module, CategoryRequirement):
        return module
    if isinstance(module, str):
        return CategoryRequirement(name=module)
    return CategoryRequirement(**module)


def installation_steps(
    rooms: Sequence[str] = (), modules: Iterable[ModuleSpec] = ()
) -> List[StepDefinition]:
    """Store installation: visit, unboxing, per-room install and commissioning, handover.

    ``modules`` are the store's installation-type modules; each becomes a
    category every room must document with at least one photo.
    """
    return _steps(
        {"name": "appointment", "label": "Schedule visit", "data_kind": DataKind.SINGLE,
         "required_fields": ["appointment_time"]},
        {"name": "check_in", "label": "On-site check-in", "data_kind": DataKind.SINGLE,
         "required_fields": ["check_in_time"]},
        {"name": "unboxing", "label": "Unboxing inspection", "data_kind": DataKind.CHECKLIST,
         "required_fields": [
             FieldSpec(key="packaging_intact", label="Packaging intact", kind=FieldKind.BOOLEAN),
             FieldSpec(key="quantity_matches", label="Quantity matches order", kind=FieldKind.BOOLEAN),
             FieldSpec(key="received_by", label="Received by"),
         ]},
        {"name": "installation", "label": "Room installation", "data_kind": DataKind.PER_SUB_UNIT,
         "sub_units": list(rooms), "categories": [_category(m) for m in modules]},
        {"name": "commissioning", "label": "Network and log check", "data_kind": DataKind.PER_SUB_UNIT,
         "sub_units": list(rooms), "categories": [
             CategoryRequirement(
                 name="diagnostics",
                 min_media=0,
                 params=[
                     FieldSpec(key="network", label="Network connectivity", kind=FieldKind.CONFIRM),
                     FieldSpec(key="log", label="Log reporting", kind=FieldKind.CONFIRM),
                 ],
             )
         ]},
        {"name": "handover", "label": "Handover", "data_kind": DataKind.SINGLE,
         "required_fields": [
             FieldSpec(key="acceptance_images", label="Acceptance photos", kind=FieldKind.MEDIA),
             FieldSpec(key="signed_by", label="Signed off by"),
         ]},
    )


def measurement_steps(
    module: ModuleSpec = "measurement",
    rooms: Sequence[str] = (),
    params: Iterable[Union[str, FieldSpec]] = (),
) -> List[StepDefinition]:
    """Room measurement for one module; the remark step is optional."""
    category = _category(module)
    extra = [p if isinstance(p, FieldSpec) else FieldSpec(key=p) for p in params]
    if extra:
        category = category.model_copy(update={"params": list(category.params) + extra})
    return _steps(
        {"name": "capture", "label": "Measurements", "data_kind": DataKind.PER_SUB_UNIT,
         "sub_units": list(rooms), "categories": [category]},
        {"name": "remark", "label": "Remark", "data_kind": DataKind.SINGLE},
    )


def ops_status_steps() -> List[StepDefinition]:
    return _steps(
        {"name": "request", "label": "Status change request", "data_kind": DataKind.CHECKLIST,
         "required_fields": [
             FieldSpec(key="target_status", label="Target status"),
             FieldSpec(key="reason", label="Reason"),
         ]},
    )


DEFAULT_INSPECTION_ITEMS = [
    FieldSpec(key="appearance_ok", label="Appearance", kind=FieldKind.BOOLEAN),
    FieldSpec(key="network_ok", label="Network", kind=FieldKind.BOOLEAN),
    FieldSpec(key="software_version", label="Software version"),
]


def inspection_steps(items: Optional[Iterable[Union[str, FieldSpec]]] = None) -> List[StepDefinition]:
    return _steps(
        {"name": "report", "label": "Inspection report", "data_kind": DataKind.CHECKLIST,
         "required_fields": list(items) if items is not None else list(DEFAULT_INSPECTION_ITEMS)},
    )


def feedback_steps(method: Union[FeedbackMethod, str] = FeedbackMethod.REMOTE) -> List[StepDefinition]:
    """Fault handling steps; the sequence depends on how the fault is handled."""
    method = FeedbackMethod(method)
    result = {"name": "result", "label": "Resolution", "data_kind": DataKind.SINGLE,
              "required_fields": ["result"]}
    if method is FeedbackMethod.REMOTE:
        return _steps(
            {"name": "connection", "label": "Customer call", "data_kind": DataKind.SINGLE,
             "required_fields": ["connection_time"]},
            result,
        )
    if method is FeedbackMethod.ONSITE:
        return _steps(
            {"name": "appointment", "label": "Schedule visit", "data_kind": DataKind.SINGLE,
             "required_fields": ["appointment_time"]},
            {"name": "check_in", "label": "On-site check-in", "data_kind": DataKind.SINGLE,
             "required_fields": ["check_in_time"]},
            {"name": "site_images", "label": "Site photos", "data_kind": DataKind.SINGLE,
             "required_fields": [FieldSpec(key="site_images", label="Site photos", kind=FieldKind.MEDIA)]},
            result,
        )
    return _steps(result)


class TemplateRegistry:
    """Registry of workflow templates with the built-in kinds."""

    def __init__(self, config: Optional[RoomflowConfig] = None, load_builtins: bool = True) -> None:
        self._config = config
        self._builders: Dict[str, tuple[str, str, Builder]] = {}
        if load_builtins:
            self._register_builtins()

    def register(self, name: str, resource_type: str, builder: Builder, description: str = "") -> None:
        """Register ``builder`` producing step definitions for ``name``."""
        if not description and builder.__doc__:
            description = builder.__doc__.strip().splitlines()[0]
        self._builders[name] = (resource_type, description, builder)

    def names(self) -> List[str]:
        return sorted(self._builders)

    def stages_for(self, resource_type: str) -> List[str]:
        return (self._config or RoomflowConfig()).stages_for(resource_type)

    def build(self, name: str, **params: Any) -> WorkflowTemplate:
        """Build the template ``name`` for the given unit parameters."""
        try:
            resource_type, description, builder = self._builders[name]
        except KeyError:
            raise KeyError(f"Unknown template: {name}") from None
        return WorkflowTemplate(
            name=name,
            resource_type=resource_type,
            description=description,
            definitions=builder(**params),
            stages=self.stages_for(resource_type),
        )

    def instantiate(
        self, name: str, unit_ref: str, attributes: Optional[Dict[str, Any]] = None, **params: Any
    ) -> WorkflowInstance:
        return self.build(name, **params).instantiate(unit_ref, attributes=attributes)

    def _register_builtins(self) -> None:
        self.register(INSTALLATION, INSTALLATION, installation_steps)
        self.register(MEASUREMENT, MEASUREMENT, measurement_steps)
        self.register(OPS_STATUS, OPS_STATUS, ops_status_steps, "Device operational status change")
        self.register(INSPECTION, INSPECTION, inspection_steps, "Device inspection report")
        self.register(FEEDBACK, FEEDBACK, feedback_steps)


__all__ = [
    "FeedbackMethod",
    "TemplateRegistry",
    "WorkflowTemplate",
    "feedback_steps",
    "inspection_steps",
    "installation_steps",
    "measurement_steps",
    "ops_status_steps",
]
