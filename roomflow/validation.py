"""Step validation: decides whether a step's data is complete."""

from __future__ import annotations

from typing import Any, List

from .contracts import (
    CategoryData,
    CategoryRequirement,
    ChecklistPayload,
    DataKind,
    FieldKind,
    FieldSpec,
    Gap,
    SinglePayload,
    StepDefinition,
    SubUnitPayload,
)
from .payloads import Payload


def is_filled(spec: FieldSpec, value: Any) -> bool:
    """Return ``True`` when ``value`` counts as filled for ``spec``.

    Boolean fields only need to be defined, so ``False`` is an answer.
    """
    if spec.kind is FieldKind.BOOLEAN:
        return value is not None
    if spec.kind is FieldKind.CONFIRM:
        return value is True
    if spec.kind is FieldKind.MEDIA:
        return isinstance(value, list) and len(value) > 0
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


class SubUnitAggregator:
    """Reduces per-sub-unit checks into one step-level answer."""

    def gaps(self, definition: StepDefinition, payload: SubUnitPayload) -> List[Gap]:
        gaps: List[Gap] = []
        for sub_unit_id in definition.sub_units:
            record = payload.records.get(sub_unit_id)
            for requirement in definition.categories:
                data = record.categories.get(requirement.name) if record else None
                gaps.extend(self._category_gaps(sub_unit_id, requirement, data or CategoryData()))
        return gaps

    def aggregate(self, definition: StepDefinition, payload: SubUnitPayload) -> bool:
        """``True`` when every sub-unit satisfies every category.

        No sub-units or no categories means there is nothing to collect, so
        the step is complete.
        """
        return not self.gaps(definition, payload)

    @staticmethod
    def _category_gaps(
        sub_unit_id: str, requirement: CategoryRequirement, data: CategoryData
    ) -> List[Gap]:
        gaps: List[Gap] = []
        if len(data.media) < requirement.min_media:
            gaps.append(
                Gap(
                    message=(
                        f"{sub_unit_id}/{requirement.name}: needs {requirement.min_media} "
                        f"image(s), has {len(data.media)}"
                    ),
                    sub_unit=sub_unit_id,
                    category=requirement.name,
                )
            )
        for param in requirement.params:
            if not is_filled(param, data.params.get(param.key)):
                gaps.append(
                    Gap(
                        message=f"{sub_unit_id}/{requirement.name}: '{param.label or param.key}' missing",
                        field=param.key,
                        sub_unit=sub_unit_id,
                        category=requirement.name,
                    )
                )
        return gaps


class StepValidator:
    """Pure predicate over a step definition and its current payload."""

    def __init__(self, aggregator: SubUnitAggregator | None = None) -> None:
        self._aggregator = aggregator or SubUnitAggregator()

    def gaps(self, definition: StepDefinition, payload: Payload) -> List[Gap]:
        """List everything that keeps ``payload`` from completing the step."""
        if definition.data_kind is DataKind.SINGLE:
            if not isinstance(payload, SinglePayload):
                return [Gap(message=f"step '{definition.name}' holds {payload.kind} data")]
            return self._field_gaps(definition.required_fields, payload.values)
        if definition.data_kind is DataKind.CHECKLIST:
            if not isinstance(payload, ChecklistPayload):
                return [Gap(message=f"step '{definition.name}' holds {payload.kind} data")]
            return self._field_gaps(definition.required_fields, payload.items)
        if not isinstance(payload, SubUnitPayload):
            return [Gap(message=f"step '{definition.name}' holds {payload.kind} data")]
        return self._aggregator.gaps(definition, payload)

    def is_valid(self, definition: StepDefinition, payload: Payload) -> bool:
        return not self.gaps(definition, payload)

    @staticmethod
    def _field_gaps(fields: List[FieldSpec], values: dict) -> List[Gap]:
        return [
            Gap(message=f"'{spec.label or spec.key}' missing", field=spec.key)
            for spec in fields
            if not is_filled(spec, values.get(spec.key))
        ]


_default_validator = StepValidator()


def is_step_valid(definition: StepDefinition, payload: Payload) -> bool:
    """Module-level shortcut for :meth:`StepValidator.is_valid`."""
    return _default_validator.is_valid(definition, payload)


def step_gaps(definition: StepDefinition, payload: Payload) -> List[Gap]:
    return _default_validator.gaps(definition, payload)


__all__ = [
    "StepValidator",
    "SubUnitAggregator",
    "is_filled",
    "is_step_valid",
    "step_gaps",
]
