"""Normalization and merging of step payloads.

Step data reaches the engine in several historical shapes: a bare value for a
single-field step, a list of ``{"key", "value"}`` pairs for checklists, a list
of room records or a keyed map for per-room data, and category data given as a
bare image list or as an ``{"images", "params"}`` object. Everything is turned
into one of the tagged payload variants here, so validation never has to
inspect runtime shapes.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union

from .contracts import (
    CategoryData,
    ChecklistPayload,
    DataKind,
    SinglePayload,
    StepDefinition,
    SubUnitPayload,
    SubUnitRecord,
)
from .errors import MalformedPayload

Payload = Union[SinglePayload, ChecklistPayload, SubUnitPayload]

_PAYLOAD_TYPES = {
    DataKind.SINGLE: SinglePayload,
    DataKind.CHECKLIST: ChecklistPayload,
    DataKind.PER_SUB_UNIT: SubUnitPayload,
}

_SUB_UNIT_KEYS = ("sub_unit_id", "subUnitId", "room", "roomNumber", "device_id", "deviceId")
_RESERVED_RECORD_KEYS = set(_SUB_UNIT_KEYS) | {"categories"}


def normalize_payload(definition: StepDefinition, raw: Any) -> Payload:
    """Convert ``raw`` into the payload variant declared by ``definition``."""
    expected = _PAYLOAD_TYPES[definition.data_kind]
    if isinstance(raw, (SinglePayload, ChecklistPayload, SubUnitPayload)):
        if not isinstance(raw, expected):
            raise MalformedPayload(
                f"step '{definition.name}' expects {definition.data_kind.value} data, "
                f"got {raw.kind}"
            )
        return raw.model_copy(deep=True)
    if raw is None:
        return expected()
    if definition.data_kind is DataKind.SINGLE:
        return SinglePayload(values=_single_values(definition, raw))
    if definition.data_kind is DataKind.CHECKLIST:
        return ChecklistPayload(items=_checklist_items(definition, raw))
    return SubUnitPayload(records=_sub_unit_records(definition, raw))


def _single_values(definition: StepDefinition, raw: Any) -> Dict[str, Any]:
    if isinstance(raw, Mapping):
        if raw.get("kind") == DataKind.SINGLE.value and "values" in raw:
            return dict(raw["values"])
        return dict(raw)
    if len(definition.required_fields) == 1:
        return {definition.required_fields[0].key: raw}
    raise MalformedPayload(
        f"step '{definition.name}' has {len(definition.required_fields)} fields; "
        "a bare value is ambiguous"
    )


def _checklist_items(definition: StepDefinition, raw: Any) -> Dict[str, Any]:
    if isinstance(raw, Mapping):
        if raw.get("kind") == DataKind.CHECKLIST.value and "items" in raw:
            return dict(raw["items"])
        return dict(raw)
    if isinstance(raw, list):
        items: Dict[str, Any] = {}
        for entry in raw:
            if not isinstance(entry, Mapping):
                raise MalformedPayload(f"checklist entry {entry!r} is not an object")
            key = entry.get("key", entry.get("id", entry.get("label")))
            if key is None:
                raise MalformedPayload(f"checklist entry {dict(entry)!r} has no key")
            items[str(key)] = entry.get("value")
        return items
    raise MalformedPayload(f"step '{definition.name}' cannot read checklist from {type(raw).__name__}")


def _sub_unit_records(definition: StepDefinition, raw: Any) -> Dict[str, SubUnitRecord]:
    if isinstance(raw, Mapping) and raw.get("kind") == DataKind.PER_SUB_UNIT.value:
        raw = raw.get("records", {})
    records: Dict[str, SubUnitRecord] = {}
    if isinstance(raw, Mapping):
        for sub_unit_id, record in raw.items():
            records[str(sub_unit_id)] = _record(str(sub_unit_id), record)
    elif isinstance(raw, list):
        for record in raw:
            if isinstance(record, SubUnitRecord):
                records[record.sub_unit_id] = record.model_copy(deep=True)
                continue
            if not isinstance(record, Mapping):
                raise MalformedPayload(f"sub-unit entry {record!r} is not an object")
            sub_unit_id = next((record[k] for k in _SUB_UNIT_KEYS if record.get(k) is not None), None)
            if sub_unit_id is None:
                raise MalformedPayload(f"sub-unit entry {dict(record)!r} has no identifier")
            records[str(sub_unit_id)] = _record(str(sub_unit_id), record)
    else:
        raise MalformedPayload(
            f"step '{definition.name}' cannot read sub-unit data from {type(raw).__name__}"
        )
    return records


def _record(sub_unit_id: str, raw: Any) -> SubUnitRecord:
    if isinstance(raw, SubUnitRecord):
        return raw.model_copy(deep=True)
    if not isinstance(raw, Mapping):
        raise MalformedPayload(f"data for sub-unit '{sub_unit_id}' is not an object")
    if "categories" in raw and isinstance(raw["categories"], Mapping):
        source = raw["categories"]
    else:
        source = {k: v for k, v in raw.items() if k not in _RESERVED_RECORD_KEYS}
    return SubUnitRecord(
        sub_unit_id=sub_unit_id,
        categories={str(name): _category(sub_unit_id, str(name), data) for name, data in source.items()},
    )


def _category(sub_unit_id: str, name: str, raw: Any) -> CategoryData:
    if isinstance(raw, CategoryData):
        return raw.model_copy(deep=True)
    if raw is None:
        return CategoryData()
    # Early records stored a plain list of image urls per category.
    if isinstance(raw, list):
        return CategoryData(media=[str(ref) for ref in raw])
    if isinstance(raw, Mapping):
        media = raw.get("media", raw.get("images", [])) or []
        if isinstance(media, str):
            media = [media]
        return CategoryData(media=[str(ref) for ref in media], params=dict(raw.get("params") or {}))
    raise MalformedPayload(f"category '{name}' of sub-unit '{sub_unit_id}' has unreadable data")


def merge_payload(definition: StepDefinition, current: Payload, patch: Any) -> Payload:
    """Return a new payload with ``patch`` merged into ``current``.

    Merging is additive: single fields and checklist items are replaced per
    key, per-sub-unit media is appended without duplicates and parameters are
    merged per key. Sub-units and categories absent from the patch are left
    untouched. ``current`` is never modified.
    """
    incoming = normalize_payload(definition, patch)
    merged = current.model_copy(deep=True)
    if isinstance(merged, SinglePayload):
        merged.values.update(incoming.values)
    elif isinstance(merged, ChecklistPayload):
        merged.items.update(incoming.items)
    else:
        for sub_unit_id, record in incoming.records.items():
            target = merged.records.setdefault(sub_unit_id, SubUnitRecord(sub_unit_id=sub_unit_id))
            for name, data in record.categories.items():
                category = target.categories.setdefault(name, CategoryData())
                for ref in data.media:
                    if ref not in category.media:
                        category.media.append(ref)
                category.params.update(data.params)
    return merged


def without_media(current: SubUnitPayload, sub_unit_id: str, category: str, ref: str) -> SubUnitPayload:
    """Return a copy of ``current`` with one media reference removed."""
    updated = current.model_copy(deep=True)
    record = updated.records.get(sub_unit_id)
    if record is None or category not in record.categories:
        return updated
    data = record.categories[category]
    data.media = [m for m in data.media if m != ref]
    return updated


__all__ = ["Payload", "normalize_payload", "merge_payload", "without_media"]
