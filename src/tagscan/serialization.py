"""Scan result serialization: JSON-compatible dicts for entities and results.

Useful for:
- Feeding tag reports to other tools (ownership dashboards, linters)
- Snapshotting scan output in tests
- Debugging and inspection

All output is deterministic (sorted keys, sorted tag values).

Example:
    from tagscan import scan
    from tagscan.serialization import to_json

    result = scan("# @domain: Billing\\nmodule Invoices\\nend\\n")
    print(to_json(result, indent=2))

Thread Safety:
    All functions are pure; safe to call from any thread. Serializing an
    entity that another thread is still scanning gives a torn snapshot.

"""

import json
from typing import Any

from tagscan.entity import TaggableEntity
from tagscan.location import SourceLocation
from tagscan.scanner import ScanResult


def to_dict(obj: TaggableEntity | ScanResult) -> dict[str, Any]:
    """Convert an entity or a scan result to a JSON-compatible dict.

    Entities reference their parent by id, so a result serializes as a flat
    list in construction order.

    Args:
        obj: A TaggableEntity or ScanResult.

    Returns:
        Dict of primitives, lists and dicts only.

    Raises:
        TypeError: For any other object.

    """
    if isinstance(obj, ScanResult):
        return _result_to_dict(obj)
    if isinstance(obj, TaggableEntity):
        return _entity_to_dict(obj)
    msg = f"Cannot serialize {type(obj).__name__}"
    raise TypeError(msg)


def _entity_to_dict(entity: TaggableEntity) -> dict[str, Any]:
    parent = entity.parent
    return {
        "id": entity.id,
        "name": entity.name,
        "fqn": entity.fqn,
        "type": entity.type.value,
        "status": entity.status.value,
        "tags": {tag: sorted(values) for tag, values in entity.tags.items()},
        "parent_id": parent.id if parent is not None else None,
        "location": _location_to_dict(entity.location),
    }


def _location_to_dict(location: SourceLocation) -> dict[str, Any] | None:
    if location.lineno == 0:
        return None
    return {
        "lineno": location.lineno,
        "col_offset": location.col_offset,
        "source_file": location.source_file,
    }


def _result_to_dict(result: ScanResult) -> dict[str, Any]:
    return {
        "source_file": result.source_file,
        "token_count": result.token_count,
        "skipped_tokens": result.skipped_tokens,
        "entities": [_entity_to_dict(entity) for entity in result.entities],
    }


def to_json(result: ScanResult | TaggableEntity, *, indent: int | None = None) -> str:
    """Serialize a scan result (or a single entity) to a JSON string.

    Output is deterministic (sorted keys).

    Args:
        result: ScanResult or TaggableEntity to serialize.
        indent: JSON indentation level (None for compact).

    Returns:
        JSON string.

    """
    return json.dumps(to_dict(result), sort_keys=True, indent=indent)
