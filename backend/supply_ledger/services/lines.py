from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Sequence, TypeVar

from ..errors import ErrorKind, ServiceError, not_found

RowT = TypeVar("RowT")
InputT = TypeVar("InputT")


def apply_changes(obj: Any, values: Mapping[str, Any]) -> bool:
    """Assign only the attributes whose value differs; report whether any did."""
    changed = False
    for attr, value in values.items():
        if getattr(obj, attr) != value:
            setattr(obj, attr, value)
            changed = True
    return changed


@dataclass
class LinePlan(Generic[RowT, InputT]):
    to_delete: list[RowT] = field(default_factory=list)
    to_insert: list[tuple[int, InputT]] = field(default_factory=list)
    to_update: list[tuple[int, RowT, InputT]] = field(default_factory=list)

    @property
    def deleted_ids(self) -> list[str]:
        return [row.id for row in self.to_delete]  # type: ignore[attr-defined]


def plan_replacement(
    existing: Sequence[RowT],
    submitted: Sequence[InputT],
    *,
    entity: str,
) -> LinePlan[RowT, InputT]:
    """Split a submitted line list against the stored lines of one parent.

    Lines without an id become inserts, lines with a known id become updates
    and stored lines missing from the submission become deletes. Positions
    follow the submission order.
    """
    by_id = {row.id: row for row in existing}  # type: ignore[attr-defined]
    plan: LinePlan[RowT, InputT] = LinePlan()
    seen: set[str] = set()

    for position, line in enumerate(submitted):
        line_id = getattr(line, "id", None)
        if not line_id:
            plan.to_insert.append((position, line))
            continue
        if line_id in seen:
            raise ServiceError(
                ErrorKind.VALIDATION_FAILED,
                "Рядок передано двічі",
                {"id": line_id},
            )
        seen.add(line_id)
        row = by_id.get(line_id)
        if row is None:
            raise not_found(entity, line_id)
        plan.to_update.append((position, row, line))

    plan.to_delete = [row for row_id, row in by_id.items() if row_id not in seen]
    return plan
