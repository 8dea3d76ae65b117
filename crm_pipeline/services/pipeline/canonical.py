"""Collapse stage rows that share a title into one canonical column.

Stages created under different tenants end up in one pooled board. The first
row met for a title, walking ascending ``order_index`` (ties by id), becomes
the canonical column; every other row with that title is absorbed and only
survives as an entry in ``id_map``.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol


class StageLike(Protocol):
    id: uuid.UUID
    title: str
    order_index: int


def stage_sort_key(stage: StageLike) -> tuple[int, str]:
    return (stage.order_index, str(stage.id))


@dataclass(frozen=True)
class CanonicalStages:
    stages: list = field(default_factory=list)
    id_map: dict[uuid.UUID, uuid.UUID] = field(default_factory=dict)

    @property
    def ids(self) -> set[uuid.UUID]:
        return {stage.id for stage in self.stages}

    def resolve(self, stage_id: uuid.UUID | None) -> uuid.UUID | None:
        """Return the canonical id for ``stage_id``; unknown ids pass through."""
        if stage_id is None:
            return None
        return self.id_map.get(stage_id, stage_id)

    def get(self, stage_id: uuid.UUID | None):
        canonical_id = self.resolve(stage_id)
        for stage in self.stages:
            if stage.id == canonical_id:
                return stage
        return None

    def first(self):
        return self.stages[0] if self.stages else None

    def by_title(self, title: str):
        for stage in self.stages:
            if stage.title == title:
                return stage
        return None


def canonicalize(stages: Iterable[StageLike]) -> CanonicalStages:
    canonical_by_title: dict[str, StageLike] = {}
    id_map: dict[uuid.UUID, uuid.UUID] = {}
    for stage in sorted(stages, key=stage_sort_key):
        if stage.title not in canonical_by_title:
            canonical_by_title[stage.title] = stage
        id_map[stage.id] = canonical_by_title[stage.title].id
    canonical = sorted(canonical_by_title.values(), key=stage_sort_key)
    return CanonicalStages(stages=canonical, id_map=id_map)
