"""Stage kind heuristics.

Boards built before stages carried an explicit kind are classified from the
column title. The positional fallback targets the conventional six column
pipeline (New, Contacted, No Response, Proposal, Won, Lost) where the fifth
column is the won one; it means nothing on longer pipelines.
"""

from __future__ import annotations

from crm_pipeline.models.enums import StageKind

WON_KEYWORDS = ("ganho", "won", "fechado")
LOST_KEYWORDS = ("perdido", "lost")
NEW_KEYWORDS = ("novos",)
POTENTIAL_KEYWORDS = ("proposta", "enviada")

WON_FALLBACK_ORDER = 4
NEW_FALLBACK_ORDER = 0


def _normalize(title: str | None) -> str:
    return (title or "").lower().strip()


def _contains_any(title: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in title for keyword in keywords)


def is_won_title(title: str | None, order_index: int) -> bool:
    normalized = _normalize(title)
    if _contains_any(normalized, WON_KEYWORDS):
        return True
    return order_index == WON_FALLBACK_ORDER and not _contains_any(normalized, LOST_KEYWORDS)


def is_lost_title(title: str | None) -> bool:
    return _contains_any(_normalize(title), LOST_KEYWORDS)


def is_new_title(title: str | None, order_index: int) -> bool:
    return _contains_any(_normalize(title), NEW_KEYWORDS) or order_index == NEW_FALLBACK_ORDER


def is_potential_title(title: str | None) -> bool:
    return _contains_any(_normalize(title), POTENTIAL_KEYWORDS)


def classify_title(title: str | None, order_index: int) -> StageKind:
    if is_won_title(title, order_index):
        return StageKind.won
    if is_lost_title(title):
        return StageKind.lost
    if is_new_title(title, order_index):
        return StageKind.new
    return StageKind.active


def stage_kind(stage) -> StageKind:
    """Stored kind when pinned, otherwise the title heuristic."""
    if getattr(stage, "kind", None) is not None:
        return stage.kind
    return classify_title(stage.title, stage.order_index)
