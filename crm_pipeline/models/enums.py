import enum


class StageKind(enum.Enum):
    new = "new"
    active = "active"
    won = "won"
    lost = "lost"
