from dataclasses import asdict, dataclass
from typing import Any, Dict, NamedTuple, Optional


def last_name(candidate: str) -> str:
    """Last whitespace-separated word of a candidate name."""
    parts = candidate.split()
    return parts[-1] if parts else candidate


@dataclass(frozen=True)
class VoteRecord:
    """Votes for one candidate in one round, as parsed."""

    round: int
    candidate: str
    votes: int


@dataclass(frozen=True)
class TransferRecord:
    """Votes moved from the candidate eliminated in `round` into round + 1."""

    round: int
    from_candidate: str
    to_candidate: str
    votes: int


@dataclass(frozen=True)
class VoteBlock:
    """A VoteRecord placed on the canvas."""

    round: int
    candidate: str
    votes: int
    y1: float
    y2: float
    eliminated: bool = False

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def element_id(self) -> str:
        return f"votes:{self.round}:{self.candidate}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["id"] = self.element_id
        return data


@dataclass(frozen=True)
class CarryoverRecord:
    """Votes a continuing candidate keeps from `round` into round + 1."""

    round: int
    from_candidate: str
    to_candidate: str
    votes: int


class Anchor(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class FlowLink:
    """
    A drawable link between two vote blocks in adjacent rounds.

    `source` sits on the right edge of the block in `round`, `target` on the
    left edge of the block in round + 1; both are at the vertical center of
    the link, whose stroke is `thickness` wide.
    """

    kind: str  # "carryover" or "transfer"
    round: int
    from_candidate: str
    to_candidate: str
    votes: int
    source: Anchor
    target: Anchor
    thickness: float
    percentage: Optional[float] = None
    exhausted: bool = False

    @property
    def element_id(self) -> str:
        return f"{self.kind}:{self.round}:{self.from_candidate}->{self.to_candidate}"

    @property
    def percentage_id(self) -> str:
        return f"transfer-percentage:{self.round}:{self.to_candidate}"

    @property
    def source_span(self):
        half = self.thickness / 2
        return (self.source.y - half, self.source.y + half)

    @property
    def target_span(self):
        half = self.thickness / 2
        return (self.target.y - half, self.target.y + half)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.element_id,
            "kind": self.kind,
            "round": self.round,
            "from": self.from_candidate,
            "to": self.to_candidate,
            "votes": self.votes,
            "source": self.source._asdict(),
            "target": self.target._asdict(),
            "thickness": self.thickness,
            "percentage": self.percentage,
            "exhausted": self.exhausted,
        }


@dataclass(frozen=True)
class Finalist:
    candidate: str
    votes: int
    share: float
    y1: float
