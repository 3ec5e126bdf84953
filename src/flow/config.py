import logging
import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

NOT_TRANSFERRED = "Not Transferred"

TIE_BREAKS = ("arrival", "name")


@dataclass(frozen=True)
class FlowConfig:
    """
    Layout configuration shared by every pipeline stage.

    Canvas defaults match an 800x550 chart with a 125/50 px horizontal and
    35/60 px vertical margin.
    """

    starting_round: int = 1
    final_round: Optional[int] = None  # None: last round in the votes table
    width: float = 625.0
    height: float = 455.0
    bar_width: float = 15.0
    sentinel: str = NOT_TRANSFERRED
    tie_break: str = "arrival"
    strict: bool = True

    def __post_init__(self):
        if self.final_round is not None and self.final_round < self.starting_round:
            raise ValueError(
                f"final_round ({self.final_round}) precedes starting_round ({self.starting_round})"
            )
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Canvas width and height must be positive")
        if self.tie_break not in TIE_BREAKS:
            raise ValueError(
                f"Unknown tie_break '{self.tie_break}', expected one of {TIE_BREAKS}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "FlowConfig":
        """
        Build a configuration from RCV_FLOW_* environment variables.

        Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        kwargs = {}

        for name, convert in (
            ("starting_round", int),
            ("final_round", int),
            ("width", float),
            ("height", float),
            ("bar_width", float),
            ("sentinel", str),
            ("tie_break", str),
        ):
            raw = environ.get(f"RCV_FLOW_{name.upper()}")
            if raw not in (None, ""):
                kwargs[name] = convert(raw)

        strict = environ.get("RCV_FLOW_STRICT")
        if strict not in (None, ""):
            kwargs["strict"] = strict.strip().lower() not in ("0", "false", "no", "off")

        config = cls(**kwargs)
        logger.debug(f"Loaded flow configuration from environment: {config}")
        return config

    def with_final_round(self, final_round: int) -> "FlowConfig":
        """Return a copy with the final round pinned."""
        return replace(self, final_round=final_round)


@dataclass(frozen=True)
class LinearScale:
    """Maps vote counts onto canvas pixels. Shared by every round."""

    domain: Tuple[float, float]
    range: Tuple[float, float]

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d1 == d0:
            return (r0 + r1) / 2
        return r0 + (value - d0) * (r1 - r0) / (d1 - d0)


@dataclass(frozen=True)
class BandScale:
    """Evenly spaced horizontal bands, one per round, without padding."""

    domain: Tuple[int, ...]
    range: Tuple[float, float]
    _index: Dict[int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, "_index", {value: i for i, value in enumerate(self.domain)}
        )

    @classmethod
    def for_rounds(cls, rounds: Sequence[int], width: float) -> "BandScale":
        return cls(domain=tuple(sorted(set(rounds))), range=(0.0, width))

    @property
    def step(self) -> float:
        if not self.domain:
            return 0.0
        return (self.range[1] - self.range[0]) / len(self.domain)

    def __call__(self, value: int) -> float:
        if value not in self._index:
            raise KeyError(f"Round {value} is not part of the layout")
        return self.range[0] + self._index[value] * self.step
