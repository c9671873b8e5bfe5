"""Signal data models.

An evaluation pass produces exactly one of four variants per symbol and
direction. Consumers match on the variant type instead of probing optional
fields:

- NoSignal: insufficient data, trend gate failed, or score too low
- ValidSignal: actionable signal with entry/target/stop
- AlmostSignal: short-side near miss (trend and momentum, no oscillator turn)
- RiskySignal: would have qualified, but the stop-hunt score vetoed it
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Direction(str, Enum):
    """Trade direction."""

    LONG = "long"
    SHORT = "short"


class Grade(str, Enum):
    """Coarse label derived from the numeric score."""

    STRONG = "Strong"
    GOOD = "Good"
    ALMOST = "Almost"
    RISKY = "Risky"
    NONE = "–"


# Named boolean predicates of one evaluation pass
FlagSet = dict[str, bool]


@dataclass(slots=True, frozen=True)
class IndicatorSnapshot:
    """Indicator values derived from one (primary, reference) series pair."""

    rsi: float
    rsi_previous: float | None
    rsi_sma: float
    cmo: float
    cmo_previous: float | None


class _SignalBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    direction: Direction
    notes: tuple[str, ...] = ()
    flags: FlagSet = Field(default_factory=dict)


class NoSignal(_SignalBase):
    """Evaluation produced nothing actionable."""

    kind: Literal["none"] = "none"
    reason: str = ""


class SignalData(_SignalBase):
    """Fields shared by every variant that carries a score."""

    score: int = Field(ge=0, le=10)
    grade: Grade
    stop_hunt_probability: int = Field(default=0, ge=0, le=100)
    rsi: float
    rsi_sma: float
    cmo: float
    updated_at: datetime
    entry: float | None = None
    target: float | None = None
    stop: float | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return self.kind == "valid"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def almost(self) -> bool:
        return self.kind == "almost"


class ValidSignal(SignalData):
    kind: Literal["valid"] = "valid"
    entry: float
    target: float
    stop: float


class AlmostSignal(SignalData):
    kind: Literal["almost"] = "almost"
    entry: float
    target: float
    stop: float


class RiskySignal(SignalData):
    """Stop-hunt risk override; trade levels are deliberately omitted."""

    kind: Literal["risky"] = "risky"
    grade: Grade = Grade.RISKY


Signal = Annotated[
    Union[NoSignal, ValidSignal, AlmostSignal, RiskySignal],
    Field(discriminator="kind"),
]

ACTIONABLE_SIGNALS = (ValidSignal, AlmostSignal, RiskySignal)
