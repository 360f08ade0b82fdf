"""Value types held per metronome profile."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

ProfileId = str

DEFAULT_TITLE = "Unnamed Profile"
DEFAULT_DESCRIPTION = ""
DEFAULT_TEMPO = 120
DEFAULT_TRAINER_START = 80
DEFAULT_TRAINER_TARGET = 160
DEFAULT_TRAINER_ACCEL = 10

# Character limits of header fields.
TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1024

MIN_TEMPO = 30
MAX_TEMPO = 250
MIN_TRAINER_ACCEL = 1
MAX_TRAINER_ACCEL = 1000

NO_DIVISION = 0
SIMPLE_DIVISION = 2
COMPOUND_DIVISION = 3
MAX_BEATS = 12
MAX_DIVISION = 4


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(int(value), low), high)


class Accent(IntEnum):
    """Emphasis level of one subdivision pulse."""

    OFF = 0
    WEAK = 1
    MID = 2
    STRONG = 3

    @classmethod
    def clamp(cls, level: int) -> Accent:
        """Return the accent nearest to an arbitrary integer level."""
        return cls(_clamp(level, cls.OFF, cls.STRONG))


@dataclass(frozen=True)
class Meter:
    """Time signature: beats per measure, subdivision and per-pulse accents.

    A meter normalizes itself on construction: `beats` is clamped to
    `1..MAX_BEATS`, `division` to `0..MAX_DIVISION` (0 meaning no
    subdivision), and `accents` holds exactly `pulse_count` entries,
    truncated or padded with `Accent.OFF`.
    """

    beats: int = 4
    division: int = SIMPLE_DIVISION
    accents: tuple[Accent, ...] = ()

    def __post_init__(self) -> None:
        beats = _clamp(self.beats, 1, MAX_BEATS)
        division = _clamp(self.division, NO_DIVISION, MAX_DIVISION)
        pulses = beats * max(division, 1)
        accents = [Accent.clamp(level) for level in self.accents[:pulses]]
        accents.extend([Accent.OFF] * (pulses - len(accents)))
        object.__setattr__(self, "beats", beats)
        object.__setattr__(self, "division", division)
        object.__setattr__(self, "accents", tuple(accents))

    @property
    def pulse_count(self) -> int:
        """Number of subdivided pulses in one measure."""
        return self.beats * max(self.division, 1)


def _preset(beats: int, division: int) -> Meter:
    """Build a preset meter: first pulse of every beat accented, downbeat strongest."""
    accents: list[Accent] = []
    for beat in range(beats):
        if beat == 0 and beats > 1:
            accents.append(Accent.STRONG)
        else:
            accents.append(Accent.MID)
        accents.extend([Accent.OFF] * (division - 1))
    return Meter(beats=beats, division=division, accents=tuple(accents))


METER_1_SIMPLE = _preset(1, SIMPLE_DIVISION)
METER_2_SIMPLE = _preset(2, SIMPLE_DIVISION)
METER_3_SIMPLE = _preset(3, SIMPLE_DIVISION)
METER_4_SIMPLE = _preset(4, SIMPLE_DIVISION)
METER_1_COMPOUND = _preset(1, COMPOUND_DIVISION)
METER_2_COMPOUND = _preset(2, COMPOUND_DIVISION)
METER_3_COMPOUND = _preset(3, COMPOUND_DIVISION)
METER_4_COMPOUND = _preset(4, COMPOUND_DIVISION)

# On-disk slot names in serialization order.
METER_SLOTS: tuple[str, ...] = (
    "meter-1-simple",
    "meter-2-simple",
    "meter-3-simple",
    "meter-4-simple",
    "meter-1-compound",
    "meter-2-compound",
    "meter-3-compound",
    "meter-4-compound",
    "meter-custom",
)

DEFAULT_METER_SELECT = "meter-4-simple"


def slot_attribute(slot: str) -> str:
    """Map an on-disk slot name such as `meter-2-simple` to its `Content` field."""
    if slot not in METER_SLOTS:
        raise KeyError(slot)
    return slot.replace("-", "_")


@dataclass(frozen=True)
class Header:
    """Display metadata of a profile."""

    title: str = DEFAULT_TITLE
    description: str = DEFAULT_DESCRIPTION

    def __post_init__(self) -> None:
        object.__setattr__(self, "title", self.title[:TITLE_MAX_LENGTH])
        object.__setattr__(self, "description", self.description[:DESCRIPTION_MAX_LENGTH])


@dataclass(frozen=True)
class Content:
    """Musical configuration of a profile."""

    tempo: int = DEFAULT_TEMPO

    meter_enabled: bool = False
    meter_select: str = DEFAULT_METER_SELECT
    meter_1_simple: Meter = METER_1_SIMPLE
    meter_2_simple: Meter = METER_2_SIMPLE
    meter_3_simple: Meter = METER_3_SIMPLE
    meter_4_simple: Meter = METER_4_SIMPLE
    meter_1_compound: Meter = METER_1_COMPOUND
    meter_2_compound: Meter = METER_2_COMPOUND
    meter_3_compound: Meter = METER_3_COMPOUND
    meter_4_compound: Meter = METER_4_COMPOUND
    meter_custom: Meter = METER_4_SIMPLE

    trainer_enabled: bool = False
    trainer_start: int = DEFAULT_TRAINER_START
    trainer_target: int = DEFAULT_TRAINER_TARGET
    trainer_accel: int = DEFAULT_TRAINER_ACCEL

    def __post_init__(self) -> None:
        """Clamp tempos and acceleration into range and trim the slot name."""
        object.__setattr__(self, "tempo", _clamp(self.tempo, MIN_TEMPO, MAX_TEMPO))
        object.__setattr__(self, "meter_select", self.meter_select.strip())
        object.__setattr__(self, "trainer_start", _clamp(self.trainer_start, MIN_TEMPO, MAX_TEMPO))
        object.__setattr__(self, "trainer_target", _clamp(self.trainer_target, MIN_TEMPO, MAX_TEMPO))
        object.__setattr__(
            self, "trainer_accel", _clamp(self.trainer_accel, MIN_TRAINER_ACCEL, MAX_TRAINER_ACCEL)
        )

    def meter(self, slot: str) -> Meter:
        """Return the meter stored in a named slot."""
        meter: Meter = getattr(self, slot_attribute(slot))
        return meter

    def meters(self) -> list[tuple[str, Meter]]:
        """Return all `(slot, meter)` pairs in serialization order."""
        return [(slot, self.meter(slot)) for slot in METER_SLOTS]


@dataclass(frozen=True)
class Profile:
    """Full configuration record."""

    header: Header = field(default_factory=Header)
    content: Content = field(default_factory=Content)


@dataclass(frozen=True)
class Primer:
    """Identifier and header of a stored profile, used for listing."""

    id: ProfileId
    header: Header
