"""Isobaric reporter channels and per-spectrum label records.

A Label holds one intensity per reporter channel of the configured reagent
plex. Channels are kept as an ordered list indexed 0..N-1 so every
aggregation (rollup, normalization) iterates the same structure whatever
the plex size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)

# TMT reporter ion theoretical m/z values
TMT_REPORTER_MZ = {
    "126": 126.127726,
    "127N": 127.124761,
    "127C": 127.131081,
    "128N": 128.128116,
    "128C": 128.134436,
    "129N": 129.131471,
    "129C": 129.137790,
    "130N": 130.134825,
    "130C": 130.141145,
    "131N": 131.138180,
    "131C": 131.144500,
    "132N": 132.141535,
    "132C": 132.147855,
    "133N": 133.144890,
    "133C": 133.151210,
    "134N": 134.148245,
}

_TMT16_ORDER = list(TMT_REPORTER_MZ)

# Channel (name, m/z) tables per plex identifier
PLEX_CHANNELS: dict[str, list[tuple[str, float]]] = {
    "6": [
        ("126", TMT_REPORTER_MZ["126"]),
        ("127", TMT_REPORTER_MZ["127N"]),
        ("128", TMT_REPORTER_MZ["128C"]),
        ("129", TMT_REPORTER_MZ["129N"]),
        ("130", TMT_REPORTER_MZ["130C"]),
        ("131", TMT_REPORTER_MZ["131N"]),
    ],
    "10": [(name, TMT_REPORTER_MZ[name]) for name in _TMT16_ORDER[:10]],
    "11": [(name, TMT_REPORTER_MZ[name]) for name in _TMT16_ORDER[:11]],
    "16": [(name, TMT_REPORTER_MZ[name]) for name in _TMT16_ORDER],
}


@dataclass
class Channel:
    """One reporter channel."""

    name: str
    mz: float
    intensity: float = 0.0
    custom_name: str = ""

    @property
    def display_name(self) -> str:
        return self.custom_name or self.name


@dataclass
class Label:
    """Isobaric quantification record for one spectrum or one evidence entity.

    Entity-level labels start without channels and adopt the channel
    layout of the first label accumulated into them.
    """

    scan: str = ""
    index: str = ""
    charge_state: int = 0
    channels: list[Channel] = field(default_factory=list)
    is_used: bool = False

    @property
    def intensities(self) -> np.ndarray:
        return np.array([c.intensity for c in self.channels], dtype=float)

    @property
    def summed_intensity(self) -> float:
        return float(sum(c.intensity for c in self.channels))

    def zero(self) -> None:
        """Reset every channel intensity to 0."""
        for channel in self.channels:
            channel.intensity = 0.0

    def accumulate(self, other: Label) -> None:
        """Add another label's channel intensities into this one.

        Channel name and m/z are overwritten by the contributing label.
        """
        if not self.channels:
            self.channels = [Channel(name=c.name, mz=c.mz) for c in other.channels]

        for mine, theirs in zip(self.channels, other.channels):
            mine.name = theirs.name
            mine.mz = theirs.mz
            mine.custom_name = theirs.custom_name
            mine.intensity += theirs.intensity

    def copy(self) -> Label:
        return Label(
            scan=self.scan,
            index=self.index,
            charge_state=self.charge_state,
            channels=[
                Channel(c.name, c.mz, c.intensity, c.custom_name) for c in self.channels
            ],
            is_used=self.is_used,
        )


def new_label(plex: str, label_names: dict[str, str] | None = None) -> Label:
    """Create an empty label for a reagent plex.

    Args:
        plex: Plex identifier ("6", "10", "11" or "16")
        label_names: Optional mapping from channel name to sample name

    Returns:
        Label with zero intensity on every channel

    Raises:
        ValueError: If the plex is unknown

    """
    if plex not in PLEX_CHANNELS:
        raise ValueError(f"Unknown reagent plex: {plex}. Must be one of: {sorted(PLEX_CHANNELS)}")

    label_names = label_names or {}
    return Label(
        channels=[
            Channel(name=name, mz=mz, custom_name=label_names.get(name, ""))
            for name, mz in PLEX_CHANNELS[plex]
        ]
    )

