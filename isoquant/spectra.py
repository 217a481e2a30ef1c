"""Spectrum records and the scan-level spectrum index.

Spectra arrive already decoded (peak lists as parallel m/z and intensity
arrays). This module normalizes their identifiers so that scans can be
looked up by zero-padded string keys, and splits them by MS level:

- MS1 spectra carry the precursor isolation windows used for purity
- MS2 spectra carry reporter ions (standard workflow) and link to an MS1 parent
- MS3 spectra carry reporter ions for SPS-MS3 and link to an MS2 parent
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)

# Scan and index identifiers are left-padded to this width
ID_WIDTH = 5

# Isolation half-width assigned to MS2/MS3 spectra reporting no window
DEFAULT_ISOLATION_HALF_WIDTH = 0.5


def pad_identifier(value: str | int) -> str:
    """Left-pad a scan or index identifier with zeros.

    Args:
        value: Identifier as string or integer

    Returns:
        Identifier padded to ID_WIDTH characters (longer identifiers unchanged)

    """
    return str(value).rjust(ID_WIDTH, "0")


def spectrum_scan(spectrum_name: str) -> str:
    """Extract the padded scan key from a PSM spectrum name.

    Spectrum names follow the ``<run>.<scan>.<scan>.<charge>`` convention.
    The run name may itself contain dots, so the scan is taken counting
    from the right.
    """
    parts = spectrum_name.split(".")
    if len(parts) >= 4:
        return pad_identifier(parts[-3])
    if len(parts) >= 2:
        return pad_identifier(parts[1])
    return pad_identifier(spectrum_name)


@dataclass
class Precursor:
    """Precursor information for an MS2/MS3 scan."""

    parent_scan: str = ""
    parent_index: str = ""
    target_mz: float = 0.0
    charge_state: int = 0
    peak_intensity: float = 0.0
    isolation_window_lower_offset: float = 0.0
    isolation_window_upper_offset: float = 0.0


@dataclass
class Spectrum:
    """One decoded scan.

    ``mz`` and ``intensity`` are parallel arrays sorted by m/z.
    """

    scan: str
    index: str
    level: int
    mz: np.ndarray = field(default_factory=lambda: np.empty(0))
    intensity: np.ndarray = field(default_factory=lambda: np.empty(0))
    precursor: Precursor = field(default_factory=Precursor)

    def __post_init__(self):
        self.mz = np.asarray(self.mz, dtype=float)
        self.intensity = np.asarray(self.intensity, dtype=float)
        self.level = int(self.level)


@dataclass
class SpectrumIndex:
    """Spectra keyed by padded scan id, one mapping per MS level."""

    ms1: dict[str, Spectrum] = field(default_factory=dict)
    ms2: dict[str, Spectrum] = field(default_factory=dict)
    ms3: dict[str, Spectrum] = field(default_factory=dict)

    def parent_of(self, spectrum: Spectrum) -> Spectrum | None:
        """Resolve the parent scan of an MS2 (-> MS1) or MS3 (-> MS2) spectrum."""
        if spectrum.level == 2:
            return self.ms1.get(spectrum.precursor.parent_scan)
        if spectrum.level == 3:
            return self.ms2.get(spectrum.precursor.parent_scan)
        return None

    def __len__(self) -> int:
        return len(self.ms1) + len(self.ms2) + len(self.ms3)


def normalize_spectrum(spectrum: Spectrum) -> Spectrum:
    """Pad identifiers and default the isolation window, in place."""
    spectrum.scan = pad_identifier(spectrum.scan)
    spectrum.index = pad_identifier(spectrum.index)

    if spectrum.level in (2, 3):
        precursor = spectrum.precursor
        precursor.parent_scan = pad_identifier(precursor.parent_scan)
        precursor.parent_index = pad_identifier(precursor.parent_index)

        if (
            precursor.isolation_window_lower_offset == 0
            and precursor.isolation_window_upper_offset == 0
        ):
            precursor.isolation_window_lower_offset = DEFAULT_ISOLATION_HALF_WIDTH
            precursor.isolation_window_upper_offset = DEFAULT_ISOLATION_HALF_WIDTH

    return spectrum


def build_spectrum_index(spectra: list[Spectrum]) -> SpectrumIndex:
    """Index decoded spectra by MS level and padded scan id.

    Identifiers are normalized in place. Spectra with an unrecognized MS
    level are skipped.

    Args:
        spectra: Flat list of decoded spectra

    Returns:
        SpectrumIndex with MS1, MS2 and MS3 lookups

    """
    index = SpectrumIndex()
    skipped = 0

    for spectrum in spectra:
        if spectrum.level not in (1, 2, 3):
            skipped += 1
            continue

        normalize_spectrum(spectrum)

        if spectrum.level == 1:
            index.ms1[spectrum.scan] = spectrum
        elif spectrum.level == 2:
            index.ms2[spectrum.scan] = spectrum
        else:
            index.ms3[spectrum.scan] = spectrum

    if skipped:
        logger.warning(f"Skipped {skipped} spectra with unrecognized MS level")

    logger.debug(
        f"Indexed {len(index.ms1)} MS1, {len(index.ms2)} MS2 and {len(index.ms3)} MS3 spectra"
    )

    return index
