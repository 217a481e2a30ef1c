"""Reporter ion extraction and precursor purity.

Two independent computations over the indexed spectra:

- Purity: the fraction of MS1 signal inside a PSM's isolation window that
  belongs to the targeted isotope envelope. Low purity means co-isolated
  peptides contribute to the reporter ions.
- Labels: for every quantification scan, the most intense peak within a
  ppm tolerance of each reporter channel.

Both degrade to zero on lookup misses: identification and spectrum lists
are not guaranteed to match one-to-one.
"""

from __future__ import annotations

import logging

import numpy as np

from .evidence import PSMEvidence, round_half_up
from .labels import Label, new_label
from .spectra import SpectrumIndex, pad_identifier, spectrum_scan

logger = logging.getLogger(__name__)

# Isotope peak matching tolerance (Da)
ISOTOPE_TOLERANCE = 0.02

# Number of isotope peaks considered beyond the precursor
N_ISOTOPES = 6

# All reporter ions lie below this m/z
REPORTER_MZ_CEILING = 135.0

# Smallest assigned mass delta of an isobaric tag (TMT, Da)
LABEL_MASS_THRESHOLD = 229.1629


def isotope_mz_offsets(charge: int) -> list[float]:
    """m/z spacing of the first isotope peaks for a charge state."""
    if charge <= 0:
        return []
    return [round_half_up(k / charge, 2) for k in range(1, N_ISOTOPES + 1)]


def calculate_ion_purity(
    psms: list[PSMEvidence],
    index: SpectrumIndex,
    tolerance: float = ISOTOPE_TOLERANCE,
) -> list[PSMEvidence]:
    """Estimate precursor isolation purity for each PSM, in place.

    The isolation window of the PSM's MS2 scan is projected onto its parent
    MS1 scan. Purity is the precursor plus its isotope peaks divided by the
    total intensity in the window, rounded to 4 decimals and capped at 1.

    Args:
        psms: PSM evidence
        index: Spectrum index
        tolerance: Isotope peak matching tolerance in Da

    Returns:
        The same PSM list

    """
    missing = 0

    for psm in psms:
        ms2 = index.ms2.get(spectrum_scan(psm.spectrum))
        if ms2 is None:
            missing += 1
            continue

        precursor = ms2.precursor
        ms1 = index.ms1.get(precursor.parent_scan)
        if ms1 is None:
            psm.purity = 0.0
            continue

        target = precursor.target_mz
        in_window = (
            (ms1.mz >= target - precursor.isolation_window_lower_offset)
            & (ms1.mz <= target + precursor.isolation_window_upper_offset)
        )
        window_mz = ms1.mz[in_window]
        window_intensity = ms1.intensity[in_window]
        window_sum = float(window_intensity.sum())

        isotopes = precursor.peak_intensity
        offsets = np.abs(target - window_mz)
        matched = np.zeros(len(window_mz), dtype=bool)
        for delta in isotope_mz_offsets(precursor.charge_state):
            matched |= (offsets >= delta - tolerance) & (offsets <= delta + tolerance)
        isotopes += float(window_intensity[matched].sum())

        if window_sum == 0 or isotopes == 0:
            psm.purity = 0.0
        else:
            psm.purity = min(round_half_up(isotopes / window_sum, 4), 1.0)

    if missing:
        logger.debug(f"{missing} PSMs have no MS2 scan in the spectrum index")

    return psms


def _extract_label(mz: np.ndarray, intensity: np.ndarray, label: Label, tolerance: float) -> Label:
    # peak lists are sorted: nothing past the first peak above the ceiling can match
    stop = min(int(np.searchsorted(mz, REPORTER_MZ_CEILING, side='right')) + 1, len(mz))
    mz = mz[:stop]
    intensity = intensity[:stop]

    for channel in label.channels:
        window = channel.mz * tolerance
        hits = (mz >= channel.mz - window) & (mz <= channel.mz + window)
        if hits.any():
            best = float(intensity[hits].max())
            if best > channel.intensity:
                channel.intensity = best

    return label


def extract_labels(
    index: SpectrumIndex,
    plex: str,
    tolerance_ppm: float,
    level: int = 2,
    label_names: dict[str, str] | None = None,
) -> dict[str, Label]:
    """Extract reporter ion intensities from every quantification scan.

    Args:
        index: Spectrum index
        plex: Reagent plex identifier
        tolerance_ppm: Channel matching tolerance in ppm
        level: 2 to read reporters from MS2, 3 for SPS-MS3
        label_names: Optional channel to sample name mapping

    Returns:
        Dict mapping padded scan id to Label. MS3 labels are keyed by their
        parent MS2 scan.

    Raises:
        ValueError: If the level is not 2 or 3

    """
    if level == 2:
        spectra = index.ms2
    elif level == 3:
        spectra = index.ms3
    else:
        raise ValueError(f"Unsupported quantification level: {level}. Must be 2 or 3")

    tolerance = tolerance_ppm / 1e6
    labels = {}

    for spectrum in spectra.values():
        label = new_label(plex, label_names)
        label.scan = spectrum.scan
        label.index = spectrum.index
        label.charge_state = spectrum.precursor.charge_state

        _extract_label(spectrum.mz, spectrum.intensity, label, tolerance)

        key = spectrum.scan if level == 2 else pad_identifier(spectrum.precursor.parent_scan)
        labels[key] = label

    logger.info(f"Extracted {plex}-plex reporter ions from {len(labels)} MS{level} scans")

    return labels


def map_labeled_spectra(labels: dict[str, Label], psms: list[PSMEvidence]) -> list[PSMEvidence]:
    """Attach extracted labels to PSMs by scan and mark them used.

    Each PSM receives its own copy of the label.
    """
    mapped = 0

    for psm in psms:
        label = labels.get(spectrum_scan(psm.spectrum))
        if label is None:
            continue

        psm.labels = label.copy()
        psm.labels.is_used = True
        mapped += 1

    logger.debug(f"Mapped labels onto {mapped} of {len(psms)} PSMs")

    return psms


def correct_unlabelled_spectra(
    psms: list[PSMEvidence],
    label_mass: float = LABEL_MASS_THRESHOLD,
) -> int:
    """Zero the reporter intensities of PSMs without a label modification.

    Returns:
        Number of PSMs corrected

    """
    corrected = 0

    for psm in psms:
        if not any(mass_diff >= label_mass for mass_diff in psm.assigned_mass_diffs):
            psm.labels.zero()
            corrected += 1

    return corrected
