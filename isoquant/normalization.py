"""Protein-level normalization of reporter channel intensities.

Assumes the total protein amount is the same in every multiplexed sample:
each channel's Unique+Razor intensities are scaled by the channel's total
relative to the largest channel total.
"""

from __future__ import annotations

import logging

import numpy as np

from .evidence import ProteinEvidence

logger = logging.getLogger(__name__)


def channel_sums(proteins: list[ProteinEvidence]) -> np.ndarray:
    """Sum each channel's Unique+Razor intensity across all proteins.

    Proteins without labels are skipped.
    """
    n_channels = max((len(p.urazor_labels.channels) for p in proteins), default=0)
    sums = np.zeros(n_channels)

    for protein in proteins:
        intensities = protein.urazor_labels.intensities
        sums[:len(intensities)] += intensities

    return sums


def normalize_to_total_proteins(proteins: list[ProteinEvidence]) -> np.ndarray:
    """Scale protein Unique+Razor channel intensities, in place.

    factor[c] = sum[c] / max(sum), applied to every protein.

    Args:
        proteins: Protein evidence after label rollup

    Returns:
        The per-channel normalization factors

    """
    sums = channel_sums(proteins)

    if sums.size == 0 or sums.max() <= 0:
        logger.warning("No reporter signal on proteins, skipping normalization")
        return np.ones(sums.size)

    factors = sums / sums.max()

    for protein in proteins:
        for channel, factor in zip(protein.urazor_labels.channels, factors):
            channel.intensity *= factor

    logger.info(
        "Normalization factors: " + ", ".join(f"{f:.4f}" for f in factors)
    )

    return factors
