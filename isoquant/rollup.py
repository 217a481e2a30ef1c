"""Label, spectral count and intensity rollup.

Spectrum-level labels are summed (not averaged) into peptides, ions and
proteins. Proteins keep three buckets:

- Total: every spectrum of every listed ion
- Unique: spectra of ions unique to the protein
- Unique+Razor: spectra of unique ions plus razor ions assigned here

Phospho-modified spectra additionally feed a parallel set of phospho labels.
"""

from __future__ import annotations

import logging

from .evidence import Evidence, IonEvidence, PeptideEvidence, ProteinEvidence, PSMEvidence
from .labels import Label

logger = logging.getLogger(__name__)


def build_spectrum_label_maps(
    psms: list[PSMEvidence],
    purity: float = 0.0,
    min_probability: float = 0.0,
) -> tuple[dict[str, Label], dict[str, Label]]:
    """Select the PSM labels entering the rollup.

    A label is used when its PSM is a target, carries a used label, and
    passes the purity and probability thresholds.

    Args:
        psms: PSM evidence with mapped labels
        purity: Minimum PSM purity
        min_probability: Minimum PSM probability

    Returns:
        Tuple of (labels, phospho_labels) keyed by spectrum name

    """
    labels = {}
    phospho_labels = {}

    for psm in psms:
        if psm.is_decoy or not psm.labels.is_used:
            continue
        if psm.purity < purity or psm.probability < min_probability:
            continue

        labels[psm.spectrum] = psm.labels
        if psm.is_phospho:
            phospho_labels[psm.spectrum] = psm.labels

    logger.info(
        f"{len(labels)} of {len(psms)} PSM labels pass purity >= {purity} "
        f"and probability >= {min_probability}"
    )

    return labels, phospho_labels


def _accumulate(target: Label, spectra: set[str], label_map: dict[str, Label]) -> None:
    for spectrum in sorted(spectra):
        label = label_map.get(spectrum)
        if label is not None:
            target.accumulate(label)


def roll_up_peptides(
    peptides: list[PeptideEvidence],
    label_map: dict[str, Label],
    phospho_label_map: dict[str, Label],
) -> None:
    """Sum spectrum labels into each peptide."""
    for peptide in peptides:
        _accumulate(peptide.labels, peptide.spectra, label_map)
        _accumulate(peptide.phospho_labels, peptide.spectra, phospho_label_map)


def roll_up_ions(
    ions: list[IonEvidence],
    label_map: dict[str, Label],
    phospho_label_map: dict[str, Label],
) -> None:
    """Sum spectrum labels into each peptide ion."""
    for ion in ions:
        _accumulate(ion.labels, ion.spectra, label_map)
        _accumulate(ion.phospho_labels, ion.spectra, phospho_label_map)


def roll_up_proteins(
    proteins: list[ProteinEvidence],
    label_map: dict[str, Label],
    phospho_label_map: dict[str, Label],
) -> None:
    """Sum spectrum labels of each protein's ions into its label buckets.

    Ion views also receive their own summed labels so the protein total
    can be traced back to its ions.
    """
    for protein in proteins:
        header = protein.header
        protein.total_labels = Label()
        protein.unique_labels = Label()
        protein.urazor_labels = Label()
        protein.phospho_total_labels = Label()
        protein.phospho_unique_labels = Label()
        protein.phospho_urazor_labels = Label()

        for view in protein.total_peptide_ions.values():
            view.labels = Label()
            view.phospho_labels = Label()
            _accumulate(view.labels, view.spectra, label_map)
            _accumulate(view.phospho_labels, view.spectra, phospho_label_map)

            _accumulate(protein.total_labels, view.spectra, label_map)
            _accumulate(protein.phospho_total_labels, view.spectra, phospho_label_map)

            if view.is_unique:
                _accumulate(protein.unique_labels, view.spectra, label_map)
                _accumulate(protein.phospho_unique_labels, view.spectra, phospho_label_map)

            if view.counts_toward_razor(header):
                _accumulate(protein.urazor_labels, view.spectra, label_map)
                _accumulate(protein.phospho_urazor_labels, view.spectra, phospho_label_map)


def calculate_spectral_counts(evidence: Evidence) -> Evidence:
    """Set Total, Unique and Unique+Razor spectral counts on every protein.

    Raises:
        ValueError: If the evidence holds neither PSMs nor ions

    """
    if not evidence.psms and not evidence.ions:
        raise ValueError("No PSMs found in the data set")

    for protein in evidence.proteins:
        protein.total_spc = len(protein.supporting_spectra)
        protein.unique_spc = 0
        protein.urazor_spc = 0

        for view in protein.total_peptide_ions.values():
            if view.is_unique:
                protein.unique_spc += len(view.spectra)
            if view.counts_toward_razor(protein.header):
                protein.urazor_spc += len(view.spectra)

    return evidence


def calculate_protein_intensities(proteins: list[ProteinEvidence]) -> None:
    """Sum ion intensities into Total, Unique and Unique+Razor protein intensity."""
    for protein in proteins:
        protein.total_intensity = 0.0
        protein.unique_intensity = 0.0
        protein.urazor_intensity = 0.0

        for view in protein.total_peptide_ions.values():
            if not view.spectra:
                continue

            protein.total_intensity += view.intensity
            if view.is_unique:
                protein.unique_intensity += view.intensity
            if view.counts_toward_razor(protein.header):
                protein.urazor_intensity += view.intensity
