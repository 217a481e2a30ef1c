"""End-to-end evidence assembly and isobaric quantification.

Stages run in a fixed order:

1. Assemble PSM, Ion, Peptide and Protein evidence
2. Resolve unique/razor status and propagate it down to Ions and PSMs
3. Rebuild mapped proteins, modification counts and supporting spectra
4. Spectral counts and protein intensities
5. Purity, reporter ion extraction, label rollup and normalization
"""

from __future__ import annotations

import logging

from .assembly import (
    annotate_observed_modifications,
    assemble_ions,
    assemble_modifications,
    assemble_peptides,
    assemble_proteins,
    assemble_psms,
)
from .config import QuantConfig
from .database import ProteinDatabase
from .evidence import Evidence
from .identification import PeptideIdentification, ProteinIdentification
from .normalization import normalize_to_total_proteins
from .parsimony import assign_razor_proteins, build_ion_status_table
from .propagation import (
    update_assigned_modifications,
    update_ion_mod_count,
    update_ion_status,
    update_mapped_proteins,
    update_peptide_mod_count,
    update_protein_annotations,
    update_protein_status,
    update_supporting_spectra,
)
from .quantification import (
    calculate_ion_purity,
    correct_unlabelled_spectra,
    extract_labels,
    map_labeled_spectra,
)
from .rollup import (
    build_spectrum_label_maps,
    calculate_protein_intensities,
    calculate_spectral_counts,
    roll_up_ions,
    roll_up_peptides,
    roll_up_proteins,
)
from .spectra import Spectrum, build_spectrum_index

logger = logging.getLogger(__name__)


def assemble_evidence(
    psm_identifications: list[PeptideIdentification],
    protein_groups: list[ProteinIdentification],
    database: ProteinDatabase | None,
    config: QuantConfig | None = None,
    ion_identifications: list[PeptideIdentification] | None = None,
    peptide_identifications: list[PeptideIdentification] | None = None,
    known_modifications: list[tuple[str, float]] | None = None,
) -> Evidence:
    """Build the evidence graph and resolve protein status.

    Args:
        psm_identifications: Validated PSMs
        protein_groups: Protein groups from protein inference
        database: Protein database
        config: Settings (defaults if None)
        ion_identifications: Ion-level list, defaults to the PSM list
        peptide_identifications: Peptide-level list, defaults to the PSM list
        known_modifications: (title, monoisotopic mass) pairs for naming mass differences

    Returns:
        Evidence with counts and intensities, labels not yet attached

    Raises:
        ValueError: If the protein database is missing or there are no PSMs

    """
    config = config or QuantConfig()
    decoy_tag = config.decoy_tag

    if ion_identifications is None:
        ion_identifications = psm_identifications
    if peptide_identifications is None:
        peptide_identifications = psm_identifications

    logger.info("Assembling PSM evidence")
    psms = assemble_psms(psm_identifications, decoy_tag, database)
    annotate_observed_modifications(psms, known_modifications)

    logger.info("Assembling ion and peptide evidence")
    ions = assemble_ions(ion_identifications, psms, decoy_tag)
    peptides = assemble_peptides(peptide_identifications, psms, decoy_tag)

    logger.info("Assembling protein evidence")
    proteins = assemble_proteins(protein_groups, ions, database, decoy_tag)

    evidence = Evidence(psms=psms, ions=ions, peptides=peptides, proteins=proteins)

    logger.info("Resolving unique and razor peptide ions")
    assign_razor_proteins(evidence.proteins)
    table = build_ion_status_table(evidence.proteins)
    update_ion_status(evidence.psms, evidence.ions, table)
    update_protein_status(evidence.psms)
    update_mapped_proteins(evidence)

    update_ion_mod_count(evidence.psms, evidence.ions)
    update_peptide_mod_count(evidence.psms, evidence.peptides)
    update_assigned_modifications(evidence)
    update_supporting_spectra(evidence.psms, evidence.proteins)
    update_protein_annotations(evidence, database)

    logger.info("Assembling modification mass bins")
    evidence.mass_bins = assemble_modifications(evidence.psms)

    logger.info("Calculating spectral counts")
    calculate_spectral_counts(evidence)
    calculate_protein_intensities(evidence.proteins)

    return evidence


def quantify_labels(
    evidence: Evidence,
    spectra: list[Spectrum],
    config: QuantConfig | None = None,
) -> Evidence:
    """Attach reporter ion labels to the evidence and roll them up.

    Args:
        evidence: Assembled evidence
        spectra: Decoded spectra of the run
        config: Settings (defaults if None)

    Returns:
        The same Evidence, with labels on every level

    """
    config = config or QuantConfig()

    index = build_spectrum_index(spectra)
    if not index.ms2:
        logger.warning("No MS2 spectra in the run, reporter ions cannot be quantified")

    logger.info("Calculating ion purity")
    calculate_ion_purity(evidence.psms, index)

    logger.info(f"Extracting {config.plex}-plex reporter ions from MS{config.level} scans")
    labels = extract_labels(index, config.plex, config.tolerance, config.level, config.label_names)
    map_labeled_spectra(labels, evidence.psms)

    corrected = correct_unlabelled_spectra(evidence.psms)
    if corrected:
        logger.info(f"Cleared reporter intensities of {corrected} unlabelled PSMs")

    logger.info("Rolling up reporter ion intensities")
    label_map, phospho_map = build_spectrum_label_maps(
        evidence.psms, config.purity, config.min_probability
    )
    roll_up_peptides(evidence.peptides, label_map, phospho_map)
    roll_up_ions(evidence.ions, label_map, phospho_map)
    roll_up_proteins(evidence.proteins, label_map, phospho_map)

    if config.normalize:
        logger.info("Normalizing to total protein")
        normalize_to_total_proteins(evidence.proteins)

    return evidence


def run_pipeline(
    psm_identifications: list[PeptideIdentification],
    protein_groups: list[ProteinIdentification],
    database: ProteinDatabase | None,
    spectra: list[Spectrum],
    config: QuantConfig | None = None,
    **kwargs,
) -> Evidence:
    """Assemble evidence, then quantify it.

    Extra keyword arguments are passed on to assemble_evidence.
    """
    config = config or QuantConfig()
    evidence = assemble_evidence(psm_identifications, protein_groups, database, config, **kwargs)
    evidence = quantify_labels(evidence, spectra, config)
    logger.info(
        f"Quantified {len(evidence.psms)} PSMs, {len(evidence.ions)} ions, "
        f"{len(evidence.peptides)} peptides and {len(evidence.proteins)} protein groups"
    )
    return evidence
