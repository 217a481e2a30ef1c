"""Status propagation passes over the assembled evidence.

The passes run in a fixed order, each depending on the previous one
having written its results back to the PSM, Ion and Protein records:

1. update_ion_status        unique/razor flags Protein -> Ion, PSM
2. update_protein_status    PSM working protein swapped to its razor protein
3. update_mapped_proteins   mapped-protein sets re-derived from protein groups
4. modification counts      modified/unmodified observations, assigned mods
5. update_supporting_spectra  Protein and per-ion spectra rebuilt from PSMs
"""

from __future__ import annotations

import logging
from collections import defaultdict

from .database import ProteinDatabase
from .evidence import Evidence, IonEvidence, PeptideEvidence, ProteinEvidence, PSMEvidence
from .parsimony import IonStatusTable, build_ion_protein_map

logger = logging.getLogger(__name__)

# |massdiff| at or below this counts as an unmodified observation
UNMODIFIED_MASS_TOLERANCE = 0.99


def update_ion_status(
    psms: list[PSMEvidence],
    ions: list[IonEvidence],
    table: IonStatusTable,
) -> None:
    """Write unique/razor status from the protein groups onto PSMs and Ions.

    A PSM without mapped proteins is unique.
    """
    for psm in psms:
        if not psm.mapped_proteins:
            psm.is_unique = True

        if psm.ion_form in table.unique:
            psm.is_unique = True

        razor = table.razor.get(psm.ion_form)
        if razor is not None:
            psm.is_urazor = True
            psm.razor_protein = razor

    for ion in ions:
        if ion.ion_form in table.unique:
            ion.is_unique = True

        razor = table.razor.get(ion.ion_form)
        if razor is not None:
            ion.is_urazor = True
            ion.razor_protein = razor


def update_protein_status(psms: list[PSMEvidence]) -> int:
    """Swap each razor PSM's working protein to its razor protein.

    The reported protein becomes one of the PSM's mapped proteins. For
    non-razor PSMs the razor protein mirrors the current protein.

    Returns:
        Number of PSMs whose protein was swapped

    """
    swapped = 0

    for psm in psms:
        if psm.is_urazor and psm.razor_protein and psm.protein != psm.razor_protein:
            if psm.protein:
                psm.mapped_proteins.add(psm.protein)
            psm.protein = psm.razor_protein
            swapped += 1
        elif not psm.is_urazor and psm.protein != psm.razor_protein:
            psm.razor_protein = psm.protein

    logger.debug(f"Swapped {swapped} PSMs to their razor protein")
    return swapped


def update_mapped_proteins(evidence: Evidence) -> None:
    """Re-derive mapped proteins from the protein groups listing each IonForm."""
    ion_to_proteins, _ = build_ion_protein_map(evidence.proteins)

    for psm in evidence.psms:
        listers = ion_to_proteins.get(psm.ion_form)
        if listers is not None:
            psm.mapped_proteins = set(listers)

    mapped_by_sequence = defaultdict(set)
    for ion in evidence.ions:
        listers = ion_to_proteins.get(ion.ion_form)
        if listers is not None:
            ion.mapped_proteins = set(listers)
        mapped_by_sequence[ion.sequence] |= ion.mapped_proteins

    for peptide in evidence.peptides:
        if peptide.sequence in mapped_by_sequence:
            peptide.mapped_proteins = set(mapped_by_sequence[peptide.sequence])


def _is_unmodified(psm: PSMEvidence) -> bool:
    return -UNMODIFIED_MASS_TOLERANCE <= psm.massdiff <= UNMODIFIED_MASS_TOLERANCE


def update_ion_mod_count(psms: list[PSMEvidence], ions: list[IonEvidence]) -> None:
    """Count modified and unmodified observations of each ion from its PSMs."""
    counts = {ion.ion_form: [0, 0] for ion in ions}

    for psm in psms:
        count = counts.get(psm.ion_form)
        if count is not None:
            count[0 if _is_unmodified(psm) else 1] += 1

    for ion in ions:
        ion.unmodified_observations, ion.modified_observations = counts[ion.ion_form]


def update_peptide_mod_count(psms: list[PSMEvidence], peptides: list[PeptideEvidence]) -> None:
    """Count modified and unmodified observations of each peptide from its PSMs."""
    counts = {peptide.sequence: [0, 0] for peptide in peptides}

    for psm in psms:
        count = counts.get(psm.peptide)
        if count is not None:
            count[0 if _is_unmodified(psm) else 1] += 1

    for peptide in peptides:
        peptide.unmodified_observations, peptide.modified_observations = counts[peptide.sequence]


def update_assigned_modifications(evidence: Evidence) -> None:
    """Forward PSM assigned modifications to ions and peptides."""
    by_ion = defaultdict(set)
    by_peptide = defaultdict(set)

    for psm in evidence.psms:
        by_ion[psm.ion_form] |= psm.assigned_modifications
        by_peptide[psm.peptide] |= psm.assigned_modifications

    for ion in evidence.ions:
        ion.assigned_modifications |= by_ion.get(ion.ion_form, set())

    for peptide in evidence.peptides:
        peptide.assigned_modifications |= by_peptide.get(peptide.sequence, set())


def update_supporting_spectra(psms: list[PSMEvidence], proteins: list[ProteinEvidence]) -> None:
    """Rebuild protein and per-ion supporting spectra from post-swap PSMs.

    A protein is supported by every PSM now assigned to it. Within a
    protein, an ion view holds the spectra of its unique PSMs when the
    view is unique, and of its razor PSMs assigned to this protein when
    the protein is the ion's razor protein. Prior contents are replaced.
    """
    by_protein = defaultdict(set)
    unique_spectra = defaultdict(set)
    razor_spectra = defaultdict(set)

    for psm in psms:
        by_protein[psm.protein].add(psm.spectrum)

        if psm.is_unique:
            unique_spectra[psm.ion_form].add(psm.spectrum)

        if psm.is_urazor:
            razor_spectra[(psm.ion_form, psm.protein)].add(psm.spectrum)

    for protein in proteins:
        header = protein.header
        protein.supporting_spectra = set(by_protein.get(header, set()))

        for ion_form, view in protein.total_peptide_ions.items():
            spectra = set()

            if view.is_unique:
                spectra |= unique_spectra.get(ion_form, set())

            if view.is_urazor and view.razor_protein == header:
                spectra |= razor_spectra.get((ion_form, header), set())

            view.spectra = spectra


def update_protein_annotations(evidence: Evidence, database: ProteinDatabase) -> None:
    """Refresh protein-derived annotations after the razor swap.

    Ions take their razor protein as representative protein; peptides
    take the protein of their PSMs.
    """
    for ion in evidence.ions:
        if ion.razor_protein:
            ion.protein = ion.razor_protein

    protein_by_sequence = {psm.peptide: psm.protein for psm in evidence.psms}
    for peptide in evidence.peptides:
        peptide.protein = protein_by_sequence.get(peptide.sequence, peptide.protein)

    for entity in [*evidence.psms, *evidence.ions, *evidence.peptides]:
        record = database.get(entity.protein)
        if record is None:
            continue

        entity.gene_name = record.gene_names
        entity.protein_description = record.display_description
        entity.protein_id = record.id
        entity.entry_name = record.entry_name
