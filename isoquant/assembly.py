"""Evidence assembly from identification lists.

Builds the four evidence levels in order:

1. PSMs, one per identification record
2. Ions, grouping PSMs by IonForm (peptide#charge#mass)
3. Peptides, grouping PSMs by stripped sequence
4. Proteins, one per protein group, each holding snapshots of its ions

Protein assembly needs the protein database for metadata; without it the
run cannot be reported and assembly fails.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict

from .database import ProteinDatabase
from .evidence import (
    PROTON_MASS,
    IonEvidence,
    MassBin,
    PeptideEvidence,
    ProteinEvidence,
    PSMEvidence,
    ion_form_key,
    round_half_up,
)
from .identification import (
    ModificationSite,
    PeptideIdentification,
    ProteinIdentification,
    is_decoy_protein,
    is_decoy_psm,
)

logger = logging.getLogger(__name__)

# Mass-difference histogram layout (Da)
MASS_BIN_AMPLITUDE = 500.0
MASS_BIN_SIZE = 0.1
MASS_BIN_WINDOW = 0.5

# Tolerance for matching mass differences to known modifications (Da)
MODIFICATION_TOLERANCE = 0.01


def format_assigned_modifications(modifications: list[ModificationSite]) -> set[str]:
    """Build the assigned-modification labels of a PSM.

    N-terminal: ``N-term(304.2071)``, C-terminal: ``C-term(0.9840)``,
    residue: ``5M(15.9949)``. Zero mass deltas are ignored.
    """
    labels = set()

    for mod in modifications:
        if mod.mass_diff == 0:
            continue

        if mod.amino_acid == "n":
            labels.add(f"N-term({mod.mass_diff:.4f})")
        elif mod.amino_acid == "c":
            labels.add(f"C-term({mod.mass_diff:.4f})")
        else:
            labels.add(f"{mod.position}{mod.amino_acid}({mod.mass_diff:.4f})")

    return labels


# ============================================================================
# PSM level
# ============================================================================


def assemble_psms(
    identifications: list[PeptideIdentification],
    decoy_tag: str,
    database: ProteinDatabase | None = None,
) -> list[PSMEvidence]:
    """Create one PSMEvidence per identification record.

    Args:
        identifications: Validated PSM identifications
        decoy_tag: Decoy protein tag
        database: Optional protein database for gene name / protein id

    Returns:
        PSM evidence sorted by spectrum name

    """
    psms = []

    for ident in identifications:
        psm = PSMEvidence(
            spectrum=ident.spectrum,
            peptide=ident.peptide,
            ion_form=ion_form_key(ident.peptide, ident.assumed_charge, ident.calc_neutral_pep_mass),
            assumed_charge=ident.assumed_charge,
            calc_neutral_pep_mass=ident.calc_neutral_pep_mass,
            index=ident.index,
            scan=ident.scan,
            protein=ident.protein,
            modified_peptide=ident.modified_peptide,
            mapped_proteins=set(ident.alternative_proteins),
            modifications=list(ident.modifications),
            assigned_modifications=format_assigned_modifications(ident.modifications),
            hit_rank=ident.hit_rank,
            precursor_neutral_mass=ident.precursor_neutral_mass,
            precursor_exp_mass=ident.precursor_exp_mass,
            retention_time=ident.retention_time,
            raw_massdiff=ident.raw_massdiff,
            massdiff=ident.massdiff,
            localized_ptm_sites=dict(ident.localized_ptm_sites),
            localized_ptm_massdiff=dict(ident.localized_ptm_massdiff),
            probability=ident.probability,
            expectation=ident.expectation,
            xcorr=ident.xcorr,
            delta_cn=ident.delta_cn,
            sp_rank=ident.sp_rank,
            hyperscore=ident.hyperscore,
            nextscore=ident.nextscore,
            discriminant_value=ident.discriminant_value,
            intensity=ident.intensity,
            is_decoy=is_decoy_psm(ident, decoy_tag),
        )

        if database is not None:
            record = database.get(ident.protein)
            if record is not None:
                psm.gene_name = record.gene_names
                psm.protein_id = record.id

        psms.append(psm)

    psms.sort(key=lambda p: p.spectrum)
    logger.info(f"Assembled {len(psms)} PSMs")

    return psms


# ============================================================================
# Ion level
# ============================================================================


def assemble_ions(
    identifications: list[PeptideIdentification],
    psms: list[PSMEvidence],
    decoy_tag: str,
) -> list[IonEvidence]:
    """Group PSMs into ions.

    Each identification record represents one ion; records sharing an
    IonForm are merged.

    Args:
        identifications: Ion-level identification records
        psms: Assembled PSM evidence
        decoy_tag: Decoy protein tag

    Returns:
        Ion evidence sorted by sequence

    """
    psms_by_ion = defaultdict(list)
    proteins_by_spectrum = defaultdict(set)

    for psm in psms:
        psms_by_ion[psm.ion_form].append(psm)
        proteins_by_spectrum[psm.spectrum].add(psm.protein)

    ions: dict[str, IonEvidence] = {}

    for ident in identifications:
        key = ion_form_key(ident.peptide, ident.assumed_charge, ident.calc_neutral_pep_mass)

        ion = ions.get(key)
        if ion is None:
            members = psms_by_ion.get(key, [])
            charge = ident.assumed_charge

            ion = IonEvidence(
                sequence=ident.peptide,
                ion_form=key,
                charge_state=charge,
                modified_sequence=ident.modified_peptide,
                retention_time=ident.retention_time,
                mz=round_half_up(
                    (ident.calc_neutral_pep_mass + charge * PROTON_MASS) / charge, 4
                ) if charge else 0.0,
                peptide_mass=ident.calc_neutral_pep_mass,
                precursor_neutral_mass=ident.precursor_neutral_mass,
                expectation=ident.expectation,
                protein=ident.protein,
                is_decoy=is_decoy_psm(ident, decoy_tag),
            )

            for psm in members:
                ion.spectra.add(psm.spectrum)
                ion.assigned_modifications |= psm.assigned_modifications
                ion.observed_modifications |= psm.observed_modifications
                ion.probability = max(ion.probability, psm.probability)
                ion.intensity = max(ion.intensity, psm.intensity)

                if psm.observed_modifications:
                    ion.modified_observations += 1
                else:
                    ion.unmodified_observations += 1

            ions[key] = ion

        ion.mapped_proteins.add(ident.protein)
        ion.mapped_proteins |= proteins_by_spectrum.get(ident.spectrum, set())

    result = sorted(ions.values(), key=lambda i: i.sequence)
    logger.info(f"Assembled {len(result)} peptide ions")

    return result


# ============================================================================
# Peptide level
# ============================================================================


def _peptide_decoy_status(
    identifications: list[PeptideIdentification],
    decoy_tag: str,
) -> dict[str, bool]:
    """Decoy status per sequence; a sequence seen with any target PSM is a target."""
    status: dict[str, bool] = {}
    conflicting = set()

    for ident in identifications:
        decoy = is_decoy_psm(ident, decoy_tag)
        previous = status.get(ident.peptide)

        if previous is None:
            status[ident.peptide] = decoy
        elif previous != decoy:
            conflicting.add(ident.peptide)
            status[ident.peptide] = False

    if conflicting:
        logger.warning(
            f"{len(conflicting)} peptide sequences matched both target and decoy proteins; "
            f"they are reported as targets"
        )

    return status


def assemble_peptides(
    identifications: list[PeptideIdentification],
    psms: list[PSMEvidence],
    decoy_tag: str,
) -> list[PeptideEvidence]:
    """Group PSMs by stripped peptide sequence.

    Args:
        identifications: Peptide-level identification records
        psms: Assembled PSM evidence
        decoy_tag: Decoy protein tag

    Returns:
        Peptide evidence sorted by sequence

    """
    decoy_status = _peptide_decoy_status(identifications, decoy_tag)
    peptides = {
        sequence: PeptideEvidence(sequence=sequence, is_decoy=decoy)
        for sequence, decoy in decoy_status.items()
    }

    for psm in psms:
        peptide = peptides.get(psm.peptide)
        if peptide is None:
            continue

        peptide.charge_states.add(psm.assumed_charge)
        peptide.spectra.add(psm.spectrum)
        peptide.protein = psm.protein
        peptide.intensity = max(peptide.intensity, psm.intensity)
        peptide.probability = max(peptide.probability, psm.probability)
        peptide.mapped_proteins |= psm.mapped_proteins
        peptide.assigned_modifications |= psm.assigned_modifications
        peptide.observed_modifications |= psm.observed_modifications

        if psm.observed_modifications:
            peptide.modified_observations += 1
        else:
            peptide.unmodified_observations += 1

    for peptide in peptides.values():
        peptide.spc = len(peptide.spectra)

    result = sorted(peptides.values(), key=lambda p: p.sequence)
    logger.info(f"Assembled {len(result)} peptides")

    return result


# ============================================================================
# Protein level
# ============================================================================


def assemble_proteins(
    protein_groups: list[ProteinIdentification],
    ions: list[IonEvidence],
    database: ProteinDatabase | None,
    decoy_tag: str,
) -> list[ProteinEvidence]:
    """Create one ProteinEvidence per protein group.

    Each group's peptide ions are matched to the assembled ions by IonForm;
    the protein keeps a snapshot of each ion carrying the group's own
    unique/razor flags. Ions missing from the ion list are created inline
    from the group record.

    Args:
        protein_groups: Protein groups from protein inference
        ions: Assembled ion evidence
        database: Protein database used for metadata
        decoy_tag: Decoy protein tag

    Returns:
        Protein evidence sorted by group number

    Raises:
        ValueError: If the protein database is missing or empty

    """
    if database is None or len(database) == 0:
        raise ValueError("Cannot locate protein database records")

    ions_by_form = {ion.ion_form: ion for ion in ions}
    proteins = []
    inline_ions = 0

    for group in protein_groups:
        protein = ProteinEvidence(
            protein_name=group.protein_name,
            protein_group=group.group_number,
            protein_subgroup=group.group_sibling_id,
            length=group.length,
            coverage=group.percent_coverage,
            unique_stripped_peptides=len(group.unique_stripped_peptides),
            probability=group.probability,
            top_pep_prob=group.top_pep_prob,
            is_decoy=is_decoy_protein(group.protein_name, decoy_tag),
            indistinguishable_proteins=set(group.indistinguishable_proteins),
        )

        for record in group.peptide_ions:
            key = ion_form_key(record.peptide_sequence, record.charge, record.calc_neutral_pep_mass)
            source = ions_by_form.get(key)

            if source is not None:
                view = source.snapshot()
                protein.supporting_spectra |= source.spectra
            else:
                view = IonEvidence(
                    sequence=record.peptide_sequence,
                    ion_form=key,
                    charge_state=record.charge,
                    modified_sequence=record.modified_peptide,
                    probability=record.initial_probability,
                )
                inline_ions += 1

            view.weight = record.weight
            view.group_weight = record.group_weight
            view.mapped_proteins = set(record.parent_proteins)
            view.is_unique = record.is_unique
            view.is_urazor = record.razor
            view.razor_protein = ""

            protein.total_peptide_ions[key] = view

            if source is not None and (record.is_unique or record.razor):
                protein.urazor_unmodified_observations += source.unmodified_observations
                protein.urazor_modified_observations += source.modified_observations
                for mod in source.assigned_modifications:
                    protein.urazor_assigned_modifications[mod] = (
                        protein.urazor_assigned_modifications.get(mod, 0) + 1
                    )
                for mod in source.observed_modifications:
                    protein.urazor_observed_modifications[mod] = (
                        protein.urazor_observed_modifications.get(mod, 0) + 1
                    )

        proteins.append(protein)

    if inline_ions:
        logger.debug(f"Created {inline_ions} protein ions missing from the ion list")

    _annotate_proteins(proteins, database)

    proteins.sort(key=lambda p: p.protein_group)
    logger.info(f"Assembled {len(proteins)} protein groups")

    return proteins


def _annotate_proteins(proteins: list[ProteinEvidence], database: ProteinDatabase) -> None:
    """Pull header and metadata from the protein database."""
    missing = 0

    for protein in proteins:
        record = database.find(protein.protein_name, protein.is_decoy)

        if record is None:
            protein.part_header = protein.protein_name
            missing += 1
            continue

        protein.original_header = record.original_header
        protein.part_header = record.part_header
        protein.protein_id = record.id
        protein.entry_name = record.entry_name
        protein.protein_existence = record.protein_existence
        protein.gene_names = record.gene_names
        protein.sequence = record.sequence
        protein.organism = record.organism
        protein.description = record.display_description

    if missing:
        logger.warning(f"{missing} proteins have no matching database record")


# ============================================================================
# Modifications
# ============================================================================


def annotate_observed_modifications(
    psms: list[PSMEvidence],
    known_modifications: list[tuple[str, float]] | None = None,
    tolerance: float = MODIFICATION_TOLERANCE,
) -> None:
    """Name assigned and observed mass differences after known modifications.

    Args:
        psms: PSM evidence, updated in place
        known_modifications: (title, monoisotopic mass) pairs
        tolerance: Mass tolerance in Da

    """
    known_modifications = known_modifications or []

    for psm in psms:
        for title, mono_mass in known_modifications:
            fullname = f"{mono_mass:.4f}:{title}"

            for mass_diff in psm.assigned_mass_diffs:
                if abs(mass_diff - mono_mass) <= tolerance:
                    psm.assigned_modifications.add(fullname)

            if abs(psm.massdiff - mono_mass) <= tolerance:
                if fullname not in psm.assigned_modifications:
                    psm.observed_modifications.add(fullname)

        if psm.massdiff != 0 and not psm.observed_modifications:
            psm.observed_modifications.add("Unknown")


def _mass_bin_index(mass: float, n_bins: int) -> int | None:
    """Index of the half-open (lower, upper] bin holding ``mass``."""
    first_lower = -MASS_BIN_AMPLITUDE - MASS_BIN_WINDOW * MASS_BIN_SIZE
    position = round((mass - first_lower) / MASS_BIN_SIZE, 6)
    index = math.ceil(position) - 1

    if 0 <= index < n_bins:
        return index
    return None


def assemble_modifications(psms: list[PSMEvidence]) -> list[MassBin]:
    """Histogram assigned and observed mass differences into 0.1 Da bins.

    Returns:
        Mass bins from -500 to +500 Da with per-bin PSM membership,
        average observed mass and zero-bin corrected mass

    """
    n_bins = int((MASS_BIN_AMPLITUDE * (1 / MASS_BIN_SIZE) + 1) * 2) + 1
    bins = []

    for i in range(n_bins):
        offset = i * MASS_BIN_SIZE
        bins.append(MassBin(
            lower_mass=round_half_up(-MASS_BIN_AMPLITUDE - MASS_BIN_WINDOW * MASS_BIN_SIZE + offset, 4),
            upper_mass=round_half_up(-MASS_BIN_AMPLITUDE + MASS_BIN_WINDOW * MASS_BIN_SIZE + offset, 4),
            mass_center=round_half_up(-MASS_BIN_AMPLITUDE + offset, 4),
        ))

    observed_sums = [0.0] * n_bins

    for psm in psms:
        for mass_diff in set(psm.assigned_mass_diffs):
            if mass_diff == 0:
                continue
            index = _mass_bin_index(mass_diff, n_bins)
            if index is not None:
                bins[index].assigned_mods.append(psm.spectrum)

        index = _mass_bin_index(psm.massdiff, n_bins)
        if index is not None:
            bins[index].observed_mods.append(psm.spectrum)
            observed_sums[index] += psm.massdiff

    zero_bin_deviation = 0.0
    for index, mass_bin in enumerate(bins):
        if mass_bin.observed_mods:
            mass_bin.average_mass = observed_sums[index] / len(mass_bin.observed_mods)
        if mass_bin.mass_center == 0:
            zero_bin_deviation = mass_bin.average_mass
        mass_bin.average_mass = round_half_up(mass_bin.average_mass, 4)

    for mass_bin in bins:
        if mass_bin.observed_mods:
            if mass_bin.average_mass > 0:
                corrected = mass_bin.average_mass - zero_bin_deviation
            else:
                corrected = mass_bin.average_mass + zero_bin_deviation
        else:
            corrected = mass_bin.mass_center
        mass_bin.corrected_mass = round_half_up(corrected, 4)

    return bins
