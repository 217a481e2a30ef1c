"""Evidence model: PSM -> Ion -> Peptide -> Protein.

Entities are held in flat lists inside an Evidence container and
cross-reference each other by stable string keys (spectrum name, IonForm,
peptide sequence, protein header) rather than by object references.

A Protein's ``total_peptide_ions`` holds its own value snapshots of the
ions it lists. The snapshot carries the protein-specific uniqueness and
razor flags, and is re-synchronized by the status propagation passes in
``propagation``.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field

from .identification import ModificationSite
from .labels import Label

# Monoisotopic proton mass
PROTON_MASS = 1.007276

# Assigned mass delta marking a phosphorylation
PHOSPHO_MASS_DIFF = 79.9663


def round_half_up(value: float, places: int) -> float:
    """Round to ``places`` decimals, halves away from zero."""
    scale = 10 ** places
    return math.copysign(math.floor(abs(value) * scale + 0.5) / scale, value)


def ion_form_key(peptide: str, charge: int, calc_neutral_mass: float) -> str:
    """Build the IonForm key ``peptide#charge#mass`` (mass with 4 decimals)."""
    return f"{peptide}#{charge}#{calc_neutral_mass:.4f}"


@dataclass
class PSMEvidence:
    """One peptide-spectrum match."""

    spectrum: str
    peptide: str
    ion_form: str
    assumed_charge: int
    calc_neutral_pep_mass: float
    index: int = 0
    scan: int = 0
    protein: str = ""
    razor_protein: str = ""
    protein_id: str = ""
    protein_description: str = ""
    entry_name: str = ""
    gene_name: str = ""
    modified_peptide: str = ""
    mapped_proteins: set[str] = field(default_factory=set)
    modifications: list[ModificationSite] = field(default_factory=list)
    assigned_modifications: set[str] = field(default_factory=set)
    observed_modifications: set[str] = field(default_factory=set)
    hit_rank: int = 1
    precursor_neutral_mass: float = 0.0
    precursor_exp_mass: float = 0.0
    retention_time: float = 0.0
    raw_massdiff: float = 0.0
    massdiff: float = 0.0
    localized_ptm_sites: dict[str, int] = field(default_factory=dict)
    localized_ptm_massdiff: dict[str, str] = field(default_factory=dict)
    probability: float = 0.0
    expectation: float = 0.0
    xcorr: float = 0.0
    delta_cn: float = 0.0
    sp_rank: float = 0.0
    hyperscore: float = 0.0
    nextscore: float = 0.0
    discriminant_value: float = 0.0
    intensity: float = 0.0
    purity: float = 0.0
    is_decoy: bool = False
    is_unique: bool = False
    is_urazor: bool = False
    labels: Label = field(default_factory=Label)

    @property
    def assigned_mass_diffs(self) -> list[float]:
        return [m.mass_diff for m in self.modifications]

    @property
    def is_phospho(self) -> bool:
        return any(abs(m - PHOSPHO_MASS_DIFF) <= 0.01 for m in self.assigned_mass_diffs)


@dataclass
class IonEvidence:
    """One distinct (peptide, charge, calculated mass) combination."""

    sequence: str
    ion_form: str
    charge_state: int = 0
    modified_sequence: str = ""
    retention_time: float = 0.0
    modified_observations: int = 0
    unmodified_observations: int = 0
    assigned_modifications: set[str] = field(default_factory=set)
    observed_modifications: set[str] = field(default_factory=set)
    spectra: set[str] = field(default_factory=set)
    mapped_proteins: set[str] = field(default_factory=set)
    mz: float = 0.0
    peptide_mass: float = 0.0
    precursor_neutral_mass: float = 0.0
    weight: float = 0.0
    group_weight: float = 0.0
    intensity: float = 0.0
    probability: float = 0.0
    expectation: float = 0.0
    is_unique: bool = False
    is_urazor: bool = False
    razor_protein: str = ""
    is_decoy: bool = False
    protein: str = ""
    protein_id: str = ""
    gene_name: str = ""
    entry_name: str = ""
    protein_description: str = ""
    labels: Label = field(default_factory=Label)
    phospho_labels: Label = field(default_factory=Label)

    def snapshot(self) -> IonEvidence:
        """Independent copy for a protein's view of this ion."""
        return copy.deepcopy(self)

    def counts_toward_razor(self, header: str) -> bool:
        """Whether this ion adds to ``header``'s Unique+Razor totals."""
        return self.is_unique or (self.is_urazor and self.razor_protein == header)


@dataclass
class PeptideEvidence:
    """One distinct stripped peptide sequence."""

    sequence: str
    charge_states: set[int] = field(default_factory=set)
    spectra: set[str] = field(default_factory=set)
    protein: str = ""
    protein_id: str = ""
    gene_name: str = ""
    entry_name: str = ""
    protein_description: str = ""
    mapped_proteins: set[str] = field(default_factory=set)
    spc: int = 0
    intensity: float = 0.0
    probability: float = 0.0
    modified_observations: int = 0
    unmodified_observations: int = 0
    assigned_modifications: set[str] = field(default_factory=set)
    observed_modifications: set[str] = field(default_factory=set)
    is_decoy: bool = False
    labels: Label = field(default_factory=Label)
    phospho_labels: Label = field(default_factory=Label)


@dataclass
class ProteinEvidence:
    """One protein group."""

    protein_name: str
    protein_group: int
    protein_subgroup: str = ""
    original_header: str = ""
    part_header: str = ""
    protein_id: str = ""
    entry_name: str = ""
    description: str = ""
    organism: str = ""
    length: int = 0
    coverage: float = 0.0
    gene_names: str = ""
    protein_existence: str = ""
    sequence: str = ""
    supporting_spectra: set[str] = field(default_factory=set)
    indistinguishable_proteins: set[str] = field(default_factory=set)
    unique_stripped_peptides: int = 0
    total_peptide_ions: dict[str, IonEvidence] = field(default_factory=dict)
    total_spc: int = 0
    unique_spc: int = 0
    urazor_spc: int = 0
    total_intensity: float = 0.0
    unique_intensity: float = 0.0
    urazor_intensity: float = 0.0
    probability: float = 0.0
    top_pep_prob: float = 0.0
    is_decoy: bool = False
    urazor_modified_observations: int = 0
    urazor_unmodified_observations: int = 0
    urazor_assigned_modifications: dict[str, int] = field(default_factory=dict)
    urazor_observed_modifications: dict[str, int] = field(default_factory=dict)
    total_labels: Label = field(default_factory=Label)
    unique_labels: Label = field(default_factory=Label)
    urazor_labels: Label = field(default_factory=Label)
    phospho_total_labels: Label = field(default_factory=Label)
    phospho_unique_labels: Label = field(default_factory=Label)
    phospho_urazor_labels: Label = field(default_factory=Label)

    @property
    def header(self) -> str:
        """Key shared with PSM and Ion protein fields."""
        return self.part_header or self.protein_name

    @property
    def is_reportable(self) -> bool:
        return len(self.total_peptide_ions) > 0


@dataclass
class MassBin:
    """One bin of the precursor mass-difference distribution."""

    lower_mass: float
    upper_mass: float
    mass_center: float
    average_mass: float = 0.0
    corrected_mass: float = 0.0
    modifications: list[str] = field(default_factory=list)
    assigned_mods: list[str] = field(default_factory=list)  # spectrum names
    observed_mods: list[str] = field(default_factory=list)  # spectrum names


@dataclass
class Evidence:
    """The full evidence graph handed to reporting."""

    psms: list[PSMEvidence] = field(default_factory=list)
    ions: list[IonEvidence] = field(default_factory=list)
    peptides: list[PeptideEvidence] = field(default_factory=list)
    proteins: list[ProteinEvidence] = field(default_factory=list)
    mass_bins: list[MassBin] = field(default_factory=list)

    def ions_by_form(self) -> dict[str, IonEvidence]:
        return {ion.ion_form: ion for ion in self.ions}

    def psms_by_spectrum(self) -> dict[str, PSMEvidence]:
        return {psm.spectrum: psm for psm in self.psms}

    def proteins_by_header(self) -> dict[str, ProteinEvidence]:
        return {protein.header: protein for protein in self.proteins}
