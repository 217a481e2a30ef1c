"""Upstream identification records consumed by the evidence assembler.

These are the already-validated outputs of the search and statistical
validation tools: one PeptideIdentification per PSM (or per peptide ion
for the ion-level list) and one ProteinIdentification per protein group.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ModificationSite:
    """One residue-level modification reported for a PSM.

    ``amino_acid`` is ``"n"`` for peptide N-terminal and ``"c"`` for
    C-terminal modifications.
    """

    position: str
    amino_acid: str
    mass_diff: float
    mass: float = 0.0


@dataclass
class PeptideIdentification:
    """A validated peptide-spectrum match."""

    spectrum: str
    peptide: str
    assumed_charge: int
    calc_neutral_pep_mass: float
    protein: str = ""
    alternative_proteins: list[str] = field(default_factory=list)
    modified_peptide: str = ""
    index: int = 0
    scan: int = 0
    hit_rank: int = 1
    precursor_neutral_mass: float = 0.0
    precursor_exp_mass: float = 0.0
    retention_time: float = 0.0
    raw_massdiff: float = 0.0
    massdiff: float = 0.0
    probability: float = 0.0
    expectation: float = 0.0
    xcorr: float = 0.0
    delta_cn: float = 0.0
    sp_rank: float = 0.0
    hyperscore: float = 0.0
    nextscore: float = 0.0
    discriminant_value: float = 0.0
    intensity: float = 0.0
    modifications: list[ModificationSite] = field(default_factory=list)
    localized_ptm_sites: dict[str, int] = field(default_factory=dict)
    localized_ptm_massdiff: dict[str, str] = field(default_factory=dict)


@dataclass
class PeptideIonIdentification:
    """A peptide ion listed under a protein group."""

    peptide_sequence: str
    charge: int
    calc_neutral_pep_mass: float
    modified_peptide: str = ""
    weight: float = 0.0
    group_weight: float = 0.0
    initial_probability: float = 0.0
    is_unique: bool = False
    razor: bool = False
    parent_proteins: list[str] = field(default_factory=list)


@dataclass
class ProteinIdentification:
    """A protein group as reported by protein inference."""

    group_number: int
    protein_name: str
    group_sibling_id: str = "a"
    length: int = 0
    percent_coverage: float = 0.0
    probability: float = 0.0
    top_pep_prob: float = 0.0
    indistinguishable_proteins: list[str] = field(default_factory=list)
    unique_stripped_peptides: list[str] = field(default_factory=list)
    peptide_ions: list[PeptideIonIdentification] = field(default_factory=list)


def is_decoy_protein(name: str, decoy_tag: str) -> bool:
    """Check whether a protein name carries the decoy tag."""
    return bool(decoy_tag) and decoy_tag in name


def is_decoy_psm(identification: PeptideIdentification, decoy_tag: str) -> bool:
    """A PSM is a decoy when its protein and every alternative protein are decoys."""
    if not decoy_tag or not identification.protein.startswith(decoy_tag):
        return False

    return all(alt.startswith(decoy_tag) for alt in identification.alternative_proteins)
