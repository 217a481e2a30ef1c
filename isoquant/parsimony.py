"""Protein parsimony: unique and razor assignment of peptide ions.

An ion listed by exactly one protein group is unique to it. An ion listed
by several groups is shared and is assigned to a single razor protein:

1. a target group, when exactly one target lists it (decoys only win
   ions listed by decoys alone)
2. the group flagged razor by protein inference, when exactly one is
3. otherwise the group with the most unique peptide sequences
4. ties broken by the lexicographically smallest protein header

Every group's view of a shared ion ends up with the same razor protein,
so quantities can be attributed without double counting.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from .evidence import ProteinEvidence

logger = logging.getLogger(__name__)


@dataclass
class RazorAssignment:
    """How a peptide ion was attributed to its razor protein."""

    ion_form: str
    razor_protein: str
    candidates: list[str] = field(default_factory=list)
    reason: str = 'unique'  # unique, target, upstream, unique_support or tie_break

    @property
    def is_shared(self) -> bool:
        return len(self.candidates) > 1


@dataclass
class IonStatusTable:
    """Per-IonForm status derived from the protein groups.

    Produced once from the assembled proteins and consumed by the status
    propagation pass.
    """

    unique: set[str] = field(default_factory=set)
    razor: dict[str, str] = field(default_factory=dict)


def build_ion_protein_map(
    proteins: list[ProteinEvidence],
) -> tuple[dict[str, set[str]], dict[str, set[str]]]:
    """Map IonForms to the protein headers listing them, and back.

    Returns:
        Tuple of (ion_to_proteins, protein_to_ions)

    """
    ion_to_proteins = defaultdict(set)
    protein_to_ions = defaultdict(set)

    for protein in proteins:
        for ion_form in protein.total_peptide_ions:
            ion_to_proteins[ion_form].add(protein.header)
            protein_to_ions[protein.header].add(ion_form)

    return dict(ion_to_proteins), dict(protein_to_ions)


def count_unique_support(proteins: list[ProteinEvidence]) -> dict[str, int]:
    """Count distinct peptide sequences unique to each protein.

    Uniqueness is structural: the ion is listed by no other protein in the
    given list.
    """
    ion_to_proteins, _ = build_ion_protein_map(proteins)
    support = {protein.header: set() for protein in proteins}

    for protein in proteins:
        for ion_form, view in protein.total_peptide_ions.items():
            if len(ion_to_proteins[ion_form]) == 1:
                support[protein.header].add(view.sequence)

    return {header: len(sequences) for header, sequences in support.items()}


def _choose_razor_protein(
    ion_form: str,
    candidates: list[ProteinEvidence],
    support: dict[str, int],
) -> RazorAssignment:
    headers = sorted(p.header for p in candidates)

    # a decoy never takes a shared ion away from a target
    eligible = [p for p in candidates if not p.is_decoy] or candidates
    if len(eligible) == 1:
        return RazorAssignment(ion_form, eligible[0].header, headers, 'target')

    flagged = sorted({p.header for p in eligible if p.total_peptide_ions[ion_form].is_urazor})
    if len(flagged) == 1:
        return RazorAssignment(ion_form, flagged[0], headers, 'upstream')

    ranked = sorted((p.header for p in eligible), key=lambda h: (-support.get(h, 0), h))
    tied = support.get(ranked[0], 0) == support.get(ranked[1], 0)
    reason = 'tie_break' if tied else 'unique_support'

    return RazorAssignment(ion_form, ranked[0], headers, reason)


def assign_razor_proteins(proteins: list[ProteinEvidence]) -> dict[str, RazorAssignment]:
    """Resolve unique and razor status of every protein's ion views, in place.

    Every group listing an IonForm takes part, targets and decoys alike,
    so an ion listed by more than one group is never unique.

    Args:
        proteins: Assembled protein evidence

    Returns:
        Dict mapping IonForm to its RazorAssignment

    """
    ion_to_proteins, _ = build_ion_protein_map(proteins)
    support = count_unique_support(proteins)
    by_header = {p.header: p for p in proteins}
    assignments = {}

    for ion_form, headers in ion_to_proteins.items():
        candidates = [by_header[h] for h in sorted(headers)]

        if len(candidates) == 1:
            assignment = RazorAssignment(ion_form, candidates[0].header, [candidates[0].header])
        else:
            assignment = _choose_razor_protein(ion_form, candidates, support)

        for protein in candidates:
            view = protein.total_peptide_ions[ion_form]
            view.is_unique = not assignment.is_shared
            view.is_urazor = True
            view.razor_protein = assignment.razor_protein

        assignments[ion_form] = assignment

    n_shared = sum(1 for a in assignments.values() if a.is_shared)
    n_ties = sum(1 for a in assignments.values() if a.reason == 'tie_break')
    logger.info(f"Razor assignment: {len(assignments) - n_shared} unique ions, {n_shared} shared ions")
    if n_ties:
        logger.debug(f"{n_ties} shared ions resolved by header tie-break")

    return assignments


def build_ion_status_table(proteins: list[ProteinEvidence]) -> IonStatusTable:
    """Collect unique IonForms and razor proteins from the protein ion views.

    An IonForm is unique if any protein marks it unique; its razor protein
    comes from the protein views marking it razor, a target's entry taking
    precedence over a decoy's.
    """
    table = IonStatusTable()
    from_target = set()

    for protein in proteins:
        for ion_form, view in protein.total_peptide_ions.items():
            if view.is_unique:
                table.unique.add(ion_form)
            if not view.is_urazor:
                continue
            if protein.is_decoy and ion_form in from_target:
                continue

            table.razor[ion_form] = view.razor_protein or protein.header
            if not protein.is_decoy:
                from_target.add(ion_form)

    return table
