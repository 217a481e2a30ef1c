"""Read-only tabular views of a finished Evidence graph.

Each function returns one DataFrame row per entity with one column per
reporter channel, named by the channel's sample name when one was
configured.
"""

from __future__ import annotations

import logging

import pandas as pd

from .config import QuantConfig
from .evidence import Evidence, MassBin, ProteinEvidence
from .labels import Label

logger = logging.getLogger(__name__)


def _join(values) -> str:
    return ';'.join(sorted(values))


def _channel_columns(label: Label) -> dict[str, float]:
    return {channel.display_name: channel.intensity for channel in label.channels}


def _frame(rows: list[dict]) -> pd.DataFrame:
    # Rows without labels miss the channel columns; fill them with 0
    df = pd.DataFrame(rows)
    numeric = df.select_dtypes('number').columns
    df[numeric] = df[numeric].fillna(0.0)
    return df


def reportable_proteins(proteins: list[ProteinEvidence]) -> list[ProteinEvidence]:
    """Drop proteins listing no peptide ions."""
    reportable = [p for p in proteins if p.is_reportable]
    dropped = len(proteins) - len(reportable)
    if dropped:
        logger.debug(f"Dropped {dropped} proteins without peptide ions from the report")
    return reportable


def psm_table(evidence: Evidence) -> pd.DataFrame:
    """One row per PSM."""
    rows = []
    for psm in evidence.psms:
        row = {
            'spectrum': psm.spectrum,
            'peptide': psm.peptide,
            'modified_peptide': psm.modified_peptide,
            'charge': psm.assumed_charge,
            'retention_time': psm.retention_time,
            'calculated_peptide_mass': psm.calc_neutral_pep_mass,
            'delta_mass': psm.massdiff,
            'probability': psm.probability,
            'intensity': psm.intensity,
            'purity': psm.purity,
            'is_unique': psm.is_unique,
            'is_decoy': psm.is_decoy,
            'protein': psm.protein,
            'protein_id': psm.protein_id,
            'gene': psm.gene_name,
            'mapped_proteins': _join(psm.mapped_proteins - {psm.protein}),
            'assigned_modifications': _join(psm.assigned_modifications),
            'observed_modifications': _join(psm.observed_modifications),
        }
        row.update(_channel_columns(psm.labels))
        rows.append(row)

    return _frame(rows)


def ion_table(evidence: Evidence) -> pd.DataFrame:
    """One row per target peptide ion."""
    rows = []
    for ion in evidence.ions:
        if ion.is_decoy:
            continue
        row = {
            'ion_form': ion.ion_form,
            'peptide': ion.sequence,
            'modified_peptide': ion.modified_sequence,
            'charge': ion.charge_state,
            'mz': ion.mz,
            'probability': ion.probability,
            'spectral_count': len(ion.spectra),
            'intensity': ion.intensity,
            'is_unique': ion.is_unique,
            'protein': ion.protein,
            'protein_id': ion.protein_id,
            'gene': ion.gene_name,
            'mapped_proteins': _join(ion.mapped_proteins - {ion.protein}),
            'assigned_modifications': _join(ion.assigned_modifications),
            'observed_modifications': _join(ion.observed_modifications),
        }
        row.update(_channel_columns(ion.labels))
        rows.append(row)

    return _frame(rows)


def peptide_table(evidence: Evidence) -> pd.DataFrame:
    """One row per target peptide sequence."""
    rows = []
    for peptide in evidence.peptides:
        if peptide.is_decoy:
            continue
        row = {
            'peptide': peptide.sequence,
            'charges': ','.join(str(z) for z in sorted(peptide.charge_states)),
            'probability': peptide.probability,
            'spectral_count': peptide.spc,
            'intensity': peptide.intensity,
            'protein': peptide.protein,
            'protein_id': peptide.protein_id,
            'gene': peptide.gene_name,
            'mapped_proteins': _join(peptide.mapped_proteins - {peptide.protein}),
            'assigned_modifications': _join(peptide.assigned_modifications),
        }
        row.update(_channel_columns(peptide.labels))
        rows.append(row)

    return _frame(rows)


def protein_table(evidence: Evidence, config: QuantConfig | None = None) -> pd.DataFrame:
    """One row per reportable target protein group.

    Args:
        evidence: Finished evidence graph
        config: Settings; with ``unique_only`` set, Unique instead of
            Unique+Razor channel intensities are reported

    Returns:
        DataFrame sorted by protein group

    """
    unique_only = (config or QuantConfig()).unique_only

    rows = []
    for protein in reportable_proteins(evidence.proteins):
        if protein.is_decoy:
            continue
        row = {
            'group': protein.protein_group,
            'subgroup': protein.protein_subgroup,
            'protein': protein.header,
            'protein_id': protein.protein_id,
            'entry_name': protein.entry_name,
            'gene': protein.gene_names,
            'description': protein.description,
            'organism': protein.organism,
            'length': protein.length,
            'coverage': protein.coverage,
            'probability': protein.probability,
            'top_peptide_probability': protein.top_pep_prob,
            'total_peptide_ions': len(protein.total_peptide_ions),
            'total_spectral_count': protein.total_spc,
            'unique_spectral_count': protein.unique_spc,
            'razor_spectral_count': protein.urazor_spc,
            'total_intensity': protein.total_intensity,
            'unique_intensity': protein.unique_intensity,
            'razor_intensity': protein.urazor_intensity,
            'indistinguishable_proteins': _join(protein.indistinguishable_proteins),
        }
        labels = protein.unique_labels if unique_only else protein.urazor_labels
        row.update(_channel_columns(labels))
        rows.append(row)

    return _frame(rows)


def modification_table(mass_bins: list[MassBin]) -> pd.DataFrame:
    """One row per mass bin holding at least one PSM."""
    rows = [
        {
            'mass_center': b.mass_center,
            'lower_mass': b.lower_mass,
            'upper_mass': b.upper_mass,
            'average_mass': b.average_mass,
            'corrected_mass': b.corrected_mass,
            'assigned_psms': len(b.assigned_mods),
            'observed_psms': len(b.observed_mods),
        }
        for b in mass_bins
        if b.assigned_mods or b.observed_mods
    ]
    return pd.DataFrame(rows, columns=[
        'mass_center', 'lower_mass', 'upper_mass', 'average_mass',
        'corrected_mass', 'assigned_psms', 'observed_psms',
    ])
