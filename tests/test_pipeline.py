"""End-to-end tests for evidence assembly and quantification."""

import numpy as np
import pytest

from isoquant.config import QuantConfig
from isoquant.database import ProteinDatabase, ProteinRecord
from isoquant.identification import (
    ModificationSite,
    PeptideIdentification,
    PeptideIonIdentification,
    ProteinIdentification,
)
from isoquant.labels import TMT_REPORTER_MZ
from isoquant.pipeline import assemble_evidence, run_pipeline
from isoquant.spectra import Precursor, Spectrum
from isoquant.tables import protein_table

PROTEIN_A = 'sp|P00001|A_HUMAN'
PROTEIN_B = 'sp|P00002|B_HUMAN'
TMT = [ModificationSite('1', 'n', 229.1629)]


def make_identification(scan, peptide, charge, mass, protein, alternatives=()):
    return PeptideIdentification(
        spectrum=f"run.{scan:05d}.{scan:05d}.{charge}",
        peptide=peptide,
        assumed_charge=charge,
        calc_neutral_pep_mass=mass,
        protein=protein,
        alternative_proteins=list(alternatives),
        probability=0.99,
        modifications=list(TMT),
    )


def make_ms2(scan):
    """MS2 scan with 126 = 100 * scan and 127N = 10 * scan."""
    return Spectrum(
        scan=str(scan),
        index=str(scan - 1),
        level=2,
        mz=[TMT_REPORTER_MZ['126'], TMT_REPORTER_MZ['127N'], 500.0],
        intensity=[100.0 * scan, 10.0 * scan, 1e6],
        precursor=Precursor(parent_scan='100', target_mz=501.0, charge_state=2),
    )


@pytest.fixture
def run():
    """Two protein groups, A (3 ions) and B (2 ions), sharing CCCK."""
    identifications = [
        make_identification(1, 'AAAK', 2, 1000.0, PROTEIN_A),
        make_identification(2, 'AAAK', 2, 1000.0, PROTEIN_A),
        make_identification(3, 'CCCK', 2, 1100.0, PROTEIN_B, [PROTEIN_A]),
        make_identification(4, 'DDDK', 3, 1200.0, PROTEIN_B),
        make_identification(5, 'EEEK', 2, 1300.0, PROTEIN_A),
    ]
    groups = [
        ProteinIdentification(
            group_number=1,
            protein_name=PROTEIN_A,
            peptide_ions=[
                PeptideIonIdentification('AAAK', 2, 1000.0),
                PeptideIonIdentification('CCCK', 2, 1100.0, parent_proteins=[PROTEIN_B]),
                PeptideIonIdentification('EEEK', 2, 1300.0),
            ],
        ),
        ProteinIdentification(
            group_number=2,
            protein_name=PROTEIN_B,
            peptide_ions=[
                PeptideIonIdentification('CCCK', 2, 1100.0, parent_proteins=[PROTEIN_A]),
                PeptideIonIdentification('DDDK', 3, 1200.0),
            ],
        ),
    ]
    database = ProteinDatabase([
        ProteinRecord(f"{PROTEIN_A} Protein A", PROTEIN_A, id='P00001', gene_names='GENEA'),
        ProteinRecord(f"{PROTEIN_B} Protein B", PROTEIN_B, id='P00002', gene_names='GENEB'),
    ])
    spectra = [make_ms2(scan) for scan in range(1, 6)]
    return identifications, groups, database, spectra


@pytest.fixture
def config():
    return QuantConfig(
        plex='10',
        purity=0.0,
        min_probability=0.0,
        normalize=False,
        label_names={'126': 'control'},
    )


class TestAssembleEvidence:
    """Tests for the assembly stages."""

    def test_missing_database(self, run):
        """The run aborts without a protein database."""
        identifications, groups, _, _ = run

        with pytest.raises(ValueError, match="Cannot locate protein database"):
            assemble_evidence(identifications, groups, None)

    def test_spectral_counts(self, run):
        """Shared spectra count toward the razor protein only."""
        identifications, groups, database, _ = run

        evidence = assemble_evidence(identifications, groups, database)

        proteins = evidence.proteins_by_header()
        a, b = proteins[PROTEIN_A], proteins[PROTEIN_B]
        assert (a.total_spc, a.unique_spc, a.urazor_spc) == (4, 3, 4)
        assert (b.total_spc, b.unique_spc, b.urazor_spc) == (1, 1, 1)

    def test_mass_bins_attached(self, run):
        """Modification mass bins are part of the evidence."""
        identifications, groups, database, _ = run

        evidence = assemble_evidence(identifications, groups, database)

        assert len(evidence.mass_bins) == 10003


class TestRunPipeline:
    """Tests for the full run."""

    def test_protein_labels(self, run, config):
        """Reporter intensities are summed into the protein buckets."""
        evidence = run_pipeline(*run, config=config)

        proteins = evidence.proteins_by_header()
        a, b = proteins[PROTEIN_A], proteins[PROTEIN_B]

        # 126 = 100 * scan; A holds scans 1, 2, 3 (razor) and 5
        assert a.urazor_labels.channels[0].intensity == pytest.approx(1100.0)
        assert a.unique_labels.channels[0].intensity == pytest.approx(800.0)
        assert b.urazor_labels.channels[0].intensity == pytest.approx(400.0)
        assert b.total_labels.channels[0].intensity == pytest.approx(400.0)

    def test_total_label_additive(self, run, config):
        """Each protein's Total label is the sum over its ion views."""
        evidence = run_pipeline(*run, config=config)

        for protein in evidence.proteins:
            views = [v for v in protein.total_peptide_ions.values() if v.labels.channels]
            expected = sum(v.labels.intensities for v in views)
            np.testing.assert_allclose(protein.total_labels.intensities, expected)

    def test_unlabelled_psm_cleared(self, run, config):
        """A PSM without the tag modification contributes no reporter signal."""
        identifications, groups, database, spectra = run
        identifications[4].modifications = []

        evidence = run_pipeline(identifications, groups, database, spectra, config=config)

        a = evidence.proteins_by_header()[PROTEIN_A]
        assert a.urazor_labels.channels[0].intensity == pytest.approx(600.0)

    def test_purity_filter(self, run):
        """Without MS1 scans purity is 0 and the default threshold drops every label."""
        evidence = run_pipeline(*run, config=QuantConfig(normalize=False))

        assert all(psm.purity == 0.0 for psm in evidence.psms)
        assert all(p.urazor_labels.channels == [] for p in evidence.proteins)

    def test_normalization(self, run, config):
        """The largest channel keeps its total after normalization."""
        config.normalize = True

        evidence = run_pipeline(*run, config=config)

        totals = sum(p.urazor_labels.intensities for p in evidence.proteins)
        assert totals[0] == pytest.approx(1500.0)
        assert totals[1] == pytest.approx(150.0 * 150.0 / 1500.0)

    def test_protein_table(self, run, config):
        """The protein table uses the configured sample names."""
        evidence = run_pipeline(*run, config=config)

        df = protein_table(evidence, config)

        assert list(df['protein']) == [PROTEIN_A, PROTEIN_B]
        assert df.loc[0, 'control'] == pytest.approx(1100.0)
        assert df.loc[0, 'gene'] == 'GENEA'

    def test_protein_table_unique_only(self, run, config):
        """unique_only in the settings switches protein channels to Unique labels."""
        config.unique_only = True
        evidence = run_pipeline(*run, config=config)

        df = protein_table(evidence, config)

        assert df.loc[0, 'control'] == pytest.approx(800.0)
