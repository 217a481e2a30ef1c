"""Tests for status propagation passes."""

import pytest

from isoquant.evidence import Evidence, IonEvidence, PeptideEvidence, PSMEvidence
from isoquant.parsimony import IonStatusTable
from isoquant.pipeline import assemble_evidence
from isoquant.database import ProteinDatabase, ProteinRecord
from isoquant.identification import (
    ModificationSite,
    PeptideIdentification,
    PeptideIonIdentification,
    ProteinIdentification,
)
from isoquant.propagation import (
    update_assigned_modifications,
    update_ion_mod_count,
    update_ion_status,
    update_peptide_mod_count,
    update_protein_status,
)

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


def make_ion_record(peptide, charge, mass, parents=()):
    return PeptideIonIdentification(
        peptide_sequence=peptide,
        charge=charge,
        calc_neutral_pep_mass=mass,
        parent_proteins=list(parents),
    )


@pytest.fixture
def evidence():
    """Two protein groups sharing one peptide ion."""
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
                make_ion_record('AAAK', 2, 1000.0),
                make_ion_record('CCCK', 2, 1100.0, [PROTEIN_B]),
                make_ion_record('EEEK', 2, 1300.0),
            ],
        ),
        ProteinIdentification(
            group_number=2,
            protein_name=PROTEIN_B,
            peptide_ions=[
                make_ion_record('CCCK', 2, 1100.0, [PROTEIN_A]),
                make_ion_record('DDDK', 3, 1200.0),
            ],
        ),
    ]
    database = ProteinDatabase([
        ProteinRecord(f"{PROTEIN_A} Protein A", PROTEIN_A, id='P00001', gene_names='GENEA'),
        ProteinRecord(f"{PROTEIN_B} Protein B", PROTEIN_B, id='P00002', gene_names='GENEB'),
    ])
    return assemble_evidence(identifications, groups, database)


class TestUpdateIonStatus:
    """Tests for writing protein-derived status onto PSMs and Ions."""

    def test_status_written(self):
        """Unique and razor status come from the table."""
        psm = PSMEvidence('run.00001.00001.2', 'PEP', 'PEP#2#1.0000', 2, 1.0, mapped_proteins={'A'})
        ion = IonEvidence('PEP', 'PEP#2#1.0000')
        table = IonStatusTable(unique={'PEP#2#1.0000'}, razor={'PEP#2#1.0000': 'A'})

        update_ion_status([psm], [ion], table)

        assert psm.is_unique and psm.is_urazor
        assert psm.razor_protein == 'A'
        assert ion.is_unique and ion.razor_protein == 'A'

    def test_unmapped_psm_is_unique(self):
        """A PSM without mapped proteins is unique."""
        psm = PSMEvidence('run.00001.00001.2', 'PEP', 'PEP#2#1.0000', 2, 1.0)

        update_ion_status([psm], [], IonStatusTable())

        assert psm.is_unique
        assert not psm.is_urazor


class TestUpdateProteinStatus:
    """Tests for swapping PSMs to their razor protein."""

    def test_swap(self):
        """A razor PSM reports its razor protein and keeps the old one mapped."""
        psm = PSMEvidence(
            'run.00001.00001.2', 'PEP', 'PEP#2#1.0000', 2, 1.0,
            protein='B', razor_protein='A', is_urazor=True,
        )

        assert update_protein_status([psm]) == 1
        assert psm.protein == 'A'
        assert 'B' in psm.mapped_proteins

    def test_non_razor_mirrors_protein(self):
        """A non-razor PSM's razor protein mirrors its protein."""
        psm = PSMEvidence('run.00001.00001.2', 'PEP', 'PEP#2#1.0000', 2, 1.0, protein='B')

        assert update_protein_status([psm]) == 0
        assert psm.razor_protein == 'B'


class TestModificationCounts:
    """Tests for modification count passes."""

    def test_ion_and_peptide_counts(self):
        """|massdiff| <= 0.99 counts as unmodified."""
        psms = [
            PSMEvidence('r.00001.00001.2', 'PEP', 'PEP#2#1.0000', 2, 1.0, massdiff=0.5),
            PSMEvidence('r.00002.00002.2', 'PEP', 'PEP#2#1.0000', 2, 1.0, massdiff=15.99),
            PSMEvidence('r.00003.00003.3', 'PEP', 'PEP#3#1.0000', 3, 1.0, massdiff=-0.99),
        ]
        ions = [IonEvidence('PEP', 'PEP#2#1.0000'), IonEvidence('PEP', 'PEP#3#1.0000')]
        peptides = [PeptideEvidence('PEP')]

        update_ion_mod_count(psms, ions)
        update_peptide_mod_count(psms, peptides)

        assert (ions[0].unmodified_observations, ions[0].modified_observations) == (1, 1)
        assert (ions[1].unmodified_observations, ions[1].modified_observations) == (1, 0)
        assert (peptides[0].unmodified_observations, peptides[0].modified_observations) == (2, 1)

    def test_assigned_modifications_forwarded(self):
        """PSM assigned modifications reach ions and peptides."""
        psm = PSMEvidence(
            'r.00001.00001.2', 'PEP', 'PEP#2#1.0000', 2, 1.0,
            assigned_modifications={'3M(15.9949)'},
        )
        evidence = Evidence(
            psms=[psm],
            ions=[IonEvidence('PEP', 'PEP#2#1.0000')],
            peptides=[PeptideEvidence('PEP')],
        )

        update_assigned_modifications(evidence)

        assert evidence.ions[0].assigned_modifications == {'3M(15.9949)'}
        assert evidence.peptides[0].assigned_modifications == {'3M(15.9949)'}


class TestPropagatedEvidence:
    """Invariants of a fully propagated evidence graph."""

    def test_shared_psm_swapped_to_razor(self, evidence):
        """The shared PSM now reports the better supported protein."""
        psm = evidence.psms_by_spectrum()['run.00003.00003.2']

        assert psm.protein == PROTEIN_A
        assert psm.mapped_proteins == {PROTEIN_A, PROTEIN_B}

    def test_unique_ions_have_one_mapped_protein(self, evidence):
        """Unique ions map to at most one protein."""
        for ion in evidence.ions:
            if ion.is_unique:
                assert len(ion.mapped_proteins) <= 1

    def test_shared_ion_views_agree(self, evidence):
        """Both groups report the same razor protein for the shared ion."""
        views = [
            p.total_peptide_ions['CCCK#2#1100.0000'] for p in evidence.proteins
        ]

        assert len(views) == 2
        assert all(v.is_urazor and not v.is_unique for v in views)
        assert {v.razor_protein for v in views} == {PROTEIN_A}

    def test_supporting_spectra_match_psm_proteins(self, evidence):
        """Supporting spectra are exactly the PSMs assigned to each protein."""
        for protein in evidence.proteins:
            expected = {psm.spectrum for psm in evidence.psms if psm.protein == protein.header}
            assert protein.supporting_spectra == expected

    def test_view_spectra(self, evidence):
        """Only the razor protein's view of a shared ion holds its spectra."""
        proteins = evidence.proteins_by_header()

        assert proteins[PROTEIN_A].total_peptide_ions['CCCK#2#1100.0000'].spectra == {
            'run.00003.00003.2'
        }
        assert proteins[PROTEIN_B].total_peptide_ions['CCCK#2#1100.0000'].spectra == set()

    def test_annotations_follow_swap(self, evidence):
        """Gene names are refreshed from the post-swap protein."""
        psm = evidence.psms_by_spectrum()['run.00003.00003.2']

        assert psm.gene_name == 'GENEA'
        assert psm.protein_id == 'P00001'


class TestTargetDecoySharedIon:
    """An ion listed by both a target and a decoy group."""

    @pytest.fixture
    def evidence(self):
        decoy = 'rev_sp|P00002|B_HUMAN'
        identifications = [
            make_identification(2, 'PEPTIDEK', 2, 1000.0, PROTEIN_A, [decoy]),
        ]
        groups = [
            ProteinIdentification(
                group_number=1,
                protein_name=PROTEIN_A,
                peptide_ions=[make_ion_record('PEPTIDEK', 2, 1000.0, [decoy])],
            ),
            ProteinIdentification(
                group_number=2,
                protein_name=decoy,
                peptide_ions=[
                    make_ion_record('PEPTIDEK', 2, 1000.0, [PROTEIN_A]),
                    make_ion_record('DECOYK', 2, 900.0),
                ],
            ),
        ]
        database = ProteinDatabase([
            ProteinRecord(f"{PROTEIN_A} Protein A", PROTEIN_A, id='P00001'),
            ProteinRecord(decoy, decoy, is_decoy=True),
        ])
        return assemble_evidence(identifications, groups, database)

    def test_ion_not_unique(self, evidence):
        """Unique ions map to at most one protein."""
        ion = evidence.ions_by_form()['PEPTIDEK#2#1000.0000']

        assert not ion.is_unique
        assert len(ion.mapped_proteins) == 2
        for ion in evidence.ions:
            assert not (ion.is_unique and len(ion.mapped_proteins) > 1)

    def test_psm_keeps_target_protein(self, evidence):
        """The PSM stays on its target protein."""
        psm = evidence.psms[0]

        assert psm.protein == PROTEIN_A
        assert psm.razor_protein == PROTEIN_A

    def test_target_keeps_spectrum(self, evidence):
        """The target protein is still supported by the spectrum."""
        target = evidence.proteins_by_header()[PROTEIN_A]

        assert target.supporting_spectra == {'run.00002.00002.2'}
        assert target.total_spc == 1
        assert target.urazor_spc == 1
