"""Tests for the protein database."""

import pandas as pd
import pytest

from isoquant.database import ProteinDatabase, ProteinRecord


class TestProteinDatabase:
    """Tests for protein record lookups."""

    @pytest.fixture
    def database(self):
        return ProteinDatabase([
            ProteinRecord('sp|P00001|A_HUMAN Protein A', 'sp|P00001|A_HUMAN', id='P00001'),
            ProteinRecord('rev_sp|P00001|A_HUMAN', 'rev_sp|P00001|A_HUMAN', is_decoy=True),
        ])

    def test_exact_lookup(self, database):
        """Records are found by part header."""
        assert database.get('sp|P00001|A_HUMAN').id == 'P00001'
        assert database.get('P00001') is None

    def test_find_by_fragment(self, database):
        """find() falls back to a header substring match."""
        assert database.find('P00001', is_decoy=False).id == 'P00001'

    def test_find_respects_decoy_partition(self, database):
        """Targets and decoys are searched separately."""
        assert database.find('rev_sp|P00001|A_HUMAN', is_decoy=False) is None
        assert database.find('rev_sp|P00001|A_HUMAN', is_decoy=True).is_decoy


class TestFromDataFrame:
    """Tests for building a database from a table."""

    def test_columns_mapped(self):
        """Table columns map onto record attributes."""
        df = pd.DataFrame({
            'OriginalHeader': ['sp|P00001|A_HUMAN Protein A', 'rev_sp|P00001|A_HUMAN'],
            'PartHeader': ['sp|P00001|A_HUMAN', 'rev_sp|P00001|A_HUMAN'],
            'GeneNames': ['GENEA', None],
            'IsDecoy': ['false', 'true'],
        })

        database = ProteinDatabase.from_dataframe(df)

        assert len(database) == 2
        assert database.records[0].gene_names == 'GENEA'
        assert database.records[1].gene_names == ''
        assert database.records[1].is_decoy

    def test_missing_columns(self):
        """Header columns are required."""
        with pytest.raises(ValueError, match="Missing required database columns"):
            ProteinDatabase.from_dataframe(pd.DataFrame({'PartHeader': ['x']}))
