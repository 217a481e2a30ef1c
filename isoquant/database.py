"""Protein database records used to annotate protein evidence."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

logger = logging.getLogger(__name__)

# DataFrame column -> ProteinRecord attribute
DATABASE_COLUMN_MAP = {
    'OriginalHeader': 'original_header',
    'PartHeader': 'part_header',
    'ID': 'id',
    'EntryName': 'entry_name',
    'ProteinName': 'protein_name',
    'Description': 'description',
    'GeneNames': 'gene_names',
    'Organism': 'organism',
    'Sequence': 'sequence',
    'ProteinExistence': 'protein_existence',
    'IsDecoy': 'is_decoy',
}


@dataclass
class ProteinRecord:
    """One protein database entry."""

    original_header: str
    part_header: str
    id: str = ""
    entry_name: str = ""
    protein_name: str = ""
    description: str = ""
    gene_names: str = ""
    organism: str = ""
    sequence: str = ""
    protein_existence: str = ""
    is_decoy: bool = False

    @property
    def display_description(self) -> str:
        # UniProt entries carry the description in the protein name
        return self.description or self.protein_name


class ProteinDatabase:
    """Protein records with lookups by header fragment."""

    def __init__(self, records: list[ProteinRecord]):
        self.records = list(records)
        self._by_part_header = {r.part_header: r for r in self.records}

    def __len__(self) -> int:
        return len(self.records)

    def get(self, part_header: str) -> ProteinRecord | None:
        """Exact lookup by part header."""
        return self._by_part_header.get(part_header)

    def find(self, name: str, is_decoy: bool) -> ProteinRecord | None:
        """Find the record whose header contains ``name`` in the same decoy partition.

        Args:
            name: Protein name or header fragment
            is_decoy: Decoy partition to search

        Returns:
            Matching record, or None

        """
        record = self._by_part_header.get(name)
        if record is not None and record.is_decoy == is_decoy:
            return record

        for record in self.records:
            if record.is_decoy == is_decoy and name in record.original_header:
                return record

        return None

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> ProteinDatabase:
        """Build a database from a DataFrame of annotated FASTA entries."""
        missing = [col for col in ('OriginalHeader', 'PartHeader') if col not in df.columns]
        if missing:
            raise ValueError(f"Missing required database columns: {missing}")

        df = df.rename(columns=DATABASE_COLUMN_MAP)
        columns = [c for c in DATABASE_COLUMN_MAP.values() if c in df.columns]

        records = []
        for row in df[columns].fillna('').to_dict('records'):
            decoy = row.pop('is_decoy', False)
            if isinstance(decoy, str):
                decoy = decoy.strip().lower() in ('true', '1', 'yes')
            row = {key: str(value) for key, value in row.items()}
            records.append(ProteinRecord(**row, is_decoy=bool(decoy)))

        logger.info(f"Loaded {len(records)} protein database records")
        return cls(records)
