"""
isoquant: evidence aggregation and isobaric (TMT) quantification

Builds the PSM -> Ion -> Peptide -> Protein evidence graph from validated
identifications, resolves unique and razor peptide ions, and rolls
reporter ion intensities up to every level.
"""

__version__ = "0.1.0"

from .config import (
    QuantConfig,
    load_config,
    load_label_names,
    setup_logging,
)
from .database import ProteinDatabase, ProteinRecord
from .evidence import (
    Evidence,
    IonEvidence,
    PeptideEvidence,
    ProteinEvidence,
    PSMEvidence,
)
from .identification import (
    ModificationSite,
    PeptideIdentification,
    PeptideIonIdentification,
    ProteinIdentification,
)
from .labels import Channel, Label, new_label
from .pipeline import (
    assemble_evidence,
    quantify_labels,
    run_pipeline,
)
from .spectra import Precursor, Spectrum, SpectrumIndex, build_spectrum_index
from .tables import (
    ion_table,
    modification_table,
    peptide_table,
    protein_table,
    psm_table,
    reportable_proteins,
)
