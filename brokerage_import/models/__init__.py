"""Domain models for the brokerage spreadsheet import engine.

Raw rows, column mappings and field schemas feed the pipeline; entities,
verdicts and references come out of it; ImportOutcome is what the executor
reports.
"""

from .column_mapping import ColumnMapping
from .entities import (
    BeneficiaryEntity,
    ClientEntity,
    ImportBatch,
    PolicyEntity,
    ResolvedReference,
    ValidationIssue,
    ValidationVerdict,
)
from .error_record import ErrorRecord
from .field_definitions import FieldDefinition, ImportTarget
from .import_outcome import ExecutorState, ImportOutcome, PhaseCounter
from .reference_data import (
    Advisor,
    ExistingClient,
    ExistingPolicy,
    Insurer,
    Product,
    ReferenceData,
)
from .row_data import RowData

__all__ = [
    # Input
    "RowData",
    "ColumnMapping",
    "FieldDefinition",
    "ImportTarget",
    # Entities
    "BeneficiaryEntity",
    "ClientEntity",
    "PolicyEntity",
    "ImportBatch",
    "ResolvedReference",
    "ValidationIssue",
    "ValidationVerdict",
    # Reference lists
    "ReferenceData",
    "ExistingClient",
    "ExistingPolicy",
    "Insurer",
    "Product",
    "Advisor",
    # Results
    "ImportOutcome",
    "PhaseCounter",
    "ExecutorState",
    "ErrorRecord",
]
