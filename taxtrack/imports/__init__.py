"""
CSV Import Package

Parses bank/spreadsheet exports, matches providers, categories and
clients, and records the rows as expenses or incomes under an ImportJob.
"""

from taxtrack.imports.client_matcher import ClientMatch, ClientMatcher
from taxtrack.imports.csv_parser import (
    CSV_COLUMN_MAPPINGS,
    INCOME_CSV_COLUMN_MAPPINGS,
    CsvColumnMapping,
    CsvParser,
    IncomeCsvColumnMapping,
    ParsedCsvRow,
    ParsedIncomeCsvRow,
)
from taxtrack.imports.importer import (
    CsvImportOptions,
    CsvImportResult,
    CsvImportService,
    CsvRowResult,
)
from taxtrack.imports.income_importer import (
    IncomeCsvImportOptions,
    IncomeCsvImportResult,
    IncomeCsvImportService,
    IncomeCsvRowResult,
)
from taxtrack.imports.jobs import ImportJobTracker
from taxtrack.imports.provider_matcher import (
    PROVIDER_ALIASES,
    ProviderMatch,
    ProviderMatcher,
    levenshtein_distance,
)

__all__ = [
    # Parsing
    "CSV_COLUMN_MAPPINGS",
    "INCOME_CSV_COLUMN_MAPPINGS",
    "CsvColumnMapping",
    "CsvParser",
    "IncomeCsvColumnMapping",
    "ParsedCsvRow",
    "ParsedIncomeCsvRow",
    # Matching
    "PROVIDER_ALIASES",
    "ProviderMatch",
    "ProviderMatcher",
    "levenshtein_distance",
    "ClientMatch",
    "ClientMatcher",
    # Import
    "CsvImportOptions",
    "CsvImportResult",
    "CsvImportService",
    "CsvRowResult",
    "IncomeCsvImportOptions",
    "IncomeCsvImportResult",
    "IncomeCsvImportService",
    "IncomeCsvRowResult",
    "ImportJobTracker",
]
