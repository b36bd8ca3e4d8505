from .reports import ColumnMapping, ReportOut, ReportUpdate, ReportUpdateResult, SalesLineOut
from .matching import Candidate, NameSuggestions, AutoMatchRequest, AutoMatchOut, AutoMatchResult
from .metrics import ProductSummaryOut, CategorySummaryOut

__all__ = [
    "ColumnMapping", "ReportOut", "ReportUpdate", "ReportUpdateResult", "SalesLineOut",
    "Candidate", "NameSuggestions", "AutoMatchRequest", "AutoMatchOut", "AutoMatchResult",
    "ProductSummaryOut", "CategorySummaryOut",
]
