"""Email-to-trip scan pipeline."""

from .dedup import AdmitResult, DedupGate
from .orchestrator import ItemOutcome, ScanOrchestrator, ScanSummary
from .progress import ProgressReporter

__all__ = [
    "AdmitResult",
    "DedupGate",
    "ItemOutcome",
    "ProgressReporter",
    "ScanOrchestrator",
    "ScanSummary",
]
