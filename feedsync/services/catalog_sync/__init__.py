from .product_processor import ProcessOutcome, ProductProcessor
from .progress_tracker import SyncProgressTracker
from .report_generator import ReportGenerator
from .sync_coordinator import SyncCoordinator

__all__ = [
    "ProcessOutcome",
    "ProductProcessor",
    "SyncProgressTracker",
    "ReportGenerator",
    "SyncCoordinator",
]
