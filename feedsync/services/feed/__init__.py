from .analytics import FeedAnalysis, analyze_feed_rows
from .formatter import FEED_COLUMNS, format_feed_row
from .generator import FeedAnalyticsEngine
from .labels import LABEL_SCHEME_VERSION, CustomLabels, derive_labels, label_statistics

__all__ = [
    "FeedAnalysis",
    "analyze_feed_rows",
    "FEED_COLUMNS",
    "format_feed_row",
    "FeedAnalyticsEngine",
    "LABEL_SCHEME_VERSION",
    "CustomLabels",
    "derive_labels",
    "label_statistics",
]
