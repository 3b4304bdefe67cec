from .detector import FraudDetector, HistoryProvider
from .location import check_location
from .temporal import check_time_patterns
from .spatial import check_location_reuse, haversine_distance
from .content import check_content
from .standing import check_account_standing

__all__ = [
    'FraudDetector', 'HistoryProvider',
    'check_location', 'check_time_patterns',
    'check_location_reuse', 'haversine_distance',
    'check_content', 'check_account_standing',
]
