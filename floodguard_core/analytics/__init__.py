from .sos_analytics import (
    sos_frame,
    filter_by_status,
    haversine_km,
    format_distance,
    sort_sos,
    dashboard_stats,
    league_table,
)

__all__ = [
    "sos_frame",
    "filter_by_status",
    "haversine_km",
    "format_distance",
    "sort_sos",
    "dashboard_stats",
    "league_table",
]
