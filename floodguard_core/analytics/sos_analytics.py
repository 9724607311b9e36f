# =============================================================================
# sos_analytics.py - SOS Board and Rescuer League Analytics
# =============================================================================
"""
Tabular views over the SOS board and the rescuer roster.

This module implements:
1. DataFrame conversion of SOS records
2. Status filtering and time/distance ordering with "my SOS" pinned first
3. Vectorized great-circle distances (haversine, km)
4. Admin dashboard counts and the rescuer league table
"""

from __future__ import annotations
import math
import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Sequence

from floodguard_core.models import GeoLocation, Rescuer, SOSRequest, SOSStatus

EARTH_RADIUS_KM = 6371.0

SOS_COLUMNS = [
    "id", "name", "phone", "landmark", "status", "lat", "lng",
    "timestamp", "rescuer_id", "is_medical_emergency", "message_count",
]


# =============================================================================
# FRAMES
# =============================================================================

def sos_frame(records: Sequence[SOSRequest]) -> pd.DataFrame:
    """One row per SOS; missing locations become NaN."""
    rows = [
        {
            "id": r.id,
            "name": r.name,
            "phone": r.phone,
            "landmark": r.landmark,
            "status": r.status.value,
            "lat": r.location.lat if r.location else np.nan,
            "lng": r.location.lng if r.location else np.nan,
            "timestamp": r.timestamp,
            "rescuer_id": r.rescuer_id,
            "is_medical_emergency": r.is_medical_emergency,
            "message_count": len(r.messages),
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=SOS_COLUMNS)


def filter_by_status(
    records: Sequence[SOSRequest],
    status: Optional[SOSStatus] = None,
) -> List[SOSRequest]:
    """Keep records in `status`; None keeps everything."""
    if status is None:
        return list(records)
    status = SOSStatus(status)
    return [r for r in records if r.status == status]


# =============================================================================
# DISTANCE
# =============================================================================

def haversine_km(
    origin: GeoLocation,
    lat: np.ndarray,
    lng: np.ndarray,
) -> np.ndarray:
    """
    Great-circle distance from `origin` to each (lat, lng) pair.

    NaN coordinates give NaN distances.
    """
    lat = np.radians(np.asarray(lat, dtype=float))
    lng = np.radians(np.asarray(lng, dtype=float))
    lat0 = math.radians(origin.lat)
    lng0 = math.radians(origin.lng)

    dlat = lat - lat0
    dlng = lng - lng0
    a = np.sin(dlat / 2) ** 2 + math.cos(lat0) * np.cos(lat) * np.sin(dlng / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def format_distance(km: Optional[float]) -> str:
    """'850m' under a kilometre, '2.4km' above, '? km' when unknown."""
    if km is None or not np.isfinite(km):
        return "? km"
    if km < 1:
        return f"{km * 1000:.0f}m"
    return f"{km:.1f}km"


# =============================================================================
# ORDERING
# =============================================================================

def sort_sos(
    records: Sequence[SOSRequest],
    by: str = "time",
    origin: Optional[GeoLocation] = None,
    pinned_id: Optional[str] = None,
) -> List[SOSRequest]:
    """
    Order the SOS board.

    Args:
        records: Requests to order
        by: "time" (newest first) or "distance" (nearest first)
        origin: Viewer position; without it every distance is unknown
        pinned_id: Request shown first regardless of ordering

    Returns:
        Records in display order; unknown distances go last
    """
    if by not in ("time", "distance"):
        raise ValueError(f"Unknown sort order: {by}")
    if not records:
        return []

    df = sos_frame(records)
    df["position"] = np.arange(len(df))
    df["pinned"] = df["id"] == pinned_id if pinned_id else False

    if by == "time":
        df = df.sort_values(
            ["pinned", "timestamp", "position"],
            ascending=[False, False, True],
            kind="mergesort",
        )
    else:
        if origin is None:
            df["distance_km"] = np.inf
        else:
            df["distance_km"] = haversine_km(origin, df["lat"].to_numpy(), df["lng"].to_numpy())
            df["distance_km"] = df["distance_km"].fillna(np.inf)
        df = df.sort_values(
            ["pinned", "distance_km", "position"],
            ascending=[False, True, True],
            kind="mergesort",
        )

    return [records[i] for i in df["position"]]


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard_stats(records: Sequence[SOSRequest]) -> Dict[str, int]:
    """Counts shown on the admin dashboard."""
    df = sos_frame(records)
    counts = df["status"].value_counts()
    return {
        "total": int(len(df)),
        "active": int(counts.get(SOSStatus.ACTIVE.value, 0)),
        "rescued": int(counts.get(SOSStatus.RESCUED.value, 0)),
        "safe": int(counts.get(SOSStatus.SAFE.value, 0)),
        "medical": int(df["is_medical_emergency"].astype(bool).sum()),
        "active_medical": int(
            ((df["status"] == SOSStatus.ACTIVE.value) & df["is_medical_emergency"].astype(bool)).sum()
        ),
    }


def league_table(rescuers: Sequence[Rescuer], top: Optional[int] = None) -> pd.DataFrame:
    """
    Rescuers ranked by rescues, highest first.

    Ties share a rank ("min" method) and are listed by id.
    """
    df = pd.DataFrame(
        [
            {
                "id": r.id,
                "name": r.name,
                "username": r.username,
                "rescues_count": r.rescues_count,
            }
            for r in rescuers
        ],
        columns=["id", "name", "username", "rescues_count"],
    )
    df = df.sort_values(["rescues_count", "id"], ascending=[False, True], kind="mergesort")
    df["rank"] = df["rescues_count"].rank(method="min", ascending=False).astype(int)
    df = df.reset_index(drop=True)
    if top is not None:
        df = df.head(top)
    return df
