"""
Risk Model Module – Point risk samples, route segments and route analyses.

Risk level is always derived from flood probability (never stored), so a
sample can't disagree with its own bucket.

Bucketing (inclusive-low / exclusive-high):
    Minimal:  0.0 – 0.1
    Low:      0.1 – 0.3
    Moderate: 0.3 – 0.6
    High:     0.6 – 0.8
    Severe:   0.8 – 1.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping

import config
from floodroute.geodesy import Coordinate


class RiskLevel(IntEnum):
    MINIMAL = 0
    LOW = 1
    MODERATE = 2
    HIGH = 3
    SEVERE = 4

    @property
    def display_name(self) -> str:
        return f"{self.name.capitalize()} Risk"

    @property
    def description(self) -> str:
        return _LEVEL_DESCRIPTIONS[self]


_LEVEL_DESCRIPTIONS = {
    RiskLevel.MINIMAL: "Area is safe for travel",
    RiskLevel.LOW: "Monitor weather conditions",
    RiskLevel.MODERATE: "Exercise caution, consider alternative route",
    RiskLevel.HIGH: "Avoid this area if possible",
    RiskLevel.SEVERE: "Do not proceed - high flood danger",
}


def risk_level_for(probability: float) -> RiskLevel:
    """Bucket a flood probability into a RiskLevel."""
    b = config.RISK_LEVEL_BOUNDS
    if probability < b["minimal"]:
        return RiskLevel.MINIMAL
    if probability < b["low"]:
        return RiskLevel.LOW
    if probability < b["moderate"]:
        return RiskLevel.MODERATE
    if probability < b["high"]:
        return RiskLevel.HIGH
    return RiskLevel.SEVERE


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Point sample ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RiskSample:
    """Flood prediction for a single coordinate."""

    coordinate: Coordinate
    flood_probability: float
    flood_depth: float = 0.0          # metres
    timestamp: datetime = field(default_factory=_utc_now)
    features: Mapping[str, float] | None = field(default=None, hash=False)

    def __post_init__(self):
        if not 0.0 <= self.flood_probability <= 1.0:
            raise ValueError(f"flood_probability must be between 0 and 1, got {self.flood_probability}")
        if self.flood_depth < 0:
            raise ValueError(f"flood_depth must be >= 0, got {self.flood_depth}")
        object.__setattr__(self, "coordinate", Coordinate(*self.coordinate))
        if self.features is not None:
            object.__setattr__(self, "features", MappingProxyType(dict(self.features)))

    @property
    def risk_level(self) -> RiskLevel:
        return risk_level_for(self.flood_probability)

    @property
    def is_safe(self) -> bool:
        return self.risk_level <= RiskLevel.LOW

    @property
    def requires_warning(self) -> bool:
        return self.risk_level >= RiskLevel.MODERATE

    @property
    def should_avoid(self) -> bool:
        return self.risk_level >= RiskLevel.HIGH

    def to_dict(self) -> dict:
        return {
            "latitude": self.coordinate.lat,
            "longitude": self.coordinate.lon,
            "flood_probability": self.flood_probability,
            "flood_depth": self.flood_depth,
            "risk_level": int(self.risk_level),
            "timestamp": self.timestamp.isoformat(),
            "features": dict(self.features) if self.features is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RiskSample:
        """
        Rebuild a sample from to_dict() output.

        The stored risk_level must agree with the probability; a mismatch
        means the record was edited or produced by a different bucketing.
        """
        sample = cls(
            coordinate=Coordinate(float(data["latitude"]), float(data["longitude"])),
            flood_probability=float(data["flood_probability"]),
            flood_depth=float(data["flood_depth"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            features=data.get("features"),
        )
        stored = data.get("risk_level")
        if stored is not None and RiskLevel(int(stored)) != sample.risk_level:
            raise ValueError(
                f"risk_level {stored} does not match probability {sample.flood_probability}"
            )
        return sample

    def __str__(self) -> str:
        return (
            f"RiskSample({self.coordinate.lat:.4f}, {self.coordinate.lon:.4f}, "
            f"prob={self.flood_probability * 100:.1f}%, depth={self.flood_depth:.2f}m, "
            f"level={self.risk_level.name.lower()})"
        )


# ── Route segment ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RouteSegment:
    """Contiguous run of samples [start_index, end_index] at one warning level."""

    start_index: int
    end_index: int
    risk_level: RiskLevel
    segment_distance: float            # metres

    @property
    def length(self) -> int:
        return self.end_index - self.start_index + 1

    def to_dict(self) -> dict:
        return {
            "start_index": self.start_index,
            "end_index": self.end_index,
            "risk_level": int(self.risk_level),
            "segment_distance": self.segment_distance,
        }

    @classmethod
    def from_dict(cls, data: dict) -> RouteSegment:
        return cls(
            start_index=int(data["start_index"]),
            end_index=int(data["end_index"]),
            risk_level=RiskLevel(int(data["risk_level"])),
            segment_distance=float(data["segment_distance"]),
        )


# ── Route analysis ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RouteRiskAnalysis:
    route_path: tuple[Coordinate, ...]
    point_risks: tuple[RiskSample, ...]
    overall_risk: float
    max_risk: float
    average_risk: float
    total_distance: float              # metres, original (unsampled) path
    estimated_time: float              # seconds
    is_recommended: bool
    high_risk_segments: tuple[RouteSegment, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "route_path", tuple(Coordinate(*p) for p in self.route_path))
        object.__setattr__(self, "point_risks", tuple(self.point_risks))
        object.__setattr__(self, "high_risk_segments", tuple(self.high_risk_segments))

    @property
    def high_risk_point_count(self) -> int:
        return sum(1 for r in self.point_risks if r.should_avoid)

    @property
    def high_risk_percentage(self) -> float:
        if not self.point_risks:
            return 0.0
        return self.high_risk_point_count / len(self.point_risks) * 100

    @property
    def high_risk_distance(self) -> float:
        return sum(s.segment_distance for s in self.high_risk_segments)

    def to_dict(self) -> dict:
        return {
            "route_path": [[p.lat, p.lon] for p in self.route_path],
            "point_risks": [r.to_dict() for r in self.point_risks],
            "overall_risk": self.overall_risk,
            "max_risk": self.max_risk,
            "average_risk": self.average_risk,
            "total_distance": self.total_distance,
            "estimated_time": self.estimated_time,
            "is_recommended": self.is_recommended,
            "high_risk_segments": [s.to_dict() for s in self.high_risk_segments],
        }

    @classmethod
    def from_dict(cls, data: dict) -> RouteRiskAnalysis:
        return cls(
            route_path=[Coordinate(float(lat), float(lon)) for lat, lon in data["route_path"]],
            point_risks=[RiskSample.from_dict(r) for r in data["point_risks"]],
            overall_risk=float(data["overall_risk"]),
            max_risk=float(data["max_risk"]),
            average_risk=float(data["average_risk"]),
            total_distance=float(data["total_distance"]),
            estimated_time=float(data["estimated_time"]),
            is_recommended=bool(data["is_recommended"]),
            high_risk_segments=[RouteSegment.from_dict(s) for s in data["high_risk_segments"]],
        )

    def __str__(self) -> str:
        return (
            f"RouteRiskAnalysis(points={len(self.route_path)}, "
            f"overall={self.overall_risk * 100:.1f}%, max={self.max_risk * 100:.1f}%, "
            f"recommended={self.is_recommended})"
        )
