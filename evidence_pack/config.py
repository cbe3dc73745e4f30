"""Configuration loading for the evidence pack engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml


def _check_non_negative(section: str, obj: object) -> None:
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, (int, float)) and value < 0:
            raise ValueError(f"{section}.{f.name} must be >= 0, got {value!r}")


@dataclass
class TruncationConfig:
    """String limits for compacted entries."""

    preview_max_chars: int = 160
    ref_max_chars: int = 48
    max_tags: int = 3


@dataclass
class SessionConfig:
    """Reading-session noise filtering and clustering."""

    min_duration_seconds: int = 15
    cluster_window_minutes: float = 10
    max_anchor_candidates: int = 24


@dataclass
class RankingConfig:
    """Anchor selection and supporting-evidence limits."""

    primary_anchor_limit: int = 9
    long_session_seconds: int = 300
    duration_cap_seconds: int = 900
    per_anchor_support_limit: int = 2
    total_evidence_cap: int = 12
    support_cap: int = 6


@dataclass
class CapsConfig:
    """Per-section list caps applied by the assembler."""

    life: int = 16
    memory: int = 16
    artifacts: int = 24
    conversations: int = 10
    allowed_actions: int = 32


@dataclass
class PackConfig:
    """Top-level engine configuration."""

    truncation: TruncationConfig = field(default_factory=TruncationConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    caps: CapsConfig = field(default_factory=CapsConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackConfig":
        """Build config from a dictionary; missing sections keep defaults."""
        data = data or {}
        config = cls(
            truncation=TruncationConfig(**data.get("truncation", {})),
            sessions=SessionConfig(**data.get("sessions", {})),
            ranking=RankingConfig(**data.get("ranking", {})),
            caps=CapsConfig(**data.get("caps", {})),
        )
        for name in ("truncation", "sessions", "ranking", "caps"):
            _check_non_negative(name, getattr(config, name))
        return config

    @classmethod
    def from_yaml(cls, path: str) -> "PackConfig":
        """Load config from YAML."""
        config_path = Path(path).resolve()
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        return cls.from_dict(data)
