"""Threat classification models.

Patterns, matches and scan results are immutable value objects. A ScanResult
is produced per call and never persisted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class RiskLevel(str, Enum):
    """Severity of a threat pattern."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Position in the total order low < medium < high < critical."""
        return _RISK_RANK[self]

    @property
    def is_blocking(self) -> bool:
        """High and critical threats block execution."""
        return self.rank >= _RISK_RANK[RiskLevel.HIGH]


_RISK_RANK: dict[RiskLevel, int] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


class ThreatCategory(str, Enum):
    """Informational tag attached to a threat pattern."""

    FILESYSTEM_DESTRUCTION = "filesystem_destruction"
    REMOTE_CODE_EXECUTION = "remote_code_execution"
    DATA_EXFILTRATION = "data_exfiltration"
    SYSTEM_MODIFICATION = "system_modification"
    NETWORK_ACCESS = "network_access"
    PROCESS_MANIPULATION = "process_manipulation"
    PRIVILEGE_ESCALATION = "privilege_escalation"
    COMMAND_INJECTION = "command_injection"
    PROMPT_INJECTION = "prompt_injection"


@dataclass(frozen=True)
class ThreatPattern:
    """Named rule used to classify dangerous or manipulative text.

    Attributes:
        name: Unique pattern name
        matcher: Compiled regular expression evaluated against the full text
        description: Human-readable description reported in alerts
        risk_level: Severity of a match
        category: Informational category used in summaries
    """

    name: str
    matcher: re.Pattern[str]
    description: str
    risk_level: RiskLevel
    category: ThreatCategory

    @classmethod
    def compile(
        cls,
        name: str,
        regex: str,
        description: str,
        risk_level: RiskLevel,
        category: ThreatCategory,
        flags: int = re.IGNORECASE,
    ) -> ThreatPattern:
        """Build a pattern from a raw regular expression."""
        return cls(
            name=name,
            matcher=re.compile(regex, flags),
            description=description,
            risk_level=risk_level,
            category=category,
        )


@dataclass(frozen=True)
class ThreatMatch:
    """One match of one pattern against one input."""

    pattern: ThreatPattern
    matched_text: str
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class ScanResult:
    """Risk assessment for one piece of text.

    ``threats`` is ordered by severity (highest first), then by start offset.
    ``risk_level`` is the maximum severity across all matches, or None when
    nothing matched.
    """

    safe: bool
    risk_level: RiskLevel | None
    threats: tuple[ThreatMatch, ...] = field(default_factory=tuple)
    summary: str = ""

    @property
    def is_blocking(self) -> bool:
        """True when the highest matched severity is high or critical."""
        return self.risk_level is not None and self.risk_level.is_blocking

    @property
    def descriptions(self) -> list[str]:
        """Pattern descriptions of every match, in result order."""
        return [threat.pattern.description for threat in self.threats]
