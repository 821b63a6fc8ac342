"""Threat scanning for goals, actions and commands."""

from .patterns import THREAT_PATTERNS
from .scanner import CONFIDENCE_SCORES, ThreatScanner, get_default_scanner, scan_for_threats

__all__ = [
    "THREAT_PATTERNS",
    "CONFIDENCE_SCORES",
    "ThreatScanner",
    "get_default_scanner",
    "scan_for_threats",
]
