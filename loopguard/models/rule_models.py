"""
Rule Engine Data Models — Findings, results, and severities.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Finding(BaseModel):
    """A single detector finding."""

    rule_id: str = Field(..., description="Finding identifier, e.g. 'loop.notLooping'")
    message: str
    line: int = Field(..., description="Line number the finding is reported at")
    file: str = Field(default="", description="File path, stamped by the rule engine")
    detector: str = Field(default="", description="Registry id of the producing detector")
    severity: Severity = Severity.MEDIUM


class RuleResult(BaseModel):
    """Result of running all detectors on a set of modules."""

    findings: list[Finding] = Field(default_factory=list)
    rules_executed: list[str] = Field(default_factory=list)
    total_files_scanned: int = 0
    scan_duration_ms: float = 0.0

    def by_rule_id(self, rule_id: str) -> list[Finding]:
        return [f for f in self.findings if f.rule_id == rule_id]
