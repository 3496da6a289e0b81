"""
Scan Request/Response Models — API contract schemas.

These are the public-facing Pydantic models used by FastAPI endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from loopguard.models.rule_models import Finding


class FileInput(BaseModel):
    """A single file submitted for scanning."""

    path: str = Field(..., description="File path (absolute or relative)")
    content: str = Field(..., description="File source content")


class ScanRequest(BaseModel):
    """Request body for /scan."""

    files: list[FileInput] = Field(default_factory=list)
    # Legacy compatibility: accept a single code string
    code: str | None = Field(default=None, description="Legacy: single PHP code string")


class AuditEntry(BaseModel):
    """Audit metadata for a scan."""

    scan_id: str
    files_scanned: int
    findings_found: int
    parse_failures: int = 0
    duration_ms: float = 0.0


class ScanReport(BaseModel):
    """Full scan report."""

    findings: list[Finding] = Field(default_factory=list)
    counts: dict[str, int] = Field(
        default_factory=dict, description="Number of findings per identifier"
    )
    parse_errors: dict[str, list[str]] = Field(
        default_factory=dict, description="Parse errors per file path"
    )
    rules_executed: list[str] = Field(default_factory=list)
    summary: str = ""
    audit: AuditEntry | None = None


class ScanResponse(BaseModel):
    """Top-level response for the scan endpoint."""

    message: str = "scan_complete"
    scan_id: str = ""
    report: ScanReport | None = None
