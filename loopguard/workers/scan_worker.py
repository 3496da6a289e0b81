"""
Scan Worker — Orchestrates one scan from raw files to a report.

Pipeline:
1. Reuse cached results for unchanged files
2. Parse the remaining files into node arenas
3. Run the rule engine over the freshly parsed modules
4. Cache per-file findings
5. Assemble the ScanReport and write the audit entry
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import Counter

from loopguard.audit.logger import AuditLogger
from loopguard.cache.file_cache import FileCache
from loopguard.core.ast_parser import parse_file
from loopguard.core.rule_engine import RuleEngine
from loopguard.models.ast_models import ModuleAST
from loopguard.models.rule_models import Finding
from loopguard.models.scan_models import (
    AuditEntry,
    FileInput,
    ScanReport,
    ScanResponse,
)

logger = logging.getLogger("loopguard.worker")


class ScanWorker:
    """Scan orchestrator: cache, parse, analyze, report."""

    def __init__(
        self,
        cache: FileCache | None = None,
        audit_logger: AuditLogger | None = None,
        rule_engine: RuleEngine | None = None,
    ) -> None:
        self.cache = cache or FileCache()
        self.audit_logger = audit_logger
        self.rule_engine = rule_engine or RuleEngine()

    async def run_scan(self, files: list[FileInput]) -> ScanResponse:
        """
        Execute the analysis pipeline.

        Args:
            files: List of files to scan.

        Returns:
            ScanResponse whose report lists every finding in file order.
        """
        scan_id = str(uuid.uuid4())[:8]
        start_time = time.monotonic()

        logger.info(f"[{scan_id}] Starting scan of {len(files)} files")

        # ── Step 1–2: Cache lookup, then parse ──
        modules: dict[str, ModuleAST] = {}
        cached_findings: dict[str, list[Finding]] = {}
        fresh: dict[str, ModuleAST] = {}
        for f in files:
            cached = self.cache.get(f.path, f.content)
            if cached:
                modules[f.path] = cached.module_ast
                cached_findings[f.path] = cached.findings
                logger.debug(f"[{scan_id}] Cache hit: {f.path}")
            else:
                module_ast = parse_file(f.content, f.path)
                modules[f.path] = module_ast
                fresh[f.path] = module_ast
                logger.debug(f"[{scan_id}] Parsed: {f.path}")

        parse_errors = {path: m.parse_errors for path, m in modules.items() if m.parse_errors}
        for path, errors in parse_errors.items():
            logger.warning(f"[{scan_id}] {path} not analyzed: {'; '.join(errors)}")

        # ── Step 3: Rule engine ──
        rule_result = self.rule_engine.run(fresh)
        logger.info(
            f"[{scan_id}] Findings: {len(rule_result.findings)} in {len(fresh)} parsed files "
            f"({rule_result.scan_duration_ms:.1f}ms), {len(cached_findings)} cached"
        )

        # ── Step 4: Cache results ──
        for f in files:
            if f.path in fresh:
                file_findings = [x for x in rule_result.findings if x.file == f.path]
                self.cache.put(f.path, f.content, fresh[f.path], file_findings)

        # ── Assemble response ──
        findings: list[Finding] = []
        for path in modules:
            if path in cached_findings:
                findings.extend(cached_findings[path])
            else:
                findings.extend(x for x in rule_result.findings if x.file == path)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        audit = AuditEntry(
            scan_id=scan_id,
            files_scanned=len(files),
            findings_found=len(findings),
            parse_failures=len(parse_errors),
            duration_ms=round(elapsed_ms, 2),
        )
        if self.audit_logger is not None:
            self.audit_logger.log(audit)

        report = ScanReport(
            findings=findings,
            counts=dict(Counter(x.rule_id for x in findings)),
            parse_errors=parse_errors,
            rules_executed=list(self.rule_engine.rules),
            summary=_summarize(findings, len(files)),
            audit=audit,
        )

        logger.info(f"[{scan_id}] Scan complete in {elapsed_ms:.0f}ms, {len(findings)} findings")

        return ScanResponse(message="scan_complete", scan_id=scan_id, report=report)


def _summarize(findings: list[Finding], file_count: int) -> str:
    if not findings:
        return f"No loop issues found in {file_count} file(s)."
    files = len({f.file for f in findings})
    return f"{len(findings)} loop issue(s) found in {files} of {file_count} file(s)."
