"""
Scan Route — POST /scan

Accepts {"files": [{"path", "content"}]} or the legacy {"code": str}, runs the
loop detectors and returns the findings report.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from loopguard.api.dependencies import get_scan_worker
from loopguard.config import settings
from loopguard.models.scan_models import FileInput, ScanRequest, ScanResponse
from loopguard.workers.scan_worker import ScanWorker

logger = logging.getLogger("loopguard.scan")
router = APIRouter()

# Path given to code submitted through the legacy field
LEGACY_FILE_PATH = "input.php"


def _collect_files(req: ScanRequest) -> list[FileInput]:
    files = list(req.files)
    if req.code:
        if len(req.code) > settings.max_code_length:
            raise HTTPException(
                status_code=400,
                detail=f"Code exceeds maximum length of {settings.max_code_length} characters",
            )
        files.append(FileInput(path=LEGACY_FILE_PATH, content=req.code))

    for f in files:
        if len(f.content.encode("utf-8")) > settings.max_file_size_bytes:
            raise HTTPException(
                status_code=400,
                detail=f"File {f.path} exceeds maximum size of {settings.max_file_size_bytes} bytes",
            )
    return files


@router.post("/scan", response_model=ScanResponse)
async def scan_code(req: ScanRequest, worker: ScanWorker = Depends(get_scan_worker)):
    """Scan PHP files for loop defects."""
    try:
        files = _collect_files(req)
        if not files:
            return ScanResponse(message="error", scan_id="", report=None)
        return await worker.run_scan(files)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Unexpected scan error")
        return ScanResponse(message="error", scan_id="", report=None)
