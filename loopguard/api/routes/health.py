"""
Health Check Route — GET /health
"""

from __future__ import annotations

from fastapi import APIRouter

from loopguard.core.rule_engine import enabled_registry

VERSION = "1.0.0"

router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": VERSION,
        "rules": sorted(enabled_registry()),
    }
