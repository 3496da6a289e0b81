"""
LoopGuard Configuration — pydantic-settings based.

All settings are read from environment variables or a .env file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings sourced from environment variables."""

    # ── Scanning ──
    max_code_length: int = Field(
        default=50_000, description="Max characters accepted in a legacy single-code request"
    )
    max_file_size_bytes: int = Field(
        default=500_000, description="Max file size to accept (bytes)"
    )
    enabled_rules: list[str] = Field(
        default_factory=list,
        description="Detector ids to run; empty runs every registered detector",
    )

    # ── Cache ──
    cache_ttl_seconds: int = Field(
        default=3600, description="Time-to-live for file-level cache entries"
    )

    # ── Audit ──
    audit_log_path: str = Field(
        default="audit.jsonl", description="Path to JSON-lines audit log file"
    )
    audit_enabled: bool = Field(default=True, description="Write one audit line per scan")

    # ── Server ──
    log_level: str = Field(default="INFO", description="Root logging level")
    port: int = Field(default=5001, description="Server port")
    host: str = Field(default="0.0.0.0", description="Server bind host")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance, imported by other modules
settings = Settings()
