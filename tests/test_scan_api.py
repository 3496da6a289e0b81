"""
Tests for FastAPI Scan API — integration tests for the full pipeline.
"""

import pytest
from fastapi.testclient import TestClient

from loopguard.api.dependencies import get_scan_worker
from loopguard.audit.logger import AuditLogger
from loopguard.cache.file_cache import FileCache
from loopguard.config import settings
from loopguard.main import app
from loopguard.workers.scan_worker import ScanWorker

client = TestClient(app)


@pytest.fixture(autouse=True)
def isolated_worker(tmp_path):
    worker = ScanWorker(
        cache=FileCache(),
        audit_logger=AuditLogger(log_path=str(tmp_path / "audit.jsonl")),
    )
    app.dependency_overrides[get_scan_worker] = lambda: worker
    yield worker
    app.dependency_overrides.clear()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "1.0.0"
    assert "suspicious_loop" in data["rules"]


def test_scan_empty_files():
    response = client.post("/scan", json={"files": []})
    assert response.status_code == 200
    assert response.json()["message"] == "error"


def test_scan_clean_code(clean_php_code):
    response = client.post("/scan", json={
        "files": [{"path": "clean.php", "content": clean_php_code}]
    })
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "scan_complete"
    assert data["report"]["findings"] == []
    assert data["report"]["counts"] == {}


def test_scan_defective_code(sample_php_code):
    response = client.post("/scan", json={
        "files": [{"path": "Repository.php", "content": sample_php_code}]
    })
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "scan_complete"
    assert data["scan_id"]
    report = data["report"]
    assert len(report["findings"]) == 5
    assert report["counts"]["loop.notLooping"] == 1

    finding = report["findings"][0]
    for key in ("rule_id", "message", "line", "file", "detector", "severity"):
        assert key in finding


def test_scan_legacy_code_field():
    code = "<?php\nfunction spin() {\n    return spin();\n}\n"
    response = client.post("/scan", json={"code": code})
    assert response.status_code == 200
    findings = response.json()["report"]["findings"]
    assert [(f["rule_id"], f["file"]) for f in findings] == [
        ("methodCall.infiniteRecursion", "input.php")
    ]


def test_scan_oversized_code(monkeypatch):
    monkeypatch.setattr(settings, "max_code_length", 10)
    response = client.post("/scan", json={"code": "<?php\n" + "echo 1;\n" * 10})
    assert response.status_code == 400


def test_scan_oversized_file(monkeypatch):
    monkeypatch.setattr(settings, "max_file_size_bytes", 10)
    response = client.post("/scan", json={
        "files": [{"path": "big.php", "content": "<?php\n" + "echo 1;\n" * 10}]
    })
    assert response.status_code == 400


def test_scan_invalid_body():
    response = client.post("/scan", json={"files": [{"path": "missing_content.php"}]})
    assert response.status_code == 422


def test_lambda_handler_wraps_app():
    from handler import handler

    assert handler.app is app
