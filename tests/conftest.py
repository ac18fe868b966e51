"""
Shared pytest fixtures.

Every test that touches the database or config gets a clean
temporary DATA_DIR via the `tmp_data_dir` fixture so tests
are fully isolated from each other and from the real shoe_returns.db.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from models import AnalysisResult, ClassificationCategory  # noqa: E402


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """
    Redirect DATA_DIR to a fresh tmp directory for every test.
    This gives each test a clean SQLite file and prevents cross-test pollution.
    """
    data = tmp_path / "data"
    data.mkdir()
    monkeypatch.setenv("DATA_DIR", str(data))

    import config
    monkeypatch.setattr(config, "DATA_DIR", data)

    # Patch the module-level DB_PATH that was already computed at import time
    import database
    monkeypatch.setattr(database, "DB_PATH", str(data / "shoe_returns.db"))
    monkeypatch.setattr(database, "_DATA_DIR", data)

    # Also reset the internal lock so tests don't share state
    import asyncio
    monkeypatch.setattr(database, "_lock", asyncio.Lock())

    yield data


def make_result(**kwargs) -> AnalysisResult:
    defaults = dict(
        classification=ClassificationCategory.RETURNABLE,
        confidence=0.9,
        scores={"returnable": 0.8, "not_returnable": 0.05, "send_back": 0.05,
                "donation": 0.05, "disposal": 0.05},
        features=["temiz yüzey", "minimal aşınma"],
        reasoning="Ayakkabı yeni gibi.",
        damage_reasons=[],
        shoe_model="Nike Air Max 90",
        warranty_period=24,
    )
    defaults.update(kwargs)
    return AnalysisResult(**defaults)


@pytest.fixture
def result_factory():
    return make_result
