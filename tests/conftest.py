from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from fakes import FakeClock, FakeLog

# Tracing stays off in tests regardless of the developer's environment
os.environ.pop("LANGFUSE_SECRET_KEY", None)
os.environ.pop("LANGFUSE_PUBLIC_KEY", None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fixed_clock() -> FakeClock:
    return FakeClock(step=0.0)


@pytest.fixture
def fake_log() -> FakeLog:
    return FakeLog()


@pytest.fixture
def knowledge_file(tmp_path: Path) -> Path:
    path = tmp_path / "knowledge_base.json"
    path.write_text(json.dumps([
        {"keywords": ["rust", "lang"], "content": "Rust is a systems language."},
        {"keywords": ["Python"], "content": "Python is dynamically typed."},
    ]))
    return path
