from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from warden.runtime.policy.config import SYSTEM_POLICIES_ENV

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_policies(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep the user's and the system's policy files out of CLI runs."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv(SYSTEM_POLICIES_ENV, str(tmp_path / "system"))
    return home
