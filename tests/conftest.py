"""Pytest configuration for clio-radio."""

from __future__ import annotations

import os
import shutil

import pytest


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    del config
    if os.environ.get("CLIO_CI") == "1":
        reason = "Skipping mpv-dependent tests in CI."
    elif shutil.which("mpv") is None:
        reason = "mpv is not installed."
    else:
        return
    skip_mpv = pytest.mark.skip(reason=reason)
    for item in items:
        if "mpv" in item.keywords:
            item.add_marker(skip_mpv)
