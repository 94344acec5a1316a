"""Shared fixtures for all test suites."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from pluginscan.domain.entities import InstalledComponent

PluginFactory = Callable[..., Path]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``PLUGINSCAN_*`` variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("PLUGINSCAN_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    root = tmp_path / "plugins"
    root.mkdir()
    return root


@pytest.fixture
def make_plugin(plugins_dir: Path) -> PluginFactory:
    """Write a PHP file carrying a WordPress plugin header under *plugins_dir*."""

    def _make(
        identifier: str,
        name: str,
        version: str = "1.0.0",
        author: str = "Jane Doe",
    ) -> Path:
        path = plugins_dir / identifier
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "<?php\n"
            "/**\n"
            f" * Plugin Name: {name}\n"
            f" * Version:     {version}\n"
            f" * Author:      {author}\n"
            " */\n",
            encoding="utf-8",
        )
        return path

    return _make


@pytest.fixture
def elementor_pro(plugins_dir: Path) -> InstalledComponent:
    return InstalledComponent(
        identifier="elementor-pro/elementor-pro.php",
        name="Elementor Pro",
        version="3.0",
        author="Elementor.com",
        location=plugins_dir / "elementor-pro" / "elementor-pro.php",
    )
