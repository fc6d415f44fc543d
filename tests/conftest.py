"""Pytest configuration and shared fixtures for termrender tests."""

import pytest

import termrender.logging_setup


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point XDG_CONFIG_HOME at a temp dir so no test reads or writes real settings."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("TERMRENDER_LOG_FILE", raising=False)
    yield tmp_path / "config"
    termrender.logging_setup.reset()
