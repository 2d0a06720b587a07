#!/usr/bin/env python3
"""
Tests for Settings defaults and startup validation.

Usage:
    pytest test_settings.py -v
"""

import pytest

from config.settings import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GCP_PROJECT_ID", "CORS_ORIGINS", "RAILWAY_PROJECT_ID", "GCP_ENABLED"):
        monkeypatch.delenv(name, raising=False)


def test_no_project_or_remote_origin_by_default():
    settings = Settings(_env_file=None)

    assert settings.GCP_PROJECT_ID is None
    assert settings.cors_origins == ["http://localhost:3000"]


def test_validation_requires_a_project():
    with pytest.raises(ValueError, match="GCP_PROJECT_ID"):
        Settings(_env_file=None).validate_settings()

    Settings(_env_file=None, GCP_PROJECT_ID="my-project").validate_settings()


def test_cors_origins_are_read_from_the_environment(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com, https://example.com,")

    assert Settings(_env_file=None).cors_origins == ["https://app.example.com", "https://example.com"]


def test_production_requires_service_account(monkeypatch):
    monkeypatch.setenv("RAILWAY_PROJECT_ID", "prod")

    with pytest.raises(ValueError, match="GCP_SERVICE_ACCOUNT_JSON"):
        Settings(_env_file=None, GCP_PROJECT_ID="my-project").validate_settings()
