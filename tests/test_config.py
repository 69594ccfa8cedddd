"""Tests for configuration loading."""
from __future__ import annotations

import pytest

from scorebot.config import Config
from scorebot.database.database import to_async_url


def test_report_settings_from_config(monkeypatch):
    monkeypatch.setattr(Config, 'SCORE_CHANNEL_NAME', 'ranked-results')
    monkeypatch.setattr(Config, 'SCORE_COMMANDS', '!score, !result ,')
    monkeypatch.setattr(Config, 'ADMIN_IDS', '1, 2')
    monkeypatch.setattr(Config, 'BIG_ADMIN_IDS', '2')
    monkeypatch.setattr(Config, 'NOW_PLAYING', 'League Night')

    settings = Config.report_settings()

    assert settings.channel_name == 'ranked-results'
    assert settings.score_commands == ('!score', '!result')
    assert settings.admin_ids == frozenset({1, 2})
    assert settings.big_admin_ids == frozenset({2})
    assert settings.now_playing == 'League Night'
    assert settings.reserved_emoji == (settings.certified_emoji, settings.error_emoji)


def test_settings_are_immutable():
    settings = Config.report_settings()

    with pytest.raises(AttributeError):
        settings.channel_name = 'other'


def test_validate_requires_token(monkeypatch):
    monkeypatch.setattr(Config, 'DISCORD_TOKEN', None)

    with pytest.raises(ValueError, match="DISCORD_TOKEN"):
        Config.validate()


def test_validate_rejects_bad_admin_ids(monkeypatch):
    monkeypatch.setattr(Config, 'DISCORD_TOKEN', 'token')
    monkeypatch.setattr(Config, 'ADMIN_IDS', '1, two')

    with pytest.raises(ValueError, match="ADMIN_IDS"):
        Config.validate()


def test_sqlite_urls_use_aiosqlite():
    assert to_async_url('sqlite:///scorebot.db') == 'sqlite+aiosqlite:///scorebot.db'
    assert to_async_url('sqlite://') == 'sqlite+aiosqlite://'
    assert to_async_url('postgresql+asyncpg://db/league') == 'postgresql+asyncpg://db/league'
