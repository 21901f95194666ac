"""Tests for settings loading and precedence."""

import pytest

from autocoding.config import CodingSettings, ConfigError, get_settings, load_settings


def test_defaults():
    settings = load_settings(environ={})
    assert settings == CodingSettings()
    assert settings.atomic_writes is True
    assert settings.document_indent == 2
    assert settings.strict_kinds is True
    assert settings.log_level == "WARNING"


def test_environment_overrides_defaults():
    settings = load_settings(
        environ={
            "AUTOCODING_ATOMIC_WRITES": "off",
            "AUTOCODING_DOCUMENT_INDENT": "4",
            "AUTOCODING_STRICT_KINDS": "No",
            "AUTOCODING_LOG_LEVEL": "debug",
            "UNRELATED": "1",
        }
    )
    assert settings.atomic_writes is False
    assert settings.document_indent == 4
    assert settings.strict_kinds is False
    assert settings.log_level == "DEBUG"


def test_explicit_overrides_beat_environment():
    settings = load_settings(environ={"AUTOCODING_DOCUMENT_INDENT": "4"}, document_indent=0)
    assert settings.document_indent == 0


def test_none_override_is_ignored():
    settings = load_settings(environ={"AUTOCODING_LOG_LEVEL": "ERROR"}, log_level=None)
    assert settings.log_level == "ERROR"


@pytest.mark.parametrize(
    "environ",
    [
        {"AUTOCODING_ATOMIC_WRITES": "maybe"},
        {"AUTOCODING_DOCUMENT_INDENT": "wide"},
        {"AUTOCODING_DOCUMENT_INDENT": "100"},
        {"AUTOCODING_LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_values_raise_config_error(environ):
    with pytest.raises(ConfigError):
        load_settings(environ=environ)


def test_unknown_override_is_rejected():
    with pytest.raises(ConfigError):
        load_settings(environ={}, compression=True)


def test_settings_are_frozen():
    with pytest.raises(Exception):
        load_settings(environ={}).atomic_writes = False


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
