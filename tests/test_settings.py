import pytest
from pydantic import ValidationError

from jsassist.settings import CompleterSettings, iter_settings, load_settings, print_help


def test_defaults():
    settings = CompleterSettings()
    assert settings.global_identifier is None
    assert settings.keywords_enabled is True
    assert settings.background_parse is False
    assert settings.max_sandbox_properties is None


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("JSASSIST_GLOBAL_IDENTIFIER", "window")
    monkeypatch.setenv("JSASSIST_MAX_WALK_STEPS", "50")
    settings = CompleterSettings()
    assert settings.global_identifier == "window"
    assert settings.max_walk_steps == 50


def test_load_settings(monkeypatch):
    monkeypatch.setenv("EDITOR_GLOBAL_IDENTIFIER", "self")
    settings = load_settings(env_prefix="EDITOR_", keywords_enabled=False)
    assert isinstance(settings, CompleterSettings)
    assert settings.global_identifier == "self"
    assert settings.keywords_enabled is False


def test_invalid_values():
    with pytest.raises(ValidationError):
        CompleterSettings(max_walk_steps=0)
    with pytest.raises(ValidationError):
        CompleterSettings(parse_workers=0)
    with pytest.raises(ValidationError):
        CompleterSettings(max_function_nesting=0)


def test_iter_settings_and_help(capsys):
    flags = {opt.flag for opt in iter_settings(CompleterSettings, kebab=True)}
    assert {"--global-identifier", "--max-walk-steps", "--background-parse"} <= flags

    print_help(CompleterSettings, "completecli.py")
    out = capsys.readouterr().out
    assert out.startswith("usage: completecli.py [OPTIONS]")
    assert "--keywords-enabled" in out
