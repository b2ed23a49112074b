import json

import pytest

from polyglot_keeper.configuration import load_config
from polyglot_keeper.errors import AbortRequested
from polyglot_keeper.structures import TrackChanges
from polyglot_keeper.wizard import generate_config_file, parse_locales, run_setup_wizard


def scripted(*answers):
    remaining = iter(answers)
    return lambda prompt: next(remaining)


def test_parse_locales_deduplicates():
    assert parse_locales("en, ru  de,ru") == ["en", "ru", "de"]


def test_generate_config_file_omits_defaults_and_unset_values():
    rendered = generate_config_file(
        {
            "json": {"provider": "gemini", "model": None, "trackChanges": "off"},
            "markdown": {"contentDir": "content", "trackChanges": "carefully"},
        }
    )
    assert rendered.endswith("}\n")
    assert json.loads(rendered) == {
        "envFile": ".env",
        "json": {"provider": "gemini"},
        "markdown": {"contentDir": "content", "trackChanges": "carefully"},
    }


def test_wizard_writes_json_section(tmp_path, capsys):
    ask = scripted(
        "2",  # json only
        "1",  # gemini
        "",  # default model
        "",  # default key variable
        "1",  # short file names
        "EN, RU, DE",
        "1",  # EN is the source locale
        "",  # default locales directory
        "on",
    )
    run_setup_wizard(tmp_path, ask=ask)

    section = load_config(tmp_path).tree
    assert section.provider == "gemini"
    assert section.model == "gemini-flash-latest"
    assert section.locales == ["EN", "RU", "DE"]
    assert section.track_changes is TrackChanges.ON
    assert (tmp_path / "src" / "locale").is_dir()
    assert (tmp_path / ".env").read_text(encoding="utf-8") == (
        "POLYGLOT_API_KEY=your_api_key_here\n"
    )
    assert "polyglot-keeper sync" in capsys.readouterr().out


def test_wizard_markdown_reuses_json_provider(tmp_path):
    (tmp_path / ".env").write_text("POLYGLOT_API_KEY=secret", encoding="utf-8")
    ask = scripted(
        "1",  # json + markdown
        "3",  # anthropic
        "",
        "",
        "2",  # pair file names
        "EN RU",
        "1",
        "i18n",
        "1",  # tracking off
        "y",  # reuse provider
        "docs",
        "",  # locales default to the JSON ones, lowercased
        "1",
        "carefully",
    )
    config = run_setup_wizard(tmp_path, ask=ask)

    raw = json.loads((tmp_path / "polyglot.config.json").read_text(encoding="utf-8"))
    assert "trackChanges" not in raw["json"]
    assert raw["markdown"]["provider"] == "anthropic"
    assert raw["markdown"]["locales"] == ["en", "ru"]
    assert raw["markdown"]["trackChanges"] == "carefully"
    assert config["json"]["localeFormat"] == "pair"
    assert (tmp_path / "docs" / "ru").is_dir()
    assert (tmp_path / ".env").read_text(encoding="utf-8") == "POLYGLOT_API_KEY=secret"


def test_wizard_keeps_existing_config_unless_confirmed(tmp_path):
    config_path = tmp_path / "polyglot.config.json"
    config_path.write_text("{}\n", encoding="utf-8")
    with pytest.raises(AbortRequested):
        run_setup_wizard(tmp_path, ask=scripted("n"))
    assert config_path.read_text(encoding="utf-8") == "{}\n"
