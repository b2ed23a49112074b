import pytest

from conftest import FakeProvider, read_json, write_json
from polyglot_keeper.cli import build_parser, execute_sync, main


@pytest.fixture
def project(tmp_path):
    write_json(
        tmp_path / "polyglot.config.json",
        {
            "json": {
                "provider": "echo",
                "locales": ["EN", "RU"],
                "defaultLocale": "EN",
                "localesDir": "locales",
                "batchDelay": 0,
            },
            "markdown": {"provider": "echo", "locales": ["en", "de"], "batchDelay": 0},
        },
    )
    write_json(tmp_path / "locales" / "en.json", {"greeting": "Hello", "count": 2})
    (tmp_path / "content" / "en").mkdir(parents=True)
    (tmp_path / "content" / "en" / "index.md").write_text("# Hello\n", encoding="utf-8")
    return tmp_path


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.command == "sync"
    assert not args.md and not args.force and not args.non_interactive


def test_main_syncs_tree_with_echo_provider(project, capsys):
    assert main(["--root", str(project), "--non-interactive"]) == 0
    assert read_json(project / "locales" / "ru.json") == {"greeting": "Hello", "count": 2}
    output = capsys.readouterr().out
    assert "Synchronization complete." in output
    assert "Translated" in output
    assert (project / ".polyglot-lock.json").exists()


def test_main_syncs_markdown(project):
    assert main(["sync", "--md", "--root", str(project)]) == 0
    translated = project / "content" / "de" / "index.md"
    assert translated.read_text(encoding="utf-8") == "# Hello\n"


def test_missing_config_exits_with_hint(tmp_path, capsys):
    assert main(["--root", str(tmp_path)]) == 1
    assert "polyglot-keeper init" in capsys.readouterr().out


def test_missing_api_key_is_fatal(project, monkeypatch, capsys):
    monkeypatch.delenv("POLYGLOT_API_KEY", raising=False)
    write_json(
        project / "polyglot.config.json",
        {"json": {"provider": "openai", "localesDir": "locales"}},
    )
    assert main(["--root", str(project)]) == 1
    assert "POLYGLOT_API_KEY environment variable is not set" in capsys.readouterr().out
    assert not (project / "locales" / "ru.json").exists()


def test_missing_primary_locale_is_fatal(project):
    (project / "locales" / "en.json").unlink()
    code, summary, message = execute_sync(
        root_dir=project,
        markdown=False,
        force=False,
        non_interactive=True,
        verbose=False,
        provider_debug=False,
    )
    assert (code, summary) == (1, None)
    assert "Primary locale file not found" in message


def test_execute_sync_injects_provider_factory(project):
    fake = FakeProvider()
    code, summary, message = execute_sync(
        root_dir=project,
        markdown=False,
        force=True,
        non_interactive=True,
        verbose=True,
        provider_debug=False,
        factories={"echo": lambda **_: fake},
    )
    assert code == 0 and message is None
    assert summary.stats[0].translated == 1
    assert fake.keys_sent("RU") == ["greeting"]


def test_failed_batches_do_not_change_exit_code(project):
    fake = FakeProvider([RuntimeError("boom")])
    code, summary, _ = execute_sync(
        root_dir=project,
        markdown=False,
        force=False,
        non_interactive=True,
        verbose=False,
        provider_debug=False,
        factories={"echo": lambda **_: fake},
    )
    assert code == 0
    assert summary.total_failed == 1
    assert summary.errors


def test_init_runs_wizard(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(
        "polyglot_keeper.cli.run_setup_wizard", lambda root_dir: calls.append(root_dir)
    )
    assert main(["init", "--root", str(tmp_path)]) == 0
    assert main(["--setup", "--root", str(tmp_path)]) == 0
    assert calls == [tmp_path.resolve(), tmp_path.resolve()]


def test_summary_ends_with_totals_line(project, capsys):
    assert main(["--root", str(project), "--non-interactive"]) == 0
    assert "Total: 1 translations" in capsys.readouterr().out

    assert main(["--root", str(project), "--non-interactive"]) == 0
    assert "All locales are synchronized and sorted" in capsys.readouterr().out


def test_non_utf8_locale_file_is_reported(project):
    (project / "locales" / "en.json").write_bytes(b'{"greeting": "\xff"}')
    code, summary, message = execute_sync(
        root_dir=project,
        markdown=False,
        force=False,
        non_interactive=True,
        verbose=False,
        provider_debug=False,
    )
    assert (code, summary) == (1, None)
    assert "not valid UTF-8" in message


def test_missing_config_starts_wizard_when_interactive(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(
        "polyglot_keeper.cli.run_setup_wizard", lambda root_dir: calls.append(root_dir)
    )
    monkeypatch.setattr(
        "polyglot_keeper.cli._is_interactive", lambda non_interactive: not non_interactive
    )
    assert main(["--root", str(tmp_path)]) == 0
    assert calls == [tmp_path.resolve()]

    assert main(["--root", str(tmp_path), "--non-interactive"]) == 1
    assert len(calls) == 1
