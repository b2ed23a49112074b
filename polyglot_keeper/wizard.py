"""Interactive ``init`` wizard that writes ``polyglot.config.json``."""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .configuration import CONFIG_FILE_NAMES, APP_NAME
from .errors import AbortRequested
from .interactive import Ask
from .providers import DEFAULT_MODELS
from .structures import LocaleFormat, TrackChanges

CONFIG_FILE_NAME = CONFIG_FILE_NAMES[0]
ENV_PLACEHOLDER = "your_api_key_here"

MODES: Sequence[Tuple[str, str]] = (
    ("both", "JSON locale files + markdown content"),
    ("json", "JSON locale files"),
    ("markdown", "Markdown files"),
)

PROVIDERS: Sequence[Tuple[str, str]] = (
    ("gemini", "Google Gemini"),
    ("openai", "OpenAI"),
    ("anthropic", "Anthropic Claude"),
)

LOCALE_FORMATS: Sequence[Tuple[str, str]] = (
    (LocaleFormat.SHORT.value, "en.json, ru.json"),
    (LocaleFormat.PAIR.value, "EN-en.json, RU-ru.json"),
)

TRACKING_MODES: Sequence[Tuple[str, str]] = (
    (TrackChanges.OFF.value, "Only translate missing keys"),
    (TrackChanges.ON.value, "Retranslate every changed source value"),
    (TrackChanges.CAREFULLY.value, "Ask before retranslating changed values"),
)


def parse_locales(raw: str) -> List[str]:
    """Split a comma/space separated answer into unique locale codes."""

    seen: List[str] = []
    for chunk in raw.replace(",", " ").split():
        if chunk not in seen:
            seen.append(chunk)
    return seen


def _prune(section: Dict[str, Any]) -> Dict[str, Any]:
    pruned = {key: value for key, value in section.items() if value is not None}
    if pruned.get("trackChanges") in {None, TrackChanges.OFF.value}:
        pruned.pop("trackChanges", None)
    return pruned


def generate_config_file(config: Dict[str, Any]) -> str:
    """Render a config mapping as the on-disk JSON document."""

    rendered: Dict[str, Any] = {"envFile": config.get("envFile") or ".env"}
    for name in ("json", "markdown"):
        section = config.get(name)
        if section:
            rendered[name] = _prune(dict(section))
    return json.dumps(rendered, ensure_ascii=False, indent=2) + "\n"


class SetupWizard:
    """Asks the questions of ``polyglot-keeper init`` through ``ask``."""

    def __init__(self, root_dir: pathlib.Path, *, ask: Ask = input) -> None:
        self.root_dir = root_dir
        self.ask = ask

    def _text(self, question: str, default: str) -> str:
        answer = self.ask(f"{question} [{default}]: ").strip()
        if answer.lower() in {"q", "quit"}:
            raise AbortRequested("Setup cancelled.")
        return answer or default

    def _choose(self, question: str, options: Sequence[Tuple[str, str]]) -> str:
        print(f"\n{question}")
        for index, (value, label) in enumerate(options, start=1):
            print(f"  {index}. {label} ({value})")
        values = [value for value, _ in options]
        while True:
            answer = self._text("Select an option", "1")
            if answer.isdigit() and 1 <= int(answer) <= len(options):
                return values[int(answer) - 1]
            if answer in values:
                return answer
            print(f"Please answer with a number between 1 and {len(options)}.")

    def _confirm(self, question: str) -> bool:
        return self._text(f"{question} (y/n)", "n").lower() in {"y", "yes"}

    def _provider_settings(self, env_default: str) -> Dict[str, Any]:
        provider = self._choose("Choose your translation provider", PROVIDERS)
        return {
            "provider": provider,
            "model": self._text("Model", DEFAULT_MODELS[provider]),
            "envVarName": self._text("API key variable name", env_default),
        }

    def _locales(self, default: str) -> Tuple[List[str], str]:
        while True:
            locales = parse_locales(self._text("Which languages do you support?", default))
            if locales:
                break
            print("Please enter at least one locale code.")
        default_locale = self._choose(
            "Which is your primary (source) language?",
            [(locale, locale) for locale in locales],
        )
        return locales, default_locale

    def json_section(self) -> Dict[str, Any]:
        section = self._provider_settings("POLYGLOT_API_KEY")
        section["localeFormat"] = self._choose("How should locale files be named?", LOCALE_FORMATS)
        locales, default_locale = self._locales("EN, RU")
        section["locales"] = locales
        section["defaultLocale"] = default_locale
        section["localesDir"] = self._text("Where to store locale files?", "src/locale")
        section["trackChanges"] = self._choose("Track source value changes?", TRACKING_MODES)
        return section

    def markdown_section(self, json_section: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        section: Dict[str, Any] = {}
        if json_section and self._confirm("Reuse the JSON provider and model for markdown?"):
            section["provider"] = json_section["provider"]
            section["model"] = json_section["model"]
            section["envVarName"] = json_section["envVarName"]
        else:
            section.update(self._provider_settings("POLYGLOT_MD_API_KEY"))
        section["contentDir"] = self._text("Where is your markdown content?", "content")
        default_locales = ", ".join(
            locale.lower() for locale in (json_section or {}).get("locales", ["en", "ru"])
        )
        section["locales"], section["defaultLocale"] = self._locales(default_locales)
        section["trackChanges"] = self._choose("Track source file changes?", TRACKING_MODES)
        return section

    def run(self) -> Dict[str, Any]:
        config_path = self.root_dir / CONFIG_FILE_NAME
        existing: Dict[str, Any] = {}
        if config_path.exists():
            if not self._confirm(f"{CONFIG_FILE_NAME} already exists. Overwrite it?"):
                raise AbortRequested("Setup cancelled; existing configuration kept.")
            try:
                loaded = json.loads(config_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                loaded = {}
            if isinstance(loaded, dict):
                existing = loaded

        mode = self._choose("What would you like to translate?", MODES)
        json_section = self.json_section() if mode in {"json", "both"} else None
        markdown_section = (
            self.markdown_section(json_section) if mode in {"markdown", "both"} else None
        )

        config = dict(existing)
        config["envFile"] = existing.get("envFile") or ".env"
        if json_section:
            config["json"] = json_section
        if markdown_section:
            config["markdown"] = markdown_section

        self._prepare_directories(json_section, markdown_section)
        config_path.write_text(generate_config_file(config), encoding="utf-8")
        env_vars = self._write_env_placeholders(config)
        self._print_next_steps(config_path, env_vars, json_section, markdown_section)
        return config

    def _prepare_directories(
        self,
        json_section: Optional[Dict[str, Any]],
        markdown_section: Optional[Dict[str, Any]],
    ) -> None:
        if json_section:
            (self.root_dir / json_section["localesDir"]).mkdir(parents=True, exist_ok=True)
        if markdown_section:
            content_dir = self.root_dir / markdown_section["contentDir"]
            for locale in markdown_section["locales"]:
                (content_dir / locale).mkdir(parents=True, exist_ok=True)

    def _write_env_placeholders(self, config: Dict[str, Any]) -> List[str]:
        env_vars: List[str] = []
        for name in ("json", "markdown"):
            variable = (config.get(name) or {}).get("envVarName")
            if variable and variable not in env_vars:
                env_vars.append(variable)

        env_path = self.root_dir / config["envFile"]
        existing = env_path.read_text(encoding="utf-8") if env_path.exists() else ""
        absent = [variable for variable in env_vars if f"{variable}=" not in existing]
        if absent:
            lines = "".join(f"{variable}={ENV_PLACEHOLDER}\n" for variable in absent)
            if existing and not existing.endswith("\n"):
                lines = "\n" + lines
            with env_path.open("a", encoding="utf-8") as handle:
                handle.write(lines)
        return env_vars

    def _print_next_steps(
        self,
        config_path: pathlib.Path,
        env_vars: Sequence[str],
        json_section: Optional[Dict[str, Any]],
        markdown_section: Optional[Dict[str, Any]],
    ) -> None:
        print("\nSetup complete.")
        print(f"  Configuration:   {config_path}")
        if json_section:
            print(f"  Locale files:    {json_section['localesDir']}/")
        if markdown_section:
            print(
                "  Markdown source: "
                f"{markdown_section['contentDir']}/{markdown_section['defaultLocale']}/"
            )
        print("\nNext steps:")
        print("  1. Add your API key to .env:")
        for variable in env_vars:
            print(f"       {variable}={ENV_PLACEHOLDER}")
        step = 2
        if json_section:
            print(f"  {step}. Run `{APP_NAME} sync` to translate locale files")
            step += 1
        if markdown_section:
            print(f"  {step}. Run `{APP_NAME} sync --md` to translate markdown files")


def run_setup_wizard(root_dir: pathlib.Path, *, ask: Ask = input) -> Dict[str, Any]:
    return SetupWizard(root_dir, ask=ask).run()
