"""Operator decisions for changed source units."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, Sequence, Tuple, TypeVar

from .errors import AbortRequested

Ask = Callable[[str], str]

_Choice = TypeVar("_Choice")


class GlobalAction(str, Enum):
    RETRANSLATE_ALL = "retranslate-all"
    SKIP_ALL = "skip-all"
    REVIEW = "review"


class UnitAction(str, Enum):
    RETRANSLATE = "retranslate"
    SKIP = "skip"
    FREEZE = "freeze"


class DecisionProvider(ABC):
    """Answers the questions raised by the "carefully" tracking mode."""

    @abstractmethod
    def choose_global_action(self, changed_count: int, frozen_count: int) -> GlobalAction:
        """Decide what to do with all changed units at once."""

    @abstractmethod
    def choose_unit_action(
        self,
        unit_id: str,
        old_value: str,
        new_value: str,
        position: int,
        total: int,
    ) -> UnitAction:
        """Decide what to do with a single changed unit."""


class AutomaticDecisionProvider(DecisionProvider):
    """Takes the first option of every question; used without a terminal."""

    def choose_global_action(self, changed_count: int, frozen_count: int) -> GlobalAction:
        return GlobalAction.RETRANSLATE_ALL

    def choose_unit_action(
        self,
        unit_id: str,
        old_value: str,
        new_value: str,
        position: int,
        total: int,
    ) -> UnitAction:
        return UnitAction.RETRANSLATE


GLOBAL_OPTIONS: Sequence[Tuple[str, GlobalAction, str]] = (
    ("r", GlobalAction.RETRANSLATE_ALL, "Retranslate all changed units"),
    ("s", GlobalAction.SKIP_ALL, "Skip all and keep current translations"),
    ("v", GlobalAction.REVIEW, "Review one by one"),
)

UNIT_OPTIONS: Sequence[Tuple[str, UnitAction, str]] = (
    ("r", UnitAction.RETRANSLATE, "Retranslate in all locales"),
    ("s", UnitAction.SKIP, "Skip (ask again next time)"),
    ("f", UnitAction.FREEZE, "Freeze (never ask again)"),
)


class ConsoleDecisionProvider(DecisionProvider):
    """Prompts on the terminal until a valid answer is given."""

    def __init__(self, *, ask: Ask = input) -> None:
        self.ask = ask

    def choose_global_action(self, changed_count: int, frozen_count: int) -> GlobalAction:
        plural = "s" if changed_count != 1 else ""
        print(f"\nDetected {changed_count} changed source unit{plural} since last sync.")
        if frozen_count:
            print(f"  {frozen_count} frozen unit{'s' if frozen_count != 1 else ''} ignored.")
        return self._select("What would you like to do?", GLOBAL_OPTIONS)

    def choose_unit_action(
        self,
        unit_id: str,
        old_value: str,
        new_value: str,
        position: int,
        total: int,
    ) -> UnitAction:
        print(f"\n  {unit_id}  ({position}/{total})")
        print(f'     "{old_value}" -> "{new_value}"')
        return self._select("Action:", UNIT_OPTIONS)

    def _select(
        self,
        title: str,
        options: Sequence[Tuple[str, _Choice, str]],
    ) -> _Choice:
        lookup: Dict[str, _Choice] = {}
        for shortcut, value, label in options:
            print(f"    [{shortcut}] {label}")
            lookup[shortcut] = value
            lookup[str(getattr(value, "value", value))] = value

        hint = "/".join(shortcut for shortcut, _, _ in options)
        while True:
            response = self.ask(f"  {title} ({hint}, q to abort) ").strip().lower()
            if response in lookup:
                return lookup[response]
            if response in {"q", "quit", "abort"}:
                raise AbortRequested("Abort requested by user.")
            print(f"Please respond with one of: {hint}.")
