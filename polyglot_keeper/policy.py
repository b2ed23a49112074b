"""Resolution of changed source units into retranslate / skip / freeze decisions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Callable, Mapping, Optional, Sequence, Set

from .interactive import AutomaticDecisionProvider, DecisionProvider, GlobalAction, UnitAction
from .structures import TrackChanges


@dataclass
class Resolution:
    """Outcome of the policy for one run and one content kind.

    ``retranslate``, ``skip`` and ``newly_frozen`` are disjoint. ``frozen`` is
    the complete frozen set to persist after the run.
    """

    retranslate: Set[str] = field(default_factory=set)
    skip: Set[str] = field(default_factory=set)
    newly_frozen: Set[str] = field(default_factory=set)
    frozen: Set[str] = field(default_factory=set)
    forced: bool = False

    def is_skipped(self, unit_id: str) -> bool:
        return unit_id in self.skip or unit_id in self.newly_frozen


class ResolutionPolicy:
    """Maps tracking mode, force flag and operator answers to a Resolution."""

    def __init__(
        self,
        *,
        mode: TrackChanges,
        force_retranslate: bool = False,
        decisions: Optional[DecisionProvider] = None,
        display: Callable[[str], str] = str,
    ) -> None:
        self.mode = mode
        self.force_retranslate = force_retranslate
        self.decisions = decisions or AutomaticDecisionProvider()
        self.display = display

    def resolve(
        self,
        *,
        units: Sequence[str],
        changed: Sequence[str],
        frozen: AbstractSet[str],
        previous: Mapping[str, str],
        current: Mapping[str, str],
    ) -> Resolution:
        if self.force_retranslate:
            return Resolution(retranslate=set(units), forced=True)

        resolution = Resolution(frozen=set(frozen))
        if self.mode is TrackChanges.OFF or not changed:
            return resolution

        if self.mode is TrackChanges.ON:
            resolution.retranslate.update(changed)
            return resolution

        action = self.decisions.choose_global_action(len(changed), len(frozen))
        if action is GlobalAction.RETRANSLATE_ALL:
            resolution.retranslate.update(changed)
        elif action is GlobalAction.SKIP_ALL:
            resolution.skip.update(changed)
        else:
            self._review(resolution, changed, previous, current)
        return resolution

    def _review(
        self,
        resolution: Resolution,
        changed: Sequence[str],
        previous: Mapping[str, str],
        current: Mapping[str, str],
    ) -> None:
        total = len(changed)
        for position, unit_id in enumerate(changed, start=1):
            action = self.decisions.choose_unit_action(
                unit_id,
                self.display(previous.get(unit_id, "")),
                self.display(current.get(unit_id, "")),
                position,
                total,
            )
            if action is UnitAction.RETRANSLATE:
                resolution.retranslate.add(unit_id)
            elif action is UnitAction.FREEZE:
                resolution.newly_frozen.add(unit_id)
                resolution.frozen.add(unit_id)
            else:
                resolution.skip.add(unit_id)
