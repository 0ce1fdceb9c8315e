"""
Verifier configuration.

Selects the logical system a proof is checked under. Basic TFL rules
are always enabled; derived TFL rules are on by default; a modal system
enables its own rules and those of every weaker system.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .modal.worlds import ModalSystem
from .rules.catalog import RuleSetName


@dataclass(frozen=True)
class VerifierConfig:
    system: Optional[ModalSystem] = None
    derived: bool = True

    @property
    def rulesets(self) -> tuple[RuleSetName, ...]:
        enabled = [RuleSetName.TFL_BASIC]
        if self.derived:
            enabled.append(RuleSetName.TFL_DERIVED)
        if self.system is not None:
            enabled.extend(self.system.rulesets)
        return tuple(enabled)

    @property
    def name(self) -> str:
        base = "TFL" if self.derived else "TFL (basic)"
        return f"{base} + {self.system.value}" if self.system else base

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VerifierConfig:
        """
        Build from the settings of a serialized document.

        Raises:
            ValueError: On an unknown modal system name.
        """
        system = data.get("system")
        return cls(
            system=ModalSystem.parse(system) if system else None,
            derived=bool(data.get("derived", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "system": self.system.value if self.system else None,
            "derived": self.derived,
        }
