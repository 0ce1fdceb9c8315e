"""
Modal Accessibility Model for Fitchbox.

Every modal subproof is a possible world; the top-level proof is the
actual world. Worlds form a tree that mirrors modal subproof nesting
(ordinary subproofs stay in the world that contains them). The tree is
rebuilt from each ProofStructure snapshot and holds no other state.

Accessibility per system, from the citing world to the cited world:
    K  — the world itself or its direct parent
    T  — as K; a world may additionally use its own necessities
    S4 — any ancestor (transitive closure)
    S5 — any world of the same connected tree (equivalence closure)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..proof import ProofStructure, Scope, ScopeKind
from ..rules.catalog import RuleSetName

logger = logging.getLogger(__name__)


class ModalSystem(Enum):
    K = "K"
    T = "T"
    S4 = "S4"
    S5 = "S5"

    @property
    def reflexive(self) -> bool:
        return self != ModalSystem.K

    @property
    def transitive(self) -> bool:
        return self in (ModalSystem.S4, ModalSystem.S5)

    @property
    def symmetric(self) -> bool:
        return self == ModalSystem.S5

    @property
    def rulesets(self) -> tuple[RuleSetName, ...]:
        """Modal rulesets enabled by this system, cumulative from K."""
        order = list(ModalSystem)
        cumulative = (
            RuleSetName.MODAL_K,
            RuleSetName.MODAL_T,
            RuleSetName.MODAL_S4,
            RuleSetName.MODAL_S5,
        )
        return cumulative[: order.index(self) + 1]

    @classmethod
    def parse(cls, name: str) -> ModalSystem:
        try:
            return cls(name.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown modal system: {name!r} (expected K, T, S4 or S5)")


@dataclass(frozen=True)
class World:
    world_id: int
    parent_id: Optional[int]
    depth: int
    scope_id: int

    @property
    def is_actual(self) -> bool:
        return self.parent_id is None


class WorldTree:
    """
    Worlds derived from one proof snapshot.

    Accessibility relations are computed lazily per system as sets of
    (from, to) pairs and cached for the lifetime of the tree.
    """

    def __init__(self, worlds: list[World], scope_worlds: dict[int, int], structure: ProofStructure):
        self.worlds = worlds
        self._scope_worlds = scope_worlds
        self._structure = structure
        self._relations: dict[ModalSystem, frozenset[tuple[int, int]]] = {}

    @classmethod
    def from_structure(cls, structure: ProofStructure) -> WorldTree:
        worlds = [World(world_id=0, parent_id=None, depth=0, scope_id=0)]
        scope_worlds: dict[int, int] = {0: 0}

        # Scope ids are assigned in document order, so parents come first
        for scope in sorted(structure.scopes(), key=lambda s: s.scope_id):
            if scope.is_root:
                continue
            parent_world = scope_worlds[scope.parent_id]
            if scope.kind == ScopeKind.MODAL:
                world = World(
                    world_id=len(worlds),
                    parent_id=parent_world,
                    depth=worlds[parent_world].depth + 1,
                    scope_id=scope.scope_id,
                )
                worlds.append(world)
                scope_worlds[scope.scope_id] = world.world_id
            else:
                scope_worlds[scope.scope_id] = parent_world

        logger.debug("Built world tree with %d world(s)", len(worlds))
        return cls(worlds, scope_worlds, structure)

    def __len__(self) -> int:
        return len(self.worlds)

    def world(self, world_id: int) -> World:
        return self.worlds[world_id]

    def world_of_scope(self, scope: Scope) -> World:
        return self.worlds[self._scope_worlds[scope.scope_id]]

    def world_of_line(self, number: int) -> World:
        return self.world_of_scope(self._structure.scope_of(number))

    def ancestors(self, world: World) -> list[World]:
        """Strict ancestors, nearest first."""
        chain = []
        while world.parent_id is not None:
            world = self.worlds[world.parent_id]
            chain.append(world)
        return chain

    # -------------------------------------------------------------------------
    # Accessibility
    # -------------------------------------------------------------------------

    def relation(self, system: ModalSystem) -> frozenset[tuple[int, int]]:
        if system not in self._relations:
            self._relations[system] = self._close(system)
        return self._relations[system]

    def _close(self, system: ModalSystem) -> frozenset[tuple[int, int]]:
        pairs: set[tuple[int, int]] = set()
        for world in self.worlds:
            pairs.add((world.world_id, world.world_id))
            if world.parent_id is not None:
                pairs.add((world.world_id, world.parent_id))

        if system.symmetric:
            pairs |= {(b, a) for a, b in pairs}

        if system.transitive:
            changed = True
            while changed:
                changed = False
                for a, b in list(pairs):
                    for c, d in list(pairs):
                        if b == c and (a, d) not in pairs:
                            pairs.add((a, d))
                            changed = True

        return frozenset(pairs)

    def accessible(self, system: ModalSystem, from_world: World, to_world: World) -> bool:
        """Whether material of `to_world` may be used in `from_world`."""
        return (from_world.world_id, to_world.world_id) in self.relation(system)

    def can_import(self, system: ModalSystem, from_world: World, to_world: World) -> bool:
        """
        Whether a transfer rule may carry a sentence from `to_world` into
        `from_world`. Within one world this needs a reflexive system.
        """
        if from_world == to_world:
            return system.reflexive
        return self.accessible(system, from_world, to_world)
