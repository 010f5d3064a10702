"""
Entity lifecycle tracking.

Turns the per-interval sets of present node or edge ids into spells on
temporal entities. Entities move Unseen -> Alive -> Dead -> Alive ... and
are retained while dead, so a later reappearance extends the same entity
with a new spell instead of creating a duplicate.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from .temporal import Spell, TemporalEntity
from ..logger import get_logger

logger = get_logger(__name__)


class DataConsistencyError(RuntimeError):
    """The report sequence references an entity that was never observed."""


class LifecycleState(Enum):
    ALIVE = "alive"
    DEAD = "dead"


@dataclass
class Registration:
    """Registry entry: an entity, its state and its current (or last) spell."""
    entity: TemporalEntity
    state: LifecycleState
    spell: Spell
    pinned: bool = False

    @property
    def is_alive(self) -> bool:
        return self.state is LifecycleState.ALIVE


@dataclass
class LifecycleChanges:
    """What one observe() call did, by entity id."""
    interval: float
    created: list = field(default_factory=list)
    revived: list = field(default_factory=list)
    extended: list = field(default_factory=list)
    closed: list = field(default_factory=list)

    @property
    def is_stable(self) -> bool:
        return not (self.created or self.revived or self.closed)

    @property
    def change_magnitude(self) -> int:
        return len(self.created) + len(self.revived) + len(self.closed)


class LifecycleTracker:
    """
    Alive/dead bookkeeping for one entity kind.

    The factory is called with an id the first time it is seen and must
    return a new temporal entity without spells.
    """

    def __init__(self, factory: Callable[[str], TemporalEntity], kind: str = "entity"):
        self.factory = factory
        self.kind = kind
        self._registry: dict[str, Registration] = {}
        self._alive: dict[str, Registration] = {}
        self._finalized = False

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    @property
    def alive_ids(self) -> set:
        return set(self._alive)

    @property
    def dead_ids(self) -> set:
        return {eid for eid, reg in self._registry.items() if not reg.is_alive}

    def state(self, entity_id: str) -> Optional[LifecycleState]:
        reg = self._registry.get(entity_id)
        return reg.state if reg else None

    def get(self, entity_id: str) -> Optional[TemporalEntity]:
        reg = self._registry.get(entity_id)
        return reg.entity if reg else None

    def resolve(self, entity_id: str) -> TemporalEntity:
        """Entity for an id that is alive or dead; unseen ids are an error."""
        reg = self._registry.get(entity_id)
        if reg is None:
            raise DataConsistencyError(
                f"No {self.kind} {entity_id} has been observed in any processed report"
            )
        return reg.entity

    def observe(self, present_ids: Iterable[str], interval: float) -> LifecycleChanges:
        """Fold the ids present at this interval into the registry."""
        self._check_open()
        changes = LifecycleChanges(interval=interval)
        present = set()

        for entity_id in present_ids:
            if entity_id in present:
                continue
            present.add(entity_id)
            reg = self._registry.get(entity_id)

            if reg is None:
                self._create(entity_id, interval)
                changes.created.append(entity_id)
            elif reg.pinned:
                continue
            elif reg.is_alive:
                reg.spell.end = interval + 1
                changes.extended.append(entity_id)
            else:
                self._revive(reg, interval)
                changes.revived.append(entity_id)

        for entity_id in [eid for eid in self._alive if eid not in present]:
            reg = self._alive[entity_id]
            if reg.pinned:
                continue
            reg.spell.end = interval
            reg.state = LifecycleState.DEAD
            del self._alive[entity_id]
            changes.closed.append(entity_id)

        if not changes.is_stable:
            logger.debug(
                "%s churn at %s: +%d new, +%d back, -%d gone",
                self.kind, interval, len(changes.created),
                len(changes.revived), len(changes.closed),
            )
        return changes

    def pin(self, entity_id: str, step: float, factory: Optional[Callable[[str], TemporalEntity]] = None) -> TemporalEntity:
        """
        Make an entity alive from step on and keep it alive until finalize.

        An entity that is already alive keeps its current spell.
        """
        self._check_open()
        reg = self._registry.get(entity_id)
        if reg is None:
            reg = self._create(entity_id, step, factory)
        elif not reg.is_alive:
            self._revive(reg, step)
        reg.pinned = True
        return reg.entity

    def finalize(self, last_boundary: float) -> None:
        """End the current spell of every alive entity at last_boundary."""
        self._check_open()
        for reg in self._alive.values():
            if last_boundary <= reg.spell.start:
                raise ValueError(
                    f"Boundary {last_boundary} precedes spell start {reg.spell.start} of {reg.entity.id}"
                )
            reg.spell.end = last_boundary
        self._finalized = True

    def _create(self, entity_id: str, start: float, factory=None) -> Registration:
        entity = (factory or self.factory)(entity_id)
        spell = entity.add_spell(start)
        reg = Registration(entity=entity, state=LifecycleState.ALIVE, spell=spell)
        self._registry[entity_id] = reg
        self._alive[entity_id] = reg
        return reg

    def _revive(self, reg: Registration, start: float) -> None:
        reg.spell = reg.entity.add_spell(start)
        reg.state = LifecycleState.ALIVE
        self._alive[reg.entity.id] = reg

    def _check_open(self):
        if self._finalized:
            raise RuntimeError(f"{self.kind} tracker already finalized")
