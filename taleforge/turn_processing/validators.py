from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from taleforge.core.state import StateStore
from taleforge.turn_processing.outcomes import EventDeferred, EventRejected


class EventValidator(ABC):
    """A small, composable precondition check for one proposed event.

    Raises `EventRejected` or `EventDeferred`; returns None when satisfied.
    Validators never mutate the store.
    """

    @abstractmethod
    def validate(self, *, event: Any, store: StateStore) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class NonEmptyFieldValidator(EventValidator):
    """Reject ids/names that are blank after trimming."""

    field: str
    label: str

    def validate(self, *, event: Any, store: StateStore) -> None:
        value = getattr(event, self.field)
        if not str(value).strip():
            raise EventRejected(f"{self.label} must not be empty")


@dataclass(frozen=True, slots=True)
class UniqueIdValidator(EventValidator):
    """The id must not already be present in `pool`."""

    pool: str
    label: str
    field: str = "id"

    def validate(self, *, event: Any, store: StateStore) -> None:
        key = getattr(event, self.field)
        if key in getattr(store, self.pool):
            raise EventRejected(f"{self.label} '{key}' already exists")


@dataclass(frozen=True, slots=True)
class ExistingIdValidator(EventValidator):
    """The id must already be present in `pool`.

    Missing references are deferred by default: the entity may appear on a
    later turn.
    """

    pool: str
    message: str
    field: str = "id"
    reject: bool = False

    def validate(self, *, event: Any, store: StateStore) -> None:
        key = getattr(event, self.field)
        if key in getattr(store, self.pool):
            return
        reason = self.message.format(id=key)
        if self.reject:
            raise EventRejected(reason)
        raise EventDeferred(reason)


@dataclass(frozen=True, slots=True)
class DisjointPoolValidator(EventValidator):
    """Keep the party and NPC pools disjoint: the id must not be in `other_pool`."""

    other_pool: str
    message: str
    field: str = "id"

    def validate(self, *, event: Any, store: StateStore) -> None:
        key = getattr(event, self.field)
        if key in getattr(store, self.other_pool):
            raise EventRejected(self.message.format(id=key))


@dataclass(frozen=True, slots=True)
class RecruitSourceValidator(EventValidator):
    """Joining the party needs either a known NPC or an explicit name and role."""

    def validate(self, *, event: Any, store: StateStore) -> None:
        if store.has_npc(event.id):
            return
        if event.name is None or not event.name.strip():
            raise EventRejected(f"NPC '{event.id}' not found and no name provided")
        if event.role is None or not event.role.strip():
            raise EventRejected(f"NPC '{event.id}' not found and no role provided")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[EventValidator, ...]

    def validate(self, *, event: Any, store: StateStore) -> None:
        for v in self.validators:
            v.validate(event=event, store=store)


_NO_CHECKS = ValidatorPipeline(validators=())


# Preconditions per event tag. Tags without an entry have none.
DEFAULT_EVENT_PIPELINES: dict[str, ValidatorPipeline] = {
    "grant_power": ValidatorPipeline(
        validators=(
            NonEmptyFieldValidator(field="id", label="Power id"),
            UniqueIdValidator(pool="powers", label="Power"),
        )
    ),
    "add_party_member": ValidatorPipeline(
        validators=(
            NonEmptyFieldValidator(field="id", label="Party member id"),
            UniqueIdValidator(pool="party", label="Party member"),
            DisjointPoolValidator(other_pool="npcs", message="'{id}' is an NPC; use npc_join_party"),
        )
    ),
    "party_update": ValidatorPipeline(
        validators=(ExistingIdValidator(pool="party", message="Party member '{id}' not found"),)
    ),
    "npc_spawn": ValidatorPipeline(
        validators=(
            NonEmptyFieldValidator(field="id", label="NPC id"),
            UniqueIdValidator(pool="npcs", label="NPC"),
            DisjointPoolValidator(other_pool="party", message="'{id}' is already a party member"),
        )
    ),
    "npc_update": ValidatorPipeline(
        validators=(
            NonEmptyFieldValidator(field="id", label="NPC id"),
            DisjointPoolValidator(other_pool="party", message="'{id}' is a party member; use party_update"),
        )
    ),
    "npc_despawn": ValidatorPipeline(
        validators=(ExistingIdValidator(pool="npcs", message="NPC '{id}' not found"),)
    ),
    "npc_join_party": ValidatorPipeline(
        validators=(
            NonEmptyFieldValidator(field="id", label="Party member id"),
            UniqueIdValidator(pool="party", label="Party member"),
            RecruitSourceValidator(),
        )
    ),
    "npc_leave_party": ValidatorPipeline(
        validators=(ExistingIdValidator(pool="party", message="Party member '{id}' not found", reject=True),)
    ),
    "modify_stat": ValidatorPipeline(
        validators=(ExistingIdValidator(pool="stats", field="stat_id", message="Unknown stat '{id}'"),)
    ),
    "start_quest": ValidatorPipeline(
        validators=(
            NonEmptyFieldValidator(field="id", label="Quest id"),
            UniqueIdValidator(pool="quests", label="Quest"),
        )
    ),
    "update_quest": ValidatorPipeline(
        validators=(ExistingIdValidator(pool="quests", message="Quest '{id}' not found"),)
    ),
    "equip_item": ValidatorPipeline(validators=(NonEmptyFieldValidator(field="item_id", label="Item id"),)),
    "faction_spawn": ValidatorPipeline(
        validators=(
            NonEmptyFieldValidator(field="id", label="Faction id"),
            UniqueIdValidator(pool="factions", label="Faction"),
        )
    ),
    "faction_update": ValidatorPipeline(
        validators=(ExistingIdValidator(pool="factions", message="Faction '{id}' not found"),)
    ),
}


def pipeline_for_event(tag: str) -> ValidatorPipeline:
    return DEFAULT_EVENT_PIPELINES.get(tag, _NO_CHECKS)
