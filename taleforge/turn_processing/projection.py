from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from taleforge.core.state import (
    EquippedItem,
    FactionRep,
    ItemStack,
    LootDrop,
    Npc,
    PartyMember,
    PlayerState,
    Power,
    Quest,
    QuestStep,
    Relationship,
    StateStore,
)

_FROZEN = ConfigDict(frozen=True)


# Snapshot-side copies of the store records: same fields, but frozen, with
# tuples in place of lists.


class PlayerView(PlayerState):
    model_config = _FROZEN

    weapons: tuple[str, ...] = ()  # type: ignore[assignment]
    armor: tuple[str, ...] = ()  # type: ignore[assignment]
    clothing: tuple[str, ...] = ()  # type: ignore[assignment]


class PowerView(Power):
    model_config = _FROZEN


class PartyMemberView(PartyMember):
    model_config = _FROZEN

    clothing: tuple[str, ...] = ()  # type: ignore[assignment]


class NpcView(Npc):
    model_config = _FROZEN


class QuestStepView(QuestStep):
    model_config = _FROZEN


class QuestView(Quest):
    model_config = _FROZEN

    reward_options: tuple[str, ...] = ()  # type: ignore[assignment]
    rewards: tuple[str, ...] = ()  # type: ignore[assignment]
    sub_quests: tuple[QuestStepView, ...] = ()  # type: ignore[assignment]


class ItemStackView(ItemStack):
    model_config = _FROZEN


class LootDropView(LootDrop):
    model_config = _FROZEN


class RelationshipView(Relationship):
    model_config = _FROZEN


class FactionView(FactionRep):
    model_config = _FROZEN


class EquippedItemView(EquippedItem):
    model_config = _FROZEN


class Stat(BaseModel):
    model_config = _FROZEN

    id: str
    value: int


class CurrencyBalance(BaseModel):
    model_config = _FROZEN

    currency: str
    amount: int


class GameStateSnapshot(BaseModel):
    """Read-only view of the store, safe to hand to the narrator and to clients.

    Built from a dump of the store, so nothing in here shares mutable state
    with the live store. Every nested record is frozen too.
    """

    model_config = _FROZEN

    version: int
    revision: int

    player: PlayerView
    stats: tuple[Stat, ...]
    powers: tuple[PowerView, ...]
    equipment: tuple[EquippedItemView, ...]
    party: tuple[PartyMemberView, ...]
    npcs: tuple[NpcView, ...]
    quests: tuple[QuestView, ...]
    relationships: tuple[RelationshipView, ...]
    inventory: tuple[ItemStackView, ...]
    loot: tuple[LootDropView, ...]
    currencies: tuple[CurrencyBalance, ...]
    factions: tuple[FactionView, ...]
    flags: tuple[str, ...]


def _sorted_values(pool: dict[str, dict]) -> list[dict]:
    return [pool[k] for k in sorted(pool)]


def project_snapshot(store: StateStore) -> GameStateSnapshot:
    """Pure projection of the store.

    Keyed pools come out sorted by key so consecutive snapshots diff cleanly;
    loot and flags keep their insertion order.
    """

    data = store.model_dump(mode="python")

    return GameStateSnapshot.model_validate(
        {
            "version": data["version"],
            "revision": data["revision"],
            "player": data["player"],
            "stats": [{"id": k, "value": v} for k, v in sorted(data["stats"].items())],
            "powers": _sorted_values(data["powers"]),
            "equipment": _sorted_values(data["equipment"]),
            "party": _sorted_values(data["party"]),
            "npcs": _sorted_values(data["npcs"]),
            "quests": _sorted_values(data["quests"]),
            "relationships": _sorted_values(data["relationships"]),
            "inventory": _sorted_values(data["inventory"]),
            "loot": data["loot"],
            "currencies": [{"currency": k, "amount": v} for k, v in sorted(data["currencies"].items())],
            "factions": _sorted_values(data["factions"]),
            "flags": data["flags"],
        }
    )
