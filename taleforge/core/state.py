from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, Field

# Inventory quantities are unsigned 32-bit on the wire; additions clamp here.
QUANTITY_MAX = 2**32 - 1

BASELINE_STATS: tuple[str, ...] = ("strength", "dexterity", "intelligence")
DEFAULT_STAT_VALUE = 10
DEFAULT_MEMBER_HP = 100

# Experience amounts and level thresholds stay within a signed 32-bit range.
EXP_CAP = 2**31 - 1
MAX_LEVEL_STEP = 1_000


class QuestStatus(StrEnum):
    active = "active"
    completed = "completed"
    failed = "failed"


class PlayerState(BaseModel):
    name: str = "Player"
    level: int = Field(default=1, ge=1)
    exp: int = 0
    exp_to_next: int = 100
    exp_multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    hp: int = 100
    max_hp: int = 100

    weapons: list[str] = Field(default_factory=list)
    armor: list[str] = Field(default_factory=list)
    clothing: list[str] = Field(default_factory=list)


class Power(BaseModel):
    id: str
    name: str
    description: str = ""


class PartyMember(BaseModel):
    id: str
    name: str
    role: str
    details: str = ""
    hp: int = DEFAULT_MEMBER_HP
    clothing: list[str] = Field(default_factory=list)


class Npc(BaseModel):
    id: str
    name: str
    role: str
    notes: str = ""

    # Despawned NPCs stay known to the world but are no longer in the scene.
    nearby: bool = True


class QuestStep(BaseModel):
    id: str
    description: str
    completed: bool = False


class Quest(BaseModel):
    id: str
    title: str
    description: str = ""
    status: QuestStatus = QuestStatus.active

    difficulty: str | None = None
    negotiable: bool = False
    reward_options: list[str] = Field(default_factory=list)
    rewards: list[str] = Field(default_factory=list)
    sub_quests: list[QuestStep] = Field(default_factory=list)

    # Rewards are granted once, the first time the quest is completed.
    rewards_claimed: bool = False


class ItemStack(BaseModel):
    id: str
    quantity: int = Field(default=0, ge=0, le=QUANTITY_MAX)
    description: str | None = None
    set_id: str | None = None


class LootDrop(BaseModel):
    item: str
    quantity: int = Field(default=1, ge=1, le=QUANTITY_MAX)
    description: str | None = None
    set_id: str | None = None


class Relationship(BaseModel):
    subject_id: str
    target_id: str
    value: int = 0


class FactionRep(BaseModel):
    id: str
    name: str
    kind: str | None = None
    description: str | None = None
    reputation: int = 0


class EquippedItem(BaseModel):
    item_id: str
    slot: str
    set_id: str | None = None
    description: str | None = None


def relationship_key(subject_id: str, target_id: str) -> str:
    """Directional key: (a, b) and (b, a) are distinct entries."""

    return f"{subject_id}::{target_id}"


def saturating_add(current: int, amount: int) -> int:
    return max(0, min(QUANTITY_MAX, current + amount))


class StateStore(BaseModel):
    """Authoritative, mutable game state.

    Only the event application engine mutates it (through the methods below);
    everything else reads it through snapshots. Every pool is keyed by id, so
    existence checks are plain membership tests.
    """

    version: int = 1

    # Bumped once per applied batch; lets readers tell snapshots apart.
    revision: int = 0

    player: PlayerState = Field(default_factory=PlayerState)

    # The stat key set is fixed at creation; events only adjust existing values.
    stats: dict[str, int] = Field(default_factory=dict)

    powers: dict[str, Power] = Field(default_factory=dict)
    party: dict[str, PartyMember] = Field(default_factory=dict)
    npcs: dict[str, Npc] = Field(default_factory=dict)
    quests: dict[str, Quest] = Field(default_factory=dict)
    relationships: dict[str, Relationship] = Field(default_factory=dict)
    inventory: dict[str, ItemStack] = Field(default_factory=dict)
    loot: list[LootDrop] = Field(default_factory=list)
    currencies: dict[str, int] = Field(default_factory=dict)
    factions: dict[str, FactionRep] = Field(default_factory=dict)
    equipment: dict[str, EquippedItem] = Field(default_factory=dict)

    # Insertion-ordered set.
    flags: list[str] = Field(default_factory=list)

    # ---- existence checks ----

    def has_stat(self, stat_id: str) -> bool:
        return stat_id in self.stats

    def has_power(self, power_id: str) -> bool:
        return power_id in self.powers

    def in_party(self, member_id: str) -> bool:
        return member_id in self.party

    def has_npc(self, npc_id: str) -> bool:
        return npc_id in self.npcs

    def has_quest(self, quest_id: str) -> bool:
        return quest_id in self.quests

    def has_item(self, item_id: str) -> bool:
        return item_id in self.inventory

    def has_currency(self, currency: str) -> bool:
        return currency in self.currencies

    def has_faction(self, faction_id: str) -> bool:
        return faction_id in self.factions

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags

    # ---- powers / stats / progression ----

    def add_power(self, power: Power) -> None:
        if power.id in self.powers:
            raise ValueError(f"Power '{power.id}' already exists")
        self.powers[power.id] = power

    def adjust_stat(self, stat_id: str, delta: int) -> int:
        if stat_id not in self.stats:
            raise KeyError(stat_id)
        self.stats[stat_id] += delta
        return self.stats[stat_id]

    def gain_exp(self, amount: int) -> int:
        """Add experience, rolling over into level-ups. Returns levels gained."""

        exp = max(0, min(EXP_CAP, self.player.exp + amount))
        next_at = max(1, min(EXP_CAP, self.player.exp_to_next))
        mult = self.player.exp_multiplier

        gained = 0
        while exp >= next_at:
            grown = _next_threshold(next_at, mult)
            if grown == next_at:
                # Flat threshold from here on.
                levels, exp = divmod(exp, next_at)
                gained += levels
                break
            exp -= next_at
            gained += 1
            next_at = grown

        self.player.level += gained
        self.player.exp = exp
        self.player.exp_to_next = next_at
        return gained

    def level_up(self, levels: int, *, reset_exp: bool = False) -> None:
        levels = max(0, levels)
        next_at = max(1, min(EXP_CAP, self.player.exp_to_next))
        mult = self.player.exp_multiplier

        for _ in range(levels):
            grown = _next_threshold(next_at, mult)
            if grown == next_at:
                break
            next_at = grown

        self.player.level += levels
        if reset_exp:
            self.player.exp = 0
        self.player.exp_to_next = next_at

    # ---- party / NPC pools ----

    def add_party_member(self, member: PartyMember) -> None:
        if member.id in self.party or member.id in self.npcs:
            raise ValueError(f"'{member.id}' is already present")
        self.party[member.id] = member

    def add_npc(self, npc: Npc) -> None:
        if npc.id in self.npcs or npc.id in self.party:
            raise ValueError(f"'{npc.id}' is already present")
        self.npcs[npc.id] = npc

    def npc_to_party(self, member_id: str, *, name: str | None = None, role: str | None = None) -> PartyMember:
        """Move an NPC into the party, or recruit a stranger when no NPC has that id.

        The id leaves the NPC pool and enters the party in one step, so it is
        never in both pools (or neither).
        """

        if member_id in self.party:
            raise ValueError(f"Party member '{member_id}' already exists")

        npc = self.npcs.get(member_id)
        if npc is not None:
            name, role = npc.name, npc.role
        elif name is None or role is None:
            raise ValueError(f"NPC '{member_id}' not found and no name/role provided")

        member = PartyMember(id=member_id, name=name, role=role)
        self.npcs.pop(member_id, None)
        self.party[member_id] = member
        return member

    def party_to_npc(self, member_id: str) -> Npc:
        """Move a party member back into the NPC pool with empty notes."""

        member = self.party.get(member_id)
        if member is None:
            raise KeyError(member_id)

        npc = Npc(id=member_id, name=member.name, role=member.role, notes="", nearby=True)
        del self.party[member_id]
        self.npcs[member_id] = npc
        return npc

    # ---- relationships / factions ----

    def relationship(self, subject_id: str, target_id: str) -> int | None:
        rel = self.relationships.get(relationship_key(subject_id, target_id))
        return rel.value if rel is not None else None

    def adjust_relationship(self, subject_id: str, target_id: str, delta: int) -> int:
        key = relationship_key(subject_id, target_id)
        rel = self.relationships.get(key)
        if rel is None:
            rel = Relationship(subject_id=subject_id, target_id=target_id, value=0)
            self.relationships[key] = rel
        rel.value += delta
        return rel.value

    def add_faction(self, faction: FactionRep) -> None:
        if faction.id in self.factions:
            raise ValueError(f"Faction '{faction.id}' already exists")
        self.factions[faction.id] = faction

    def adjust_faction_rep(self, faction_id: str, delta: int) -> int:
        faction = self.factions.get(faction_id)
        if faction is None:
            faction = FactionRep(id=faction_id, name="Unknown Faction")
            self.factions[faction_id] = faction
        faction.reputation += delta
        return faction.reputation

    # ---- quests ----

    def add_quest(self, quest: Quest) -> None:
        if quest.id in self.quests:
            raise ValueError(f"Quest '{quest.id}' already exists")
        self.quests[quest.id] = quest

    # ---- items / loot / currencies ----

    def add_item(
        self,
        item_id: str,
        quantity: int,
        *,
        description: str | None = None,
        set_id: str | None = None,
    ) -> ItemStack:
        stack = self.inventory.get(item_id)
        if stack is None:
            stack = ItemStack(id=item_id, quantity=0)
            self.inventory[item_id] = stack
        stack.quantity = saturating_add(stack.quantity, quantity)
        if stack.description is None:
            stack.description = description
        if stack.set_id is None:
            stack.set_id = set_id
        return stack

    def take_item(self, item_id: str) -> bool:
        """Remove one unit of an item. Returns False if none was held."""

        stack = self.inventory.get(item_id)
        if stack is None:
            return False
        if stack.quantity > 1:
            stack.quantity -= 1
        else:
            del self.inventory[item_id]
        return True

    def add_loot(self, drop: LootDrop) -> None:
        self.loot.append(drop)

    def adjust_currency(self, currency: str, delta: int) -> int:
        # No floor: balances may go negative.
        self.currencies[currency] = self.currencies.get(currency, 0) + delta
        return self.currencies[currency]

    def equip(self, item: EquippedItem) -> None:
        self.equipment[item.item_id] = item
        self.take_item(item.item_id)

        target = _player_list_for_slot(self.player, item.slot)
        if target is not None and not _contains_casefold(target, item.item_id):
            target.append(item.item_id)

    def unequip(self, item_id: str) -> None:
        self.equipment.pop(item_id, None)
        for items in (self.player.weapons, self.player.armor, self.player.clothing):
            items[:] = [i for i in items if i.casefold() != item_id.casefold()]
        self.add_item(item_id, 1)

    # ---- flags ----

    def set_flag(self, flag: str) -> bool:
        """Idempotent insert. Returns True if the flag was newly set."""

        if flag in self.flags:
            return False
        self.flags.append(flag)
        return True


def _next_threshold(next_at: int, mult: float) -> int:
    """Grow a level threshold by `mult`, clamped to `EXP_CAP`."""

    grown = next_at * mult
    if not math.isfinite(grown) or grown >= EXP_CAP:
        return EXP_CAP
    return max(1, int(grown))


def _contains_casefold(items: list[str], value: str) -> bool:
    needle = value.casefold()
    return any(i.casefold() == needle for i in items)


def _player_list_for_slot(player: PlayerState, slot: str) -> list[str] | None:
    if slot in {"weapon", "weapons"}:
        return player.weapons
    if slot in {"armor", "armour"}:
        return player.armor
    if slot == "clothing":
        return player.clothing
    return None


def new_state_store(*, player_name: str = "Player") -> StateStore:
    """Create a fresh store with the baseline stats seeded."""

    return StateStore(
        player=PlayerState(name=player_name),
        stats={stat: DEFAULT_STAT_VALUE for stat in BASELINE_STATS},
    )
