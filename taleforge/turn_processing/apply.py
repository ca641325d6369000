from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from taleforge.core import events as ev
from taleforge.core.events import Event, UnknownEvent, event_tag
from taleforge.core.state import (
    QUANTITY_MAX,
    EquippedItem,
    FactionRep,
    LootDrop,
    Npc,
    PartyMember,
    Power,
    Quest,
    QuestStatus,
    QuestStep,
    StateStore,
)
from taleforge.turn_processing.outcomes import EventDeferred, EventOutcome, EventRejected, OutcomeStatus
from taleforge.turn_processing.rewards import grant_quest_rewards
from taleforge.turn_processing.validators import pipeline_for_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[StateStore, Any], None]


def apply_batch(store: StateStore, events: Sequence[Event]) -> list[EventOutcome]:
    """Apply events strictly in order, one outcome per event.

    There is no isolation between events: each one sees the state left by the
    previous one, so a batch may spawn an NPC and recruit it in the same turn.
    The batch always runs to the end; a rejected or deferred event never stops it.
    """

    outcomes = [apply_event(store, event) for event in events]
    store.revision += 1

    logger.info(
        "applied batch revision=%s events=%s applied=%s",
        store.revision,
        len(outcomes),
        sum(1 for o in outcomes if o.is_applied),
    )
    return outcomes


def apply_event(store: StateStore, event: Event) -> EventOutcome:
    """Validate then apply a single event.

    Preconditions are checked before any mutation, so a rejected or deferred
    event leaves the store untouched.
    """

    tag = event_tag(event)
    handler = EVENT_HANDLERS.get(type(event))

    if handler is None:
        # Only reachable for a model class that was added without a handler.
        outcome = EventOutcome.deferred(f"Unknown event type '{tag}'")
    else:
        try:
            pipeline_for_event(tag).validate(event=event, store=store)
            handler(store, event)
        except EventRejected as e:
            outcome = EventOutcome.rejected(str(e))
        except EventDeferred as e:
            outcome = EventOutcome.deferred(str(e))
        except (ValueError, ArithmeticError) as e:
            # A store invariant tripped past the validators; still one outcome per event.
            outcome = EventOutcome.rejected(str(e))
        else:
            outcome = EventOutcome.applied()

    if outcome.status == OutcomeStatus.applied:
        logger.debug("event %s applied", tag)
    else:
        logger.info("event %s %s: %s", tag, outcome.status.value, outcome.reason)
    return outcome


def _trimmed(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---- handlers ----


def _grant_power(store: StateStore, event: ev.GrantPower) -> None:
    store.add_power(Power(id=event.id, name=event.name.strip() or event.id, description=event.description))


def _add_party_member(store: StateStore, event: ev.AddPartyMember) -> None:
    store.add_party_member(PartyMember(id=event.id, name=event.name, role=event.role))


def _party_update(store: StateStore, event: ev.PartyUpdate) -> None:
    member = store.party[event.id]

    if name := _trimmed(event.name):
        member.name = name
    if role := _trimmed(event.role):
        member.role = role
    if details := _trimmed(event.details):
        if not member.details.strip():
            member.details = details
        elif details not in member.details:
            member.details = f"{member.details.rstrip()}\n{details}"
    if event.clothing:
        member.clothing = [c.strip() for c in event.clothing if c.strip()]


def _npc_spawn(store: StateStore, event: ev.NpcSpawn) -> None:
    store.add_npc(Npc(id=event.id, name=event.name, role=event.role, notes=event.details or ""))


def _npc_update(store: StateStore, event: ev.NpcUpdate) -> None:
    npc = store.npcs.get(event.id)
    if npc is None:
        npc = Npc(id=event.id, name=_trimmed(event.name) or "Unknown", role=_trimmed(event.role) or "Unknown")
        store.add_npc(npc)

    if name := _trimmed(event.name):
        npc.name = name
    if role := _trimmed(event.role):
        npc.role = role
    if (details := _trimmed(event.details)) and details not in npc.notes:
        npc.notes = f"{npc.notes} | {details}" if npc.notes else details
    npc.nearby = True


def _npc_despawn(store: StateStore, event: ev.NpcDespawn) -> None:
    store.npcs[event.id].nearby = False


def _npc_join_party(store: StateStore, event: ev.NpcJoinParty) -> None:
    store.npc_to_party(event.id, name=_trimmed(event.name), role=_trimmed(event.role))


def _npc_leave_party(store: StateStore, event: ev.NpcLeaveParty) -> None:
    store.party_to_npc(event.id)


def _relationship_change(store: StateStore, event: ev.RelationshipChange) -> None:
    store.adjust_relationship(event.subject_id, event.target_id, event.delta)


def _modify_stat(store: StateStore, event: ev.ModifyStat) -> None:
    store.adjust_stat(event.stat_id, event.delta)


def _add_exp(store: StateStore, event: ev.AddExp) -> None:
    store.gain_exp(event.amount)


def _level_up(store: StateStore, event: ev.LevelUp) -> None:
    store.level_up(event.levels)


def _step_from_update(update: ev.QuestStepUpdate) -> QuestStep:
    return QuestStep(
        id=update.id,
        description=update.description or "Unnamed objective",
        completed=bool(update.completed),
    )


def _start_quest(store: StateStore, event: ev.StartQuest) -> None:
    store.add_quest(
        Quest(
            id=event.id,
            title=event.title,
            description=event.description,
            status=QuestStatus.active,
            difficulty=_trimmed(event.difficulty),
            negotiable=bool(event.negotiable),
            reward_options=list(event.reward_options or []),
            rewards=list(event.rewards or []),
            sub_quests=[_step_from_update(s) for s in event.sub_quests or []],
        )
    )


def _update_quest(store: StateStore, event: ev.UpdateQuest) -> None:
    quest = store.quests[event.id]

    if title := _trimmed(event.title):
        quest.title = title
    if event.description is not None:
        quest.description = event.description
    # Any status may replace any other; transitions are the narrator's call.
    if event.status is not None:
        quest.status = event.status
    if difficulty := _trimmed(event.difficulty):
        quest.difficulty = difficulty
    if event.negotiable is not None:
        quest.negotiable = event.negotiable
    if event.reward_options is not None:
        quest.reward_options = list(event.reward_options)
    if event.rewards is not None:
        quest.rewards = list(event.rewards)

    for update in event.sub_quests or []:
        existing = next((s for s in quest.sub_quests if s.id == update.id), None)
        if existing is None:
            quest.sub_quests.append(_step_from_update(update))
            continue
        if update.description is not None:
            existing.description = update.description
        if update.completed is not None:
            existing.completed = update.completed

    if quest.status == QuestStatus.completed and quest.rewards and not quest.rewards_claimed:
        quest.rewards_claimed = True
        grant_quest_rewards(store, quest.rewards)


def _set_flag(store: StateStore, event: ev.SetFlag) -> None:
    store.set_flag(event.flag)


def _add_item(store: StateStore, event: ev.AddItem) -> None:
    store.add_item(event.item_id, event.quantity, set_id=event.set_id)


def _equip_item(store: StateStore, event: ev.EquipItem) -> None:
    store.equip(
        EquippedItem(
            item_id=event.item_id,
            slot=event.slot.strip().lower(),
            set_id=event.set_id,
            description=event.description,
        )
    )


def _unequip_item(store: StateStore, event: ev.UnequipItem) -> None:
    store.unequip(event.item_id)


def _loot_quantity(quantity: int | None) -> int:
    return min(QUANTITY_MAX, max(1, quantity if quantity is not None else 1))


def _drop(store: StateStore, event: ev.Drop | ev.SpawnLoot) -> None:
    store.add_loot(
        LootDrop(
            item=event.item,
            quantity=_loot_quantity(event.quantity),
            description=event.description,
            set_id=event.set_id,
        )
    )


def _craft(store: StateStore, event: ev.Craft) -> None:
    store.add_loot(
        LootDrop(
            item=event.result or event.recipe,
            quantity=_loot_quantity(event.quantity),
            description=f"Crafted quality: {event.quality}" if event.quality else None,
            set_id=event.set_id,
        )
    )


def _gather(store: StateStore, event: ev.Gather) -> None:
    store.add_loot(
        LootDrop(
            item=event.resource,
            quantity=_loot_quantity(event.quantity),
            description=f"Gathered quality: {event.quality}" if event.quality else None,
            set_id=event.set_id,
        )
    )


def _currency_change(store: StateStore, event: ev.CurrencyChange) -> None:
    store.adjust_currency(event.currency, event.delta)


def _faction_spawn(store: StateStore, event: ev.FactionSpawn) -> None:
    store.add_faction(
        FactionRep(id=event.id, name=event.name, kind=_trimmed(event.kind), description=_trimmed(event.description))
    )


def _faction_update(store: StateStore, event: ev.FactionUpdate) -> None:
    faction = store.factions[event.id]
    if name := _trimmed(event.name):
        faction.name = name
    if kind := _trimmed(event.kind):
        faction.kind = kind
    if description := _trimmed(event.description):
        faction.description = description


def _faction_rep_change(store: StateStore, event: ev.FactionRepChange) -> None:
    store.adjust_faction_rep(event.id, event.delta)


def _narrative_only(store: StateStore, event: Any) -> None:
    # Recorded in the turn log; no state change.
    return None


def _request_retcon(store: StateStore, event: ev.RequestRetcon) -> None:
    raise EventDeferred(f"Retcon requested: {event.reason}")


def _request_context(store: StateStore, event: ev.RequestContext) -> None:
    raise EventDeferred("Context requested")


def _unknown(store: StateStore, event: UnknownEvent) -> None:
    raise EventDeferred(f"Unknown event type '{event.event_type}'")


EVENT_HANDLERS: dict[type, EventHandler] = {
    ev.GrantPower: _grant_power,
    ev.AddPartyMember: _add_party_member,
    ev.PartyUpdate: _party_update,
    ev.NpcSpawn: _npc_spawn,
    ev.NpcUpdate: _npc_update,
    ev.NpcDespawn: _npc_despawn,
    ev.NpcJoinParty: _npc_join_party,
    ev.NpcLeaveParty: _npc_leave_party,
    ev.RelationshipChange: _relationship_change,
    ev.ModifyStat: _modify_stat,
    ev.AddExp: _add_exp,
    ev.LevelUp: _level_up,
    ev.StartQuest: _start_quest,
    ev.UpdateQuest: _update_quest,
    ev.SetFlag: _set_flag,
    ev.AddItem: _add_item,
    ev.EquipItem: _equip_item,
    ev.UnequipItem: _unequip_item,
    ev.Drop: _drop,
    ev.SpawnLoot: _drop,
    ev.Craft: _craft,
    ev.Gather: _gather,
    ev.CurrencyChange: _currency_change,
    ev.FactionSpawn: _faction_spawn,
    ev.FactionUpdate: _faction_update,
    ev.FactionRepChange: _faction_rep_change,
    ev.Combat: _narrative_only,
    ev.Dialogue: _narrative_only,
    ev.Travel: _narrative_only,
    ev.Rest: _narrative_only,
    ev.RequestRetcon: _request_retcon,
    ev.RequestContext: _request_context,
    UnknownEvent: _unknown,
}
