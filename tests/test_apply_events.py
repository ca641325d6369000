from __future__ import annotations

from taleforge.core import events as ev
from taleforge.core.decode import decode_events
from taleforge.core.state import EXP_CAP, MAX_LEVEL_STEP, QUANTITY_MAX, QuestStatus, StateStore
from taleforge.turn_processing.apply import EVENT_HANDLERS, apply_batch, apply_event
from taleforge.turn_processing.outcomes import OutcomeStatus


def _statuses(outcomes) -> list[OutcomeStatus]:  # type: ignore[no-untyped-def]
    return [o.status for o in outcomes]


def test_every_variant_has_a_handler() -> None:
    from typing import get_args

    union = get_args(get_args(ev.KnownEvent)[0])
    for cls in union:
        assert cls in EVENT_HANDLERS, cls.__name__
    assert ev.UnknownEvent in EVENT_HANDLERS


def test_outcomes_align_with_events(store: StateStore) -> None:
    events = [
        ev.SetFlag(flag="a"),
        ev.ModifyStat(stat_id="nope", delta=1),
        ev.GrantPower(id="fire", name="Fire"),
        ev.GrantPower(id="fire", name="Fire"),
        ev.UnknownEvent(event_type="mystery"),
    ]

    outcomes = apply_batch(store, events)

    assert len(outcomes) == len(events)
    assert _statuses(outcomes) == [
        OutcomeStatus.applied,
        OutcomeStatus.deferred,
        OutcomeStatus.applied,
        OutcomeStatus.rejected,
        OutcomeStatus.deferred,
    ]


def test_batch_bumps_revision_once(store: StateStore) -> None:
    apply_batch(store, [ev.SetFlag(flag="a"), ev.SetFlag(flag="b")])
    assert store.revision == 1


def test_set_flag_twice(store: StateStore) -> None:
    outcomes = apply_batch(store, [ev.SetFlag(flag="dawn"), ev.SetFlag(flag="dawn")])

    assert _statuses(outcomes) == [OutcomeStatus.applied, OutcomeStatus.applied]
    assert store.flags == ["dawn"]


def test_duplicate_power_rejected(store: StateStore) -> None:
    first = apply_event(store, ev.GrantPower(id="fire", name="Fire"))
    second = apply_event(store, ev.GrantPower(id="fire", name="Inferno"))

    assert first.status == OutcomeStatus.applied
    assert second.status == OutcomeStatus.rejected
    assert store.powers["fire"].name == "Fire"


def test_power_name_defaults_to_id(store: StateStore) -> None:
    apply_event(store, ev.GrantPower(id="blink"))
    assert store.powers["blink"].name == "blink"


def test_relationships_accumulate_lazily(store: StateStore) -> None:
    change = ev.RelationshipChange(subject_id="A", target_id="B", delta=1)

    outcomes = apply_batch(store, [change, change, change])

    assert all(o.is_applied for o in outcomes)
    assert store.relationship("A", "B") == 3
    assert not store.relationship("B", "A")


def test_inventory_saturates(store: StateStore) -> None:
    apply_batch(
        store,
        [
            ev.AddItem(item_id="coin", quantity=QUANTITY_MAX - 1),
            ev.AddItem(item_id="coin", quantity=QUANTITY_MAX),
        ],
    )
    assert store.inventory["coin"].quantity == QUANTITY_MAX


def test_spawn_join_leave_keeps_pools_disjoint(store: StateStore) -> None:
    outcomes = apply_batch(
        store,
        [
            ev.NpcSpawn(id="X", name="Xan", role="scout", details="scar on cheek"),
            ev.NpcJoinParty(id="X"),
            ev.NpcLeaveParty(id="X"),
        ],
    )

    assert all(o.is_applied for o in outcomes)
    assert store.has_npc("X")
    assert not store.in_party("X")
    npc = store.npcs["X"]
    assert (npc.name, npc.role, npc.notes) == ("Xan", "scout", "")


def test_join_party_stranger(store: StateStore) -> None:
    missing_role = apply_event(store, ev.NpcJoinParty(id="wren", name="Wren"))
    ok = apply_event(store, ev.NpcJoinParty(id="wren", name="Wren", role="bard"))

    assert missing_role.status == OutcomeStatus.rejected
    assert "no role" in (missing_role.reason or "")
    assert ok.is_applied
    assert store.party["wren"].role == "bard"


def test_leave_party_unknown_is_rejected(store: StateStore) -> None:
    outcome = apply_event(store, ev.NpcLeaveParty(id="nobody"))
    assert outcome.status == OutcomeStatus.rejected


def test_add_party_member_for_existing_npc_is_rejected(store: StateStore) -> None:
    apply_event(store, ev.NpcSpawn(id="bran", name="Bran", role="smith"))

    outcome = apply_event(store, ev.AddPartyMember(id="bran", name="Bran", role="smith"))

    assert outcome.status == OutcomeStatus.rejected
    assert store.has_npc("bran") and not store.in_party("bran")


def test_unknown_tag_is_deferred(store: StateStore) -> None:
    events = decode_events('[{"type": "summon_dragon"}]')

    outcomes = apply_batch(store, events)

    assert _statuses(outcomes) == [OutcomeStatus.deferred]
    assert "summon_dragon" in (outcomes[0].reason or "")


def test_unknown_stat_is_deferred_and_stats_unchanged(store: StateStore) -> None:
    before = dict(store.stats)

    outcome = apply_event(store, ev.ModifyStat(stat_id="nonexistent", delta=5))

    assert outcome.status == OutcomeStatus.deferred
    assert store.stats == before


def test_modify_known_stat(store: StateStore) -> None:
    apply_event(store, ev.ModifyStat(stat_id="dexterity", delta=-2))
    assert store.stats["dexterity"] == 8


def test_npc_update_upserts_and_appends_notes(store: StateStore) -> None:
    apply_event(store, ev.NpcUpdate(id="mara", name="Mara", role="merchant", details="sells maps"))
    apply_event(store, ev.NpcUpdate(id="mara", details="owes the guild"))
    apply_event(store, ev.NpcUpdate(id="mara", details="owes the guild"))

    npc = store.npcs["mara"]
    assert npc.name == "Mara"
    assert npc.notes == "sells maps | owes the guild"


def test_npc_despawn(store: StateStore) -> None:
    missing = apply_event(store, ev.NpcDespawn(id="ghost"))
    apply_event(store, ev.NpcSpawn(id="ghost", name="Ghost", role="spirit"))
    gone = apply_event(store, ev.NpcDespawn(id="ghost", reason="faded"))

    assert missing.status == OutcomeStatus.deferred
    assert gone.is_applied
    assert store.npcs["ghost"].nearby is False


def test_party_update(store: StateStore) -> None:
    deferred = apply_event(store, ev.PartyUpdate(id="lyra", details="x"))
    apply_event(store, ev.AddPartyMember(id="lyra", name="Lyra", role="ranger"))
    apply_event(store, ev.PartyUpdate(id="lyra", details="likes owls", clothing="green cloak"))
    apply_event(store, ev.PartyUpdate(id="lyra", details="afraid of water"))

    member = store.party["lyra"]
    assert deferred.status == OutcomeStatus.deferred
    assert member.details == "likes owls\nafraid of water"
    assert member.clothing == ["green cloak"]


def test_quest_lifecycle(store: StateStore) -> None:
    apply_event(
        store,
        ev.StartQuest(
            id="rats",
            title="Rat Problem",
            sub_quests=[ev.QuestStepUpdate(id="cellar"), ev.QuestStepUpdate(id="sewer", description="Clear sewer")],
        ),
    )
    quest = store.quests["rats"]
    assert quest.status == QuestStatus.active
    assert [s.description for s in quest.sub_quests] == ["Unnamed objective", "Clear sewer"]

    apply_event(
        store,
        ev.UpdateQuest(
            id="rats",
            status=QuestStatus.failed,
            sub_quests=[ev.QuestStepUpdate(id="cellar", completed=True), ev.QuestStepUpdate(id="roof")],
        ),
    )
    quest = store.quests["rats"]
    assert quest.status == QuestStatus.failed
    assert [s.id for s in quest.sub_quests] == ["cellar", "sewer", "roof"]
    assert quest.sub_quests[0].completed is True

    # Any status may follow any other.
    apply_event(store, ev.UpdateQuest(id="rats", status=QuestStatus.active))
    assert store.quests["rats"].status == QuestStatus.active


def test_update_missing_quest_deferred(store: StateStore) -> None:
    outcome = apply_event(store, ev.UpdateQuest(id="nope", status=QuestStatus.completed))
    assert outcome.status == OutcomeStatus.deferred


def test_loot_events(store: StateStore) -> None:
    apply_batch(
        store,
        [
            ev.Drop(item="Bone", quantity=0),
            ev.SpawnLoot(item="Gem", quantity=3, description="glittering"),
            ev.Craft(recipe="Stew", quality="fine"),
            ev.Gather(resource="Herb", quantity=2),
        ],
    )

    assert [(d.item, d.quantity) for d in store.loot] == [("Bone", 1), ("Gem", 3), ("Stew", 1), ("Herb", 2)]
    assert store.loot[2].description == "Crafted quality: fine"
    assert store.loot[3].description is None


def test_equip_item_event(store: StateStore) -> None:
    apply_event(store, ev.AddItem(item_id="Iron Helm", quantity=1))
    apply_event(store, ev.EquipItem(item_id="Iron Helm", slot="Armor"))

    assert store.player.armor == ["Iron Helm"]
    assert store.equipment["Iron Helm"].slot == "armor"

    apply_event(store, ev.UnequipItem(item_id="Iron Helm"))
    assert store.player.armor == []
    assert store.inventory["Iron Helm"].quantity == 1


def test_factions(store: StateStore) -> None:
    update_missing = apply_event(store, ev.FactionUpdate(id="guild", name="Guild"))
    apply_event(store, ev.FactionSpawn(id="guild", name="Thieves' Guild", kind="criminal"))
    dup = apply_event(store, ev.FactionSpawn(id="guild", name="Again"))
    apply_event(store, ev.FactionRepChange(id="guild", delta=-3))

    assert update_missing.status == OutcomeStatus.deferred
    assert dup.status == OutcomeStatus.rejected
    assert store.factions["guild"].reputation == -3
    assert store.factions["guild"].name == "Thieves' Guild"


def test_exp_and_level(store: StateStore) -> None:
    apply_batch(store, [ev.AddExp(amount=120), ev.LevelUp()])

    assert store.player.level == 3
    assert store.player.exp == 20


def test_narrative_only_events_change_nothing(store: StateStore) -> None:
    before = store.model_dump()

    outcomes = apply_batch(
        store,
        [
            ev.Combat(opponents="wolf"),
            ev.Dialogue(speaker="Bran", text="Hello"),
            ev.Travel(destination="Harbor"),
            ev.Rest(),
        ],
    )

    assert all(o.is_applied for o in outcomes)
    after = store.model_dump()
    after["revision"] = before["revision"]
    assert after == before


def test_retcon_and_context_requests_are_deferred(store: StateStore) -> None:
    outcomes = apply_batch(store, [ev.RequestRetcon(reason="wrong name"), ev.RequestContext(topics="map")])

    assert _statuses(outcomes) == [OutcomeStatus.deferred, OutcomeStatus.deferred]
    assert outcomes[0].reason == "Retcon requested: wrong name"


def test_same_batch_can_spawn_then_recruit(store: StateStore) -> None:
    events = decode_events(
        '[{"type": "npc_spawn", "id": "kit", "name": "Kit", "role": "thief"},'
        ' {"type": "npc_join_party", "id": "kit"},'
        ' {"type": "relationship_change", "subject_id": "player", "target_id": "kit", "delta": 2}]'
    )

    outcomes = apply_batch(store, events)

    assert all(o.is_applied for o in outcomes)
    assert store.in_party("kit")


def test_oversized_progression_is_deferred_and_batch_continues(store: StateStore) -> None:
    events = decode_events(
        '[{"type": "level_up", "levels": 2000},'
        ' {"type": "add_exp", "amount": 1' + "0" * 400 + "},"
        ' {"type": "set_flag", "flag": "after"}]'
    )

    outcomes = apply_batch(store, events)

    assert _statuses(outcomes) == [OutcomeStatus.deferred, OutcomeStatus.deferred, OutcomeStatus.applied]
    assert store.player.level == 1
    assert store.flags == ["after"]


def test_largest_progression_steps_stay_bounded(store: StateStore) -> None:
    outcomes = apply_batch(
        store,
        [
            ev.LevelUp(levels=MAX_LEVEL_STEP),
            ev.AddExp(amount=EXP_CAP),
            ev.AddExp(amount=EXP_CAP),
            ev.SetFlag(flag="after"),
        ],
    )

    assert all(o.is_applied for o in outcomes)
    assert store.player.level > MAX_LEVEL_STEP
    assert store.player.exp_to_next == EXP_CAP
    assert 0 <= store.player.exp < EXP_CAP
    assert store.flags == ["after"]
