from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field

from taleforge.core.state import EXP_CAP, MAX_LEVEL_STEP, QuestStatus


def _coerce_str_list(value: Any) -> Any:
    # Constrained model output often collapses a one-element list to a bare string.
    if isinstance(value, str):
        return [value]
    return value


StrList = Annotated[list[str], BeforeValidator(_coerce_str_list)]


class _EventBase(BaseModel):
    """Common config for every event variant.

    Extra fields are kept on the model so schema extensions round-trip even when
    the engine does not act on them yet.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class GrantPower(_EventBase):
    type: Literal["grant_power"] = "grant_power"
    id: str
    name: str = ""
    description: str = ""


class AddPartyMember(_EventBase):
    type: Literal["add_party_member"] = "add_party_member"
    id: str
    name: str
    role: str


class PartyUpdate(_EventBase):
    type: Literal["party_update"] = "party_update"
    id: str
    name: str | None = None
    role: str | None = None
    details: str | None = None
    clothing: StrList | None = None


class NpcSpawn(_EventBase):
    type: Literal["npc_spawn"] = "npc_spawn"
    id: str
    name: str
    role: str
    details: str | None = None


class NpcUpdate(_EventBase):
    type: Literal["npc_update"] = "npc_update"
    id: str
    name: str | None = None
    role: str | None = None
    details: str | None = None


class NpcDespawn(_EventBase):
    type: Literal["npc_despawn"] = "npc_despawn"
    id: str
    reason: str | None = None


class NpcJoinParty(_EventBase):
    type: Literal["npc_join_party"] = "npc_join_party"
    id: str
    name: str | None = None
    role: str | None = None
    details: str | None = None


class NpcLeaveParty(_EventBase):
    type: Literal["npc_leave_party"] = "npc_leave_party"
    id: str


class RelationshipChange(_EventBase):
    type: Literal["relationship_change"] = "relationship_change"
    subject_id: str
    target_id: str
    delta: int


class ModifyStat(_EventBase):
    type: Literal["modify_stat"] = "modify_stat"
    stat_id: str = Field(validation_alias=AliasChoices("stat_id", "stat"))
    delta: int


class AddExp(_EventBase):
    type: Literal["add_exp"] = "add_exp"
    amount: int = Field(ge=-EXP_CAP, le=EXP_CAP)


class LevelUp(_EventBase):
    type: Literal["level_up"] = "level_up"
    levels: int = Field(default=1, ge=0, le=MAX_LEVEL_STEP)


class QuestStepUpdate(BaseModel):
    id: str
    description: str | None = None
    completed: bool | None = None


class StartQuest(_EventBase):
    type: Literal["start_quest"] = "start_quest"
    id: str
    title: str
    description: str = ""
    difficulty: str | None = None
    negotiable: bool | None = None
    reward_options: StrList | None = None
    rewards: StrList | None = None
    sub_quests: list[QuestStepUpdate] | None = None
    declinable: bool | None = None


class UpdateQuest(_EventBase):
    type: Literal["update_quest"] = "update_quest"
    id: str
    title: str | None = None
    description: str | None = None
    status: QuestStatus | None = None
    difficulty: str | None = None
    negotiable: bool | None = None
    reward_options: StrList | None = None
    rewards: StrList | None = None
    sub_quests: list[QuestStepUpdate] | None = None


class SetFlag(_EventBase):
    type: Literal["set_flag"] = "set_flag"
    flag: str


class AddItem(_EventBase):
    type: Literal["add_item"] = "add_item"
    item_id: str
    quantity: int = Field(default=1, ge=0)
    set_id: str | None = None


class EquipItem(_EventBase):
    type: Literal["equip_item"] = "equip_item"
    item_id: str
    slot: str
    set_id: str | None = None
    description: str | None = None


class UnequipItem(_EventBase):
    type: Literal["unequip_item"] = "unequip_item"
    item_id: str


class Drop(_EventBase):
    type: Literal["drop"] = "drop"
    item: str
    quantity: int | None = None
    description: str | None = None
    set_id: str | None = None


class SpawnLoot(_EventBase):
    type: Literal["spawn_loot"] = "spawn_loot"
    item: str
    quantity: int | None = None
    description: str | None = None
    set_id: str | None = None


class Craft(_EventBase):
    type: Literal["craft"] = "craft"
    recipe: str
    quantity: int | None = None
    quality: str | None = None
    result: str | None = None
    set_id: str | None = None


class Gather(_EventBase):
    type: Literal["gather"] = "gather"
    resource: str
    quantity: int | None = None
    quality: str | None = None
    set_id: str | None = None


class CurrencyChange(_EventBase):
    type: Literal["currency_change"] = "currency_change"
    currency: str
    delta: int


class FactionSpawn(_EventBase):
    type: Literal["faction_spawn"] = "faction_spawn"
    id: str
    name: str
    kind: str | None = None
    description: str | None = None


class FactionUpdate(_EventBase):
    type: Literal["faction_update"] = "faction_update"
    id: str
    name: str | None = None
    kind: str | None = None
    description: str | None = None


class FactionRepChange(_EventBase):
    type: Literal["faction_rep_change"] = "faction_rep_change"
    id: str
    delta: int


# Narrative-only variants: recorded, never mutate state.


class Combat(_EventBase):
    type: Literal["combat"] = "combat"
    description: str | None = None
    opponents: StrList | None = None


class Dialogue(_EventBase):
    type: Literal["dialogue"] = "dialogue"
    speaker: str | None = None
    text: str | None = None


class Travel(_EventBase):
    type: Literal["travel"] = "travel"
    destination: str | None = None
    description: str | None = None


class Rest(_EventBase):
    type: Literal["rest"] = "rest"
    description: str | None = None


class RequestRetcon(_EventBase):
    type: Literal["request_retcon"] = "request_retcon"
    reason: str = ""


class RequestContext(_EventBase):
    type: Literal["request_context"] = "request_context"
    topics: StrList = Field(default_factory=list)


KnownEvent = Annotated[
    Union[
        GrantPower,
        AddPartyMember,
        PartyUpdate,
        NpcSpawn,
        NpcUpdate,
        NpcDespawn,
        NpcJoinParty,
        NpcLeaveParty,
        RelationshipChange,
        ModifyStat,
        AddExp,
        LevelUp,
        StartQuest,
        UpdateQuest,
        SetFlag,
        AddItem,
        EquipItem,
        UnequipItem,
        Drop,
        SpawnLoot,
        Craft,
        Gather,
        CurrencyChange,
        FactionSpawn,
        FactionUpdate,
        FactionRepChange,
        Combat,
        Dialogue,
        Travel,
        Rest,
        RequestRetcon,
        RequestContext,
    ],
    Field(discriminator="type"),
]


class UnknownEvent(BaseModel):
    """Catch-all for tags we don't recognize (or objects that failed validation).

    Carries the original tag and the raw item so nothing is lost.
    """

    event_type: str
    raw: Any = None


Event = Union[KnownEvent, UnknownEvent]

NARRATIVE_ONLY_EVENTS: tuple[type[_EventBase], ...] = (Combat, Dialogue, Travel, Rest)


def event_tag(event: Event) -> str:
    if isinstance(event, UnknownEvent):
        return event.event_type
    return event.type
