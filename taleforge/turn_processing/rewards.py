from __future__ import annotations

import re
from dataclasses import dataclass

from taleforge.core.state import StateStore

_QUANTITY_SUFFIX = re.compile(r"^(?P<name>.+?)\s+[xX](?P<qty>\d+)$")
_SET_TAG = re.compile(r"[\(\[]set:(?P<set>[^\)\]]*)[\)\]]")

_WEAPON_WORDS = (
    "sword", "axe", "bow", "dagger", "mace", "spear", "staff", "wand",
    "hammer", "halberd", "crossbow", "rifle", "pistol", "gun", "blade",
)
_ARMOR_WORDS = (
    "armor", "armour", "helm", "helmet", "breastplate", "cuirass", "gauntlet",
    "greaves", "pauldron", "shield", "mail", "plate",
)
_CLOTHING_WORDS = (
    "clothing", "shirt", "blouse", "tunic", "vest", "sweater", "hoodie", "coat",
    "jacket", "pants", "trousers", "jeans", "shorts", "skirt", "dress", "gown",
    "robe", "cloak", "boots", "gloves", "hat", "cap", "belt", "scarf", "socks",
)


@dataclass(frozen=True, slots=True)
class ParsedReward:
    """One reward line, e.g. `50 gold` or `Healing Potion x3 (set:alchemy)`."""

    item: str | None = None
    quantity: int = 1
    set_id: str | None = None
    currency: str | None = None
    amount: int = 0


def parse_reward(reward: str) -> ParsedReward | None:
    reward = reward.strip()
    if not reward:
        return None

    amount_text, _, currency = reward.partition(" ")
    if currency.strip():
        try:
            amount = int(amount_text)
        except ValueError:
            pass
        else:
            return ParsedReward(currency=currency.strip(), amount=amount)

    name, set_id = reward, None
    s = _SET_TAG.search(name)
    if s:
        set_id = s.group("set").strip() or None
        name = (name[: s.start()] + name[s.end() :]).strip()

    quantity = 1
    m = _QUANTITY_SUFFIX.match(name)
    if m:
        name, quantity = m.group("name"), max(1, int(m.group("qty")))

    name = " ".join(name.split())
    if not name:
        return None
    return ParsedReward(item=name, quantity=quantity, set_id=set_id)


def _looks_like(item: str, words: tuple[str, ...]) -> bool:
    lowered = item.casefold()
    return any(w in lowered for w in words)


def grant_quest_rewards(store: StateStore, rewards: list[str]) -> None:
    """Hand out completed-quest rewards.

    Currency lines adjust balances; gear goes onto the player; everything else
    lands in the inventory.
    """

    for raw in rewards:
        reward = parse_reward(raw)
        if reward is None:
            continue

        if reward.currency is not None:
            store.adjust_currency(reward.currency, reward.amount)
            continue
        if reward.item is None:
            continue

        if _looks_like(reward.item, _ARMOR_WORDS):
            target = store.player.armor
        elif _looks_like(reward.item, _WEAPON_WORDS):
            target = store.player.weapons
        elif _looks_like(reward.item, _CLOTHING_WORDS):
            target = store.player.clothing
        else:
            store.add_item(reward.item, reward.quantity, set_id=reward.set_id)
            continue

        if not any(existing.casefold() == reward.item.casefold() for existing in target):
            target.append(reward.item)
