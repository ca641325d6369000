from __future__ import annotations

from taleforge.turn_processing.projection import GameStateSnapshot


def _bullets(items: list[str]) -> list[str]:
    return [f"- {i}" for i in items] if items else ["None"]


def _format_player(snapshot: GameStateSnapshot) -> list[str]:
    p = snapshot.player
    lines = [
        f"Name: {p.name}",
        f"Level: {p.level}",
        f"EXP: {p.exp}/{p.exp_to_next}",
        f"HP: {p.hp}/{p.max_hp}",
    ]
    for label, items in (("Weapons", p.weapons), ("Armor", p.armor), ("Clothing", p.clothing)):
        if items:
            lines.append(f"{label}: {', '.join(items)}")
    return lines


def _format_inventory(snapshot: GameStateSnapshot) -> list[str]:
    out: list[str] = []
    for item in snapshot.inventory:
        label = item.id if item.quantity <= 1 else f"{item.id} x{item.quantity}"
        if item.set_id:
            label += f" (set: {item.set_id})"
        out.append(label)
    return _bullets(out)


def _format_party(snapshot: GameStateSnapshot) -> list[str]:
    if not snapshot.party:
        return ["None"]

    lines: list[str] = []
    for member in snapshot.party:
        lines.append(f"- {member.name} ({member.role}) [id: {member.id}]")
        if member.details.strip():
            lines.append(f"  Details: {member.details.strip()}")
        if member.clothing:
            lines.append(f"  Clothing: {', '.join(member.clothing)}")
    return lines


def _format_quests(snapshot: GameStateSnapshot) -> list[str]:
    if not snapshot.quests:
        return ["None"]

    lines: list[str] = []
    for quest in snapshot.quests:
        lines.append(f"- [{quest.status.value}] {quest.title} [id: {quest.id}]")
        if quest.difficulty:
            lines.append(f"  Difficulty: {quest.difficulty}")
        if quest.description.strip():
            lines.append(f"  Description: {quest.description.strip()}")
        if quest.rewards:
            lines.append(f"  Rewards: {', '.join(quest.rewards)}")
        for step in quest.sub_quests:
            lines.append(f"  - [{'done' if step.completed else 'open'}] {step.description}")
    return lines


def _format_npcs(snapshot: GameStateSnapshot) -> list[str]:
    return _bullets(
        [f"{npc.name} ({npc.role}) [{'nearby' if npc.nearby else 'away'}] [id: {npc.id}]" for npc in snapshot.npcs]
    )


def snapshot_to_text(snapshot: GameStateSnapshot) -> str:
    """Deterministic plain-text rendering of a snapshot for narrator prompts.

    Ids are included next to names so the narrator can reference existing
    entities in the events it proposes.
    """

    sections: list[tuple[str, list[str]]] = [
        ("PLAYER", _format_player(snapshot)),
        ("STATS", _bullets([f"{s.id}: {s.value}" for s in snapshot.stats])),
        ("POWERS", _bullets([f"{p.name} [id: {p.id}]" for p in snapshot.powers])),
        ("EQUIPMENT", _bullets([f"{e.item_id} [{e.slot}]" for e in snapshot.equipment])),
        ("INVENTORY", _format_inventory(snapshot)),
        ("LOOT ON THE GROUND", _bullets([f"{d.item} x{d.quantity}" for d in snapshot.loot])),
        ("CURRENCIES", _bullets([f"{c.currency}: {c.amount}" for c in snapshot.currencies])),
        ("PARTY", _format_party(snapshot)),
        ("NPCS", _format_npcs(snapshot)),
        ("QUESTS", _format_quests(snapshot)),
        (
            "RELATIONSHIPS",
            _bullets([f"{r.subject_id} -> {r.target_id}: {r.value}" for r in snapshot.relationships]),
        ),
        ("FACTIONS", _bullets([f"{f.name} [id: {f.id}]: {f.reputation}" for f in snapshot.factions])),
        ("FLAGS", _bullets(list(snapshot.flags))),
    ]

    return "\n\n".join("\n".join([f"{title}:", *body]) for title, body in sections).strip()
