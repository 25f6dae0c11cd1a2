"""Tri-state selection over entries, duplicate groups and derived groupings.

Group state is always computed from the entries' ``is_selected`` flags and
never stored.
"""

from collections import defaultdict
from enum import Enum
from typing import Iterable

from declutter.models import DuplicateGroup, Entry, ScanSession


class SelectionState(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    ALL = "all"


def group_state(entries: Iterable[Entry]) -> SelectionState:
    """Derive the tri-state of a group from its members."""
    flags = [e.is_selected for e in entries]
    if not flags or not any(flags):
        return SelectionState.NONE
    if all(flags):
        return SelectionState.ALL
    return SelectionState.PARTIAL


def toggle_entry(entry: Entry) -> bool:
    """Flip a single entry and return its new value."""
    entry.is_selected = not entry.is_selected
    return entry.is_selected


def toggle_group(entries: Iterable[Entry]) -> SelectionState:
    """
    Toggle a group of entries.

    ``all`` becomes ``none``; ``none`` and ``partial`` both become ``all``.
    """
    members = list(entries)
    select = group_state(members) != SelectionState.ALL
    for entry in members:
        entry.is_selected = select
    return group_state(members)


def set_selected(entries: Iterable[Entry], selected: bool) -> None:
    for entry in entries:
        entry.is_selected = selected


def toggle_duplicate_group(group: DuplicateGroup) -> SelectionState:
    return toggle_group(group.members)


def select_reclaimable(group: DuplicateGroup) -> None:
    """Select every copy except the retained one."""
    group.retained.is_selected = False
    set_selected(group.reclaimable, True)


def toggle_category(session: ScanSession, category: str) -> SelectionState:
    return toggle_group(session.entries(category))


def category_state(session: ScanSession, category: str) -> SelectionState:
    return group_state(session.entries(category))


def app_cache_groups(session: ScanSession) -> dict[str, list[Entry]]:
    """Group entries that carry an owning application, keyed by owner."""
    groups: dict[str, list[Entry]] = defaultdict(list)
    for entry in session.all_entries():
        if entry.owner:
            groups[entry.owner].append(entry)
    return dict(groups)


def toggle_selection(target: Entry | DuplicateGroup | list[Entry]) -> SelectionState:
    """Toggle an entry, a duplicate group or any list of entries."""
    if isinstance(target, Entry):
        toggle_entry(target)
        return group_state([target])
    if isinstance(target, DuplicateGroup):
        return toggle_duplicate_group(target)
    return toggle_group(target)
