"""Tests for the tri-state selection model."""

from declutter.models import DuplicateGroup, Entry, ScanSession
from declutter.selection import (
    SelectionState,
    app_cache_groups,
    category_state,
    group_state,
    select_reclaimable,
    toggle_category,
    toggle_entry,
    toggle_group,
    toggle_selection,
)


def entries(*flags: bool) -> list[Entry]:
    return [
        Entry(path=f"/tmp/e{i}", display_name=f"e{i}", size_bytes=10, category="user_cache", is_selected=flag)
        for i, flag in enumerate(flags)
    ]


class TestGroupState:
    def test_all(self):
        assert group_state(entries(True, True)) == SelectionState.ALL

    def test_none(self):
        assert group_state(entries(False, False)) == SelectionState.NONE

    def test_partial(self):
        assert group_state(entries(True, False)) == SelectionState.PARTIAL

    def test_empty_group_is_none(self):
        assert group_state([]) == SelectionState.NONE


class TestToggle:
    def test_partial_toggles_to_all(self):
        group = entries(True, False, False)
        assert toggle_group(group) == SelectionState.ALL
        assert all(e.is_selected for e in group)

    def test_all_toggles_to_none(self):
        group = entries(True, True)
        assert toggle_group(group) == SelectionState.NONE

    def test_none_toggles_to_all(self):
        group = entries(False, False)
        assert toggle_group(group) == SelectionState.ALL

    def test_entry_toggle_only_flips_that_entry(self):
        group = entries(True, True)
        toggle_entry(group[0])
        assert group[0].is_selected is False
        assert group[1].is_selected is True
        assert group_state(group) == SelectionState.PARTIAL

    def test_toggle_selection_dispatch(self):
        group = DuplicateGroup(content_hash="h", members=entries(False, True))
        assert toggle_selection(group) == SelectionState.ALL
        single = entries(True)[0]
        assert toggle_selection(single) == SelectionState.NONE
        assert toggle_selection(entries(False, False)) == SelectionState.ALL

    def test_select_reclaimable(self):
        group = DuplicateGroup(content_hash="h", members=entries(True, False, False))
        select_reclaimable(group)
        assert [m.is_selected for m in group.members] == [False, True, True]


class TestSessionGroupings:
    def test_category_toggle(self):
        session = ScanSession()
        session.add_entries("user_cache", entries(True, False))
        assert category_state(session, "user_cache") == SelectionState.PARTIAL
        toggle_category(session, "user_cache")
        assert category_state(session, "user_cache") == SelectionState.ALL

    def test_app_cache_groups_by_owner(self):
        session = ScanSession()
        a, b, c = entries(True, True, True)
        a.owner = "com.vendor.app"
        b.owner = "com.vendor.app"
        session.add_entries("user_cache", [a, b, c])

        groups = app_cache_groups(session)

        assert list(groups) == ["com.vendor.app"]
        assert groups["com.vendor.app"] == [a, b]
        toggle_group(groups["com.vendor.app"])
        assert not a.is_selected and not b.is_selected
        assert c.is_selected
