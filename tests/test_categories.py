"""Tests for cleanup categories."""

from declutter.categories import (
    CATEGORIES,
    CLAIMED_CACHE_NAMES,
    DEEP_CATEGORY_IDS,
    get_all_categories,
    get_categories_by_risk,
    get_category,
    get_default_categories,
    get_enabled_categories,
)
from declutter.models import RiskLevel, ScanMode


class TestCategories:
    def test_categories_not_empty(self):
        assert len(CATEGORIES) > 0

    def test_all_categories_have_required_fields(self):
        for cat_id, cat in CATEGORIES.items():
            assert cat.id == cat_id
            assert cat.name
            if not cat.special:
                assert len(cat.paths) > 0, f"{cat_id} has no paths"
            assert cat.risk_level in RiskLevel
            assert cat.description
            assert cat.consequences

    def test_get_category_exists(self):
        cat = get_category("user_cache")
        assert cat is not None
        assert cat.id == "user_cache"

    def test_get_category_not_exists(self):
        assert get_category("nonexistent_category") is None

    def test_get_all_categories(self):
        assert len(get_all_categories()) == len(CATEGORIES)

    def test_get_categories_by_risk(self):
        for cat in get_categories_by_risk(RiskLevel.SAFE):
            assert cat.risk_level == RiskLevel.SAFE

    def test_orphans_only_implies_orphan_aware(self):
        for cat in CATEGORIES.values():
            if cat.orphans_only:
                assert cat.orphan_aware


class TestPolicyGate:
    def test_destructive_categories_disabled(self):
        for cat_id in ["universal_binaries", "language_files", "deleted_users", "old_updates", "document_versions"]:
            cat = get_category(cat_id)
            assert cat is not None
            assert cat.enabled is False
            assert cat.risk_level == RiskLevel.RISKY

    def test_enabled_categories_exclude_gated(self):
        ids = {c.id for c in get_enabled_categories()}
        assert "universal_binaries" not in ids
        assert "user_cache" in ids


class TestCatalogue:
    def test_large_files_threshold(self):
        cat = get_category("large_files")
        assert cat.mode == ScanMode.DEEP
        assert cat.min_size_bytes == 50 * 1024 * 1024
        assert "Library" in cat.exclude_names

    def test_disk_images_extensions(self):
        assert set(get_category("unused_disk_images").extensions) == {".dmg", ".iso", ".pkg"}

    def test_user_cache_skips_children_claimed_elsewhere(self):
        assert get_category("user_cache").exclude_names == CLAIMED_CACHE_NAMES
        browser_roots = get_category("browser_cache").paths
        assert "~/Library/Caches/Firefox" in browser_roots

    def test_temp_files_has_download_wildcards(self):
        assert "~/Downloads/*.dmg" in get_category("temp_files").paths

    def test_default_categories_skip_deep_walks(self):
        ids = {c.id for c in get_default_categories()}
        assert ids.isdisjoint(DEEP_CATEGORY_IDS)
        deep_ids = {c.id for c in get_default_categories(include_deep=True)}
        assert set(DEEP_CATEGORY_IDS) <= deep_ids
