"""Tests for theme palettes, design tokens and the saved preference."""

import asyncio

import pytest

from vela_ledger.models import AuditEventType
from vela_ledger.services.storage import InMemoryTableStorage
from vela_ledger.theme import (
    SYSTEM_THEME,
    THEMES,
    ThemePreferenceStore,
    css_variables,
    design_tokens,
    ensure_valid_theme,
    hex_to_hsl,
    resolve_theme,
    theme_options,
)
from vela_ledger.theme.preferences import PREFERENCES_TABLE


class TestPalettes:
    """Tests for theme resolution and colour conversion."""

    @pytest.mark.parametrize("hex_color, expected", [
        ("#4ADE80", "142 69% 58%"),
        ("#FFFFFF", "0 0% 100%"),
        ("#000000", "0 0% 0%"),
        ("#EF4444", "0 84% 60%"),
    ])
    def test_hex_to_hsl(self, hex_color, expected):
        assert hex_to_hsl(hex_color) == expected

    def test_ensure_valid_theme(self):
        assert ensure_valid_theme("vela-ocean") == "vela-ocean"
        assert ensure_valid_theme("neon-pink") == SYSTEM_THEME
        assert ensure_valid_theme(None) == SYSTEM_THEME

    def test_resolve_system_follows_dark_preference(self):
        assert resolve_theme(SYSTEM_THEME, prefers_dark=True) == "vela-noir"
        assert resolve_theme(SYSTEM_THEME, prefers_dark=False) == "vela-classic"
        assert resolve_theme("vela-sand", prefers_dark=True) == "vela-sand"

    def test_every_palette_has_core_tokens(self):
        for theme_id, definition in THEMES.items():
            if theme_id == SYSTEM_THEME:
                continue
            for token in ("bg", "surface", "text", "accent", "border", "chart-1"):
                assert definition.tokens[token].startswith("#"), (theme_id, token)

    def test_theme_options_start_with_system(self):
        options = theme_options()
        assert options[0] == (SYSTEM_THEME, "System (auto)")
        assert len(options) == len(THEMES)

    def test_design_tokens(self):
        tokens = design_tokens("vela-classic")
        assert tokens["primary"] == "142 69% 58%"
        assert tokens["background"] == "0 0% 100%"
        assert tokens["sidebar-primary-foreground"] == tokens["primary-foreground"]

    def test_css_variables_block(self):
        css = css_variables(SYSTEM_THEME, prefers_dark=True)
        assert css.startswith(":root {")
        assert "--bg: #0B1020;" in css
        assert "--primary: " in css


class TestThemePreferenceStore:
    """Tests for persisting the chosen theme."""

    def test_first_load_writes_default(self):
        tables = InMemoryTableStorage()
        store = ThemePreferenceStore(tables)

        assert asyncio.run(store.load("u1")) == SYSTEM_THEME
        [row] = tables.rows(PREFERENCES_TABLE)
        assert row["id"] == "u1"
        assert row["theme"] == SYSTEM_THEME

    def test_configured_default(self):
        store = ThemePreferenceStore(InMemoryTableStorage(), default_theme="vela-noir")
        assert asyncio.run(store.load("u1")) == "vela-noir"

    def test_save_and_reload(self, audit_logger, audit_storage):
        tables = InMemoryTableStorage()
        store = ThemePreferenceStore(tables, audit_logger)

        assert asyncio.run(store.save("u1", "vela-midnight")) == "vela-midnight"
        assert asyncio.run(store.load("u1")) == "vela-midnight"
        assert len(tables.rows(PREFERENCES_TABLE)) == 1
        assert audit_storage.events[-1].event_type == AuditEventType.THEME_SAVED

    def test_unknown_theme_saved_as_system(self):
        store = ThemePreferenceStore(InMemoryTableStorage())
        assert asyncio.run(store.save("u1", "does-not-exist")) == SYSTEM_THEME

    def test_stale_stored_value_reads_as_system(self):
        tables = InMemoryTableStorage({PREFERENCES_TABLE: [{"id": "u1", "theme": "retired"}]})
        assert asyncio.run(ThemePreferenceStore(tables).load("u1")) == SYSTEM_THEME

    def test_reset(self):
        store = ThemePreferenceStore(InMemoryTableStorage())
        asyncio.run(store.save("u1", "vela-sand"))
        assert asyncio.run(store.reset("u1")) == SYSTEM_THEME
        assert asyncio.run(store.load("u1")) == SYSTEM_THEME


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
