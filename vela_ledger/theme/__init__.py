"""Theme package: palettes, design tokens and the saved preference."""

from vela_ledger.theme.palettes import (
    SYSTEM_THEME,
    THEMES,
    ThemeDefinition,
    css_variables,
    design_tokens,
    ensure_valid_theme,
    hex_to_hsl,
    resolve_theme,
    theme_options,
)
from vela_ledger.theme.preferences import ThemePreferenceStore

__all__ = [
    "SYSTEM_THEME",
    "THEMES",
    "ThemeDefinition",
    "ThemePreferenceStore",
    "css_variables",
    "design_tokens",
    "ensure_valid_theme",
    "hex_to_hsl",
    "resolve_theme",
    "theme_options",
]
