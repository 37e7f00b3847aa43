"""
Theme palettes.

A theme is pure configuration: an id, a label and a map of palette
tokens (hex colours). ``design_tokens`` turns a palette into the UI
tokens the front end styles with, as "H S% L%" strings.

"system" has no palette of its own; it resolves to Vela Noir when the
viewer prefers dark mode and Vela Classic otherwise.
"""

from typing import Optional

from pydantic import BaseModel, Field

SYSTEM_THEME = "system"
LIGHT_FALLBACK = "vela-classic"
DARK_FALLBACK = "vela-noir"


class ThemeDefinition(BaseModel):
    label: str
    tokens: dict[str, str] = Field(default_factory=dict)


def _palette(
    bg: str,
    surface: str,
    text: str,
    muted: str,
    accent: str,
    accent_contrast: str,
    accent_alt: str,
    success: str,
    danger: str,
    warning: str,
    border: str,
    ring: str,
    chart_3: str,
    chart_5: str,
) -> dict[str, str]:
    return {
        "bg": bg,
        "surface": surface,
        "text": text,
        "muted": muted,
        "accent": accent,
        "accent-contrast": accent_contrast,
        "accentAlt": accent_alt,
        "success": success,
        "danger": danger,
        "warning": warning,
        "border": border,
        "ring": ring,
        "chart-1": accent,
        "chart-2": accent_alt,
        "chart-3": chart_3,
        "chart-4": "#F59E0B",
        "chart-5": chart_5,
    }


THEMES: dict[str, ThemeDefinition] = {
    SYSTEM_THEME: ThemeDefinition(label="System (auto)"),
    "vela-classic": ThemeDefinition(
        label="Vela Classic",
        tokens=_palette(
            bg="#FFFFFF", surface="#F8FAFC", text="#0F172A", muted="#94A3B8",
            accent="#4ADE80", accent_contrast="#0B1F0F", accent_alt="#3B82F6",
            success="#16A34A", danger="#EF4444", warning="#F59E0B",
            border="#E5E7EB", ring="#60A5FA", chart_3="#94A3B8", chart_5="#EF4444",
        ),
    ),
    "vela-graphite": ThemeDefinition(
        label="Vela Graphite",
        tokens=_palette(
            bg="#F6F7F9", surface="#FFFFFF", text="#0B1220", muted="#6B7280",
            accent="#22C55E", accent_contrast="#0B1F0F", accent_alt="#2563EB",
            success="#16A34A", danger="#EF4444", warning="#F59E0B",
            border="#E5E7EB", ring="#60A5FA", chart_3="#64748B", chart_5="#EF4444",
        ),
    ),
    "vela-ocean": ThemeDefinition(
        label="Vela Ocean",
        tokens=_palette(
            bg="#F5F9FF", surface="#FFFFFF", text="#0B1220", muted="#6A7A90",
            accent="#3B82F6", accent_contrast="#0B1220", accent_alt="#22D3EE",
            success="#16A34A", danger="#EF4444", warning="#F59E0B",
            border="#E5E7EB", ring="#60A5FA", chart_3="#9CA3AF", chart_5="#EF4444",
        ),
    ),
    "vela-sand": ThemeDefinition(
        label="Vela Sand",
        tokens=_palette(
            bg="#FFFCF7", surface="#FFFFFF", text="#1C1917", muted="#A8A29E",
            accent="#10B981", accent_contrast="#072014", accent_alt="#F59E0B",
            success="#16A34A", danger="#DC2626", warning="#D97706",
            border="#E7E5E4", ring="#60A5FA", chart_3="#A8A29E", chart_5="#EF4444",
        ),
    ),
    "vela-noir": ThemeDefinition(
        label="Vela Noir",
        tokens=_palette(
            bg="#0B1020", surface="#111827", text="#E5E7EB", muted="#9CA3AF",
            accent="#4ADE80", accent_contrast="#0B1F0F", accent_alt="#60A5FA",
            success="#22C55E", danger="#F87171", warning="#F59E0B",
            border="#1F2937", ring="#60A5FA", chart_3="#9CA3AF", chart_5="#F87171",
        ),
    ),
    "vela-midnight": ThemeDefinition(
        label="Vela Midnight",
        tokens=_palette(
            bg="#000000", surface="#0B0F14", text="#E6EAF0", muted="#8A93A5",
            accent="#38D39F", accent_contrast="#071510", accent_alt="#7AA2FF",
            success="#22C55E", danger="#F87171", warning="#F59E0B",
            border="#141820", ring="#7AA2FF", chart_3="#8A93A5", chart_5="#F87171",
        ),
    ),
    "vela-slate": ThemeDefinition(
        label="Vela Slate",
        tokens=_palette(
            bg="#F1F5F9", surface="#FFFFFF", text="#0F172A", muted="#64748B",
            accent="#22C55E", accent_contrast="#0B1F0F", accent_alt="#0EA5E9",
            success="#16A34A", danger="#EF4444", warning="#F59E0B",
            border="#E2E8F0", ring="#60A5FA", chart_3="#94A3B8", chart_5="#EF4444",
        ),
    ),
    "vela-blossom": ThemeDefinition(
        label="Vela Blossom",
        tokens=_palette(
            bg="#FAFBFF", surface="#FFFFFF", text="#111827", muted="#9AA3B2",
            accent="#4ADE80", accent_contrast="#0B1F0F", accent_alt="#A78BFA",
            success="#16A34A", danger="#EF4444", warning="#F59E0B",
            border="#E5E7EB", ring="#60A5FA", chart_3="#9AA3B2", chart_5="#EF4444",
        ),
    ),
}


def ensure_valid_theme(value: Optional[str]) -> str:
    """Known theme id, or "system" for anything else."""
    return value if value in THEMES else SYSTEM_THEME


def resolve_theme(theme_id: Optional[str], prefers_dark: bool = False) -> str:
    """Concrete palette id to render for a stored preference."""
    theme_id = ensure_valid_theme(theme_id)
    if theme_id == SYSTEM_THEME:
        return DARK_FALLBACK if prefers_dark else LIGHT_FALLBACK
    return theme_id


def theme_options() -> list[tuple[str, str]]:
    """(id, label) pairs for the appearance picker."""
    return [(theme_id, definition.label) for theme_id, definition in THEMES.items()]


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def hex_to_hsl(hex_color: str) -> str:
    """
    "#4ADE80" -> "142 69% 58%"

    Components are rounded to whole degrees / percent.
    """
    sanitized = hex_color.lstrip("#")
    value = int(sanitized, 16)
    r = ((value >> 16) & 255) / 255
    g = ((value >> 8) & 255) / 255
    b = (value & 255) / 255

    high = max(r, g, b)
    low = min(r, g, b)
    h = 0.0
    s = 0.0
    lightness = (high + low) / 2

    if high != low:
        d = high - low
        s = d / (2 - high - low) if lightness > 0.5 else d / (high + low)
        if high == r:
            h = (g - b) / d + (6 if g < b else 0)
        elif high == g:
            h = (b - r) / d + 2
        else:
            h = (r - g) / d + 4
        h /= 6

    return (
        f"{_round_half_up(h * 360)} "
        f"{_round_half_up(s * 100)}% "
        f"{_round_half_up(lightness * 100)}%"
    )


def _hsl_or_none(value: Optional[str]) -> Optional[str]:
    if not value or not value.startswith("#"):
        return None
    return hex_to_hsl(value)


# UI token -> palette token it is derived from
_TOKEN_SOURCES: list[tuple[str, str]] = [
    ("background", "bg"),
    ("foreground", "text"),
    ("card", "surface"),
    ("popover", "surface"),
    ("card-foreground", "text"),
    ("popover-foreground", "text"),
    ("primary", "accent"),
    ("accent", "accent"),
    ("primary-foreground", "accent-contrast"),
    ("accent-foreground", "accent-contrast"),
    ("secondary", "accentAlt"),
    ("secondary-foreground", "text"),
    ("muted", "muted"),
    ("sidebar-accent", "muted"),
    ("muted-foreground", "text"),
    ("destructive", "danger"),
    ("destructive-foreground", "accent-contrast"),
    ("border", "border"),
    ("input", "border"),
    ("sidebar-border", "border"),
    ("ring", "ring"),
    ("sidebar-ring", "ring"),
    ("sidebar-background", "surface"),
    ("sidebar-foreground", "text"),
    ("sidebar-accent-foreground", "text"),
    ("sidebar-primary", "accent"),
    ("success", "success"),
    ("warning", "warning"),
]


def design_tokens(theme_id: Optional[str], prefers_dark: bool = False) -> dict[str, str]:
    """UI tokens ("H S% L%") for a theme; "system" is resolved first."""
    palette = THEMES[resolve_theme(theme_id, prefers_dark)].tokens
    converted = {key: _hsl_or_none(value) for key, value in palette.items()}

    tokens = {}
    for ui_token, source in _TOKEN_SOURCES:
        if converted.get(source):
            tokens[ui_token] = converted[source]

    if converted.get("text"):
        tokens["sidebar-primary-foreground"] = converted.get("accent-contrast") or converted["text"]
    return tokens


def css_variables(theme_id: Optional[str], prefers_dark: bool = False) -> str:
    """A ``:root { ... }`` block with palette and UI tokens, for injecting into a page."""
    palette = THEMES[resolve_theme(theme_id, prefers_dark)].tokens
    lines = [f"  --{key}: {value};" for key, value in palette.items()]
    lines += [f"  --{key}: {value};" for key, value in design_tokens(theme_id, prefers_dark).items()]
    return ":root {\n" + "\n".join(lines) + "\n}"
