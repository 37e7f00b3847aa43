"""
Theme preference persistence.

One row per user in ``user_preferences`` keyed by the user id. A user
with no row yet gets one written with the default theme ("system"
unless configured otherwise) on first load.
Stored values that are no longer known themes read back as "system".
"""

from typing import Optional
from uuid import UUID

from vela_ledger.audit import AuditLogger, create_correlation_id
from vela_ledger.models.preferences import UserPreferences
from vela_ledger.services.storage import Filter, TableStorageInterface
from vela_ledger.theme.palettes import SYSTEM_THEME, ensure_valid_theme

PREFERENCES_TABLE = "user_preferences"


class ThemePreferenceStore:
    def __init__(
        self,
        table_storage: TableStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        default_theme: str = SYSTEM_THEME,
    ):
        self._tables = table_storage
        self._audit = audit_logger or AuditLogger()
        self._default = ensure_valid_theme(default_theme)

    async def load(self, user_id: str) -> str:
        """The user's theme id, creating the default row when missing."""
        rows = await self._tables.select(
            PREFERENCES_TABLE,
            [Filter.eq("id", user_id)],
            limit=1,
        )
        if not rows:
            await self._tables.upsert(
                PREFERENCES_TABLE,
                UserPreferences(id=user_id, theme=self._default).to_row(),
            )
            return self._default
        return ensure_valid_theme(UserPreferences.from_row(rows[0]).theme)

    async def save(
        self,
        user_id: str,
        theme_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """Persist a theme choice. Unknown ids are saved as "system"."""
        theme_id = ensure_valid_theme(theme_id)
        await self._tables.upsert(
            PREFERENCES_TABLE,
            UserPreferences(id=user_id, theme=theme_id).to_row(),
        )
        await self._audit.log_theme_saved(
            user_id=user_id,
            theme=theme_id,
            correlation_id=correlation_id or create_correlation_id(),
        )
        return theme_id

    async def reset(self, user_id: str) -> str:
        return await self.save(user_id, SYSTEM_THEME)
