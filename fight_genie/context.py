"""Per-request choices passed explicitly instead of held in module globals."""

from __future__ import annotations

from dataclasses import dataclass, replace

from fight_genie.config import Settings
from fight_genie.predictions.base import ModelName


@dataclass(frozen=True)
class RequestContext:
    guild_id: str | None
    model: ModelName = ModelName.GPT
    admin_mode: bool = False
    admin_server_id: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings, guild_id: str | None = None) -> RequestContext:
        return cls(
            guild_id=guild_id,
            model=ModelName(settings.default_model),
            admin_mode=settings.admin_mode,
            admin_server_id=settings.admin_server_id,
        )

    def with_model(self, model: ModelName | str) -> RequestContext:
        return replace(self, model=ModelName(model))

    def allows_command(self) -> bool:
        """In admin mode only the admin server is served."""
        if not self.admin_mode:
            return True
        return self.guild_id is not None and self.guild_id == self.admin_server_id
