from __future__ import annotations

from typing import Annotated, Self

import pydantic


class TrackingConfig(pydantic.BaseModel):
    """External file-change tracking options."""

    model_config = pydantic.ConfigDict(extra="forbid")  # pyright: ignore[reportUnannotatedClassAttribute]

    enabled: bool = True
    wait_timeout_ms: Annotated[int, pydantic.Field(gt=0)] = 1000
    idle_interval_ms: Annotated[int, pydantic.Field(gt=0)] = 500
    poll_interval_ms: Annotated[int, pydantic.Field(ge=0)] = 10
    debounce_ms: Annotated[int, pydantic.Field(ge=0)] = 50
    force_polling: bool | None = None
    poll_delay_ms: Annotated[int, pydantic.Field(gt=0)] = 300
    max_pending: Annotated[int, pydantic.Field(gt=0)] = 1024

    @pydantic.model_validator(mode="after")
    def validate_debounce(self) -> Self:
        """Debounce must fit inside a wait, or waits would never yield changes in time."""
        if self.debounce_ms >= self.wait_timeout_ms:
            raise ValueError(
                f"debounce_ms ({self.debounce_ms}) must be smaller than "
                + f"wait_timeout_ms ({self.wait_timeout_ms})"
            )
        return self


class EditorConfig(pydantic.BaseModel):
    """Policy applied to changed passes and panel behaviour."""

    model_config = pydantic.ConfigDict(extra="forbid")  # pyright: ignore[reportUnannotatedClassAttribute]

    auto_reload: bool = True
    auto_recompile: bool = True
    use_external_editor: bool = False


class ShaderEditConfig(pydantic.BaseModel):
    """Complete shaderedit configuration schema."""

    model_config = pydantic.ConfigDict(extra="forbid")  # pyright: ignore[reportUnannotatedClassAttribute]

    tracking: TrackingConfig = pydantic.Field(default_factory=TrackingConfig)
    editor: EditorConfig = pydantic.Field(default_factory=EditorConfig)

    @classmethod
    def get_default(cls) -> Self:
        """Get default configuration."""
        return cls()


# Config keys with descriptions (used by `shaderedit config`)
CONFIG_KEY_DESCRIPTIONS: dict[str, str] = {
    "tracking.enabled": "Watch shader files for external changes",
    "tracking.wait_timeout_ms": "Longest single wait for change events (ms)",
    "tracking.idle_interval_ms": "Sleep when there is nothing to watch (ms)",
    "tracking.poll_interval_ms": "Pause between watcher iterations (ms)",
    "tracking.debounce_ms": "Grouping window for bursts of changes (ms)",
    "tracking.force_polling": "Poll instead of using native notifications",
    "tracking.poll_delay_ms": "Polling interval when polling is used (ms)",
    "tracking.max_pending": "Pending notifications before collapsing duplicates",
    "editor.auto_reload": "Reload clean panels when their file changes on disk",
    "editor.auto_recompile": "Recompile passes whose files changed on disk",
    "editor.use_external_editor": "Open shader files with the system editor",
}
