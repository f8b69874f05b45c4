from __future__ import annotations

import dataclasses
import enum


class ShaderStage(enum.StrEnum):
    """Programmable stage a shader source file belongs to."""

    VERTEX = "vs"
    PIXEL = "ps"
    GEOMETRY = "gs"

    @property
    def label(self) -> str:
        """Short upper-case tag used in panel titles."""
        return self.value.upper()


@dataclasses.dataclass(frozen=True)
class ShaderPass:
    """Read-only snapshot of one pipeline pass and its shader sources.

    Attributes:
        name: Stable pass identity, used as the notification payload.
        vs_path: Project-relative vertex shader path.
        ps_path: Project-relative pixel (fragment) shader path.
        gs_path: Project-relative geometry shader path (may be empty).
        gs_used: Whether the geometry stage is active.
    """

    name: str
    vs_path: str
    ps_path: str
    gs_path: str = ""
    gs_used: bool = False

    def path_for(self, stage: ShaderStage) -> str:
        """Return the stored path for a stage, regardless of gs_used."""
        match stage:
            case ShaderStage.VERTEX:
                return self.vs_path
            case ShaderStage.PIXEL:
                return self.ps_path
            case ShaderStage.GEOMETRY:
                return self.gs_path

    def active_sources(self) -> list[tuple[ShaderStage, str]]:
        """Stages that contribute a file: vertex and pixel always, geometry if used."""
        sources = [(ShaderStage.VERTEX, self.vs_path), (ShaderStage.PIXEL, self.ps_path)]
        if self.gs_used:
            sources.append((ShaderStage.GEOMETRY, self.gs_path))
        return sources

    def all_paths(self) -> tuple[str, str, str]:
        return (self.vs_path, self.ps_path, self.gs_path)
