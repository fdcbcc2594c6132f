"""Store configuration: where the world, operators and seasons live on disk."""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class StoreConfig:
    """
    Directory layout for a StateStore.

    All sub-directories are relative to base_path:
        <base>/world/*.json
        <base>/operators/operators.json
        <base>/seasons/<season>/<episode>/*.json
    """
    base_path: Path
    world_dir: str = "world"
    operators_dir: str = "operators"
    seasons_dir: str = "seasons"

    def __post_init__(self):
        object.__setattr__(self, "base_path", Path(self.base_path))

    @property
    def world_path(self) -> Path:
        return self.base_path / self.world_dir

    @property
    def operators_file(self) -> Path:
        return self.base_path / self.operators_dir / "operators.json"

    def episode_path(self, season_id: str, episode_id: str) -> Path:
        return self.base_path / self.seasons_dir / season_id / episode_id

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Build from CANON_* environment variables, defaulting to the cwd."""
        return cls(
            base_path=Path(os.getenv("CANON_BASE_PATH", ".")),
            world_dir=os.getenv("CANON_WORLD_DIR", "world"),
            operators_dir=os.getenv("CANON_OPERATORS_DIR", "operators"),
            seasons_dir=os.getenv("CANON_SEASONS_DIR", "seasons"),
        )
