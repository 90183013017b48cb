"""Configuration models for the visual diff engine."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ViewportConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    width: int = Field(default=1280, gt=0)
    height: int = Field(default=800, gt=0)
    device_scale: float = Field(default=1.0, gt=0, alias="deviceScale")

    def as_playwright_viewport(self) -> dict:
        return {"width": self.width, "height": self.height}


class DiffConfig(BaseModel):
    # Workspace layout
    workspace_dir: str = ".site2ts"

    # Build / serve
    npm_command: str = "npm"
    build_script: str = "build"
    start_script: str = "start"
    default_port: int = 3100
    install_timeout_seconds: float = 300.0
    build_timeout_seconds: float = 300.0
    ready_timeout_seconds: float = 30.0
    ready_poll_interval_seconds: float = 0.5
    stop_grace_seconds: float = 5.0

    # Capture
    headless: bool = True
    navigation_timeout_ms: int = 60_000
    min_zone_size: int = 32
    max_captured_zones: int = 24

    # Attribution
    heatmap_rows: int = 4
    heatmap_cols: int = 4
    max_reported_zones: int = 12

    # Defaults for a diff request
    default_viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    default_threshold: float = Field(default=0.01, ge=0.0, le=1.0)

    # Reporting
    report_embed_images: bool = False

    @property
    def workspace(self) -> Path:
        return Path(self.workspace_dir)

    @property
    def staging_dir(self) -> Path:
        return self.workspace / "staging"

    @property
    def analysis_path(self) -> Path:
        return self.staging_dir / "meta" / "analysis.json"

    @property
    def generation_marker_path(self) -> Path:
        return self.workspace / "reports" / "tailwind" / "fallbacks.json"

    @property
    def dependency_manifest_path(self) -> Path:
        return self.staging_dir / "package.json"

    @property
    def crawl_cache_dir(self) -> Path:
        return self.workspace / "cache" / "crawl"

    @property
    def diff_reports_dir(self) -> Path:
        return self.workspace / "reports" / "diff"

    @classmethod
    def load(cls, path: str | Path) -> "DiffConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
