"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, pollex.toml only contains overrides.
An empty or missing pollex.toml is a valid configuration.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

# --- pollex.toml sections ---


class EngineConfig(BaseModel):
    """[engine] section."""

    model_config = {"frozen": True}

    # Terminal envelope type for monitor / iterator streams.
    stream_end: Literal["ERROR", "STREAM_END"] = "ERROR"


class ServeConfig(BaseModel):
    """[serve] section."""

    model_config = {"frozen": True}

    poll_interval: float = Field(default=0.05, gt=0)


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    local_dir: str = ".pollex/plugins"
