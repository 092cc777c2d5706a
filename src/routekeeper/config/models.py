"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, routekeeper.toml only
contains overrides. A fresh install needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """[store] section."""

    model_config = {"frozen": True}

    snapshot_key: str = Field(default="gd", min_length=1)
    tick_interval: float = Field(default=1.0, gt=0)
    known_nodes: list[str] = Field(default_factory=list)


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    filename: str = "routekeeper.db"
