"""Asyncio client for the Lopic image-hosting API."""

from __future__ import annotations

from lopic_client.cli import main
from lopic_client.config.settings import Settings, SettingsManager
from lopic_client.session import ClientSession

__all__ = ["ClientSession", "Settings", "SettingsManager", "main"]
