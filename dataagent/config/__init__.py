"""
Configuration module
"""

from dataagent.config.settings import settings, Settings, DatasourceConfig

__all__ = ["settings", "Settings", "DatasourceConfig"]
