"""Configuration: CMS config extraction, tool settings, and config models.

Usage:
    >>> from cmsum.config import read_config, load_settings, CmsFamily
"""

from cmsum.config.extractor import (
    config_path,
    detect_installations,
    extract_config,
    read_config,
    split_host_port,
)
from cmsum.config.loader import load_settings
from cmsum.config.models import (
    CmsFamily,
    ConnectionDescriptor,
    DbFamily,
    ExtractedConfig,
    ToolSettings,
)

__all__ = [
    "config_path",
    "detect_installations",
    "extract_config",
    "read_config",
    "split_host_port",
    "load_settings",
    "CmsFamily",
    "ConnectionDescriptor",
    "DbFamily",
    "ExtractedConfig",
    "ToolSettings",
]
