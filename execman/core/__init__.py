"""
Core package __init__.py
"""

from .config import ConfigManager
from .source import Source, parse_source
from .github_client import GitHubAPIClient, Release, ReleaseAsset
from .assets import AssetMatcher, detect_platform, find_checksums_asset
from .registry import ExecutableRecord, Registry
from .installer import (
    Installer, InstallResult, CheckResult, UpdateResult, PipelineStage
)

__all__ = [
    'ConfigManager',
    'Source', 'parse_source',
    'GitHubAPIClient', 'Release', 'ReleaseAsset',
    'AssetMatcher', 'detect_platform', 'find_checksums_asset',
    'ExecutableRecord', 'Registry',
    'Installer', 'InstallResult', 'CheckResult', 'UpdateResult', 'PipelineStage',
]
