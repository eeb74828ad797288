"""
execman - manage executables published as GitHub release assets.

Installs a release's platform binary under a stable local name, records the
installed version and checksum in a registry, and checks for or applies
updates.
"""

__version__ = "0.1.0"
