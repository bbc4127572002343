"""
PanelUpgrader - upgrade and roll back a panel installation safely
"""

__version__ = "0.1.0"

from .core import RollbackSession, UpgradeSession
from .errors import UpgraderError

__all__ = ["RollbackSession", "UpgradeSession", "UpgraderError"]
