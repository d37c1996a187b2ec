"""
discourse-updater - Fleet-wide Discourse OS and application updates over SSH
"""

__version__ = "0.1.0"

from .core import DiscourseUpdater, UpdaterError

__all__ = ["DiscourseUpdater", "UpdaterError"]
