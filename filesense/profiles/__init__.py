"""
Context and profile building for filesense.

- Context: transient per-request features (time, recent files, work mode)
- Profile: persistent per-subject preferences (types, hours, clicks, vector)
"""

from .context import ContextBuilder, ContextFeatures, classify_work_mode, file_variety
from .profile import Profile, ProfileStore

__all__ = [
    "ContextBuilder",
    "ContextFeatures",
    "classify_work_mode",
    "file_variety",
    "Profile",
    "ProfileStore",
]
