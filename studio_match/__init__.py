"""Core package for Studio Team Match.

This module exposes the application models, the store clients and the
synchronization components so that consumers of the package can simply
import them from ``studio_match``.
"""

from .adapters.memory import MemoryClient
from .adapters.supabase import SupabaseClient
from .core.models import Team, UserProfile
from .core.storage import LocalStorage, PersistedState, PreferenceStore
from .data.account import AccountService
from .data.activity import ActivityHistory
from .data.candidates import ProfileCandidates, TeamCandidates
from .data.join_requests import JoinRequests
from .data.my_team import MyTeam
from .data.session import SessionInitializer
from .data.swipes import SwipeRecorder
from .data.unread import UnreadCounter

__all__ = [
    "AccountService",
    "ActivityHistory",
    "JoinRequests",
    "LocalStorage",
    "MemoryClient",
    "MyTeam",
    "PersistedState",
    "PreferenceStore",
    "ProfileCandidates",
    "SessionInitializer",
    "SupabaseClient",
    "SwipeRecorder",
    "Team",
    "TeamCandidates",
    "UnreadCounter",
    "UserProfile",
]
