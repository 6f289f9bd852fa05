"""
policyserv backend collaborator.
"""

from .client import PolicyservClient
from .models import Community, RoomMapping

__all__ = ["PolicyservClient", "Community", "RoomMapping"]
