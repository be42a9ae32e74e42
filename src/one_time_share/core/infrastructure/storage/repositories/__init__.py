from __future__ import annotations

from .global_vars import GlobalVarsRepository
from .identities import IdentitiesRepository, IdentityLimits
from .messages import ConsumedMessage, MessagesRepository

__all__ = [
    "ConsumedMessage",
    "GlobalVarsRepository",
    "IdentitiesRepository",
    "IdentityLimits",
    "MessagesRepository",
]
