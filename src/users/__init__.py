"""User and session management

ユーザーとセッションの永続化を提供します。
"""

from .models import User, UserRole
from .repository import UserRepository, determine_role

__all__ = [
    "User",
    "UserRole",
    "UserRepository",
    "determine_role",
]
