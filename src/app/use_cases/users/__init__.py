"""
User Use Cases
"""

from .get_current_user_use_case import GetCurrentUserUseCase

__all__ = ["GetCurrentUserUseCase"]
