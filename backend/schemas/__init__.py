from .user import AuthResponse, UserView

__all__ = ["AuthResponse", "UserView"]
