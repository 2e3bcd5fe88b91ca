from .services import create_user

__all__ = ["create_user", "VERSION"]

VERSION = "1.0"
