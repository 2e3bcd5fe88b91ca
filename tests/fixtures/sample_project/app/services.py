import sys

from .models import User

DEFAULT_ROLE = "member"
RETIRED_FLAG = True


def create_user(name):
    user = User(name)
    user.role = DEFAULT_ROLE
    return user


def _normalize(name):
    return name.strip()


def dispatch(action):
    return getattr(sys.modules[__name__], action)()


def cleanup_cache():
    pass
