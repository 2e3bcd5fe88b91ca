import sys

from app import create_user
from app.services import dispatch


def main():
    user = create_user(sys.argv[1])
    print(user.display_name())
    dispatch("cleanup_cache")


def unused_helper():
    return 42


if __name__ == "__main__":
    main()
