from typing import Any


def get_logging_user_id(user: Any) -> str:
    """
    Return a consistent identifier for logging purposes.

    Args:
        user (Any): A Django user object (possibly anonymous) or None for
            background work which was not started by a user.

    Returns:
        user_id (str): User's ID, "system" when there is no user at all or
                       "anonymous" if unauthenticated or has no ID.
    """
    if user is None:
        return "system"

    if not getattr(user, "is_authenticated", False):
        return "anonymous"

    user_id = getattr(user, "id", None)
    if user_id is None:
        return "anonymous"

    return str(user_id)
