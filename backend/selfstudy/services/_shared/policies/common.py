from selfstudy.models.user import ADMIN_ROLE


def is_owner(*, actor_id, owner_id) -> bool:
    """Return True if the actor owns the resource."""
    return actor_id is not None and str(actor_id) == str(owner_id)


def is_admin(role: str | None) -> bool:
    return role == ADMIN_ROLE
