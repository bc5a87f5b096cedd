"""Capabilities - who may see and change what.

All role checks go through evaluate_capabilities so that every tool applies
the same rules.
"""

from enum import Enum

from .errors import CoachingInputError
from .models import Profile, ProfileRole


class Capability(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    MANAGE_TEMPLATES = "manage_templates"
    MANAGE_CLIENTS = "manage_clients"


def evaluate_capabilities(
    role: ProfileRole,
    actor_id: str,
    owner_id: str | None,
    active_client_id: str | None = None,
    is_public: bool = False,
) -> frozenset[Capability]:
    """Evaluate what an actor may do with a resource.

    Args:
        role: Actor's role
        actor_id: Actor's profile id
        owner_id: Owner of the resource (None for unowned resources)
        active_client_id: Client the actor is currently viewing
        is_public: Whether the resource is shared with everyone

    Returns:
        The set of granted capabilities
    """
    granted: set[Capability] = set()

    if role in (ProfileRole.COACH, ProfileRole.ADMIN):
        granted |= {Capability.MANAGE_TEMPLATES, Capability.MANAGE_CLIENTS}

    if role == ProfileRole.ADMIN:
        granted |= {Capability.VIEW, Capability.EDIT}
    elif owner_id is not None and owner_id == actor_id:
        granted |= {Capability.VIEW, Capability.EDIT}
    elif role == ProfileRole.COACH and active_client_id and owner_id == active_client_id:
        granted |= {Capability.VIEW, Capability.EDIT}

    if is_public:
        granted.add(Capability.VIEW)

    return frozenset(granted)


def resolve_viewing_client(
    profile: Profile,
    requested_client_id: str | None,
    last_selected_client_id: str | None,
    linked_client_ids: set[str],
) -> str:
    """Decide which client's data a call operates on.

    Clients always see themselves. Coaches see the requested client, or the
    last one they selected, provided the client is linked to them. Admins may
    view any client.

    Raises:
        CoachingInputError: If no client is selected or the coach is not linked
    """
    if profile.role == ProfileRole.CLIENT:
        if requested_client_id and requested_client_id != profile.id:
            raise CoachingInputError("Clients can only view their own data")
        return profile.id

    client_id = requested_client_id or last_selected_client_id
    if not client_id:
        raise CoachingInputError("Select a client")
    if client_id == profile.id or profile.role == ProfileRole.ADMIN:
        return client_id
    if client_id not in linked_client_ids:
        raise CoachingInputError("Client is not linked to this coach")
    return client_id
