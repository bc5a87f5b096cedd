"""MCP Server - Tool definitions for coaches and clients.

Defines the FastMCP server, the shared per-request context and the coach
tools. Diet, workout and check-in tools live in their own modules and
register themselves on the same server.

Every tool that reads or writes client data takes an explicit `client_id`
(the viewing client). Coaches may omit it to reuse their last selection.
"""

import logging
import os
from contextvars import ContextVar

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from pydantic import ValidationError

from ..core.capabilities import Capability, evaluate_capabilities, resolve_viewing_client
from ..core.errors import CoachingInputError
from ..core.models import CoachClient, CoachPreference, Profile, ProfileRole
from .auth import AuthClient
from .store import FirestoreConfig, RowStore, StoreError, load_models, to_row


logger = logging.getLogger(__name__)

# Entities
FOODS = "foods"
FOOD_LOGS = "food_logs"
MACRO_TARGETS = "macro_targets"
MACRO_SPLIT_TEMPLATES = "macro_split_templates"
CLIENT_MACRO_SPLITS = "client_macro_splits"
TRAINING_PLANS = "training_plans"
TRAINING_BLOCKS = "training_blocks"
TRAINING_SESSIONS = "training_sessions"
TRAINING_TEMPLATES = "training_templates"
EXERCISES = "exercises"
WORKOUT_LOGS = "workout_logs"
CHECKINS = "checkins"
COACH_CLIENTS = "coach_clients"
COACH_PREFERENCES = "coach_preferences"

# Failures a tool reports back instead of raising
TOOL_ERRORS = (CoachingInputError, ValidationError, StoreError)

# Context variable to store current profile id per request
current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)

# Configure transport security for Cloud Run deployment
transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=[
        "localhost:*",
        "127.0.0.1:*",
        "*.run.app:*",
        "*.run.app",
    ],
)

# Initialize FastMCP server with stateless HTTP for cloud deployments
mcp = FastMCP(
    "coachlog",
    instructions="""Coachlog - Fitness coaching assistant for coaches and clients.

Clients track food, workouts and weekly check-ins. Coaches manage several
clients: call list_clients, then select_client or pass client_id explicitly.

When logging food, use list_foods first to find the food id. To hit a macro
amount instead of a quantity, pass macro and macro_amount to log_food.
Before recording a workout, call get_next_session to see what is prescribed.""",
    stateless_http=True,
    transport_security=transport_security,
)

# Lazy-initialized clients
_store: RowStore | None = None
_auth_client: AuthClient | None = None


def get_store() -> RowStore:
    """Get or create the row store."""
    global _store
    if _store is None:
        config = FirestoreConfig(
            project_id=os.environ.get("FIRESTORE_PROJECT"),
            database=os.environ.get("FIRESTORE_DATABASE", "coachlog"),
        )
        _store = RowStore(config)
    return _store


def get_auth_client() -> AuthClient:
    """Get or create Auth client."""
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthClient(get_store())
    return _auth_client


def get_user_id() -> str:
    """Get current authenticated profile ID.

    Raises:
        RuntimeError: If no user is authenticated
    """
    user_id = current_user_id.get()
    if user_id is None:
        raise RuntimeError("No authenticated user. Ensure API key is provided.")
    return user_id


def current_profile() -> Profile:
    """Load the authenticated profile.

    Raises:
        RuntimeError: If no user is authenticated or the profile is gone
    """
    profile = get_auth_client().get_profile(get_user_id())
    if profile is None:
        raise RuntimeError("Profile not found. Register again to get a new API key.")
    return profile


def linked_client_ids(coach_id: str) -> set[str]:
    """Ids of clients actively linked to a coach."""
    rows = get_store().query(COACH_CLIENTS, [("coach_id", "==", coach_id)])
    return {link.client_id for link in load_models(CoachClient, rows) if link.status == "active"}


def last_selected_client(coach_id: str) -> str | None:
    row = get_store().get(COACH_PREFERENCES, coach_id)
    return CoachPreference.model_validate(row).last_client_id if row else None


def viewing_client(profile: Profile, client_id: str | None) -> str:
    """Resolve the client a call operates on.

    Raises:
        CoachingInputError: If no client is selected or the coach may not view it
    """
    if profile.role == ProfileRole.CLIENT:
        return resolve_viewing_client(profile, client_id, None, set())

    last_selected = None if client_id else last_selected_client(profile.id)
    linked = set() if profile.role == ProfileRole.ADMIN else linked_client_ids(profile.id)
    return resolve_viewing_client(profile, client_id, last_selected, linked)


def managed_client(profile: Profile, client_id: str | None) -> str | None:
    """Client a coach is acting for, if any. Clients act for themselves (None).

    An explicit client_id must be viewable; a stale last selection is ignored.
    """
    if not profile.is_coach:
        return None
    if client_id:
        return viewing_client(profile, client_id)

    last_selected = last_selected_client(profile.id)
    if last_selected is None:
        return None
    try:
        return viewing_client(profile, last_selected)
    except CoachingInputError:
        return None


def capabilities_for(
    profile: Profile, owner_id: str | None, client_id: str | None, is_public: bool = False
) -> frozenset[Capability]:
    return evaluate_capabilities(profile.role, profile.id, owner_id, client_id, is_public)


# ==================== Coach Tools ====================


@mcp.tool()
def whoami() -> dict:
    """Show the authenticated profile and, for coaches, the selected client.

    Returns:
        Profile id, role, display name and last selected client
    """
    profile = current_profile()
    result = {
        "id": profile.id,
        "role": profile.role.value,
        "display_name": profile.display_name,
    }
    if profile.is_coach:
        try:
            result["selected_client_id"] = last_selected_client(profile.id)
        except StoreError as e:
            result["warning"] = str(e)
    return result


@mcp.tool()
def list_clients() -> dict:
    """List the clients linked to the coach (all clients for admins).

    Returns:
        Client ids with display names and link status
    """
    profile = current_profile()
    if Capability.MANAGE_CLIENTS not in capabilities_for(profile, None, None):
        return {"error": "Only coaches can manage clients."}

    store = get_store()
    try:
        filters = [] if profile.role == ProfileRole.ADMIN else [("coach_id", "==", profile.id)]
        links = load_models(CoachClient, store.query(COACH_CLIENTS, filters))
        clients = []
        for link in links:
            row = store.get("profiles", link.client_id)
            clients.append({
                "client_id": link.client_id,
                "status": link.status,
                "display_name": row.get("display_name") if row else None,
                "email": row.get("email") if row else None,
            })
    except StoreError as e:
        return {"error": str(e)}

    return {"clients": clients}


@mcp.tool()
def link_client(client_id: str) -> dict:
    """Link a client to the coach by the client's profile id.

    Args:
        client_id: The client's profile id

    Returns:
        Confirmation or error
    """
    profile = current_profile()
    if Capability.MANAGE_CLIENTS not in capabilities_for(profile, None, None):
        return {"error": "Only coaches can manage clients."}

    client_id = client_id.strip()
    if not client_id:
        return {"error": "Enter the client id."}

    link = CoachClient(coach_id=profile.id, client_id=client_id)
    try:
        get_store().upsert(COACH_CLIENTS, to_row(link), ("coach_id", "client_id"))
    except StoreError as e:
        return {"error": str(e)}

    return {"success": True, "client_id": client_id}


@mcp.tool()
def select_client(client_id: str | None = None) -> dict:
    """Remember which client the coach is working with.

    Later calls without client_id use this client. Pass nothing to clear it.

    Args:
        client_id: Client to select, or None to clear the selection

    Returns:
        The selected client id
    """
    profile = current_profile()
    if not profile.is_coach:
        return {"error": "Only coaches select clients."}

    try:
        if client_id:
            client_id = viewing_client(profile, client_id)
        preference = CoachPreference(coach_id=profile.id, last_client_id=client_id)
        get_store().upsert(COACH_PREFERENCES, to_row(preference), ("coach_id",))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"selected_client_id": client_id}


# Tool modules register on `mcp` when imported
from . import checkin_tools, diet_tools, workout_tools  # noqa: E402,F401
