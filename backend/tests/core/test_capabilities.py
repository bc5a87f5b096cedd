"""Unit tests for capability evaluation and viewing client resolution."""

import pytest

from src.core.capabilities import Capability, evaluate_capabilities, resolve_viewing_client
from src.core.errors import CoachingInputError
from src.core.models import Profile, ProfileRole


class TestEvaluateCapabilities:
    """Tests for evaluate_capabilities."""

    def test_owner_can_view_and_edit(self):
        granted = evaluate_capabilities(ProfileRole.CLIENT, "c1", "c1")
        assert granted == {Capability.VIEW, Capability.EDIT}

    def test_client_cannot_touch_others(self):
        """A client has nothing on another client's private resource."""
        assert evaluate_capabilities(ProfileRole.CLIENT, "c1", "c2") == frozenset()

    def test_public_resource_is_view_only(self):
        granted = evaluate_capabilities(ProfileRole.CLIENT, "c1", "coach", is_public=True)
        assert granted == {Capability.VIEW}

    def test_coach_edits_active_client_resources(self):
        """A coach acts on the owned resources of the client being viewed."""
        granted = evaluate_capabilities(ProfileRole.COACH, "coach", "c1", active_client_id="c1")
        assert {Capability.VIEW, Capability.EDIT} <= granted
        assert Capability.MANAGE_TEMPLATES in granted

    def test_coach_without_active_client(self):
        """A coach cannot edit a client's resource without viewing that client."""
        granted = evaluate_capabilities(ProfileRole.COACH, "coach", "c1")
        assert Capability.EDIT not in granted
        assert Capability.MANAGE_CLIENTS in granted

    def test_admin_has_everything(self):
        granted = evaluate_capabilities(ProfileRole.ADMIN, "admin", "someone")
        assert granted == set(Capability)

    def test_client_cannot_manage(self):
        granted = evaluate_capabilities(ProfileRole.CLIENT, "c1", None)
        assert Capability.MANAGE_TEMPLATES not in granted
        assert Capability.MANAGE_CLIENTS not in granted


class TestResolveViewingClient:
    """Tests for resolve_viewing_client."""

    def test_client_sees_self(self):
        client = Profile(id="c1", role=ProfileRole.CLIENT)
        assert resolve_viewing_client(client, None, None, set()) == "c1"
        assert resolve_viewing_client(client, "c1", None, set()) == "c1"

    def test_client_cannot_view_others(self):
        client = Profile(id="c1", role=ProfileRole.CLIENT)
        with pytest.raises(CoachingInputError, match="own data"):
            resolve_viewing_client(client, "c2", None, set())

    def test_coach_explicit_client(self):
        coach = Profile(id="coach", role=ProfileRole.COACH)
        assert resolve_viewing_client(coach, "c1", "c2", {"c1", "c2"}) == "c1"

    def test_coach_falls_back_to_last_selection(self):
        coach = Profile(id="coach", role=ProfileRole.COACH)
        assert resolve_viewing_client(coach, None, "c2", {"c2"}) == "c2"

    def test_coach_without_selection(self):
        coach = Profile(id="coach", role=ProfileRole.COACH)
        with pytest.raises(CoachingInputError, match="Select a client"):
            resolve_viewing_client(coach, None, None, {"c1"})

    def test_coach_unlinked_client(self):
        coach = Profile(id="coach", role=ProfileRole.COACH)
        with pytest.raises(CoachingInputError, match="not linked"):
            resolve_viewing_client(coach, "stranger", None, {"c1"})

    def test_admin_views_anyone(self):
        admin = Profile(id="admin", role=ProfileRole.ADMIN)
        assert resolve_viewing_client(admin, "stranger", None, set()) == "stranger"
