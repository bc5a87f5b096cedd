"""Tests for coach tools and viewing client selection."""

from src.shell.diet_tools import get_day, list_foods, save_food
from src.shell.mcp_server import link_client, list_clients, select_client, whoami


class TestWhoami:
    """Tests for whoami."""

    def test_client(self, store, client_profile):
        assert whoami() == {"id": "client1", "role": "client", "display_name": None}

    def test_coach_shows_selection(self, store, coach_with_client):
        select_client("client1")
        assert whoami()["selected_client_id"] == "client1"


class TestClientLinks:
    """Tests for list_clients and link_client."""

    def test_list_linked_clients(self, store, coach_with_client):
        clients = list_clients()["clients"]
        assert clients == [{
            "client_id": "client1",
            "status": "active",
            "display_name": None,
            "email": "client1@example.com",
        }]

    def test_link_new_client(self, store, coach_with_client, make_profile):
        make_profile("client2", "client")
        assert link_client(" client2 ") == {"success": True, "client_id": "client2"}
        assert {c["client_id"] for c in list_clients()["clients"]} == {"client1", "client2"}

    def test_clients_cannot_manage(self, store, client_profile):
        assert list_clients() == {"error": "Only coaches can manage clients."}
        assert link_client("x") == {"error": "Only coaches can manage clients."}


class TestSelectClient:
    """Tests for select_client."""

    def test_selection_used_as_default(self, store, coach_with_client):
        select_client("client1")
        assert get_day("2024-03-04")["date"] == "2024-03-04"

    def test_cannot_select_unlinked(self, store, coach_with_client):
        assert select_client("stranger") == {"error": "Client is not linked to this coach"}

    def test_clear_selection(self, store, coach_with_client):
        select_client("client1")
        select_client(None)
        assert get_day("2024-03-04") == {"error": "Select a client"}

    def test_clients_cannot_select(self, store, client_profile):
        assert select_client("client1") == {"error": "Only coaches select clients."}

    def test_selected_client_foods_editable(self, store, coach_with_client, login):
        """A coach edits the selected client's own foods."""
        login("client1")
        save_food("Rice", "g", 1.3, 0.027, 0.28, 0.003, 0.004)
        login("coach1")
        assert list_foods()["foods"] == []

        select_client("client1")
        foods = list_foods()["foods"]
        assert foods[0]["can_edit"] is True
