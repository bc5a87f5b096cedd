"""Tests for diet tools against the in-memory store."""

import json

import pytest

from src.shell.diet_tools import (
    activate_split_template,
    create_split_template,
    delete_food,
    export_diet_data,
    get_day,
    import_diet_data,
    list_foods,
    log_food,
    save_food,
    set_macro_target,
)


DAY = "2024-03-04"


@pytest.fixture
def rice(store, client_profile):
    result = save_food("Rice", "g", 1.3, 0.027, 0.28, 0.003, 0.004)
    return result["food"]


class TestFoods:
    """Tests for the food catalog tools."""

    def test_save_and_list(self, store, client_profile):
        save_food("Chicken", "g", "1,65", 0.31, 0, 0.036, 0)
        foods = list_foods()["foods"]
        assert [f["food_name"] for f in foods] == ["Chicken"]
        assert foods[0]["kcal"] == 1.65
        assert foods[0]["can_edit"] is True
        assert foods[0]["owner_id"] == "client1"

    def test_invalid_macros(self, store, client_profile):
        result = save_food("Chicken", "g", "abc", 0, 0, 0, 0)
        assert result == {"error": "Invalid macros"}

    def test_query_filter(self, store, client_profile, rice):
        save_food("Oats", "g", 3.8, 0.13, 0.6, 0.07, 0.1)
        assert [f["food_name"] for f in list_foods(query="oa")["foods"]] == ["Oats"]

    def test_private_foods_hidden_from_other_clients(
        self, store, client_profile, rice, login, make_profile
    ):
        make_profile("client2", "client")
        login("client2")
        assert list_foods()["foods"] == []

    def test_public_foods_view_only(self, store, client_profile, login, make_profile):
        save_food("Eggs", "unit", 70, 6, 0.5, 5, 0, is_public=True)
        make_profile("client2", "client")
        login("client2")

        foods = list_foods()["foods"]
        assert foods[0]["can_edit"] is False
        assert save_food("Eggs", "unit", 1, 1, 1, 1, 1) == {"error": "You cannot edit this food."}
        assert delete_food("eggs") == {"error": "You cannot delete this food."}

    def test_coach_creates_for_selected_client(self, store, coach_with_client):
        save_food("Rice", "g", 1.3, 0.027, 0.28, 0.003, 0.004, client_id="client1")
        assert store.get("foods", "rice")["owner_id"] == "client1"


class TestLogging:
    """Tests for log_food and get_day."""

    def test_log_by_quantity(self, store, client_profile, rice):
        result = log_food("rice", meal="lunch", qty=200, date_str=DAY)
        assert result["entry"]["kcal"] == 260
        assert result["entry"]["meal_key"] == "lunch"
        assert result["daily_summary"]["totals"]["kcal"] == 260

    def test_log_by_macro_target(self, store, client_profile, rice):
        """Inverse mode logs the quantity that yields the macro amount."""
        result = log_food("rice", meal="dinner", macro="c", macro_amount="56", date_str=DAY)
        assert result["entry"]["qty"] == pytest.approx(200)
        assert result["entry"]["c"] == 56

    def test_log_errors(self, store, client_profile, rice):
        assert log_food("rice", meal="brunch", qty=1)["error"].startswith("Unknown meal")
        assert log_food("missing", qty=1) == {"error": "Select a food"}
        assert log_food("rice", qty=0) == {"error": "Invalid quantity"}
        assert log_food("rice", macro="c") == {"error": "Enter the macro target"}
        assert log_food("rice", date_str="04/03/2024", qty=1)["error"].startswith("Invalid date")

    def test_private_food_of_another_user(self, store, client_profile, rice, login, make_profile):
        """Another user's private food cannot be logged; public foods can."""
        make_profile("client2", "client")
        login("client2")
        assert log_food("rice", qty=1, date_str=DAY) == {"error": "Select a food"}
        assert store.rows("food_logs") == []

        login("client1")
        save_food("Oats", "g", 3.8, 0.13, 0.6, 0.07, 0.1, is_public=True)
        login("client2")
        assert log_food("oats", qty=50, date_str=DAY)["entry"]["kcal"] == 190

    def test_day_without_target_warns(self, store, client_profile, rice):
        log_food("rice", qty=100, date_str=DAY)
        day = get_day(DAY)
        assert day["warning"] == "No macro target set for this day."
        assert day["summary"]["remaining"]["kcal"] == -130
        assert day["split"] == []

    def test_day_with_target_and_split(self, store, coach_with_client, login):
        template = create_split_template(
            "Even", {slot: {"kcal": 25, "p": 25} for slot in ("breakfast", "lunch", "dinner", "snack")}
        )["template"]
        login("client1")
        set_macro_target(2000, 150, 200, 60, 30, date_str=DAY)
        activate_split_template(template["id"])

        day = get_day(DAY)
        assert "warning" not in day
        assert day["split_template"] == "Even"
        assert [a["p"] for a in day["split"]] == [38, 38, 38, 38]
        assert day["summary"]["remaining"]["kcal"] == 2000

    def test_target_replaced_per_day(self, store, client_profile):
        set_macro_target(2000, 150, 200, 60, 30, date_str=DAY)
        set_macro_target(1800, 150, 180, 55, 30, date_str=DAY)
        targets = store.rows("macro_targets")
        assert len(targets) == 1
        assert targets[0]["kcal"] == 1800


class TestViewingClient:
    """Tests for explicit viewing client handling."""

    def test_client_cannot_read_other_client(self, store, client_profile):
        assert get_day(DAY, client_id="someone") == {"error": "Clients can only view their own data"}

    def test_coach_must_select_client(self, store, coach_with_client):
        assert get_day(DAY) == {"error": "Select a client"}

    def test_coach_reads_linked_client(self, store, coach_with_client):
        set_macro_target(2000, 150, 200, 60, 30, date_str=DAY, client_id="client1")
        assert get_day(DAY, client_id="client1")["target"]["kcal"] == 2000

    def test_coach_cannot_read_unlinked_client(self, store, coach_with_client, make_profile):
        make_profile("client9", "client")
        assert get_day(DAY, client_id="client9") == {"error": "Client is not linked to this coach"}


class TestSplitTemplates:
    """Tests for split template tools."""

    def test_clients_cannot_create(self, store, client_profile):
        result = create_split_template("Mine", {"breakfast": {"kcal": 100}})
        assert result == {"error": "Only coaches can create templates."}

    def test_activation_keeps_one_active(self, store, coach_with_client):
        first = create_split_template("A", {"breakfast": {"kcal": 100}})["template"]["id"]
        second = create_split_template("B", {"dinner": {"kcal": 100}})["template"]["id"]

        activate_split_template(first, client_id="client1")
        activate_split_template(second, client_id="client1")

        active = [row for row in store.rows("client_macro_splits") if row["active"]]
        assert [row["template_id"] for row in active] == [second]
        assert len(store.commits[-1]) == 2

    def test_activation_failure_changes_nothing(self, store, coach_with_client):
        first = create_split_template("A", {"breakfast": {"kcal": 100}})["template"]["id"]
        second = create_split_template("B", {"dinner": {"kcal": 100}})["template"]["id"]
        activate_split_template(first, client_id="client1")

        store.fail_commit = True
        result = activate_split_template(second, client_id="client1")

        assert result == {"error": "Failed to save changes"}
        active = [row for row in store.rows("client_macro_splits") if row["active"]]
        assert [row["template_id"] for row in active] == [first]

    def test_unknown_template(self, store, client_profile):
        assert activate_split_template("nope") == {"error": "Template not found."}


class TestImportExport:
    """Tests for diet import and export."""

    def test_import_logs_csv(self, store, client_profile):
        content = "food_id,meal_key,qty,kcal,p\nrice,lunch,200,260,5.4\noats,,40,152,\"5,2\""
        result = import_diet_data("logs", "logs.csv", content, date_str=DAY)
        assert result == {"success": True, "imported": 2}

        day = get_day(DAY)
        assert day["summary"]["totals"]["kcal"] == 412
        assert day["summary"]["by_meal"]["extra"]["p"] == 5.2

    def test_import_is_all_or_nothing(self, store, client_profile):
        """One invalid row rejects the whole file."""
        content = json.dumps([
            {"food_name": "Rice", "unit": "g", "kcal": 1.3},
            {"food_name": "Broken"},
        ])
        result = import_diet_data("foods", "foods.json", content)
        assert "error" in result
        assert store.rows("foods") == []

    def test_import_cannot_overwrite_foreign_food(
        self, store, client_profile, rice, login, make_profile
    ):
        make_profile("client2", "client")
        login("client2")
        content = json.dumps([{"food_name": "Rice", "unit": "g", "kcal": 9}])
        assert "error" in import_diet_data("foods", "foods.json", content)
        assert store.get("foods", "rice")["kcal"] == 1.3

    def test_export_round_trip(self, store, client_profile):
        set_macro_target(2000, 150, 200, 60, 30, notes="refeed, high carb", date_str=DAY)
        exported = export_diet_data("targets", "csv", date_str=DAY)
        assert exported["filename"] == f"targets-{DAY}.csv"

        store.tables["macro_targets"].clear()
        assert import_diet_data("targets", exported["filename"], exported["content"], DAY)["imported"] == 1
        target = get_day(DAY)["target"]
        assert target["kcal"] == 2000
        assert target["notes"] == "refeed, high carb"

    def test_export_unknown_kind(self, store, client_profile):
        assert export_diet_data("recipes") == {"error": "kind must be foods, targets or logs."}