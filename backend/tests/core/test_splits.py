"""Unit tests for macro split allocation."""

from datetime import date

from src.core.models import MacroAxis, MacroSplitTemplate, MacroTarget, MealSlot
from src.core.splits import allocate_split, split_axis_totals


TARGET = MacroTarget(client_id="c1", date=date(2024, 3, 4), kcal=2000, p=150, c=200, f=60, fiber=30)


class TestAllocateSplit:
    """Tests for allocate_split."""

    def test_even_split(self):
        """Four equal meals get a quarter each."""
        template = MacroSplitTemplate(
            name="Even",
            split={
                slot: {"kcal": 25, "p": 25, "c": 25, "f": 25, "fiber": 25}
                for slot in ("breakfast", "lunch", "dinner", "snack")
            },
        )
        allocations = allocate_split(template, TARGET)
        assert [a.meal_key for a in allocations] == [
            MealSlot.BREAKFAST, MealSlot.LUNCH, MealSlot.DINNER, MealSlot.SNACK,
        ]
        assert all(a.kcal == 500 and a.p == 38 and a.fiber == 8 for a in allocations)

    def test_halves_round_up(self):
        """150 * 25% = 37.5 rounds to 38."""
        template = MacroSplitTemplate(name="One", split={"lunch": {"p": 25}})
        assert allocate_split(template, TARGET)[0].p == 38

    def test_missing_weight_is_zero(self):
        """Axes without a weight get 0."""
        template = MacroSplitTemplate(name="Protein only", split={"dinner": {"p": 40}})
        allocation = allocate_split(template, TARGET)[0]
        assert allocation.p == 60
        assert allocation.kcal == 0
        assert allocation.label == "Dinner"

    def test_weights_not_normalised(self):
        """Weights summing above 100 over-allocate."""
        template = MacroSplitTemplate(
            name="Heavy",
            split={"breakfast": {"kcal": 60}, "dinner": {"kcal": 60}},
        )
        total = sum(a.kcal for a in allocate_split(template, TARGET))
        assert total == 2400

    def test_slots_in_display_order(self):
        """Allocations follow meal slot order regardless of template order."""
        template = MacroSplitTemplate(
            name="Reversed",
            split={"extra": {"kcal": 10}, "snack": {"kcal": 10}, "breakfast": {"kcal": 80}},
        )
        keys = [a.meal_key for a in allocate_split(template, TARGET)]
        assert keys == [MealSlot.BREAKFAST, MealSlot.SNACK, MealSlot.EXTRA]

    def test_empty_template(self):
        """No slots, no allocations."""
        assert allocate_split(MacroSplitTemplate(name="Empty"), TARGET) == []

    def test_full_allocation(self):
        """A quarter of every macro, halves rounded up."""
        weights = {"kcal": 25, "p": 25, "c": 25, "f": 25, "fiber": 25}
        template = MacroSplitTemplate(name="Quarter", split={"breakfast": weights})
        allocation = allocate_split(template, TARGET)[0]
        assert (allocation.kcal, allocation.p, allocation.c, allocation.f, allocation.fiber) == (
            500, 38, 50, 15, 8,
        )


class TestSplitAxisTotals:
    """Tests for split_axis_totals."""

    def test_totals_per_axis(self):
        template = MacroSplitTemplate(
            name="Mixed",
            split={"breakfast": {"kcal": 30, "p": 20}, "lunch": {"kcal": 70}},
        )
        totals = split_axis_totals(template)
        assert totals[MacroAxis.KCAL] == 100
        assert totals[MacroAxis.PROTEIN] == 20
        assert totals[MacroAxis.FAT] == 0

