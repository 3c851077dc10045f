from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from budget_engine.budget import (
    calculate_budget_status,
    calculate_overspend_projection,
    check_savings_goal_feasibility,
    generate_budget_adjustments,
    pro_rata,
)
from budget_engine.models import (
    BUDGET_LIMIT_ADAPTER,
    CardLimit,
    Category,
    CategoryLimit,
    GlobalLimit,
    SavingsGoal,
)
from tests.helpers.factories import make_tx

JUNE_20 = date(2026, 6, 20)


def test_pro_rata_extrapolates_to_month_end():
    forecast = pro_rata(Decimal("800"), JUNE_20)
    assert forecast.days_passed == 20
    assert forecast.days_remaining == 10
    assert forecast.avg_daily == Decimal("40")
    assert forecast.projected == Decimal("1200")


def test_budget_status_for_category_limit():
    txs = [
        make_tx("a", "Market", "500", date(2026, 6, 3), category="food"),
        make_tx("b", "Bakery", "300", date(2026, 6, 15), category="food"),
        make_tx("c", "Cinema", "99", date(2026, 6, 16), category="entertainment"),
        make_tx("d", "Market", "700", date(2026, 5, 30), category="food"),
        make_tx("e", "Salary", "5000", date(2026, 6, 5), type="INCOME", category="food"),
    ]
    limit = CategoryLimit(id="food", category=Category.FOOD, monthly_limit="1000")

    [status] = calculate_budget_status(txs, [limit], JUNE_20)

    assert status.spent == Decimal("800")
    assert status.remaining == Decimal("200")
    assert status.percentage_used == pytest.approx(80.0)
    assert not status.is_over_budget
    assert status.projected_spend == Decimal("1200")
    assert status.projected_percentage == pytest.approx(120.0)
    assert status.will_exceed


def test_budget_status_skips_inactive_and_scopes_cards():
    txs = [
        make_tx("a", "Store", "100", date(2026, 6, 1), issuer="Nubank Platinum"),
        make_tx("b", "Store", "50", date(2026, 6, 2), credit_card_issuer="itau"),
        make_tx("c", "Store", "25", date(2026, 6, 3)),
    ]
    limits = [
        CardLimit(id="nu", card_issuer="nubank", monthly_limit="100"),
        CardLimit(id="itau", card_issuer="Itau", monthly_limit="500", is_active=False),
        GlobalLimit(id="all", monthly_limit="1000"),
    ]

    statuses = {s.limit_id: s for s in calculate_budget_status(txs, limits, JUNE_20)}

    assert set(statuses) == {"nu", "all"}
    assert statuses["nu"].spent == Decimal("100")
    assert statuses["nu"].card_issuer == "nubank"
    assert not statuses["nu"].is_over_budget
    assert statuses["all"].spent == Decimal("175")


def test_payment_date_moves_spend_into_next_month():
    tx = make_tx("card", "Store", "300", date(2026, 5, 28), payment_date="2026-06-10")
    [status] = calculate_budget_status([tx], [GlobalLimit(id="g", monthly_limit="1000")], JUNE_20)
    assert status.spent == Decimal("300")


def test_zero_limit_is_rejected():
    with pytest.raises(ValidationError):
        BUDGET_LIMIT_ADAPTER.validate_python({"id": "x", "type": "global", "monthly_limit": 0})


def test_overspend_projection_fires_when_forecast_exceeds_income():
    txs = [
        make_tx("a", "Rent", "2000", date(2026, 6, 1), category="housing"),
        make_tx("b", "Market", "800", date(2026, 6, 20), category="food"),
    ]
    forecast = calculate_overspend_projection(txs, 3000, date(2026, 6, 25))

    # 2800 over 25 days -> 112/day; 5 days left -> 3360 projected.
    assert forecast.will_overspend
    assert forecast.projected_spend == Decimal("3360")
    assert forecast.projected_overspend_amount == Decimal("360")
    assert forecast.days_until_overspend == 1
    assert forecast.projected_overspend_date == date(2026, 6, 26)
    assert forecast.days_remaining == 5
    assert forecast.recommended_daily_limit == Decimal("40")
    assert forecast.category_at_risk is Category.HOUSING


def test_overspend_projection_within_income():
    txs = [make_tx("a", "Market", "500", date(2026, 6, 10))]
    forecast = calculate_overspend_projection(txs, "3000", date(2026, 6, 10))
    assert not forecast.will_overspend
    assert forecast.projected_overspend_date is None
    assert forecast.recommended_daily_limit is None


def test_overspend_on_last_day_uses_one_day_denominator():
    txs = [make_tx("a", "Market", "3100", date(2026, 6, 30))]
    forecast = calculate_overspend_projection(txs, 3000, date(2026, 6, 30))
    assert forecast.will_overspend
    assert forecast.days_remaining == 0
    assert forecast.recommended_daily_limit == Decimal("-100")


def test_overspend_with_negative_income_and_no_expenses():
    forecast = calculate_overspend_projection([], "-200", date(2026, 6, 10))

    assert forecast.will_overspend
    assert forecast.days_until_overspend == 0
    assert forecast.projected_overspend_date == date(2026, 6, 10)
    assert forecast.projected_overspend_amount == Decimal("200")
    assert forecast.category_at_risk is None


def test_adjustments_cut_discretionary_categories():
    txs = [
        make_tx(f"e{m}", "Shows", "400", date(2026, m, 5), category="entertainment")
        for m in (4, 5, 6)
    ] + [
        make_tx(f"s{m}", "Mall", "1000", date(2026, m, 5), category="shopping")
        for m in (4, 5, 6)
    ] + [
        make_tx("f", "Bakery", "60", date(2026, 6, 5), category="food"),
        make_tx("h", "Rent", "5000", date(2026, 6, 5), category="housing"),
    ]

    suggestions = generate_budget_adjustments(txs, 10000, as_of=JUNE_20)

    assert [s.category for s in suggestions] == [Category.SHOPPING, Category.ENTERTAINMENT]
    shopping = suggestions[0]
    assert shopping.current_limit == Decimal("1000.00")
    assert shopping.suggested_limit == Decimal("800.00")
    assert shopping.reduction == Decimal("200.00")
    assert "10% of income" in shopping.rationale


def test_adjustments_stop_once_savings_target_is_covered():
    txs = [
        make_tx(f"s{m}", "Mall", "1000", date(2026, m, 5), category="shopping")
        for m in (4, 5, 6)
    ] + [
        make_tx(f"e{m}", "Shows", "400", date(2026, m, 5), category="entertainment")
        for m in (4, 5, 6)
    ]
    suggestions = generate_budget_adjustments(txs, 10000, savings_target=150, as_of=JUNE_20)
    assert [s.category for s in suggestions] == [Category.SHOPPING]


def test_savings_feasibility():
    limits = [
        GlobalLimit(id="g", monthly_limit="2500"),
        CategoryLimit(id="c", category=Category.FOOD, monthly_limit="800"),
    ]
    ok = check_savings_goal_feasibility(
        limits, SavingsGoal(id="goal", monthly_target="400"), 3000
    )
    assert ok.is_feasible
    assert ok.available == Decimal("500")

    short = check_savings_goal_feasibility(
        limits, SavingsGoal(id="goal", percentage_of_income=25), 3000
    )
    assert not short.is_feasible
    assert short.target == Decimal("750.00")
    assert short.shortfall == Decimal("250.00")
