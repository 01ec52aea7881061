import time

import numpy as np
import pandas as pd
import pytest
from welfare_market import markets
from welfare_market.market_backend import capacity_constraints, dataframe_validator as dv

TOLERANCE = 1e-4


def single_period():
    return pd.DataFrame({
        'period': [1],
        'weight': [1.0],
        'demand_intercept': [50.0],
        'demand_slope': [1.0],
        'import_intercept': [5.0],
        'import_slope': [1.0],
        'hydro_nuclear_available': [0.0],
        'wind_capacity_factor': [0.0],
        'solar_capacity_factor': [0.0],
    })


def single_technology(limit='capacity', linear_cost=10.0, capacity=100.0):
    return pd.DataFrame({
        'technology': ['gas'],
        'linear_cost': [linear_cost],
        'quadratic_cost': [0.0],
        'capacity': [capacity],
        'limit': [limit],
    })


def three_periods():
    return pd.DataFrame({
        'period': [1, 2, 3],
        'weight': [0.5, 0.3, 0.2],
        'demand_intercept': [33.0, 28.0, 40.0],  # GWh
        'demand_slope': [0.06, 0.05, 0.08],  # GWh per $/MWh
        'import_intercept': [1.4, 1.0, 2.0],
        'import_slope': [0.012, 0.01, 0.015],
        'hydro_nuclear_available': [12.0, 12.0, 10.0],
        'wind_capacity_factor': [0.3, 0.6, 0.1],
        'solar_capacity_factor': [0.5, 0.05, 0.8],
    })


def six_technologies():
    # No limit column, limits are assigned by row position.
    return pd.DataFrame({
        'technology': ['hydro_nuclear', 'ccgt', 'coal', 'oil', 'wind', 'solar'],
        'linear_cost': [5.0, 40.0, 35.0, 90.0, 0.0, 0.0],  # $/MWh
        'quadratic_cost': [0.0, 0.5, 1.0, 2.0, 0.0, 0.0],
        'capacity': [np.nan, 15.0, 8.0, np.nan, np.nan, np.nan],  # GWh
    })


def test_single_period_matches_closed_form_solution():
    # With a flat marginal cost of 10 the price is set by gas, so demand is 50 - 10 = 40, imports are 5 + 10 = 15
    # and gas supplies the remaining 25.
    result = markets.clear_market(single_period(), single_technology(), wind_scale=0.0, solar_scale=0.0)

    assert result.solver_status == 'Solved'
    assert result.price['price'].iloc[0] == pytest.approx(10.0, abs=1e-3)
    assert result.demand['demand'].iloc[0] == pytest.approx(40.0, abs=1e-3)
    assert result.imports['imports'].iloc[0] == pytest.approx(15.0, abs=1e-3)
    assert result.quantity['quantity'].iloc[0] == pytest.approx(25.0, abs=1e-3)
    assert result.quantity['quantity'].iloc[0] <= 100.0
    assert result.average_price == pytest.approx(10.0, abs=1e-3)
    # Generation cost 10 * 25 plus import cost (15 - 5)^2 / 2.
    assert result.total_cost == pytest.approx(300.0, abs=1e-2)
    assert result.demand['demand'].iloc[0] == pytest.approx(
        result.quantity['quantity'].iloc[0] + result.imports['imports'].iloc[0], abs=TOLERANCE)


def test_single_period_with_slsqp():
    result = markets.clear_market(single_period(), single_technology(), wind_scale=0.0, solar_scale=0.0,
                                  solver_name='SLSQP')

    assert result.solver_status == 'Solved'
    assert result.average_price == pytest.approx(10.0, abs=1e-3)
    assert result.quantity['quantity'].iloc[0] == pytest.approx(25.0, abs=1e-3)


def test_binding_capacity_sets_price_from_demand_and_imports():
    # Gas is capped at 2, so 50 - p = 2 + 5 + p and p = 21.5.
    result = markets.clear_market(single_period(), single_technology(linear_cost=1.0, capacity=2.0))

    assert result.quantity['quantity'].iloc[0] == pytest.approx(2.0, abs=1e-3)
    assert result.average_price == pytest.approx(21.5, abs=1e-3)


def test_technology_without_limit_is_only_bounded_by_cost():
    # The same technology with no upper limit sets the price at its marginal cost.
    result = markets.clear_market(single_period(), single_technology(limit='none', linear_cost=1.0,
                                                                      capacity=np.nan))

    assert result.average_price == pytest.approx(1.0, abs=1e-3)
    assert result.quantity['quantity'].iloc[0] == pytest.approx(43.0, abs=1e-3)


def check_solution_properties(result, periods, technologies, wind_scale, solar_scale):
    summary = pd.merge(result.period_summary(), periods, on=['period', 'weight'])
    supply = result.quantity.groupby('period', as_index=False).agg({'quantity': 'sum'})
    summary = pd.merge(summary, supply, on='period')

    # Local supply plus imports meets demand.
    np.testing.assert_allclose(summary['demand'], summary['quantity'] + summary['imports'], atol=TOLERANCE)
    # Demand and imports lie on their curves.
    np.testing.assert_allclose(summary['demand'],
                               summary['demand_intercept'] - summary['demand_slope'] * summary['price'],
                               atol=TOLERANCE)
    np.testing.assert_allclose(summary['imports'],
                               summary['import_intercept'] + summary['import_slope'] * summary['price'],
                               atol=TOLERANCE)

    # Quantities are non negative and within their limits.
    assert (result.quantity['quantity'] >= -TOLERANCE).all()
    limits = capacity_constraints.technology_limits(periods, technologies, wind_scale, solar_scale)
    limits = pd.merge(limits, result.quantity, on=['period', 'technology'])
    assert (limits['quantity'] <= limits['capacity'] + TOLERANCE).all()

    np.testing.assert_allclose(result.average_price, (summary['weight'] * summary['price']).sum())


def test_three_periods_satisfy_clearing_and_limits():
    periods = three_periods()
    technologies = six_technologies()

    result = markets.clear_market(periods, technologies, wind_scale=5.0, solar_scale=2.0)

    assert result.solver_status == 'Solved'
    technologies = capacity_constraints.assign_limits_by_position(technologies)
    check_solution_properties(result, periods, technologies, 5.0, 2.0)


def test_total_cost_is_recalculated_from_the_solution():
    periods = three_periods()
    technologies = six_technologies()

    result = markets.clear_market(periods, technologies)

    generation = pd.merge(result.quantity, technologies, on='technology')
    generation = pd.merge(generation, periods, on='period')
    generation_cost = (generation['weight'] * (generation['linear_cost'] * generation['quantity'] +
                                               generation['quadratic_cost'] * generation['quantity'] ** 2 / 2)).sum()
    imports = pd.merge(result.imports, periods, on='period')
    import_cost = (imports['weight'] * (imports['imports'] - imports['import_intercept']) ** 2 /
                   (2 * imports['import_slope'])).sum()

    assert result.total_cost == pytest.approx(generation_cost + import_cost)
    assert result.total_cost > 0.0


def test_more_renewables_do_not_raise_the_average_price():
    market = markets.WelfareMarket(six_technologies(), wind_scale=5.0, solar_scale=2.0)
    market.set_periods(three_periods())
    baseline = market.dispatch()

    market.set_renewable_scales(7.0, 3.0)
    expanded = market.dispatch()

    assert baseline.solved and expanded.solved
    assert expanded.average_price <= baseline.average_price + TOLERANCE
    # Results from earlier dispatches are unaffected by later ones.
    wind = baseline.quantity
    wind = wind[(wind['technology'] == 'wind') & (wind['period'] == 2)]
    assert wind['quantity'].iloc[0] <= 5.0 * 0.6 + TOLERANCE


def test_failed_solve_only_exposes_status():
    market = markets.WelfareMarket(six_technologies())
    market.set_periods(three_periods())
    market.max_iterations = 1

    result = market.dispatch()

    assert result.solver_status == 'Failed'
    assert not result.solved
    assert result.message != ''
    for field in ['average_price', 'total_cost', 'price', 'demand', 'imports', 'quantity']:
        with pytest.raises(markets.ResultUnavailable):
            getattr(result, field)
    with pytest.raises(markets.ResultUnavailable):
        result.period_summary()


def test_result_tables_are_copies():
    result = markets.clear_market(single_period(), single_technology(), wind_scale=0.0, solar_scale=0.0)
    price = result.price
    price['price'] = -1.0
    assert result.price['price'].iloc[0] == pytest.approx(10.0, abs=1e-3)


def test_limits_assigned_by_position_without_changing_input():
    technologies = six_technologies()
    market = markets.WelfareMarket(technologies)
    assert list(market._technologies['limit']) == ['hydro_nuclear', 'capacity', 'capacity', 'none', 'wind', 'solar']
    assert 'limit' not in technologies.columns


def test_dispatch_before_periods_set():
    market = markets.WelfareMarket(six_technologies())
    with pytest.raises(markets.ModelBuildError):
        market.dispatch()


@pytest.mark.parametrize('wind_scale, solar_scale', [(-1.0, 2.0), (5.0, np.nan), (np.inf, 2.0)])
def test_bad_renewable_scales(wind_scale, solar_scale):
    with pytest.raises(markets.ModelBuildError):
        markets.WelfareMarket(six_technologies(), wind_scale=wind_scale, solar_scale=solar_scale)


def test_weights_must_sum_to_one():
    periods = three_periods()
    periods['weight'] = [0.5, 0.3, 0.3]
    market = markets.WelfareMarket(six_technologies())
    with pytest.raises(dv.ColumnValues):
        market.set_periods(periods)


@pytest.mark.parametrize('column', ['demand_slope', 'import_slope'])
def test_slopes_must_be_positive(column):
    periods = three_periods()
    periods.loc[1, column] = 0.0
    market = markets.WelfareMarket(six_technologies())
    with pytest.raises(dv.ColumnValues):
        market.set_periods(periods)


def test_empty_periods():
    market = markets.WelfareMarket(six_technologies())
    with pytest.raises(dv.EmptyTable):
        market.set_periods(three_periods().iloc[0:0])


def test_empty_technologies():
    with pytest.raises(dv.EmptyTable):
        markets.WelfareMarket(six_technologies().iloc[0:0])


def test_repeated_periods():
    periods = three_periods()
    periods['period'] = [1, 1, 3]
    market = markets.WelfareMarket(six_technologies())
    with pytest.raises(dv.RepeatedRowError):
        market.set_periods(periods)


def test_unexpected_period_column():
    periods = three_periods()
    periods['year'] = 2019.0
    market = markets.WelfareMarket(six_technologies())
    with pytest.raises(dv.UnexpectedColumn):
        market.set_periods(periods)


def test_capacity_limited_technology_needs_capacity():
    technologies = six_technologies()
    technologies.loc[1, 'capacity'] = np.nan
    with pytest.raises(dv.ColumnValues):
        markets.WelfareMarket(technologies)


def test_unknown_limit_type():
    with pytest.raises(dv.ColumnValues):
        markets.WelfareMarket(single_technology(limit='battery'))


def test_negative_costs():
    with pytest.raises(dv.ColumnValues):
        markets.WelfareMarket(single_technology(linear_cost=-1.0))


def test_interior_point_solution_lands_on_binding_limits():
    periods = three_periods()
    technologies = six_technologies()

    interior_point = markets.clear_market(periods, technologies)
    active_set = markets.clear_market(periods, technologies, solver_name='SLSQP')

    coal = interior_point.quantity
    coal = coal[(coal['technology'] == 'coal') & (coal['period'] == 1)]
    assert coal['quantity'].iloc[0] == pytest.approx(8.0, abs=1e-6)

    assert interior_point.average_price == pytest.approx(active_set.average_price, abs=1e-5)
    np.testing.assert_allclose(interior_point.quantity['quantity'], active_set.quantity['quantity'], atol=1e-4)


def test_zero_capacity_factor():
    periods = three_periods()
    periods['solar_capacity_factor'] = [0.5, 0.0, 0.8]
    technologies = six_technologies()

    result = markets.clear_market(periods, technologies)

    assert result.solved
    solar = result.quantity
    solar = solar[(solar['technology'] == 'solar') & (solar['period'] == 2)]
    assert solar['quantity'].iloc[0] == pytest.approx(0.0, abs=1e-9)
    check_solution_properties(result, periods, capacity_constraints.assign_limits_by_position(technologies), 5.0,
                              2.0)


def many_periods(number_of_periods, seed=7):
    rng = np.random.default_rng(seed)
    return pd.DataFrame({
        'period': np.arange(number_of_periods),
        'weight': np.full(number_of_periods, 1.0 / number_of_periods),
        'demand_intercept': rng.uniform(28.0, 40.0, number_of_periods),
        'demand_slope': rng.uniform(0.05, 0.08, number_of_periods),
        'import_intercept': rng.uniform(1.0, 2.0, number_of_periods),
        'import_slope': rng.uniform(0.01, 0.015, number_of_periods),
        'hydro_nuclear_available': rng.uniform(10.0, 12.0, number_of_periods),
        'wind_capacity_factor': rng.uniform(0.05, 0.6, number_of_periods),
        'solar_capacity_factor': rng.uniform(0.05, 0.8, number_of_periods),
    })


def test_one_hundred_periods():
    periods = many_periods(100)
    technologies = six_technologies()

    start = time.perf_counter()
    result = markets.clear_market(periods, technologies)
    elapsed = time.perf_counter() - start

    assert result.solved
    check_solution_properties(result, periods, capacity_constraints.assign_limits_by_position(technologies), 5.0,
                              2.0)
    assert elapsed < 30.0
