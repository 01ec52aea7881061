import pandas as pd
from pandas._testing import assert_frame_equal
from welfare_market.market_backend import market_constraints


def test_demand_curve():
    periods = pd.DataFrame({
        'period': [1, 2],
        'weight': [0.4, 0.6],
        'demand_intercept': [33.0, 40.0],
        'demand_slope': [0.06, 0.08]
    })
    type_and_rhs, variable_map = market_constraints.demand_curve(periods, 5)
    expected_rhs = pd.DataFrame({
        'period': [1, 2],
        'constraint_id': [5, 6],
        'type': ['=', '='],
        'rhs': [33.0, 40.0]
    })
    expected_variable_map = pd.DataFrame({
        'constraint_id': [5, 6, 5, 6],
        'period': [1, 2, 1, 2],
        'variable': ['demand', 'demand', 'price', 'price'],
        'coefficient': [1.0, 1.0, 0.06, 0.08]
    })
    assert_frame_equal(type_and_rhs, expected_rhs)
    assert_frame_equal(variable_map, expected_variable_map)


def test_import_curve():
    periods = pd.DataFrame({
        'period': [1, 2],
        'import_intercept': [1.4, -0.5],
        'import_slope': [0.012, 0.02]
    })
    type_and_rhs, variable_map = market_constraints.import_curve(periods, 0)
    expected_rhs = pd.DataFrame({
        'period': [1, 2],
        'constraint_id': [0, 1],
        'type': ['=', '='],
        'rhs': [1.4, -0.5]
    })
    expected_variable_map = pd.DataFrame({
        'constraint_id': [0, 1, 0, 1],
        'period': [1, 2, 1, 2],
        'variable': ['imports', 'imports', 'price', 'price'],
        'coefficient': [1.0, 1.0, -0.012, -0.02]
    })
    assert_frame_equal(type_and_rhs, expected_rhs)
    assert_frame_equal(variable_map, expected_variable_map)


def test_energy_balance():
    periods = pd.DataFrame({
        'period': [1, 2],
        'demand_intercept': [33.0, 40.0]
    })
    type_and_rhs, variable_map = market_constraints.energy_balance(periods, 2)
    expected_rhs = pd.DataFrame({
        'period': [1, 2],
        'constraint_id': [2, 3],
        'type': ['=', '='],
        'rhs': [0.0, 0.0]
    })
    expected_variable_map = pd.DataFrame({
        'constraint_id': [2, 2, 2, 3, 3, 3],
        'period': [1, 1, 1, 2, 2, 2],
        'variable': ['demand', 'imports', 'quantity'] * 2,
        'coefficient': [1.0, -1.0, -1.0] * 2
    })
    assert_frame_equal(type_and_rhs, expected_rhs)
    assert_frame_equal(variable_map, expected_variable_map)
