import numpy as np
import pandas as pd
import pytest
from pandas._testing import assert_frame_equal
from welfare_market import calibration
from welfare_market.market_backend import dataframe_validator as dv


def test_linear_curve_parameters():
    intercept, slope = calibration.linear_curve_parameters(np.array([40.0, 80.0]), np.array([200.0, 400.0]), 0.2)
    np.testing.assert_allclose(slope, [1.0, 1.0])
    np.testing.assert_allclose(intercept, [240.0, 480.0])

    intercept, slope = calibration.linear_curve_parameters(40.0, 200.0, 0.2, upward_sloping=True)
    assert slope == pytest.approx(1.0)
    assert intercept == pytest.approx(160.0)


def test_demand_curve_passes_through_observation_with_given_elasticity():
    observations = pd.DataFrame({
        'price': [50.0, 20.0],
        'quantity': [1000.0, 400.0]})

    output = calibration.calibrate_demand(observations, elasticity=0.1)

    expected = pd.DataFrame({
        'price': [50.0, 20.0],
        'quantity': [1000.0, 400.0],
        'demand_intercept': [1100.0, 440.0],
        'demand_slope': [2.0, 2.0]})

    assert_frame_equal(output, expected)
    # Point elasticity b * p / q at the observation.
    elasticity = output['demand_slope'] * output['price'] / output['quantity']
    np.testing.assert_allclose(elasticity, 0.1)
    np.testing.assert_allclose(output['demand_intercept'] - output['demand_slope'] * output['price'],
                               output['quantity'])


def test_demand_from_consumer_groups():
    observations = pd.DataFrame({
        'price': [25.0],
        'q_commercial': [100.0],
        'q_industrial': [150.0],
        'q_residential': [250.0]})

    output = calibration.calibrate_demand(observations)

    assert output['demand_slope'].iloc[0] == pytest.approx(2.0)
    assert output['demand_intercept'].iloc[0] == pytest.approx(550.0)
    assert 'q_residential' in output.columns


def test_demand_needs_quantities():
    observations = pd.DataFrame({
        'price': [25.0],
        'q_commercial': [100.0]})

    with pytest.raises(dv.MissingColumnError):
        calibration.calibrate_demand(observations)


def test_non_positive_price():
    observations = pd.DataFrame({
        'price': [25.0, 0.0],
        'quantity': [100.0, 100.0]})

    with pytest.raises(dv.ColumnValues):
        calibration.calibrate_demand(observations)


def test_import_curve_passes_through_observation():
    observations = pd.DataFrame({
        'price': [40.0],
        'imports': [200.0]})

    output = calibration.calibrate_imports(observations, elasticity=0.3)

    expected = pd.DataFrame({
        'price': [40.0],
        'imports': [200.0],
        'import_intercept': [140.0],
        'import_slope': [1.5]})

    assert_frame_equal(output, expected)


def test_calibration_does_not_change_observations():
    observations = pd.DataFrame({
        'price': [40.0],
        'imports': [200.0]})

    calibration.calibrate_imports(observations)

    assert list(observations.columns) == ['price', 'imports']


def centroids():
    return pd.DataFrame({
        'price': [50.0, 25.0],
        'imports': [100.0, 50.0],
        'quantity': [1000.0, 500.0],
        'nuclear': [300.0, 300.0],
        'hydro': [50.0, 150.0],
        'wind_cap': [0.2, 0.4],
        'solar_cap': [0.5, 0.0],
        'cluster_size': [3, 1]})


def test_representative_periods():
    output = calibration.representative_periods(centroids(), counts=[30, 10])

    expected = pd.DataFrame({
        'period': [0, 1],
        'weight': [0.75, 0.25],
        'demand_intercept': [1100.0, 550.0],
        'demand_slope': [2.0, 2.0],
        'import_intercept': [70.0, 35.0],
        'import_slope': [0.6, 0.6],
        'hydro_nuclear_available': [350.0, 450.0],
        'wind_capacity_factor': [0.2, 0.4],
        'solar_capacity_factor': [0.5, 0.0]})

    assert_frame_equal(output, expected, check_dtype=False)


def test_representative_periods_weights_sum_to_one():
    output = calibration.representative_periods(centroids(), counts=[7, 3])
    assert output['weight'].sum() == pytest.approx(1.0)


@pytest.mark.parametrize('counts', [[1], [0, 0], [-1, 2]])
def test_bad_counts(counts):
    with pytest.raises(dv.ColumnValues):
        calibration.representative_periods(centroids(), counts=counts)


def test_missing_centroid_column():
    with pytest.raises(dv.MissingColumnError):
        calibration.representative_periods(centroids().drop(columns=['hydro']), counts=[1, 1])
