import numpy as np
import pandas as pd

from welfare_market.market_backend import dataframe_validator as dv

DEMAND_ELASTICITY = 0.1
IMPORT_ELASTICITY = 0.3

CONSUMER_COLUMNS = ['q_commercial', 'q_industrial', 'q_residential']

REPRESENTATIVE_HOUR_COLUMNS = ['price', 'imports', 'nuclear', 'hydro', 'wind_cap', 'solar_cap']


def _check_prices(observations):
    dv.SeriesSchema(name='price', data_type=np.float64, must_be_real_number=True,
                    strictly_positive=True).validate(observations['price'])


def _total_quantity(observations):
    if 'quantity' in observations.columns:
        return observations['quantity']
    missing = [col for col in CONSUMER_COLUMNS if col not in observations.columns]
    if missing:
        raise dv.MissingColumnError("Observations need a 'quantity' column or the columns {}.".format(
            ', '.join(CONSUMER_COLUMNS)))
    return observations.loc[:, CONSUMER_COLUMNS].sum(axis=1)


def linear_curve_parameters(price, quantity, elasticity, upward_sloping=False):
    """Intercept and slope of a linear curve through (price, quantity) with the given point elasticity.

    The slope is elasticity * quantity / price. Demand curves slope down, quantity = intercept - slope * price, so the
    intercept is quantity + slope * price. Supply curves slope up, quantity = intercept + slope * price.

    Examples
    --------

    >>> linear_curve_parameters(50.0, 1000.0, 0.1)
    (1100.0, 2.0)

    >>> linear_curve_parameters(50.0, 100.0, 0.5, upward_sloping=True)
    (50.0, 1.0)

    Works element wise on pd.Series and np.ndarray inputs.
    """
    slope = elasticity * quantity / price
    if upward_sloping:
        intercept = quantity - slope * price
    else:
        intercept = quantity + slope * price
    return intercept, slope


def calibrate_demand(observations, elasticity=DEMAND_ELASTICITY):
    """Calculate a linear demand curve through each observed price and quantity with the given elasticity.

    The slope is chosen so the elasticity of the curve at the observed point equals the assumed elasticity:

        demand_slope = elasticity * quantity / price

        demand_intercept = quantity + demand_slope * price

    Examples
    --------

    >>> observations = pd.DataFrame({
    ...   'price': [50.0, 40.0],
    ...   'quantity': [1000.0, 800.0]})

    >>> print(calibrate_demand(observations))
       price  quantity  demand_intercept  demand_slope
    0   50.0    1000.0            1100.0           2.0
    1   40.0     800.0             880.0           2.0

    If there is no quantity column the commercial, industrial and residential quantities are summed.

    >>> observations = pd.DataFrame({
    ...   'price': [50.0],
    ...   'q_commercial': [300.0],
    ...   'q_industrial': [200.0],
    ...   'q_residential': [500.0]})

    >>> print(calibrate_demand(observations).loc[:, ['demand_intercept', 'demand_slope']])
       demand_intercept  demand_slope
    0            1100.0           2.0

    Parameters
    ----------
    observations : pd.DataFrame

        =============  ===============================================================
        Columns:       Description:
        price          observed price, must be positive, $/MWh (as `np.float64`)
        quantity       observed demand, MWh, optional if the consumer columns are \n
                       given (as `np.float64`)
        q_commercial   commercial demand, MWh (as `np.float64`)
        q_industrial   industrial demand, MWh (as `np.float64`)
        q_residential  residential demand, MWh (as `np.float64`)
        =============  ===============================================================

    elasticity : float
        Price elasticity of demand, as a positive number.

    Returns
    -------
    pd.DataFrame
        A copy of the observations with the columns demand_intercept and demand_slope added.

    Raises
    ------
        ColumnValues
            If any price is not strictly positive, or not a real number.
        MissingColumnError
            If neither a quantity column nor all of the consumer columns are given.
    """
    _check_prices(observations)
    observations = observations.copy()
    quantity = _total_quantity(observations)
    observations['demand_intercept'], observations['demand_slope'] = linear_curve_parameters(
        observations['price'], quantity, elasticity)
    columns = [col for col in observations.columns if col not in ['demand_intercept', 'demand_slope']]
    return observations.loc[:, columns + ['demand_intercept', 'demand_slope']]


def calibrate_imports(observations, elasticity=IMPORT_ELASTICITY):
    """Calculate a linear import supply curve through each observed price and import level.

        import_slope = elasticity * imports / price

        import_intercept = imports - import_slope * price

    Examples
    --------

    >>> observations = pd.DataFrame({
    ...   'price': [50.0],
    ...   'imports': [100.0]})

    >>> print(calibrate_imports(observations))
       price  imports  import_intercept  import_slope
    0   50.0    100.0              70.0           0.6

    Returns
    -------
    pd.DataFrame
        A copy of the observations with the columns import_intercept and import_slope added.

    Raises
    ------
        ColumnValues
            If any price is not strictly positive, or not a real number.
    """
    _check_prices(observations)
    observations = observations.copy()
    observations['import_intercept'], observations['import_slope'] = linear_curve_parameters(
        observations['price'], observations['imports'], elasticity, upward_sloping=True)
    columns = [col for col in observations.columns if col not in ['import_intercept', 'import_slope']]
    return observations.loc[:, columns + ['import_intercept', 'import_slope']]


def representative_periods(centroids, counts, demand_elasticity=DEMAND_ELASTICITY,
                           import_elasticity=IMPORT_ELASTICITY):
    """Turn clustered representative hours into the periods table used by WelfareMarket.

    Each centroid becomes a period, weighted by the share of the original hours assigned to its cluster. Demand and
    import curves are calibrated at the centroid price, hydro and nuclear output are combined into the must take
    supply available, and the wind and solar capacity factors are carried over.

    Examples
    --------

    >>> centroids = pd.DataFrame({
    ...   'price': [50.0, 25.0],
    ...   'imports': [100.0, 50.0],
    ...   'quantity': [1000.0, 500.0],
    ...   'nuclear': [300.0, 300.0],
    ...   'hydro': [50.0, 150.0],
    ...   'wind_cap': [0.2, 0.4],
    ...   'solar_cap': [0.5, 0.0]})

    >>> periods = representative_periods(centroids, counts=[3, 1])

    >>> print(periods.loc[:, ['period', 'weight', 'demand_intercept', 'demand_slope', 'hydro_nuclear_available']])
       period  weight  demand_intercept  demand_slope  hydro_nuclear_available
    0       0    0.75            1100.0           2.0                    350.0
    1       1    0.25             550.0           2.0                    450.0

    Parameters
    ----------
    centroids : pd.DataFrame
        One row per cluster centroid, in the original units.

        =============  ===============================================================
        Columns:       Description:
        price          price, $/MWh (as `np.float64`)
        imports        imports, MWh (as `np.float64`)
        quantity       demand, MWh, or the consumer columns q_commercial, \n
                       q_industrial and q_residential (as `np.float64`)
        nuclear        nuclear output, MWh (as `np.float64`)
        hydro          hydro output, MWh (as `np.float64`)
        wind_cap       wind capacity factor (as `np.float64`)
        solar_cap      solar capacity factor (as `np.float64`)
        =============  ===============================================================

        Other columns are ignored.

    counts : list-like
        The number of original hours assigned to each centroid, in the same order as the centroids.

    Returns
    -------
    pd.DataFrame
        The periods table, see WelfareMarket.set_periods.

    Raises
    ------
        MissingColumnError
            If a required column is missing.
        ColumnValues
            If a price is not strictly positive, the counts are negative, don't match the number of centroids, or
            are all zero.
    """
    for col in REPRESENTATIVE_HOUR_COLUMNS:
        if col not in centroids.columns:
            raise dv.MissingColumnError("Column {} not in DataFrame centroids.".format(col))

    counts = np.asarray(counts, dtype=float)
    if len(counts) != len(centroids.index):
        raise dv.ColumnValues('There should be one count for each centroid.')
    if (counts < 0.0).any() or counts.sum() <= 0.0:
        raise dv.ColumnValues('Counts must be non negative and include at least one assigned hour.')

    centroids = calibrate_demand(centroids.reset_index(drop=True), demand_elasticity)
    centroids = calibrate_imports(centroids, import_elasticity)

    periods = pd.DataFrame({
        'period': np.arange(len(centroids.index)),
        'weight': counts / counts.sum(),
        'demand_intercept': centroids['demand_intercept'],
        'demand_slope': centroids['demand_slope'],
        'import_intercept': centroids['import_intercept'],
        'import_slope': centroids['import_slope'],
        'hydro_nuclear_available': centroids['nuclear'] + centroids['hydro'],
        'wind_capacity_factor': centroids['wind_cap'],
        'solar_capacity_factor': centroids['solar_cap']})
    return periods
