import logging

import numpy as np
import pandas as pd

from welfare_market import markets

logger = logging.getLogger(__name__)


def renewable_scale_sweep(periods, technologies, wind_scales, solar_scales, solver_name='trust-constr',
                          max_iterations=5000):
    """Clear the market for every combination of wind and solar scale.

    The market is built once and dispatched for each combination, the result of each dispatch becomes one row of the
    returned table.

    Examples
    --------

    >>> technologies = pd.DataFrame({
    ...     'technology': ['gas', 'wind', 'solar'],
    ...     'linear_cost': [30.0, 0.0, 0.0],
    ...     'quadratic_cost': [0.1, 0.0, 0.0],
    ...     'capacity': [500.0, np.nan, np.nan],
    ...     'limit': ['capacity', 'wind', 'solar']})

    >>> periods = pd.DataFrame({
    ...     'period': [1],
    ...     'weight': [1.0],
    ...     'demand_intercept': [220.0],
    ...     'demand_slope': [2.0],
    ...     'import_intercept': [10.0],
    ...     'import_slope': [0.5],
    ...     'hydro_nuclear_available': [0.0],
    ...     'wind_capacity_factor': [0.5],
    ...     'solar_capacity_factor': [0.4]})

    >>> results = renewable_scale_sweep(periods, technologies, wind_scales=[5.0, 7.0], solar_scales=[2.0, 3.0])

    >>> print(results.loc[:, ['wind_scale', 'solar_scale', 'solver_status']])
       wind_scale  solar_scale solver_status
    0         5.0          2.0        Solved
    1         5.0          3.0        Solved
    2         7.0          2.0        Solved
    3         7.0          3.0        Solved

    Parameters
    ----------
    periods : pd.DataFrame
        See WelfareMarket.set_periods.

    technologies : pd.DataFrame
        See WelfareMarket.

    wind_scales : list[float]

    solar_scales : list[float]

    solver_name : str

    max_iterations : int
        Solver iteration limit for each dispatch, a combination that hits it is reported as 'Failed'.

    Returns
    -------
    pd.DataFrame

        =============  ===============================================================
        Columns:       Description:
        wind_scale     the wind scale used (as `np.float64`)
        solar_scale    the solar scale used (as `np.float64`)
        solver_status  'Solved' or 'Failed' (as `str`)
        average_price  weighted average price, NaN if the solve failed (as `np.float64`)
        total_cost     weighted total cost, NaN if the solve failed (as `np.float64`)
        =============  ===============================================================
    """
    market = markets.WelfareMarket(technologies, solver_name=solver_name)
    market.max_iterations = max_iterations
    market.set_periods(periods)

    records = []
    for wind_scale in wind_scales:
        for solar_scale in solar_scales:
            market.set_renewable_scales(wind_scale, solar_scale)
            result = market.dispatch()
            record = {'wind_scale': float(wind_scale), 'solar_scale': float(solar_scale),
                      'solver_status': result.solver_status, 'average_price': np.nan, 'total_cost': np.nan}
            if result.solved:
                record['average_price'] = result.average_price
                record['total_cost'] = result.total_cost
            else:
                logger.info('No solution for wind scale %s and solar scale %s.', wind_scale, solar_scale)
            records.append(record)

    return pd.DataFrame(records, columns=['wind_scale', 'solar_scale', 'solver_status', 'average_price',
                                          'total_cost'])
