import pandas as pd
import numpy as np

from welfare_market.help_functions import helper_functions as hf
from welfare_market.market_backend.check import ModelBuildError

LIMIT_TYPES = ['hydro_nuclear', 'capacity', 'wind', 'solar', 'none']

# Limit applied to each row of a technology table that doesn't say which limit it uses.
POSITIONAL_LIMITS = ['hydro_nuclear', 'capacity', 'capacity', 'none', 'wind', 'solar']


def assign_limits_by_position(technologies):
    """Fill in the limit column of a technology table from the position of each row.

    Row 0 is combined hydro and nuclear, rows 1 and 2 are capped by their capacity, row 3 has no upper limit, row 4
    is wind and row 5 is solar.

    Examples
    --------

    >>> technologies = pd.DataFrame({
    ...   'technology': ['hydro_nuclear', 'gas', 'coal', 'oil', 'wind', 'solar']})

    >>> print(assign_limits_by_position(technologies))
          technology          limit
    0  hydro_nuclear  hydro_nuclear
    1            gas       capacity
    2           coal       capacity
    3            oil           none
    4           wind           wind
    5          solar          solar

    Raises
    ------
        ModelBuildError
            If there are more rows than positions with a known limit.
    """
    if len(technologies.index) > len(POSITIONAL_LIMITS):
        raise ModelBuildError('Technology tables with more than {} rows need an explicit limit column.'.format(
            len(POSITIONAL_LIMITS)))
    technologies = technologies.reset_index(drop=True)
    technologies['limit'] = POSITIONAL_LIMITS[:len(technologies.index)]
    return technologies


def technology_limits(periods, technologies, wind_scale, solar_scale):
    """Calculate the upper limit on the output of each technology in each period.

    Examples
    --------

    >>> periods = pd.DataFrame({
    ...   'period': [1, 2],
    ...   'hydro_nuclear_available': [30.0, 25.0],
    ...   'wind_capacity_factor': [0.5, 0.1],
    ...   'solar_capacity_factor': [0.0, 0.8]})

    >>> technologies = pd.DataFrame({
    ...   'technology': ['hydro_nuclear', 'gas', 'oil', 'wind', 'solar'],
    ...   'capacity': [np.nan, 40.0, np.nan, np.nan, np.nan],
    ...   'limit': ['hydro_nuclear', 'capacity', 'none', 'wind', 'solar']})

    >>> print(technology_limits(periods, technologies, wind_scale=10.0, solar_scale=5.0))
       period     technology  capacity
    0       1  hydro_nuclear      30.0
    1       1            gas      40.0
    2       1           wind       5.0
    3       1          solar       0.0
    4       2  hydro_nuclear      25.0
    5       2            gas      40.0
    6       2           wind       1.0
    7       2          solar       4.0

    Parameters
    ----------
    periods : pd.DataFrame

        =======================  ===============================================================
        Columns:                 Description:
        period                   unique identifier of a representative period
        hydro_nuclear_available  must take hydro and nuclear output available, in MWh \n
                                 (as `np.float64`)
        wind_capacity_factor     wind output per unit of installed wind (as `np.float64`)
        solar_capacity_factor    solar output per unit of installed solar (as `np.float64`)
        =======================  ===============================================================

    technologies : pd.DataFrame

        ==========  ===============================================================
        Columns:    Description:
        technology  unique identifier of a technology (as `str`)
        capacity    fixed output cap, used where limit is 'capacity' (as `np.float64`)
        limit       one of 'hydro_nuclear', 'capacity', 'wind', 'solar' or 'none' \n
                    (as `str`)
        ==========  ===============================================================

    wind_scale : float
        Installed wind capacity, multiplies the wind capacity factor.

    solar_scale : float
        Installed solar capacity, multiplies the solar capacity factor.

    Returns
    -------
    pd.DataFrame

        ==========  ===============================================================
        Columns:    Description:
        period      unique identifier of a representative period
        technology  unique identifier of a technology (as `str`)
        capacity    the upper limit on output, in MWh (as `np.float64`)
        ==========  ===============================================================
    """
    limits = hf.cross_join(
        periods.loc[:, ['period', 'hydro_nuclear_available', 'wind_capacity_factor', 'solar_capacity_factor']],
        technologies.loc[:, ['technology', 'capacity', 'limit']].rename(columns={'capacity': 'fixed_capacity'}))
    # Technologies with no upper limit don't get a constraint.
    limits = limits[limits['limit'] != 'none'].copy()
    limits['capacity'] = np.select(
        [limits['limit'] == 'hydro_nuclear',
         limits['limit'] == 'capacity',
         limits['limit'] == 'wind',
         limits['limit'] == 'solar'],
        [limits['hydro_nuclear_available'],
         limits['fixed_capacity'],
         wind_scale * limits['wind_capacity_factor'],
         solar_scale * limits['solar_capacity_factor']])
    return limits.loc[:, ['period', 'technology', 'capacity']].reset_index(drop=True)


def capacity(limits, next_constraint_id):
    """Create the constraints that ensure the output of a technology in a period is capped by its limit.

    A constraint of the following form is created for each period and technology with a limit:

        quantity <= capacity

    Examples
    --------

    >>> limits = pd.DataFrame({
    ...   'period': [1, 1],
    ...   'technology': ['gas', 'wind'],
    ...   'capacity': [40.0, 5.0]})

    >>> type_and_rhs, variable_map = capacity(limits, 3)

    >>> print(type_and_rhs)
       period technology  constraint_id type   rhs
    0       1        gas              3   <=  40.0
    1       1       wind              4   <=   5.0

    >>> print(variable_map)
       constraint_id  period technology  coefficient
    0              3       1        gas          1.0
    1              4       1       wind          1.0

    Returns
    -------
    type_and_rhs : pd.DataFrame
    variable_map : pd.DataFrame
        Maps each constraint to the quantity variable of its period and technology.
    """
    type_and_rhs = hf.save_index(limits.reset_index(drop=True), 'constraint_id', next_constraint_id)
    type_and_rhs['type'] = '<='
    type_and_rhs['rhs'] = type_and_rhs['capacity']
    type_and_rhs = type_and_rhs.loc[:, ['period', 'technology', 'constraint_id', 'type', 'rhs']]

    # These constraints always map to a single quantity variable with a coefficient of one.
    variable_map = type_and_rhs.loc[:, ['constraint_id', 'period', 'technology']]
    variable_map['coefficient'] = 1.0

    return type_and_rhs, variable_map
