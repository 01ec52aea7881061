import pandas as pd
import numpy as np
from welfare_market.help_functions import helper_functions as hf


def period_variables(periods, next_variable_id):
    """Create the price, demand and imports decision variables of each representative period.

    These variables are free, the lower bound is set to -inf and the upper bound to inf. The sign of the equilibrium
    price, demand and imports is left for the solver to find.

    Examples
    --------

    >>> periods = pd.DataFrame({
    ...   'period': [1, 2]})

    >>> next_variable_id = 0

    >>> decision_variables, variable_map = period_variables(periods, next_variable_id)

    >>> print(decision_variables)
       period variable  variable_id  lower_bound  upper_bound        type
    0       1    price            0         -inf          inf  continuous
    1       1   demand            1         -inf          inf  continuous
    2       1  imports            2         -inf          inf  continuous
    3       2    price            3         -inf          inf  continuous
    4       2   demand            4         -inf          inf  continuous
    5       2  imports            5         -inf          inf  continuous

    >>> print(variable_map)
       variable_id  period variable  coefficient
    0            0       1    price          1.0
    1            1       1   demand          1.0
    2            2       1  imports          1.0
    3            3       2    price          1.0
    4            4       2   demand          1.0
    5            5       2  imports          1.0

    Parameters
    ----------
    periods : pd.DataFrame
        The representative periods, only the period column is used.

        ========  ===============================================================
        Columns:  Description:
        period    unique identifier of a representative period (as `str` or `int`)
        ========  ===============================================================

    next_variable_id : int
        The next integer to start using for variable ids.

    Returns
    -------
    decision_variables : pd.DataFrame

        =============  ===============================================================
        Columns:       Description:
        period         unique identifier of a representative period
        variable       'price', 'demand' or 'imports' (as `str`)
        variable_id    the id of the variable (as `int`)
        lower_bound    -inf (as `np.float64`)
        upper_bound    inf (as `np.float64`)
        type           'continuous' (as `str`)
        =============  ===============================================================

    variable_map : pd.DataFrame
        The mapping used to place the variables in constraints defined on a period basis.

        =============  ===============================================================
        Columns:       Description:
        variable_id    the id of the variable (as `int`)
        period         unique identifier of a representative period
        variable       'price', 'demand' or 'imports' (as `str`)
        coefficient    1.0 (as `np.float64`)
        =============  ===============================================================
    """
    variable_types = pd.DataFrame({'variable': ['price', 'demand', 'imports']})
    decision_variables = hf.cross_join(periods.loc[:, ['period']], variable_types)
    decision_variables = hf.save_index(decision_variables, 'variable_id', next_variable_id)
    decision_variables['lower_bound'] = -np.inf
    decision_variables['upper_bound'] = np.inf
    decision_variables['type'] = 'continuous'

    variable_map = decision_variables.loc[:, ['variable_id', 'period', 'variable']]
    variable_map['coefficient'] = 1.0

    return decision_variables, variable_map


def quantities(periods, technologies, next_variable_id):
    """Create a generation quantity decision variable for each representative period and technology.

    Quantities can't be negative so the lower bound is zero, upper limits are applied as explicit constraints because
    they depend on the renewable scaling chosen at dispatch time.

    Examples
    --------

    >>> periods = pd.DataFrame({
    ...   'period': [1, 2]})

    >>> technologies = pd.DataFrame({
    ...   'technology': ['hydro_nuclear', 'wind']})

    >>> next_variable_id = 6

    >>> decision_variables, period_map, technology_map = quantities(periods, technologies, next_variable_id)

    >>> print(decision_variables)
       period     technology  variable_id  lower_bound  upper_bound        type
    0       1  hydro_nuclear            6          0.0          inf  continuous
    1       1           wind            7          0.0          inf  continuous
    2       2  hydro_nuclear            8          0.0          inf  continuous
    3       2           wind            9          0.0          inf  continuous

    >>> print(period_map)
       variable_id  period  variable  coefficient
    0            6       1  quantity          1.0
    1            7       1  quantity          1.0
    2            8       2  quantity          1.0
    3            9       2  quantity          1.0

    >>> print(technology_map)
       variable_id  period     technology  coefficient
    0            6       1  hydro_nuclear          1.0
    1            7       1           wind          1.0
    2            8       2  hydro_nuclear          1.0
    3            9       2           wind          1.0

    Returns
    -------
    decision_variables : pd.DataFrame
    period_map : pd.DataFrame
        Maps the quantities into constraints defined for a whole period, like the energy balance.
    technology_map : pd.DataFrame
        Maps the quantities into constraints defined for a single technology in a period, like capacity limits.
    """
    decision_variables = hf.cross_join(periods.loc[:, ['period']], technologies.loc[:, ['technology']])
    decision_variables = hf.save_index(decision_variables, 'variable_id', next_variable_id)
    decision_variables['lower_bound'] = 0.0
    decision_variables['upper_bound'] = np.inf
    decision_variables['type'] = 'continuous'

    period_map = decision_variables.loc[:, ['variable_id', 'period']]
    period_map['variable'] = 'quantity'
    period_map['coefficient'] = 1.0

    technology_map = decision_variables.loc[:, ['variable_id', 'period', 'technology']]
    technology_map['coefficient'] = 1.0

    return decision_variables, period_map, technology_map
