from welfare_market.help_functions import helper_functions as hf
import pandas as pd


def demand_curve(periods, next_constraint_id):
    """Create the constraints that place each period's demand and price on the period's linear demand curve.

    For each period a constraint of the following form is created:

        demand + demand_slope * price = demand_intercept

    Examples
    --------

    >>> periods = pd.DataFrame({
    ...   'period': [1, 2],
    ...   'demand_intercept': [50.0, 60.0],
    ...   'demand_slope': [1.0, 2.0]})

    >>> next_constraint_id = 0

    >>> type_and_rhs, variable_map = demand_curve(periods, next_constraint_id)

    >>> print(type_and_rhs)
       period  constraint_id type   rhs
    0       1              0    =  50.0
    1       2              1    =  60.0

    >>> print(variable_map)
       constraint_id  period variable  coefficient
    0              0       1   demand          1.0
    1              1       2   demand          1.0
    2              0       1    price          1.0
    3              1       2    price          2.0

    Parameters
    ----------
    periods : pd.DataFrame

        ================  ===============================================================
        Columns:          Description:
        period            unique identifier of a representative period
        demand_intercept  quantity demanded at a price of zero, in MWh (as `np.float64`)
        demand_slope      reduction in demand per unit increase in price (as `np.float64`)
        ================  ===============================================================

    next_constraint_id : int
        The next integer to start using for constraint ids.

    Returns
    -------
    type_and_rhs : pd.DataFrame
        The type and rhs of each constraint.

        =============  ===============================================================
        Columns:       Description:
        period         unique identifier of a representative period
        constraint_id  the id of the constraint (as `int`)
        type           the type of the constraint, "=" (as `str`)
        rhs            the rhs of the constraint (as `np.float64`)
        =============  ===============================================================

    variable_map : pd.DataFrame
        The period level variables that appear on the lhs of the constraint.

        =============  ===============================================================
        Columns:       Description:
        constraint_id  the id of the constraint (as `np.int64`)
        period         unique identifier of a representative period
        variable       the period variable type the coefficient applies to (as `str`)
        coefficient    the lhs coefficient (as `np.float64`)
        =============  ===============================================================
    """
    type_and_rhs = hf.save_index(periods, 'constraint_id', next_constraint_id)
    type_and_rhs['type'] = '='
    type_and_rhs['rhs'] = type_and_rhs['demand_intercept']

    demand_map = type_and_rhs.loc[:, ['constraint_id', 'period']]
    demand_map['variable'] = 'demand'
    demand_map['coefficient'] = 1.0

    price_map = type_and_rhs.loc[:, ['constraint_id', 'period']]
    price_map['variable'] = 'price'
    price_map['coefficient'] = type_and_rhs['demand_slope']

    type_and_rhs = type_and_rhs.loc[:, ['period', 'constraint_id', 'type', 'rhs']]
    variable_map = pd.concat([demand_map, price_map]).reset_index(drop=True)
    return type_and_rhs, variable_map


def import_curve(periods, next_constraint_id):
    """Create the constraints that place each period's imports and price on the period's linear import supply curve.

    For each period a constraint of the following form is created:

        imports - import_slope * price = import_intercept

    Examples
    --------

    >>> periods = pd.DataFrame({
    ...   'period': [1],
    ...   'import_intercept': [5.0],
    ...   'import_slope': [1.5]})

    >>> type_and_rhs, variable_map = import_curve(periods, 2)

    >>> print(type_and_rhs)
       period  constraint_id type  rhs
    0       1              2    =  5.0

    >>> print(variable_map)
       constraint_id  period variable  coefficient
    0              2       1  imports          1.0
    1              2       1    price         -1.5
    """
    type_and_rhs = hf.save_index(periods, 'constraint_id', next_constraint_id)
    type_and_rhs['type'] = '='
    type_and_rhs['rhs'] = type_and_rhs['import_intercept']

    imports_map = type_and_rhs.loc[:, ['constraint_id', 'period']]
    imports_map['variable'] = 'imports'
    imports_map['coefficient'] = 1.0

    price_map = type_and_rhs.loc[:, ['constraint_id', 'period']]
    price_map['variable'] = 'price'
    price_map['coefficient'] = -1.0 * type_and_rhs['import_slope']

    type_and_rhs = type_and_rhs.loc[:, ['period', 'constraint_id', 'type', 'rhs']]
    variable_map = pd.concat([imports_map, price_map]).reset_index(drop=True)
    return type_and_rhs, variable_map


def energy_balance(periods, next_constraint_id):
    """Create the constraints that ensure local generation plus imports meets demand in each period.

    For each period a constraint of the following form is created:

        demand - imports - quantity tech 1 - . . . - quantity tech n = 0

    Quantities map through the period level 'quantity' variable type, so every technology in the period is included.

    Examples
    --------

    >>> periods = pd.DataFrame({
    ...   'period': [1]})

    >>> type_and_rhs, variable_map = energy_balance(periods, 4)

    >>> print(type_and_rhs)
       period  constraint_id type  rhs
    0       1              4    =  0.0

    >>> print(variable_map)
       constraint_id  period  variable  coefficient
    0              4       1    demand          1.0
    1              4       1   imports         -1.0
    2              4       1  quantity         -1.0
    """
    type_and_rhs = hf.save_index(periods.loc[:, ['period']], 'constraint_id', next_constraint_id)
    type_and_rhs['type'] = '='
    type_and_rhs['rhs'] = 0.0

    coefficients = pd.DataFrame({
        'variable': ['demand', 'imports', 'quantity'],
        'coefficient': [1.0, -1.0, -1.0]})
    variable_map = hf.cross_join(type_and_rhs.loc[:, ['constraint_id', 'period']], coefficients)

    return type_and_rhs, variable_map
