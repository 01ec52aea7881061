import pandas as pd
import numpy as np

# Each component is a table of per variable terms of a minimisation objective:
#
#     sum(linear * x + 0.5 * quadratic * x ** 2 + constant)
#
# Welfare is maximised by minimising its negative.
OBJECTIVE_COLUMNS = ['variable_id', 'linear', 'quadratic', 'constant']


def consumer_surplus(period_variables, periods):
    """Create the objective terms for the gross consumer benefit of demand in each period.

    The benefit of consuming d in a period with demand curve d = a - b * price is the area under the inverse demand
    curve, (a - d) * d / b + d ** 2 / (2 * b). As a cost to minimise this is -a / b * d + d ** 2 / (2 * b), weighted by
    the period weight.

    Examples
    --------

    >>> period_variables = pd.DataFrame({
    ...   'period': [1, 1, 1],
    ...   'variable': ['price', 'demand', 'imports'],
    ...   'variable_id': [0, 1, 2]})

    >>> periods = pd.DataFrame({
    ...   'period': [1],
    ...   'weight': [0.5],
    ...   'demand_intercept': [50.0],
    ...   'demand_slope': [2.0]})

    >>> print(consumer_surplus(period_variables, periods))
       variable_id  linear  quadratic  constant
    0            1  -12.5       0.25       0.0
    """
    demand = period_variables[period_variables['variable'] == 'demand']
    demand = pd.merge(demand, periods.loc[:, ['period', 'weight', 'demand_intercept', 'demand_slope']], on='period')
    demand['linear'] = -1.0 * demand['weight'] * demand['demand_intercept'] / demand['demand_slope']
    demand['quadratic'] = demand['weight'] / demand['demand_slope']
    demand['constant'] = 0.0
    return demand.loc[:, OBJECTIVE_COLUMNS]


def generation_cost(quantity_variables, periods, technologies):
    """Create the objective terms for the cost of generation, c * q + c2 * q ** 2 / 2, weighted by period.

    Examples
    --------

    >>> quantity_variables = pd.DataFrame({
    ...   'period': [1, 1],
    ...   'technology': ['gas', 'wind'],
    ...   'variable_id': [3, 4]})

    >>> periods = pd.DataFrame({
    ...   'period': [1],
    ...   'weight': [0.5]})

    >>> technologies = pd.DataFrame({
    ...   'technology': ['gas', 'wind'],
    ...   'linear_cost': [40.0, 0.0],
    ...   'quadratic_cost': [0.2, 0.0]})

    >>> print(generation_cost(quantity_variables, periods, technologies))
       variable_id  linear  quadratic  constant
    0            3    20.0        0.1       0.0
    1            4     0.0        0.0       0.0
    """
    costs = pd.merge(quantity_variables, periods.loc[:, ['period', 'weight']], on='period')
    costs = pd.merge(costs, technologies.loc[:, ['technology', 'linear_cost', 'quadratic_cost']], on='technology')
    costs['linear'] = costs['weight'] * costs['linear_cost']
    costs['quadratic'] = costs['weight'] * costs['quadratic_cost']
    costs['constant'] = 0.0
    return costs.loc[:, OBJECTIVE_COLUMNS]


def import_cost(period_variables, periods):
    """Create the objective terms for the cost of imports, (m - am) ** 2 / (2 * bm), weighted by period.

    Expanding the square gives a quadratic term 1 / bm, a linear term -am / bm and a constant am ** 2 / (2 * bm).

    Examples
    --------

    >>> period_variables = pd.DataFrame({
    ...   'period': [1, 1, 1],
    ...   'variable': ['price', 'demand', 'imports'],
    ...   'variable_id': [0, 1, 2]})

    >>> periods = pd.DataFrame({
    ...   'period': [1],
    ...   'weight': [1.0],
    ...   'import_intercept': [5.0],
    ...   'import_slope': [2.0]})

    >>> print(import_cost(period_variables, periods))
       variable_id  linear  quadratic  constant
    0            2    -2.5        0.5      6.25
    """
    imports = period_variables[period_variables['variable'] == 'imports']
    imports = pd.merge(imports, periods.loc[:, ['period', 'weight', 'import_intercept', 'import_slope']], on='period')
    imports['linear'] = -1.0 * imports['weight'] * imports['import_intercept'] / imports['import_slope']
    imports['quadratic'] = imports['weight'] / imports['import_slope']
    imports['constant'] = imports['weight'] * np.square(imports['import_intercept']) / (2.0 * imports['import_slope'])
    return imports.loc[:, OBJECTIVE_COLUMNS]
