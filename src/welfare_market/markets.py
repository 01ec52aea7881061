import logging

import numpy as np
import pandas as pd

from welfare_market.market_backend import capacity_constraints, market_constraints, objective_function, \
    solver_interface, variable_ids, check, dataframe_validator as dv
from welfare_market.market_backend.check import ModelBuildError

pd.set_option('display.width', None)

logger = logging.getLogger(__name__)

DEFAULT_WIND_SCALE = 5.0
DEFAULT_SOLAR_SCALE = 2.0


# noinspection PyProtectedMember
class WelfareMarket:
    """Class for constructing and clearing a welfare maximising energy market over a set of representative periods.

    All periods are cleared simultaneously. In each period demand and imports follow linear curves in the period's
    price, local technologies are dispatched up to their limits at a quadratic cost, and local generation plus imports
    must equal demand. The welfare maximising allocation is found with a nonlinear interior point solver.

    Examples
    --------
    Define the technologies that can supply the market. The limit column sets which upper limit applies to each
    technology.

    >>> technologies = pd.DataFrame({
    ...     'technology': ['gas'],
    ...     'linear_cost': [10.0],
    ...     'quadratic_cost': [0.0],
    ...     'capacity': [100.0],
    ...     'limit': ['capacity']})

    Initialise the market instance, no renewables are installed.

    >>> market = WelfareMarket(technologies, wind_scale=0.0, solar_scale=0.0)

    Define a single representative period.

    >>> periods = pd.DataFrame({
    ...     'period': [1],
    ...     'weight': [1.0],
    ...     'demand_intercept': [50.0],
    ...     'demand_slope': [1.0],
    ...     'import_intercept': [5.0],
    ...     'import_slope': [1.0],
    ...     'hydro_nuclear_available': [0.0],
    ...     'wind_capacity_factor': [0.0],
    ...     'solar_capacity_factor': [0.0]})

    >>> market.set_periods(periods)

    Clear the market.

    >>> result = market.dispatch()

    >>> result.solver_status
    'Solved'

    >>> round(result.average_price, 4)
    10.0

    Parameters
    ----------
    technologies : pd.DataFrame
        Information on a technology basis.

        ==============  ===============================================
        Columns:        Description:
        technology      unique identifier of a technology (as `str`)
        linear_cost     cost per MWh of output, $/MWh (as `np.float64`)
        quadratic_cost  coefficient c2 of the cost term c2 * q ** 2 / 2, \n
                        $/MWh^2 (as `np.float64`)
        capacity        fixed cap on output in MWh, optional, required \n
                        where limit is 'capacity' (as `np.float64`)
        limit           which upper limit applies, one of \n
                        'hydro_nuclear', 'capacity', 'wind', 'solar' \n
                        or 'none'. Optional, if missing the limit is \n
                        assigned by row position: hydro_nuclear, \n
                        capacity, capacity, none, wind, solar (as `str`)
        ==============  ===============================================

    wind_scale : float
        Installed wind capacity, the wind limit in each period is wind_scale * wind_capacity_factor.

    solar_scale : float
        Installed solar capacity, the solar limit in each period is solar_scale * solar_capacity_factor.

    solver_name : str
        'trust-constr' (default, interior point) or 'SLSQP'.

    Attributes
    ----------
    max_iterations : int
        Solver iteration limit, default 5000.

    tolerance : float
        Solver optimality and step tolerance, default 1e-8.

    feasibility_tolerance : float
        Largest relative constraint violation accepted in a solution, default 1e-6.

    Raises
    ------
        RepeatedRowError
            If there is more than one row for any technology.
        ColumnDataTypeError
            If columns are not of the required type.
        MissingColumnError
            If a required column is missing.
        UnexpectedColumn
            There is a column that is not one of the columns described above.
        ColumnValues
            If there are inf, null or negative costs, or a 'capacity' limited technology without a capacity.
        EmptyTable
            If no technologies are given.
        ModelBuildError
            If the renewable scales are negative, or limits can't be assigned by position.
    """

    def __init__(self, technologies, wind_scale=DEFAULT_WIND_SCALE, solar_scale=DEFAULT_SOLAR_SCALE,
                 solver_name='trust-constr'):
        self._technologies = None
        self._periods = None
        self._decision_variables = {}
        self._variable_to_constraint_map = {'period': {}, 'technology': {}}
        self._constraint_to_variable_map = {'period': {}}
        self._market_constraints_rhs_and_type = {}
        self._objective_function_components = {}
        self._next_variable_id = 0
        self._next_constraint_id = 0
        self.wind_scale = None
        self.solar_scale = None
        self.validate_inputs = True
        self.solver_name = solver_name
        self.max_iterations = 5000
        self.tolerance = 1e-8
        self.feasibility_tolerance = 1e-6

        technologies = technologies.copy()

        if 'limit' not in technologies.columns:
            technologies = capacity_constraints.assign_limits_by_position(technologies)

        if 'capacity' not in technologies.columns:
            technologies['capacity'] = np.nan

        if self.validate_inputs:
            self._validate_technologies(technologies)

        self._technologies = technologies.reset_index(drop=True)
        self.set_renewable_scales(wind_scale, solar_scale)

    def _validate_technologies(self, technologies):
        schema = dv.DataFrameSchema(name='technologies', primary_keys=['technology'])
        schema.add_column(dv.SeriesSchema(name='technology', data_type=str))
        schema.add_column(dv.SeriesSchema(name='linear_cost', data_type=np.float64, must_be_real_number=True,
                                          not_negative=True))
        schema.add_column(dv.SeriesSchema(name='quadratic_cost', data_type=np.float64, must_be_real_number=True,
                                          not_negative=True))
        schema.add_column(dv.SeriesSchema(name='capacity', data_type=np.float64, not_negative=True))
        schema.add_column(dv.SeriesSchema(name='limit', data_type=str,
                                          allowed_values=capacity_constraints.LIMIT_TYPES))
        schema.validate(technologies)
        capacity_limited = technologies[technologies['limit'] == 'capacity']
        if capacity_limited['capacity'].isnull().any():
            raise dv.ColumnValues("Technologies with the limit 'capacity' need a value in the column 'capacity'.")

    def set_periods(self, periods):
        """Creates the decision variables, market constraints and objective function for the representative periods.

        For each period, price, demand and imports variables are created along with a quantity variable for each
        technology. The demand curve, import curve and energy balance constraints are created for each period, and
        the consumer benefit, generation cost and import cost are added to the objective function, weighted by the
        period weight. Calling again replaces the previous periods.

        Examples
        --------

        >>> technologies = pd.DataFrame({
        ...     'technology': ['gas', 'wind'],
        ...     'linear_cost': [10.0, 0.0],
        ...     'quadratic_cost': [0.1, 0.0],
        ...     'capacity': [100.0, np.nan],
        ...     'limit': ['capacity', 'wind']})

        >>> market = WelfareMarket(technologies)

        >>> periods = pd.DataFrame({
        ...     'period': [1, 2],
        ...     'weight': [0.25, 0.75],
        ...     'demand_intercept': [50.0, 80.0],
        ...     'demand_slope': [1.0, 1.5],
        ...     'import_intercept': [5.0, 5.0],
        ...     'import_slope': [1.0, 1.0],
        ...     'hydro_nuclear_available': [0.0, 0.0],
        ...     'wind_capacity_factor': [0.3, 0.6],
        ...     'solar_capacity_factor': [0.0, 0.0]})

        >>> market.set_periods(periods)

        >>> print(market._decision_variables['quantity'])
           period technology  variable_id  lower_bound  upper_bound        type
        0       1        gas            6          0.0          inf  continuous
        1       1       wind            7          0.0          inf  continuous
        2       2        gas            8          0.0          inf  continuous
        3       2       wind            9          0.0          inf  continuous

        Parameters
        ----------
        periods : pd.DataFrame
            One row per representative period.

            =======================  ===============================================
            Columns:                 Description:
            period                   unique identifier of a period (as `str` \n
                                     or `int`)
            weight                   relative frequency of the period, weights \n
                                     must sum to one (as `np.float64`)
            demand_intercept         demand at a price of zero, a, in MWh \n
                                     (as `np.float64`)
            demand_slope             demand reduction per $/MWh, b, must be \n
                                     positive (as `np.float64`)
            import_intercept         imports at a price of zero, am, in MWh \n
                                     (as `np.float64`)
            import_slope             import increase per $/MWh, bm, must be \n
                                     positive (as `np.float64`)
            hydro_nuclear_available  must take hydro and nuclear supply \n
                                     available, in MWh (as `np.float64`)
            wind_capacity_factor     wind output per unit of wind_scale \n
                                     (as `np.float64`)
            solar_capacity_factor    solar output per unit of solar_scale \n
                                     (as `np.float64`)
            =======================  ===============================================

        Returns
        -------
        None

        Raises
        ------
            RepeatedRowError
                If there is more than one row for any period.
            ColumnDataTypeError
                If columns are not of the required type.
            MissingColumnError
                If a required column is missing.
            UnexpectedColumn
                There is a column that is not one of the columns described above.
            ColumnValues
                If there are inf or null values, negative weights, availabilities or capacity factors, slopes that
                are not strictly positive, or weights that don't sum to one.
            EmptyTable
                If no periods are given.
        """
        periods = periods.copy()

        if self.validate_inputs:
            self._validate_periods(periods)

        periods = periods.reset_index(drop=True)
        self._periods = periods
        self._next_variable_id = 0
        self._next_constraint_id = 0

        self._decision_variables['period'], self._variable_to_constraint_map['period']['period'] = \
            variable_ids.period_variables(periods, self._next_variable_id)
        self._next_variable_id = max(self._decision_variables['period']['variable_id']) + 1

        self._decision_variables['quantity'], self._variable_to_constraint_map['period']['quantity'], \
            self._variable_to_constraint_map['technology']['quantity'] = \
            variable_ids.quantities(periods, self._technologies, self._next_variable_id)
        self._next_variable_id = max(self._decision_variables['quantity']['variable_id']) + 1

        for constraint_group, create_constraints in [('demand_curve', market_constraints.demand_curve),
                                                     ('import_curve', market_constraints.import_curve),
                                                     ('energy_balance', market_constraints.energy_balance)]:
            rhs_and_type, variable_map = create_constraints(periods, self._next_constraint_id)
            self._market_constraints_rhs_and_type[constraint_group] = rhs_and_type
            self._constraint_to_variable_map['period'][constraint_group] = variable_map
            self._next_constraint_id = max(rhs_and_type['constraint_id']) + 1

        self._objective_function_components['consumer_surplus'] = \
            objective_function.consumer_surplus(self._decision_variables['period'], periods)
        self._objective_function_components['generation_cost'] = \
            objective_function.generation_cost(self._decision_variables['quantity'], periods, self._technologies)
        self._objective_function_components['import_cost'] = \
            objective_function.import_cost(self._decision_variables['period'], periods)

    def _validate_periods(self, periods):
        schema = dv.DataFrameSchema(name='periods', primary_keys=['period'], columns_summing_to_one=['weight'])
        schema.add_column(dv.SeriesSchema(name='period', data_type='label'))
        schema.add_column(dv.SeriesSchema(name='weight', data_type=np.float64, must_be_real_number=True,
                                          not_negative=True))
        schema.add_column(dv.SeriesSchema(name='demand_intercept', data_type=np.float64, must_be_real_number=True))
        schema.add_column(dv.SeriesSchema(name='demand_slope', data_type=np.float64, must_be_real_number=True,
                                          strictly_positive=True))
        schema.add_column(dv.SeriesSchema(name='import_intercept', data_type=np.float64, must_be_real_number=True))
        schema.add_column(dv.SeriesSchema(name='import_slope', data_type=np.float64, must_be_real_number=True,
                                          strictly_positive=True))
        for column in ['hydro_nuclear_available', 'wind_capacity_factor', 'solar_capacity_factor']:
            schema.add_column(dv.SeriesSchema(name=column, data_type=np.float64, must_be_real_number=True,
                                              not_negative=True))
        schema.validate(periods)

    @check.scale_not_negative
    def set_renewable_scales(self, wind_scale, solar_scale):
        """Set the installed wind and solar capacity used to limit renewable output at dispatch.

        Raises
        ------
            ModelBuildError
                If either scale is negative, infinite or not a number.
        """
        self.wind_scale = float(wind_scale)
        self.solar_scale = float(solar_scale)

    def _capacity_constraints(self):
        limits = capacity_constraints.technology_limits(self._periods, self._technologies, self.wind_scale,
                                                        self.solar_scale)
        return capacity_constraints.capacity(limits, self._next_constraint_id)

    @check.periods_set
    def dispatch(self):
        """Combines the elements of the nonlinear program and solves to find the welfare maximising allocation.

        Capacity constraints are created at this point from the current renewable scales. Each call creates its own
        solver, the market can be dispatched again after changing the scales.

        Returns
        -------
        ClearingResult
            If the solver status is 'Failed' only the status and message can be read from the result.

        Raises
        ------
            ModelBuildError
                If the periods have not been set.
        """
        capacity_rhs_and_type, capacity_variable_map = self._capacity_constraints()

        # Constraints defined on a period basis map to variables by period and variable type.
        constraints = pd.concat(list(self._constraint_to_variable_map['period'].values()))
        decision_variables = pd.concat(list(self._variable_to_constraint_map['period'].values()))
        constraints_lhs = [solver_interface.create_lhs(constraints, decision_variables, ['period', 'variable'])]
        constraints_rhs_and_type = [df.loc[:, ['constraint_id', 'type', 'rhs']] for df in
                                    self._market_constraints_rhs_and_type.values()]

        # Capacity constraints map to a single technology's quantity in a period.
        if not capacity_rhs_and_type.empty:
            decision_variables = pd.concat(list(self._variable_to_constraint_map['technology'].values()))
            constraints_lhs.append(solver_interface.create_lhs(capacity_variable_map, decision_variables,
                                                               ['period', 'technology']))
            constraints_rhs_and_type.append(capacity_rhs_and_type.loc[:, ['constraint_id', 'type', 'rhs']])

        si = solver_interface.InterfaceToSolver(self.solver_name, max_iterations=self.max_iterations,
                                                tolerance=self.tolerance,
                                                feasibility_tolerance=self.feasibility_tolerance)
        variable_definitions = pd.concat([df.loc[:, ['variable_id', 'lower_bound', 'upper_bound', 'type']] for df in
                                          self._decision_variables.values()])
        si.add_variables(variable_definitions)
        si.add_objective_function(pd.concat(list(self._objective_function_components.values())))
        si.add_constraints(pd.concat(constraints_lhs), pd.concat(constraints_rhs_and_type))

        logger.debug('Dispatching %d periods and %d technologies, wind scale %s, solar scale %s.',
                     len(self._periods.index), len(self._technologies.index), self.wind_scale, self.solar_scale)
        status = si.optimize()

        if status != solver_interface.SOLVED:
            return ClearingResult(status, message=si.message)

        period_values = self._decision_variables['period'].copy()
        period_values['value'] = si.get_optimal_values_of_decision_variables(period_values)
        quantity = self._decision_variables['quantity'].copy()
        quantity['quantity'] = si.get_optimal_values_of_decision_variables(quantity)
        quantity = quantity.loc[:, ['period', 'technology', 'quantity']]

        price = self._get_period_values(period_values, 'price')
        demand = self._get_period_values(period_values, 'demand')
        imports = self._get_period_values(period_values, 'imports')
        weights = self._periods.loc[:, ['period', 'weight']]

        average_price = pd.merge(price, weights, on='period')
        average_price = float((average_price['price'] * average_price['weight']).sum())

        return ClearingResult(status, message=si.message, weights=weights, price=price, demand=demand,
                              imports=imports, quantity=quantity, average_price=average_price,
                              total_cost=self._get_total_cost(quantity, imports))

    @staticmethod
    def _get_period_values(period_values, variable):
        values = period_values[period_values['variable'] == variable].loc[:, ['period', 'value']]
        values.columns = ['period', variable]
        return values.reset_index(drop=True)

    def _get_total_cost(self, quantity, imports):
        # Recalculated from the solution, independent of the sign convention used in the objective function.
        generation = pd.merge(quantity, self._technologies.loc[:, ['technology', 'linear_cost', 'quadratic_cost']],
                              on='technology')
        generation = pd.merge(generation, self._periods.loc[:, ['period', 'weight']], on='period')
        generation_cost = generation['weight'] * (
            generation['linear_cost'] * generation['quantity'] +
            generation['quadratic_cost'] * np.square(generation['quantity']) / 2.0)

        imports = pd.merge(imports, self._periods.loc[:, ['period', 'weight', 'import_intercept', 'import_slope']],
                           on='period')
        import_cost = imports['weight'] * np.square(imports['imports'] - imports['import_intercept']) / \
            (2.0 * imports['import_slope'])

        return float(generation_cost.sum() + import_cost.sum())


class ClearingResult:
    """The outcome of clearing a WelfareMarket.

    Numeric results can only be read when solver_status is 'Solved', on a 'Failed' result they raise
    ResultUnavailable. Tables are returned as copies.

    Examples
    --------

    >>> result = ClearingResult('Failed', message='Iteration limit reached')

    >>> result.solved
    False

    >>> result.average_price
    Traceback (most recent call last):
    ...
    welfare_market.markets.ResultUnavailable: average_price is not available, the solver status is 'Failed'.
    """

    def __init__(self, solver_status, message='', weights=None, price=None, demand=None, imports=None,
                 quantity=None, average_price=None, total_cost=None):
        self._solver_status = solver_status
        self._message = message
        self._weights = weights
        self._price = price
        self._demand = demand
        self._imports = imports
        self._quantity = quantity
        self._average_price = average_price
        self._total_cost = total_cost

    @property
    def solver_status(self):
        return self._solver_status

    @property
    def message(self):
        return self._message

    @property
    def solved(self):
        return self._solver_status == solver_interface.SOLVED

    def _check_solved(self, field):
        if not self.solved:
            raise ResultUnavailable("{} is not available, the solver status is '{}'.".format(field,
                                                                                            self._solver_status))

    @property
    def average_price(self):
        """Price averaged over the periods using the period weights, $/MWh."""
        self._check_solved('average_price')
        return self._average_price

    @property
    def total_cost(self):
        """Weighted generation cost plus import cost."""
        self._check_solved('total_cost')
        return self._total_cost

    @property
    def price(self):
        """pd.DataFrame with the columns period and price."""
        self._check_solved('price')
        return self._price.copy()

    @property
    def demand(self):
        """pd.DataFrame with the columns period and demand."""
        self._check_solved('demand')
        return self._demand.copy()

    @property
    def imports(self):
        """pd.DataFrame with the columns period and imports."""
        self._check_solved('imports')
        return self._imports.copy()

    @property
    def quantity(self):
        """pd.DataFrame with the columns period, technology and quantity."""
        self._check_solved('quantity')
        return self._quantity.copy()

    def period_summary(self):
        """Weight, price, demand and imports of each period in a single table.

        Returns
        -------
        pd.DataFrame

            ========  ================================================
            Columns:  Description:
            period    unique identifier of a representative period
            weight    relative frequency of the period
            price     clearing price, $/MWh (as `np.float64`)
            demand    quantity demanded, MWh (as `np.float64`)
            imports   quantity imported, MWh (as `np.float64`)
            ========  ================================================
        """
        self._check_solved('period_summary')
        summary = pd.merge(self._weights, self._price, on='period')
        summary = pd.merge(summary, self._demand, on='period')
        return pd.merge(summary, self._imports, on='period')


def clear_market(periods, technologies, wind_scale=DEFAULT_WIND_SCALE, solar_scale=DEFAULT_SOLAR_SCALE,
                 solver_name='trust-constr'):
    """Build a WelfareMarket for the periods and technologies and dispatch it.

    See WelfareMarket for the input formats.

    Returns
    -------
    ClearingResult
    """
    market = WelfareMarket(technologies, wind_scale=wind_scale, solar_scale=solar_scale, solver_name=solver_name)
    market.set_periods(periods)
    return market.dispatch()


class ResultUnavailable(Exception):
    """Raise for reading numeric results of a market that failed to clear."""
