import logging
import warnings

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.optimize import minimize, Bounds, LinearConstraint
from scipy.sparse.linalg import spsolve, MatrixRankWarning

logger = logging.getLogger(__name__)

SOLVED = 'Solved'
FAILED = 'Failed'

SOLVERS = ['trust-constr', 'SLSQP']

# Relative distance from a limit within which a constraint starts in the active set when polishing.
ACTIVE_SET_TOLERANCE = 1e-2
MAX_ACTIVE_SET_ITERATIONS = 50


class InterfaceToSolver:
    """A wrapper for scipy.optimize.minimize, allows interaction with a nonlinear solver using pd.DataFrames.

    The objective is separable quadratic, sum(linear * x + 0.5 * quadratic * x ** 2 + constant), and all constraints
    are linear, so the exact gradient and Hessian are passed to the solver. Constraints are held in a scipy.sparse
    matrix and the Hessian is a sparse diagonal, so the cost of a solve grows slowly with the number of periods.

    Parameters
    ----------
    solver_name : str
        'trust-constr', scipy's interior point (barrier) method, or 'SLSQP'.

    max_iterations : int
        Iteration limit passed to the solver, hitting it counts as a failed solve.

    tolerance : float
        Optimality and step tolerances passed to the solver.

    feasibility_tolerance : float
        Largest constraint or bound violation, relative to max(1, abs(rhs)), accepted in a solution.
    """

    def __init__(self, solver_name='trust-constr', max_iterations=5000, tolerance=1e-8, feasibility_tolerance=1e-6):
        if solver_name not in SOLVERS:
            raise ValueError("Solver '{}' not recognised.".format(solver_name))
        self.solver_name = solver_name
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.feasibility_tolerance = feasibility_tolerance

        self.variables = {}
        self.constraints = {}
        self._lower_bounds = np.zeros(0)
        self._upper_bounds = np.zeros(0)
        self._linear = np.zeros(0)
        self._quadratic = np.zeros(0)
        self._constant = 0.0
        self._constraint_matrix = None
        self._constraint_lower = None
        self._constraint_upper = None
        self._solution = None

        self.status = None
        self.message = ''
        self.iterations = None
        self.objective_value = None

    def add_variables(self, decision_variables):
        """Add decision variables to the model.

        Examples
        --------
        >>> decision_variables = pd.DataFrame({
        ...   'variable_id': [0, 1],
        ...   'lower_bound': [0.0, -np.inf],
        ...   'upper_bound': [6.0, np.inf],
        ...   'type': ['continuous', 'continuous']})

        >>> si = InterfaceToSolver()

        >>> si.add_variables(decision_variables)

        >>> print(si.variables)
        {0: 0, 1: 1}

        """
        if not (decision_variables['type'] == 'continuous').all():
            raise ValueError('The nonlinear solvers only support continuous variables.')
        # Map each variable_id to its position in the solution vector.
        self.variables = {variable_id: position for position, variable_id in
                          enumerate(decision_variables['variable_id'])}
        self._lower_bounds = decision_variables['lower_bound'].to_numpy(dtype=float)
        self._upper_bounds = decision_variables['upper_bound'].to_numpy(dtype=float)
        self._linear = np.zeros(len(self.variables))
        self._quadratic = np.zeros(len(self.variables))

    def add_objective_function(self, objective_function):
        """Add the objective function to the model, terms for the same variable are summed.

        Examples
        --------

        >>> decision_variables = pd.DataFrame({
        ...   'variable_id': [0, 1, 2],
        ...   'lower_bound': [0.0, 0.0, 0.0],
        ...   'upper_bound': [5.0, 5.0, 5.0],
        ...   'type': ['continuous', 'continuous', 'continuous']})

        >>> objective_function = pd.DataFrame({
        ...   'variable_id': [0, 2, 2],
        ...   'linear': [1.0, 2.0, -1.0],
        ...   'quadratic': [0.0, 0.5, 0.0],
        ...   'constant': [0.0, 1.0, 0.0]})

        >>> si = InterfaceToSolver()

        >>> si.add_variables(decision_variables)

        >>> si.add_objective_function(objective_function)

        >>> print(si.objective(np.array([1.0, 1.0, 2.0])))
        5.0

        """
        objective_function = objective_function.groupby('variable_id', as_index=False).agg(
            {'linear': 'sum', 'quadratic': 'sum', 'constant': 'sum'})
        positions = objective_function['variable_id'].map(self.variables).to_numpy(dtype=int)
        self._linear = np.zeros(len(self.variables))
        self._quadratic = np.zeros(len(self.variables))
        self._linear[positions] = objective_function['linear'].to_numpy(dtype=float)
        self._quadratic[positions] = objective_function['quadratic'].to_numpy(dtype=float)
        self._constant = float(objective_function['constant'].sum())

    def add_constraints(self, constraints_lhs, constraints_type_and_rhs):
        """Add constraints to the model.

        Examples
        --------
        >>> decision_variables = pd.DataFrame({
        ...   'variable_id': [0, 1, 2],
        ...   'lower_bound': [0.0, 0.0, 0.0],
        ...   'upper_bound': [5.0, 5.0, 10.0],
        ...   'type': ['continuous', 'continuous', 'continuous']})

        >>> constraints_lhs = pd.DataFrame({
        ...   'constraint_id': [1, 1, 2, 2],
        ...   'variable_id': [0, 1, 1, 2],
        ...   'coefficient': [1.0, 0.5, 1.0, 2.0]})

        >>> constraints_type_and_rhs = pd.DataFrame({
        ...   'constraint_id': [1, 2],
        ...   'type': ['<=', '='],
        ...   'rhs': [10.0, 20.0]})

        >>> si = InterfaceToSolver()

        >>> si.add_variables(decision_variables)

        >>> si.add_constraints(constraints_lhs, constraints_type_and_rhs)

        >>> print(si.constraint_matrix.toarray())
        [[1.  0.5 0. ]
         [0.  1.  2. ]]

        """
        if not constraints_type_and_rhs['type'].isin(['<=', '>=', '=']).all():
            raise ValueError("Constraint type not recognised should be one of '<=', '>=' or '='.")

        constraints_lhs = constraints_lhs.groupby(['constraint_id', 'variable_id'], as_index=False).agg(
            {'coefficient': 'sum'})
        self.constraints = {constraint_id: position for position, constraint_id in
                            enumerate(constraints_type_and_rhs['constraint_id'])}
        rows = constraints_lhs['constraint_id'].map(self.constraints).to_numpy(dtype=int)
        columns = constraints_lhs['variable_id'].map(self.variables).to_numpy(dtype=int)

        self._constraint_matrix = sparse.csr_matrix(
            (constraints_lhs['coefficient'].to_numpy(dtype=float), (rows, columns)),
            shape=(len(self.constraints), len(self.variables)))

        rhs = constraints_type_and_rhs['rhs'].to_numpy(dtype=float)
        constraint_type = constraints_type_and_rhs['type'].to_numpy()
        self._constraint_lower = np.where(constraint_type == '<=', -np.inf, rhs)
        self._constraint_upper = np.where(constraint_type == '>=', np.inf, rhs)

    @property
    def constraint_matrix(self):
        """The lhs coefficients as a scipy.sparse.csr_matrix, one row per constraint."""
        return self._constraint_matrix

    def objective(self, x):
        return float(np.dot(self._linear, x) + 0.5 * np.dot(self._quadratic, np.square(x)) + self._constant)

    def gradient(self, x):
        return self._linear + self._quadratic * x

    def hessian(self, x):
        return sparse.diags(self._quadratic, format='csr')

    def optimize(self):
        """Optimize the model and return the solver status, 'Solved' or 'Failed'.

        A solution is only accepted if scipy reports success and it satisfies every constraint and bound to within the
        feasibility tolerance. Iteration limits, infeasibility and numerical failures are all reported as 'Failed',
        the reason is kept in the message attribute.

        The interior point method stops with binding constraints slightly slack, so its solution is refined by
        solving the KKT system on the constraints active at that point. If no consistent active set is found it is
        refined with SLSQP instead, starting from the interior point solution.

        Examples
        --------
        >>> decision_variables = pd.DataFrame({
        ...   'variable_id': [0, 1],
        ...   'lower_bound': [0.0, 0.0],
        ...   'upper_bound': [np.inf, np.inf],
        ...   'type': ['continuous', 'continuous']})

        >>> objective_function = pd.DataFrame({
        ...   'variable_id': [0, 1],
        ...   'linear': [1.0, 2.0],
        ...   'quadratic': [1.0, 1.0],
        ...   'constant': [0.0, 0.0]})

        >>> constraints_lhs = pd.DataFrame({
        ...   'constraint_id': [0, 0],
        ...   'variable_id': [0, 1],
        ...   'coefficient': [1.0, 1.0]})

        >>> constraints_type_and_rhs = pd.DataFrame({
        ...   'constraint_id': [0],
        ...   'type': ['='],
        ...   'rhs': [3.0]})

        >>> si = InterfaceToSolver()

        >>> si.add_variables(decision_variables)

        >>> si.add_objective_function(objective_function)

        >>> si.add_constraints(constraints_lhs, constraints_type_and_rhs)

        >>> si.optimize()
        'Solved'

        >>> decision_variables['value'] = si.get_optimal_values_of_decision_variables(decision_variables)

        >>> print(decision_variables['value'].round(4).tolist())
        [2.0, 1.0]

        """
        matrix, lower, upper, lower_bounds, upper_bounds = self._presolve()

        if np.any(lower_bounds > upper_bounds):
            return self._set_status(False, None, 'A variable has a lower limit above its upper limit.', 0)

        bounds = Bounds(lower_bounds, upper_bounds)
        x0 = np.clip(np.zeros(len(self.variables)), lower_bounds, upper_bounds)

        if self.solver_name == 'trust-constr':
            constraints = []
            if matrix.shape[0] > 0:
                constraints.append(LinearConstraint(matrix, lower, upper))
            result = minimize(self.objective, x0, method='trust-constr', jac=self.gradient, hess=self.hessian,
                              bounds=bounds, constraints=constraints,
                              options={'maxiter': self.max_iterations, 'gtol': self.tolerance,
                                       'xtol': self.tolerance, 'barrier_tol': self.tolerance,
                                       'sparse_jacobian': True})
            x = result.x
            if result.success and np.all(np.isfinite(x)):
                polished = self.polish(x)
                if polished is not None:
                    x = polished
                else:
                    logger.debug('No consistent active set at the interior point solution, refining with SLSQP.')
                    result = self._minimize_slsqp(x, matrix, lower, upper, bounds)
                    x = result.x
        else:
            result = self._minimize_slsqp(x0, matrix, lower, upper, bounds)
            x = result.x

        return self._set_status(result.success, x, str(result.message), int(result.nit))

    def _set_status(self, success, x, message, iterations):
        self.message = message
        self.iterations = iterations
        violation = self.max_violation(x) if x is not None else np.inf

        if success and violation <= self.feasibility_tolerance:
            self.status = SOLVED
            self._solution = x
            self.objective_value = self.objective(x)
            logger.debug('%s solved in %d iterations, objective %.6g, max violation %.3g.',
                         self.solver_name, self.iterations, self.objective_value, violation)
        else:
            self.status = FAILED
            self._solution = None
            self.objective_value = None
            logger.warning('%s did not find a locally optimal solution after %d iterations: %s '
                           '(max violation %.3g).', self.solver_name, self.iterations, self.message, violation)
        return self.status

    def _minimize_slsqp(self, x0, matrix, lower, upper, bounds):
        # Equality and inequality rows go in separate groups, SLSQP handles them differently.
        constraints = []
        matrix = matrix.toarray()
        equality = lower == upper
        for rows in [equality, ~equality]:
            if rows.any():
                constraints.append(LinearConstraint(matrix[rows], lower[rows], upper[rows]))
        return minimize(self.objective, x0, method='SLSQP', jac=self.gradient, bounds=bounds,
                        constraints=constraints, options={'maxiter': self.max_iterations, 'ftol': self.tolerance})

    def polish(self, x):
        """Refine an approximate solution x by solving the KKT system on the constraints active at x.

        The objective is quadratic and the constraints linear, so once the binding constraints are known the optimum is
        the solution of one sparse linear system. Constraints are dropped from the active set when their multiplier has
        the wrong sign and added when they are violated, until neither happens.

        Examples
        --------
        >>> decision_variables = pd.DataFrame({
        ...   'variable_id': [0, 1],
        ...   'lower_bound': [0.0, 0.0],
        ...   'upper_bound': [2.0, np.inf],
        ...   'type': ['continuous', 'continuous']})

        >>> objective_function = pd.DataFrame({
        ...   'variable_id': [0, 1],
        ...   'linear': [-10.0, 0.0],
        ...   'quadratic': [1.0, 1.0],
        ...   'constant': [0.0, 0.0]})

        >>> constraints_lhs = pd.DataFrame({
        ...   'constraint_id': [0, 0],
        ...   'variable_id': [0, 1],
        ...   'coefficient': [1.0, 1.0]})

        >>> constraints_type_and_rhs = pd.DataFrame({
        ...   'constraint_id': [0],
        ...   'type': ['='],
        ...   'rhs': [5.0]})

        >>> si = InterfaceToSolver()

        >>> si.add_variables(decision_variables)

        >>> si.add_objective_function(objective_function)

        >>> si.add_constraints(constraints_lhs, constraints_type_and_rhs)

        >>> print(si.polish(np.array([1.998, 3.002])).round(6).tolist())
        [2.0, 3.0]

        Returns
        -------
        np.ndarray or None
            None if the KKT system is singular or the active set doesn't settle.
        """
        n = len(self.variables)
        # Bounds become identity rows, the single variable rows are already folded into them so the rows stay
        # linearly independent.
        matrix, lower, upper, lower_bounds, upper_bounds = self._presolve()
        matrix = sparse.vstack([matrix, sparse.identity(n, format='csr')], format='csr')
        lower = np.concatenate([lower, lower_bounds])
        upper = np.concatenate([upper, upper_bounds])
        equality = np.isfinite(lower) & (lower == upper)

        values = matrix @ x
        side = np.zeros(len(lower), dtype=int)
        side[_near(values, lower, ACTIVE_SET_TOLERANCE)] = -1
        side[_near(values, upper, ACTIVE_SET_TOLERANCE)] = 1
        side[equality] = 1
        quadratic = sparse.diags(self._quadratic)

        for _ in range(MAX_ACTIVE_SET_ITERATIONS):
            active = np.flatnonzero(side)
            rhs = np.where(side[active] > 0, upper[active], lower[active])
            if active.size > 0:
                active_rows = matrix[active]
                kkt = sparse.bmat([[quadratic, active_rows.T], [active_rows, None]], format='csc')
            else:
                kkt = quadratic.tocsc()
            with warnings.catch_warnings():
                # A singular system comes back as nan.
                warnings.simplefilter('ignore', MatrixRankWarning)
                try:
                    solution = np.atleast_1d(spsolve(kkt, np.concatenate([-self._linear, rhs])))
                except RuntimeError:
                    return None
            if not np.all(np.isfinite(solution)):
                return None
            x, multipliers = solution[:n], solution[n:]

            # Multipliers of active upper limits must be non negative, of active lower limits non positive.
            scale = max(1.0, np.max(np.abs(multipliers), initial=0.0))
            wrong_sign = (multipliers * side[active] < -self.feasibility_tolerance * scale) & ~equality[active]
            values = matrix @ x
            above = (side == 0) & (values - upper > self.feasibility_tolerance * _scale(upper))
            below = (side == 0) & (lower - values > self.feasibility_tolerance * _scale(lower))
            if not (wrong_sign.any() or above.any() or below.any()):
                return x
            side[active[wrong_sign]] = 0
            side[above] = 1
            side[below] = -1
        return None

    def _presolve(self):
        # Constraint rows on a single variable are folded into that variable's bounds. Returns the remaining rows, their
        # lower and upper limits, and the tightened bounds.
        lower_bounds = self._lower_bounds.copy()
        upper_bounds = self._upper_bounds.copy()
        if self._constraint_matrix is None:
            return sparse.csr_matrix((0, len(self.variables))), np.zeros(0), np.zeros(0), lower_bounds, upper_bounds

        matrix = self._constraint_matrix.copy()
        matrix.eliminate_zeros()
        row_length = np.diff(matrix.indptr)

        single = np.flatnonzero(row_length == 1)
        columns = matrix.indices[matrix.indptr[single]]
        coefficients = matrix.data[matrix.indptr[single]]
        row_lower = self._constraint_lower[single]
        row_upper = self._constraint_upper[single]
        np.maximum.at(lower_bounds, columns, np.where(coefficients > 0, row_lower, row_upper) / coefficients)
        np.minimum.at(upper_bounds, columns, np.where(coefficients > 0, row_upper, row_lower) / coefficients)

        multiple = np.flatnonzero(row_length > 1)
        return (matrix[multiple], self._constraint_lower[multiple], self._constraint_upper[multiple], lower_bounds,
                upper_bounds)

    def max_violation(self, x):
        """The largest violation of any constraint or bound by x, relative to max(1, abs(rhs))."""
        if not np.all(np.isfinite(x)):
            return np.inf
        violations = [self._relative_violation(x, self._lower_bounds, self._upper_bounds)]
        if self._constraint_matrix is not None:
            lhs = self._constraint_matrix @ x
            violations.append(self._relative_violation(lhs, self._constraint_lower, self._constraint_upper))
        return max(violations)

    @staticmethod
    def _relative_violation(values, lower, upper):
        below = np.where(np.isfinite(lower), lower - values, 0.0) / _scale(lower)
        above = np.where(np.isfinite(upper), values - upper, 0.0) / _scale(upper)
        return float(np.max(np.maximum(below, above), initial=0.0))

    def get_optimal_values_of_decision_variables(self, variable_definitions):
        """Get the optimal values for each decision variable.

        Raises
        ------
            ValueError
                If the model hasn't been solved successfully.
        """
        if self._solution is None:
            raise ValueError('No solution available, solver status is {}.'.format(self.status))
        values = variable_definitions['variable_id'].apply(lambda x: self._solution[self.variables[x]])
        return values

    def get_slack_in_constraints(self, constraints_type_and_rhs):
        """Get the slack values in each constraint.

        Slack is rhs - lhs for '<=' constraints and lhs - rhs for '>=' constraints, so it is positive when the
        constraint is not binding. For '=' constraints it is the residual rhs - lhs.

        Examples
        --------

        >>> decision_variables = pd.DataFrame({
        ...   'variable_id': [0, 1],
        ...   'lower_bound': [0.0, 0.0],
        ...   'upper_bound': [np.inf, np.inf],
        ...   'type': ['continuous', 'continuous']})

        >>> objective_function = pd.DataFrame({
        ...   'variable_id': [0, 1],
        ...   'linear': [1.0, 2.0],
        ...   'quadratic': [1.0, 1.0],
        ...   'constant': [0.0, 0.0]})

        >>> constraints_lhs = pd.DataFrame({
        ...   'constraint_id': [0, 0, 1],
        ...   'variable_id': [0, 1, 0],
        ...   'coefficient': [1.0, 1.0, 1.0]})

        >>> constraints_type_and_rhs = pd.DataFrame({
        ...   'constraint_id': [0, 1],
        ...   'type': ['=', '<='],
        ...   'rhs': [3.0, 10.0]})

        >>> si = InterfaceToSolver()

        >>> si.add_variables(decision_variables)

        >>> si.add_objective_function(objective_function)

        >>> si.add_constraints(constraints_lhs, constraints_type_and_rhs)

        >>> si.optimize()
        'Solved'

        >>> slack = si.get_slack_in_constraints(constraints_type_and_rhs)

        >>> round(slack[1], 4)
        8.0

        Raises
        ------
            ValueError
                If the model hasn't been solved successfully.
        """
        if self._solution is None:
            raise ValueError('No solution available, solver status is {}.'.format(self.status))
        lhs = self._constraint_matrix @ self._solution
        positions = constraints_type_and_rhs['constraint_id'].map(self.constraints).to_numpy(dtype=int)
        lhs = pd.Series(lhs[positions], index=constraints_type_and_rhs.index)
        slack = constraints_type_and_rhs['rhs'] - lhs
        slack = slack.where(constraints_type_and_rhs['type'] != '>=', -slack)
        return slack


def create_lhs(constraints, decision_variables, join_columns):
    """Combine constraints with general definitions of lhs with variables to give an explicit lhs definition.

    Both constraints and decision_variables can have a coefficient, the coefficient use in the actual lhs will
    be the product of the two coefficients.

    Examples
    --------

    >>> decision_variables = pd.DataFrame({
    ...   'variable_id': [0, 1, 2, 3],
    ...   'period': [1, 1, 2, 2],
    ...   'variable': ['price', 'demand', 'price', 'demand'],
    ...   'coefficient': [1.0, 1.0, 1.0, 1.0]})

    >>> constraints = pd.DataFrame({
    ...   'constraint_id': [0, 0, 1, 1],
    ...   'period': [1, 1, 2, 2],
    ...   'variable': ['demand', 'price', 'demand', 'price'],
    ...   'coefficient': [1.0, 0.5, 1.0, 2.0]})

    >>> lhs = create_lhs(constraints, decision_variables, ['period', 'variable'])

    >>> print(lhs)
       constraint_id  variable_id  coefficient
    0              0            1          1.0
    1              0            0          0.5
    2              1            3          1.0
    3              1            2          2.0

    Parameters
    ----------
    constraints : pd.DataFrame

        =============  ===============================================================
        Columns:       Description:
        constraint_id  the unique identifier of the constraint (as `np.int64`)
        join_columns   one or more columns defining the types of variables that should
                       be on the lhs
        coefficient    the constraint level contribution to the lhs coefficient (as `np.float64`)
        =============  ===============================================================

    decision_variables : pd.DataFrame

        =============  ===============================================================
        Columns:       Description:
        variable_id    the unique identifier of the variable (as `np.int64`)
        join_columns   one or more columns defining the types of variables that should
                       be on the lhs
        coefficient    the variable level contribution to the lhs coefficient (as `np.float64`)
        =============  ===============================================================

    Returns
    -------
    lhs : pd.DataFrame

        =============  ===============================================================
        Columns:       Description:
        constraint_id  the unique identifier of the constraint (as `np.int64`)
        variable_id    the unique identifier of the variable (as `np.int64`)
        coefficient    the constraint level contribution to the lhs coefficient (as `np.float64`)
        =============  ===============================================================
    """
    constraints = pd.merge(constraints, decision_variables, 'inner', on=join_columns)
    constraints['coefficient'] = constraints['coefficient_x'] * constraints['coefficient_y']
    lhs = constraints.loc[:, ['constraint_id', 'variable_id', 'coefficient']]
    return lhs


def _scale(limits):
    return np.maximum(1.0, np.abs(np.nan_to_num(limits)))


def _near(values, limits, tolerance):
    return np.isfinite(limits) & (np.abs(values - limits) <= tolerance * _scale(limits))
