"""
Quasi-Newton minimization of smooth objectives with
analytic gradients
"""
import sys

import numpy as np
from scipy.optimize import minimize as _scipy_minimize


class OptimizationResult(object):
    """
    Outcome of a minimization
    """

    def __init__(self, x, fun, converged, iterations):
        self.x = x
        self.fun = fun
        self.converged = converged
        self.iterations = iterations

    def __float__(self):
        return float(self.fun)

    def __repr__(self):
        return '<%s, %s, %s, %d>' % (self.x, self.fun, self.converged,
                                     self.iterations)


def minimize(objective, gradient, x0, bounds=None, max_iters=200,
             max_restarts=10, verbose=False):
    """
    Minimize the objective with L-BFGS-B, restarting from the last
    iterate while the iteration budget runs out

    @param objective : function of the parameter vector
    @param gradient : gradient of the objective
    @param x0 : starting point
    @param bounds : optional sequence of (min, max) pairs, None for
                    no bound in that direction
    @param max_iters : iterations per run [default: 200]
    @param max_restarts : extra runs allowed when a run hits
                          max_iters [default: 10]
    @param verbose : print status messages [default: False]
    @return : an OptimizationResult; if the last run still hits
              max_iters the result is not converged and a warning
              is printed to stderr regardless of verbose
    """
    x = np.asarray(x0, dtype=float).copy()
    iterations = 0
    result = None
    for run in range(max_restarts + 1):
        result = _scipy_minimize(objective, x, jac=gradient,
                                 method='L-BFGS-B', bounds=bounds,
                                 options={'maxiter': max_iters})
        x = result.x
        iterations += result.nit
        # status 1: iteration limit reached
        if result.status != 1:
            break
        if verbose:
            print('%d iterations finished, not enough!' % max_iters)

    converged = bool(result.success)
    if result.status == 1:
        print('Warning: Max iterations exceeded after %d restarts'
              % max_restarts, file=sys.stderr)
    elif verbose and not converged:
        print('Warning: optimization did not converge: %s'
              % result.message, file=sys.stderr)
    return OptimizationResult(x, float(result.fun), converged, iterations)
