"""
Implements multiple-instance logistic regression, under the
collective assumption (MILR) and with the bag log-odds taken as
the average of the row log-odds (MILRGEOM)
"""
import numpy as np
from scipy.special import expit

from milkit.classifier import MIClassifier, register
from milkit.optimize import minimize
from milkit.util import instances_and_labels, slices

_TINY = 1e-300


def _bag_moments(exemplars):
    """
    Per-bag means of the features and of their squares, ignoring
    missing values (NaN where a bag has no value in a dimension)
    """
    means, sq_means = [], []
    with np.errstate(invalid='ignore'):
        for ex in exemplars:
            features = ex.features()
            present = ~np.isnan(features)
            counts = np.sum(present, axis=0)
            values = np.where(present, features, 0.0)
            means.append(np.sum(values, axis=0) / counts)
            sq_means.append(np.sum(values ** 2, axis=0) / counts)
    return np.vstack(means), np.vstack(sq_means)


@register('milr')
class MILR(MIClassifier):
    """
    A bag is negative only if all of its rows are negative:

        P(negative bag) = prod_j 1 / (1 + exp(b0 + b . x_j))

    Coefficients are fit by penalized maximum likelihood on
    standardized data and reported in the original units. Missing
    values are replaced by the training mean of the bag means.
    """

    def __init__(self, ridge=1e-6, max_iters=200, verbose=False):
        """
        @param ridge : penalty on the squared coefficients (not the
                       intercept) [default: 1e-6]
        @param max_iters : optimizer iterations per run [default: 200]
        @param verbose : print optimization status messages
                         [default: False]
        """
        self.ridge = ridge
        self.max_iters = max_iters
        self.verbose = verbose

        self.coef_ = None
        self.intercept_ = None
        self._x_mean = None
        self._x_sd = None
        self._names = None

    def _standardize(self, exemplars):
        """
        Mean and standard deviation of the bag means, per dimension
        """
        bag_means, bag_sq_means = _bag_moments(exemplars)
        present = ~np.isnan(bag_means)
        n = np.sum(present, axis=0).astype(float)
        with np.errstate(invalid='ignore', divide='ignore'):
            mean = np.sum(np.where(present, bag_means, 0.0), axis=0) / n
            sd = np.sqrt(np.sum(np.where(present, bag_sq_means, 0.0), axis=0)
                         / (n - 1) - mean * mean * n / (n - 1))
        mean[~np.isfinite(mean)] = 0.0
        sd[~np.isfinite(sd)] = 0.0
        return mean, sd

    def _fill_missing(self, X):
        missing = np.isnan(X)
        if np.any(missing):
            X = np.where(missing, self._x_mean, X)
        return X

    def _likelihood(self, Z, sizes, positive):
        """
        @return : the penalized negative log-likelihood of the
                  standardized rows and its gradient
        """
        num_bags = len(sizes)
        bag_index = np.repeat(np.arange(num_bags), sizes)
        ridge = self.ridge

        def bag_sums(params):
            z = params[0] + np.dot(Z, params[1:])
            S = np.bincount(bag_index, weights=np.logaddexp(0.0, z),
                            minlength=num_bags)
            return z, np.maximum(S, _TINY)

        def objective(params):
            _, S = bag_sums(params)
            nll = np.sum(S[~positive])
            nll -= np.sum(np.log(-np.expm1(-S[positive])))
            nll += ridge * np.dot(params[1:], params[1:])
            return nll

        def gradient(params):
            z, S = bag_sums(params)
            coef = np.ones(num_bags)
            coef[positive] = -1.0 / np.expm1(S[positive])
            r = coef[bag_index] * expit(z)
            grad = np.empty_like(params)
            grad[0] = np.sum(r)
            grad[1:] = np.dot(r, Z) + 2 * ridge * params[1:]
            return grad

        return objective, gradient

    def build_classifier(self, exemplars):
        self.check_data(exemplars, max_classes=2)
        X, _, sizes = instances_and_labels(exemplars)
        positive = (exemplars.class_values().astype(int) == 1)
        self._names = [att.name for att in exemplars[0].attributes()]

        self._x_mean, self._x_sd = self._standardize(exemplars)
        self.mention('%d bags have class 0 and %d bags have class 1'
                     % (np.sum(~positive), np.sum(positive)))
        scale = np.where(self._x_sd != 0, self._x_sd, 1.0)
        shift = np.where(self._x_sd != 0, self._x_mean, 0.0)
        Z = (self._fill_missing(X) - shift) / scale

        objective, gradient = self._likelihood(Z, np.array(sizes), positive)
        x0 = np.zeros(Z.shape[1] + 1)
        x0[0] = np.log((np.sum(positive) + 1.0) / (np.sum(~positive) + 1.0))
        result = minimize(objective, gradient, x0, max_iters=self.max_iters,
                          verbose=self.verbose)
        self.mention(' -------------<Converged>--------------')

        # Back to the original attribute units
        self.coef_ = result.x[1:] / scale
        self.intercept_ = result.x[0] - np.dot(self.coef_, shift)

    def distribution_for_exemplar(self, exemplar):
        X = self._fill_missing(exemplar.features())
        z = self.intercept_ + np.dot(X, self.coef_)
        p0 = np.exp(-np.sum(np.logaddexp(0.0, z)))
        return np.array([p0, 1.0 - p0])

    def __str__(self):
        name = type(self).__name__
        if self.coef_ is None:
            return '%s: No model built yet.' % name
        lines = [name, '', 'Coefficients...', 'Variable      Coeff.']
        for att, coef in zip(self._names, self.coef_):
            lines.append('%s %12.4f' % (att, coef))
        lines.append('Intercept: %10.4f' % self.intercept_)
        lines.extend(['', 'Odds Ratios...', 'Variable         O.R.'])
        for att, coef in zip(self._names, self.coef_):
            lines.append('%s %12.4g' % (att, np.exp(coef)))
        return '\n'.join(lines)


@register('milr_geom')
class MILRGEOM(MILR):
    """
    The log-odds of a bag is the average log-odds of its rows,

        P(positive bag) = 1 / (1 + exp(-(b0 + b . mean_j x_j)))

    so the fitted model treats every class symmetrically.
    """

    def _likelihood(self, Z, sizes, positive):
        Z_bar = np.vstack([np.mean(Z[start:end], axis=0)
                           for start, end in slices(sizes)])
        sign = np.where(positive, -1.0, 1.0)
        ridge = self.ridge

        def objective(params):
            t = params[0] + np.dot(Z_bar, params[1:])
            nll = np.sum(np.logaddexp(0.0, sign * t))
            nll += ridge * np.dot(params[1:], params[1:])
            return nll

        def gradient(params):
            t = params[0] + np.dot(Z_bar, params[1:])
            r = sign * expit(sign * t)
            grad = np.empty_like(params)
            grad[0] = np.sum(r)
            grad[1:] = np.dot(r, Z_bar) + 2 * ridge * params[1:]
            return grad

        return objective, gradient

    def distribution_for_exemplar(self, exemplar):
        X = self._fill_missing(exemplar.features())
        p1 = expit(self.intercept_ + np.dot(np.mean(X, axis=0), self.coef_))
        return np.array([1.0 - p1, p1])
