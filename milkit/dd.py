"""
Implements Diverse Density with the noisy-or model (DD) and with
the average of the row probabilities (MDD)
"""
import numpy as np

from milkit.classifier import MIClassifier, register
from milkit.optimize import minimize
from milkit.util import instances_and_labels

ZERO = np.sqrt(np.finfo(float).eps)


@register('dd')
class DD(MIClassifier):
    """
    Searches for a target point t and per-dimension scales s such that

        P(row positive) = exp(-sum_k s_k^2 (x_k - t_k)^2)

    and a bag is positive if any of its rows is (noisy-or). The search
    starts once from every row of the largest positive bag(s).
    """

    def __init__(self, max_iters=200, verbose=False):
        """
        @param max_iters : optimizer iterations per run [default: 200]
        @param verbose : print optimization status messages
                         [default: False]
        """
        self.max_iters = max_iters
        self.verbose = verbose

        self.target_ = None
        self.scale_ = None
        self.nll_ = None

    def _likelihood(self, X, bag_index, positive):
        num_bags = len(positive)
        row_positive = positive[bag_index]

        def row_terms(params):
            t, s = params[0::2], params[1::2]
            diff = X - t
            p = np.exp(-np.dot(diff ** 2, s ** 2))
            q = np.maximum(1.0 - p, ZERO)
            return diff, p, q

        def bag_probs(q):
            log_q = np.bincount(bag_index, weights=np.log(q),
                                minlength=num_bags)
            return np.maximum(-np.expm1(log_q), ZERO)

        def objective(params):
            _, _, q = row_terms(params)
            nll = -np.sum(np.log(q[~row_positive]))
            nll -= np.sum(np.log(bag_probs(q)[positive]))
            return nll

        def gradient(params):
            diff, p, q = row_terms(params)
            P = bag_probs(q)
            coef = np.ones(num_bags)
            coef[positive] = -(1.0 - P[positive]) / P[positive]
            r = coef[bag_index] * p / q
            s = params[1::2]
            grad = np.empty_like(params)
            grad[0::2] = 2 * s ** 2 * np.dot(r, diff)
            grad[1::2] = -2 * s * np.dot(r, diff ** 2)
            return grad

        return objective, gradient, None

    def build_classifier(self, exemplars):
        self.check_data(exemplars, max_classes=2)
        X, _, sizes = instances_and_labels(exemplars)
        num_bags = len(sizes)
        bag_index = np.repeat(np.arange(num_bags), sizes)
        positive = (exemplars.class_values().astype(int) == 1)
        num_features = X.shape[1]

        objective, gradient, bounds = self._likelihood(X, bag_index, positive)

        if not np.any(positive):
            raise ValueError('%s needs at least one positive bag'
                             % type(self).__name__)
        largest = max(s for s, pos in zip(sizes, positive) if pos)
        starts = [X[bag_index == i] for i in range(num_bags)
                  if positive[i] and sizes[i] == largest]

        best = None
        for bag in starts:
            for row in bag:
                x0 = np.empty(2 * num_features)
                x0[0::2] = row
                x0[1::2] = 1.0
                result = minimize(objective, gradient, x0, bounds=bounds,
                                  max_iters=self.max_iters,
                                  verbose=self.verbose)
                if best is None or result.fun < best.fun:
                    best = result
                    self.mention('Smaller NLL found: %f' % result.fun)

        self.target_ = best.x[0::2]
        self.scale_ = best.x[1::2]
        self.nll_ = best.fun

    def _row_probs(self, exemplar):
        diff = exemplar.features() - self.target_
        return np.exp(-np.dot(diff ** 2, self.scale_ ** 2))

    def distribution_for_exemplar(self, exemplar):
        p = self._row_probs(exemplar)
        with np.errstate(divide='ignore'):
            p0 = np.exp(np.sum(np.log(1.0 - p)))
        return np.array([p0, 1.0 - p0])


@register('mdd')
class MDD(DD):
    """
    Diverse Density where a bag is as positive as its average row:

        P(row positive) = exp(-sum_k (x_k - t_k)^2 / s_k^2)
        P(bag positive) = mean_j P(row j positive)

    Here the scales divide the distances, and are kept positive.
    """

    def _likelihood(self, X, bag_index, positive):
        num_bags = len(positive)
        sizes = np.bincount(bag_index, minlength=num_bags).astype(float)

        def row_terms(params):
            t, s = params[0::2], params[1::2]
            diff = X - t
            p = np.exp(-np.dot(diff ** 2, 1.0 / s ** 2))
            mean_p = np.bincount(bag_index, weights=p,
                                 minlength=num_bags) / sizes
            B = np.where(positive, mean_p, 1.0 - mean_p)
            return diff, p, mean_p, np.maximum(B, ZERO)

        def objective(params):
            _, _, _, B = row_terms(params)
            return -np.sum(np.log(B))

        def gradient(params):
            diff, p, mean_p, B = row_terms(params)
            coef = np.where(positive, -1.0, 1.0) / B
            r = (coef / sizes)[bag_index] * p
            s = params[1::2]
            grad = np.empty_like(params)
            grad[0::2] = 2 * np.dot(r, diff) / s ** 2
            grad[1::2] = 2 * np.dot(r, diff ** 2) / s ** 3
            return grad

        bounds = [(None, None), (ZERO, None)] * X.shape[1]
        return objective, gradient, bounds

    def _row_probs(self, exemplar):
        diff = exemplar.features() - self.target_
        return np.exp(-np.dot(diff ** 2, 1.0 / self.scale_ ** 2))

    def distribution_for_exemplar(self, exemplar):
        p1 = np.mean(self._row_probs(exemplar))
        return np.array([1.0 - p1, p1])
