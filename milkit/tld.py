"""
Implements the two-level distribution (TLD) classifier
"""
import numpy as np
from scipy.special import digamma, gammaln
from sklearn.utils import check_random_state

from milkit.classifier import MIClassifier, register
from milkit.optimize import minimize
from milkit.tld_simple import find_cutoff

ZERO = 1e-6

_BOUNDS = [(ZERO, None), (2.0 + ZERO, None), (ZERO, None), (None, None)]


class _BagStats(object):
    """
    Per-dimension means, effective sizes and sums of squared
    deviations of a list of bags
    """

    def __init__(self, exemplars):
        self.means = np.vstack([ex.mean_or_mode() for ex in exemplars])
        self.sums = np.vstack([ex.sums_of_weights() for ex in exemplars])
        self.variances = np.vstack([ex.variance() for ex in exemplars])
        self.sq_dev = np.maximum(self.variances * (self.sums - 1.0), 0.0)
        self.present = ~np.isnan(self.means)

    def initial_params(self, x):
        """
        Moment estimates of (a, b, w, m) for dimension x, used as the
        starting point of the first run
        """
        present = self.present[:, x]
        means = self.means[present, x]
        variances = self.variances[present, x]
        num = len(means)
        if num == 0:
            return np.array([1.0, 3.0, 1.0, 0.0])
        m = np.mean(means)
        mean_var = np.var(means, ddof=1) if num > 1 else 0.0
        var_mean = np.mean(variances)
        max_var = max(np.max(variances), 0.0)

        a = max_var if max_var > ZERO else 1.0
        # a / (b - 2) = E[sigma^2] and E[var(mu)] = w E[sigma^2]
        with np.errstate(divide='ignore', invalid='ignore'):
            b = a / var_mean + 2.0
            w = mean_var / var_mean
        if not np.isfinite(b) or b <= 2.0 + ZERO:
            b = 3.0
        if not np.isfinite(w) or w <= ZERO:
            w = 1.0
        return np.array([a, b, w, m])


def _negative_log_likelihood(params, n, x_bar, sq_dev):
    """
    Negative log-likelihood, per bag, of the bag statistics under the
    normal-inverse-gamma model with parameters (a, b, w, m); the
    constant n log(pi) / 2 is dropped
    """
    a, b, w, m = params
    one_nw = 1.0 + n * w
    denom = one_nw * (a + sq_dev) + n * (x_bar - m) ** 2
    return (0.5 * (b + n) * np.log(denom)
            - 0.5 * (b + n - 1.0) * np.log(one_nw)
            - gammaln(0.5 * (b + n)) + gammaln(0.5 * b)
            - 0.5 * b * np.log(a))


def _gradient(params, n, x_bar, sq_dev):
    a, b, w, m = params
    one_nw = 1.0 + n * w
    denom = one_nw * (a + sq_dev) + n * (x_bar - m) ** 2
    da = 0.5 * (b + n) * one_nw / denom - 0.5 * b / a
    db = (0.5 * (np.log(denom) - np.log(one_nw) - np.log(a))
          - 0.5 * (digamma(0.5 * (b + n)) - digamma(0.5 * b)))
    dw = (0.5 * (b + n) * (a + sq_dev) * n / denom
          - 0.5 * (b + n - 1.0) * n / one_nw)
    dm = n * (b + n) * (m - x_bar) / denom
    return np.array([np.sum(da), np.sum(db), np.sum(dw), np.sum(dm)])


@register('tld')
class TLD(MIClassifier):
    """
    Two-level distribution approach (Xu, 2003). Per dimension and per
    class, the rows of a bag are N(mu, sigma^2), and the bag
    parameters are themselves drawn from

        sigma^2 ~ Inv-Gamma(b / 2, a / 2)
        mu | sigma^2 ~ N(m, w sigma^2)

    Integrating mu and sigma^2 out gives the likelihood of a bag's
    mean and sum of squared deviations. A bag is classified by its
    log-likelihood ratio against a cut-off.

    Class value 0 plays the role of the "positive" group.
    """

    def __init__(self, run=1, use_empirical_cutoff=False, random_state=1,
                 max_iters=200, verbose=False):
        """
        @param run : number of optimization runs per dimension; extra
                     runs restart from the statistics of a random bag
                     [default: 1]
        @param use_empirical_cutoff : choose the cut-off that maximizes
                                      training accuracy instead of the
                                      log prior odds [default: False]
        @param random_state : seed or RandomState for the restarts
                              [default: 1]
        @param max_iters : optimizer iterations per run [default: 200]
        @param verbose : print optimization status messages
                         [default: False]
        """
        self.run = run
        self.use_empirical_cutoff = use_empirical_cutoff
        self.random_state = random_state
        self.max_iters = max_iters
        self.verbose = verbose

        self.params_pos_ = None
        self.params_neg_ = None
        self.cutoff_ = None
        self._names = None

    def _optimize(self, stats, x, params):
        present = stats.present[:, x]
        args = (stats.sums[present, x], stats.means[present, x],
                stats.sq_dev[present, x])
        if not np.any(present):
            return params, np.nan

        def objective(p):
            return np.sum(_negative_log_likelihood(p, *args))

        def gradient(p):
            return _gradient(p, *args)

        result = minimize(objective, gradient, params, bounds=_BOUNDS,
                          max_iters=self.max_iters, verbose=self.verbose)
        return result.x, result.fun

    def _restart(self, stats, x, best, other, random_state):
        """
        Starting point built from one random bag with more than one
        row; parameters that come out invalid are borrowed from the
        other class. None if there is no such bag.
        """
        eligible = np.flatnonzero((stats.sums[:, x] > 1.0)
                                  & stats.present[:, x])
        if len(eligible) == 0:
            return None
        i = eligible[random_state.randint(len(eligible))]
        a = stats.sq_dev[i, x] / (stats.sums[i, x] - 1.0)
        if a <= ZERO:
            a = other[0]
        m = stats.means[i, x]
        sq = (m - best[3]) ** 2
        with np.errstate(divide='ignore', invalid='ignore'):
            # b = a / Var + 2 with Var = sq / w
            b = a * best[2] / sq + 2.0
            # w = sq / Var with Var = a / (b - 2)
            w = sq * (best[1] - 2.0) / best[0]
        if b <= ZERO or not np.isfinite(b):
            b = other[1]
        if w <= ZERO or not np.isfinite(w):
            w = other[2]
        return np.array([a, b, w, m])

    def build_classifier(self, exemplars):
        self.check_data(exemplars, max_classes=2)
        random_state = check_random_state(self.random_state)
        pos = [ex for ex in exemplars if ex.class_value == 0]
        neg = [ex for ex in exemplars if ex.class_value != 0]
        if len(pos) == 0 or len(neg) == 0:
            raise ValueError('TLD needs bags of both classes')
        pos_stats, neg_stats = _BagStats(pos), _BagStats(neg)
        num_dims = pos_stats.means.shape[1]
        self._names = [att.name for att in exemplars[0].attributes()]

        self.params_pos_ = np.zeros((num_dims, 4))
        self.params_neg_ = np.zeros((num_dims, 4))
        for x in range(num_dims):
            self.mention('Dimension %d' % x)
            pos_start = pos_stats.initial_params(x)
            neg_start = neg_stats.initial_params(x)
            best_pos, best_neg = pos_start.copy(), neg_start.copy()
            pos_min = neg_min = np.inf
            for r in range(self.run):
                self.mention('Run %d' % r)
                params, fun = self._optimize(pos_stats, x, pos_start)
                if not np.isnan(fun) and fun < pos_min:
                    best_pos, pos_min = params, fun
                params, fun = self._optimize(neg_stats, x, neg_start)
                if not np.isnan(fun) and fun < neg_min:
                    best_neg, neg_min = params, fun

                if r + 1 < self.run:
                    pos_start = self._restart(pos_stats, x, best_pos,
                                              best_neg, random_state)
                    neg_start = self._restart(neg_stats, x, best_neg,
                                              best_pos, random_state)
                    if pos_start is None or neg_start is None:
                        break
            self.params_pos_[x] = best_pos
            self.params_neg_[x] = best_neg
            self.mention('Positive: a=%s, b=%s, w=%s, m=%s' % tuple(best_pos))
            self.mention('Negative: a=%s, b=%s, w=%s, m=%s' % tuple(best_neg))

        if self.use_empirical_cutoff:
            pos_ratios = [self.likelihood_ratio(*args) for args
                          in zip(pos_stats.sums, pos_stats.means,
                                 pos_stats.sq_dev)]
            neg_ratios = [self.likelihood_ratio(*args) for args
                          in zip(neg_stats.sums, neg_stats.means,
                                 neg_stats.sq_dev)]
            self.cutoff_ = find_cutoff(pos_ratios, neg_ratios)
        else:
            self.cutoff_ = -np.log(float(len(pos)) / len(neg))
        self.mention('Cut-off = %s' % self.cutoff_)

    def likelihood_ratio(self, n, x_bar, sq_dev):
        """
        Log-likelihood of the "positive" model minus that of the
        "negative" model; dimensions with no values are skipped

        @param n : per-dimension effective bag sizes
        @param x_bar : per-dimension bag means
        @param sq_dev : per-dimension sums of squared deviations
        """
        ratio = 0.0
        for x in np.flatnonzero(~np.isnan(x_bar)):
            args = (n[x], x_bar[x], sq_dev[x])
            ratio += (_negative_log_likelihood(self.params_neg_[x], *args)
                      - _negative_log_likelihood(self.params_pos_[x], *args))
        return float(ratio)

    def classify_exemplar(self, exemplar):
        n = exemplar.sums_of_weights()
        sq_dev = np.maximum(exemplar.variance() * (n - 1.0), 0.0)
        ratio = self.likelihood_ratio(n, exemplar.mean_or_mode(), sq_dev)
        return 0.0 if ratio > self.cutoff_ else 1.0

    def __str__(self):
        if self.params_pos_ is None:
            return 'TLD: No model built yet.'
        lines = ['TLD:']
        for name, pos, neg in zip(self._names, self.params_pos_,
                                  self.params_neg_):
            lines.append('Positive: (%s): a=%s, b=%s, w=%s, m=%s'
                         % ((name,) + tuple(pos)))
            lines.append('Negative: (%s): a=%s, b=%s, w=%s, m=%s'
                         % ((name,) + tuple(neg)))
        lines.append('Cut-off=%s' % self.cutoff_)
        return '\n'.join(lines)
