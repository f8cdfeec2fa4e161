"""
Implements a simplified two-level distribution (TLD) classifier
"""
import numpy as np
from sklearn.utils import check_random_state

from milkit.classifier import MIClassifier, register
from milkit.optimize import minimize

ZERO = 1e-12


class _Group(object):
    """
    Per-dimension bag statistics of the bags of one class
    """

    def __init__(self, exemplars):
        self.means = np.vstack([ex.mean_or_mode() for ex in exemplars])
        self.sums = np.vstack([ex.sums_of_weights() for ex in exemplars])
        variances = np.vstack([ex.variance() for ex in exemplars])
        variances[variances <= 0.0] = 0.0

        present = ~np.isnan(self.means)
        multi = present & (self.sums > 1) & (variances > ZERO)
        with np.errstate(divide='ignore', invalid='ignore'):
            sigma_sq = np.sum(np.where(multi, variances * (self.sums - 1.0)
                                       / self.sums, 0.0), axis=0)
            inv_n = np.sum(np.where(multi, 1.0 / self.sums, 0.0), axis=0)
            eff_num = np.sum(multi, axis=0).astype(float)
            # Bags with a single row use the average of the others
            self.sigma_sq = sigma_sq / (eff_num - inv_n)
            eff_num += np.sum(present & ~multi, axis=0)

            means = np.where(present, self.means, 0.0)
            self.mean_of_means = np.sum(means, axis=0) / eff_num
            self.var_of_means = (np.sum(means ** 2, axis=0) / (eff_num - 1.0)
                                 - self.mean_of_means ** 2 * eff_num
                                 / (eff_num - 1.0))
        self.sigma_sq[~np.isfinite(self.sigma_sq)] = 0.0


def _log_likelihood_terms(w, m, sigma_sq, n, x_bar):
    denom = w * n + sigma_sq
    return np.log(denom) + n * (m - x_bar) ** 2 / denom


@register('tld_simple')
class TLDSimple(MIClassifier):
    """
    Models, per dimension and per class, the bag means as drawn from
    N(m, w + sigma^2 / n), where n is the bag's effective size and
    sigma^2 the pooled within-bag variance. A bag is classified by
    comparing its log-likelihood ratio against a cut-off.

    Class value 0 plays the role of the "positive" group.
    """

    def __init__(self, run=1, use_empirical_cutoff=False, random_state=1,
                 max_iters=200, verbose=False):
        """
        @param run : number of optimization runs per dimension and
                     class; extra runs restart from a random bag's mean
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
        self.sigma_sq_pos_ = None
        self.sigma_sq_neg_ = None
        self.cutoff_ = None

    def _fit_dimension(self, group, x, random_state):
        n = group.sums[:, x]
        x_bar = group.means[:, x]
        present = ~np.isnan(x_bar)
        n, x_bar = n[present], x_bar[present]
        sigma_sq = group.sigma_sq[x]
        best, best_val = np.array([1.0, 0.0]), np.inf
        if len(x_bar) == 0:
            return best

        def objective(params):
            return np.sum(_log_likelihood_terms(params[0], params[1],
                                                sigma_sq, n, x_bar))

        def gradient(params):
            w, m = params
            denom = w * n + sigma_sq
            diff = m - x_bar
            return np.array([np.sum(n / denom - (n * diff / denom) ** 2),
                             np.sum(2.0 * n * diff / denom)])

        w = group.var_of_means[x]
        if not w > ZERO:
            w = 1.0
        params = np.array([w, group.mean_of_means[x]])
        for _ in range(self.run):
            result = minimize(objective, gradient, params,
                              bounds=[(ZERO, None), (None, None)],
                              max_iters=self.max_iters, verbose=self.verbose)
            if not np.isnan(result.fun) and result.fun < best_val:
                best, best_val = result.x, result.fun
            # Restart from the mean of a random bag
            m = x_bar[random_state.randint(len(x_bar))]
            params = np.array([max((m - result.x[1]) ** 2, ZERO), m])
        return best

    def build_classifier(self, exemplars):
        self.check_data(exemplars, max_classes=2)
        random_state = check_random_state(self.random_state)
        pos = [ex for ex in exemplars if ex.class_value == 0]
        neg = [ex for ex in exemplars if ex.class_value != 0]
        if len(pos) == 0 or len(neg) == 0:
            raise ValueError('TLDSimple needs bags of both classes')
        pos_group, neg_group = _Group(pos), _Group(neg)
        num_dims = pos_group.means.shape[1]

        self.sigma_sq_pos_ = pos_group.sigma_sq
        self.sigma_sq_neg_ = neg_group.sigma_sq
        self.params_pos_ = np.zeros((num_dims, 2))
        self.params_neg_ = np.zeros((num_dims, 2))
        for x in range(num_dims):
            self.mention('Dimension %d' % x)
            self.params_pos_[x] = self._fit_dimension(pos_group, x,
                                                      random_state)
            self.params_neg_[x] = self._fit_dimension(neg_group, x,
                                                      random_state)

        if self.use_empirical_cutoff:
            pos_ratios = [self.likelihood_ratio(n, x_bar) for n, x_bar
                          in zip(pos_group.sums, pos_group.means)]
            neg_ratios = [self.likelihood_ratio(n, x_bar) for n, x_bar
                          in zip(neg_group.sums, neg_group.means)]
            self.cutoff_ = find_cutoff(pos_ratios, neg_ratios)
        else:
            self.cutoff_ = -np.log(float(len(pos)) / len(neg))
        self.mention('Cut-off = %s' % self.cutoff_)

    def likelihood_ratio(self, n, x_bar):
        """
        Log-likelihood of the "positive" model minus that of the
        "negative" model; dimensions with no values are skipped

        @param n : per-dimension effective bag sizes
        @param x_bar : per-dimension bag means
        """
        present = ~np.isnan(x_bar)
        n, x_bar = n[present], x_bar[present]
        pos = self.params_pos_[present]
        neg = self.params_neg_[present]
        llp = _log_likelihood_terms(pos[:, 0], pos[:, 1],
                                    self.sigma_sq_pos_[present], n, x_bar)
        lln = _log_likelihood_terms(neg[:, 0], neg[:, 1],
                                    self.sigma_sq_neg_[present], n, x_bar)
        return float(np.sum(lln) - np.sum(llp))

    def classify_exemplar(self, exemplar):
        ratio = self.likelihood_ratio(exemplar.sums_of_weights(),
                                      exemplar.mean_or_mode())
        return 0.0 if ratio > self.cutoff_ else 1.0

    def __str__(self):
        lines = ['TLDSimple:']
        for x, (pos, neg) in enumerate(zip(self.params_pos_,
                                           self.params_neg_)):
            lines.append('Dimension %d' % x)
            lines.append('Positive: sigma^2=%s, w=%s, m=%s'
                         % (self.sigma_sq_pos_[x], pos[0], pos[1]))
            lines.append('Negative: sigma^2=%s, w=%s, m=%s'
                         % (self.sigma_sq_neg_[x], neg[0], neg[1]))
        return '\n'.join(lines)


def find_cutoff(pos, neg):
    """
    The split between the two sets of log-likelihood ratios that
    classifies the most bags correctly (ratios above the split count
    as the first class); ties go to the split closest to zero
    """
    pos = np.sort(pos)
    neg = np.sort(neg)
    num_pos, num_neg = len(pos), len(neg)
    n = 0
    first_correct = 0.0
    second_correct = float(num_pos)
    while n < num_neg and pos[0] >= neg[n]:
        n += 1
        first_correct += 1
    if n >= num_neg:
        # Totally separate
        return (neg[-1] + pos[0]) / 2.0

    p = 0
    cutoff = None
    max_correct, min_dist = 0.0, np.inf
    while p < num_pos and n < num_neg:
        if pos[p] >= neg[n]:
            first_correct += 1
            split = neg[n]
            n += 1
        else:
            second_correct -= 1
            split = pos[p]
            p += 1
        correct = first_correct + second_correct
        if (correct > max_correct
                or (correct == max_correct and abs(split) < min_dist)):
            max_correct = correct
            cutoff = split
            min_dist = abs(split)
    return cutoff
