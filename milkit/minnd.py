"""
Implements multiple-instance nearest neighbour with distributions
(MINND)
"""
import numpy as np

from milkit.classifier import MIClassifier, register
from milkit.exemplar import Exemplar

ZERO = 1e-45
RATE = 0.05
DECAY = 0.5
STOP = 1e-6


def kullback(mu1, mu2, var1, var2, change):
    """
    Kullback-Leibler distance from N(mu1, var1) to N(mu2, var2) with
    independent dimensions; the squared mean differences are scaled
    by the per-dimension weights `change`. Dimensions without a
    positive variance on both sides are skipped.
    """
    usable = (var1 > 0) & (var2 > 0)
    with np.errstate(divide='ignore', invalid='ignore'):
        terms = (np.log(np.sqrt(var2 / var1)) + var1 / (2.0 * var2)
                 + change * (mu1 - mu2) ** 2 / (2.0 * var2) - 0.5)
    return float(np.nansum(np.where(usable, terms, 0.0)))


def _subset(exemplar, rows):
    """
    A bag holding copies of the given rows; None if there are none
    """
    if len(rows) == 0:
        return None
    dataset = exemplar.instances.empty_copy()
    for row in rows:
        dataset.add(row)
    return Exemplar(dataset, exemplar.id_index)


def _moments(exemplar):
    means = exemplar.mean_or_mode()
    variances = exemplar.variance()
    variances[variances == 0.0] = ZERO
    return means, variances


@register('minnd')
class MINND(MIClassifier):
    """
    Nearest neighbour on bags viewed as distributions.

    Every bag is summarized by the per-dimension mean and variance of
    its (min/max scaled) rows, and a per-bag weight for every
    dimension is learnt by gradient descent so that weighted
    Euclidean distances between bag means separate the classes.
    Rows of non-zero class that look like class 0 are removed from
    the training bags as noise; test bags are cleansed the same way
    and classified by the Kullback-Leibler distance to the cleansed
    training bags.
    """

    def __init__(self, num_neighbours=1, num_training_cleansing=1,
                 num_testing_cleansing=1, verbose=False):
        """
        @param num_neighbours : number of nearest bags voting on a
                                prediction [default: 1]
        @param num_training_cleansing : number of nearest bags used to
                                        decide if a training row is
                                        noise [default: 1]
        @param num_testing_cleansing : number of nearest valid and noise
                                       summaries used to cleanse a test
                                       row [default: 1]
        @param verbose : print status messages [default: False]
        """
        self.num_neighbours = num_neighbours
        self.num_training_cleansing = num_training_cleansing
        self.num_testing_cleansing = num_testing_cleansing
        self.verbose = verbose

        self._columns = None
        self._numeric = None
        self._lo = None
        self._range = None
        self._means = None
        self._variances = None
        self._change = None
        self._classes = None
        self._weights = None
        self._num_classes = None
        self._valid_means = None
        self._valid_vars = None
        self._valid = None
        self._noise_means = None
        self._noise_vars = None
        self._noise = None

    def _scale(self, exemplar):
        """
        A copy of the bag with every numeric value mapped into [0, 1]
        using the training minima and maxima
        """
        copy = exemplar.copy()
        for row in copy:
            for j, i in enumerate(self._columns):
                if self._numeric[j] and not row.is_missing(i):
                    row.set_value(i, (row.value(i) - self._lo[j])
                                  / self._range[j])
        return copy

    def _row_features(self, row):
        return np.array([row.value(i) for i in self._columns])

    def _distances(self, x, means, variances, available):
        """
        Weighted distance of one row to every bag summary; missing
        values count as a unit squared difference
        """
        mult = np.where(variances > ZERO, variances, 1.0)
        with np.errstate(invalid='ignore'):
            diff_sq = (x - means) ** 2
        diff_sq[np.isnan(diff_sq)] = 1.0
        terms = self._change * mult * diff_sq
        dists = np.sum(terms[:, self._numeric], axis=1)
        dists[~available] = np.inf
        return dists

    def _find_weights(self, row, means, available):
        """
        Gradient descent on the dimension weights of one bag, so that
        the weighted distance to a bag of the same class approaches
        0 and to a bag of another class approaches sqrt(k - 1)
        """
        others = available.copy()
        others[row] = False
        active = self._variances[row] > 0.0
        if not np.any(others) or not np.any(active):
            return
        with np.errstate(invalid='ignore'):
            sq = (means[row] - means[others]) ** 2
        sq[np.isnan(sq)] = 0.0
        sq = sq[:, active]
        same = self._classes[others] == self._classes[row]
        y = np.where(same, 0.0, np.sqrt(len(self._columns) - 1.0))

        def distance(w):
            return np.sqrt(np.maximum(np.dot(sq, w), 0.0))

        def target(w):
            return 0.5 * np.sum((distance(w) - y) ** 2)

        def delta(w):
            f = distance(w)
            with np.errstate(divide='ignore', invalid='ignore'):
                coef = np.where(f != 0, y / f - 1.0, 0.0)
            return 0.5 * np.dot(coef, sq)

        rate = RATE
        w = self._change[row, active]
        result, new_result = np.inf, target(w)
        while result - new_result > STOP:
            old = w
            step = delta(old)
            w = old + rate * step
            result = new_result
            new_result = target(w)
            # Search back
            while new_result > result:
                rate *= DECAY
                if rate < ZERO:
                    w, new_result = old, result
                    break
                w = old + rate * step
                new_result = target(w)
        self._change[row, active] = w

    def _preprocess(self, exemplar, pos):
        """
        Split the rows of a training bag into those whose nearest
        training bags agree with its class and the rest (noise);
        bags of class 0 are kept whole
        """
        if int(exemplar.class_value) == 0:
            return exemplar, None
        select = min(self.num_training_cleansing, len(self._classes) - 1)
        available = np.ones(len(self._classes), dtype=bool)
        available[pos] = False
        valid, noise = [], []
        for row in exemplar:
            dists = self._distances(self._row_features(row), self._means,
                                    self._variances, available)
            votes = np.zeros(self._num_classes)
            for index in np.argsort(dists, kind='stable')[:max(select, 1)]:
                votes[int(self._classes[index])] += 1
            if int(exemplar.class_value) != np.argmax(votes):
                noise.append(row)
            else:
                valid.append(row)
        return _subset(exemplar, valid), _subset(exemplar, noise)

    def _cleanse(self, exemplar):
        """
        Keep the rows that lie at least as close to the valid training
        summaries as to the noise summaries; None if no row is kept
        """
        choose = min(self.num_testing_cleansing, len(self._classes))
        kept = []
        for row in exemplar:
            x = self._row_features(row)
            valid = np.sort(self._distances(x, self._valid_means,
                                            self._valid_vars, self._valid))
            noise = np.sort(self._distances(x, self._noise_means,
                                            self._noise_vars, self._noise))
            v = n = 0
            while v + n < choose:
                if valid[v] <= noise[n]:
                    v += 1
                else:
                    n += 1
            if v >= n:
                kept.append(row)
        return _subset(exemplar, kept)

    def build_classifier(self, exemplars):
        self.check_data(exemplars)
        first = exemplars[0]
        self._columns = [i for i in range(first.instances.num_attributes)
                         if i != first.id_index and i != first.class_index]
        self._numeric = np.array([att.is_numeric
                                  for att in first.attributes()], dtype=bool)
        self._num_classes = exemplars.num_classes
        num_bags = len(exemplars)
        num_dims = len(self._columns)

        X = np.vstack([ex.features() for ex in exemplars])
        with np.errstate(invalid='ignore'):
            present = ~np.isnan(X)
            lo = np.where(present, X, np.inf).min(axis=0)
            hi = np.where(present, X, -np.inf).max(axis=0)
            span = hi - lo
        self._lo = np.where(np.isfinite(lo), lo, 0.0)
        self._range = np.where(np.isfinite(span) & (span > 0), span, 1.0)

        scaled = [self._scale(ex) for ex in exemplars]
        moments = [_moments(ex) for ex in scaled]
        self._means = np.vstack([m for m, _ in moments])
        self._variances = np.vstack([v for _, v in moments])
        self._change = np.ones((num_bags, num_dims))
        self._classes = exemplars.class_values()
        self._weights = exemplars.weights()

        everything = np.ones(num_bags, dtype=bool)
        for z in range(num_bags):
            self._find_weights(z, self._means, everything)

        self._valid_means = np.full((num_bags, num_dims), np.nan)
        self._valid_vars = np.full((num_bags, num_dims), np.nan)
        self._noise_means = np.full((num_bags, num_dims), np.nan)
        self._noise_vars = np.full((num_bags, num_dims), np.nan)
        self._valid = np.zeros(num_bags, dtype=bool)
        self._noise = np.zeros(num_bags, dtype=bool)
        for x, exemplar in enumerate(scaled):
            valid, noise = self._preprocess(exemplar, x)
            if valid is not None:
                self._valid[x] = True
                self._valid_means[x], self._valid_vars[x] = _moments(valid)
            if noise is not None:
                self._noise[x] = True
                self._noise_means[x], self._noise_vars[x] = _moments(noise)
            kept = 0 if valid is None else valid.num_instances
            self.mention('Exemplar %d pre-processed: %d of %d rows kept; '
                         'class: %s' % (x, kept, exemplar.num_instances,
                                        self._classes[x]))

        for z in range(num_bags):
            if self._valid[z]:
                self._find_weights(z, self._valid_means, self._valid)

    def classify_exemplar(self, exemplar):
        scaled = self._scale(exemplar)
        # Variances before cleansing
        variances = scaled.variance()
        variances[variances == 0.0] = ZERO
        cleansed = self._cleanse(scaled)
        if cleansed is None:
            self.mention('Whole exemplar falls into ambiguous area!')
            return 1.0
        means = cleansed.mean_or_mode()

        dists = np.full(len(self._classes), np.inf)
        for i in np.flatnonzero(self._valid):
            dists[i] = kullback(means, self._valid_means[i], variances,
                                self._variances[i], self._change[i])
        votes = np.zeros(self._num_classes)
        neighbours = min(self.num_neighbours, len(self._classes))
        for index in np.argsort(dists, kind='stable')[:neighbours]:
            votes[int(self._classes[index])] += self._weights[index]
        return float(np.argmax(votes))
