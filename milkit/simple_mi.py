"""
Implements SimpleMI: summarize every bag as a single row and
train a standard classifier on the summaries
"""
import numpy as np
from sklearn.base import clone
from sklearn.dummy import DummyClassifier

from milkit.classifier import MIClassifier, register


def minimax(features):
    """
    Per-column minimum and maximum, ignoring missing values;
    NaN for columns with no values
    """
    features = np.asarray(features, dtype=float)
    present = ~np.isnan(features)
    lo = np.where(present, features, np.inf).min(axis=0)
    hi = np.where(present, features, -np.inf).max(axis=0)
    lo[np.isinf(lo)] = np.nan
    hi[np.isinf(hi)] = np.nan
    return lo, hi


@register('simple_mi')
class SimpleMI(MIClassifier):
    """
    Applies a single-instance learner to one summary row per bag
    """
    ARITHMETIC = 1
    GEOMETRIC = 2

    def __init__(self, classifier=None, method=1, verbose=False):
        """
        @param classifier : a scikit-learn classifier trained on the
                            summary rows [default: prior-predicting
                            DummyClassifier]
        @param method : 1 for the per-dimension mean (or mode), 2 for
                        the centre of the per-dimension min and max
                        [default: 1]
        @param verbose : print status messages [default: False]
        """
        self.classifier = classifier
        self.method = method
        self.verbose = verbose

        self._classifier = None
        self._fill = None

    def summarize(self, exemplar):
        """
        The summary row of one bag
        """
        if self.method == SimpleMI.ARITHMETIC:
            return exemplar.mean_or_mode()
        elif self.method == SimpleMI.GEOMETRIC:
            lo, hi = minimax(exemplar.features())
            return (lo + hi) / 2.0
        raise ValueError('Unknown transformation method %s' % self.method)

    def transform(self, exemplars):
        """
        @return : an N-by-k array of summary rows
        """
        return np.vstack([self.summarize(ex) for ex in exemplars])

    def build_classifier(self, exemplars):
        self.check_data(exemplars)
        X = self.transform(exemplars)
        y = exemplars.class_values().astype(int)

        # Dimensions missing in a whole bag get the training average
        with np.errstate(invalid='ignore'):
            counts = np.sum(~np.isnan(X), axis=0)
            sums = np.nansum(X, axis=0)
        self._fill = np.where(counts > 0, sums / np.maximum(counts, 1), 0.0)
        X = self._fill_missing(X)

        if self.classifier is None:
            self._classifier = DummyClassifier(strategy='prior')
        else:
            self._classifier = clone(self.classifier)
        self.mention('Training %s on %d summary rows'
                     % (type(self._classifier).__name__, len(X)))
        self._classifier.fit(X, y)

    def _fill_missing(self, X):
        missing = np.isnan(X)
        if np.any(missing):
            X = np.where(missing, self._fill, X)
        return X

    def classify_exemplar(self, exemplar):
        X = self._fill_missing(self.summarize(exemplar).reshape((1, -1)))
        return float(self._classifier.predict(X)[0])
