"""
Implements the MI wrapper: apply bag labels to the rows, train
a single-instance classifier and pool its row predictions
"""
import numpy as np
from sklearn.base import clone
from sklearn.dummy import DummyClassifier
from sklearn.utils.validation import has_fit_parameter

from milkit.classifier import MIClassifier, register
from milkit.util import base_distribution, instances_and_labels, normalize


@register('mi_wrapper')
class MIWrapper(MIClassifier):
    """
    Single-instance learning applied to MI data, with rows weighted so
    that every bag carries the same total mass
    """
    ARITHMETIC = 1
    GEOMETRIC = 2
    MIN_PROB = 0.001

    def __init__(self, classifier=None, method=1, verbose=False):
        """
        @param classifier : a scikit-learn classifier with predict_proba
                            [default: prior-predicting DummyClassifier]
        @param method : how the row distributions are pooled; 1 for the
                        arithmetic mean, 2 for the geometric mean
                        [default: 1]
        @param verbose : print status messages [default: False]
        """
        self.classifier = classifier
        self.method = method
        self.verbose = verbose

        self._classifier = None
        self._num_classes = None

    def build_classifier(self, exemplars):
        self.check_data(exemplars)
        if self.method not in (MIWrapper.ARITHMETIC, MIWrapper.GEOMETRIC):
            raise ValueError('Unknown pooling method %s' % self.method)
        self._num_classes = exemplars.num_classes
        X, y, _, weights = instances_and_labels(exemplars, weighted=True)

        if self.classifier is None:
            self._classifier = DummyClassifier(strategy='prior')
        else:
            self._classifier = clone(self.classifier)
        self.mention('Start training ...')
        if has_fit_parameter(self._classifier, 'sample_weight'):
            self._classifier.fit(X, y, sample_weight=weights)
        else:
            self._classifier.fit(X, y)

    def distribution_for_exemplar(self, exemplar):
        dists = base_distribution(self._classifier, exemplar.features(),
                                  self._num_classes)
        if self.method == MIWrapper.ARITHMETIC:
            dist = np.mean(dists, axis=0)
        else:
            dists = np.clip(dists, MIWrapper.MIN_PROB, 1 - MIWrapper.MIN_PROB)
            dist = np.exp(np.mean(np.log(dists), axis=0))
        return normalize(dist)
