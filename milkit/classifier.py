"""
Base class and name registry for multiple-instance classifiers
"""
import math

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin, clone

from milkit.exceptions import NonNominalClassError, StringAttributeError

_REGISTRY = {}


def register(name):
    """
    Class decorator that makes a classifier available through
    `by_name`
    """
    def decorator(cls):
        _REGISTRY[name.lower()] = cls
        return cls
    return decorator


def by_name(name, **params):
    """
    Instantiate a registered classifier

    @param name : registered name, e.g. 'milr' or 'simple_mi'
    @param params : constructor keyword arguments
    """
    try:
        cls = _REGISTRY[name.lower()]
    except KeyError:
        raise ValueError('Unknown classifier %s' % name)
    return cls(**params)


def names():
    return sorted(_REGISTRY)


def make_copies(model, num):
    """
    Unfitted copies of a classifier with the same parameters
    """
    if model is None:
        raise ValueError('No model classifier set')
    return [clone(model) for _ in range(num)]


class MIClassifier(ClassifierMixin, BaseEstimator):
    """
    A classifier that learns from and predicts whole bags.

    Subclasses implement `build_classifier` and at least one of
    `distribution_for_exemplar` and `classify_exemplar`; each default
    is defined in terms of the other.
    """

    def build_classifier(self, exemplars):
        """
        Train on a collection of bags

        @param exemplars : an Exemplars collection
        """
        raise NotImplementedError()

    def distribution_for_exemplar(self, exemplar):
        """
        @return : an array with one probability per class value
        """
        dist = np.zeros(exemplar.class_attribute.num_values)
        pred = self.classify_exemplar(exemplar)
        if not math.isnan(pred):
            dist[int(pred)] = 1.0
        return dist

    def classify_exemplar(self, exemplar):
        """
        @return : the index of the predicted class value, or NaN if
                  no class gets positive probability
        """
        dist = self.distribution_for_exemplar(exemplar)
        if dist is None:
            raise ValueError('Null distribution predicted')
        best, pred = 0.0, 0
        for i, p in enumerate(dist):
            if p > best:
                best, pred = p, i
        if best > 0:
            return float(pred)
        return float('nan')

    def fit(self, exemplars, y=None):
        """
        @param exemplars : an Exemplars collection (labels are taken
                           from the bags)
        """
        self.build_classifier(exemplars)
        return self

    def predict(self, exemplars):
        """
        @return : an array of predicted class indices, one per bag
        """
        return np.array([self.classify_exemplar(ex) for ex in exemplars])

    def predict_proba(self, exemplars):
        """
        @return : an n-by-c array of class distributions
        """
        return np.vstack([self.distribution_for_exemplar(ex)
                          for ex in exemplars])

    def mention(self, message):
        if getattr(self, 'verbose', False):
            print(message)

    def check_data(self, exemplars, max_classes=None):
        if not exemplars.class_attribute.is_nominal:
            raise NonNominalClassError('%s: nominal class, please.'
                                       % type(self).__name__)
        if exemplars.check_for_string_attributes():
            raise StringAttributeError('%s: cannot handle string attributes!'
                                       % type(self).__name__)
        if max_classes is not None and exemplars.num_classes > max_classes:
            raise ValueError('%s: can only handle %d-class problems'
                             % (type(self).__name__, max_classes))
