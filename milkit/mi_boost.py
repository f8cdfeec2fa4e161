"""
Implements MIBoost: AdaBoost at the bag level, with the
bag-level error taken as the fraction of misclassified rows
"""
import numpy as np
from sklearn.preprocessing import KBinsDiscretizer
from sklearn.tree import DecisionTreeClassifier
from sklearn.utils.validation import has_fit_parameter

from milkit.classifier import MIClassifier, make_copies, register
from milkit.optimize import minimize
from milkit.util import instances_and_labels, normalize, slices


@register('mi_boost')
class MIBoost(MIClassifier):
    """
    Boosts a single-instance learner trained on rows that carry
    their bag's label and an equal share of their bag's weight
    """

    def __init__(self, classifier=None, max_iterations=10, discretize_bins=0,
                 verbose=False):
        """
        @param classifier : a scikit-learn classifier accepting
                            sample_weight [default: decision stump]
        @param max_iterations : maximum number of boosting rounds
                                [default: 10]
        @param discretize_bins : if positive, discretize every feature
                                 into this many equal-width bins
                                 [default: 0]
        @param verbose : print boosting status messages [default: False]
        """
        self.classifier = classifier
        self.max_iterations = max_iterations
        self.discretize_bins = discretize_bins
        self.verbose = verbose

        self._models = None
        self._betas = None
        self._discretizer = None
        self._num_classes = None

    def _transform(self, X):
        if self._discretizer is None:
            return X
        return self._discretizer.transform(X)

    def build_classifier(self, exemplars):
        self.check_data(exemplars, max_classes=2)
        base = self.classifier
        if base is None:
            base = DecisionTreeClassifier(max_depth=1)
        if not has_fit_parameter(base, 'sample_weight'):
            raise ValueError('Base classifier cannot handle weighted rows!')
        self._num_classes = exemplars.num_classes

        X, y, sizes = instances_and_labels(exemplars)
        sizes = np.array(sizes, dtype=float)
        num_bags = float(len(sizes))
        sum_ni = np.sum(sizes)
        bag_weights = np.full(len(sizes), sum_ni / num_bags)

        if self.discretize_bins > 0:
            self._discretizer = KBinsDiscretizer(n_bins=self.discretize_bins,
                                                 encode='ordinal',
                                                 strategy='uniform')
            X = self._discretizer.fit_transform(X)
        else:
            self._discretizer = None

        models = make_copies(base, self.max_iterations)
        self._models = []
        self._betas = []
        for m, model in enumerate(models):
            self.mention('\nIteration %d' % m)
            row_weights = np.repeat(bag_weights / sizes, sizes.astype(int))
            model.fit(X, y, sample_weight=row_weights)
            self._models.append(model)

            wrong = (model.predict(X).astype(int) != y)
            errors = np.array([np.mean(wrong[slice(*bidx)])
                               for bidx in slices(sizes.astype(int))])
            perfect = np.all(errors <= 0.5)
            too_wrong = np.all(errors >= 0.5)
            if perfect or too_wrong:
                self.mention('No errors' if perfect else 'Errors out of range!')
                self._betas.append(1.0 if m == 0 else 0.0)
                break

            signs = 2.0 * errors - 1.0
            weights = bag_weights

            def objective(x):
                return np.sum(weights * np.exp(x[0] * signs))

            def gradient(x):
                return np.array([np.sum(weights * signs * np.exp(x[0] * signs))])

            result = minimize(objective, gradient, np.zeros(1),
                              verbose=self.verbose)
            beta = result.x[0]
            self.mention('c = %s' % beta)
            if np.isinf(beta) or beta <= 0:
                self.mention('Errors out of range!')
                self._betas.append(1.0 if m == 0 else 0.0)
                break
            self._betas.append(beta)

            bag_weights = bag_weights * np.exp(beta * signs)
            bag_weights = sum_ni * bag_weights / np.sum(bag_weights)

        self._betas = np.array(self._betas)

    @property
    def num_iterations(self):
        return len(self._betas)

    def distribution_for_exemplar(self, exemplar):
        X = self._transform(exemplar.features())
        n = float(len(X))
        rt = np.zeros(self._num_classes)
        for model, beta in zip(self._models, self._betas):
            preds = model.predict(X).astype(int)
            np.add.at(rt, preds, beta / n)
        return normalize(np.exp(rt))
