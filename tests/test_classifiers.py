"""
Unit tests for the classifier contract, the registry, the
optimizer and the individual algorithms
"""
import io
import math
import unittest
from contextlib import redirect_stderr

import numpy as np
from sklearn.base import clone
from sklearn.linear_model import LogisticRegression
from sklearn.neighbors import KNeighborsClassifier

import milkit
from milkit.classifier import MIClassifier, by_name, make_copies, names
from milkit.datagen import make_mi_sample
from milkit.dataset import Attribute, Dataset
from milkit.exceptions import StringAttributeError
from milkit.exemplars import Exemplars
from milkit.minnd import kullback
from milkit.optimize import minimize
from milkit.simple_mi import minimax
from milkit.tld_simple import find_cutoff

from toydata import FixedDistribution, alternating, make_exemplars, separable


def accuracy(classifier, exemplars):
    return np.mean(classifier.predict(exemplars) == exemplars.class_values())


def normal_bags(num_bags, centres, spreads, size=6, num_features=1,
                random_state=1):
    """
    Bags alternating between classes 0 and 1; the rows of a class c
    bag are drawn from N(centres[c], spreads[c]^2)
    """
    random_state = np.random.RandomState(random_state)
    bags = [(i % 2, random_state.normal(centres[i % 2], spreads[i % 2],
                                        size=(size, num_features)))
            for i in range(num_bags)]
    return make_exemplars(bags, num_features=num_features)


class TestsContract(unittest.TestCase):

    def test_registry(self):
        self.assertIsInstance(by_name('milr'), milkit.MILR)
        self.assertIsInstance(by_name('MI_Boost'), milkit.MIBoost)
        self.assertEqual(by_name('dd', max_iters=50).max_iters, 50)
        for name in ['simple_mi', 'mi_wrapper', 'milr', 'milr_geom', 'dd',
                     'mdd', 'mi_boost', 'tld', 'tld_simple', 'minnd',
                     'mi_rbf_network']:
            self.assertIn(name, names())
        with self.assertRaises(ValueError):
            by_name('no_such_classifier')

    def test_make_copies(self):
        copies = make_copies(milkit.MILR(ridge=0.5), 3)
        self.assertEqual(len(copies), 3)
        self.assertIsNot(copies[0], copies[1])
        self.assertTrue(all(c.ridge == 0.5 for c in copies))
        with self.assertRaises(ValueError):
            make_copies(None, 2)

    def test_classify_from_distribution(self):
        exemplar = alternating(2)[0]
        self.assertEqual(FixedDistribution([0.3, 0.7]).classify_exemplar(
            exemplar), 1.0)
        # Ties keep the first maximum
        self.assertEqual(FixedDistribution([0.5, 0.5]).classify_exemplar(
            exemplar), 0.0)
        self.assertTrue(math.isnan(
            FixedDistribution([0.0, 0.0]).classify_exemplar(exemplar)))

    def test_unimplemented_contract(self):
        with self.assertRaises(NotImplementedError):
            MIClassifier().build_classifier(alternating(2))

    def test_string_attributes_rejected(self):
        attributes = [Attribute.nominal('id', ['a']),
                      Attribute.string('note'),
                      Attribute.nominal('class', ['0', '1'])]
        dataset = Dataset('strings', attributes, class_index=2)
        dataset.add_values(['a', 'hello', '1'])
        with self.assertRaises(StringAttributeError):
            milkit.MILR().fit(Exemplars(dataset, 0))

    def test_two_class_only(self):
        exemplars = make_exemplars([(0, [[0.0]]), (1, [[1.0]])])
        exemplars.class_attribute.values = ('0', '1', '2')
        with self.assertRaises(ValueError):
            milkit.MILR().fit(exemplars)


class TestsOptimize(unittest.TestCase):

    def test_quadratic(self):
        target = np.array([1.0, -2.0, 3.0])
        result = minimize(lambda x: np.sum((x - target) ** 2),
                          lambda x: 2 * (x - target), np.zeros(3))
        np.testing.assert_array_almost_equal(result.x, target, decimal=5)
        self.assertTrue(result.converged)
        self.assertAlmostEqual(float(result), 0.0, places=8)

    def test_bounds(self):
        result = minimize(lambda x: np.sum((x + 1.0) ** 2),
                          lambda x: 2 * (x + 1.0), np.ones(2),
                          bounds=[(0.0, None), (None, None)])
        self.assertAlmostEqual(result.x[0], 0.0)
        self.assertAlmostEqual(result.x[1], -1.0, places=5)

    def test_restarts_when_out_of_iterations(self):
        def rosen(x):
            return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2

        def rosen_grad(x):
            return np.array([-2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
                             200 * (x[1] - x[0] ** 2)])

        x0 = np.array([-1.2, 1.0])
        with redirect_stderr(io.StringIO()):
            result = minimize(rosen, rosen_grad, x0, max_iters=5,
                              max_restarts=3)
        self.assertGreater(result.iterations, 5)
        self.assertLess(result.fun, rosen(x0))

    def test_warns_when_budget_exhausted(self):
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            result = minimize(lambda x: np.sum(np.exp(x) - x),
                              lambda x: np.exp(x) - 1.0, np.full(3, 8.0),
                              max_iters=1, max_restarts=0)
        self.assertFalse(result.converged)
        self.assertIn('Max iterations exceeded', stderr.getvalue())


class TestsAlgorithms(unittest.TestCase):

    def setUp(self):
        self.sample = make_mi_sample(30, [1.0, -1.0], max_bag_size=5,
                                     random_state=0)

    def check_distributions(self, classifier, exemplars):
        dists = classifier.predict_proba(exemplars)
        self.assertEqual(dists.shape, (len(exemplars), 2))
        self.assertTrue(np.all(dists >= 0))
        np.testing.assert_array_almost_equal(np.sum(dists, axis=1),
                                             np.ones(len(exemplars)))

    def test_all_registered_fit(self):
        for name in names():
            classifier = by_name(name)
            classifier.fit(self.sample)
            predictions = classifier.predict(self.sample)
            self.assertEqual(len(predictions), len(self.sample))
            self.assertTrue(set(predictions) <= {0.0, 1.0})

    def test_clone_keeps_params(self):
        classifier = milkit.MIBoost(max_iterations=3, discretize_bins=4)
        copy = clone(classifier)
        self.assertEqual(copy.get_params(), classifier.get_params())

    def test_simple_mi(self):
        classifier = milkit.SimpleMI(classifier=LogisticRegression(), method=1)
        classifier.fit(self.sample)
        self.assertEqual(classifier.transform(self.sample).shape, (30, 2))
        geometric = milkit.SimpleMI(classifier=KNeighborsClassifier(1),
                                    method=2).fit(separable())
        self.assertEqual(accuracy(geometric, separable()), 1.0)

    def test_minimax(self):
        lo, hi = minimax([[1.0, np.nan], [3.0, np.nan], [2.0, np.nan]])
        self.assertEqual(lo[0], 1.0)
        self.assertEqual(hi[0], 3.0)
        self.assertTrue(np.isnan(lo[1]))
        self.assertTrue(np.isnan(hi[1]))

    def test_mi_wrapper_prior(self):
        exemplars = make_exemplars([(0, [[0.0]] * 3), (0, [[0.0]]),
                                    (1, [[0.0]] * 2), (0, [[0.0]] * 5)])
        for method in [1, 2]:
            classifier = milkit.MIWrapper(method=method).fit(exemplars)
            # Every bag carries the same mass
            np.testing.assert_array_almost_equal(
                classifier.distribution_for_exemplar(exemplars[0]),
                [0.75, 0.25])

    def test_mi_wrapper_defaults_to_arithmetic(self):
        self.assertEqual(milkit.MIWrapper().method, milkit.MIWrapper.ARITHMETIC)
        exemplars = make_exemplars([(0, [[0.0]]), (1, [[5.0]])])
        classifier = milkit.MIWrapper(classifier=KNeighborsClassifier(1))
        classifier.fit(exemplars)
        # Two rows predict class 0 and one class 1
        test = make_exemplars([(0, [[0.2], [0.3], [4.8]])])[0]
        np.testing.assert_array_almost_equal(
            classifier.distribution_for_exemplar(test), [2 / 3.0, 1 / 3.0])

    def test_mi_wrapper_base(self):
        classifier = milkit.MIWrapper(classifier=LogisticRegression(),
                                      method=1).fit(self.sample)
        self.check_distributions(classifier, self.sample)

    def test_milr_separable(self):
        exemplars = separable()
        classifier = milkit.MILR().fit(exemplars)
        self.assertGreaterEqual(accuracy(classifier, exemplars), 0.9)
        self.assertGreater(classifier.coef_[0], 0)
        self.check_distributions(classifier, exemplars)

    def test_milr_sample(self):
        classifier = milkit.MILR().fit(self.sample)
        self.assertEqual(classifier.coef_.shape, (2,))
        self.check_distributions(classifier, self.sample)

    def test_milr_str(self):
        self.assertIn('No model', str(milkit.MILR()))
        classifier = milkit.MILR().fit(self.sample)
        self.assertIn('Odds Ratios', str(classifier))

    def test_milr_geom_is_logistic_on_bag_means(self):
        exemplars = normal_bags(40, [0.0, 1.0], [1.5, 1.5], size=4,
                                num_features=2)
        classifier = milkit.MILRGEOM(ridge=1e-8).fit(exemplars)
        means = np.vstack([ex.features().mean(axis=0) for ex in exemplars])
        labels = exemplars.class_values().astype(int)
        reference = LogisticRegression(C=1e8, tol=1e-10, max_iter=10000)
        reference.fit(means, labels)
        np.testing.assert_array_almost_equal(
            classifier.predict_proba(exemplars),
            reference.predict_proba(means), decimal=2)

    def test_milr_geom_missing_values(self):
        exemplars = normal_bags(20, [-2.0, 2.0], [0.5, 0.5], size=3)
        classifier = milkit.MILRGEOM().fit(exemplars)
        self.assertGreater(classifier.coef_[0], 0)
        test = make_exemplars([(0, [[np.nan], [3.0]])])[0]
        # The missing row is replaced by the mean of the bag means
        fill = np.mean([ex.features().mean() for ex in exemplars])
        p1 = classifier.distribution_for_exemplar(test)[1]
        t = classifier.intercept_ + classifier.coef_[0] * (fill + 3.0) / 2
        self.assertAlmostEqual(p1, 1.0 / (1.0 + np.exp(-t)), places=8)

    def test_dd_separable(self):
        exemplars = separable()
        classifier = milkit.DD().fit(exemplars)
        self.assertGreaterEqual(accuracy(classifier, exemplars), 0.8)
        self.assertAlmostEqual(classifier.target_[0], 3.0, delta=1.0)
        self.check_distributions(classifier, exemplars)

    def test_dd_needs_positive_bags(self):
        exemplars = make_exemplars([(0, [[0.0]]), (0, [[1.0]])])
        with self.assertRaises(ValueError):
            milkit.DD().fit(exemplars)

    def test_mdd(self):
        exemplars = normal_bags(20, [-2.0, 3.0], [0.3, 0.3], size=4)
        classifier = milkit.MDD().fit(exemplars)
        self.assertEqual(accuracy(classifier, exemplars), 1.0)
        self.assertAlmostEqual(classifier.target_[0], 3.0, delta=1.0)
        self.assertGreater(classifier.scale_[0], 0)
        self.check_distributions(classifier, exemplars)

    def test_mdd_needs_positive_bags(self):
        exemplars = make_exemplars([(0, [[0.0]]), (0, [[1.0]])])
        with self.assertRaisesRegex(ValueError, 'MDD'):
            milkit.MDD().fit(exemplars)

    def test_mi_boost(self):
        classifier = milkit.MIBoost(max_iterations=5).fit(self.sample)
        self.assertGreaterEqual(classifier.num_iterations, 1)
        self.assertLessEqual(classifier.num_iterations, 5)
        self.check_distributions(classifier, self.sample)

    def test_mi_boost_discretized(self):
        classifier = milkit.MIBoost(max_iterations=3,
                                    discretize_bins=5).fit(self.sample)
        self.check_distributions(classifier, self.sample)

    def test_mi_boost_needs_weights(self):
        with self.assertRaises(ValueError):
            milkit.MIBoost(classifier=KNeighborsClassifier()).fit(self.sample)

    def test_mi_boost_perfect_first_round(self):
        exemplars = alternating(6)
        classifier = milkit.MIBoost().fit(exemplars)
        self.assertEqual(classifier.num_iterations, 1)
        self.assertEqual(accuracy(classifier, exemplars), 1.0)

    def test_tld_simple(self):
        random_state = np.random.RandomState(1)
        bags = [(i % 2, random_state.normal(3.0 * (i % 2), 1.0, size=(6, 1)))
                for i in range(20)]
        exemplars = make_exemplars(bags)
        for empirical in [False, True]:
            classifier = milkit.TLDSimple(use_empirical_cutoff=empirical,
                                          run=2).fit(exemplars)
            self.assertGreaterEqual(accuracy(classifier, exemplars), 0.9)
        self.assertIn('Positive', str(classifier))

    def test_tld(self):
        exemplars = normal_bags(20, [0.0, 3.0], [1.0, 1.0])
        for empirical in [False, True]:
            classifier = milkit.TLD(use_empirical_cutoff=empirical,
                                    run=2).fit(exemplars)
            self.assertGreaterEqual(accuracy(classifier, exemplars), 0.9)
        self.assertEqual(classifier.params_pos_.shape, (1, 4))
        self.assertTrue(np.all(classifier.params_pos_[:, 1] > 2.0))
        self.assertIn('Positive', str(classifier))

    def test_tld_uses_spread(self):
        # Same centre, different within-bag spread
        exemplars = normal_bags(20, [0.0, 0.0], [0.2, 3.0], size=8)
        classifier = milkit.TLD().fit(exemplars)
        self.assertGreaterEqual(accuracy(classifier, exemplars), 0.9)

    def test_tld_needs_both_classes(self):
        exemplars = make_exemplars([(1, [[0.0]]), (1, [[1.0]])])
        with self.assertRaises(ValueError):
            milkit.TLD().fit(exemplars)

    def test_minnd(self):
        exemplars = normal_bags(10, [0.0, 1.0], [0.1, 0.1], size=3,
                                num_features=2)
        classifier = milkit.MINND().fit(exemplars)
        self.assertEqual(accuracy(classifier, exemplars), 1.0)
        test = make_exemplars([(0, [[0.95, 1.05], [1.0, 0.9]]),
                               (0, [[0.05, -0.1], [0.0, 0.1]])],
                              num_features=2)
        np.testing.assert_array_equal(classifier.predict(test), [1.0, 0.0])
        self.check_distributions(classifier, test)

    def test_kullback(self):
        self.assertEqual(kullback(np.zeros(1), np.zeros(1), np.ones(1),
                                  np.ones(1), np.ones(1)), 0.0)
        self.assertAlmostEqual(kullback(np.zeros(1), np.ones(1), np.ones(1),
                                        np.ones(1), np.ones(1)), 0.5)
        # Nominal dimensions (variance -1) are skipped
        self.assertEqual(kullback(np.zeros(1), np.ones(1), -np.ones(1),
                                  np.ones(1), np.ones(1)), 0.0)

    def test_mi_rbf_network(self):
        exemplars = separable()
        classifier = milkit.MIRBFNetwork(num_clusters=2).fit(exemplars)
        self.assertGreaterEqual(accuracy(classifier, exemplars), 0.9)
        transformed = classifier.transform(exemplars)
        self.assertEqual(len(transformed), len(exemplars))
        np.testing.assert_array_equal(transformed.class_values(),
                                      exemplars.class_values())
        memberships = transformed[0].features()
        self.assertEqual(memberships.shape[1], 2)
        np.testing.assert_array_almost_equal(
            np.sum(memberships, axis=1), np.ones(len(memberships)))
        self.check_distributions(classifier, exemplars)
        self.assertIn('MIRBFNetwork', str(classifier))

    def test_mi_rbf_network_few_rows(self):
        exemplars = make_exemplars([(0, [[0.0]]), (1, [[5.0]])])
        classifier = milkit.MIRBFNetwork().fit(exemplars)
        self.assertEqual(classifier.means_.shape, (2, 1))

    def test_find_cutoff(self):
        self.assertEqual(find_cutoff([3.0, 4.0], [1.0, 2.0]), 2.5)
        # Splitting at 1.0 only misclassifies the first-class 0.0
        cutoff = find_cutoff([0.0, 2.0, 3.0], [-1.0, 1.0])
        self.assertEqual(cutoff, 1.0)


if __name__ == '__main__':
    unittest.main()
