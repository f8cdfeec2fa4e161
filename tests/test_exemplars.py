"""
Unit tests for bag collections: grouping, folds and resampling
"""
import unittest
from collections import Counter

import numpy as np

from milkit.dataset import Attribute, Dataset, Instance
from milkit.exemplars import Exemplars, from_bags
from milkit.exceptions import (DuplicateIdError, IncompatibleRowError,
                               InvalidFoldError, SchemaError,
                               UnassignedClassError)

from toydata import alternating, ids, make_dataset, make_exemplars


def labelled(classes):
    return make_exemplars([(cls, [[float(i)]]) for i, cls in enumerate(classes)])


class TestsGrouping(unittest.TestCase):

    def test_rows_grouped_by_id(self):
        dataset = make_dataset([(0, [[1.0]]), (1, [[2.0]])])
        # Interleave a further row of the first bag
        dataset.add(Instance([0, 3.0, 0]))
        exemplars = Exemplars(dataset, 0)
        self.assertEqual(len(exemplars), 2)
        self.assertEqual(ids(exemplars), [0, 1])
        self.assertEqual(exemplars[0].num_instances, 2)
        self.assertEqual(exemplars[1].num_instances, 1)

    def test_new_bags_have_unit_weight(self):
        exemplars = alternating(4)
        self.assertTrue(np.all(exemplars.weights() == 1.0))

    def test_class_must_be_set(self):
        dataset = make_dataset([(0, [[1.0]])])
        dataset.class_index = -1
        with self.assertRaises(UnassignedClassError):
            Exemplars(dataset, 0)

    def test_id_must_be_nominal(self):
        dataset = make_dataset([(0, [[1.0]])])
        with self.assertRaises(SchemaError):
            Exemplars(dataset, 1)
        with self.assertRaises(SchemaError):
            Exemplars(dataset, 5)

    def test_missing_id_rejected(self):
        attributes = [Attribute.nominal('id', ['a', 'b']),
                      Attribute.numeric('x'),
                      Attribute.nominal('class', ['0', '1'])]
        dataset = Dataset('unnamed', attributes, class_index=2)
        dataset.add_values(['?', 1.0, '0'])
        dataset.add_values(['?', 2.0, '0'])
        with self.assertRaisesRegex(IncompatibleRowError, 'missing Id'):
            Exemplars(dataset, 0)

    def test_add_row_to_existing_bag(self):
        exemplars = alternating(4)
        exemplars.add(Instance([2, 7.0, 0]))
        self.assertEqual(len(exemplars), 4)
        self.assertEqual(exemplars[2].num_instances, 3)

    def test_add_duplicate_bag(self):
        exemplars = alternating(4)
        with self.assertRaises(DuplicateIdError):
            exemplars.add(exemplars[1])

    def test_add_new_bag(self):
        exemplars = alternating(4)
        other = alternating(6)
        exemplars.add(other[5])
        self.assertEqual(len(exemplars), 5)
        self.assertEqual(exemplars.last_exemplar.id_value, 5)

    def test_delete(self):
        exemplars = alternating(4)
        exemplars.delete(0)
        self.assertEqual(ids(exemplars), [1, 2, 3])
        # The id is free again
        exemplars.add(alternating(4)[0])
        self.assertEqual(len(exemplars), 4)

    def test_copy_is_independent(self):
        exemplars = alternating(4)
        copy = exemplars.copy()
        copy[0].weight = 5.0
        copy.delete(1)
        self.assertEqual(exemplars[0].weight, 1.0)
        self.assertEqual(len(exemplars), 4)

    def test_from_bags(self):
        exemplars = from_bags([[[1.0, 2.0]], [[3.0, 4.0], [5.0, 6.0]]], [0, 1])
        self.assertEqual(len(exemplars), 2)
        self.assertEqual(exemplars.num_attributes, 4)
        self.assertEqual(exemplars[1].features().shape, (2, 2))
        np.testing.assert_array_equal(exemplars.class_values(), [0, 1])


class TestsFolds(unittest.TestCase):

    def test_partition_completeness(self):
        for n in range(2, 13):
            exemplars = alternating(n)
            for k in range(2, n + 1):
                seen = []
                for i in range(k):
                    seen.extend(ids(exemplars.test_cv(k, i)))
                self.assertEqual(sorted(seen), list(range(n)))

    def test_fold_sizes(self):
        exemplars = alternating(11)
        for k in range(2, 12):
            sizes = [len(exemplars.test_cv(k, i)) for i in range(k)]
            expected = [11 // k + (1 if i < 11 % k else 0) for i in range(k)]
            self.assertEqual(sizes, expected)
            self.assertEqual(sum(sizes), 11)

    def test_train_is_complement(self):
        exemplars = alternating(10)
        for i in range(3):
            train = set(ids(exemplars.train_cv(3, i)))
            test = set(ids(exemplars.test_cv(3, i)))
            self.assertFalse(train & test)
            self.assertEqual(train | test, set(range(10)))

    def test_train_shuffled(self):
        exemplars = alternating(10)
        a = ids(exemplars.train_cv(2, 0, random_state=4))
        b = ids(exemplars.train_cv(2, 0, random_state=4))
        self.assertEqual(a, b)
        self.assertEqual(sorted(a), list(range(5, 10)))

    def test_invalid_folds(self):
        exemplars = alternating(4)
        with self.assertRaises(InvalidFoldError):
            exemplars.test_cv(1, 0)
        with self.assertRaises(InvalidFoldError):
            exemplars.train_cv(5, 0)
        with self.assertRaises(InvalidFoldError):
            exemplars.stratify(0)

    def test_stratify_blocks(self):
        exemplars = labelled([0] * 8 + [1] * 4)
        exemplars.stratify(4)
        for i in range(4):
            counts = Counter(ex.class_value for ex in exemplars.test_cv(4, i))
            self.assertEqual(counts[0], 2)
            self.assertEqual(counts[1], 1)

    def test_stratify_alternating(self):
        exemplars = alternating(10)
        exemplars.stratify(5)
        for i in range(5):
            counts = Counter(ex.class_value for ex in exemplars.test_cv(5, i))
            self.assertEqual(counts[0], 1)
            self.assertEqual(counts[1], 1)

    def test_stratify_keeps_bags(self):
        exemplars = labelled([1, 0, 0, 1, 1, 0, 1])
        exemplars.stratify(3)
        self.assertEqual(sorted(ids(exemplars)), list(range(7)))

    def test_stratify_proportions(self):
        random_state = np.random.RandomState(2)
        classes = random_state.randint(2, size=23)
        exemplars = labelled(classes)
        exemplars.randomize(random_state)
        exemplars.stratify(5)
        overall = np.mean(classes == 1)
        for i in range(5):
            fold = exemplars.test_cv(5, i)
            positives = sum(1 for ex in fold if ex.class_value == 1)
            self.assertLessEqual(abs(positives - overall * len(fold)), 1.0)


class TestsResampling(unittest.TestCase):

    def test_randomize_is_seeded_permutation(self):
        a = alternating(10)
        b = alternating(10)
        a.randomize(3)
        b.randomize(np.random.RandomState(3))
        self.assertEqual(ids(a), ids(b))
        self.assertEqual(sorted(ids(a)), list(range(10)))
        a.sort()
        self.assertEqual(ids(a), list(range(10)))

    def test_resample_determinism(self):
        exemplars = alternating(10)
        a = exemplars.resample(np.random.RandomState(7))
        b = exemplars.resample(np.random.RandomState(7))
        self.assertEqual(ids(a), ids(b))
        self.assertEqual(len(a), 10)

    def test_resample_with_weights(self):
        exemplars = alternating(10)
        for i, exemplar in enumerate(exemplars):
            exemplar.weight = 0.0 if i == 0 else float(i)
        a = exemplars.resample_with_weights(5)
        b = exemplars.resample_with_weights(5)
        self.assertEqual(ids(a), ids(b))
        self.assertEqual(len(a), 10)
        self.assertNotIn(0, ids(a))
        self.assertTrue(np.all(a.weights() == 1.0))

    def test_resample_equal_weights_copies(self):
        exemplars = alternating(6)
        resampled = exemplars.resample_with_weights(1)
        self.assertEqual(ids(resampled), ids(exemplars))

    def test_resample_nearly_equal_weights_copies(self):
        exemplars = alternating(6)
        for i, exemplar in enumerate(exemplars):
            exemplar.weight = 1.0 + i * 1e-12
        resampled = exemplars.resample_with_weights(1)
        self.assertEqual(ids(resampled), ids(exemplars))
        np.testing.assert_array_equal(resampled.weights(),
                                      exemplars.weights())

    def test_resample_negative_weight(self):
        exemplars = alternating(4)
        with self.assertRaises(ValueError):
            exemplars.resample_with_weights(1, weights=[-1.0, 1.0, 1.0, 1.0])


class TestsSchema(unittest.TestCase):

    def test_delete_feature(self):
        exemplars = make_exemplars([(0, [[1.0, 2.0]]), (1, [[3.0, 4.0]])],
                                   num_features=2)
        exemplars.delete_attribute_at(1)
        self.assertEqual(exemplars.num_attributes, 3)
        self.assertEqual(exemplars.class_index, 2)
        for exemplar in exemplars:
            self.assertEqual(exemplar.class_index, 2)
            np.testing.assert_array_equal(exemplar.features().shape, (1, 1))
        np.testing.assert_array_equal(exemplars[1].features(), [[4.0]])

    def test_delete_before_id(self):
        attributes = [Attribute.numeric('x'),
                      Attribute.nominal('id', ['a', 'b']),
                      Attribute.nominal('class', ['0', '1'])]
        dataset = Dataset('shifted', attributes, class_index=2)
        dataset.add_values([1.0, 'a', '0'])
        dataset.add_values([2.0, 'b', '1'])
        exemplars = Exemplars(dataset, 1)
        exemplars.delete_attribute_at(0)
        self.assertEqual(exemplars.id_index, 0)
        self.assertEqual(exemplars.class_index, 1)
        self.assertEqual(exemplars[1].id_index, 0)
        self.assertEqual(exemplars[1].features().shape, (1, 0))

    def test_delete_class_rejected(self):
        exemplars = alternating(2)
        with self.assertRaises(SchemaError):
            exemplars.delete_attribute_at(2)

    def test_summary(self):
        text = alternating(10).summary()
        self.assertIn('Number of bags: 10', text)
        self.assertIn('Number of instances: 20', text)
        self.assertIn('Number of bags in class 1: 5', text)

    def test_str(self):
        text = str(alternating(3))
        self.assertIn('There are totally 3 exemplars', text)
        self.assertIn('bag1; 1; 1.0; 2.0', text)


if __name__ == '__main__':
    unittest.main()
