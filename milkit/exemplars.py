"""
An ordered collection of bags sharing one schema, with the
partitioning and resampling used by cross-validation
"""
from collections.abc import Sequence

import numpy as np
from sklearn.utils import check_random_state

from milkit.dataset import Attribute, Dataset, Instance
from milkit.exemplar import Exemplar
from milkit.exceptions import (DuplicateIdError, InvalidFoldError,
                               SchemaError, UnassignedClassError)


class Exemplars(Sequence):
    """
    Holds an ordered set of bags built by grouping the rows of a
    dataset on the value of its id attribute
    """

    def __init__(self, dataset, id_index=0):
        """
        @param dataset : a Dataset with its class index set
        @param id_index : index of the nominal attribute whose
                          value identifies the bag of each row
                          [default: 0]
        """
        if dataset.class_index < 0:
            raise UnassignedClassError('Class index negative '
                                       '(class not set yet)!')
        if not 0 <= id_index < dataset.num_attributes:
            raise SchemaError('ID index is wrong!')
        if not dataset.attribute(id_index).is_nominal:
            raise SchemaError('ID attribute %s is not nominal'
                              % dataset.attribute(id_index).name)
        self._header = dataset.empty_copy()
        self._id_index = id_index
        self._exemplars = []
        self._by_id = {}
        for row in dataset:
            self.add_instance(row)

    def empty_copy(self):
        """
        A collection with the same schema and no bags
        """
        exemplars = Exemplars.__new__(Exemplars)
        exemplars._header = self._header.empty_copy()
        exemplars._id_index = self._id_index
        exemplars._exemplars = []
        exemplars._by_id = {}
        return exemplars

    def copy(self):
        """
        Copies every bag; attribute objects are shared
        """
        exemplars = self.empty_copy()
        for exemplar in self._exemplars:
            exemplars._append(exemplar.copy())
        return exemplars

    def subset(self, first, count):
        """
        Copy of `count` bags starting at `first`
        """
        if first < 0 or first + count > len(self):
            raise ValueError('Parameters first and/or count out of range')
        exemplars = self.empty_copy()
        for exemplar in self._exemplars[first:first + count]:
            exemplars._append(exemplar.copy())
        return exemplars

    def _append(self, exemplar):
        # Resampling may legitimately repeat an id
        self._exemplars.append(exemplar)
        self._by_id.setdefault(exemplar.id_value, exemplar)

    def _reindex(self):
        self._by_id = {}
        for exemplar in self._exemplars:
            self._by_id.setdefault(exemplar.id_value, exemplar)

    def add(self, item):
        """
        Add a row (to the bag with the same id, creating it if
        needed) or a whole bag
        """
        if isinstance(item, Exemplar):
            self.add_exemplar(item)
        else:
            self.add_instance(item)

    def add_instance(self, instance):
        exemplar = self._by_id.get(instance.value(self._id_index))
        if exemplar is not None:
            exemplar.add(instance)
        else:
            exemplar = Exemplar.from_instance(instance, self._header,
                                              self._id_index)
            exemplar.weight = 1.0
            self._append(exemplar)

    def add_exemplar(self, exemplar):
        if exemplar.id_value in self._by_id:
            raise DuplicateIdError('Exemplar %s already exists in the '
                                   'Exemplars' % exemplar.id_attribute.value(
                                       exemplar.id_value))
        self._append(exemplar.copy())

    def __len__(self):
        return len(self._exemplars)

    def __iter__(self):
        return iter(self._exemplars)

    def __getitem__(self, key):
        return self._exemplars[key]

    @property
    def num_exemplars(self):
        return len(self._exemplars)

    def exemplar(self, index):
        return self._exemplars[index]

    @property
    def first_exemplar(self):
        return self._exemplars[0]

    @property
    def last_exemplar(self):
        return self._exemplars[-1]

    def delete(self, index=None):
        """
        Remove the bag at the given position, or all bags
        """
        if index is None:
            self._exemplars = []
        else:
            del self._exemplars[index]
        self._reindex()

    @property
    def header(self):
        return self._header

    @property
    def relation_name(self):
        return self._header.name

    @relation_name.setter
    def relation_name(self, name):
        self._header.name = name

    @property
    def attributes(self):
        return self._header.attributes

    @property
    def num_attributes(self):
        return self._header.num_attributes

    def attribute(self, key):
        return self._header.attribute(key)

    @property
    def class_index(self):
        return self._header.class_index

    @property
    def class_attribute(self):
        return self._header.class_attribute

    @property
    def num_classes(self):
        return self._header.num_classes

    @property
    def id_index(self):
        return self._id_index

    @property
    def id_attribute(self):
        return self._header.attribute(self._id_index)

    def check_for_string_attributes(self):
        return self._header.check_for_string_attributes()

    def class_values(self):
        return np.array([ex.class_value for ex in self._exemplars])

    def weights(self):
        return np.array([ex.weight for ex in self._exemplars])

    def nums_instances(self):
        return np.array([ex.num_instances for ex in self._exemplars])

    def sums_of_weights(self):
        """
        Sum of the row weights within each bag
        """
        return np.array([ex.instances.sum_of_weights
                         for ex in self._exemplars])

    def delete_attribute_at(self, position):
        """
        Remove a column from the schema and from every bag. Deleting
        the id column is left to the caller to avoid.
        """
        for exemplar in self._exemplars:
            exemplar.delete_attribute_at(position)
        if self._id_index > position:
            self._id_index -= 1
        self._header.delete_attribute_at(position)
        self._reindex()

    def delete_string_attributes(self):
        i = 0
        while i < self.num_attributes:
            if self.attribute(i).is_string:
                self.delete_attribute_at(i)
            else:
                i += 1

    def insert_attribute_at(self, attribute, position):
        for exemplar in self._exemplars:
            exemplar.insert_attribute_at(attribute, position)
        if self._id_index >= position:
            self._id_index += 1
        self._header.insert_attribute_at(attribute, position)

    def delete_with_missing(self, index):
        """
        Drops rows with a missing value in the given column;
        bags left without rows are dropped too
        """
        for exemplar in self._exemplars:
            exemplar.instances.delete_with_missing(index)
        self._exemplars = [ex for ex in self._exemplars
                           if ex.num_instances > 0]
        self._reindex()

    def _swap(self, i, j):
        self._exemplars[i], self._exemplars[j] = \
            self._exemplars[j], self._exemplars[i]

    def randomize(self, random_state=None):
        """
        Shuffles the bags in place
        """
        random_state = check_random_state(random_state)
        for j in range(len(self) - 1, 0, -1):
            self._swap(j, random_state.randint(j + 1))

    def sort(self):
        """
        Sorts the bags by id value
        """
        self._exemplars.sort(key=lambda ex: ex.id_value)

    def resample(self, random_state=None):
        """
        Bootstrap sample of the same size
        """
        random_state = check_random_state(random_state)
        n = len(self)
        resampled = self.empty_copy()
        while len(resampled) < n:
            j = int(random_state.random_sample() * n)
            resampled._append(self._exemplars[j].copy())
        return resampled

    def resample_with_weights(self, random_state=None, weights=None):
        """
        Bootstrap sample drawn with probability proportional to the
        bag weights; every drawn bag gets weight 1.0. A plain copy
        is returned when all bag weights are equal and no weights
        are given.
        """
        random_state = check_random_state(random_state)
        if weights is None:
            weights = self.weights()
            if len(weights) == 0 or np.allclose(weights, weights[0]):
                return self.copy()
        weights = np.asarray(weights, dtype=float)
        n = len(weights)
        if n != len(self):
            raise ValueError('len(weights) != number of exemplars.')

        resampled = self.empty_copy()
        probabilities = np.cumsum(random_state.random_sample(n))
        sum_of_weights = np.sum(weights)
        probabilities *= sum_of_weights / probabilities[-1]
        # Make sure that rounding errors don't mess things up
        probabilities[-1] = sum_of_weights

        k = 0
        l = 0
        sum_probs = 0.0
        while k < n and l < n:
            if weights[l] < 0:
                raise ValueError('Weights have to be positive.')
            sum_probs += weights[l]
            while k < n and probabilities[k] <= sum_probs:
                exemplar = self._exemplars[l].copy()
                exemplar.weight = 1.0
                resampled._append(exemplar)
                k += 1
            l += 1
        return resampled

    def stratify(self, num_folds):
        """
        Reorders the bags so that a subsequent split into
        `num_folds` folds gives each fold the class proportions
        of the whole collection
        """
        if num_folds <= 0:
            raise InvalidFoldError('Number of folds must be greater than 1')
        if not self.class_attribute.is_nominal:
            return

        # Group by class
        index = 1
        while index < len(self):
            first = self._exemplars[index - 1]
            for j in range(index, len(self)):
                if first.class_value == self._exemplars[j].class_value:
                    self._swap(index, j)
                    index += 1
            index += 1

        # Deal the groups round-robin into the folds
        stratified = []
        start = 0
        while len(stratified) < len(self):
            stratified.extend(self._exemplars[start::num_folds])
            start += 1
        self._exemplars = stratified

    def _fold(self, num_folds, num_fold):
        n = len(self)
        if num_folds < 2:
            raise InvalidFoldError('Number of folds must be at least 2!')
        if num_folds > n:
            raise InvalidFoldError("Can't have more folds than exemplars!")
        if not 0 <= num_fold < num_folds:
            raise InvalidFoldError('Fold %d out of range' % num_fold)
        size = n // num_folds
        if num_fold < n % num_folds:
            size += 1
            offset = num_fold
        else:
            offset = n % num_folds
        first = num_fold * (n // num_folds) + offset
        return first, size

    def test_cv(self, num_folds, num_fold):
        """
        The test set for fold `num_fold` of `num_folds`
        """
        first, size = self._fold(num_folds, num_fold)
        return self.subset(first, size)

    def train_cv(self, num_folds, num_fold, random_state=None):
        """
        The training set for fold `num_fold` of `num_folds`; shuffled
        if a random state is given
        """
        first, size = self._fold(num_folds, num_fold)
        train = self.empty_copy()
        for exemplar in self._exemplars[:first] + self._exemplars[first + size:]:
            train._append(exemplar.copy())
        if random_state is not None:
            train.randomize(random_state)
        return train

    def summary(self):
        """
        Statistics on the bags in the collection
        """
        sizes = self.nums_instances()
        counts = {}
        for exemplar in self._exemplars:
            counts[exemplar.label] = counts.get(exemplar.label, 0) + 1
        lines = ['Number of bags: %d' % len(self),
                 'Number of instances: %d' % np.sum(sizes),
                 'Number of attributes (without id and class): %d'
                 % (self.num_attributes - 2)]
        if len(sizes) > 0:
            lines.extend(['Average bag size: %s' % np.mean(sizes),
                          'Maximum bag size: %d' % np.max(sizes),
                          'Minimum bag size: %d' % np.min(sizes),
                          'Median bag size: %s' % np.median(sizes)])
        for label in self.class_attribute.values:
            lines.append('Number of bags in class %s: %d'
                         % (label, counts.get(label, 0)))
        return '\n'.join(lines)

    def __repr__(self):
        return '<%s, %s>' % (self.relation_name, self._exemplars)

    def __str__(self):
        lines = ['@relation %s' % self.relation_name, '']
        for i, att in enumerate(self.attributes):
            if i == self._id_index:
                lines.append('%s (ID Attribute)' % att)
            elif i == self.class_index:
                lines.append('%s (Class Attribute)' % att)
            else:
                lines.append(str(att))
        id_att = self.id_attribute
        cls_att = self.class_attribute
        lines.extend(['', '@Exemplars: ',
                      'ID(%s); Class(%s); Weight; sumOfInstances\'Weights'
                      % (id_att.name, cls_att.name)])
        for exemplar, weight in zip(self._exemplars, self.sums_of_weights()):
            lines.append('%s; %s; %s; %s' % (id_att.value(exemplar.id_value),
                                             exemplar.label, exemplar.weight,
                                             weight))
        lines.append('There are totally %d exemplars' % len(self))
        return '\n'.join(lines)


def from_bags(bags, labels, name='bags', class_values=('0', '1')):
    """
    Build Exemplars from a sequence of n-by-k arrays and their
    class labels (indices into `class_values`)

    @param bags : a sequence of bags; each bag is an array-like
                  object containing its rows as k features
    @param labels : class index of each bag
    """
    bags = [np.atleast_2d(np.asarray(bag, dtype=float)) for bag in bags]
    if len(bags) == 0:
        raise ValueError('No bags given')
    num_features = bags[0].shape[1]
    attributes = ([Attribute.nominal('bag_id', ['bag%d' % i
                                               for i in range(len(bags))])]
                  + [Attribute.numeric('x%d' % (j + 1))
                     for j in range(num_features)]
                  + [Attribute.nominal('class', class_values)])
    dataset = Dataset(name, attributes, class_index=len(attributes) - 1)
    for i, (bag, label) in enumerate(zip(bags, labels)):
        for row in bag:
            dataset.add(Instance(np.hstack([[i], row, [label]])))
    return Exemplars(dataset, 0)
