"""
Represents a single bag (exemplar): a set of weighted rows
sharing one id value and one class label
"""
import math

import numpy as np

from milkit.dataset import Dataset, MISSING
from milkit.exceptions import (IncompatibleRowError, SchemaError,
                               UnassignedClassError)


class Exemplar(object):
    """
    A bag of rows that share the value of the id attribute.

    The rows are held in their own Dataset, which shares the
    attribute objects of the dataset the bag was built from.
    """

    def __init__(self, dataset, id_index=0):
        """
        @param dataset : a Dataset whose rows all share one id value;
                         the rows are copied
        @param id_index : index of the (nominal) id attribute
                          [default: 0]
        """
        if not dataset.attribute(id_index).is_nominal:
            raise SchemaError("The exemplar's ID is not nominal!")
        if len(dataset) == 0:
            raise IncompatibleRowError('An exemplar needs at least one row')
        self._id_index = id_index
        self._class_index = dataset.class_index
        self._instances = dataset.copy()
        self._weight = 1.0

        first = self._instances[0]
        self._id_value = first.value(id_index)
        if self._class_index >= 0:
            self._class_value = first.value(self._class_index)
        else:
            self._class_value = MISSING
        for row in self._instances:
            if row.is_missing(id_index):
                raise IncompatibleRowError('Row with a missing Id value: '
                                           'every row needs a bag Id!')
            if row.value(id_index) != self._id_value:
                raise IncompatibleRowError('The Id value is not unique!')

    @classmethod
    def from_instance(cls, instance, header, id_index=0):
        """
        Form an exemplar from one row

        @param instance : the first row of the bag
        @param header : a Dataset providing the attribute information
        @param id_index : index of the id attribute
        """
        dataset = header.empty_copy()
        dataset.add(instance)
        return cls(dataset, id_index)

    def add(self, instance):
        """
        Append a copy of the row to the bag
        """
        if not self.check_instance(instance):
            raise IncompatibleRowError('The Id value and/or schema is not '
                                       'compatible: add failed.')
        self._instances.add(instance)

    def check_instance(self, instance):
        """
        Checks if the given row is compatible with this bag
        """
        if not self._instances.check_instance(instance):
            return False
        return instance.value(self._id_index) == self._id_value

    def copy(self):
        exemplar = Exemplar.__new__(Exemplar)
        exemplar._id_index = self._id_index
        exemplar._id_value = self._id_value
        exemplar._class_index = self._class_index
        exemplar._class_value = self._class_value
        exemplar._instances = self._instances.copy()
        exemplar._weight = self._weight
        return exemplar

    @property
    def instances(self):
        return self._instances

    @property
    def num_instances(self):
        return len(self._instances)

    def __len__(self):
        return len(self._instances)

    def __iter__(self):
        return iter(self._instances)

    def __getitem__(self, key):
        return self._instances[key]

    @property
    def id_index(self):
        return self._id_index

    @property
    def id_value(self):
        return self._id_value

    @property
    def id_attribute(self):
        return self._instances.attribute(self._id_index)

    @property
    def num_ids(self):
        return self.id_attribute.num_values

    @property
    def class_index(self):
        return self._class_index

    @property
    def class_attribute(self):
        if self._class_index < 0:
            raise UnassignedClassError('Class index is negative (not set)!')
        return self._instances.attribute(self._class_index)

    @property
    def class_value(self):
        if self._class_index < 0:
            raise UnassignedClassError('Class index is negative (not set)!')
        return self._class_value

    @class_value.setter
    def class_value(self, value):
        # The rows keep their own class values
        self._class_value = value

    @property
    def label(self):
        """Name of the class value"""
        if math.isnan(self.class_value):
            return None
        return self.class_attribute.value(self.class_value)

    @property
    def weight(self):
        return self._weight

    @weight.setter
    def weight(self, weight):
        self._weight = float(weight)

    def _feature_indices(self):
        return [i for i in range(self._instances.num_attributes)
                if i != self._id_index and i != self._class_index]

    def attributes(self):
        """
        Attributes other than the id and class attributes
        """
        return [self._instances.attribute(i) for i in self._feature_indices()]

    def features(self):
        """
        The rows of the bag as an n-by-k array, without the id
        and class columns
        """
        return self._instances.to_float()[:, self._feature_indices()]

    def is_all_missing(self, index):
        return all(row.is_missing(index) for row in self._instances)

    def sums_of_weights(self):
        """
        Sum of the weights of the rows that are not missing, per
        dimension (excluding id and class)
        """
        weights = self._instances.weights()
        return np.array([np.sum(weights[~np.isnan(self._instances.column(i))])
                         for i in self._feature_indices()])

    def mean_or_mode(self):
        """
        Mean (numeric) or mode (nominal) of every dimension except id
        and class; NaN where every value of a dimension is missing
        """
        means = []
        for i in self._feature_indices():
            if (self._instances.sum_of_weights > 0.0
                    and not self.is_all_missing(i)):
                means.append(self._instances.mean_or_mode(i))
            else:
                means.append(MISSING)
        return np.array(means)

    def variance(self):
        """
        Variance of every numeric dimension except id and class;
        -1 for non-numeric dimensions
        """
        variances = []
        for i in self._feature_indices():
            if self._instances.attribute(i).is_numeric:
                variances.append(self._instances.variance(i))
            else:
                variances.append(-1.0)
        return np.array(variances)

    def delete_attribute_at(self, position):
        if self._class_index > position:
            self._class_index -= 1
        if self._id_index > position:
            self._id_index -= 1
        self._instances.delete_attribute_at(position)

    def insert_attribute_at(self, attribute, position):
        if self._class_index >= position:
            self._class_index += 1
        if self._id_index >= position:
            self._id_index += 1
        self._instances.insert_attribute_at(attribute, position)

    def __repr__(self):
        return '<%s, %s, %s>' % (self.id_attribute.value(self._id_value),
                                 self._class_value, self._weight)

    def __str__(self):
        id_att = self.id_attribute
        lines = ['@Exemplar: ',
                 'ID: %s = %s' % (id_att.name, id_att.value(self._id_value))]
        if self._class_index >= 0:
            lines.append('Class: %s = %s' % (self.class_attribute.name,
                                             self.label))
        lines.append('')
        for i, att in enumerate(self._instances.attributes):
            if i == self._id_index:
                lines.append('%s (ID Attribute)' % att)
            elif i == self._class_index:
                lines.append('%s (Class Attribute)' % att)
            else:
                lines.append(str(att))
        lines.extend(['', '@data'])
        lines.extend(self._instances.row_to_string(row)
                     for row in self._instances)
        return '\n'.join(lines)
