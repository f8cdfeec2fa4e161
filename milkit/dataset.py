"""
Represents attribute schemas and weighted rows of
multiple-instance data sets

Values are stored internally as floats: numeric values as-is,
nominal and string values as the index of the value within the
attribute, and missing values as NaN.
"""
import math
from collections.abc import Sequence

import numpy as np

from milkit.exceptions import (IncompatibleRowError, SchemaError,
                               UnassignedClassError)

MISSING = float('nan')
_MISSING_TOKENS = (None, '?')


class Attribute(object):
    """
    Information for a single column
    """

    class Type:
        """
        Type of attribute
        """
        NOMINAL = 'NOMINAL'
        NUMERIC = 'NUMERIC'
        STRING = 'STRING'

    def __init__(self, name, atype, values=None):
        self.name = name
        self.type = atype
        if self.type == Attribute.Type.NOMINAL:
            if values is None:
                raise SchemaError('No values for %s attribute %s'
                                  % (self.type, name))
            self.values = tuple(str(v) for v in values)
        elif self.type == Attribute.Type.STRING:
            # String attributes grow as values are seen
            self.values = [] if values is None else [str(v) for v in values]
        elif self.type == Attribute.Type.NUMERIC:
            if values is not None:
                raise SchemaError('Values given for %s attribute %s'
                                  % (self.type, name))
            self.values = None
        else:
            raise SchemaError('Unknown attribute type "%s"' % atype)

    @classmethod
    def nominal(cls, name, values):
        return cls(name, Attribute.Type.NOMINAL, values)

    @classmethod
    def numeric(cls, name):
        return cls(name, Attribute.Type.NUMERIC)

    @classmethod
    def string(cls, name):
        return cls(name, Attribute.Type.STRING)

    @property
    def is_nominal(self):
        return self.type == Attribute.Type.NOMINAL

    @property
    def is_numeric(self):
        return self.type == Attribute.Type.NUMERIC

    @property
    def is_string(self):
        return self.type == Attribute.Type.STRING

    @property
    def num_values(self):
        if self.values is None:
            return 0
        return len(self.values)

    def value(self, index):
        """Name of the value stored as the given index"""
        return self.values[int(index)]

    def index_of_value(self, value):
        try:
            return self.values.index(str(value))
        except ValueError:
            return -1

    def to_float(self, raw):
        """
        Convert a raw value into its internal float representation
        """
        if raw in _MISSING_TOKENS or (isinstance(raw, float)
                                      and math.isnan(raw)):
            return MISSING
        if self.is_numeric:
            return float(raw)
        index = self.index_of_value(raw)
        if index < 0:
            if self.is_string:
                self.values.append(str(raw))
                return float(len(self.values) - 1)
            raise IncompatibleRowError('Value "%s" not defined for '
                                       'attribute %s' % (raw, self.name))
        return float(index)

    def to_string(self, value):
        if math.isnan(value):
            return '?'
        if self.is_numeric:
            return repr(float(value))
        return self.value(value)

    def copy(self):
        if self.is_string:
            return Attribute(self.name, self.type, list(self.values))
        return Attribute(self.name, self.type, self.values)

    def __eq__(self, other):
        if not isinstance(other, Attribute):
            return NotImplemented
        return ((self.name, self.type, self.values)
                == (other.name, other.type, other.values))

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((self.name, self.type))

    def __repr__(self):
        if self.values is None:
            return '<%s, %s>' % (self.name, self.type)
        return '<%s, %s, %s>' % (self.name, self.type, tuple(self.values))

    def __str__(self):
        if self.is_nominal:
            return '@attribute %s {%s}' % (self.name, ','.join(self.values))
        return '@attribute %s %s' % (self.name, self.type.lower())


class Instance(Sequence):
    """
    Represents a single weighted row
    """

    def __init__(self, values, weight=1.0):
        self.values = np.array(values, dtype=float)
        self.weight = float(weight)

    def __len__(self):
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, key):
        return self.values[key]

    def value(self, index):
        return self.values[index]

    def set_value(self, index, value):
        self.values[index] = value

    def is_missing(self, index):
        return math.isnan(self.values[index])

    def delete_attribute_at(self, position):
        self.values = np.delete(self.values, position)

    def insert_attribute_at(self, position):
        self.values = np.insert(self.values, position, MISSING)

    def copy(self):
        return Instance(self.values, self.weight)

    def __repr__(self):
        return '<%s, %s>' % (list(self.values), self.weight)


class Dataset(Sequence):
    """
    Holds an ordered set of rows sharing one schema
    """

    def __init__(self, name, attributes, class_index=-1, rows=None):
        self.name = name
        self.attributes = list(attributes)
        if class_index >= len(self.attributes):
            raise SchemaError('Class index %d out of range' % class_index)
        self.class_index = class_index
        self.rows = []
        if rows is not None:
            for row in rows:
                self.add(row)

    def __len__(self):
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __getitem__(self, key):
        return self.rows[key]

    @property
    def num_attributes(self):
        return len(self.attributes)

    def attribute(self, key):
        """
        Look up an attribute by position or name; returns None
        for an unknown name
        """
        if isinstance(key, str):
            for att in self.attributes:
                if att.name == key:
                    return att
            return None
        return self.attributes[key]

    @property
    def class_attribute(self):
        if self.class_index < 0:
            raise UnassignedClassError('Class index is negative (not set)!')
        return self.attributes[self.class_index]

    @property
    def num_classes(self):
        if not self.class_attribute.is_nominal:
            return 1
        return self.class_attribute.num_values

    def check_for_string_attributes(self):
        return any(att.is_string for att in self.attributes)

    def check_instance(self, row):
        """
        Checks whether the row is compatible with the schema
        """
        if len(row) != len(self.attributes):
            return False
        for att, value in zip(self.attributes, row):
            if math.isnan(value) or att.is_numeric:
                continue
            if value != int(value) or not 0 <= value < att.num_values:
                return False
        return True

    def add(self, row):
        """
        Append a copy of the row
        """
        if not self.check_instance(row):
            raise IncompatibleRowError('Row %r not compatible with the '
                                       'dataset %s' % (row, self.name))
        self.rows.append(row.copy())

    def add_values(self, raw_values, weight=1.0):
        """
        Convert raw values (names for nominal attributes, None or
        '?' for missing values) and append them as a new row
        """
        if len(raw_values) != len(self.attributes):
            raise IncompatibleRowError('Attribute-data size mismatch: %s'
                                       % (raw_values,))
        values = [att.to_float(raw)
                  for att, raw in zip(self.attributes, raw_values)]
        self.rows.append(Instance(values, weight))

    @property
    def sum_of_weights(self):
        return float(sum(row.weight for row in self.rows))

    def column(self, index):
        return np.array([row.value(index) for row in self.rows], dtype=float)

    def weights(self):
        return np.array([row.weight for row in self.rows], dtype=float)

    def mean_or_mode(self, index):
        """
        Weighted mean of a numeric attribute or weighted mode of a
        nominal attribute, ignoring missing values; 0 if undefined
        """
        att = self.attributes[index]
        values = self.column(index)
        weights = self.weights()
        present = ~np.isnan(values)
        if att.is_numeric:
            total = np.sum(weights[present])
            if total > 0:
                return float(np.dot(weights[present], values[present]) / total)
            return 0.0
        elif att.is_nominal:
            counts = np.zeros(att.num_values)
            np.add.at(counts, values[present].astype(int), weights[present])
            return float(np.argmax(counts))
        return 0.0

    def variance(self, index):
        """
        Weighted unbiased variance of a numeric attribute
        """
        if not self.attributes[index].is_numeric:
            raise SchemaError("Can't compute variance because attribute "
                              "%s is not numeric!" % self.attributes[index].name)
        values = self.column(index)
        present = ~np.isnan(values)
        values = values[present]
        weights = self.weights()[present]
        sum_of_weights = np.sum(weights)
        if sum_of_weights <= 1:
            return 0.0
        total = np.dot(weights, values)
        total_sq = np.dot(weights, values * values)
        result = (total_sq - total * total / sum_of_weights) / (sum_of_weights - 1)
        if result < 0:
            return 0.0
        return float(result)

    def delete_attribute_at(self, position):
        if position < 0 or position >= len(self.attributes):
            raise SchemaError('Index %d out of range' % position)
        if position == self.class_index:
            raise SchemaError("Can't delete class attribute")
        if self.class_index > position:
            self.class_index -= 1
        del self.attributes[position]
        for row in self.rows:
            row.delete_attribute_at(position)

    def insert_attribute_at(self, attribute, position):
        if position < 0 or position > len(self.attributes):
            raise SchemaError('Index %d out of range' % position)
        if self.class_index >= position:
            self.class_index += 1
        self.attributes.insert(position, attribute)
        for row in self.rows:
            row.insert_attribute_at(position)

    def delete_with_missing(self, index):
        self.rows = [row for row in self.rows if not row.is_missing(index)]

    def empty_copy(self):
        """
        A dataset with the same header but no rows
        """
        return Dataset(self.name, self.attributes, self.class_index)

    def copy(self):
        dataset = self.empty_copy()
        dataset.rows = [row.copy() for row in self.rows]
        return dataset

    def to_float(self):
        """
        Rows as an n-by-m array
        """
        if not self.rows:
            return np.zeros((0, len(self.attributes)))
        return np.vstack([row.values for row in self.rows])

    def row_to_string(self, row):
        return ','.join(att.to_string(value)
                        for att, value in zip(self.attributes, row))

    def __repr__(self):
        return '<%s, %s, %s>' % (self.name, self.attributes, self.rows)

    def __str__(self):
        lines = ['@relation %s' % self.name, '']
        lines.extend(str(att) for att in self.attributes)
        lines.extend(['', '@data'])
        lines.extend(self.row_to_string(row) for row in self.rows)
        return '\n'.join(lines)
