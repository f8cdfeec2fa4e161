"""
Exceptions raised for schema and partitioning violations

Statistical degeneracies (empty totals, all-missing dimensions)
are not errors; they return sentinel values instead.
"""


class SchemaError(ValueError):
    """
    The attribute layout does not allow the requested operation
    (e.g., a non-nominal id attribute or an id index out of range)
    """
    pass


class IncompatibleRowError(SchemaError):
    """
    A row does not fit the bag or dataset it is added to
    """
    pass


class DuplicateIdError(ValueError):
    """
    A bag with the same id already exists in the collection
    """
    pass


class InvalidFoldError(ValueError):
    """
    Bad number of folds for stratification or cross-validation
    """
    pass


class UnassignedClassError(SchemaError):
    """
    The class index has not been set
    """
    pass


class NonNominalClassError(SchemaError):
    """
    Multiple-instance learning and evaluation here require
    a nominal class attribute
    """
    pass


class StringAttributeError(SchemaError):
    """
    The classifier cannot handle string attributes
    """
    pass
