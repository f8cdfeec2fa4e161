"""
Utility functions
"""
import numpy as np


def slices(groups):
    """
    Generate slices to select
    groups of the given sizes
    within a list/matrix
    """
    i = 0
    for group in groups:
        yield i, i + group
        i += group


def normalize(dist):
    """
    Scale a distribution to sum to one
    """
    dist = np.asarray(dist, dtype=float)
    total = np.sum(dist)
    if total == 0 or not np.isfinite(total):
        raise ValueError("Can't normalize array. Sum is %s." % total)
    return dist / total


def base_distribution(clf, X, num_classes):
    """
    Class probabilities of a fitted scikit-learn classifier over the
    full set of class indices; classes unseen during training
    get probability zero
    """
    proba = clf.predict_proba(X)
    dist = np.zeros((proba.shape[0], num_classes))
    dist[:, np.asarray(clf.classes_, dtype=int)] = proba
    return dist


def instances_and_labels(exemplars, weighted=False):
    """
    Stack the rows of all bags, labelling each row with its bag's
    class; optionally weight rows so every bag has the same mass

    @return : (X, y, sizes) or (X, y, sizes, weights)
    """
    bags = [ex.features() for ex in exemplars]
    sizes = [len(bag) for bag in bags]
    X = np.vstack(bags)
    y = np.hstack([np.full(n, ex.class_value)
                   for n, ex in zip(sizes, exemplars)]).astype(int)
    if not weighted:
        return X, y, sizes
    row_weights = [ex.instances.weights() for ex in exemplars]
    sums = np.array([np.sum(w) for w in row_weights])
    total = np.sum(sums)
    weights = np.hstack([w * total / (len(exemplars) * s)
                         for w, s in zip(row_weights, sums)])
    return X, y, sizes, weights
