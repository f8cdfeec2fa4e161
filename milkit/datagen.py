"""
Generates artificial multiple-instance data
"""
import numpy as np
from scipy.special import expit
from sklearn.utils import check_random_state

from milkit.dataset import Attribute, Dataset, Instance
from milkit.exemplars import Exemplars

LOW, HIGH = -5.0, 5.0


def make_mi_sample(num_bags, beta, max_bag_size=20, random_state=None):
    """
    Bags of points scattered around random centroids, labelled by
    the logistic of the average log-odds of their points

    @param num_bags : number of bags
    @param beta : coefficients of the row log-odds beta . x; its length
                  sets the number of features
    @param max_bag_size : bags have between 1 and this many rows
                          [default: 20]
    @param random_state : seed or RandomState [default: None]
    @return : an Exemplars collection with the id attribute first
              and a {0, 1} class last
    """
    random_state = check_random_state(random_state)
    beta = np.asarray(beta, dtype=float)
    num_features = len(beta)

    attributes = ([Attribute.nominal('bag_id', ['bag%d' % i
                                               for i in range(num_bags)])]
                  + [Attribute.numeric('X%d' % (j + 1))
                     for j in range(num_features)]
                  + [Attribute.nominal('class', ['0', '1'])])
    dataset = Dataset('mi_sample', attributes,
                      class_index=len(attributes) - 1)

    for i in range(num_bags):
        size = int(random_state.random_sample() * max_bag_size) + 1
        centroid = random_state.random_sample(num_features) * 10 - 5
        spread = random_state.random_sample(num_features) * 4 + 2
        points = centroid + (random_state.random_sample(
            (size, num_features)) - 0.5) * spread
        points = np.clip(points, LOW, np.nextafter(HIGH, LOW))
        prob = expit(np.mean(np.dot(points, beta)))
        cls = 0 if random_state.random_sample() > prob else 1
        for point in points:
            dataset.add(Instance(np.hstack([[i], point, [cls]])))
    return Exemplars(dataset, 0)
