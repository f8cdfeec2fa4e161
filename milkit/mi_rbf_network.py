"""
Implements a multiple-instance RBF network: rows are mapped to
their cluster memberships, and MILR is trained on the mapped bags
"""
import numpy as np
from scipy.special import logsumexp
from scipy.stats import norm
from sklearn.cluster import KMeans
from sklearn.utils import check_random_state

from milkit.classifier import MIClassifier, register
from milkit.exemplars import from_bags
from milkit.milr import MILR
from milkit.util import instances_and_labels

MIN_SD = 1e-6


@register('mi_rbf_network')
class MIRBFNetwork(MIClassifier):
    """
    Clusters the training rows with k-means (every bag carrying the
    same total weight), fits a diagonal normal distribution to every
    cluster, and replaces each row by its posterior cluster
    memberships. A MILR model is trained on the transformed bags.
    """

    def __init__(self, num_clusters=10, ridge=1e-6, random_state=1,
                 max_iters=200, verbose=False):
        """
        @param num_clusters : number of clusters (at most the number of
                              training rows) [default: 10]
        @param ridge : ridge of the MILR model [default: 1e-6]
        @param random_state : seed or RandomState for k-means
                              [default: 1]
        @param max_iters : optimizer iterations per MILR run
                           [default: 200]
        @param verbose : print status messages [default: False]
        """
        self.num_clusters = num_clusters
        self.ridge = ridge
        self.random_state = random_state
        self.max_iters = max_iters
        self.verbose = verbose

        self.means_ = None
        self.sds_ = None
        self.log_priors_ = None
        self.logistic_ = None
        self._fill = None
        self._class_values = None

    def memberships(self, X):
        """
        @param X : an n-by-k array of rows
        @return : an n-by-c array of posterior cluster probabilities
        """
        X = np.where(np.isnan(X), self._fill, X)
        log_density = np.sum(norm.logpdf(X[:, np.newaxis, :], self.means_,
                                         self.sds_), axis=2)
        log_density += self.log_priors_
        return np.exp(log_density
                      - logsumexp(log_density, axis=1, keepdims=True))

    def transform(self, exemplars):
        """
        @return : Exemplars whose rows are the cluster memberships of
                  the original rows
        """
        bags = [self.memberships(ex.features()) for ex in exemplars]
        labels = [ex.class_value for ex in exemplars]
        return from_bags(bags, labels, name='memberships',
                         class_values=self._class_values)

    def build_classifier(self, exemplars):
        self.check_data(exemplars, max_classes=2)
        self._class_values = tuple(exemplars.class_attribute.values)
        X, _, sizes = instances_and_labels(exemplars)
        sizes = np.array(sizes, dtype=float)
        with np.errstate(invalid='ignore'):
            counts = np.sum(~np.isnan(X), axis=0)
            sums = np.nansum(X, axis=0)
        self._fill = np.where(counts > 0, sums / np.maximum(counts, 1), 0.0)
        X = np.where(np.isnan(X), self._fill, X)
        weights = np.repeat(len(X) / (len(sizes) * sizes), sizes.astype(int))

        k = min(self.num_clusters, len(X))
        kmeans = KMeans(n_clusters=k, n_init=10,
                        random_state=check_random_state(self.random_state))
        labels = kmeans.fit(X, sample_weight=weights).labels_
        self.mention('%d clusters over %d rows' % (k, len(X)))

        self.means_ = np.empty((k, X.shape[1]))
        self.sds_ = np.empty((k, X.shape[1]))
        cluster_weights = np.zeros(k)
        for c in range(k):
            members = labels == c
            if not np.any(members):
                self.means_[c] = kmeans.cluster_centers_[c]
                self.sds_[c] = MIN_SD
                continue
            w = weights[members]
            cluster_weights[c] = np.sum(w)
            self.means_[c] = np.average(X[members], axis=0, weights=w)
            variance = np.average((X[members] - self.means_[c]) ** 2,
                                  axis=0, weights=w)
            self.sds_[c] = np.maximum(np.sqrt(variance), MIN_SD)
        # Laplace estimates of the cluster priors
        self.log_priors_ = np.log((cluster_weights + 1.0)
                                  / (np.sum(cluster_weights) + k))

        self.logistic_ = MILR(ridge=self.ridge, max_iters=self.max_iters,
                              verbose=self.verbose)
        self.logistic_.fit(self.transform(exemplars))

    def distribution_for_exemplar(self, exemplar):
        return self.logistic_.distribution_for_exemplar(
            self.transform([exemplar])[0])

    def __str__(self):
        return 'MIRBFNetwork: \n\n%s' % self.logistic_
