"""
Evaluates multiple-instance classifiers: train/test and
stratified cross-validation, with accuracy, error and
per-class statistics
"""
import time

import numpy as np
from sklearn.base import clone

from milkit.dataset import MISSING
from milkit.exceptions import NonNominalClassError

_ID_CHARS = 'abcdefghijklmnopqrstuvwxyz'


def _fmt(value, width, digits):
    return '%*.*f' % (width, digits, value)


def _short_id(num, width):
    """
    Letter id ('a', 'b', ..., 'z', 'aa', ...) right-aligned
    in the given width
    """
    chars = []
    while True:
        chars.append(_ID_CHARS[num % len(_ID_CHARS)])
        num = num // len(_ID_CHARS) - 1
        if num < 0 or len(chars) >= width:
            break
    return ''.join(reversed(chars)).rjust(width)


class MIEvaluation(object):
    """
    Accumulates the outcome of classifying bags. Every statistic is
    computed from the running sums and the confusion matrix; ratios
    with a zero denominator are 0.
    """

    def __init__(self, exemplars, cost_matrix=None):
        """
        @param exemplars : bags that define the class attribute and
                           the initial class priors
        @param cost_matrix : optional num_classes-by-num_classes array,
                             indexed [actual][predicted]
        """
        if not exemplars.class_attribute.is_nominal:
            raise NonNominalClassError('Class is not nominal. Data not '
                                       'suitable for Multiple-Instance '
                                       'Learning!')
        self.num_classes = exemplars.num_classes
        self.class_names = list(exemplars.class_attribute.values)
        self.num_folds = 1
        if cost_matrix is not None:
            cost_matrix = np.array(cost_matrix, dtype=float)
            if cost_matrix.shape != (self.num_classes, self.num_classes):
                raise ValueError('Cost matrix not compatible with data!')
        self.cost_matrix = cost_matrix

        self._confusion = np.zeros((self.num_classes, self.num_classes))
        self._with_class = 0.0
        self._correct = 0.0
        self._incorrect = 0.0
        self._unclassified = 0.0
        self._total_cost = 0.0
        self._sum_err = 0.0
        self._sum_abs_err = 0.0
        self._sum_sqr_err = 0.0
        self._sum_prior_abs_err = 0.0
        self._sum_prior_sqr_err = 0.0
        self._class_priors = None
        self._class_priors_sum = 0.0
        self.set_priors(exemplars)

    def set_priors(self, train):
        """
        Class priors from bag weights, with every count starting at 1
        """
        self._class_priors = np.ones(self.num_classes)
        self._class_priors_sum = float(self.num_classes)
        for exemplar in train:
            self.update_priors(exemplar)

    def update_priors(self, exemplar):
        self._class_priors[int(exemplar.class_value)] += exemplar.weight
        self._class_priors_sum += exemplar.weight

    def confusion_matrix(self):
        return self._confusion.copy()

    def cross_validate_model(self, classifier, exemplars, num_folds):
        """
        Stratified cross-validation; a fresh copy of the classifier is
        trained for every fold

        @param classifier : an unfitted MIClassifier used as a template
        @param exemplars : the bags to cross-validate on (not modified)
        @param num_folds : number of folds
        """
        data = exemplars.copy()
        data.stratify(num_folds)
        for i in range(num_folds):
            train = data.train_cv(num_folds, i)
            self.set_priors(train)
            model = clone(classifier)
            model.build_classifier(train)
            self.evaluate_model(model, data.test_cv(num_folds, i))
        self.num_folds = num_folds

    def evaluate_model(self, classifier, exemplars):
        """
        @return : array of predicted class indices
        """
        return np.array([self.evaluate_model_once(classifier, ex)
                         for ex in exemplars])

    def evaluate_model_once(self, classifier, exemplar):
        """
        Classify one bag (its class is hidden from the classifier)
        and record the outcome

        @return : index of the class with the highest probability
        """
        hidden = exemplar.copy()
        hidden.class_value = MISSING
        dist = np.asarray(classifier.distribution_for_exemplar(hidden),
                          dtype=float)
        self.update_stats(dist, exemplar)
        return int(np.argmax(dist))

    def update_stats(self, dist, exemplar):
        """
        Record one predicted distribution against the bag's actual
        class; a distribution with no positive entry counts as
        unclassified
        """
        actual = int(exemplar.class_value)
        weight = exemplar.weight

        predicted, best = -1, 0.0
        for i in range(self.num_classes):
            if dist[i] > best:
                predicted, best = i, dist[i]
        self._with_class += weight

        if self.cost_matrix is not None:
            if predicted < 0:
                # Worst possible cost
                self._total_cost += weight * np.max(self.cost_matrix[actual])
            else:
                self._total_cost += (weight
                                     * self.cost_matrix[actual, predicted])
        if predicted < 0:
            self._unclassified += weight
            return

        one_hot = np.zeros(self.num_classes)
        one_hot[actual] = 1.0
        self._update_numeric_scores(dist, one_hot, weight)

        self._confusion[actual, predicted] += weight
        if predicted != actual:
            self._incorrect += weight
        else:
            self._correct += weight

    def _update_numeric_scores(self, predicted, actual, weight):
        diff = predicted - actual
        prior_diff = self._class_priors / self._class_priors_sum - actual
        self._sum_err += weight * np.sum(diff) / self.num_classes
        self._sum_abs_err += weight * np.sum(np.abs(diff)) / self.num_classes
        self._sum_sqr_err += weight * np.sum(diff ** 2) / self.num_classes
        self._sum_prior_abs_err += (weight * np.sum(np.abs(prior_diff))
                                    / self.num_classes)
        self._sum_prior_sqr_err += (weight * np.sum(prior_diff ** 2)
                                    / self.num_classes)

    @staticmethod
    def _ratio(num, den):
        if den == 0:
            return 0.0
        return float(num / den)

    @property
    def num_exemplars(self):
        """Total weight of the bags evaluated"""
        return self._with_class

    @property
    def correct(self):
        return self._correct

    @property
    def incorrect(self):
        return self._incorrect

    @property
    def unclassified(self):
        return self._unclassified

    @property
    def total_cost(self):
        return self._total_cost

    @property
    def pct_correct(self):
        return 100 * self._ratio(self._correct, self._with_class)

    @property
    def pct_incorrect(self):
        return 100 * self._ratio(self._incorrect, self._with_class)

    @property
    def pct_unclassified(self):
        return 100 * self._ratio(self._unclassified, self._with_class)

    @property
    def avg_cost(self):
        return self._ratio(self._total_cost, self._with_class)

    @property
    def error_rate(self):
        if self.cost_matrix is None:
            return self._ratio(self._incorrect, self._with_class)
        return self.avg_cost

    @property
    def kappa(self):
        """
        Cohen's kappa of the confusion matrix
        """
        total = np.sum(self._confusion)
        if total == 0:
            return 0.0
        rows = np.sum(self._confusion, axis=1)
        columns = np.sum(self._confusion, axis=0)
        chance = np.dot(rows, columns) / (total * total)
        correct = np.trace(self._confusion) / total
        if chance < 1:
            return float((correct - chance) / (1 - chance))
        return 1.0

    @property
    def mean_absolute_error(self):
        return self._ratio(self._sum_abs_err, self._with_class)

    @property
    def mean_prior_absolute_error(self):
        return self._ratio(self._sum_prior_abs_err, self._with_class)

    @property
    def relative_absolute_error(self):
        return 100 * self._ratio(self.mean_absolute_error,
                                 self.mean_prior_absolute_error)

    @property
    def root_mean_squared_error(self):
        return np.sqrt(self._ratio(self._sum_sqr_err, self._with_class))

    @property
    def root_mean_prior_squared_error(self):
        return np.sqrt(self._ratio(self._sum_prior_sqr_err, self._with_class))

    @property
    def root_relative_squared_error(self):
        return 100 * self._ratio(self.root_mean_squared_error,
                                 self.root_mean_prior_squared_error)

    def num_true_positives(self, class_index):
        return self._confusion[class_index, class_index]

    def true_positive_rate(self, class_index):
        return self._ratio(self._confusion[class_index, class_index],
                           np.sum(self._confusion[class_index]))

    def num_true_negatives(self, class_index):
        others = np.arange(self.num_classes) != class_index
        return np.sum(self._confusion[np.ix_(others, others)])

    def true_negative_rate(self, class_index):
        others = np.arange(self.num_classes) != class_index
        return self._ratio(self.num_true_negatives(class_index),
                           np.sum(self._confusion[others]))

    def num_false_positives(self, class_index):
        others = np.arange(self.num_classes) != class_index
        return np.sum(self._confusion[others, class_index])

    def false_positive_rate(self, class_index):
        others = np.arange(self.num_classes) != class_index
        return self._ratio(self.num_false_positives(class_index),
                           np.sum(self._confusion[others]))

    def num_false_negatives(self, class_index):
        return (np.sum(self._confusion[class_index])
                - self._confusion[class_index, class_index])

    def false_negative_rate(self, class_index):
        return self._ratio(self.num_false_negatives(class_index),
                           np.sum(self._confusion[class_index]))

    def recall(self, class_index):
        return self.true_positive_rate(class_index)

    def precision(self, class_index):
        return self._ratio(self._confusion[class_index, class_index],
                           np.sum(self._confusion[:, class_index]))

    def f_measure(self, class_index):
        precision = self.precision(class_index)
        recall = self.recall(class_index)
        if precision + recall == 0:
            return 0.0
        return 2 * precision * recall / (precision + recall)

    def to_summary_string(self, title='=== Summary ===\n'):
        lines = [title]
        if self._with_class > 0:
            lines.append('Correctly Classified Exemplars     %s     %s %%'
                         % (_fmt(self.correct, 12, 4),
                            _fmt(self.pct_correct, 12, 4)))
            lines.append('Incorrectly Classified Exemplars   %s     %s %%'
                         % (_fmt(self.incorrect, 12, 4),
                            _fmt(self.pct_incorrect, 12, 4)))
            lines.append('Kappa statistic                    %s'
                         % _fmt(self.kappa, 12, 4))
            if self.cost_matrix is not None:
                lines.append('Total Cost                         %s'
                             % _fmt(self.total_cost, 12, 4))
                lines.append('Average Cost                       %s'
                             % _fmt(self.avg_cost, 12, 4))
            lines.append('Mean absolute error                %s'
                         % _fmt(self.mean_absolute_error, 12, 4))
            lines.append('Root mean squared error            %s'
                         % _fmt(self.root_mean_squared_error, 12, 4))
            lines.append('Relative absolute error            %s %%'
                         % _fmt(self.relative_absolute_error, 12, 4))
            lines.append('Root relative squared error        %s %%'
                         % _fmt(self.root_relative_squared_error, 12, 4))
        if self._unclassified > 0:
            lines.append('UnClassified Exemplars             %s     %s %%'
                         % (_fmt(self.unclassified, 12, 4),
                            _fmt(self.pct_unclassified, 12, 4)))
        lines.append('Total Number of Exemplars          %s'
                     % _fmt(self._with_class, 12, 4))
        return '\n'.join(lines) + '\n'

    def to_class_details_string(self,
                                title='=== Detailed Accuracy By Class ===\n'):
        lines = [title, 'TP Rate   FP Rate   Precision   Recall  '
                        'F-Measure   Class']
        for i, name in enumerate(self.class_names):
            lines.append('%s   %s    %s   %s   %s    %s'
                         % (_fmt(self.true_positive_rate(i), 7, 3),
                            _fmt(self.false_positive_rate(i), 7, 3),
                            _fmt(self.precision(i), 7, 3),
                            _fmt(self.recall(i), 7, 3),
                            _fmt(self.f_measure(i), 7, 3), name))
        return '\n'.join(lines) + '\n'

    def to_matrix_string(self, title='=== Confusion Matrix ===\n'):
        values = np.abs(self._confusion)
        fractional = bool(np.any(np.abs(values - np.rint(values)) >= 0.01))
        max_value = max(np.max(values), 1.0)
        width = 1 + max(int(np.log10(max_value)) + (3 if fractional else 0),
                        int(np.log(self.num_classes) / np.log(len(_ID_CHARS))))
        digits = 2 if fractional else 0

        header = ''
        for i in range(self.num_classes):
            if fractional:
                header += ' %s   ' % _short_id(i, width - 3)
            else:
                header += ' %s' % _short_id(i, width)
        lines = [title, header + '   <-- classified as']
        for i, name in enumerate(self.class_names):
            row = ''.join(' %s' % _fmt(value, width, digits)
                          for value in self._confusion[i])
            lines.append('%s | %s = %s' % (row, _short_id(i, width), name))
        return '\n'.join(lines) + '\n'


def evaluate(classifier, train, test=None, num_folds=10, seed=1,
             leave_one_out=False, cost_matrix=None):
    """
    Train a classifier and report its error on the training data and
    on a test set, or by stratified cross-validation when no test set
    is given

    @param classifier : an unfitted MIClassifier
    @param train : training bags
    @param test : optional test bags
    @param num_folds : folds for cross-validation [default: 10]
    @param seed : seed for shuffling the bags before cross-validation
                  [default: 1]
    @param leave_one_out : use one fold per bag [default: False]
    @param cost_matrix : optional cost matrix
    @return : the report text
    """
    training_evaluation = MIEvaluation(train, cost_matrix)
    template = test if test is not None else train
    testing_evaluation = MIEvaluation(template, cost_matrix)
    testing_evaluation.set_priors(train)

    model = clone(classifier)
    start = time.time()
    model.build_classifier(train.copy())
    train_elapsed = time.time() - start

    start = time.time()
    training_evaluation.evaluate_model(model, train)
    test_elapsed = time.time() - start

    text = ['', str(model)]
    if cost_matrix is not None:
        text.extend(['', '=== Evaluation Cost Matrix ===', '',
                     str(np.asarray(cost_matrix))])
    text.append('')
    text.append('Time taken to build model: %.2f seconds' % train_elapsed)
    text.append('Time taken to test model on training data: %.2f seconds'
                % test_elapsed)
    text.append('')
    text.append(training_evaluation.to_summary_string(
        '\n=== Error on training data ===\n'))
    text.append(training_evaluation.to_class_details_string())
    text.append(training_evaluation.to_matrix_string())

    if test is not None:
        testing_evaluation.evaluate_model(model, test)
        text.append(testing_evaluation.to_summary_string(
            '=== Error on test data ===\n'))
    else:
        data = train.copy()
        data.randomize(seed)
        if leave_one_out:
            num_folds = len(data)
        testing_evaluation.cross_validate_model(classifier, data, num_folds)
        if leave_one_out:
            title = '=== Leave One Out Error ===\n'
        else:
            title = '=== Stratified cross-validation ===\n'
        text.append(testing_evaluation.to_summary_string(title))
    text.append(testing_evaluation.to_class_details_string())
    text.append(testing_evaluation.to_matrix_string())
    return '\n'.join(text)
