#!/usr/bin/env python
import numpy as np

import milkit
from milkit.evaluation import MIEvaluation


def main():
    # Artificial bags labelled by the average log-odds of their rows
    beta = np.array([1.0, -0.5])
    train = milkit.make_mi_sample(100, beta, random_state=1)
    test = milkit.make_mi_sample(50, beta, random_state=2)
    print(train.summary())

    # Construct classifiers
    classifiers = {}
    classifiers['MILR'] = milkit.MILR(ridge=1e-6)
    classifiers['MILRGEOM'] = milkit.by_name('milr_geom')
    classifiers['MIWrapper'] = milkit.by_name('mi_wrapper', method=2)
    classifiers['MIBoost'] = milkit.MIBoost(max_iterations=10)
    classifiers['TLDSimple'] = milkit.TLDSimple()
    classifiers['MIRBFNetwork'] = milkit.MIRBFNetwork(num_clusters=5)

    # Train/Evaluate classifiers
    accuracies = {}
    for algorithm, classifier in classifiers.items():
        classifier.fit(train)
        evaluation = MIEvaluation(train)
        evaluation.evaluate_model(classifier, test)
        accuracies[algorithm] = evaluation.pct_correct

    for algorithm, accuracy in accuracies.items():
        print('\n%s Accuracy: %.1f%%' % (algorithm, accuracy))

    # Full report with 10-fold stratified cross-validation
    print(milkit.evaluate(milkit.MILR(), train, num_folds=10, seed=1))


if __name__ == '__main__':
    main()
