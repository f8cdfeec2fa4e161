"""
MILKit: multiple-instance learning on bags of rows

Data are held as bags (Exemplar) grouped into collections
(Exemplars); classifiers are evaluated with MIEvaluation.

The following algorithms are implemented:

  SimpleMI     : trains a standard classifier on one summary row per bag
                 (mean/mode or min/max centre)
  MIWrapper    : trains a standard classifier after applying bag labels to
                 each row, pooling the row predictions at test time
  MILR         : multiple-instance logistic regression under the collective
                 assumption (Xu & Frank, 2004)
  MILRGEOM     : MILR with the bag log-odds taken as the mean row log-odds
  DD           : Diverse Density with the noisy-or model (Maron &
                 Lozano-Perez, 1998)
  MDD          : Diverse Density with the average row probability
  MIBoost      : bag-level boosting (Xu & Frank, 2004)
  TLD          : the two-level distribution approach (Xu, 2003)
  TLDSimple    : the simplified two-level distribution approach (Xu, 2003)
  MINND        : nearest neighbour on bags viewed as distributions, with
                 noise cleansing (Xu, 2001)
  MIRBFNetwork : MILR on the k-means cluster memberships of the rows
"""
__version__ = '1.0'
from milkit.exceptions import (SchemaError, IncompatibleRowError,
                               DuplicateIdError, InvalidFoldError,
                               UnassignedClassError, NonNominalClassError,
                               StringAttributeError)
from milkit.dataset import Attribute, Instance, Dataset
from milkit.exemplar import Exemplar
from milkit.exemplars import Exemplars, from_bags
from milkit.classifier import MIClassifier, by_name, make_copies
from milkit.simple_mi import SimpleMI
from milkit.mi_wrapper import MIWrapper
from milkit.milr import MILR, MILRGEOM
from milkit.dd import DD, MDD
from milkit.mi_boost import MIBoost
from milkit.tld import TLD
from milkit.tld_simple import TLDSimple
from milkit.minnd import MINND
from milkit.mi_rbf_network import MIRBFNetwork
from milkit.evaluation import MIEvaluation, evaluate
from milkit.datagen import make_mi_sample
