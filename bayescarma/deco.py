"""
Decorators for methods of models and samplers

+ `method_verbosity_patch` lets users override the verbosity of an object for
  a single call, like ``sampler.run(verbosity=2)``.
+ `neginf_on_bad_variance` turns a `BadVarianceError
  <bayescarma.kalman.BadVarianceError>` into a log-density of ``-np.inf``,
  i.e. zero probability. Use this for methods that evaluate log-densities.

Both assume that the decorated method belongs to a class with a `!verbosity`
attribute and a ``vprint(v, *args)`` method.

See also
--------
bayescarma
"""
import functools

import numpy as np

from .kalman import BadVarianceError

def method_verbosity_patch(meth):
    """
    (internal) Decorator for class methods, temporarily changing verbosity
    """
    @functools.wraps(meth)
    def wrapper(self, *args, verbosity=None, **kwargs):
        old_verbosity = self.verbosity
        if verbosity is not None:
            self.verbosity = verbosity
        try:
            return meth(self, *args, **kwargs)
        finally:
            self.verbosity = old_verbosity

    return wrapper

def neginf_on_bad_variance(meth):
    """
    (internal) Decorator mapping degenerate variances to zero probability
    """
    @functools.wraps(meth)
    def wrapper(self, *args, **kwargs):
        try:
            return meth(self, *args, **kwargs)
        except BadVarianceError as err:
            self.vprint(3, f"BadVarianceError in {meth.__name__}(): {err}")
            return -np.inf

    return wrapper
