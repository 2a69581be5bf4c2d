"""
Proposal distributions for Metropolis samplers

The proposals here generate steps on unit scale; the sampler transforms them
with its (adaptive) Cholesky factor, ``theta' = theta + S @ u``.
"""
from abc import ABCMeta, abstractmethod

import numpy as np

class Proposal(metaclass=ABCMeta):
    """
    Abstract base class for proposal distributions

    Attributes
    ----------
    symmetric : bool
        whether ``q(u) = q(-u)``. The samplers in `bayescarma.samplers` rely
        on this.
    """
    symmetric = True

    @abstractmethod
    def sample(self, dim, rng=None):
        """
        Draw a step

        Parameters
        ----------
        dim : int
            dimension of the step
        rng : np.random.Generator, optional

        Returns
        -------
        (dim,) np.ndarray
        """
        raise NotImplementedError # pragma: no cover

class NormalProposal(Proposal):
    """
    Isotropic Gaussian proposal

    Parameters
    ----------
    scale : float > 0
        standard deviation of each component
    """
    def __init__(self, scale=1.):
        if not scale > 0:
            raise ValueError(f"scale should be positive, got {scale}")
        self.scale = scale

    def sample(self, dim, rng=None):
        if rng is None:
            rng = np.random.default_rng()
        return self.scale*rng.normal(size=dim)

class StudentProposal(Proposal):
    """
    Multivariate Student-t proposal

    Steps are ``scale * z / sqrt(w/dof)`` with ``z`` standard normal and ``w``
    chi-square distributed with `!dof` degrees of freedom, shared by all
    components. Compared to `NormalProposal`, this occasionally proposes large
    jumps, which helps the chain escape from bad starting points.

    Parameters
    ----------
    dof : float > 0
        degrees of freedom
    scale : float > 0
    """
    def __init__(self, dof=8., scale=1.):
        if not dof > 0:
            raise ValueError(f"dof should be positive, got {dof}")
        if not scale > 0:
            raise ValueError(f"scale should be positive, got {scale}")
        self.dof = dof
        self.scale = scale

    def sample(self, dim, rng=None):
        if rng is None:
            rng = np.random.default_rng()
        z = rng.normal(size=dim)
        w = rng.chisquare(self.dof)
        return self.scale * z / np.sqrt(w/self.dof)
