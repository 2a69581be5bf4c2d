"""
The posterior density, combining model likelihood and prior
"""
import numpy as np

class Posterior:
    """
    Posterior density over the parameters of a model

    Besides evaluating the log-posterior, this class keeps the current state
    of a Markov chain, i.e. the current parameter vector and its
    log-posterior. This state is only ever changed through `set_current`,
    usually by a `Sampler <bayescarma.samplers.Sampler>`.

    Parameters
    ----------
    model : Model <bayescarma.model.Model>
    prior : Prior <bayescarma.priors.Prior>, optional
        defaults to ``model.default_prior()``

    Attributes
    ----------
    model : Model
    prior : Prior
    """
    def __init__(self, model, prior=None):
        self.model = model
        if prior is None:
            prior = model.default_prior()
        self.prior = prior

        if self.prior.ndim != self.model.ndim:
            raise ValueError(f"Prior has {self.prior.ndim} parameters, but model has {self.model.ndim}")

        self._current_value = None
        self._current_logdensity = None

    @property
    def ndim(self):
        return self.model.ndim

    @property
    def names(self):
        return list(self.model.parameter_names)

    def logdensity(self, theta):
        """
        Evaluate the log-posterior (up to normalization)

        The prior is evaluated first; if it vanishes, the likelihood is not
        evaluated. This function does not use or change the current state.

        Parameters
        ----------
        theta : array-like, (ndim,)

        Returns
        -------
        float
            ``-np.inf`` for parameters outside the support of the prior, or
            giving a degenerate likelihood.

        Raises
        ------
        ValueError
            if `!theta` has the wrong length
        """
        theta = self.model.check_theta(theta)

        logprior = self.prior.logprior(theta)
        if logprior == -np.inf:
            return -np.inf
        return logprior + self.model.logL(theta)

    def __call__(self, theta):
        return self.logdensity(theta)

    def set_current(self, theta, logdensity):
        """
        Commit a new current state

        Parameters
        ----------
        theta : array-like, (ndim,)
        logdensity : float
            should be ``self.logdensity(theta)``; this is not checked.
        """
        theta = self.model.check_theta(theta).copy()
        theta.flags.writeable = False
        self._current_value = theta
        self._current_logdensity = float(logdensity)

    @property
    def current_value(self):
        """
        The current parameter vector (read-only array)
        """
        if self._current_value is None:
            raise RuntimeError("No current state; use set_current() first")
        return self._current_value

    @property
    def current_logdensity(self):
        """
        Log-posterior of the current parameter vector
        """
        if self._current_logdensity is None:
            raise RuntimeError("No current state; use set_current() first")
        return self._current_logdensity
