"""
Metropolis-Hastings samplers

The main workhorse is `AdaptiveMetropolis`, an implementation of the Robust
Adaptive Metropolis (RAM) algorithm (Vihola, Stat. Comput. 2012). Candidates
are proposed as ``theta' = theta + S @ u``, with ``u`` drawn from a unit-scale
`Proposal <bayescarma.proposals.Proposal>` and ``S`` a lower triangular
Cholesky factor. After each step, ``S`` is updated such that

.. code-block:: text

    S' S'^T = S (1 + eta_n * (alpha - target_rate) * u u^T / |u|²) S^T

where ``alpha`` is the acceptance probability of the step and ``eta_n =
n^(-gamma)`` a decaying step size. Thus the proposal shrinks when the
acceptance rate is too low and expands when it is too high, converging to the
shape of the posterior.

Example
-------
>>> model = bayescarma.lib.CAR1((time, y, yerr))
... posterior = bayescarma.Posterior(model)
... sampler = bayescarma.AdaptiveMetropolis(posterior,
...                                         bayescarma.proposals.StudentProposal(),
...                                         covariance=0.01*np.eye(3),
...                                         niter=10000,
...                                        )
... res = sampler.run(burnin=2000, show_progress=True)
... res['samples'].shape # (8000, 3)
"""
from abc import ABCMeta, abstractmethod

from tqdm.auto import tqdm

import numpy as np
from scipy import linalg

from .deco import method_verbosity_patch

class Sampler(metaclass=ABCMeta):
    """
    Abstract base class for Metropolis samplers with a linear proposal

    A sampler runs one Markov chain for a fixed number of iterations
    `!niter`. It goes through the states ``'uninitialized'`` (after
    construction), ``'ready'`` (after `start`), ``'running'`` (after the first
    step), and ``'finished'`` (after `!niter` steps).

    Parameters
    ----------
    posterior : Posterior <bayescarma.posterior.Posterior>
        the target density. The sampler commits its state to the posterior
        using `Posterior.set_current`.
    proposal : Proposal <bayescarma.proposals.Proposal>
        should be symmetric
    covariance : (d, d) array-like
        initial proposal covariance; should be symmetric positive definite
    niter : int
        total number of iterations to run
    initial_value : (d,) array-like, optional
        starting point of the chain; defaults to
        ``posterior.model.initial_params()``
    rng : np.random.Generator, optional

    Attributes
    ----------
    posterior, proposal, niter, initial_value, rng
        see Parameters
    state : str
    S : (d, d) np.ndarray
        lower triangular Cholesky factor of the current proposal covariance.
        Set by `start`.
    n : int
        number of iterations performed so far
    n_accepted : int
        number of accepted steps so far
    samples : (niter, d) np.ndarray
        trace of the chain; rejected steps repeat the previous value
    logpost : (niter,) np.ndarray
        log-posterior for each entry in `!samples`
    accepted : (niter,) np.ndarray, dtype=bool
        whether each step was accepted
    verbosity : {0, 1, 2, 3}
        controls amount of messages. ``0``: no output; ``1``: error messages
        only; ``2``: informational; ``3``: debugging
    """
    UNINITIALIZED = 'uninitialized'
    READY = 'ready'
    RUNNING = 'running'
    FINISHED = 'finished'

    def __init__(self, posterior, proposal, covariance, niter,
                 initial_value=None,
                 rng=None,
                ):
        self.posterior = posterior
        self.proposal = proposal
        self.ndim = self.posterior.ndim

        self.covariance = np.array(covariance, dtype=float)
        if self.covariance.shape != (self.ndim, self.ndim):
            raise ValueError(f"covariance should have shape {(self.ndim, self.ndim)}, got {self.covariance.shape}")

        self.niter = int(niter)
        if self.niter < 1:
            raise ValueError(f"niter should be positive, got {niter}")

        self.initial_value = initial_value
        if rng is None:
            rng = np.random.default_rng()
        self.rng = rng

        self.verbosity = 1
        self.state = self.UNINITIALIZED

        self.S = None
        self.n = 0
        self.n_accepted = 0
        self.samples  = None
        self.logpost  = None
        self.accepted = None

    def vprint(self, v, *args, **kwargs):
        """
        Prints only if ``self.verbosity >= v``.
        """
        if self.verbosity >= v: # pragma: no cover
            print("[bayescarma.Sampler]", (v-1)*'--', *args, **kwargs)

    @abstractmethod
    def adapt(self, u, alpha):
        """
        Update the proposal after a step

        Parameters
        ----------
        u : (d,) np.ndarray
            the unit-scale step drawn from the proposal
        alpha : float
            the acceptance probability of the step
        """
        raise NotImplementedError # pragma: no cover

    def start(self):
        """
        Initialize the chain

        Factorize the initial covariance, evaluate the posterior at the
        initial value and allocate the trace.

        Raises
        ------
        ValueError
            if the initial covariance is not symmetric positive definite
        RuntimeError
            if the sampler was started before
        """
        if self.state != self.UNINITIALIZED:
            raise RuntimeError(f"Sampler is {self.state}, cannot start again")

        if not np.allclose(self.covariance, self.covariance.T):
            raise ValueError("Proposal covariance is not symmetric")
        try:
            self.S = linalg.cholesky(self.covariance, lower=True)
        except linalg.LinAlgError as err:
            raise ValueError(f"Proposal covariance is not positive definite: {err}")

        theta = self.initial_value
        if theta is None:
            theta = self.posterior.model.initial_params()
        theta = self.posterior.model.check_theta(theta)

        logpost = self.posterior.logdensity(theta)
        if logpost == -np.inf:
            self.vprint(1, f"Initial value {theta} has zero posterior probability; the chain will move away from it at the first step")
        self.posterior.set_current(theta, logpost)
        self.vprint(3, f"Starting from theta = {theta}, logpost = {logpost}")

        self.n = 0
        self.n_accepted = 0
        self.samples  = np.empty((self.niter, self.ndim))
        self.logpost  = np.empty(self.niter)
        self.accepted = np.zeros(self.niter, dtype=bool)

        self.state = self.READY

    @staticmethod
    def acceptance_probability(logpost_current, logpost_candidate):
        """
        Metropolis acceptance probability for a symmetric proposal

        Parameters
        ----------
        logpost_current, logpost_candidate : float

        Returns
        -------
        float
            ``min(1, exp(logpost_candidate - logpost_current))``, with the
            conventions that a candidate with ``-inf`` log-posterior is never
            accepted and any finite candidate is accepted from a current
            value of ``-inf``.
        """
        if logpost_candidate == -np.inf:
            return 0.
        if logpost_current == -np.inf:
            return 1.
        with np.errstate(under='ignore', over='ignore'):
            return float(min(1., np.exp(logpost_candidate - logpost_current)))

    def do_step(self):
        """
        Perform one iteration

        Returns
        -------
        bool
            whether the candidate was accepted

        Raises
        ------
        RuntimeError
            if the sampler was not started, or is finished already
        """
        if self.state == self.UNINITIALIZED:
            raise RuntimeError("Sampler was not started; call start() first")
        if self.state == self.FINISHED:
            raise RuntimeError(f"Sampler finished all {self.niter} iterations")

        theta = self.posterior.current_value
        logpost = self.posterior.current_logdensity

        u = self.proposal.sample(self.ndim, self.rng)
        candidate = theta + self.S @ u
        logpost_candidate = self.posterior.logdensity(candidate)

        alpha = self.acceptance_probability(logpost, logpost_candidate)
        # from -inf we move unconditionally
        accept = logpost == -np.inf or self.rng.uniform() < alpha
        if accept:
            self.posterior.set_current(candidate, logpost_candidate)
            self.n_accepted += 1

        self.n += 1
        self.adapt(u, alpha)

        i = self.n - 1
        self.samples[i]  = self.posterior.current_value
        self.logpost[i]  = self.posterior.current_logdensity
        self.accepted[i] = accept

        self.state = self.FINISHED if self.n >= self.niter else self.RUNNING
        return accept

    @property
    def acceptance_rate(self):
        """
        Fraction of accepted steps so far (``nan`` before the first step)
        """
        if self.n == 0:
            return np.nan
        return self.n_accepted / self.n

    @method_verbosity_patch
    def run(self, burnin=0, thin=1, show_progress=False):
        """
        Run the chain to completion

        Parameters
        ----------
        burnin : int, optional
            number of initial samples to discard from the output
        thin : int, optional
            keep only every `!thin`-th sample
        show_progress : bool, optional
            display a `!tqdm` progress bar
        verbosity : {None, 0, 1, 2, 3}
            if not ``None``, overwrites the internal ``self.verbosity`` for
            this run. Use to silence or get more details of what's happening

        Returns
        -------
        dict
            with fields ``'samples'``, ``'logpost'``, ``'acceptance_rate'``,
            ``'names'``, ``'covariance'``; see `result`.
        """
        if self.state == self.UNINITIALIZED:
            self.start()

        bar = tqdm(total=self.niter, initial=self.n,
                   disable = not show_progress, desc='MCMC iterations')
        while self.state != self.FINISHED:
            self.do_step()
            bar.update()
        bar.close()

        self.vprint(2, f"Finished {self.niter} iterations, acceptance rate = {self.acceptance_rate:.3f}")
        return self.result(burnin, thin)

    def result(self, burnin=0, thin=1):
        """
        Assemble the output of the chain

        Parameters
        ----------
        burnin : int, optional
        thin : int, optional

        Returns
        -------
        dict
            ``'samples'`` : (n, d) np.ndarray
                the trace after discarding burn-in and thinning
            ``'logpost'`` : (n,) np.ndarray
                corresponding log-posterior values
            ``'acceptance_rate'`` : float
                over the whole chain (including burn-in)
            ``'names'`` : list of str
                parameter names
            ``'covariance'`` : (d, d) np.ndarray
                the current proposal covariance ``S @ S.T``
        """
        if self.samples is None:
            raise RuntimeError("Sampler was not started; no results to report")
        if not 0 <= burnin < self.niter:
            raise ValueError(f"Need 0 <= burnin < niter = {self.niter}, got {burnin}")
        if not thin >= 1:
            raise ValueError(f"thin should be at least 1, got {thin}")

        ind = slice(burnin, self.n, thin)
        return {
            'samples'         : self.samples[ind].copy(),
            'logpost'         : self.logpost[ind].copy(),
            'acceptance_rate' : self.acceptance_rate,
            'names'           : self.posterior.names,
            'covariance'      : self.S @ self.S.T,
        }

class Metropolis(Sampler):
    """
    Random walk Metropolis with fixed proposal covariance

    See `Sampler` for parameters.
    """
    def adapt(self, u, alpha):
        pass

class AdaptiveMetropolis(Sampler):
    """
    Robust Adaptive Metropolis (RAM)

    Parameters
    ----------
    posterior, proposal, covariance, niter, initial_value, rng
        see `Sampler`
    target_rate : float, 0 < target_rate < 1
        the acceptance rate to adapt towards
    gamma : float, 0.5 < gamma <= 1
        decay exponent for the adaptation step size ``eta_n = n^(-gamma)``

    Notes
    -----
    The update of the Cholesky factor is done by refactorizing the updated
    covariance with `!scipy.linalg.cholesky`, such that `!S` stays lower
    triangular with positive diagonal.

    See also
    --------
    Sampler, bayescarma.samplers
    """
    def __init__(self, posterior, proposal, covariance, niter,
                 target_rate=0.4,
                 gamma=2/3,
                 **kwargs,
                ):
        super().__init__(posterior, proposal, covariance, niter, **kwargs)

        if not 0 < target_rate < 1:
            raise ValueError(f"target_rate should be in (0, 1), got {target_rate}")
        if not 0.5 < gamma <= 1:
            raise ValueError(f"gamma should be in (0.5, 1], got {gamma}")
        self.target_rate = target_rate
        self.gamma = gamma

    def adapt(self, u, alpha):
        norm2 = u @ u
        if norm2 == 0: # pragma: no cover
            return

        with np.errstate(under='ignore'):
            eta = self.n**(-self.gamma)
            Su = self.S @ u
            M = self.S @ self.S.T + (eta*(alpha - self.target_rate)/norm2) * np.outer(Su, Su)
            self.S = linalg.cholesky(0.5*(M + M.T), lower=True)
