"""
Implementation of the `Model` base class

A `Model` couples a `TimeSeries <bayescarma.data.TimeSeries>` with a
parametrization of CARMA processes and provides the likelihood of the data
given the parameters. For implementations, see `bayescarma.lib`.
"""
from abc import ABCMeta, abstractmethod

import numpy as np

from . import kalman
from .data import make_TimeSeries
from .deco import neginf_on_bad_variance

class Model(metaclass=ABCMeta):
    """
    Abstract base class for CARMA models of a time series

    This class provides the general likelihood machinery; subclasses define
    the parametrization. Specifically, when subclassing, you should

    + populate `!parameter_names` in ``__init__()``, after calling
      ``super().__init__(data)``
    + implement `theta2carma`, converting a parameter vector to the natural
      CARMA parameters
    + implement `initial_params` and `default_prior`
    + (optionally) override `kalman_filter`, if there is a faster way to
      evaluate the likelihood than the generic CARMA Kalman filter.

    Parameters
    ----------
    data : TimeSeries or (time, y[, yerr])
        the data to model

    Attributes
    ----------
    data : TimeSeries
    parameter_names : list of str
        names for the entries of the parameter vector
    verbosity : {0, 1, 2, 3}
        controls amount of messages during fitting. ``0``: no output; ``1``:
        error messages only; ``2``: informational; ``3``: debugging

    Notes
    -----
    The model keeps the Kalman filter output from the last call to `logL`,
    accessible through `kalman_mean` and `kalman_variance`.
    """
    def __init__(self, data):
        self.data = make_TimeSeries(data)
        self.parameter_names = [] # to be populated when subclassing
        self.verbosity = 1

        self._kalman = None

    def vprint(self, v, *args, **kwargs):
        """
        Prints only if ``self.verbosity >= v``.
        """
        if self.verbosity >= v: # pragma: no cover
            print("[bayescarma.Model]", (v-1)*'--', *args, **kwargs)

    @property
    def ndim(self):
        return len(self.parameter_names)

    ################## ABC ###################################################

    @abstractmethod
    def theta2carma(self, theta):
        """
        Convert parameter vector to CARMA parameters

        Parameters
        ----------
        theta : np.ndarray

        Returns
        -------
        sigma : float
            amplitude of the driving noise
        measerr_scale : float
            factor to apply to the measurement errors
        ar_coefs : (p,) np.ndarray
        ma_coefs : (q,) np.ndarray
        """
        raise NotImplementedError # pragma: no cover

    @abstractmethod
    def initial_params(self):
        """
        Give a starting point for sampling

        Returns
        -------
        np.ndarray
            should lie within the support of `default_prior`
        """
        raise NotImplementedError # pragma: no cover

    @abstractmethod
    def default_prior(self, **kwargs):
        """
        Give a data-dependent default prior for this model

        Parameters
        ----------
        kwargs : keyword arguments
            forwarded to the ``from_data()`` constructor of the prior

        Returns
        -------
        Prior <bayescarma.priors.Prior>
        """
        raise NotImplementedError # pragma: no cover

    ################## Likelihood ############################################

    def check_theta(self, theta):
        """
        Convert to float array and check dimension

        Raises
        ------
        ValueError
            if `!theta` does not have the right length
        """
        theta = np.asarray(theta, dtype=float)
        if theta.shape != (self.ndim,):
            raise ValueError(f"Expected parameter vector of length {self.ndim}, got shape {theta.shape}")
        return theta

    def kalman_filter(self, theta):
        """
        Run the Kalman filter over the data

        Parameters
        ----------
        theta : np.ndarray

        Returns
        -------
        KalmanResult <bayescarma.kalman.KalmanResult>

        Raises
        ------
        BadVarianceError <bayescarma.kalman.BadVarianceError>
        """
        sigma, measerr_scale, ar_coefs, ma_coefs = self.theta2carma(theta)
        return kalman.carma_filter(self.data.time, self.data.y, self.data.yerr,
                                   sigma, measerr_scale, ar_coefs, ma_coefs)

    @neginf_on_bad_variance
    def logL(self, theta):
        """
        Log-likelihood of the data

        Parameters
        ----------
        theta : array-like, (ndim,)

        Returns
        -------
        float
            ``-np.inf`` for parameters that give degenerate (co)variances.
        """
        theta = self.check_theta(theta)

        self._kalman = None
        res = self.kalman_filter(theta)
        if not np.isfinite(res.logL):
            self.vprint(3, f"Non-finite likelihood: {res.logL}")
            return -np.inf

        self._kalman = res
        return res.logL

    def _last_kalman(self):
        if self._kalman is None:
            raise RuntimeError("No Kalman filter output available; evaluate logL() first")
        return self._kalman

    @property
    def kalman_mean(self):
        """
        One-step-ahead predicted mean from the last likelihood evaluation
        """
        return self._last_kalman().mean

    @property
    def kalman_variance(self):
        """
        One-step-ahead predicted variance from the last likelihood evaluation

        Does not include measurement noise.
        """
        return self._last_kalman().variance

    ################## Diagnostics & spectrum ################################

    def residuals(self, theta):
        """
        Standardized residuals of the one-step-ahead prediction

        For the correct model, these should be i.i.d. standard normal.

        Parameters
        ----------
        theta : array-like, (ndim,)

        Returns
        -------
        np.ndarray
        """
        theta = self.check_theta(theta)
        _, measerr_scale, _, _ = self.theta2carma(theta)
        if self.logL(theta) == -np.inf:
            raise ValueError(f"Cannot calculate residuals for degenerate parameters {theta}")

        total_var = self.kalman_variance + (measerr_scale*self.data.yerr)**2
        return (self.data.y - self.kalman_mean) / np.sqrt(total_var)

    def psd(self, theta, freq):
        """
        Power spectral density of the process

        Parameters
        ----------
        theta : array-like, (ndim,)
        freq : array-like
            frequencies (not angular) at which to evaluate

        Returns
        -------
        np.ndarray

        See also
        --------
        bayescarma.kalman.psd
        """
        sigma, _, ar_coefs, ma_coefs = self.theta2carma(self.check_theta(theta))
        return kalman.psd(freq, sigma, ar_coefs, ma_coefs)

    def ar_roots(self, theta):
        """
        Roots of the autoregressive polynomial

        Their negative real parts are the damping rates, imaginary parts the
        oscillation frequencies of the process.

        Returns
        -------
        np.ndarray, dtype=complex
        """
        _, _, ar_coefs, _ = self.theta2carma(self.check_theta(theta))
        return kalman.ar_roots(ar_coefs)

    def simulate(self, theta, time=None, yerr=None, rng=None):
        """
        Draw a synthetic time series from the model

        Parameters
        ----------
        theta : array-like, (ndim,)
        time : array-like, optional
            sampling times. Defaults to the times of the data.
        yerr : array-like, optional
            measurement errors to add (before scaling with ``measerr_scale``).
            If `!time` is not given, this defaults to the errors of the data;
            otherwise to no measurement noise.
        rng : np.random.Generator, optional

        Returns
        -------
        np.ndarray
            the synthetic values, including the `!mean_offset` of the data
        """
        theta = self.check_theta(theta)
        sigma, measerr_scale, ar_coefs, ma_coefs = self.theta2carma(theta)

        if time is None:
            time = self.data.time
            if yerr is None:
                yerr = self.data.yerr
        if yerr is not None:
            yerr = measerr_scale*np.asarray(yerr, dtype=float)

        y = kalman.generate(time, sigma, ar_coefs, ma_coefs, yerr=yerr, rng=rng)
        return y + self.data.mean_offset
