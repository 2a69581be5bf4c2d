"""
Priors over CARMA parameters

A `Prior` defines the support of the posterior (via per-parameter bounds and
additional constraints) and the prior density within that support. Outside of
the support, `Prior.logprior` returns exactly ``-np.inf``, such that
`Posterior <bayescarma.posterior.Posterior>` can skip the likelihood
evaluation.

The bounds are physically motivated and usually set from the data, using the
``from_data()`` constructors:

 + the standard deviation of the process should not exceed a multiple of the
   sample standard deviation of the data (`!max_stdev`)
 + the characteristic frequencies of the process should lie between
   `!min_freq`, a fraction of the inverse time span of the data, and
   `!max_freq`
 + the scale factor for the measurement errors should be of order 1; we use
   the band ``[0.5, 2]`` by default.

See also
--------
CAR1Prior, CARMAPrior
"""
from abc import ABCMeta, abstractmethod

import numpy as np

from . import kalman
from .data import make_TimeSeries
from .parameters import Parameter

_MAX_LOG = 200

def bounds_from_data(data, max_stdev=None, stdev_factor=10,
                     min_freq=None, span_factor=10,
                     ):
    """
    Determine data-dependent prior bounds

    Parameters
    ----------
    data : TimeSeries or (time, y[, yerr])
    max_stdev : float, optional
        give explicitly to override the default ``stdev_factor * std(y)``
    stdev_factor : float
    min_freq : float, optional
        give explicitly to override the default ``1/(span_factor *
        time_span)``
    span_factor : float

    Returns
    -------
    max_stdev, min_freq : float
    """
    data = make_TimeSeries(data)
    if max_stdev is None:
        max_stdev = stdev_factor*data.std
    if min_freq is None:
        min_freq = 1/(span_factor*data.span)
    return max_stdev, min_freq

class Prior(metaclass=ABCMeta):
    """
    Abstract base class for priors

    Parameters
    ----------
    max_stdev : float > 0
        upper bound on the standard deviation of the process
    min_freq, max_freq : float, 0 < min_freq < max_freq
        bounds on the characteristic (angular) frequencies of the process
    measerr_bounds : (float, float)
        admissible range for the measurement error scale factor

    Attributes
    ----------
    parameters : dict of Parameter
        one entry for each coordinate of the parameter vector, in order.
        Subclasses populate this.
    constraints : list of callables
        additional constraints; signature ``constraint(theta) --> bool``,
        where ``False`` indicates infeasibility. These are checked only if all
        the parameter bounds are satisfied.
    max_stdev, min_freq, max_freq : float
    measerr_bounds : np.ndarray
    """
    def __init__(self, max_stdev, min_freq, max_freq, measerr_bounds=(0.5, 2.)):
        if not max_stdev > 0:
            raise ValueError(f"max_stdev should be positive, got {max_stdev}")
        if not 0 < min_freq < max_freq:
            raise ValueError(f"Need 0 < min_freq < max_freq, got ({min_freq}, {max_freq})")
        if not 0 < measerr_bounds[0] < measerr_bounds[1]:
            raise ValueError(f"Invalid bounds for measurement error scale: {measerr_bounds}")

        self.max_stdev = max_stdev
        self.min_freq  = min_freq
        self.max_freq  = max_freq
        self.measerr_bounds = np.array(measerr_bounds, dtype=float)

        self.parameters = {} # to be populated when subclassing
        self.constraints = []

    @property
    def ndim(self):
        return len(self.parameters)

    @property
    def names(self):
        return list(self.parameters)

    def in_support(self, theta):
        """
        Check parameter bounds and constraints

        Parameters
        ----------
        theta : np.ndarray

        Returns
        -------
        bool
        """
        for P, x in zip(self.parameters.values(), theta):
            if not P.contains(x):
                return False

        for constraint in self.constraints:
            if not constraint(theta):
                return False

        return True

    @abstractmethod
    def _logdensity(self, theta):
        """
        Log of the prior density within the support

        Parameters
        ----------
        theta : np.ndarray
            guaranteed to lie within the support

        Returns
        -------
        float
        """
        raise NotImplementedError # pragma: no cover

    def logprior(self, theta):
        """
        Evaluate the prior

        Parameters
        ----------
        theta : array-like

        Returns
        -------
        float
            ``-np.inf`` if `!theta` lies outside the support of the prior.
        """
        theta = np.asarray(theta, dtype=float)
        if theta.shape != (self.ndim,):
            raise ValueError(f"Expected parameter vector of length {self.ndim}, got shape {theta.shape}")

        if not self.in_support(theta):
            return -np.inf
        return float(self._logdensity(theta))

class CAR1Prior(Prior):
    """
    Prior for the CAR(1) process

    Parameters are ``theta = [sigma, measerr_scale, log(omega)]``. The prior is

     + uniform for ``sigma`` in ``(0, max_stdev]``
     + log-uniform for ``measerr_scale`` in `!measerr_bounds`
     + log-uniform for ``omega`` in ``[min_freq, max_freq]``, i.e. uniform in
       ``log(omega)``.

    Thus the prior is proper and normalized.

    Parameters
    ----------
    max_stdev, min_freq, max_freq, measerr_bounds
        see `Prior`

    See also
    --------
    from_data
    """
    def __init__(self, max_stdev, min_freq, max_freq, measerr_bounds=(0.5, 2.)):
        super().__init__(max_stdev, min_freq, max_freq, measerr_bounds)

        self.parameters = {
            'sigma'         : Parameter((0, max_stdev), closed=(False, True)),
            'measerr_scale' : Parameter(self.measerr_bounds),
            'log_omega'     : Parameter((np.log(min_freq), np.log(max_freq))),
        }

        self._lognorm = (  np.log(max_stdev)
                         + np.log(np.log(self.measerr_bounds[1]/self.measerr_bounds[0]))
                         + np.log(self.parameters['log_omega'].width)
                        )

    @classmethod
    def from_data(cls, data, max_freq=10., measerr_bounds=(0.5, 2.), **kwargs):
        """
        Set up the prior from data

        Parameters
        ----------
        data : TimeSeries or (time, y[, yerr])
        max_freq : float
        measerr_bounds : (float, float)
        kwargs : keyword arguments
            forwarded to `bounds_from_data`

        Returns
        -------
        CAR1Prior
        """
        max_stdev, min_freq = bounds_from_data(data, **kwargs)
        return cls(max_stdev, min_freq, max_freq, measerr_bounds)

    def _logdensity(self, theta):
        return -np.log(theta[1]) - self._lognorm

class CARMAPrior(Prior):
    """
    Prior for CARMA(p, q) processes

    Parameters are ``theta = [sigma, measerr_scale, log_quad_0, ...,
    log_quad_(p-1), ma_coef_1, ..., ma_coef_q]``; see `CARMA
    <bayescarma.lib.CARMA>`. The support is defined by

     + all roots of the AR polynomial have ``-Re(root)`` in ``[min_freq,
       max_freq]`` and ``|Im(root)| <= max_freq``
     + the MA polynomial is minimum phase, i.e. all its roots have negative
       real part
     + the stationary standard deviation of the process does not exceed
       `!max_stdev`.

    Within the support, the prior is log-uniform for ``measerr_scale`` and flat
    in all other coordinates. Note that it is thus not normalized.

    Parameters
    ----------
    p, q : int
        order of the process; ``0 <= q < p``
    max_stdev, min_freq, max_freq, measerr_bounds
        see `Prior`
    """
    def __init__(self, p, q, max_stdev, min_freq, max_freq, measerr_bounds=(0.5, 2.)):
        super().__init__(max_stdev, min_freq, max_freq, measerr_bounds)
        if not 0 <= q < p:
            raise ValueError(f"Need 0 <= q < p, got p = {p}, q = {q}")
        self.p = p
        self.q = q

        self.parameters = {
            'sigma'         : Parameter((0, np.inf), closed=(False, False)),
            'measerr_scale' : Parameter(self.measerr_bounds),
        }
        for k in range(self.p):
            self.parameters[f'log_quad_{k}'] = Parameter((-_MAX_LOG, _MAX_LOG))
        for k in range(self.q):
            self.parameters[f'ma_coef_{k+1}'] = Parameter()

        self.constraints = [self.constraint_ar_roots,
                            self.constraint_ma_roots,
                            self.constraint_stdev,
                           ]

        self._lognorm = np.log(np.log(self.measerr_bounds[1]/self.measerr_bounds[0]))

    @classmethod
    def from_data(cls, data, p, q=0, max_freq=10., measerr_bounds=(0.5, 2.), **kwargs):
        """
        Set up the prior from data

        Parameters
        ----------
        data : TimeSeries or (time, y[, yerr])
        p, q : int
        max_freq : float
        measerr_bounds : (float, float)
        kwargs : keyword arguments
            forwarded to `bounds_from_data`

        Returns
        -------
        CARMAPrior
        """
        max_stdev, min_freq = bounds_from_data(data, **kwargs)
        return cls(p, q, max_stdev, min_freq, max_freq, measerr_bounds)

    def _split(self, theta):
        with np.errstate(over='ignore', under='ignore', invalid='ignore'):
            ar_coefs = kalman.quad2coefs(theta[2:(2+self.p)])
        return ar_coefs, theta[(2+self.p):]

    def constraint_ar_roots(self, theta):
        ar_coefs, _ = self._split(theta)
        if not np.all(np.isfinite(ar_coefs)):
            return False

        roots = kalman.ar_roots(ar_coefs)
        return bool(    np.all(-roots.real >= self.min_freq)
                    and np.all(-roots.real <= self.max_freq)
                    and np.all(np.abs(roots.imag) <= self.max_freq)
                   )

    def constraint_ma_roots(self, theta):
        _, ma_coefs = self._split(theta)
        if len(ma_coefs) == 0:
            return True
        return bool(np.all(kalman.ma_roots(ma_coefs).real < 0))

    def constraint_stdev(self, theta):
        ar_coefs, ma_coefs = self._split(theta)
        try:
            _, b, V = kalman.carma_system(theta[0], ar_coefs, ma_coefs)
        except kalman.BadVarianceError:
            return False
        return bool(np.sqrt(b @ V @ b) <= self.max_stdev)

    def _logdensity(self, theta):
        return -np.log(theta[1]) - self._lognorm
