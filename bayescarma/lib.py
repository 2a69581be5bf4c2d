"""
A library of `Model <bayescarma.model.Model>` implementations

+ `CAR1`: the continuous-time first order autoregressive process, also known
  as Ornstein-Uhlenbeck process or damped random walk. This is the workhorse
  for most applications and has a fast dedicated likelihood implementation.
+ `CARMA`: general CARMA(p, q) processes. The AR part is parametrized by the
  (logarithms of) the coefficients of its quadratic factors, which guarantees
  stationarity for any real parameter vector.

For ``p = 1, q = 0``, `CARMA` has the same parameters and likelihood as
`CAR1`.
"""
import numpy as np

from . import kalman
from .model import Model
from .priors import CAR1Prior, CARMAPrior

def _frequency_range(data, prior):
    # range of frequencies that the data actually resolves, clipped to the
    # prior's range
    f_lo = np.clip(2/data.span, prior.min_freq, prior.max_freq)
    f_hi = np.clip(1/np.median(data.dt), f_lo, prior.max_freq)
    return f_lo, f_hi

class CAR1(Model):
    """
    CAR(1) model

    The process follows ``dy = -omega*y dt + sigma dW``, such that its
    stationary variance is ``sigma²/(2*omega)`` and the correlation time
    ``1/omega``. Measurement errors given with the data are scaled by a free
    factor ``measerr_scale``.

    Parameters are ``theta = [sigma, measerr_scale, log_omega]``.

    Parameters
    ----------
    data : TimeSeries or (time, y[, yerr])

    See also
    --------
    CAR1Prior <bayescarma.priors.CAR1Prior>
    """
    def __init__(self, data):
        super().__init__(data)
        self.parameter_names = ['sigma', 'measerr_scale', 'log_omega']

    def theta2carma(self, theta):
        with np.errstate(over='ignore', under='ignore'):
            omega = np.exp(theta[2])
        return theta[0], theta[1], np.array([omega]), np.array([])

    def kalman_filter(self, theta):
        sigma, measerr_scale, (omega,), _ = self.theta2carma(theta)
        return kalman.car1_filter(self.data.time, self.data.y, self.data.yerr,
                                  sigma, measerr_scale, omega)

    def default_prior(self, **kwargs):
        return CAR1Prior.from_data(self.data, **kwargs)

    def initial_params(self):
        """
        Initial parameters from the data

        We pick ``omega`` in the middle (on log-scale) of the frequencies
        resolved by the data and match the stationary variance to the sample
        variance of the data.
        """
        prior = self.default_prior()
        f_lo, f_hi = _frequency_range(self.data, prior)
        omega = np.sqrt(f_lo*f_hi)
        sigma = min(self.data.std*np.sqrt(2*omega), prior.max_stdev)
        return np.array([sigma, 1., np.log(omega)])

class CARMA(Model):
    """
    CARMA(p, q) model

    The process is defined by

    .. code-block:: text

        alpha(d/dt) y(t) = sigma * beta(d/dt) dW(t)/dt

    with AR polynomial ``alpha`` of degree ``p`` and MA polynomial ``beta`` of
    degree ``q < p``; see `bayescarma.kalman` for details.

    Parameters are ``theta = [sigma, measerr_scale, log_quad_0, ...,
    log_quad_(p-1), ma_coef_1, ..., ma_coef_q]``, where the ``log_quad_*``
    are the logarithms of the coefficients of the quadratic (and, for odd
    ``p``, one linear) factors of ``alpha``:

    .. code-block:: text

        alpha(s) = (s² + c_0*s + c_1) * ... [* (s + c_{p-1})]
        log_quad_k = log(c_k)

    Parameters
    ----------
    data : TimeSeries or (time, y[, yerr])
    p : int >= 1
        order of the AR polynomial
    q : int, 0 <= q < p
        order of the MA polynomial

    See also
    --------
    CARMAPrior <bayescarma.priors.CARMAPrior>, CAR1
    """
    def __init__(self, data, p, q=0):
        super().__init__(data)
        if not 0 <= q < p:
            raise ValueError(f"Need 0 <= q < p, got p = {p}, q = {q}")
        self.p = p
        self.q = q

        self.parameter_names = (  ['sigma', 'measerr_scale']
                                + [f'log_quad_{k}' for k in range(self.p)]
                                + [f'ma_coef_{k+1}' for k in range(self.q)]
                               )

    def theta2carma(self, theta):
        with np.errstate(over='ignore', under='ignore', invalid='ignore'):
            ar_coefs = kalman.quad2coefs(theta[2:(2+self.p)])
        return theta[0], theta[1], ar_coefs, np.asarray(theta[(2+self.p):])

    def default_prior(self, **kwargs):
        return CARMAPrior.from_data(self.data, self.p, self.q, **kwargs)

    def initial_params(self):
        """
        Initial parameters from the data

        Start from real AR roots, log-spaced over the frequencies resolved by
        the data, no MA component, and ``sigma`` such that the stationary
        variance matches the sample variance.
        """
        prior = self.default_prior()
        f_lo, f_hi = _frequency_range(self.data, prior)
        omegas = np.geomspace(f_lo, f_hi, self.p)

        log_quad = []
        for k in range(self.p//2):
            wa, wb = omegas[2*k], omegas[2*k+1]
            log_quad += [np.log(wa+wb), np.log(wa*wb)]
        if self.p % 2 == 1:
            log_quad.append(np.log(omegas[-1]))

        ar_coefs = kalman.quad2coefs(log_quad)
        _, b, V = kalman.carma_system(1., ar_coefs)
        sigma = min(self.data.std, prior.max_stdev) / np.sqrt(b @ V @ b)

        return np.array([sigma, 1.] + log_quad + self.q*[0.])
