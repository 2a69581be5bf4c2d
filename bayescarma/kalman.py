"""
Kalman filter likelihood for CARMA processes

This module is mostly for internal use of the `bayescarma` package. It covers
the state space representation of continuous time autoregressive moving
average (CARMA) processes, the associated exact likelihood for irregularly
sampled data (evaluated by Kalman filtering), and sampling of synthetic data
from such processes.

A CARMA(p, q) process ``y(t)`` is defined by the stochastic differential
equation

    .. code-block:: text

        alpha(d/dt) y(t) = sigma * beta(d/dt) dW(t)/dt

        alpha(s) = s^p + a_1*s^(p-1) + ... + a_p
        beta(s)  = 1 + b_1*s + ... + b_q*s^q

where ``W`` is a Wiener process. We represent this in controllable canonical
form, with a ``p``-dimensional latent state ``x`` following

    .. code-block:: text

        dx = A x dt + sigma * e dW
        y  = b . x

with ``A`` the companion matrix of ``alpha``, ``e = (0, ..., 0, 1)`` and ``b =
(1, b_1, ..., b_q, 0, ..., 0)``. The CAR(1) process (a.k.a. Ornstein-Uhlenbeck
process, damped random walk) is the special case ``p = 1, q = 0``, with ``a_1 =
omega``; for this case we provide a dedicated scalar implementation
`car1_filter`.

Throughout, AR coefficients ``(a_1, ..., a_p)`` and MA coefficients ``(b_1,
..., b_q)`` are given without the leading / trailing 1.

See also
--------
car1_filter, carma_filter, generate, psd
"""
from collections import namedtuple

import numpy as np
from scipy import linalg

LOG_2_PI = np.log(2*np.pi)

# below this value of omega*dt use the series expansion for the variance
# increment
_SMALL_OMEGA_DT = 1e-8

# above this condition number of the eigenvector matrix of A we use expm();
# a numerically defective A gives ~1/sqrt(eps)
_MAX_EIGVEC_COND = 1e6

class BadVarianceError(RuntimeError):
    pass

KalmanResult = namedtuple('KalmanResult', ['logL', 'mean', 'variance'])
KalmanResult.__doc__ = """
Output of the Kalman filter

Attributes
----------
logL : float
    the log-likelihood of the data
mean : np.ndarray
    one-step-ahead prediction for the (noise-free) process at each data point
variance : np.ndarray
    variance of that prediction. Does not include measurement noise.
"""

################## Parametrization ###########################################

def quad2coefs(log_quad):
    """
    Assemble AR coefficients from quadratic factors

    The AR polynomial is factorized as

    .. code-block:: text

        alpha(s) = (s^2 + c_0*s + c_1) * (s^2 + c_2*s + c_3) * ... [* (s + c_{p-1})]

    where the last (linear) factor is present only for odd ``p``. For positive
    ``c_i`` all roots have negative real parts, i.e. the process is
    stationary; so we parametrize by ``log(c_i)``.

    Parameters
    ----------
    log_quad : (p,) array-like
        the logarithms ``log(c_i)``

    Returns
    -------
    (p,) np.ndarray
        the AR coefficients ``(a_1, ..., a_p)``
    """
    c = np.exp(np.asarray(log_quad, dtype=float))
    p = len(c)

    poly = np.array([1.])
    for k in range(p//2):
        poly = np.polymul(poly, [1., c[2*k], c[2*k+1]])
    if p % 2 == 1:
        poly = np.polymul(poly, [1., c[-1]])
    return poly[1:]

def ar_roots(ar_coefs):
    """
    Roots of the AR polynomial

    Parameters
    ----------
    ar_coefs : (p,) array-like

    Returns
    -------
    (p,) np.ndarray, dtype=complex
    """
    return np.roots(np.insert(np.asarray(ar_coefs, dtype=float), 0, 1.)).astype(complex)

def ma_roots(ma_coefs):
    """
    Roots of the MA polynomial

    Parameters
    ----------
    ma_coefs : (q,) array-like

    Returns
    -------
    np.ndarray, dtype=complex
        note that trailing zeros in `!ma_coefs` reduce the degree of the
        polynomial, so there might be less than ``q`` roots.
    """
    return np.roots(np.append(np.asarray(ma_coefs, dtype=float)[::-1], 1.)).astype(complex)

################## State space representation ################################

def carma_system(sigma, ar_coefs, ma_coefs=()):
    """
    State space representation of a CARMA process

    Parameters
    ----------
    sigma : float
        amplitude of the driving noise
    ar_coefs : (p,) array-like
    ma_coefs : (q,) array-like, q < p

    Returns
    -------
    A : (p, p) np.ndarray
        the drift (companion) matrix
    b : (p,) np.ndarray
        the observation vector
    V : (p, p) np.ndarray
        stationary covariance of the latent state

    Raises
    ------
    BadVarianceError
        if the parameters do not define a stationary process with positive
        variance
    """
    ar_coefs = np.atleast_1d(np.asarray(ar_coefs, dtype=float))
    ma_coefs = np.atleast_1d(np.asarray(ma_coefs, dtype=float))
    p = len(ar_coefs)
    q = len(ma_coefs)
    if q >= p:
        raise ValueError(f"Need q < p, got p = {p}, q = {q}")

    if not (np.all(np.isfinite(ar_coefs)) and np.all(np.isfinite(ma_coefs)) and np.isfinite(sigma)):
        raise BadVarianceError("Non-finite CARMA parameters")

    A = np.zeros((p, p))
    A[:-1, 1:] = np.eye(p-1)
    A[-1, :] = -ar_coefs[::-1]

    b = np.zeros(p)
    b[0] = 1
    b[1:(q+1)] = ma_coefs

    # A V + V A^T = - sigma^2 e e^T
    Q = np.zeros((p, p))
    Q[-1, -1] = -sigma**2
    try:
        V = linalg.solve_continuous_lyapunov(A, Q)
    except linalg.LinAlgError as err: # pragma: no cover
        raise BadVarianceError(f"Could not solve for stationary covariance: {err}")
    V = 0.5*(V + V.T)

    var = b @ V @ b
    if not (np.isfinite(var) and var > 0):
        raise BadVarianceError(f"Stationary variance is not positive: {var}")

    return A, b, V

class Transition:
    """
    Propagator ``Phi(dt) = exp(A*dt)`` for the latent state

    We diagonalize ``A`` once and then evaluate the matrix exponential for
    different time lags cheaply. If ``A`` is (close to) defective, i.e. the
    eigenvectors are ill-conditioned, fall back to ``scipy.linalg.expm``.

    Parameters
    ----------
    A : (p, p) np.ndarray
    """
    def __init__(self, A):
        self.A = A
        lam, U = linalg.eig(A)
        self.use_expm = np.linalg.cond(U) > _MAX_EIGVEC_COND
        if not self.use_expm:
            self.lam  = lam
            self.U    = U
            self.Uinv = linalg.inv(U)

    def __call__(self, dt):
        if self.use_expm:
            return linalg.expm(self.A*dt)
        return ((self.U * np.exp(self.lam*dt)[None, :]) @ self.Uinv).real

################## Kalman filter #############################################

def car1_filter(time, y, yerr, sigma, measerr_scale, omega):
    """
    Kalman filter for the CAR(1) process

    Parameters
    ----------
    time, y, yerr : (N,) np.ndarray
        the data; `!time` should be strictly increasing, `!y` centered
    sigma : float
        amplitude of the driving noise
    measerr_scale : float
        factor to apply to the measurement errors `!yerr`
    omega : float
        the inverse correlation time

    Returns
    -------
    KalmanResult

    Raises
    ------
    BadVarianceError

    Notes
    -----
    For ``omega*dt -> 0`` the variance increment ``sigma²/(2ω)*(1 - exp(-2ω*dt))``
    is replaced by its limit ``sigma²*dt``.
    """
    if not (sigma > 0 and omega > 0 and np.isfinite(sigma) and np.isfinite(omega)):
        raise BadVarianceError(f"Invalid CAR(1) parameters: sigma = {sigma}, omega = {omega}")

    n = len(y)
    dt = np.diff(time)
    with np.errstate(under='ignore', over='ignore'):
        var_ss = sigma**2 / (2*omega)
        if not (np.isfinite(var_ss) and var_ss > 0):
            raise BadVarianceError(f"Stationary variance is degenerate: {var_ss}")

        odt = omega*dt
        phi = np.exp(-odt)
        dvar = np.where(odt < _SMALL_OMEGA_DT,
                        sigma**2*dt,
                        -var_ss*np.expm1(-2*odt),
                        )
        measvar = (measerr_scale*np.asarray(yerr, dtype=float))**2

        # plain python floats in the loop; numpy scalars are slow
        ys      = np.asarray(y, dtype=float).tolist()
        measvar = measvar.tolist()
        phi     = phi.tolist()
        dvar    = dvar.tolist()

        kmean = np.empty(n)
        kvar  = np.empty(n)
        innov = np.empty(n)
        ivar  = np.empty(n)

        mean, var = 0., float(var_ss)
        for i in range(n):
            kmean[i] = mean
            kvar[i]  = var

            iv = var + measvar[i]
            if not (0 < iv < np.inf):
                raise BadVarianceError(f"Innovation variance is degenerate at data point {i}: {iv}")
            res = ys[i] - mean
            innov[i] = res
            ivar[i]  = iv

            gain = var / iv
            mean = mean + gain*res
            var  = var*(1 - gain)

            if i < n-1:
                mean = phi[i]*mean
                var  = phi[i]**2*var + dvar[i]

        logL = -0.5*np.sum(LOG_2_PI + np.log(ivar) + innov**2/ivar)

    return KalmanResult(float(logL), kmean, kvar)

def carma_filter(time, y, yerr, sigma, measerr_scale, ar_coefs, ma_coefs=()):
    """
    Kalman filter for a general CARMA(p, q) process

    Parameters
    ----------
    time, y, yerr : (N,) np.ndarray
        the data; `!time` should be strictly increasing, `!y` centered
    sigma : float
        amplitude of the driving noise
    measerr_scale : float
        factor to apply to the measurement errors `!yerr`
    ar_coefs : (p,) array-like
    ma_coefs : (q,) array-like, q < p

    Returns
    -------
    KalmanResult

    Raises
    ------
    BadVarianceError

    See also
    --------
    car1_filter, carma_system
    """
    A, b, V = carma_system(sigma, ar_coefs, ma_coefs)
    transition = Transition(A)

    n = len(y)
    dt = np.diff(time)

    kmean = np.empty(n)
    kvar  = np.empty(n)
    innov = np.empty(n)
    ivar  = np.empty(n)

    with np.errstate(under='ignore', over='ignore'):
        measvar = (measerr_scale*np.asarray(yerr, dtype=float))**2

        m = np.zeros(len(b))
        P = V.copy()
        for i in range(n):
            Pb = P @ b
            kmean[i] = b @ m
            kvar[i]  = b @ Pb

            iv = kvar[i] + measvar[i]
            if not (kvar[i] >= 0 and 0 < iv < np.inf):
                raise BadVarianceError(f"Innovation variance is degenerate at data point {i}: {iv}")
            innov[i] = y[i] - kmean[i]
            ivar[i]  = iv

            m = m + Pb*(innov[i]/iv)
            P = P - np.outer(Pb, Pb)/iv

            if i < n-1:
                Phi = transition(dt[i])
                m = Phi @ m
                P = V + Phi @ (P - V) @ Phi.T
                P = 0.5*(P + P.T)

        logL = -0.5*np.sum(LOG_2_PI + np.log(ivar) + innov**2/ivar)

    if not np.isfinite(logL):
        raise BadVarianceError(f"Kalman filter gave non-finite likelihood: {logL}")

    return KalmanResult(float(logL), kmean, kvar)

################## Spectrum ##################################################

def psd(freq, sigma, ar_coefs, ma_coefs=()):
    """
    Power spectral density of a CARMA process

    Parameters
    ----------
    freq : array-like
        the frequencies (not angular frequencies!) at which to evaluate
    sigma : float
    ar_coefs : (p,) array-like
    ma_coefs : (q,) array-like

    Returns
    -------
    np.ndarray
        ``sigma² |beta(2πif)|² / |alpha(2πif)|²``. This is normalized such that
        its integral over all (positive and negative) frequencies is the
        variance of the process.
    """
    s = 2j*np.pi*np.asarray(freq, dtype=float)
    num = np.polyval(np.append(np.asarray(ma_coefs, dtype=float)[::-1], 1.), s)
    den = np.polyval(np.insert(np.asarray(ar_coefs, dtype=float), 0, 1.), s)
    with np.errstate(under='ignore'):
        return sigma**2 * np.abs(num)**2 / np.abs(den)**2

################## Generative model ##########################################

def _draw_gaussian(C, rng):
    # eigh instead of cholesky, since C might be only semi-definite
    w, v = linalg.eigh(0.5*(C + C.T))
    return v @ (np.sqrt(np.clip(w, 0, None)) * rng.normal(size=len(w)))

def generate(time, sigma, ar_coefs, ma_coefs=(), yerr=None, rng=None):
    """
    Sample a CARMA process at given times

    The sampling is exact, i.e. we propagate the latent state with the exact
    transition density between sampling times.

    Parameters
    ----------
    time : (N,) array-like
        sampling times; should be strictly increasing
    sigma : float
    ar_coefs : (p,) array-like
    ma_coefs : (q,) array-like
    yerr : (N,) array-like, optional
        if given, add Gaussian measurement noise with these standard deviations
    rng : np.random.Generator, optional

    Returns
    -------
    (N,) np.ndarray
        a realization of the process (with mean zero)
    """
    if rng is None:
        rng = np.random.default_rng()

    time = np.asarray(time, dtype=float)
    if np.any(np.diff(time) <= 0):
        raise ValueError("Sampling times should be strictly increasing")

    A, b, V = carma_system(sigma, ar_coefs, ma_coefs)
    transition = Transition(A)

    y = np.empty(len(time))
    with np.errstate(under='ignore'):
        x = _draw_gaussian(V, rng)
        y[0] = b @ x
        for i in range(1, len(time)):
            Phi = transition(time[i] - time[i-1])
            x = Phi @ x + _draw_gaussian(V - Phi @ V @ Phi.T, rng)
            y[i] = b @ x

        if yerr is not None:
            y += np.asarray(yerr, dtype=float)*rng.normal(size=len(time))

    return y
