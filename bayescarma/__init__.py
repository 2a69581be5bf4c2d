"""
Bayesian inference for CARMA processes

Continuous time autoregressive moving average (CARMA) processes are stationary
Gaussian processes defined by linear stochastic differential equations. They
are popular models for irregularly sampled time series, e.g. astronomical
light curves. The simplest representative, the CAR(1) process

    .. code-block:: text

        dy = -omega*y dt + sigma dW

is also known as Ornstein-Uhlenbeck process or damped random walk.

Since CARMA processes have a finite dimensional state space representation,
the exact likelihood for a time series of ``N`` observations with measurement
errors can be evaluated in ``O(N)`` operations, by Kalman filtering. This
package combines this likelihood with physically motivated priors and samples
the resulting posterior by Markov chain Monte Carlo, using the Robust Adaptive
Metropolis (RAM) algorithm.

The pieces are

 + `TimeSeries`: the data container. Sorts the input by time, removes
   duplicate timestamps and centers the values.
 + `Model`: likelihood of the data, given a parameter vector. Implementations
   are in the `lib` submodule, namely `lib.CAR1` and `lib.CARMA`. The numerical
   core lives in `kalman`.
 + priors in the `priors` submodule; these define the support of the
   posterior and are usually set up from the data.
 + `Posterior`: prior times likelihood; also keeps the current state of a
   Markov chain.
 + proposal distributions in `proposals`, and the samplers themselves:
   `AdaptiveMetropolis` (RAM) and `Metropolis` (no adaptation).

Example
-------
>>> import bayescarma
... model = bayescarma.lib.CAR1((time, y, yerr))
... posterior = bayescarma.Posterior(model)
... sampler = bayescarma.AdaptiveMetropolis(posterior,
...                                         bayescarma.proposals.StudentProposal(dof=8),
...                                         covariance=0.01*np.eye(3),
...                                         niter=10000,
...                                        )
... res = sampler.run(burnin=2000)

See also
--------
TimeSeries, Model, Posterior, AdaptiveMetropolis
"""
from . import deco
from . import kalman
from . import parameters
from . import priors
from . import proposals
from . import samplers

from .data import TimeSeries, make_TimeSeries
from .model import Model
from .posterior import Posterior
from .samplers import Metropolis, AdaptiveMetropolis

from . import lib
