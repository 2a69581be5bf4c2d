"""
Time series container

The likelihood machinery in `bayescarma` operates on a single, irregularly
sampled scalar time series with (heteroskedastic) measurement errors. This
module provides the container for such data, `TimeSeries`, which takes care of
the necessary preprocessing:

 + sort the observations by time (stable sort, so the order of observations
   with identical timestamps is preserved)
 + remove duplicate timestamps. Identical timestamps are treated as redundant
   samples of the same instant; we keep the one that came last in the input.
 + center the values, i.e. subtract their mean. The subtracted value is
   remembered as `!mean_offset`.

Once constructed, a `TimeSeries` is immutable, such that it can be shared
between different models / chains.

See also
--------
TimeSeries, make_TimeSeries
"""
from warnings import warn

import numpy as np

class TimeSeries:
    """
    An irregularly sampled time series with measurement errors

    Parameters
    ----------
    time : array-like, (N,)
        the sampling times. Do not have to be sorted or unique.
    y : array-like, (N,)
        the measured values
    yerr : array-like, (N,), optional
        standard deviation of the measurement error for each data point.
        Defaults to zero (no measurement error).

    Attributes
    ----------
    time : np.ndarray
        sorted, unique sampling times
    y : np.ndarray
        the centered values, i.e. ``y + mean_offset`` gives the original data
    yerr : np.ndarray
        the measurement errors
    mean_offset : float
        the mean of the (deduplicated) input values, subtracted from `!y`
    n_duplicates : int
        how many data points were dropped because of duplicate timestamps

    Notes
    -----
    All arrays are flagged read-only; to modify the data, create a new
    `TimeSeries`.

    A time series needs at least two distinct timestamps; anything less raises
    a ``ValueError``, as do non-finite input values and negative errors.
    """
    def __init__(self, time, y, yerr=None):
        time = np.asarray(time, dtype=float)
        y    = np.asarray(y, dtype=float)
        if yerr is None:
            yerr = np.zeros(y.shape)
        else:
            yerr = np.asarray(yerr, dtype=float)

        if time.ndim != 1 or y.shape != time.shape or yerr.shape != time.shape:
            raise ValueError(f"time, y, and yerr should be 1d arrays of equal length; got shapes {time.shape}, {y.shape}, {yerr.shape}")
        for name, arr in [('time', time), ('y', y), ('yerr', yerr)]:
            if not np.all(np.isfinite(arr)):
                raise ValueError(f"Found non-finite values in {name}")
        if np.any(yerr < 0):
            raise ValueError("Measurement errors should be non-negative")

        # Stable sort keeps the input order within runs of equal timestamps,
        # so "last in the run" is "last in the input"
        ind = np.argsort(time, kind='stable')
        time = time[ind]
        y    = y[ind]
        yerr = yerr[ind]

        keep = np.append(np.diff(time) > 0, True)
        self.n_duplicates = int(np.sum(~keep))
        if self.n_duplicates > 0:
            warn(f"Removed {self.n_duplicates} data point(s) with duplicate timestamps")

        time = time[keep]
        y    = y[keep]
        yerr = yerr[keep]

        if len(time) < 2:
            raise ValueError(f"Need at least 2 distinct timestamps, got {len(time)}")

        self.mean_offset = float(np.mean(y))
        y = y - self.mean_offset

        for arr in [time, y, yerr]:
            arr.flags.writeable = False
        self.time = time
        self.y    = y
        self.yerr = yerr

    def __len__(self):
        return len(self.time)

    def __repr__(self):
        return f"<TimeSeries: {len(self)} points, t in [{self.time[0]:g}, {self.time[-1]:g}]>"

    @property
    def dt(self):
        """
        Time lags between successive data points (strictly positive)
        """
        return np.diff(self.time)

    @property
    def span(self):
        """
        Total time covered by the data
        """
        return self.time[-1] - self.time[0]

    @property
    def std(self):
        """
        Sample standard deviation of the values (``ddof = 1``)
        """
        return np.std(self.y, ddof=1)

def make_TimeSeries(data):
    """
    Convert user input to `TimeSeries`

    Parameters
    ----------
    data : TimeSeries or tuple
        either an existing `TimeSeries` (which is returned as is) or a tuple
        ``(time, y)`` or ``(time, y, yerr)`` of array-likes.

    Returns
    -------
    TimeSeries
    """
    if isinstance(data, TimeSeries):
        return data

    try:
        n = len(data)
    except TypeError:
        raise ValueError(f"Did not understand data of type {type(data)}")
    if n not in {2, 3}:
        raise ValueError(f"Data should be (time, y) or (time, y, yerr), got {n} entries")
    return TimeSeries(*data)
