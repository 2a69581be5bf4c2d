import numpy as np

class Parameter():
    """
    Definition of one model parameter

    At the moment this is just the admissible range for the parameter; the
    `Prior <bayescarma.priors.Prior>` uses these to reject parameter values
    outside of its support.

    Parameters
    ----------
    bounds : (lower, upper), optional
        the bounds to impose on this parameter
    closed : (bool, bool), optional
        whether the lower / upper bound itself is admissible. Use e.g.
        ``closed=(False, True)`` for a parameter in ``(0, x]``.

    Attributes
    ----------
    bounds : np.ndarray
    closed : tuple of bool
    """
    def __init__(self,
                 bounds=(-np.inf, np.inf),
                 closed=(True, True),
                 ):
        self.bounds = np.array(bounds, dtype=float)
        self.closed = tuple(bool(c) for c in closed)

        if not self.bounds[0] <= self.bounds[1]:
            raise ValueError(f"Invalid bounds: {bounds}")

    def __repr__(self):
        left  = '[' if self.closed[0] else '('
        right = ']' if self.closed[1] else ')'
        return f"Parameter({left}{self.bounds[0]:g}, {self.bounds[1]:g}{right})"

    def contains(self, x):
        """
        Check whether ``x`` lies within the bounds

        Parameters
        ----------
        x : float

        Returns
        -------
        bool
            ``False`` for ``x = nan``.
        """
        lo, hi = self.bounds
        above = lo <= x if self.closed[0] else lo < x
        below = x <= hi if self.closed[1] else x < hi
        return bool(above and below)

    @property
    def width(self):
        return self.bounds[1] - self.bounds[0]
