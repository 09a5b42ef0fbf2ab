import math
import numpy as np
from egfrdiff.core import ConfigurationError, is_finite_real

__all__ = ['RadialGrid', 'snapped_ceil']

# Ratios this close to an integer are treated as that integer, so that
# e.g. R=1.1, dr=0.1 gives 11 intervals rather than 12.
_SNAP_TOLERANCE = 1e-9


def snapped_ceil(ratio):
    """ Ceiling of a ratio of floats, ignoring floating-point excess """
    nearest = round(ratio)
    if abs(ratio - nearest) <= _SNAP_TOLERANCE * max(1.0, abs(ratio)):
        return int(nearest)
    return int(math.ceil(ratio))


class RadialGrid(object):
    """
    Uniform 1-D mesh from the cell centre (r = 0) to the membrane

    Parameters
    ----------
    R : float
        Cell radius. The membrane node sits at ``n_intervals * dr``, which is
        R unless R is not a multiple of dr, in which case it is rounded up.
    dr : float
        Spatial step.

    Attributes
    ----------
    r : numpy.ndarray
        Node positions, ``0, dr, ..., n_intervals * dr``.
    n_intervals : int
        Number of intervals (``Nr``); there are ``n_intervals + 1`` nodes and
        the membrane node has index ``n_intervals``.
    """

    def __init__(self, R, dr):
        if not (is_finite_real(R) and R > 0):
            raise ConfigurationError('Cell radius R must be positive, '
                                     'got %r' % R)
        if not (is_finite_real(dr) and dr > 0):
            raise ConfigurationError('Spatial step dr must be positive, '
                                     'got %r' % dr)
        self.R = float(R)
        self.dr = float(dr)
        self.n_intervals = snapped_ceil(self.R / self.dr)
        if self.n_intervals < 2:
            raise ConfigurationError(
                'Grid needs at least one interior node; R=%g and dr=%g give '
                '%d interval(s)' % (R, dr, self.n_intervals))
        self.r = np.arange(self.n_intervals + 1) * self.dr
        self.r.flags.writeable = False

    @property
    def n_nodes(self):
        return self.n_intervals + 1

    @property
    def membrane_index(self):
        return self.n_intervals

    def __len__(self):
        return self.n_nodes

    def __repr__(self):
        return '%s(R=%g, dr=%g, n_nodes=%d)' % (
            self.__class__.__name__, self.R, self.dr, self.n_nodes)
