"""
Output sampling policies, decoupled from the integration step.

A sampler is asked once per completed step whether the state should be
recorded. Two policies are available:

``'interval'``
    Record when elapsed time reaches the next target time. Targets are
    ``first + k * interval`` with ``interval = tf / n_samples``; targets are
    computed from ``k`` rather than accumulated, and a relative slack of
    ``1e-9 * dt`` absorbs round-off in the elapsed time. When ``dt`` exceeds
    the interval the sampler records every step until it catches up, never
    more than once per step. With ``sample_first_step`` the first target is
    ``dt`` and the remaining ``n_samples - 1`` targets are spaced evenly up
    to ``tf``, so the final time is always recorded.
``'modulus'``
    Record every ``max(1, round(n_steps / n_samples))`` steps.
"""
from egfrdiff.core import ConfigurationError

__all__ = ['IntervalSampler', 'ModulusSampler', 'make_sampler',
           'SAMPLING_POLICIES']

_TIME_SLACK = 1e-9


class IntervalSampler(object):
    def __init__(self, interval, dt, first=None):
        self.interval = interval
        self.dt = dt
        self.first = interval if first is None else first
        self.n_recorded = 0

    @property
    def next_time(self):
        return self.first + self.n_recorded * self.interval

    def __call__(self, step, t):
        if t >= self.next_time - _TIME_SLACK * self.dt:
            self.n_recorded += 1
            return True
        return False


class ModulusSampler(object):
    def __init__(self, n_steps, n_samples):
        self.modulus = max(1, int(round(n_steps / n_samples)))

    def __call__(self, step, t):
        return step % self.modulus == 0


SAMPLING_POLICIES = ('interval', 'modulus')


def make_sampler(policy, tf, dt, n_steps, n_samples,
                 sample_first_step=False):
    """
    Build a sampler for one run

    Parameters
    ----------
    policy : str
        One of ``SAMPLING_POLICIES``
    tf, dt : float
        Final time and time step
    n_steps : int
        Number of integration steps in the run
    n_samples : int
        Target number of samples after the initial state
    sample_first_step : bool
        With the ``'interval'`` policy, place the first target at ``dt``
        and spread the others evenly between ``dt`` and ``tf``. A single
        sample is always taken at ``tf``.
    """
    if policy == 'interval':
        if sample_first_step and n_samples > 1:
            return IntervalSampler((tf - dt) / (n_samples - 1), dt, first=dt)
        return IntervalSampler(tf / n_samples, dt)
    elif policy == 'modulus':
        return ModulusSampler(n_steps, n_samples)
    raise ConfigurationError('Unknown sampling policy %r; choose one of %s'
                             % (policy, ', '.join(SAMPLING_POLICIES)))
