import numpy as np
import pytest
from egfrdiff.core import ConfigurationError
from egfrdiff.simulator.sampling import IntervalSampler, ModulusSampler, \
    make_sampler


def _recorded(sampler, n_steps, dt):
    return [step * dt for step in range(1, n_steps + 1)
            if sampler(step, step * dt)]


def test_interval_sampler_exact_division():
    dt = 0.001
    sampler = make_sampler('interval', 1.0, dt, 1000, 10)
    times = _recorded(sampler, 1000, dt)
    assert len(times) == 10
    np.testing.assert_allclose(times, np.linspace(0.1, 1.0, 10))


def test_interval_sampler_no_drift():
    # dt = 0.1 accumulates round-off; targets must still be hit on time
    dt = 0.1
    sampler = IntervalSampler(0.1, dt)
    times = _recorded(sampler, 1000, dt)
    assert len(times) == 1000


def test_interval_sampler_uneven_step():
    dt = 0.03
    sampler = make_sampler('interval', 1.0, dt, 34, 4)
    times = _recorded(sampler, 34, dt)
    assert len(times) == 4
    assert all(t >= target - 1e-12 and t - target < dt
               for t, target in zip(times, [0.25, 0.5, 0.75, 1.0]))


def test_interval_sampler_large_step():
    # One sample per step at most, even when dt exceeds the interval
    sampler = IntervalSampler(0.1, 0.25)
    times = _recorded(sampler, 4, 0.25)
    assert times == [0.25, 0.5, 0.75, 1.0]
    assert sampler.n_recorded == 4


def test_interval_sampler_first_step():
    dt = 0.01
    sampler = make_sampler('interval', 1.0, dt, 100, 4,
                           sample_first_step=True)
    assert sampler.next_time == dt
    times = _recorded(sampler, 100, dt)
    assert len(times) == 4
    np.testing.assert_allclose(times, [0.01, 0.34, 0.67, 1.0])


def test_interval_sampler_first_step_single_sample():
    dt = 0.01
    sampler = make_sampler('interval', 1.0, dt, 100, 1,
                           sample_first_step=True)
    times = _recorded(sampler, 100, dt)
    assert len(times) == 1
    assert np.isclose(times[0], 1.0)


def test_modulus_sampler():
    sampler = ModulusSampler(1000, 10)
    assert sampler.modulus == 100
    steps = [s for s in range(1, 1001) if sampler(s, None)]
    assert steps == list(range(100, 1001, 100))


def test_modulus_sampler_more_samples_than_steps():
    sampler = ModulusSampler(5, 100)
    assert sampler.modulus == 1


def test_unknown_policy():
    with pytest.raises(ConfigurationError):
        make_sampler('spam', 1.0, 0.1, 10, 10)
