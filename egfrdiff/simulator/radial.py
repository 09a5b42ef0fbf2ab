"""
Finite-difference engine for the radial reaction-diffusion model.

One time step is::

    bulk_update          explicit Euler on interior nodes, old level only
    apply_inner_boundary zero flux at r = 0
    resolve_membrane     fixed point between the reactive-flux boundary
                         values and the semi-implicit membrane update
    commit               new level becomes the old level

:func:`integrate` repeats :func:`advance` up to the final time and samples
the state; :class:`RadialPdeSimulator` is the user-facing simulator.
"""
import collections
from functools import partial
from concurrent.futures import ProcessPoolExecutor, Executor, Future
import numpy as np
from egfrdiff.core import ConfigurationError, is_finite_real, \
    is_whole_number
from egfrdiff.grid import RadialGrid, snapped_ceil
from egfrdiff.logging import get_logger, report_warning, EXTENDED_DEBUG
from egfrdiff.network import CYTOSOLIC_SPECIES, MEMBRANE_SPECIES, \
    get_rate_functions
from egfrdiff.parameters import MEMBRANE_CONFINED_DIFFUSIVITY
from egfrdiff.simulator.base import Simulator, SimulationResult, \
    SolverDiagnostics, InstabilityError, ConvergenceWarning
from egfrdiff.simulator.sampling import make_sampler, SAMPLING_POLICIES

__all__ = ['RadialPdeSimulator', 'SolverOptions', 'SimulationState',
           'FixedPointResult', 'bulk_update', 'apply_inner_boundary',
           'resolve_membrane', 'advance', 'integrate', 'relative_change',
           'default_time_step', 'species_diffusivities']

INSTABILITY_POLICIES = ('raise', 'warn')

# Cytosolic species seeded from each initial total
_SEED_SPECIES = (('iSFK', 'SFK'), ('GRB2', 'GRB2'), ('GAB1', 'GAB1'),
                 ('SHP2', 'SHP2'))


class SolverOptions(object):
    """
    Validated numerical options of a run

    See :class:`RadialPdeSimulator` for the meaning of each option.
    """

    def __init__(self, R=10.0, dr=0.1, tf=5.0, n_samples=100, dt=None,
                 maxiters=20, tol=1e-6, sampling='interval',
                 sample_first_step=False, confine_active_sfk=False,
                 active_sfk_diffusivity=None, on_instability='raise'):
        # Validates R and dr
        RadialGrid(R, dr)
        self.R = float(R)
        self.dr = float(dr)
        if not (is_finite_real(tf) and tf > 0):
            raise ConfigurationError('Final time tf must be positive, '
                                     'got %r' % (tf,))
        self.tf = float(tf)
        if not (is_whole_number(n_samples) and n_samples >= 1):
            raise ConfigurationError('n_samples must be a positive integer, '
                                     'got %r' % (n_samples,))
        self.n_samples = int(n_samples)
        if dt is not None and not (is_finite_real(dt) and dt > 0):
            raise ConfigurationError('Time step dt must be positive, '
                                     'got %r' % (dt,))
        self.dt = None if dt is None else float(dt)
        if not (is_whole_number(maxiters) and maxiters >= 1):
            raise ConfigurationError('maxiters must be a positive integer, '
                                     'got %r' % (maxiters,))
        self.maxiters = int(maxiters)
        if not (is_finite_real(tol) and tol >= 0):
            raise ConfigurationError('tol must be non-negative, got %r'
                                     % (tol,))
        self.tol = float(tol)
        if sampling not in SAMPLING_POLICIES:
            raise ConfigurationError(
                'Unknown sampling policy %r; choose one of %s' % (
                    sampling, ', '.join(SAMPLING_POLICIES)))
        self.sampling = sampling
        self.sample_first_step = bool(sample_first_step)
        if confine_active_sfk and active_sfk_diffusivity is not None:
            raise ConfigurationError('Specify either confine_active_sfk or '
                                     'active_sfk_diffusivity, not both')
        if active_sfk_diffusivity is not None and not (
                is_finite_real(active_sfk_diffusivity) and
                active_sfk_diffusivity > 0):
            raise ConfigurationError(
                'active_sfk_diffusivity must be positive, got %r; use '
                'confine_active_sfk=True for a non-diffusing active '
                'kinase' % (active_sfk_diffusivity,))
        self.confine_active_sfk = bool(confine_active_sfk)
        if self.confine_active_sfk:
            active_sfk_diffusivity = MEMBRANE_CONFINED_DIFFUSIVITY
        self.active_sfk_diffusivity = None if active_sfk_diffusivity is None \
            else float(active_sfk_diffusivity)
        if on_instability not in INSTABILITY_POLICIES:
            raise ConfigurationError(
                'on_instability must be one of %s, got %r' % (
                    ', '.join(INSTABILITY_POLICIES), on_instability))
        self.on_instability = on_instability

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, ', '.join(
            '%s=%r' % item for item in sorted(self.__dict__.items())))


class SimulationState(object):
    """
    Double-buffered state of one run

    Attributes
    ----------
    grid : RadialGrid
    cytosol_old, cytosol_new : numpy.ndarray
        Shape (n_cytosolic_species, n_nodes), rows in
        ``CYTOSOLIC_SPECIES`` order.
    membrane_old, membrane_new : numpy.ndarray
        Shape (n_membrane_species,).
    step : int
        Completed steps.
    time : float
        Elapsed time, ``step * dt``.
    """

    def __init__(self, grid, initials):
        self.grid = grid
        self.cytosol_old = np.zeros((len(CYTOSOLIC_SPECIES), grid.n_nodes))
        self.membrane_old = np.zeros(len(MEMBRANE_SPECIES))
        for species, total in _SEED_SPECIES:
            self.cytosol_old[CYTOSOLIC_SPECIES.index(species)] = \
                initials[total]
        self.membrane_old[MEMBRANE_SPECIES.index('mE')] = initials['EGFR']
        # The new level doubles as the first fixed-point guess of a step
        self.cytosol_new = self.cytosol_old.copy()
        self.membrane_new = self.membrane_old.copy()
        self.step = 0
        self.time = 0.0

    def commit(self):
        np.copyto(self.cytosol_old, self.cytosol_new)
        np.copyto(self.membrane_old, self.membrane_new)

    def tick(self, dt):
        self.step += 1
        self.time = self.step * dt

    def is_finite(self):
        return bool(np.isfinite(self.cytosol_new).all() and
                    np.isfinite(self.membrane_new).all())

    def invalidate(self):
        """ Mark the state as unusable after an instability """
        self.cytosol_old.fill(np.nan)
        self.cytosol_new.fill(np.nan)
        self.membrane_old.fill(np.nan)
        self.membrane_new.fill(np.nan)


FixedPointResult = collections.namedtuple(
    'FixedPointResult', ['iterations', 'converged', 'residuals'])


def species_diffusivities(diffusivities):
    """ Diffusivity of each cytosolic species, in ``CYTOSOLIC_SPECIES`` order """
    return np.array([diffusivities[sp.diffusivity]
                     for sp in CYTOSOLIC_SPECIES])


def default_time_step(diffusivities, k, dr):
    """
    Time step from the diffusion number and total reaction rate

    ``0.99 / (2 (max(D) / dr^2 + sum(k) / 4))``
    """
    return 0.99 / _stability_rate(diffusivities, k, dr)


def _stability_rate(diffusivities, k, dr):
    return 2.0 * (species_diffusivities(diffusivities).max() / dr ** 2 +
                  np.sum(k) / 4.0)


def bulk_update(state, rates, diffusivity, k, dt):
    """
    Explicit Euler step of every cytosolic species on interior nodes

    Reads only the old level and writes only ``cytosol_new[:, 1:-1]``.
    """
    old = state.cytosol_old
    interior = old[:, 1:-1]
    laplacian = (old[:, 2:] - 2.0 * interior + old[:, :-2]) / \
        state.grid.dr ** 2
    state.cytosol_new[:, 1:-1] = interior + dt * (
        diffusivity[:, np.newaxis] * laplacian + rates.bulk(interior, k))


def apply_inner_boundary(state):
    """ Zero flux at the centre: node 0 mirrors node 1 """
    state.cytosol_new[:, 0] = state.cytosol_new[:, 1]


def relative_change(new, old):
    """
    ``max |1 - new/old|``

    Entries equal in both vectors (including 0 and 0) contribute 0; an
    entry moving away from 0 contributes infinity.
    """
    with np.errstate(divide='ignore', invalid='ignore'):
        change = np.abs(1.0 - new / old)
    change[new == old] = 0.0
    return change.max()


def resolve_membrane(state, rates, boundary_h, k, dt, maxiters, tol):
    """
    Fixed point between membrane-node cytosolic values and membrane species

    Each iteration recomputes the membrane-node value of every cytosolic
    species from its flux closure, using the current estimate of the new
    membrane state, then advances the membrane species from the old
    membrane state and those boundary values. Iteration stops once the
    relative change of both vectors is at most ``tol``; after ``maxiters``
    iterations the last iterate is kept.

    Parameters
    ----------
    state : SimulationState
        Interior and inner-boundary values of the new level must be set.
    rates : egfrdiff.network.RateFunctions
    boundary_h : numpy.ndarray
        ``dr / D`` of each cytosolic species' boundary transport class.
    k : numpy.ndarray
        Kinetic parameter values.
    dt : float
    maxiters : int
    tol : float

    Returns
    -------
    FixedPointResult
    """
    n = state.grid.membrane_index
    cytosol = state.cytosol_new
    residuals = []
    for iteration in range(1, maxiters + 1):
        boundary_prev = cytosol[:, n].copy()
        membrane_prev = state.membrane_new.copy()
        cytosol[:, n] = rates.closure(cytosol[:, n - 1], boundary_h,
                                      state.membrane_new, k)
        state.membrane_new[:] = state.membrane_old + dt * rates.surface(
            state.membrane_old, cytosol[:, n], k)
        residual = max(relative_change(cytosol[:, n], boundary_prev),
                       relative_change(state.membrane_new, membrane_prev))
        residuals.append(residual)
        if residual <= tol:
            return FixedPointResult(iteration, True, residuals)
    return FixedPointResult(maxiters, False, residuals)


def advance(state, rates, diffusivity, boundary_h, k, dt, maxiters, tol):
    """ One full time step; returns the step's FixedPointResult """
    bulk_update(state, rates, diffusivity, k, dt)
    apply_inner_boundary(state)
    fixed_point = resolve_membrane(state, rates, boundary_h, k, dt,
                                   maxiters, tol)
    state.commit()
    state.tick(dt)
    return fixed_point


def integrate(state, rates, diffusivities, k, dt, options, logger):
    """
    Advance ``state`` to the final time, sampling along the way

    Returns
    -------
    (tout, cytosol, membrane, diagnostics) : sampled times, cytosolic
    profiles of shape (species, nodes, samples), membrane series of shape
    (species, samples) and a :class:`SolverDiagnostics`
    """
    n_steps = snapped_ceil(options.tf / dt)
    sampler = make_sampler(options.sampling, options.tf, dt, n_steps,
                           options.n_samples, options.sample_first_step)
    diffusivity = species_diffusivities(diffusivities)
    boundary_h = state.grid.dr / diffusivity
    logger.debug('Integrating %d steps of dt=%g on %d nodes', n_steps, dt,
                 state.grid.n_nodes)

    tout = [state.time]
    cytosol_out = [state.cytosol_old.copy()]
    membrane_out = [state.membrane_old.copy()]
    iterations = np.zeros(n_steps, dtype=int)
    converged = np.ones(n_steps, dtype=bool)
    max_residual = 0.0
    instability_time = None

    for step in range(1, n_steps + 1):
        if instability_time is None:
            fixed_point = advance(state, rates, diffusivity, boundary_h, k,
                                  dt, options.maxiters, options.tol)
            iterations[step - 1] = fixed_point.iterations
            converged[step - 1] = fixed_point.converged
            residual = fixed_point.residuals[-1]
            # inf and NaN are reported through converged and instability_time
            if np.isfinite(residual):
                max_residual = max(max_residual, float(residual))
            logger.log(EXTENDED_DEBUG, 'Step %d (t=%g): %d fixed-point '
                       'iteration(s), residual %.3e', step, state.time,
                       fixed_point.iterations, residual)
            if not state.is_finite():
                if options.on_instability == 'raise':
                    raise InstabilityError(step, state.time)
                instability_time = state.time
                logger.warning('Non-finite concentrations at t=%g; '
                               'remaining samples are NaN', state.time)
                state.invalidate()
        else:
            state.tick(dt)

        if sampler(step, state.time):
            tout.append(state.time)
            cytosol_out.append(state.cytosol_old.copy())
            membrane_out.append(state.membrane_old.copy())

    diagnostics = SolverDiagnostics(iterations, converged, max_residual,
                                    instability_time)
    return (np.array(tout), np.stack(cytosol_out, axis=-1),
            np.stack(membrane_out, axis=-1), diagnostics)


def _solver_process(initials, diffusivities, param_values, options, name):
    """ Single simulation, for serial or parallel execution """
    logger = get_logger(__name__, name=name)
    rates = get_rate_functions()
    grid = RadialGrid(options.R, options.dr)
    if options.active_sfk_diffusivity is not None:
        diffusivities = diffusivities.with_sfk(options.active_sfk_diffusivity)
    k = param_values.as_vector()
    if options.dt is None:
        dt = default_time_step(diffusivities, k, grid.dr)
        logger.debug('Using default time step dt=%g', dt)
    else:
        dt = options.dt
        if dt * _stability_rate(diffusivities, k, grid.dr) > 1.0:
            logger.warning('dt=%g exceeds the stability estimate %g of the '
                           'explicit scheme', dt,
                           default_time_step(diffusivities, k, grid.dr))
    state = SimulationState(grid, initials)
    tout, cytosol, membrane, diagnostics = integrate(
        state, rates, diffusivities, k, dt, options, logger)
    return grid.r, tout, cytosol, membrane, dt, diagnostics


class RadialPdeSimulator(Simulator):
    """
    Simulate the network on a 1-D radial grid by finite differences

    Cytosolic species diffuse and react on the grid (explicit Euler); the
    membrane node couples them to the membrane species through a
    fixed-point iteration each step.

    Parameters
    ----------
    initials, diffusivities, param_values, verbose, name
        See :class:`egfrdiff.simulator.base.Simulator`.
    **kwargs : dict
        Solver options:

        * ``R``: cell radius (default 10.0)
        * ``dr``: spatial step (default 0.1)
        * ``tf``: final time (default 5.0)
        * ``n_samples``: number of output samples after t = 0 (default 100)
        * ``dt``: time step; None (default) uses
          :func:`default_time_step`, computed per parameter set
        * ``maxiters``: fixed-point iteration cap (default 20)
        * ``tol``: fixed-point tolerance (default 1e-6)
        * ``sampling``: ``'interval'`` (default) samples every
          ``tf / n_samples`` time units, ``'modulus'`` every
          ``round(n_steps / n_samples)`` steps
        * ``sample_first_step``: place the first ``'interval'`` sample at
          ``dt`` (default False)
        * ``confine_active_sfk``: make the kinase non-diffusing, confining
          the active form to the membrane node (default False)
        * ``active_sfk_diffusivity``: explicit diffusivity of the active
          kinase. The inactive form shares it, overriding both the ``SFK``
          and ``aSFK`` transport classes, so that the kinase exchanged at
          the membrane is conserved
        * ``on_instability``: ``'raise'`` (default) raises
          :class:`InstabilityError` when concentrations become non-finite;
          ``'warn'`` stops integrating, fills the remaining samples with NaN
          and warns at the end of the run

    Examples
    --------
    Simulate GAB1-GRB2 binding only:

    >>> from egfrdiff.simulator import RadialPdeSimulator
    >>> from egfrdiff.testing import zero_rates
    >>> sim = RadialPdeSimulator(R=1.0, dr=0.1, tf=1.0, n_samples=10)
    >>> res = sim.run(initials=[0, 1, 1, 0, 0], diffusivities=[1.] * 7,
    ...               param_values=zero_rates(kG1f=1.0))
    >>> len(res.tout)
    11
    """

    default_options = {
        'R': 10.0,
        'dr': 0.1,
        'tf': 5.0,
        'n_samples': 100,
        'dt': None,
        'maxiters': 20,
        'tol': 1e-6,
        'sampling': 'interval',
        'sample_first_step': False,
        'confine_active_sfk': False,
        'active_sfk_diffusivity': None,
        'on_instability': 'raise',
    }

    def __init__(self, initials=None, diffusivities=None, param_values=None,
                 verbose=False, name=None, **kwargs):
        unknown = set(kwargs) - set(self.default_options)
        if unknown:
            raise ValueError('Unknown keyword argument(s): {}'.format(
                ', '.join(sorted(unknown))))
        super(RadialPdeSimulator, self).__init__(
            initials=initials, diffusivities=diffusivities,
            param_values=param_values, verbose=verbose, name=name, **kwargs)
        options = dict(self.default_options)
        options.update(kwargs)
        self.options = SolverOptions(**options)
        self.grid = RadialGrid(self.options.R, self.options.dr)
        self._logger.debug('Solver options: %r', self.options)
        # Compile the rate functions once in this process
        get_rate_functions()

    def run(self, initials=None, diffusivities=None, param_values=None,
            num_processors=1):
        """
        Run the simulation(s) and return the results

        Parameters
        ----------
        initials, diffusivities, param_values
            See :class:`RadialPdeSimulator`. Apply to this run only.
        num_processors : int
            Number of processes to use (default: 1). Larger numbers run
            independent simulations in parallel worker processes; this only
            helps with several sets of inputs.

        Returns
        -------
        A :class:`SimulationResult` object
        """
        inputs = super(RadialPdeSimulator, self).run(
            initials=initials, diffusivities=diffusivities,
            param_values=param_values)

        if num_processors == 1:
            self._logger.debug('Single processor (serial) mode')
        else:
            self._logger.debug('Multi-processor (parallel) mode using {} '
                               'processes'.format(num_processors))

        try:
            with SerialExecutor() if num_processors == 1 else \
                    ProcessPoolExecutor(max_workers=num_processors) \
                    as executor:
                sim_partial = partial(_solver_process, options=self.options,
                                      name=self.name)
                results = [executor.submit(sim_partial, *args)
                           for args in inputs]
                try:
                    outputs = [r.result() for r in results]
                finally:
                    for r in results:
                        r.cancel()
        except BaseException:
            self._reset_run_overrides()
            raise

        r, tout, cytosol, membrane, dt, diagnostics = zip(*outputs)
        self._report(diagnostics)
        self._logger.info('All simulation(s) complete')
        return SimulationResult(self, r[0], tout, cytosol, membrane, dt,
                                diagnostics)

    def _report(self, diagnostics):
        """ Log and warn about unconverged steps and instabilities """
        for n, diag in enumerate(diagnostics):
            if diag.n_unconverged:
                msg = ('Simulation {}: membrane fixed point did not converge '
                       'within {} iterations on {} of {} steps (largest '
                       'residual {:.3g})'.format(
                           n, self.options.maxiters, diag.n_unconverged,
                           len(diag.converged), diag.max_residual))
                report_warning(self._logger, msg, ConvergenceWarning,
                               stacklevel=3)
            if diag.instability_time is not None:
                msg = ('Simulation {}: instability detected at t={:g}; '
                       'later samples are NaN'.format(
                           n, diag.instability_time))
                report_warning(self._logger, msg, RuntimeWarning,
                               stacklevel=3)


class SerialExecutor(Executor):
    """ Execute tasks in serial (immediately on submission) """
    def submit(self, fn, *args, **kwargs):
        f = Future()
        try:
            result = fn(*args, **kwargs)
        except BaseException as e:
            f.set_exception(e)
        else:
            f.set_result(result)

        return f
