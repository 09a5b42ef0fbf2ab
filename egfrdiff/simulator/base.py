from abc import ABCMeta, abstractmethod
import collections
import copy
from collections.abc import Mapping
from datetime import datetime
import numpy as np
import scipy.integrate
from egfrdiff import __version__ as EGFRDIFF_VERSION
from egfrdiff.core import ConfigurationError
from egfrdiff.logging import get_logger
from egfrdiff.network import CYTOSOLIC_SPECIES, MEMBRANE_SPECIES, \
    ACTIVE_DIMERS, MONOMERS
from egfrdiff.parameters import InitialConcentrations, Diffusivities, \
    KineticParameters

try:
    import pandas as pd
except ImportError:
    pd = None


class SimulatorException(Exception):
    pass


class InstabilityError(SimulatorException):
    """
    Non-finite concentrations appeared during a run

    Usually the time step violates the stability bound of the explicit
    scheme. Attributes ``step`` and ``time`` locate the first bad step.
    """
    def __init__(self, step, time):
        self.step = step
        self.time = time
        super(InstabilityError, self).__init__(
            'Instability detected: non-finite concentrations after step %d '
            '(t = %g). Reduce dt or leave it at its default.' % (step, time))

    def __reduce__(self):
        # Re-raised from worker processes
        return self.__class__, (self.step, self.time)


class ConvergenceWarning(UserWarning):
    """ The membrane fixed point did not meet its tolerance on some steps """
    pass


class SolverDiagnostics(collections.namedtuple(
        'SolverDiagnostics', ['iterations', 'converged', 'max_residual',
                              'instability_time'])):
    """
    Per-run diagnostics of the membrane fixed point and stability check

    Attributes
    ----------
    iterations : numpy.ndarray of int
        Fixed-point iterations used by each step.
    converged : numpy.ndarray of bool
        Whether each step met the tolerance.
    max_residual : float
        Largest finite final residual over all steps.
    instability_time : float or None
        Time of the step where non-finite values appeared, if any.
    """
    __slots__ = ()

    @property
    def n_unconverged(self):
        return int(np.count_nonzero(~self.converged))


class Simulator(object, metaclass=ABCMeta):
    """An abstract base class for numerical simulation of the network.

    Parameters
    ----------
    initials : InitialConcentrations, dict or vector-like, optional
        Total initial concentrations (``SFK, GRB2, GAB1, SHP2, EGFR``). A 2D
        array gives one row per simulation.
    diffusivities : Diffusivities, dict or vector-like, optional
        Diffusivity of each transport class (7- or 8-entry vectors, see
        :mod:`egfrdiff.parameters`). A 2D array gives one row per
        simulation.
    param_values : KineticParameters, dict or vector-like, optional
        The 17 kinetic parameters. A 2D array gives one row per simulation.
    verbose : bool or int, optional (default: False)
        Sets the verbosity level of the logger. See the logging levels and
        constants from Python's logging module for interpretation of integer
        values. False is equal to the egfrdiff default level (currently
        WARNING), True is equal to DEBUG.
    name : str, optional
        Name prepended to log messages of this simulator.

    Notes
    -----
    Inputs not given to the constructor may be given to ``run``. Values
    passed to ``run`` apply to that run only. When some inputs have one set
    of values and others several, the single set is used for every
    simulation.
    """

    def __init__(self, initials=None, diffusivities=None, param_values=None,
                 verbose=False, name=None, **kwargs):
        self.name = name or self.__class__.__name__
        # Get or create base a logger for this module and simulator
        self._logger = get_logger(self.__module__, name=self.name,
                                  log_level=verbose)
        self._logger.debug('Simulator created')
        self.verbose = verbose
        self._initials = None
        self.initials = initials
        self._diffusivities = None
        self.diffusivities = diffusivities
        self._params = None
        self.param_values = param_values
        # Per-run overrides
        self._run_initials = None
        self._run_diffusivities = None
        self._run_params = None
        # Store init kwargs for reference in results
        self._init_kwargs = kwargs

    @staticmethod
    def _process_incoming(values, cls):
        """ Convert user input to a list of containers, one per simulation """
        if values is None:
            return None
        if isinstance(values, (cls, Mapping)):
            return [cls(values)]
        values = np.asarray(values, dtype=float)
        if values.ndim == 1:
            return [cls(values)]
        elif values.ndim == 2:
            if len(values) == 0:
                raise ConfigurationError('Empty array of %s' % cls.label)
            return [cls(row) for row in values]
        raise ConfigurationError('%s must be a 1D or 2D array, got %d '
                                 'dimensions' % (cls.label, values.ndim))

    @property
    def initials(self):
        if self._run_initials is not None:
            return self._run_initials
        return self._initials

    @initials.setter
    def initials(self, new_initials):
        self._initials = self._process_incoming(new_initials,
                                                InitialConcentrations)

    @property
    def diffusivities(self):
        if self._run_diffusivities is not None:
            return self._run_diffusivities
        return self._diffusivities

    @diffusivities.setter
    def diffusivities(self, new_diffusivities):
        self._diffusivities = self._process_incoming(new_diffusivities,
                                                     Diffusivities)

    @property
    def param_values(self):
        if self._run_params is not None:
            return self._run_params
        return self._params

    @param_values.setter
    def param_values(self, new_params):
        self._params = self._process_incoming(new_params, KineticParameters)

    def _reset_run_overrides(self):
        """
        Reset any single-run initials, diffusivities and param_values

        Called from :func:`SimulationResult.__init__` once a run's results
        have been collected.
        """
        self._run_initials = None
        self._run_diffusivities = None
        self._run_params = None

    def _simulation_inputs(self):
        """ Broadcast inputs to a list of per-simulation tuples """
        inputs = collections.OrderedDict([
            ('initials', self.initials),
            ('diffusivities', self.diffusivities),
            ('param_values', self.param_values)])
        for label, values in inputs.items():
            if values is None:
                raise ConfigurationError('%s must be defined before '
                                         'simulation can run' % label)
        n_sims = max(len(v) for v in inputs.values())
        for label, values in inputs.items():
            if len(values) not in (1, n_sims):
                raise ConfigurationError(
                    "'{}' gives {} simulations, but other inputs give {}. "
                    "All inputs must have one set of values or the same "
                    "number of sets.".format(label, len(values), n_sims))
            if len(values) == 1:
                inputs[label] = values * n_sims
        return list(zip(*inputs.values()))

    @abstractmethod
    def run(self, initials=None, diffusivities=None, param_values=None):
        """Run a simulation.

        Notes for developers implementing Simulator subclasses:

        Implementations should call this method first to install the per-run
        overrides and validate the inputs, and return a
        :class:`.SimulationResult` object.

        Returns
        -------
        list of (InitialConcentrations, Diffusivities, KineticParameters)
        tuples, one per simulation
        """
        self._logger.info('Simulation(s) started')
        try:
            self._run_initials = self._process_incoming(
                initials, InitialConcentrations)
            self._run_diffusivities = self._process_incoming(
                diffusivities, Diffusivities)
            self._run_params = self._process_incoming(param_values,
                                                      KineticParameters)
            return self._simulation_inputs()
        except ConfigurationError:
            self._reset_run_overrides()
            raise


class SimulationResult(object):
    """
    Results of a simulation with properties and methods to access them.

    Notes
    -----
    Cytosolic species are stored as profiles over time: 2D arrays with
    grid nodes on the first axis and samples on the second. Membrane
    species are 1D time series. With several simulations each accessor
    returns a list with one entry per simulation, unless ``squeeze`` is
    True and there is a single simulation.

    Parameters
    ----------
    simulator : Simulator
        The simulator object that generated the results
    r : vector-like
        Grid node positions
    tout : list of vector-like
        Sampled times of each simulation
    cytosol : list of numpy.ndarray
        One array per simulation, shape
        (n_cytosolic_species, n_nodes, n_samples)
    membrane : list of numpy.ndarray
        One array per simulation, shape (n_membrane_species, n_samples)
    dt : list of float
        Time step of each simulation
    diagnostics : list of SolverDiagnostics
    squeeze : bool, optional (default: True)
        Return a single simulation's values directly rather than in a
        one-element list.
    initials, diffusivities, param_values : list, optional
        Inputs of each simulation; taken from ``simulator`` when given.

    Examples
    --------
    >>> from egfrdiff.simulator import RadialPdeSimulator
    >>> from egfrdiff.testing import zero_rates
    >>> sim = RadialPdeSimulator(R=1.0, dr=0.1, tf=0.1, n_samples=2)
    >>> res = sim.run(initials=[1, 2, 3, 4, 5], diffusivities=[1.] * 7,
    ...               param_values=zero_rates())
    >>> res.profiles['GRB2'].shape
    (11, 3)
    >>> res['mE']
    array([5., 5., 5.])
    """

    def __init__(self, simulator, r, tout, cytosol, membrane, dt,
                 diagnostics, squeeze=True, initials=None,
                 diffusivities=None, param_values=None):
        if simulator:
            simulator._logger.debug('SimulationResult constructor started')
            inputs = simulator._simulation_inputs()
            initials, diffusivities, param_values = \
                [list(v) for v in zip(*inputs)]
            self.simulator_class = simulator.__class__
            self.init_kwargs = copy.deepcopy(simulator._init_kwargs)
        else:
            self.simulator_class = None
            self.init_kwargs = {}
        self._initials = initials
        self._diffusivities = diffusivities
        self._param_values = param_values

        self.squeeze = squeeze
        self.r = np.asarray(r)
        self._tout = [np.asarray(t) for t in tout]
        self._cytosol = list(cytosol)
        self._membrane = list(membrane)
        self._dt = list(dt)
        self._diagnostics = list(diagnostics)
        self.egfrdiff_version = EGFRDIFF_VERSION
        self.timestamp = datetime.now()
        self._readouts = None

        self._nsims = len(self._tout)
        for label, values in (('cytosol', self._cytosol),
                              ('membrane', self._membrane),
                              ('dt', self._dt),
                              ('diagnostics', self._diagnostics)):
            if len(values) != self._nsims:
                raise ValueError('Simulator tout should be the same length '
                                 'as %s' % label)
        for i in range(self._nsims):
            n_samples = len(self._tout[i])
            if self._cytosol[i].shape != (len(CYTOSOLIC_SPECIES),
                                          len(self.r), n_samples):
                raise ValueError('Cytosolic profiles of simulation {0} '
                                 'should have shape (species, nodes, '
                                 'samples)'.format(i))
            if self._membrane[i].shape != (len(MEMBRANE_SPECIES),
                                           n_samples):
                raise ValueError('Membrane series of simulation {0} should '
                                 'have shape (species, samples)'.format(i))

        if simulator:
            simulator._reset_run_overrides()
            simulator._logger.debug('SimulationResult constructor finished')

    def _squeeze_output(self, values):
        """
        Reduces a per-simulation list to its single entry if only one
        simulation is present

        Can be disabled by setting self.squeeze to False
        """
        if self.nsims == 1 and self.squeeze:
            return values[0]
        else:
            return values

    @property
    def nsims(self):
        """ The number of simulations in this SimulationResult """
        return self._nsims

    @property
    def tout(self):
        return self._squeeze_output(self._tout)

    @property
    def dt(self):
        return self._squeeze_output(self._dt)

    @property
    def diagnostics(self):
        return self._squeeze_output(self._diagnostics)

    @property
    def n_unconverged(self):
        """ Steps whose membrane fixed point did not meet tolerance """
        return self._squeeze_output([d.n_unconverged
                                     for d in self._diagnostics])

    @property
    def initials(self):
        return self._squeeze_output(self._initials)

    @property
    def diffusivities(self):
        return self._squeeze_output(self._diffusivities)

    @property
    def param_values(self):
        return self._squeeze_output(self._param_values)

    @property
    def profiles(self):
        """
        Cytosolic profiles: dict of species name to (nodes x samples) array
        """
        return self._squeeze_output([
            collections.OrderedDict(zip(CYTOSOLIC_SPECIES.keys(), c))
            for c in self._cytosol])

    @property
    def membrane(self):
        """ Membrane species: dict of species name to 1D time series """
        return self._squeeze_output([
            collections.OrderedDict(zip(MEMBRANE_SPECIES.keys(), m))
            for m in self._membrane])

    @property
    def readouts(self):
        """
        Derived readouts

        * ``EGFR_SHP2``: dimer-GRB2-pGAB1-SHP2 as percent of total EGFR
        * ``pE``: phosphorylated receptors (two per active dimer form) as
          percent of total EGFR
        * ``PG1tot``: profile of total phosphorylated GAB1
        * ``PG1Stot``: profile of total pGAB1-SHP2
        """
        if self._readouts is None:
            self._readouts = [self._calc_readouts(n)
                              for n in range(self.nsims)]
        return self._squeeze_output(self._readouts)

    def _calc_readouts(self, n):
        cyto = dict(zip(CYTOSOLIC_SPECIES.keys(), self._cytosol[n]))
        memb = dict(zip(MEMBRANE_SPECIES.keys(), self._membrane[n]))
        egfr0 = self._initials[n]['EGFR'] if self._initials else 0.0
        active = 2.0 * sum(memb[name] for name in ACTIVE_DIMERS)
        if egfr0 > 0:
            egfr_shp2 = memb['EG2PG1S'] * 100.0 / egfr0
            p_egfr = active * 100.0 / egfr0
        else:
            egfr_shp2 = np.zeros_like(memb['EG2PG1S'])
            p_egfr = np.zeros_like(active)
        return collections.OrderedDict([
            ('EGFR_SHP2', egfr_shp2),
            ('pE', p_egfr),
            ('PG1tot', cyto['pGAB1'] + cyto['G2PG1'] + cyto['PG1S'] +
             cyto['G2PG1S']),
            ('PG1Stot', cyto['PG1S'] + cyto['G2PG1S']),
        ])

    def _lookup(self, name):
        if name in CYTOSOLIC_SPECIES.keys():
            i = CYTOSOLIC_SPECIES.index(name)
            return [c[i] for c in self._cytosol]
        if name in MEMBRANE_SPECIES.keys():
            i = MEMBRANE_SPECIES.index(name)
            return [m[i] for m in self._membrane]
        if self._readouts is None:
            self._readouts = [self._calc_readouts(n)
                              for n in range(self.nsims)]
        if name not in self._readouts[0]:
            raise KeyError('No species or readout named %r' % name)
        return [r[name] for r in self._readouts]

    def __getitem__(self, name):
        """ Look up a cytosolic profile, membrane series or readout """
        return self._squeeze_output(self._lookup(name))

    def spatial_integral(self, name, geometry='slab'):
        """
        Integrate a cytosolic profile over the grid at each sample

        Parameters
        ----------
        name : str
            Cytosolic species or profile readout name
        geometry : str
            ``'slab'`` integrates over r (amount per unit membrane area);
            ``'sphere'`` weights by ``4 pi r^2`` (amount per cell).

        Returns
        -------
        numpy.ndarray with one value per sample (list of arrays for
        several simulations)
        """
        weights = self._geometry_weights(geometry)
        profiles = self._lookup(name)
        if profiles[0].ndim != 2:
            raise ValueError('%r is not a cytosolic profile' % name)
        return self._squeeze_output([
            scipy.integrate.trapezoid(p * weights[:, np.newaxis], self.r,
                                      axis=0)
            for p in profiles])

    def total(self, monomer, geometry='slab'):
        """
        Total amount of a monomer over all species at each sample

        The cytosolic part is integrated with :func:`spatial_integral`; the
        membrane part is scaled by the membrane area in the chosen geometry
        (1 for ``'slab'``, ``4 pi R^2`` for ``'sphere'``).
        """
        if monomer not in MONOMERS:
            raise ValueError('Unknown monomer %r; choose one of %s' % (
                monomer, ', '.join(MONOMERS)))
        weights = self._geometry_weights(geometry)
        area = weights[-1] if geometry == 'sphere' else 1.0
        totals = []
        for n in range(self.nsims):
            total = np.zeros(len(self._tout[n]))
            for i, sp in enumerate(CYTOSOLIC_SPECIES):
                if sp.count(monomer):
                    total += sp.count(monomer) * scipy.integrate.trapezoid(
                        self._cytosol[n][i] * weights[:, np.newaxis],
                        self.r, axis=0)
            for i, sp in enumerate(MEMBRANE_SPECIES):
                if sp.count(monomer):
                    total += sp.count(monomer) * area * self._membrane[n][i]
            totals.append(total)
        return self._squeeze_output(totals)

    def _geometry_weights(self, geometry):
        if geometry == 'slab':
            return np.ones_like(self.r)
        elif geometry == 'sphere':
            return 4.0 * np.pi * self.r ** 2
        raise ValueError("geometry must be 'slab' or 'sphere'")

    @property
    def dataframe(self):
        """
        Membrane species and scalar readouts of all simulations as a single
        :py:class:`pandas.DataFrame` indexed by time
        """
        if pd is None:
            raise Exception('Please "pip install pandas" for this feature')
        readouts = self._readouts or [self._calc_readouts(n)
                                      for n in range(self.nsims)]
        columns = MEMBRANE_SPECIES.keys() + ['EGFR_SHP2', 'pE']
        data = np.concatenate([
            np.column_stack([self._membrane[n].T, readouts[n]['EGFR_SHP2'],
                             readouts[n]['pE']])
            for n in range(self.nsims)])
        times = np.concatenate(self._tout)
        if self.nsims == 1 and self.squeeze:
            idx = pd.Index(times, name='time')
        else:
            sim_ids = np.repeat(range(self.nsims),
                                [len(t) for t in self._tout])
            idx = pd.MultiIndex.from_tuples(list(zip(sim_ids, times)),
                                            names=['simulation', 'time'])
        return pd.DataFrame(data, index=idx, columns=columns)
