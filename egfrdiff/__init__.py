__version__ = '1.0.0'

from egfrdiff.core import ConfigurationError
from egfrdiff.parameters import InitialConcentrations, Diffusivities, \
    KineticParameters, MEMBRANE_CONFINED_DIFFUSIVITY
from egfrdiff.simulator import RadialPdeSimulator, SimulationResult

__all__ = ['RadialPdeSimulator', 'SimulationResult', 'InitialConcentrations',
           'Diffusivities', 'KineticParameters', 'ConfigurationError',
           'MEMBRANE_CONFINED_DIFFUSIVITY']
