from .base import SimulatorException, SimulationResult, InstabilityError, \
    ConvergenceWarning, SolverDiagnostics
from .radial import RadialPdeSimulator

__all__ = ['RadialPdeSimulator', 'SimulationResult', 'SimulatorException',
           'InstabilityError', 'ConvergenceWarning', 'SolverDiagnostics']
