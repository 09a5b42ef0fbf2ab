"""
Helpers shared by the egfrdiff test-suite and doctests.
"""
import numpy as np
from egfrdiff.network import CYTOSOLIC_SPECIES, MEMBRANE_SPECIES, PARAMETERS
from egfrdiff.parameters import KineticParameters, Diffusivities, \
    InitialConcentrations

__all__ = ['zero_rates', 'uniform_diffusivities', 'reference_initials',
           'reference_diffusivities', 'reference_rates', 'monomer_total']

_REFERENCE_RATES = {
    'kS2f': 0.5, 'kS2r': 0.1, 'kG1f': 0.5, 'kG1r': 0.1, 'kG2f': 0.5,
    'kG2r': 0.1, 'kG1p': 0.5, 'kG1dp': 0.1, 'kSa': 0.5, 'kSi': 0.1,
    'kp': 0.5, 'kdp': 0.1, 'kEGFf': 1.0, 'kEGFr': 0.1, 'EGF': 1.0,
    'kdf': 0.5, 'kdr': 0.1,
}


def zero_rates(**rates):
    """
    Kinetic parameters that are all zero except those given

    >>> zero_rates(kG1f=1.0).kG1f
    1.0
    """
    values = dict.fromkeys(PARAMETERS.keys(), 0.0)
    values.update(rates)
    return KineticParameters(values)


def uniform_diffusivities(value=1.0):
    return Diffusivities([value] * 7)


def reference_initials():
    """ Unit totals of every monomer """
    return InitialConcentrations(dict.fromkeys(
        ('SFK', 'GRB2', 'GAB1', 'SHP2', 'EGFR'), 1.0))


def reference_diffusivities():
    return Diffusivities({'SFK': 1.0, 'GRB2': 2.0, 'G2G1': 1.5,
                          'G2G1S2': 1.0, 'GAB1': 2.0, 'G1S2': 1.5,
                          'SHP2': 2.0})


def reference_rates(**rates):
    """ Moderate rate constants switching every reaction on """
    values = dict(_REFERENCE_RATES)
    values.update(rates)
    return KineticParameters(values)


def monomer_total(cytosol, membrane, monomer):
    """
    Per-node cytosolic and scalar membrane totals of a monomer

    Parameters
    ----------
    cytosol : numpy.ndarray
        Shape (n_cytosolic_species, ...) in ``CYTOSOLIC_SPECIES`` order
    membrane : numpy.ndarray
        Shape (n_membrane_species, ...) in ``MEMBRANE_SPECIES`` order

    Returns
    -------
    (cytosolic total, membrane total)
    """
    cyto_counts = np.array([sp.count(monomer) for sp in CYTOSOLIC_SPECIES])
    memb_counts = np.array([sp.count(monomer) for sp in MEMBRANE_SPECIES])
    return (np.tensordot(cyto_counts, cytosol, axes=1),
            np.tensordot(memb_counts, membrane, axes=1))
