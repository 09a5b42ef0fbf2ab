"""
Named containers for the solver's numerical inputs.

Each container accepts a mapping (by name) or a vector in the legacy
positional order, validates it, and exposes the values by name or as a
numpy vector in canonical order.

Legacy vector orders
--------------------
Initial concentrations (5)
    ``SFK, GRB2, GAB1, SHP2, EGFR``
Diffusivities (7)
    ``SFK, GRB2, G2G1, G2G1S2, GAB1, G1S2, SHP2`` (active SFK shares SFK)
Diffusivities (8)
    ``SFK, aSFK, GRB2, G2G1, G2G1S2, GAB1, G1S2, SHP2``
Kinetic parameters (17)
    ``kS2f, kS2r, kG1f, kG1r, kG2f, kG2r, kG1p, kG1dp, kSa, kSi, kp, kdp,
    kEGFf, kEGFr, EGF, kdf, kdr``
"""
from collections.abc import Mapping
import numpy as np
from egfrdiff.core import ConfigurationError
from egfrdiff.network import PARAMETERS, MONOMERS, DIFFUSIVITY_CLASSES

__all__ = ['InitialConcentrations', 'Diffusivities', 'KineticParameters',
           'MEMBRANE_CONFINED_DIFFUSIVITY']

# Stand-in for "does not diffuse"; flux closures divide by diffusivity
MEMBRANE_CONFINED_DIFFUSIVITY = 1e-32

_DIFFUSIVITY_ORDER_7 = ('SFK', 'GRB2', 'G2G1', 'G2G1S2', 'GAB1', 'G1S2',
                        'SHP2')


class _NamedValues(object):
    """ Ordered, validated, read-only vector of named floats """
    names = ()
    label = 'values'

    def __init__(self, values):
        if isinstance(values, _NamedValues):
            values = values.as_dict()
        if isinstance(values, Mapping):
            values = self._from_mapping(values)
        else:
            values = self._from_vector(values)
        values = np.array(values, dtype=float)
        if not np.isfinite(values).all():
            raise ConfigurationError('Please check %s for non-finite '
                                     'values' % self.label)
        negative = [n for n, v in zip(self.names, values) if v < 0]
        if negative:
            raise ConfigurationError('Negative %s: %s' % (
                self.label, ', '.join(negative)))
        self._values = values
        self._values.flags.writeable = False

    def _from_mapping(self, mapping):
        unknown = set(mapping.keys()) - set(self.names)
        if unknown:
            raise ConfigurationError('Unknown %s name(s): %s' % (
                self.label, ', '.join(sorted(unknown))))
        missing = [n for n in self.names if n not in mapping]
        if missing:
            raise ConfigurationError('Missing %s: %s' % (
                self.label, ', '.join(missing)))
        return [mapping[n] for n in self.names]

    def _from_vector(self, vector):
        vector = np.atleast_1d(np.asarray(vector, dtype=float))
        if vector.ndim != 1 or len(vector) != len(self.names):
            raise ConfigurationError(
                '%s must be a vector of length %d, got shape %s' % (
                    self.label, len(self.names), vector.shape))
        return vector

    def __getitem__(self, name):
        try:
            return float(self._values[self.names.index(name)])
        except ValueError:
            raise KeyError(name)

    def __getattr__(self, name):
        if name.startswith('_') or name not in self.names:
            raise AttributeError(name)
        return self[name]

    def __len__(self):
        return len(self.names)

    def __iter__(self):
        return iter(self._values)

    def __eq__(self, other):
        return type(self) is type(other) and \
            np.array_equal(self._values, other._values)

    def __ne__(self, other):
        return not self == other

    __hash__ = None

    def as_vector(self):
        """ Values as a (read-only) numpy vector in canonical order """
        return self._values

    def as_dict(self):
        return dict(zip(self.names, self._values.tolist()))

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, ', '.join(
            '%s=%g' % (n, v) for n, v in zip(self.names, self._values)))


class InitialConcentrations(_NamedValues):
    """
    Total amounts seeded at t = 0

    Cytosolic totals (molecules/um^3) are uniform in r and seed the
    inactive/free forms; EGFR (molecules/um^2) seeds the free monomer.
    """
    names = MONOMERS
    label = 'initial concentrations'


class KineticParameters(_NamedValues):
    """ Rate constants and EGF concentration, in ``PARAMETERS`` order """
    names = tuple(PARAMETERS.keys())
    label = 'kinetic parameters'


class Diffusivities(_NamedValues):
    """
    Diffusivity of each transport class (um^2/min)

    A 7-entry vector gives the active kinase the inactive kinase's
    diffusivity; an 8-entry vector sets it explicitly. In a mapping,
    ``aSFK`` may likewise be omitted.
    """
    names = DIFFUSIVITY_CLASSES
    label = 'diffusivities'

    def __init__(self, values):
        super(Diffusivities, self).__init__(values)
        zero = [n for n, v in zip(self.names, self._values) if v == 0]
        if zero:
            raise ConfigurationError(
                'Zero diffusivity for %s; use '
                'MEMBRANE_CONFINED_DIFFUSIVITY for species that should not '
                'diffuse' % ', '.join(zero))

    def _from_mapping(self, mapping):
        if 'aSFK' not in mapping and 'SFK' in mapping:
            mapping = dict(mapping)
            mapping['aSFK'] = mapping['SFK']
        return super(Diffusivities, self)._from_mapping(mapping)

    def _from_vector(self, vector):
        vector = np.atleast_1d(np.asarray(vector, dtype=float))
        if vector.ndim == 1 and len(vector) == len(_DIFFUSIVITY_ORDER_7):
            return self._from_mapping(dict(zip(_DIFFUSIVITY_ORDER_7,
                                               vector)))
        return super(Diffusivities, self)._from_vector(vector)

    def with_sfk(self, value):
        """
        Copy with both kinase diffusivities, ``SFK`` and ``aSFK``, replaced

        The two forms exchange at the membrane, so they share one
        coefficient whenever the kinase is confined.
        """
        values = self.as_dict()
        values['SFK'] = value
        values['aSFK'] = value
        return Diffusivities(values)
