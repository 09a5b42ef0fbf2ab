import re
import numbers
import collections
from collections.abc import Mapping, Sequence, Set
import numpy as np
import sympy

__all__ = ['Parameter', 'Species', 'Reaction', 'ComponentSet',
           'CYTOSOL', 'MEMBRANE', 'ConfigurationError', 'is_finite_real',
           'is_whole_number']

CYTOSOL = 'cytosol'
MEMBRANE = 'membrane'


class Component(object):

    """
    The base class for all the named things in a reaction network.

    Parameters
    ----------
    name : string
        Name of the component. Must be a valid Python identifier, since it
        is also the name of the component's symbol in generated rate code.

    Attributes
    ----------
    name : string
        Name of the component.
    symbol : sympy.Symbol
        Symbol standing for the component in rate expressions.

    """
    _VARIABLE_NAME_REGEX = re.compile(r'[_a-z][_a-z0-9]*\Z', re.IGNORECASE)

    def __init__(self, name):
        if not self._VARIABLE_NAME_REGEX.match(name):
            raise InvalidComponentNameError(name)
        self.name = name
        self.symbol = sympy.Symbol(name, real=True)

    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, repr(self.name))


class Parameter(Component):

    """
    A named, non-negative rate constant or concentration of the network.

    Values are not stored on the parameter; they are supplied per run as a
    :class:`egfrdiff.parameters.KineticParameters` vector.

    Parameters
    ----------
    name : string
    description : string, optional
    units : string, optional

    """

    def __init__(self, name, description='', units=''):
        Component.__init__(self, name)
        self.description = description
        self.units = units


class Species(Component):

    """
    A chemical species located in the cytosol or at the membrane.

    Parameters
    ----------
    name : string
    location : string
        Either ``CYTOSOL`` (diffusing, one value per grid node) or
        ``MEMBRANE`` (well-mixed, one scalar).
    composition : dict
        Monomer name to count, e.g. ``{'GRB2': 1, 'GAB1': 1}``. Used for
        conserved totals.
    diffusivity : string, optional
        Name of the diffusivity class, used both by the interior update
        and by the reactive-flux closure at the membrane. Required for
        cytosolic species.
    description : string, optional

    """

    def __init__(self, name, location, composition, diffusivity=None,
                 description=''):
        Component.__init__(self, name)
        if location not in (CYTOSOL, MEMBRANE):
            raise ValueError('Unknown species location: %s' % location)
        if location == CYTOSOL and diffusivity is None:
            raise ValueError('Cytosolic species %s needs a diffusivity '
                             'class' % name)
        self.location = location
        self.composition = dict(composition)
        self.diffusivity = diffusivity
        self.description = description

    def count(self, monomer):
        """ Number of copies of ``monomer`` in this species """
        return self.composition.get(monomer, 0)


class Reaction(Component):

    """
    A mass-action reaction, optionally reversible.

    Parameters
    ----------
    name : string
    reactants, products : sequence of Species
        A species listed twice takes part twice (e.g. dimerization).
    rate_forward : Parameter or sympy expression
        Forward rate constant. Expressions of parameters and species are
        allowed, e.g. an effective pseudo-first-order constant.
    rate_reverse : Parameter or sympy expression, optional
        Reverse rate constant; the reaction is irreversible when omitted.

    """

    def __init__(self, name, reactants, products, rate_forward,
                 rate_reverse=None):
        Component.__init__(self, name)
        self.reactants = tuple(reactants)
        self.products = tuple(products)
        self.rate_forward = rate_forward
        self.rate_reverse = rate_reverse

    @property
    def is_reversible(self):
        return self.rate_reverse is not None

    def rate_laws(self):
        """
        Unidirectional mass-action rate laws of this reaction

        Returns
        -------
        list of (reactants, products, sympy expression) tuples, one for the
        forward direction and one for the reverse direction if reversible.
        """
        laws = [(self.reactants, self.products,
                 _mass_action(self.rate_forward, self.reactants))]
        if self.is_reversible:
            laws.append((self.products, self.reactants,
                         _mass_action(self.rate_reverse, self.products)))
        return laws

    def stoichiometry(self):
        """ Net stoichiometric coefficient of each species (forward) """
        stoich = collections.Counter()
        for sp in self.reactants:
            stoich[sp.name] -= 1
        for sp in self.products:
            stoich[sp.name] += 1
        return dict((name, n) for name, n in stoich.items() if n != 0)

    def __repr__(self):
        arrow = '<>' if self.is_reversible else '>>'
        return '%s(%s, %s %s %s)' % (
            self.__class__.__name__, repr(self.name),
            ' + '.join(sp.name for sp in self.reactants) or 'None', arrow,
            ' + '.join(sp.name for sp in self.products) or 'None')


def _as_expr(rate):
    if isinstance(rate, Component):
        return rate.symbol
    return sympy.sympify(rate)


def _mass_action(rate, reactants):
    expr = _as_expr(rate)
    for sp in reactants:
        expr = expr * sp.symbol
    return expr


class ComponentSet(Set, Mapping, Sequence):
    """
    An add-and-read-only container for storing network Components.

    It behaves mostly like an ordered set, but components can also be
    retrieved by name *or* index by using the [] operator (like a
    combination of a dict and a list). Iteration returns the component
    objects.

    Parameters
    ----------
    iterable : iterable of Components, optional
        Initial contents of the set.

    """

    def __init__(self, iterable=None):
        self._elements = []
        self._map = {}
        self._index_map = {}
        if iterable is not None:
            for value in iterable:
                self.add(value)

    def __iter__(self):
        return iter(self._elements)

    def __contains__(self, c):
        if not isinstance(c, Component):
            raise TypeError("Can only work with Components, got a %s"
                            % type(c))
        return c.name in self._map and self[c.name] is c

    def __len__(self):
        return len(self._elements)

    def add(self, c):
        if c not in self:
            if c.name in self._map:
                raise ComponentDuplicateNameError(
                    "Tried to add a component with a duplicate name: %s"
                    % c.name)
            self._elements.append(c)
            self._map[c.name] = c
            self._index_map[c.name] = len(self._elements) - 1

    def __getitem__(self, key):
        if isinstance(key, (int, slice)):
            return self._elements[key]
        else:
            return self._map[key]

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError("No component named '%s'" % name)

    def __setstate__(self, state):
        self.__dict__ = state

    def __dir__(self):
        return self.keys()

    def get(self, key, default=None):
        if isinstance(key, int):
            raise ValueError("get is undefined for integer arguments, use []"
                             "instead")
        try:
            return self[key]
        except KeyError:
            return default

    def index(self, c):
        # We can implement this in O(1) ourselves, whereas the Sequence mixin
        # implements it in O(n).
        if isinstance(c, str):
            return self._index_map[c]
        if c not in self:
            raise ValueError("%s not in ComponentSet" % c)
        return self._index_map[c.name]

    def keys(self):
        return [c.name for c in self._elements]

    def values(self):
        return list(self._elements)

    def items(self):
        return [(c.name, c) for c in self._elements]

    @property
    def symbols(self):
        return [c.symbol for c in self._elements]

    # We implement this in O(1) ourselves, whereas the Sequence mixin
    # implements it in O(n).
    def count(self, c):
        return 1 if c in self else 0

    def __repr__(self):
        return '{' + \
            ',\n '.join("'%s': %s" % t for t in self.items()) + \
            '}'


class InvalidComponentNameError(ValueError):
    def __init__(self, name):
        ValueError.__init__(self, "Not a valid component name: '%s'" % name)


class ComponentDuplicateNameError(ValueError):
    """A component was added with the same name as an existing one."""
    pass


class ConfigurationError(ValueError):
    """Solver inputs or options are invalid; raised before the time loop."""
    pass


def is_finite_real(value):
    """ True for finite real numbers, excluding bools and strings """
    return isinstance(value, numbers.Real) and \
        not isinstance(value, bool) and bool(np.isfinite(value))


def is_whole_number(value):
    """ True for integers and for floats with an integral value """
    return is_finite_real(value) and float(value).is_integer()
