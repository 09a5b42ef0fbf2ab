"""
The SFK/GRB2/GAB1/SHP2 network around a phosphorylated EGFR dimer.

Species, parameters and reactions are declared once here. Rate laws are
assembled symbolically (mass action, via sympy) and compiled to numpy
functions by :class:`RateFunctions`:

* bulk rates of the 10 cytosolic species (interior grid nodes),
* net rates of the 8 membrane species (surface reactions, evaluated with
  membrane values and the cytosolic values at the membrane node),
* the reactive-flux closure giving each cytosolic species' value at the
  membrane node from its neighbour and the membrane state.

Ordering of ``PARAMETERS``, ``CYTOSOLIC_SPECIES`` and ``MEMBRANE_SPECIES``
is part of the vector interface and must not change.
"""
import collections
import functools
import numpy as np
import sympy
from egfrdiff.core import Parameter, Species, Reaction, ComponentSet, \
    CYTOSOL, MEMBRANE

__all__ = ['PARAMETERS', 'CYTOSOLIC_SPECIES', 'MEMBRANE_SPECIES',
           'BULK_REACTIONS', 'SURFACE_REACTIONS', 'MONOMERS',
           'DIFFUSIVITY_CLASSES', 'ACTIVE_DIMERS', 'RateFunctions',
           'get_rate_functions', 'net_rates', 'boundary_exchange',
           'boundary_closures']

MONOMERS = ('SFK', 'GRB2', 'GAB1', 'SHP2', 'EGFR')

DIFFUSIVITY_CLASSES = ('SFK', 'aSFK', 'GRB2', 'G2G1', 'G2G1S2', 'GAB1',
                       'G1S2', 'SHP2')

PARAMETERS = ComponentSet([
    Parameter('kS2f', 'SHP2 binding to pGAB1', 'um^3/(molec*min)'),
    Parameter('kS2r', 'SHP2 unbinding from pGAB1', '1/min'),
    Parameter('kG1f', 'GAB1 binding to GRB2', 'um^3/(molec*min)'),
    Parameter('kG1r', 'GAB1 unbinding from GRB2', '1/min'),
    Parameter('kG2f', 'GRB2 binding to EGFR', 'um^3/(molec*min)'),
    Parameter('kG2r', 'GRB2 unbinding from EGFR', '1/min'),
    Parameter('kG1p', 'GAB1 phosphorylation by active SFK',
              'um^3/(molec*min)'),
    Parameter('kG1dp', 'GAB1 dephosphorylation', '1/min'),
    Parameter('kSa', 'SFK activation by EGFR', 'um^3/(molec*min)'),
    Parameter('kSi', 'SFK inactivation', '1/min'),
    Parameter('kp', 'EGFR phosphorylation', 'um^2/(molec*min)'),
    Parameter('kdp', 'EGFR dephosphorylation', '1/min'),
    Parameter('kEGFf', 'EGF binding', '1/(uM*min)'),
    Parameter('kEGFr', 'EGF unbinding', '1/min'),
    Parameter('EGF', 'EGF concentration', 'uM'),
    Parameter('kdf', 'EGFR dimerization', 'um^2/(molec*min)'),
    Parameter('kdr', 'EGFR dimer dissociation', '1/min'),
])

CYTOSOLIC_SPECIES = ComponentSet([
    Species('iSFK', CYTOSOL, {'SFK': 1}, 'SFK',
            description='inactive SFK'),
    Species('aSFK', CYTOSOL, {'SFK': 1}, 'aSFK',
            description='active SFK'),
    Species('GAB1', CYTOSOL, {'GAB1': 1}, 'GAB1',
            description='unphosphorylated GAB1'),
    Species('pGAB1', CYTOSOL, {'GAB1': 1}, 'GAB1',
            description='phosphorylated GAB1'),
    Species('GRB2', CYTOSOL, {'GRB2': 1}, 'GRB2',
            description='free GRB2'),
    Species('G2G1', CYTOSOL, {'GRB2': 1, 'GAB1': 1}, 'G2G1',
            description='GRB2-GAB1'),
    Species('G2PG1', CYTOSOL, {'GRB2': 1, 'GAB1': 1}, 'G2G1',
            description='GRB2-pGAB1'),
    Species('SHP2', CYTOSOL, {'SHP2': 1}, 'SHP2',
            description='free SHP2'),
    Species('PG1S', CYTOSOL, {'GAB1': 1, 'SHP2': 1}, 'G1S2',
            description='pGAB1-SHP2'),
    Species('G2PG1S', CYTOSOL, {'GRB2': 1, 'GAB1': 1, 'SHP2': 1}, 'G2G1S2',
            description='GRB2-pGAB1-SHP2'),
])

MEMBRANE_SPECIES = ComponentSet([
    Species('mE', MEMBRANE, {'EGFR': 1},
            description='free EGFR monomer'),
    Species('mES', MEMBRANE, {'EGFR': 1},
            description='EGF-bound EGFR monomer'),
    Species('mESmES', MEMBRANE, {'EGFR': 2},
            description='ligand-bound EGFR dimer'),
    Species('E', MEMBRANE, {'EGFR': 2},
            description='phosphorylated EGFR dimer'),
    Species('EG2', MEMBRANE, {'EGFR': 2, 'GRB2': 1},
            description='dimer-GRB2'),
    Species('EG2G1', MEMBRANE, {'EGFR': 2, 'GRB2': 1, 'GAB1': 1},
            description='dimer-GRB2-GAB1'),
    Species('EG2PG1', MEMBRANE, {'EGFR': 2, 'GRB2': 1, 'GAB1': 1},
            description='dimer-GRB2-pGAB1'),
    Species('EG2PG1S', MEMBRANE,
            {'EGFR': 2, 'GRB2': 1, 'GAB1': 1, 'SHP2': 1},
            description='dimer-GRB2-pGAB1-SHP2'),
])

# Phosphorylated dimer forms able to activate SFKs
ACTIVE_DIMERS = ('E', 'EG2', 'EG2G1', 'EG2PG1', 'EG2PG1S')

_p = PARAMETERS
_c = CYTOSOLIC_SPECIES
_m = MEMBRANE_SPECIES

# Surface density of phosphorylated EGFR (two receptors per dimer)
ETOT = 2 * sum(_m[name].symbol for name in ACTIVE_DIMERS)

BULK_REACTIONS = ComponentSet([
    Reaction('sfk_inactivation', [_c.aSFK], [_c.iSFK], _p.kSi),
    Reaction('gab1_grb2_binding', [_c.GAB1, _c.GRB2], [_c.G2G1],
             _p.kG1f, _p.kG1r),
    Reaction('pgab1_grb2_binding', [_c.pGAB1, _c.GRB2], [_c.G2PG1],
             _p.kG1f, _p.kG1r),
    Reaction('pgab1shp2_grb2_binding', [_c.GRB2, _c.PG1S], [_c.G2PG1S],
             _p.kG1f, _p.kG1r),
    Reaction('gab1_phosphorylation', [_c.GAB1, _c.aSFK],
             [_c.pGAB1, _c.aSFK], _p.kG1p),
    Reaction('gab1_dephosphorylation', [_c.pGAB1], [_c.GAB1], _p.kG1dp),
    Reaction('grb2gab1_phosphorylation', [_c.G2G1, _c.aSFK],
             [_c.G2PG1, _c.aSFK], _p.kG1p),
    Reaction('grb2gab1_dephosphorylation', [_c.G2PG1], [_c.G2G1],
             _p.kG1dp),
    Reaction('shp2_pgab1_binding', [_c.SHP2, _c.pGAB1], [_c.PG1S],
             _p.kS2f, _p.kS2r),
    Reaction('shp2_grb2pgab1_binding', [_c.SHP2, _c.G2PG1], [_c.G2PG1S],
             _p.kS2f, _p.kS2r),
])

SURFACE_REACTIONS = ComponentSet([
    Reaction('egf_binding', [_m.mE], [_m.mES],
             _p.kEGFf.symbol * _p.EGF.symbol, _p.kEGFr),
    Reaction('dimerization', [_m.mES, _m.mES], [_m.mESmES],
             _p.kdf, _p.kdr),
    Reaction('egfr_phosphorylation', [_m.mESmES], [_m.E], _p.kp, _p.kdp),
    Reaction('egfr_grb2_binding', [_m.E, _c.GRB2], [_m.EG2],
             _p.kG2f, _p.kG2r),
    Reaction('egfr_grb2gab1_binding', [_m.E, _c.G2G1], [_m.EG2G1],
             _p.kG2f, _p.kG2r),
    Reaction('egfr_grb2pgab1_binding', [_m.E, _c.G2PG1], [_m.EG2PG1],
             _p.kG2f, _p.kG2r),
    Reaction('egfr_grb2pgab1shp2_binding', [_m.E, _c.G2PG1S], [_m.EG2PG1S],
             _p.kG2f, _p.kG2r),
    Reaction('egfrgrb2_gab1_binding', [_m.EG2, _c.GAB1], [_m.EG2G1],
             _p.kG1f, _p.kG1r),
    Reaction('egfrgrb2_pgab1_binding', [_m.EG2, _c.pGAB1], [_m.EG2PG1],
             _p.kG1f, _p.kG1r),
    Reaction('egfrgrb2_pgab1shp2_binding', [_m.EG2, _c.PG1S], [_m.EG2PG1S],
             _p.kG1f, _p.kG1r),
    Reaction('egfrgrb2pgab1_shp2_binding', [_m.EG2PG1, _c.SHP2],
             [_m.EG2PG1S], _p.kS2f, _p.kS2r),
    Reaction('sfk_activation', [_c.iSFK], [_c.aSFK], _p.kSa.symbol * ETOT),
])


def _net_change(reactants, products):
    change = collections.Counter()
    for sp in reactants:
        change[sp.name] -= 1
    for sp in products:
        change[sp.name] += 1
    return change


def net_rates(reactions, species):
    """
    Net mass-action rate of each species over a set of reactions

    Species appearing on both sides of a reaction (catalysts) cancel out.

    Returns
    -------
    list of sympy expressions, in the order of ``species``
    """
    rates = collections.OrderedDict(
        (sp.name, sympy.Integer(0)) for sp in species)
    for rxn in reactions:
        for reactants, products, law in rxn.rate_laws():
            for name, n in _net_change(reactants, products).items():
                if name in rates:
                    rates[name] += n * law
    return list(rates.values())


def boundary_exchange(reactions, species):
    """
    Capture and release terms of each species at the membrane

    Capture ("loss") is returned per unit concentration of the species, so
    that the flux balance at the membrane node is
    ``D (c_N - c_{N-1}) / dr = gain - loss * c_N``.

    Returns
    -------
    (loss, gain) : tuple of dicts of sympy expressions keyed by species name
    """
    loss = dict((sp.name, sympy.Integer(0)) for sp in species)
    gain = dict((sp.name, sympy.Integer(0)) for sp in species)
    for rxn in reactions:
        for reactants, products, law in rxn.rate_laws():
            for name, n in _net_change(reactants, products).items():
                if name not in loss:
                    continue
                if n < 0:
                    loss[name] += -n * law / species[name].symbol
                else:
                    gain[name] += n * law
    return loss, gain


def boundary_closures(reactions, species):
    """
    Closed-form membrane-node value of each cytosolic species

    Each species satisfies ``c_N = (c_inner + gain*h) / (1 + loss*h)``
    with ``h = dr / D``. A closure may use the membrane-node value of a
    species earlier in ``species`` (the active kinase uses the just-updated
    inactive kinase); these are substituted so that every closure depends
    only on the inner values, ``h``, membrane species and parameters.

    Returns
    -------
    (closures, inner, h) : lists of sympy expressions / symbols in the
    order of ``species``
    """
    loss, gain = boundary_exchange(reactions, species)
    boundary_symbols = set(species.symbols)
    inner = [sympy.Symbol('%s_inner' % sp.name, real=True)
             for sp in species]
    h = [sympy.Symbol('h_%s' % sp.name, positive=True) for sp in species]
    solved = {}
    closures = []
    for sp, c_inner, h_sp in zip(species, inner, h):
        expr = (c_inner + gain[sp.name] * h_sp) / \
            (1 + loss[sp.name] * h_sp)
        expr = expr.xreplace(solved)
        if expr.free_symbols & boundary_symbols:
            raise ValueError('Boundary closure of %s depends on the '
                             'membrane-node value of a species that is not '
                             'solved before it' % sp.name)
        solved[sp.symbol] = expr
        closures.append(expr)
    return closures, inner, h


def _stack(values, n_rows, shape):
    out = np.empty((n_rows,) + shape)
    for i, v in enumerate(values):
        out[i] = v
    return out


class RateFunctions(object):
    """
    Compiled (numpy) rate functions of the network

    Attributes
    ----------
    bulk_expressions : list of sympy expressions
        Net reaction rate of each cytosolic species.
    surface_expressions : list of sympy expressions
        Net rate of each membrane species.
    closure_expressions : list of sympy expressions
        Membrane-node value of each cytosolic species.
    """

    def __init__(self):
        params = PARAMETERS.symbols
        cyto = CYTOSOLIC_SPECIES.symbols
        memb = MEMBRANE_SPECIES.symbols
        self.bulk_expressions = net_rates(BULK_REACTIONS, CYTOSOLIC_SPECIES)
        self.surface_expressions = net_rates(SURFACE_REACTIONS,
                                             MEMBRANE_SPECIES)
        self.closure_expressions, inner, h = boundary_closures(
            SURFACE_REACTIONS, CYTOSOLIC_SPECIES)
        self._bulk = sympy.lambdify(cyto + params, self.bulk_expressions,
                                    'numpy')
        self._surface = sympy.lambdify(memb + cyto + params,
                                       self.surface_expressions, 'numpy')
        self._closure = sympy.lambdify(inner + h + memb + params,
                                       self.closure_expressions, 'numpy')

    def bulk(self, cytosol, k):
        """
        Reaction rates of all cytosolic species

        Parameters
        ----------
        cytosol : numpy.ndarray
            Concentrations, shape (n_cytosolic_species, n_nodes)
        k : sequence of float
            Kinetic parameter values in ``PARAMETERS`` order

        Returns
        -------
        numpy.ndarray of the same shape as ``cytosol``
        """
        return _stack(self._bulk(*cytosol, *k), len(cytosol),
                      cytosol.shape[1:])

    def surface(self, membrane, boundary, k):
        """ Net rates of the membrane species """
        return _stack(self._surface(*membrane, *boundary, *k),
                      len(membrane), ())

    def closure(self, inner, h, membrane, k):
        """ Membrane-node values of the cytosolic species """
        return _stack(self._closure(*inner, *h, *membrane, *k), len(inner),
                      ())


@functools.lru_cache(maxsize=None)
def get_rate_functions():
    """ Build (once per process) and return the network's RateFunctions """
    return RateFunctions()
