import numpy as np
import sympy
from egfrdiff.network import CYTOSOLIC_SPECIES, MEMBRANE_SPECIES, \
    PARAMETERS, BULK_REACTIONS, SURFACE_REACTIONS, net_rates, \
    boundary_exchange, boundary_closures, get_rate_functions
from egfrdiff.testing import reference_rates, zero_rates

c = CYTOSOLIC_SPECIES
m = MEMBRANE_SPECIES
p = PARAMETERS


def test_species_and_parameter_order():
    assert c.keys() == ['iSFK', 'aSFK', 'GAB1', 'pGAB1', 'GRB2', 'G2G1',
                        'G2PG1', 'SHP2', 'PG1S', 'G2PG1S']
    assert m.keys() == ['mE', 'mES', 'mESmES', 'E', 'EG2', 'EG2G1',
                        'EG2PG1', 'EG2PG1S']
    assert p.keys() == ['kS2f', 'kS2r', 'kG1f', 'kG1r', 'kG2f', 'kG2r',
                        'kG1p', 'kG1dp', 'kSa', 'kSi', 'kp', 'kdp',
                        'kEGFf', 'kEGFr', 'EGF', 'kdf', 'kdr']


def test_bulk_rate_laws():
    rates = dict(zip(c.keys(), net_rates(BULK_REACTIONS, c)))
    expected_gab1 = (-p.kG1f.symbol * c.GAB1.symbol * c.GRB2.symbol +
                     p.kG1r.symbol * c.G2G1.symbol -
                     p.kG1p.symbol * c.aSFK.symbol * c.GAB1.symbol +
                     p.kG1dp.symbol * c.pGAB1.symbol)
    assert sympy.simplify(rates['GAB1'] - expected_gab1) == 0
    assert sympy.simplify(rates['iSFK'] -
                          p.kSi.symbol * c.aSFK.symbol) == 0
    assert sympy.simplify(rates['iSFK'] + rates['aSFK']) == 0


def test_bulk_reactions_conserve_monomers():
    rates = net_rates(BULK_REACTIONS, c)
    for monomer in ('SFK', 'GRB2', 'GAB1', 'SHP2'):
        total = sum(sp.count(monomer) * rate for sp, rate in zip(c, rates))
        assert sympy.expand(total) == 0, monomer


def test_dimerization_rate():
    rates = dict(zip(m.keys(), net_rates(SURFACE_REACTIONS, m)))
    expected = (p.kEGFf.symbol * p.EGF.symbol * m.mE.symbol -
                p.kEGFr.symbol * m.mES.symbol -
                2 * p.kdf.symbol * m.mES.symbol ** 2 +
                2 * p.kdr.symbol * m.mESmES.symbol)
    assert sympy.expand(rates['mES'] - expected) == 0


def test_boundary_exchange():
    loss, gain = boundary_exchange(SURFACE_REACTIONS, c)
    assert sympy.simplify(loss['GRB2'] - p.kG2f.symbol * m.E.symbol) == 0
    assert sympy.simplify(gain['GRB2'] - p.kG2r.symbol * m.EG2.symbol) == 0
    assert loss['aSFK'] == 0
    assert gain['iSFK'] == 0
    # Species without surface reactions
    assert loss['SHP2'] == 0 and gain['SHP2'] == 0


def test_boundary_closures_are_explicit():
    closures, inner, h = boundary_closures(SURFACE_REACTIONS, c)
    boundary_symbols = set(c.symbols)
    for expr in closures:
        assert not expr.free_symbols & boundary_symbols
    asfk = closures[c.index('aSFK')]
    assert inner[c.index('iSFK')] in asfk.free_symbols
    # No surface reactions: the membrane node mirrors its neighbour
    assert closures[c.index('SHP2')] == inner[c.index('SHP2')]


def test_rate_functions_shapes():
    rates = get_rate_functions()
    assert get_rate_functions() is rates
    k = reference_rates().as_vector()
    cytosol = np.ones((len(c), 7))
    assert rates.bulk(cytosol, k).shape == (len(c), 7)
    membrane = np.ones(len(m))
    assert rates.surface(membrane, np.ones(len(c)), k).shape == (len(m),)
    closure = rates.closure(np.ones(len(c)), np.full(len(c), 0.1),
                            membrane, k)
    assert closure.shape == (len(c),)


def test_rate_functions_zero_rates():
    rates = get_rate_functions()
    k = zero_rates().as_vector()
    cytosol = np.random.rand(len(c), 5)
    np.testing.assert_array_equal(rates.bulk(cytosol, k), 0)
    inner = np.random.rand(len(c))
    np.testing.assert_allclose(
        rates.closure(inner, np.full(len(c), 0.1), np.ones(len(m)), k),
        inner)


def test_rate_functions_values():
    rates = get_rate_functions()
    k = zero_rates(kG1f=2.0, kG1r=0.5)
    cytosol = np.zeros((len(c), 1))
    cytosol[c.index('GAB1')] = 3.0
    cytosol[c.index('GRB2')] = 4.0
    cytosol[c.index('G2G1')] = 1.0
    bulk = rates.bulk(cytosol, k.as_vector())[:, 0]
    assert bulk[c.index('G2G1')] == 2.0 * 3.0 * 4.0 - 0.5
    assert bulk[c.index('GAB1')] == -(2.0 * 3.0 * 4.0 - 0.5)
    assert bulk[c.index('SHP2')] == 0


def test_grb2_closure_value():
    rates = get_rate_functions()
    k = zero_rates(kG2f=2.0, kG2r=1.0)
    membrane = np.zeros(len(m))
    membrane[m.index('E')] = 3.0
    membrane[m.index('EG2')] = 0.5
    inner = np.ones(len(c))
    h = np.full(len(c), 0.1)
    closure = rates.closure(inner, h, membrane, k.as_vector())
    expected = (1.0 + 1.0 * 0.5 * 0.1) / (1 + 2.0 * 3.0 * 0.1)
    assert np.isclose(closure[c.index('GRB2')], expected)
