import numpy as np
import pytest
import sympy
from egfrdiff.core import Component, Parameter, Species, Reaction, \
    ComponentSet, CYTOSOL, MEMBRANE, InvalidComponentNameError, \
    ComponentDuplicateNameError, is_finite_real, is_whole_number


def _species():
    a = Species('A', CYTOSOL, {'A': 1}, 'A')
    b = Species('B', CYTOSOL, {'B': 1}, 'B')
    ab = Species('AB', MEMBRANE, {'A': 1, 'B': 1})
    return a, b, ab


def test_invalid_component_name():
    for name in ('1A', 'A-B', '', 'A B'):
        with pytest.raises(InvalidComponentNameError):
            Component(name)


def test_component_symbol():
    p = Parameter('kf', 'forward rate', '1/min')
    assert p.symbol == sympy.Symbol('kf', real=True)
    assert p.units == '1/min'


def test_species_requires_diffusivity_in_cytosol():
    with pytest.raises(ValueError):
        Species('A', CYTOSOL, {'A': 1})
    with pytest.raises(ValueError):
        Species('A', 'nucleus', {'A': 1}, 'A')


def test_species_composition():
    a = Species('A', CYTOSOL, {'A': 2}, 'A', description='dimer')
    assert a.diffusivity == 'A'
    assert a.count('A') == 2
    assert a.count('B') == 0
    assert Species('AB', MEMBRANE, {'A': 1}).diffusivity is None


def test_reaction_rate_laws():
    a, b, ab = _species()
    kf = Parameter('kf')
    kr = Parameter('kr')
    rxn = Reaction('bind', [a, b], [ab], kf, kr)
    assert rxn.is_reversible
    laws = rxn.rate_laws()
    assert len(laws) == 2
    assert laws[0][2] == kf.symbol * a.symbol * b.symbol
    assert laws[1][0] == (ab,)
    assert laws[1][2] == kr.symbol * ab.symbol
    assert rxn.stoichiometry() == {'A': -1, 'B': -1, 'AB': 1}


def test_reaction_catalyst_cancels():
    a, b, _ = _species()
    rxn = Reaction('convert', [a, b], [a, a], Parameter('k'))
    assert not rxn.is_reversible
    assert len(rxn.rate_laws()) == 1
    assert rxn.stoichiometry() == {'A': 1, 'B': -1}


def test_reaction_expression_rate():
    a, _, ab = _species()
    k = Parameter('k')
    rxn = Reaction('activate', [a], [ab], 2 * k.symbol * ab.symbol)
    assert rxn.rate_laws()[0][2] == 2 * k.symbol * ab.symbol * a.symbol


def test_componentset_access():
    a, b, ab = _species()
    cset = ComponentSet([a, b, ab])
    assert len(cset) == 3
    assert cset[0] is a
    assert cset['B'] is b
    assert cset.AB is ab
    assert cset.keys() == ['A', 'B', 'AB']
    assert cset.index('AB') == 2
    assert cset.index(b) == 1
    assert cset.get('C') is None
    assert a in cset
    assert cset.symbols == [a.symbol, b.symbol, ab.symbol]
    with pytest.raises(AttributeError):
        cset.C
    with pytest.raises(TypeError):
        'A' in cset


def test_componentset_duplicate():
    a, _, _ = _species()
    cset = ComponentSet([a])
    # Adding the same object again is a no-op
    cset.add(a)
    assert len(cset) == 1
    with pytest.raises(ComponentDuplicateNameError):
        cset.add(Species('A', CYTOSOL, {'A': 1}, 'A'))


def test_is_finite_real():
    for value in (1, 0.5, -2.0, np.float64(0.1), np.int32(3)):
        assert is_finite_real(value)
    for value in (None, '1.0', True, np.inf, np.nan, [1.0], 1j):
        assert not is_finite_real(value)


def test_is_whole_number():
    assert is_whole_number(10)
    assert is_whole_number(10.0)
    assert not is_whole_number(2.5)
    assert not is_whole_number(None)
    assert not is_whole_number(np.inf)
