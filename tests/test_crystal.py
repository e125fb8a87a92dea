"""
Tests for crystal structure module.
"""

import numpy as np
import pytest
from dft_paw.crystal import Crystal, Atom


class TestAtom:
    """Tests for Atom class."""

    def test_atom_creation(self):
        atom = Atom('Fe', [0, 0, 0])
        assert atom.symbol == 'Fe'
        assert atom.position.dtype == np.float64


class TestCrystal:
    """Tests for Crystal class."""

    def test_angstrom_converted(self):
        a = 5.0  # Angstrom
        crystal = Crystal(a * np.eye(3), [Atom('O', [0.0, 0.0, 0.0])], units='angstrom')
        np.testing.assert_array_almost_equal(
            crystal.cell, a * Crystal.ANGSTROM_TO_BOHR * np.eye(3))

    def test_reciprocal_lattice(self):
        a = 5.0
        crystal = Crystal.cubic(a, [Atom('O', [0.0, 0.0, 0.0])])
        np.testing.assert_array_almost_equal(crystal.reciprocal_cell, (2 * np.pi / a) * np.eye(3))
        np.testing.assert_array_almost_equal(crystal.cell @ crystal.reciprocal_cell.T,
                                             2 * np.pi * np.eye(3))

    def test_volume(self):
        crystal = Crystal.cubic(10.0, [Atom('H', [0.0, 0.0, 0.0])])
        assert crystal.volume == pytest.approx(1000.0)

    def test_cartesian_positions(self):
        crystal = Crystal.cubic(10.0, [Atom('H', [0.0, 0.0, 0.0]), Atom('H', [0.5, 0.5, 0.5])])
        np.testing.assert_array_almost_equal(crystal.get_cartesian_positions(),
                                             [[0.0, 0.0, 0.0], [5.0, 5.0, 5.0]])

    def test_atom_types(self):
        atoms = [Atom(s, [0.1 * i, 0.0, 0.0]) for i, s in enumerate(['Fe', 'O', 'H', 'O', 'H'])]
        crystal = Crystal.cubic(10.0, atoms)
        species, atom_type = crystal.get_atom_types()
        assert species == ['Fe', 'O', 'H']
        assert atom_type == [0, 1, 2, 1, 2]

    def test_unknown_units(self):
        with pytest.raises(ValueError):
            Crystal(np.eye(3), [], units='nm')

    def test_singular_cell(self):
        with pytest.raises(ValueError):
            Crystal(np.ones((3, 3)), [], units='bohr')
