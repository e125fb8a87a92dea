"""
Tests for the PawCell projector index.
"""

import numpy as np
import pytest

from dft_paw import Atom, Crystal, PawCell, PawSetup
from dft_paw.errors import ConfigurationError

IPRJ_TO_IL_REF = [0, 1, 2, 2, 2, 3, 3, 3, 4, 4, 4, 4, 4, 5, 5, 5, 5, 5,
                  0, 1, 2, 2, 2, 3, 3, 3, 0, 1, 2, 2, 2, 0, 1, 2, 2, 2, 3, 3, 3, 0, 1, 2, 2, 2]
IPRJ_TO_L_REF = [0, 0, 1, 1, 1, 1, 1, 1, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2,
                 0, 0, 1, 1, 1, 1, 1, 1, 0, 0, 1, 1, 1, 0, 0, 1, 1, 1, 1, 1, 1, 0, 0, 1, 1, 1]
IPRJ_TO_M_REF = [0, 0, -1, 0, 1, -1, 0, 1, -2, -1, 0, 1, 2, -2, -1, 0, 1, 2,
                 0, 0, -1, 0, 1, -1, 0, 1, 0, 0, -1, 0, 1, 0, 0, -1, 0, 1, -1, 0, 1, 0, 0, -1, 0, 1]


@pytest.fixture
def fe_oh_cell(setup_files):
    """Fe, O, H, O, H with the Fe / O / H setups."""
    paw_cell = PawCell()
    atom_coord = np.zeros((5, 3))
    paw_cell.init(50.0, 1.2, 1.0, 5, 3, [0, 1, 2, 1, 2], atom_coord, setup_files)
    return paw_cell


@pytest.fixture
def l_list_setups():
    """Setups given only by their channel l lists."""
    return [PawSetup.from_l_list('Fe', [0, 0, 1, 1, 2, 2]),
            PawSetup.from_l_list('O', [0, 0, 1, 1]),
            PawSetup.from_l_list('H', [0, 0, 1])]


class TestProjectorIndex:
    """The Fe/O/H/O/H reference index."""

    def test_nproj_tot(self, fe_oh_cell):
        assert fe_oh_cell.get_nproj_tot() == 44

    def test_lmax(self, fe_oh_cell):
        assert fe_oh_cell.get_lmax() == 2

    def test_iprj_to_ia(self, fe_oh_cell):
        ref = [0] * 18 + [1] * 8 + [2] * 5 + [3] * 8 + [4] * 5
        np.testing.assert_array_equal(fe_oh_cell.get_iprj_to_ia(), ref)

    def test_iprj_to_im(self, fe_oh_cell):
        ref = list(range(18)) + list(range(8)) + list(range(5)) + list(range(8)) + list(range(5))
        np.testing.assert_array_equal(fe_oh_cell.get_iprj_to_im(), ref)

    def test_iprj_to_il(self, fe_oh_cell):
        np.testing.assert_array_equal(fe_oh_cell.get_iprj_to_il(), IPRJ_TO_IL_REF)

    def test_iprj_to_l(self, fe_oh_cell):
        np.testing.assert_array_equal(fe_oh_cell.get_iprj_to_l(), IPRJ_TO_L_REF)

    def test_iprj_to_m(self, fe_oh_cell):
        np.testing.assert_array_equal(fe_oh_cell.get_iprj_to_m(), IPRJ_TO_M_REF)

    def test_start_iprj(self, fe_oh_cell):
        np.testing.assert_array_equal(fe_oh_cell.get_start_iprj(), [0, 18, 26, 31, 39])

    def test_injected_setups_give_same_index(self, fe_oh_cell, l_list_setups):
        """Already-parsed setups build the same index as files."""
        paw_cell = PawCell()
        paw_cell.init(50.0, 1.2, 1.0, 5, 3, [0, 1, 2, 1, 2], np.zeros((5, 3)), l_list_setups)
        for getter in ('get_iprj_to_ia', 'get_iprj_to_im', 'get_iprj_to_il',
                       'get_iprj_to_l', 'get_iprj_to_m', 'get_start_iprj'):
            np.testing.assert_array_equal(getattr(paw_cell, getter)(),
                                          getattr(fe_oh_cell, getter)())

    def test_getters_return_copies(self, fe_oh_cell):
        ia = fe_oh_cell.get_iprj_to_ia()
        ia[:] = -1
        assert fe_oh_cell.get_iprj_to_ia()[0] == 0

    def test_projector_labels(self, fe_oh_cell):
        labels = fe_oh_cell.get_projector_labels()
        assert len(labels) == 44
        assert labels[0] == (0, 0, 0, 0, 0)
        assert labels[12] == (0, 12, 4, 2, 2)
        assert labels[26] == (2, 0, 0, 0, 0)


class TestIndexProperties:
    """Invariants of the index for arbitrary type assignments."""

    @pytest.mark.parametrize("atom_type", [
        [0],
        [2, 2, 2],
        [1, 0, 2, 0, 1, 1],
        [2, 1, 0, 0, 2, 1, 0, 2],
    ])
    def test_invariants(self, l_list_setups, atom_type):
        nat = len(atom_type)
        paw_cell = PawCell()
        paw_cell.init(10.0, 1.0, 1.0, nat, 3, atom_type, np.zeros((nat, 3)), l_list_setups)

        mstate = [s.mstate for s in l_list_setups]
        start = paw_cell.get_start_iprj()
        ia = paw_cell.get_iprj_to_ia()
        im = paw_cell.get_iprj_to_im()
        il = paw_cell.get_iprj_to_il()
        l = paw_cell.get_iprj_to_l()
        m = paw_cell.get_iprj_to_m()

        assert paw_cell.get_nproj_tot() == sum(mstate[t] for t in atom_type)
        assert start[0] == 0
        assert np.all(np.diff(start) >= 0)
        assert np.all(np.abs(m) <= l)

        for a, t in enumerate(atom_type):
            block = slice(start[a], start[a] + mstate[t])
            np.testing.assert_array_equal(ia[block], a)
            np.testing.assert_array_equal(im[block], np.arange(mstate[t]))

            # Channel runs rebuilt from il have 2l+1 entries with m = -l..l
            channels = l_list_setups[t].channels
            pos = start[a]
            for ich, ch in enumerate(channels):
                run = slice(pos, pos + 2 * ch.l + 1)
                np.testing.assert_array_equal(il[run], ich)
                np.testing.assert_array_equal(l[run], ch.l)
                np.testing.assert_array_equal(m[run], np.arange(-ch.l, ch.l + 1))
                pos += 2 * ch.l + 1
            assert pos == start[a] + mstate[t]

    def test_reinit_replaces_index(self, l_list_setups):
        paw_cell = PawCell()
        paw_cell.init(10.0, 1.0, 1.0, 2, 3, [0, 0], np.zeros((2, 3)), l_list_setups)
        assert paw_cell.get_nproj_tot() == 36
        paw_cell.init(10.0, 1.0, 1.0, 1, 3, [2], np.zeros((1, 3)), l_list_setups)
        assert paw_cell.get_nproj_tot() == 5
        assert paw_cell.get_lmax() == 2


class TestInitErrors:
    """Configuration errors raised by init."""

    @pytest.fixture
    def args(self, l_list_setups):
        return dict(ecut=10.0, cell_factor=1.0, omega=1.0, nat=2, ntyp=3,
                    atom_type=[0, 1], atom_coord=np.zeros((2, 3)), setups=l_list_setups)

    @pytest.mark.parametrize("key,value", [
        ('ecut', 0.0),
        ('ecut', -5.0),
        ('cell_factor', 0.9),
        ('omega', 0.0),
        ('nat', 0),
        ('ntyp', 0),
        ('atom_type', [0, 3]),
        ('atom_type', [-1, 0]),
        ('atom_type', [0, 1, 2]),
        ('atom_coord', np.zeros((3, 3))),
    ])
    def test_invalid_arguments(self, args, key, value):
        args[key] = value
        with pytest.raises(ConfigurationError):
            PawCell().init(**args)

    def test_wrong_number_of_setups(self, args):
        args['setups'] = args['setups'][:2]
        with pytest.raises(ConfigurationError):
            PawCell().init(**args)

    def test_unreadable_setup(self, args, tmp_path):
        args['setups'] = [str(tmp_path / 'nope.xml')] + args['setups'][1:]
        with pytest.raises(ConfigurationError):
            PawCell().init(**args)

    def test_failed_reinit_keeps_previous_index(self, args, tmp_path):
        paw_cell = PawCell()
        paw_cell.init(**args)
        nproj_tot = paw_cell.get_nproj_tot()

        bad = dict(args, nat=3, atom_type=[0, 0, 0], atom_coord=np.zeros((3, 3)))
        bad['setups'] = [str(tmp_path / 'missing.xml')] + args['setups'][1:]
        with pytest.raises(ConfigurationError):
            paw_cell.init(**bad)

        assert paw_cell.nat == 2
        assert len(paw_cell.get_start_iprj()) == paw_cell.nat
        assert paw_cell.get_nproj_tot() == nproj_tot
        assert [rho.shape for rho in paw_cell.get_rhoij()] == [(18, 18), (8, 8)]

    def test_bad_setup_type(self, args):
        args['setups'] = [42] + args['setups'][1:]
        with pytest.raises(ConfigurationError):
            PawCell().init(**args)

    def test_bad_nspin(self, args):
        with pytest.raises(ConfigurationError):
            PawCell().init(**args, nspin=3)

    def test_accessors_before_init(self):
        paw_cell = PawCell()
        with pytest.raises(RuntimeError):
            paw_cell.get_nproj_tot()
        with pytest.raises(RuntimeError):
            paw_cell.get_iprj_to_m()


class TestFromCrystal:
    """Tests for PawCell.from_crystal."""

    def test_species_mapping(self, setup_files):
        atoms = [Atom('Fe', [0.0, 0.0, 0.0]), Atom('O', [0.5, 0.0, 0.0]),
                 Atom('H', [0.5, 0.2, 0.0]), Atom('O', [0.0, 0.5, 0.0]),
                 Atom('H', [0.0, 0.5, 0.2])]
        crystal = Crystal.cubic(8.0, atoms)
        setups = {'Fe': setup_files[0], 'O': setup_files[1], 'H': setup_files[2]}

        paw_cell = PawCell.from_crystal(crystal, setups, ecut=5.0)

        assert paw_cell.get_nproj_tot() == 44
        np.testing.assert_array_equal(paw_cell.get_start_iprj(), [0, 18, 26, 31, 39])
        assert paw_cell.omega == pytest.approx(512.0)
        np.testing.assert_allclose(paw_cell.reciprocal_lattice, crystal.reciprocal_cell)

    def test_missing_species(self, setup_files):
        crystal = Crystal.cubic(8.0, [Atom('Fe', [0, 0, 0]), Atom('C', [0.5, 0.5, 0.5])])
        with pytest.raises(ConfigurationError):
            PawCell.from_crystal(crystal, {'Fe': setup_files[0]}, ecut=5.0)


def test_print_summary(fe_oh_cell, capsys):
    fe_oh_cell.print_summary()
    out = capsys.readouterr().out
    assert 'Type 0 (Fe): 1 atom(s), mstate = 18' in out
    assert 'Total projectors: 44' in out


def test_verbose_init(setup_files, capsys):
    paw_cell = PawCell(verbose=True)
    paw_cell.init(5.0, 1.0, 1.0, 1, 1, [0], np.zeros((1, 3)), setup_files[2:])
    assert 'Projectors: 5, lmax: 1' in capsys.readouterr().out
