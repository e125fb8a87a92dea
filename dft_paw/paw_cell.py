"""
PAW projectors of a whole cell.

PawCell flattens the projectors of every atom into one global index

    iprj = start_iprj[ia] + im

where im runs over the channels of the atom's species (file order) and,
inside each channel, over m = -l, ..., l.  For a k-point it caches the
reciprocal-space projector form factors and accumulates the augmentation
occupations

    rho_ij^a += sum_n f_n <psi_n|p_i^a> <p_j^a|psi_n>

from plane-wave coefficients supplied by the caller.
"""

import os
import numpy as np
from typing import List, Sequence, Tuple, Union

from scipy.interpolate import CubicSpline

from .basis import PlaneWaveBasis
from .errors import ConfigurationError
from .paw_setup import PawSetup, read_paw_xml
from .ylm import calc_ylm_array, ylm_index


class PawCell:
    """
    Projector index, k-point projector cache and rhoij accumulator.

    One instance is not safe for concurrent use; use one per thread.
    """

    def __init__(self, verbose: bool = False, dq: float = 0.01):
        """
        Args:
            verbose: Print a summary on init and on every k-point setup
            dq: q spacing (Bohr^-1) of the radial form-factor table
        """
        if dq <= 0:
            raise ConfigurationError(f"dq={dq} must be positive")
        self.verbose = verbose
        self.dq = dq

        self._initialized = False
        self.reciprocal_lattice = None
        self._clear_k_cache()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def init(self, ecut: float, cell_factor: float, omega: float, nat: int, ntyp: int,
             atom_type: Sequence[int], atom_coord: np.ndarray,
             setups: Sequence[Union[str, os.PathLike, PawSetup]], nspin: int = 1):
        """
        Build the global projector index.

        Args:
            ecut: Plane wave cutoff (Hartree)
            cell_factor: Head-room factor (>= 1) of the form-factor table
            omega: Cell volume (Bohr^3)
            nat: Number of atoms
            ntyp: Number of species
            atom_type: Species index of each atom, values in [0, ntyp)
            atom_coord: Fractional atomic coordinates (nat, 3)
            setups: One entry per species, a PAW XML file path or a PawSetup
            nspin: Number of rhoij spin channels (1 or 2)

        Raises:
            ConfigurationError: on invalid dimensions or unusable setups
        """
        if not ecut > 0:
            raise ConfigurationError(f"ecut={ecut} must be positive")
        if not cell_factor >= 1:
            raise ConfigurationError(f"cell_factor={cell_factor} must be >= 1")
        if not omega > 0:
            raise ConfigurationError(f"omega={omega} must be positive")
        if nat <= 0 or ntyp <= 0:
            raise ConfigurationError(f"nat={nat} and ntyp={ntyp} must be positive")
        if nspin not in (1, 2):
            raise ConfigurationError(f"nspin={nspin} must be 1 or 2")

        atom_type = np.array(atom_type, dtype=int).reshape(-1)
        if len(atom_type) != nat:
            raise ConfigurationError(f"atom_type has {len(atom_type)} entries, expected nat={nat}")
        if np.any(atom_type < 0) or np.any(atom_type >= ntyp):
            raise ConfigurationError(f"atom_type values must lie in [0, {ntyp})")

        atom_coord = np.array(atom_coord, dtype=np.float64)
        if atom_coord.shape != (nat, 3):
            raise ConfigurationError(f"atom_coord has shape {atom_coord.shape}, expected ({nat}, 3)")

        if len(setups) != ntyp:
            raise ConfigurationError(f"{len(setups)} setups given for ntyp={ntyp}")
        # A setup that fails to load leaves the previous state untouched
        setups = [self._load_setup(s) for s in setups]

        self._initialized = False
        self.ecut = float(ecut)
        self.cell_factor = float(cell_factor)
        self.omega = float(omega)
        self.nat = nat
        self.ntyp = ntyp
        self.nspin = nspin
        self.atom_type = atom_type
        self.atom_coord = atom_coord
        self.setups = setups

        self._build_index()
        self._build_radial_tables()

        self.reciprocal_lattice = None
        self._clear_k_cache()
        self._dij = None
        self._sij = None
        self._initialized = True
        self.reset_rhoij()

        if self.verbose:
            print(f"PAW cell initialized:")
            print(f"  Atoms: {self.nat}, species: {self.ntyp}")
            print(f"  Projectors: {self.nproj_tot}, lmax: {self.lmax}")
            if self._qgrid is not None:
                print(f"  Form-factor table: {len(self._qgrid)} q-points up to "
                      f"{self._qgrid[-1]:.3f} Bohr^-1")

    @classmethod
    def from_crystal(cls, crystal, setups, ecut: float, cell_factor: float = 1.0,
                     nspin: int = 1, **kwargs) -> 'PawCell':
        """
        Build a PawCell for a Crystal.

        Args:
            crystal: Crystal structure
            setups: Dict species symbol -> setup (path or PawSetup), or a
                list in crystal.get_unique_species() order
            ecut: Plane wave cutoff (Hartree)
            cell_factor: Head-room factor of the form-factor table
            nspin: Number of rhoij spin channels
            **kwargs: Passed to PawCell()

        Returns:
            Initialized PawCell; set_paw_k may omit the reciprocal lattice
        """
        species, atom_type = crystal.get_atom_types()
        if isinstance(setups, dict):
            missing = [s for s in species if s not in setups]
            if missing:
                raise ConfigurationError(f"No PAW setup for species {missing}")
            setups = [setups[s] for s in species]

        paw_cell = cls(**kwargs)
        paw_cell.init(ecut, cell_factor, crystal.volume, crystal.num_atoms, len(species),
                      atom_type, crystal.get_fractional_positions(), setups, nspin=nspin)
        paw_cell.reciprocal_lattice = crystal.reciprocal_cell.copy()
        return paw_cell

    def _load_setup(self, setup) -> PawSetup:
        if isinstance(setup, PawSetup):
            return setup
        if isinstance(setup, (str, os.PathLike)):
            return read_paw_xml(setup)
        raise ConfigurationError(f"Cannot use {type(setup).__name__} as a PAW setup")

    def _build_index(self):
        """Prefix offsets and the iprj -> (ia, im, il, l, m) tables."""
        self.mstate = np.array([s.mstate for s in self.setups], dtype=int)
        self.lmax = max(s.lmax for s in self.setups)

        nproj_per_atom = self.mstate[self.atom_type]
        self.nproj_tot = int(np.sum(nproj_per_atom))
        self.start_iprj = np.zeros(self.nat, dtype=int)
        self.start_iprj[1:] = np.cumsum(nproj_per_atom)[:-1]

        ia_list, im_list, il_list, l_list, m_list = [], [], [], [], []
        for ia in range(self.nat):
            setup = self.setups[self.atom_type[ia]]
            im = 0
            for il, ch in enumerate(setup.channels):
                for m in range(-ch.l, ch.l + 1):
                    ia_list.append(ia)
                    im_list.append(im)
                    il_list.append(il)
                    l_list.append(ch.l)
                    m_list.append(m)
                    im += 1

        self.iprj_to_ia = np.array(ia_list, dtype=int)
        self.iprj_to_im = np.array(im_list, dtype=int)
        self.iprj_to_il = np.array(il_list, dtype=int)
        self.iprj_to_l = np.array(l_list, dtype=int)
        self.iprj_to_m = np.array(m_list, dtype=int)

    def _build_radial_tables(self):
        """Cubic splines of f(q) for every channel of every species with radial data."""
        self._splines = [None] * self.ntyp
        self._qgrid = None
        if not any(s.has_radial_data() for s in self.setups):
            return

        qmax = np.sqrt(2 * self.ecut * self.cell_factor)
        nq = int(np.ceil(qmax / self.dq)) + 4
        self._qgrid = np.arange(nq) * self.dq

        for it, setup in enumerate(self.setups):
            if not setup.has_radial_data():
                continue
            self._splines[it] = [
                CubicSpline(self._qgrid, setup.get_projector_of_q(ich, self._qgrid))
                for ich in range(setup.nchannels)
            ]

    # ------------------------------------------------------------------
    # k-point setup
    # ------------------------------------------------------------------

    def _clear_k_cache(self):
        self._basis = None
        self._ylm_k = None
        self._formfactor = None

    def set_paw_k(self, k_point: np.ndarray, reciprocal_lattice: np.ndarray = None,
                  eigts: np.ndarray = None, miller_indices: np.ndarray = None):
        """
        Evaluate the projector form factors on the plane-wave grid of a k-point.

        Replaces any previously cached k-point.

        Args:
            k_point: k in Cartesian coordinates (Bohr^-1)
            reciprocal_lattice: Reciprocal vectors as rows (2*pi included);
                defaults to the lattice given to from_crystal
            eigts: Structure-factor phases exp(-i(k+G).tau_a), shape (nat, npw);
                computed from the atomic coordinates when omitted
            miller_indices: Use these G-vectors (npw, 3), in this order,
                instead of the cutoff sphere
        """
        self._check_initialized()
        if reciprocal_lattice is None:
            reciprocal_lattice = self.reciprocal_lattice
        if reciprocal_lattice is None:
            raise ConfigurationError("set_paw_k needs a reciprocal lattice")
        if any(spl is None for spl in self._splines):
            raise ConfigurationError("Every PAW setup needs radial projector data for set_paw_k")

        self._clear_k_cache()
        basis = PlaneWaveBasis(reciprocal_lattice, self.ecut, k_point, miller_indices)
        kpg = basis.kpg
        qnorm = np.linalg.norm(kpg, axis=1)
        if basis.npw and qnorm.max() > self._qgrid[-1]:
            raise ConfigurationError(
                f"|k+G| = {qnorm.max():.3f} exceeds the form-factor table "
                f"({self._qgrid[-1]:.3f}); increase cell_factor")

        if eigts is None:
            direct = 2 * np.pi * np.linalg.inv(basis.reciprocal_cell).T
            tau = self.atom_coord @ direct
            eigts = np.exp(-1j * tau @ kpg.T)
        else:
            eigts = np.asarray(eigts, dtype=np.complex128)
            if eigts.shape != (self.nat, basis.npw):
                raise ConfigurationError(
                    f"eigts has shape {eigts.shape}, expected ({self.nat}, {basis.npw})")

        ylm = calc_ylm_array(self.lmax, kpg)

        radial = {}
        for it in set(self.atom_type.tolist()):
            for ich, spline in enumerate(self._splines[it]):
                radial[it, ich] = spline(qnorm)

        ptilde = np.zeros((self.nproj_tot, basis.npw), dtype=np.complex128)
        for ip in range(self.nproj_tot):
            ia = self.iprj_to_ia[ip]
            l = self.iprj_to_l[ip]
            ptilde[ip] = ((-1j) ** l * radial[self.atom_type[ia], self.iprj_to_il[ip]]
                          * ylm[:, ylm_index(l, self.iprj_to_m[ip])] * eigts[ia])
        ptilde /= np.sqrt(self.omega)

        self._basis = basis
        self._ylm_k = ylm
        # <p_i|psi> = sum_G formfactor[i, G] * psi(G)
        self._formfactor = np.conj(ptilde)

        if self.verbose:
            print(f"PAW k-point {np.round(basis.k, 6)}: {basis.npw} plane waves")

    # ------------------------------------------------------------------
    # Projections, rhoij and nonlocal application
    # ------------------------------------------------------------------

    def get_projector_coefficients(self, psi: np.ndarray) -> np.ndarray:
        """
        Projections <p_i|psi_n> for the cached k-point.

        Args:
            psi: Plane-wave coefficients (nbands, npw) or (npw,)

        Returns:
            Array (nbands, nproj_tot)
        """
        psi = self._check_psi(psi)
        return psi @ self._formfactor.T

    def accumulate_rhoij(self, occupations: Sequence[float], psi: np.ndarray, spin: int = 0):
        """
        Add sum_n occ[n] conj(<p_i|psi_n>) <p_j|psi_n> to rhoij of every atom.

        Args:
            occupations: Weight of each band (k-point weight included)
            psi: Plane-wave coefficients (nbands, npw) at the cached k-point
            spin: Spin channel
        """
        psi = self._check_psi(psi)
        occ = np.asarray(occupations, dtype=np.float64).reshape(-1)
        if len(occ) != psi.shape[0]:
            raise ConfigurationError(
                f"{len(occ)} occupations given for {psi.shape[0]} bands")
        self._check_spin(spin)

        proj = self.get_projector_coefficients(psi)
        for ia in range(self.nat):
            block = proj[:, self._atom_slice(ia)]
            self._rhoij[spin][ia] += (block.conj().T * occ) @ block

    def reset_rhoij(self):
        """Zero the rhoij accumulator."""
        self._check_initialized()
        self._rhoij = [
            [np.zeros((self.mstate[t], self.mstate[t]), dtype=np.complex128)
             for t in self.atom_type]
            for _ in range(self.nspin)
        ]

    def get_rhoij(self, spin: int = 0) -> List[np.ndarray]:
        """Copies of the per-atom rhoij matrices of one spin channel."""
        self._check_initialized()
        self._check_spin(spin)
        return [rho.copy() for rho in self._rhoij[spin]]

    def get_rhoijp(self, spin: int = 0,
                   threshold: float = 1e-10) -> List[Tuple[np.ndarray, np.ndarray]]:
        """
        Packed rhoij: upper triangle i <= j stored at k = j*(j+1)/2 + i.

        Args:
            spin: Spin channel
            threshold: Entries with |value| <= threshold are not selected

        Returns:
            Per atom, (packed values, indices of the selected packed entries)
        """
        packed = []
        for rho in self.get_rhoij(spin):
            n = len(rho)
            ii = np.array([i for j in range(n) for i in range(j + 1)], dtype=int)
            jj = np.array([j for j in range(n) for i in range(j + 1)], dtype=int)
            values = rho[ii, jj]
            select = np.nonzero(np.abs(values) > threshold)[0]
            packed.append((values, select))
        return packed

    def set_dij(self, dij: Sequence[np.ndarray]):
        """Per-atom nonlocal strengths D_ij, each (mstate, mstate)."""
        self._dij = self._check_atom_matrices(dij, 'dij')

    def set_sij(self, sij: Sequence[np.ndarray]):
        """Per-atom overlap coefficients S_ij, each (mstate, mstate)."""
        self._sij = self._check_atom_matrices(sij, 'sij')

    def paw_nl_psi(self, psi: np.ndarray, mode: str = 'dij') -> np.ndarray:
        """
        Apply sum_a sum_ij |p_i^a> X^a_ij <p_j^a| to wavefunctions.

        Args:
            psi: Plane-wave coefficients (nbands, npw) or (npw,)
            mode: 'dij' for the nonlocal Hamiltonian, 'sij' for the overlap

        Returns:
            Array (nbands, npw)
        """
        if mode == 'dij':
            matrices = self._dij
        elif mode == 'sij':
            matrices = self._sij
        else:
            raise ValueError(f"Unknown mode '{mode}', use 'dij' or 'sij'")
        if matrices is None:
            raise RuntimeError(f"{mode} has not been set")

        proj = self.get_projector_coefficients(psi)
        weighted = np.zeros_like(proj)
        for ia in range(self.nat):
            sl = self._atom_slice(ia)
            weighted[:, sl] = proj[:, sl] @ matrices[ia].T
        return weighted @ np.conj(self._formfactor)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_nproj_tot(self) -> int:
        self._check_initialized()
        return self.nproj_tot

    def get_lmax(self) -> int:
        self._check_initialized()
        return self.lmax

    def get_start_iprj(self) -> np.ndarray:
        self._check_initialized()
        return self.start_iprj.copy()

    def get_iprj_to_ia(self) -> np.ndarray:
        self._check_initialized()
        return self.iprj_to_ia.copy()

    def get_iprj_to_im(self) -> np.ndarray:
        self._check_initialized()
        return self.iprj_to_im.copy()

    def get_iprj_to_il(self) -> np.ndarray:
        self._check_initialized()
        return self.iprj_to_il.copy()

    def get_iprj_to_l(self) -> np.ndarray:
        self._check_initialized()
        return self.iprj_to_l.copy()

    def get_iprj_to_m(self) -> np.ndarray:
        self._check_initialized()
        return self.iprj_to_m.copy()

    def get_projector_labels(self) -> List[Tuple[int, int, int, int, int]]:
        """(ia, im, il, l, m) of every global projector index."""
        self._check_initialized()
        return list(zip(self.iprj_to_ia.tolist(), self.iprj_to_im.tolist(),
                        self.iprj_to_il.tolist(), self.iprj_to_l.tolist(),
                        self.iprj_to_m.tolist()))

    def get_npw(self) -> int:
        self._check_k()
        return self._basis.npw

    def get_kpg(self) -> np.ndarray:
        """k+G vectors of the cached k-point (npw, 3)."""
        self._check_k()
        return self._basis.kpg.copy()

    def get_miller_indices(self) -> np.ndarray:
        self._check_k()
        return self._basis.miller_indices.copy()

    def get_ylm_k(self) -> np.ndarray:
        """Y_lm(k+G) of the cached k-point (npw, (lmax+1)**2)."""
        self._check_k()
        return self._ylm_k.copy()

    def get_formfactors(self) -> np.ndarray:
        """Form factors (nproj_tot, npw) with <p_i|psi> = sum_G ff[i, G] psi(G)."""
        self._check_k()
        return self._formfactor.copy()

    def print_summary(self):
        """Print the projector channels of every species."""
        self._check_initialized()
        print("\n" + "=" * 60)
        print("PAW projectors")
        print("=" * 60)
        for it, setup in enumerate(self.setups):
            natoms = int(np.sum(self.atom_type == it))
            print(f"  Type {it} ({setup.symbol}): {natoms} atom(s), mstate = {setup.mstate}")
            for il, ch in enumerate(setup.channels):
                n = '-' if ch.n is None else ch.n
                print(f"    channel {il}: n = {n}, l = {ch.l}")
        print(f"  Total projectors: {self.nproj_tot}")
        print("=" * 60)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _atom_slice(self, ia: int) -> slice:
        start = self.start_iprj[ia]
        return slice(start, start + self.mstate[self.atom_type[ia]])

    def _check_initialized(self):
        if not self._initialized:
            raise RuntimeError("PawCell.init has not been called")

    def _check_spin(self, spin: int):
        if not 0 <= spin < self.nspin:
            raise ConfigurationError(f"spin={spin} out of range for nspin={self.nspin}")

    def _check_k(self):
        self._check_initialized()
        if self._formfactor is None:
            raise RuntimeError("PawCell.set_paw_k has not been called")

    def _check_psi(self, psi: np.ndarray) -> np.ndarray:
        self._check_k()
        psi = np.atleast_2d(np.asarray(psi, dtype=np.complex128))
        if psi.ndim != 2 or psi.shape[1] != self._basis.npw:
            raise ConfigurationError(
                f"psi has shape {psi.shape}, expected (nbands, {self._basis.npw})")
        return psi

    def _check_atom_matrices(self, matrices, name: str) -> List[np.ndarray]:
        self._check_initialized()
        if len(matrices) != self.nat:
            raise ConfigurationError(f"{name} has {len(matrices)} entries, expected nat={self.nat}")
        checked = []
        for ia, mat in enumerate(matrices):
            mat = np.asarray(mat, dtype=np.complex128)
            n = self.mstate[self.atom_type[ia]]
            if mat.shape != (n, n):
                raise ConfigurationError(
                    f"{name}[{ia}] has shape {mat.shape}, expected ({n}, {n})")
            checked.append(mat)
        return checked
