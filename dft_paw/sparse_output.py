"""
Sparse real-space matrix output: S(R), T(R), H(R) and dH(R).

Matrices are supplied per lattice cell R = (R1, R2, R3) as dense blocks by a
provider object and written in compressed sparse row form, either as text
or as HDF5 (binary).  Entries with |value| <= sparse_threshold are dropped.

Text layout:

    STEP: <istep>
    Matrix Dimension of <label>: <nbasis>
    Matrix number of <label>: <number of R cells>
    R1 R2 R3 nnz          (one block per cell)
    <values>
    <column indices>
    <row pointers>
"""

import os
import numpy as np
import h5py
from typing import Dict, List, Optional, Sequence, Tuple
from scipy import sparse

from .errors import ConfigurationError

Cell = Tuple[int, int, int]


def sparsify(blocks: Dict[Cell, np.ndarray],
             sparse_threshold: float) -> Dict[Cell, sparse.csr_matrix]:
    """
    Convert dense R blocks to CSR, dropping entries with |value| <= threshold.

    Cells left without any entry are omitted.

    Args:
        blocks: Dense (nbasis, nbasis) matrix for each cell R
        sparse_threshold: Absolute drop threshold (>= 0)

    Returns:
        CSR matrix for each retained cell, sorted by R
    """
    if sparse_threshold < 0:
        raise ConfigurationError(f"sparse_threshold={sparse_threshold} must be non-negative")

    result = {}
    nbasis = None
    for R in sorted(blocks):
        mat = np.asarray(blocks[R])
        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            raise ConfigurationError(f"Block {R} is not a square matrix: {mat.shape}")
        if nbasis is None:
            nbasis = mat.shape[0]
        elif mat.shape[0] != nbasis:
            raise ConfigurationError(f"Block {R} has dimension {mat.shape[0]}, expected {nbasis}")

        kept = np.where(np.abs(mat) > sparse_threshold, mat, 0)
        csr = sparse.csr_matrix(kept)
        csr.eliminate_zeros()
        if csr.nnz > 0:
            result[tuple(int(x) for x in R)] = csr
    return result


class SparseMatrixWriter:
    """
    Writer for one sparse real-space matrix file.
    """

    def __init__(self, filename: str, binary: bool = False, verbose: bool = False):
        """
        Args:
            filename: Output filename
            binary: Write HDF5 instead of text
            verbose: Print the filename after writing
        """
        self.filename = filename
        self.binary = binary
        self.verbose = verbose

    def write(self, matrices: Dict[Cell, sparse.csr_matrix], nbasis: int,
              label: str = 'S(R)', istep: int = 0,
              basis_labels: Optional[Sequence[tuple]] = None):
        """
        Write sparse blocks.

        Args:
            matrices: CSR matrix per cell R (from sparsify)
            nbasis: Matrix dimension
            label: Matrix name used in the header
            istep: Ionic step number
            basis_labels: Optional (ia, ...) tuple per basis index, stored in
                HDF5 output so that rows can be mapped back onto atoms
        """
        if self.binary:
            self._write_hdf5(matrices, nbasis, label, istep, basis_labels)
        else:
            self._write_text(matrices, nbasis, label, istep)

        if self.verbose:
            print(f"{label} written to {self.filename}")

    def _write_text(self, matrices, nbasis, label, istep):
        with open(self.filename, 'w') as f:
            f.write(f"STEP: {istep}\n")
            f.write(f"Matrix Dimension of {label}: {nbasis}\n")
            f.write(f"Matrix number of {label}: {len(matrices)}\n")
            for R, csr in matrices.items():
                f.write(f"{R[0]} {R[1]} {R[2]} {csr.nnz}\n")
                f.write(" ".join(_format_value(v) for v in csr.data) + "\n")
                f.write(" ".join(str(j) for j in csr.indices) + "\n")
                f.write(" ".join(str(p) for p in csr.indptr) + "\n")

    def _write_hdf5(self, matrices, nbasis, label, istep, basis_labels):
        with h5py.File(self.filename, 'w') as f:
            f.attrs['label'] = label
            f.attrs['step'] = istep
            f.attrs['dimension'] = nbasis
            f.attrs['n_cells'] = len(matrices)
            if basis_labels is not None:
                f.create_dataset('basis_labels', data=np.array(basis_labels, dtype=int))

            for R, csr in matrices.items():
                grp = f.create_group(f"R_{R[0]}_{R[1]}_{R[2]}")
                grp.attrs['R'] = np.array(R, dtype=int)
                grp.create_dataset('data', data=csr.data)
                grp.create_dataset('indices', data=csr.indices)
                grp.create_dataset('indptr', data=csr.indptr)

    @staticmethod
    def read(filename: str, binary: bool = False) -> dict:
        """
        Read a file written by SparseMatrixWriter.

        Returns:
            Dictionary with 'step', 'dimension' and 'matrices' (CSR per R)
        """
        if binary:
            return _read_hdf5(filename)
        return _read_text(filename)


def _format_value(v) -> str:
    if np.iscomplexobj(v):
        return f"({v.real:.8e},{v.imag:.8e})"
    return f"{v:.8e}"


def _parse_value(token: str):
    if token.startswith('('):
        re_str, im_str = token.strip('()').split(',')
        return complex(float(re_str), float(im_str))
    return float(token)


def _read_text(filename: str) -> dict:
    with open(filename, 'r') as f:
        lines = [line.rstrip('\n') for line in f]

    step = int(lines[0].split(':')[1])
    dimension = int(lines[1].split(':')[1])
    ncells = int(lines[2].split(':')[1])

    matrices = {}
    pos = 3
    for _ in range(ncells):
        r1, r2, r3, nnz = (int(x) for x in lines[pos].split())
        values = [_parse_value(tok) for tok in lines[pos + 1].split()]
        indices = np.array(lines[pos + 2].split(), dtype=int)
        indptr = np.array(lines[pos + 3].split(), dtype=int)
        if len(values) != nnz:
            raise ConfigurationError(f"{filename}: cell ({r1}, {r2}, {r3}) lists "
                                     f"{len(values)} values, header says {nnz}")
        matrices[(r1, r2, r3)] = sparse.csr_matrix(
            (np.array(values), indices, indptr), shape=(dimension, dimension))
        pos += 4

    return {'step': step, 'dimension': dimension, 'matrices': matrices}


def _read_hdf5(filename: str) -> dict:
    results = {'matrices': {}}
    with h5py.File(filename, 'r') as f:
        results['step'] = int(f.attrs['step'])
        dimension = int(f.attrs['dimension'])
        results['dimension'] = dimension
        if 'basis_labels' in f:
            results['basis_labels'] = f['basis_labels'][:]
        for key in f.keys():
            if not key.startswith('R_'):
                continue
            grp = f[key]
            R = tuple(int(x) for x in grp.attrs['R'])
            results['matrices'][R] = sparse.csr_matrix(
                (grp['data'][:], grp['indices'][:], grp['indptr'][:]),
                shape=(dimension, dimension))
    return results


class DenseHSRProvider:
    """
    Matrix provider holding precomputed dense R blocks.

    Any object exposing the same get_* methods and basis_labels can be
    passed to the output_* functions.
    """

    def __init__(self, sr: Dict[Cell, np.ndarray] = None,
                 hr: Sequence[Dict[Cell, np.ndarray]] = None,
                 tr: Dict[Cell, np.ndarray] = None,
                 dhr: Sequence[Dict[str, Dict[Cell, np.ndarray]]] = None,
                 basis_labels: Optional[List[tuple]] = None):
        """
        Args:
            sr: Overlap blocks S(R)
            hr: Hamiltonian blocks H(R), one dict per spin channel
            tr: Kinetic blocks T(R)
            dhr: Per spin channel, dH(R)/dR blocks keyed by 'x', 'y', 'z'
            basis_labels: (ia, ...) of each basis index, e.g.
                PawCell.get_projector_labels()
        """
        self.sr = sr
        self.hr = hr
        self.tr = tr
        self.dhr = dhr
        self.basis_labels = basis_labels

    def get_SR(self) -> Dict[Cell, np.ndarray]:
        return self._require(self.sr, 'S(R)')

    def get_TR(self) -> Dict[Cell, np.ndarray]:
        return self._require(self.tr, 'T(R)')

    def get_HR(self, spin: int) -> Dict[Cell, np.ndarray]:
        return self._require(self.hr, 'H(R)')[spin]

    def get_dHR(self, spin: int, direction: str) -> Dict[Cell, np.ndarray]:
        return self._require(self.dhr, 'dH(R)')[spin][direction]

    def atom_of_basis(self, ibasis: int) -> int:
        """Atom owning a basis index."""
        if self.basis_labels is None:
            raise RuntimeError("Provider has no basis labels")
        return self.basis_labels[ibasis][0]

    @staticmethod
    def _require(value, name):
        if value is None:
            raise RuntimeError(f"Provider has no {name} matrices")
        return value


def _spin_channels(nspin: int) -> List[int]:
    if nspin in (1, 4):
        return [0]
    if nspin == 2:
        return [0, 1]
    raise ConfigurationError(f"nspin={nspin} must be 1, 2 or 4")


def _dimension(blocks: Dict[Cell, np.ndarray]) -> int:
    if len(blocks) == 0:
        raise ConfigurationError("No R blocks to write")
    return np.asarray(next(iter(blocks.values()))).shape[0]


def _save(blocks, filename, label, binary, sparse_threshold, istep, provider, verbose):
    writer = SparseMatrixWriter(filename, binary=binary, verbose=verbose)
    writer.write(sparsify(blocks, sparse_threshold), _dimension(blocks), label=label,
                 istep=istep, basis_labels=getattr(provider, 'basis_labels', None))


def output_S_R(provider, sr_filename: str = 'data-SR-sparse_SPIN0.csr',
               binary: bool = False, sparse_threshold: float = 1e-10,
               verbose: bool = False):
    """
    Write the overlap matrix S(R).

    Args:
        provider: Object with get_SR()
        sr_filename: Output filename
        binary: Write HDF5 instead of text
        sparse_threshold: Entries with |value| <= threshold are dropped
    """
    _save(provider.get_SR(), sr_filename, 'S(R)', binary, sparse_threshold, 0,
          provider, verbose)


def output_T_R(provider, istep: int = 0, tr_filename: str = 'data-TR-sparse_SPIN0.csr',
               binary: bool = False, sparse_threshold: float = 1e-10,
               verbose: bool = False, prefix_step: bool = False) -> str:
    """
    Write the kinetic matrix T(R).

    Args:
        provider: Object with get_TR()
        istep: Ionic step number
        tr_filename: Output filename
        binary: Write HDF5 instead of text
        sparse_threshold: Entries with |value| <= threshold are dropped
        prefix_step: Write to <dir>/<istep>_<name> so that every step of an MD
            run keeps its own file

    Returns:
        Filename written
    """
    if prefix_step:
        head, tail = os.path.split(tr_filename)
        tr_filename = os.path.join(head, f"{istep}_{tail}")
    _save(provider.get_TR(), tr_filename, 'T(R)', binary, sparse_threshold, istep,
          provider, verbose)
    return tr_filename


def output_HS_R(provider, nspin: int = 1, istep: int = 0,
                sr_filename: str = 'data-SR-sparse_SPIN0.csr',
                hr_filename_up: str = 'data-HR-sparse_SPIN0.csr',
                hr_filename_down: str = 'data-HR-sparse_SPIN1.csr',
                binary: bool = False, sparse_threshold: float = 1e-10,
                verbose: bool = False):
    """
    Write H(R) for every spin channel and S(R).

    nspin = 1 or 4 writes a single H(R) to hr_filename_up; nspin = 2 writes
    spin up and spin down to separate files.

    Args:
        provider: Object with get_SR() and get_HR(spin)
        nspin: 1, 2 or 4
        istep: Ionic step number
        sr_filename: S(R) output filename
        hr_filename_up: H(R) output for spin 0
        hr_filename_down: H(R) output for spin 1
        binary: Write HDF5 instead of text
        sparse_threshold: Entries with |value| <= threshold are dropped
    """
    filenames = [hr_filename_up, hr_filename_down]
    for spin in _spin_channels(nspin):
        _save(provider.get_HR(spin), filenames[spin], 'H(R)', binary, sparse_threshold,
              istep, provider, verbose)
    _save(provider.get_SR(), sr_filename, 'S(R)', binary, sparse_threshold, istep,
          provider, verbose)


def output_dH_R(provider, nspin: int = 1, istep: int = 0,
                filename_template: str = 'data-dH{direction}R-sparse_SPIN{spin}.csr',
                binary: bool = False, sparse_threshold: float = 1e-10,
                verbose: bool = False) -> List[str]:
    """
    Write dH(R)/dR along x, y and z for every spin channel.

    Args:
        provider: Object with get_dHR(spin, direction)
        nspin: 1, 2 or 4
        istep: Ionic step number
        filename_template: Formatted with direction and spin
        binary: Write HDF5 instead of text
        sparse_threshold: Entries with |value| <= threshold are dropped

    Returns:
        Filenames written
    """
    written = []
    for spin in _spin_channels(nspin):
        for direction in 'xyz':
            filename = filename_template.format(direction=direction, spin=spin)
            _save(provider.get_dHR(spin, direction), filename, f'dH{direction}(R)',
                  binary, sparse_threshold, istep, provider, verbose)
            written.append(filename)
    return written
