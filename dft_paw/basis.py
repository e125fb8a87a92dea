"""
Plane wave basis for a single k-point.
"""

import numpy as np


class PlaneWaveBasis:
    """
    Plane waves exp(i(k+G).r) / sqrt(V) with |k+G|^2/2 <= ecut.

    G-vectors are ordered by kinetic energy; ties keep Miller-index
    generation order so the ordering is reproducible.
    """

    def __init__(self, reciprocal_cell: np.ndarray, ecut: float, k: np.ndarray = None,
                 miller_indices: np.ndarray = None):
        """
        Initialize plane wave basis for a given k-point.

        Args:
            reciprocal_cell: Reciprocal vectors as rows (Bohr^-1, 2*pi included)
            ecut: Plane wave cutoff energy (Hartree)
            k: k-point in Cartesian coordinates (Bohr^-1)
            miller_indices: Use these G-vectors (npw, 3) instead of the cutoff sphere
        """
        self.reciprocal_cell = np.array(reciprocal_cell, dtype=np.float64)
        if self.reciprocal_cell.shape != (3, 3):
            raise ValueError("reciprocal_cell must be a 3x3 matrix")
        self.ecut = ecut
        self.k = np.zeros(3) if k is None else np.array(k, dtype=np.float64)

        if miller_indices is None:
            self._generate_g_vectors()
        else:
            self._set_g_vectors(np.array(miller_indices, dtype=int).reshape(-1, 3), sort=False)

    def _generate_g_vectors(self):
        """Generate G-vectors satisfying the cutoff criterion."""
        b = self.reciprocal_cell

        # |k+G|^2/2 <= ecut => |G| <= sqrt(2*ecut) + |k|
        gmax = np.sqrt(2 * self.ecut) + np.linalg.norm(self.k)

        # Planes of constant n_i are 2*pi/|a_i| apart, a_i = 2*pi * inv(b).T rows
        a = 2 * np.pi * np.linalg.inv(b).T
        nmax = np.floor(gmax * np.linalg.norm(a, axis=1) / (2 * np.pi)).astype(int) + 1

        ranges = [np.arange(-n, n + 1) for n in nmax]
        n1, n2, n3 = np.meshgrid(*ranges, indexing='ij')
        miller = np.stack([n1.ravel(), n2.ravel(), n3.ravel()], axis=1)

        kpg = self.k + miller @ b
        ekin = 0.5 * np.sum(kpg**2, axis=1)
        inside = ekin <= self.ecut

        self._set_g_vectors(miller[inside])

    def _set_g_vectors(self, miller: np.ndarray, sort: bool = True):
        kpg = self.k + miller @ self.reciprocal_cell
        ekin = 0.5 * np.sum(kpg**2, axis=1)

        # Caller-supplied G-vectors keep their order; coefficients follow it
        order = np.argsort(ekin, kind='stable') if sort else np.arange(len(ekin))
        self.miller_indices = miller[order]
        self.g_vectors = self.miller_indices @ self.reciprocal_cell
        self.kpg = kpg[order]
        self.kinetic_energies = ekin[order]
        self.npw = len(self.kinetic_energies)

    def get_kinetic_diagonal(self) -> np.ndarray:
        """Kinetic energies |k+G|^2/2 for each G-vector."""
        return self.kinetic_energies.copy()

    @property
    def size(self) -> int:
        """Number of plane waves in the basis."""
        return self.npw
