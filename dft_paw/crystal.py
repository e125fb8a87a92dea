"""
Crystal structure: lattice, atoms and the species -> type index mapping.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Tuple


@dataclass
class Atom:
    """An atom of the unit cell."""
    symbol: str
    position: np.ndarray  # Fractional coordinates

    def __post_init__(self):
        self.position = np.array(self.position, dtype=np.float64)


class Crystal:
    """
    Crystal structure with unit cell and atoms.

    Attributes:
        cell: 3x3 matrix with lattice vectors as rows (in Bohr)
        atoms: List of Atom objects
        reciprocal_cell: 3x3 reciprocal vectors as rows (2*pi included)
        volume: Cell volume (Bohr^3)
    """

    ANGSTROM_TO_BOHR = 1.8897259886

    def __init__(self, cell: np.ndarray, atoms: List[Atom], units: str = 'angstrom'):
        """
        Initialize crystal structure.

        Args:
            cell: 3x3 matrix with lattice vectors as rows
            atoms: List of Atom objects with fractional coordinates
            units: 'angstrom' or 'bohr' for cell vectors
        """
        self.cell = np.array(cell, dtype=np.float64)
        if units.lower() == 'angstrom':
            self.cell *= self.ANGSTROM_TO_BOHR
        elif units.lower() != 'bohr':
            raise ValueError(f"Unknown length unit '{units}'")
        self.atoms = list(atoms)

        self.volume = np.abs(np.linalg.det(self.cell))
        if self.volume < 1e-12:
            raise ValueError("Lattice vectors are linearly dependent")
        self.reciprocal_cell = 2 * np.pi * np.linalg.inv(self.cell).T

    @property
    def num_atoms(self) -> int:
        """Number of atoms in the unit cell."""
        return len(self.atoms)

    def get_fractional_positions(self) -> np.ndarray:
        """Atomic positions in fractional coordinates (nat, 3)."""
        return np.array([atom.position for atom in self.atoms]).reshape(-1, 3)

    def get_cartesian_positions(self) -> np.ndarray:
        """Atomic positions in Cartesian coordinates (Bohr)."""
        return self.get_fractional_positions() @ self.cell

    def get_species(self) -> List[str]:
        """Species symbol of every atom."""
        return [atom.symbol for atom in self.atoms]

    def get_unique_species(self) -> List[str]:
        """Species in order of first appearance."""
        seen = set()
        unique = []
        for atom in self.atoms:
            if atom.symbol not in seen:
                seen.add(atom.symbol)
                unique.append(atom.symbol)
        return unique

    def get_atom_types(self) -> Tuple[List[str], List[int]]:
        """
        Map atoms onto 0-based species (type) indices.

        Returns:
            (species, atom_type) where species[atom_type[i]] is the symbol of
            atom i and species is in order of first appearance
        """
        species = self.get_unique_species()
        type_of = {symbol: it for it, symbol in enumerate(species)}
        return species, [type_of[atom.symbol] for atom in self.atoms]

    @classmethod
    def cubic(cls, a: float, atoms: List[Atom], units: str = 'bohr'):
        """Simple cubic cell of side a."""
        return cls(a * np.eye(3), atoms, units)
