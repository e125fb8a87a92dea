#!/usr/bin/env python
"""
PAW projector example for an Fe(OH)2 cluster in a cubic box.

Without arguments only the projector index is built (channel layout of the
Fe / O / H JTH datasets).  Given the three PAW XML setups, form factors are
computed at Gamma and rhoij is accumulated for a few random bands:

    python fe_oh_projectors.py Fe.GGA_PBE-JTH.xml O.GGA_PBE-JTH.xml H.LDA_PW-JTH.xml
"""

import os
import sys
import numpy as np

# Add parent directory to path for development
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dft_paw import Atom, Crystal, PawCell, PawSetup


def main():
    """Build the projector index and, with setups given, rhoij at Gamma."""
    print("=" * 60)
    print("PAW projectors for Fe(OH)2")
    print("=" * 60)

    a_box = 12.0  # Bohr
    atoms = [
        Atom('Fe', [0.50, 0.50, 0.50]),
        Atom('O', [0.65, 0.50, 0.50]),
        Atom('H', [0.72, 0.56, 0.50]),
        Atom('O', [0.35, 0.50, 0.50]),
        Atom('H', [0.28, 0.44, 0.50]),
    ]
    crystal = Crystal.cubic(a_box, atoms)
    ecut = 5.0  # Hartree

    if len(sys.argv) == 4:
        setups = dict(zip(['Fe', 'O', 'H'], sys.argv[1:]))
    else:
        setups = {
            'Fe': PawSetup.from_l_list('Fe', [0, 0, 1, 1, 2, 2]),
            'O': PawSetup.from_l_list('O', [0, 0, 1, 1]),
            'H': PawSetup.from_l_list('H', [0, 0, 1]),
        }

    paw_cell = PawCell.from_crystal(crystal, setups, ecut, cell_factor=1.2, verbose=True)
    paw_cell.print_summary()

    print(f"\n{'iprj':>5} {'atom':>5} {'l':>3} {'m':>3}")
    species = crystal.get_species()
    for ip, (ia, im, il, l, m) in enumerate(paw_cell.get_projector_labels()):
        print(f"{ip:5d} {species[ia]:>5} {l:3d} {m:3d}")

    if len(sys.argv) != 4:
        print("\nPass Fe, O and H PAW XML files to compute rhoij.")
        return

    paw_cell.set_paw_k(np.zeros(3))
    npw = paw_cell.get_npw()

    # Random normalized bands stand in for converged wavefunctions
    rng = np.random.default_rng(0)
    nbands = 8
    psi = rng.standard_normal((nbands, npw)) + 1j * rng.standard_normal((nbands, npw))
    psi /= np.linalg.norm(psi, axis=1)[:, None]

    paw_cell.accumulate_rhoij(np.full(nbands, 2.0), psi)

    print(f"\nrhoij at Gamma ({npw} plane waves):")
    for ia, rho in enumerate(paw_cell.get_rhoij()):
        print(f"  atom {ia} ({species[ia]}): trace = {np.trace(rho).real:.6f}, "
              f"max |rho_ij| = {np.max(np.abs(rho)):.6f}")


if __name__ == '__main__':
    main()
