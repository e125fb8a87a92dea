"""
Shared fixtures: synthetic PAW XML setups with the valence states of the
Fe / O / H JTH datasets.
"""

import numpy as np
import pytest

# (id, n, l) per valence state, n=None for unbound states
FE_STATES = [('Fe1', 3, 0), ('Fe2', 4, 0), ('Fe3', 3, 1), ('Fe4', None, 1),
             ('Fe5', 3, 2), ('Fe6', None, 2)]
O_STATES = [('O1', 2, 0), ('O2', None, 0), ('O3', 2, 1), ('O4', None, 1)]
H_STATES = [('H1', 1, 0), ('H2', None, 0), ('H3', None, 1)]

GRID_A = 0.001
GRID_D = 0.02
GRID_NPTS = 400


def projector_values(r, l, width):
    """Smooth projector-like radial function r^l exp(-(r/width)^2)."""
    return r**l * np.exp(-(r / width) ** 2)


def make_paw_xml(symbol, states, z=1.0, valence=1.0, grid_eq='r=a*(exp(d*i)-1)',
                 with_projectors=True):
    """Text of a minimal PAW XML setup."""
    i = np.arange(GRID_NPTS)
    r = GRID_A * (np.exp(GRID_D * i) - 1)

    lines = ['<?xml version="1.0"?>',
             '<paw_setup version="0.6">',
             f'  <atom symbol="{symbol}" Z="{z:.2f}" core="0.00" valence="{valence:.2f}"/>',
             '  <valence_states>']
    for state_id, n, l in states:
        n_attr = f'n=" {n}" ' if n is not None else ''
        lines.append(f'    <state {n_attr}l="{l}" f=" 1.0000000E+00" rc=" 1.2" '
                     f'e="-2.0000000E-01" id="{state_id}"/>')
    lines.append('  </valence_states>')
    lines.append(f'  <radial_grid eq="{grid_eq}" a="{GRID_A}" d="{GRID_D}" '
                 f'istart="0" iend="{GRID_NPTS - 1}" id="log1"/>')
    if with_projectors:
        for k, (state_id, n, l) in enumerate(states):
            values = projector_values(r, l, 0.6 + 0.2 * k)
            data = ' '.join(f'{v:.12E}' for v in values)
            lines.append(f'  <projector_function state="{state_id}" grid="log1">')
            lines.append(f'    {data}')
            lines.append('  </projector_function>')
    lines.append('</paw_setup>')
    return '\n'.join(lines) + '\n'


@pytest.fixture
def setup_files(tmp_path):
    """Paths of Fe, O and H setup files (in type order 0, 1, 2)."""
    paths = []
    for name, symbol, states, z in [('Fe.GGA_PBE-JTH.xml', 'Fe', FE_STATES, 26.0),
                                    ('O.GGA_PBE-JTH.xml', 'O', O_STATES, 8.0),
                                    ('H.LDA_PW-JTH.xml', 'H', H_STATES, 1.0)]:
        path = tmp_path / name
        path.write_text(make_paw_xml(symbol, states, z=z))
        paths.append(str(path))
    return paths
