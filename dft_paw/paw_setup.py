"""
PAW setup (dataset) reader for the PAW XML format.

Only what the projector index and the reciprocal-space form factors need is
read: the valence states (one projector channel per state, in file order),
the radial grids and the projector functions p(r).
"""

import os
import numpy as np
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from scipy.integrate import trapezoid
from scipy.special import spherical_jn

from .errors import ConfigurationError


@dataclass
class ProjectorChannel:
    """One (radial function, angular momentum) projector channel."""
    l: int  # Angular momentum
    n: Optional[int] = None  # Principal quantum number, None for unbound states
    state_id: str = ''
    occupation: float = 0.0
    energy: float = 0.0  # Hartree
    rc: float = 0.0  # Cutoff radius (Bohr)
    radial_grid: np.ndarray = None
    values: np.ndarray = None  # p(r)

    @property
    def nm(self) -> int:
        """Number of magnetic sub-states, 2l+1."""
        return 2 * self.l + 1

    @property
    def has_radial(self) -> bool:
        return self.radial_grid is not None and self.values is not None


@dataclass
class PawSetup:
    """
    Projector channels of one species.

    Channels are kept in file order; several channels may share the same l.
    """
    symbol: str
    channels: List[ProjectorChannel] = field(default_factory=list)
    z_atom: float = 0.0
    z_valence: float = 0.0
    filename: str = ''

    def __post_init__(self):
        if len(self.channels) == 0:
            raise ConfigurationError(f"Setup for '{self.symbol}' has no projector channels")
        for ch in self.channels:
            if int(ch.l) != ch.l or ch.l < 0:
                raise ConfigurationError(
                    f"Setup for '{self.symbol}': invalid angular momentum l={ch.l}")
            ch.l = int(ch.l)

    @classmethod
    def from_l_list(cls, symbol: str, l_list: Sequence[int]) -> 'PawSetup':
        """Setup carrying only the channel angular momenta (no radial data)."""
        return cls(symbol, [ProjectorChannel(l=l) for l in l_list])

    @property
    def nchannels(self) -> int:
        return len(self.channels)

    @property
    def mstate(self) -> int:
        """Number of projectors, sum of 2l+1 over channels."""
        return sum(ch.nm for ch in self.channels)

    @property
    def lmax(self) -> int:
        return max(ch.l for ch in self.channels)

    def get_l_list(self) -> List[int]:
        return [ch.l for ch in self.channels]

    def has_radial_data(self) -> bool:
        return all(ch.has_radial for ch in self.channels)

    def get_projector_of_q(self, ich: int, q: np.ndarray) -> np.ndarray:
        """
        Radial Fourier transform of a projector.

        f(q) = 4*pi * integral[r^2 * p(r) * j_l(q r) dr]

        Args:
            ich: Channel index
            q: Reciprocal-space magnitudes (nq,)

        Returns:
            f(q) for each q
        """
        ch = self.channels[ich]
        if not ch.has_radial:
            raise ConfigurationError(
                f"Setup for '{self.symbol}': channel {ich} has no radial projector")

        q = np.atleast_1d(np.asarray(q, dtype=np.float64))
        r = ch.radial_grid
        jl = spherical_bessel_j(ch.l, np.outer(q, r))
        integrand = r**2 * ch.values * jl
        return 4 * np.pi * trapezoid(integrand, r, axis=1)


def spherical_bessel_j(l: int, x: np.ndarray) -> np.ndarray:
    """Spherical Bessel function of the first kind j_l(x)."""
    return spherical_jn(l, x)


# Radial grid equations of the PAW XML format, r(i) in Bohr
_GRID_EQUATIONS = {
    'r=a*exp(d*i)': lambda i, p: p['a'] * np.exp(p['d'] * i),
    'r=a*(exp(d*i)-1)': lambda i, p: p['a'] * (np.exp(p['d'] * i) - 1),
    'r=d*i': lambda i, p: p['d'] * i,
    'r=a*i/(n-i)': lambda i, p: p['a'] * i / (p['n'] - i),
    'r=a*i/(1-b*i)': lambda i, p: p['a'] * i / (1 - p['b'] * i),
    'r=(i/n+a)^5/a-a^4': lambda i, p: (i / p['n'] + p['a'])**5 / p['a'] - p['a']**4,
}


class PawXMLReader:
    """
    Reader for PAW XML setup files (JTH, GPAW and atompaw datasets).
    """

    def __init__(self, filepath: str):
        """
        Initialize PAW XML reader.

        Args:
            filepath: Path to the XML setup file
        """
        self.filepath = filepath

    def read(self) -> PawSetup:
        """
        Read and parse the setup file.

        Returns:
            PawSetup object

        Raises:
            ConfigurationError: if the file is unreadable or malformed
        """
        try:
            root = ET.parse(self.filepath).getroot()
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read PAW setup '{self.filepath}': {exc}") from exc
        except ET.ParseError as exc:
            raise ConfigurationError(
                f"Malformed PAW setup '{self.filepath}': {exc}") from exc

        atom = root.find('atom')
        symbol = atom.get('symbol', 'X').strip() if atom is not None else 'X'
        z_atom = self._float(atom, 'Z', 0.0)
        z_valence = self._float(atom, 'valence', 0.0)

        grids = self._read_grids(root)
        projectors = self._read_projectors(root, grids)

        states = root.find('valence_states')
        if states is None or len(states.findall('state')) == 0:
            raise self._error("no <valence_states> block")

        channels = []
        for state in states.findall('state'):
            state_id = state.get('id', '').strip()
            try:
                l = int(state.get('l'))
                n = state.get('n')
                n = int(n) if n is not None and n.strip() else None
            except (TypeError, ValueError):
                raise self._error(f"state '{state_id}' has an invalid n or l") from None
            if l < 0:
                raise self._error(f"state '{state_id}' has negative l={l}")
            if state_id not in projectors:
                raise self._error(f"no projector_function for state '{state_id}'")

            r, values = projectors[state_id]
            channels.append(ProjectorChannel(
                l=l,
                n=n,
                state_id=state_id,
                occupation=self._float(state, 'f', 0.0),
                energy=self._float(state, 'e', 0.0),
                rc=self._float(state, 'rc', 0.0),
                radial_grid=r,
                values=values,
            ))

        return PawSetup(
            symbol=symbol,
            channels=channels,
            z_atom=z_atom,
            z_valence=z_valence,
            filename=os.fspath(self.filepath),
        )

    def _read_grids(self, root: ET.Element) -> Dict[str, np.ndarray]:
        """Build every <radial_grid> keyed by its id."""
        grids = {}
        for elem in root.findall('radial_grid'):
            eq = elem.get('eq', '').replace(' ', '')
            if eq not in _GRID_EQUATIONS:
                raise self._error(f"unsupported radial grid equation '{eq}'")
            try:
                params = {key: float(elem.get(key)) for key in ('a', 'b', 'd', 'n')
                          if elem.get(key) is not None}
                istart = int(elem.get('istart', '0'))
                iend = int(elem.get('iend'))
            except (TypeError, ValueError):
                raise self._error(f"radial grid '{elem.get('id')}' has bad parameters") from None

            i = np.arange(istart, iend + 1, dtype=np.float64)
            grids[elem.get('id', '')] = _GRID_EQUATIONS[eq](i, params)
        return grids

    def _read_projectors(self, root: ET.Element,
                         grids: Dict[str, np.ndarray]) -> Dict[str, tuple]:
        """Projector functions keyed by state id, each as (r, p(r))."""
        projectors = {}
        for elem in root.findall('projector_function'):
            state_id = elem.get('state', '').strip()
            grid_id = elem.get('grid', '')
            if grid_id not in grids:
                if len(grids) != 1:
                    raise self._error(f"projector '{state_id}' refers to unknown grid '{grid_id}'")
                grid_id = next(iter(grids))
            values = self._parse_data_block(elem.text or '')
            r = grids[grid_id]
            npts = min(len(r), len(values))
            if npts == 0:
                raise self._error(f"projector '{state_id}' is empty")
            projectors[state_id] = (r[:npts].copy(), values[:npts])
        return projectors

    def _parse_data_block(self, data_str: str) -> np.ndarray:
        """Parse a whitespace separated block of numbers."""
        try:
            # Fortran-style D exponents
            return np.array([float(tok.replace('D', 'E').replace('d', 'e'))
                             for tok in data_str.split()])
        except ValueError:
            raise self._error("non-numeric data in projector function") from None

    def _float(self, elem: Optional[ET.Element], attr: str, default: float) -> float:
        if elem is None or elem.get(attr) is None:
            return default
        try:
            return float(elem.get(attr))
        except ValueError:
            raise self._error(f"attribute {attr}='{elem.get(attr)}' is not a number") from None

    def _error(self, message: str) -> ConfigurationError:
        return ConfigurationError(f"Malformed PAW setup '{self.filepath}': {message}")


def read_paw_xml(filepath: str) -> PawSetup:
    """
    Convenience function to read a PAW XML setup file.

    Args:
        filepath: Path to the setup file

    Returns:
        PawSetup object
    """
    reader = PawXMLReader(filepath)
    return reader.read()
