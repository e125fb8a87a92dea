"""
DFT PAW core

Projector-augmented-wave projector indexing, real spherical harmonics and
associated Legendre polynomials for plane-wave calculations.
"""

from .errors import ConfigurationError, DomainError
from .legendre import ass_leg_pol
from .ylm import calc_ylm, calc_ylm_array
from .crystal import Crystal, Atom
from .basis import PlaneWaveBasis
from .paw_setup import PawSetup, ProjectorChannel, read_paw_xml
from .paw_cell import PawCell

__version__ = "0.1.0"
__all__ = ["ConfigurationError", "DomainError", "ass_leg_pol", "calc_ylm",
           "calc_ylm_array", "Crystal", "Atom", "PlaneWaveBasis", "PawSetup",
           "ProjectorChannel", "read_paw_xml", "PawCell"]
