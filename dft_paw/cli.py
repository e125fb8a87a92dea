"""
Command-line interface for the PAW projector tools.
"""

import argparse
import sys

import numpy as np

from .errors import ConfigurationError, DomainError


def _cmd_index(args):
    from .paw_cell import PawCell

    ntyp = len(args.setups)
    nat = len(args.types)
    paw_cell = PawCell(verbose=args.verbose)
    paw_cell.init(args.ecut, args.cell_factor, args.omega, nat, ntyp, args.types,
                  np.zeros((nat, 3)), args.setups)
    paw_cell.print_summary()

    print(f"{'iprj':>5} {'ia':>4} {'im':>4} {'il':>4} {'l':>3} {'m':>3}")
    for ip, (ia, im, il, l, m) in enumerate(paw_cell.get_projector_labels()):
        print(f"{ip:5d} {ia:4d} {im:4d} {il:4d} {l:3d} {m:3d}")


def _cmd_ylm(args):
    from .ylm import calc_ylm, ylm_lm_list

    values = calc_ylm(args.lmax, args.vector)
    for (l, m), value in zip(ylm_lm_list(args.lmax), values):
        print(f"{l:3d} {m:3d} {value:20.12e}")


def _cmd_legendre(args):
    from .legendre import ass_leg_pol

    print(f"{ass_leg_pol(args.l, args.m, args.x):20.12e}")


def main(argv=None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='PAW projector index and spherical harmonic tools'
    )
    parser.add_argument(
        '--version', action='version', version='dft_paw 0.1.0'
    )

    subparsers = parser.add_subparsers(dest='command')

    index_parser = subparsers.add_parser(
        'index', help='Print the global projector index for a set of atoms')
    index_parser.add_argument(
        'setups', nargs='+', help='PAW XML setup file of each species')
    index_parser.add_argument(
        '--types', type=int, nargs='+', required=True,
        help='0-based species index of each atom')
    index_parser.add_argument('--ecut', type=float, default=10.0, help='Cutoff (Hartree)')
    index_parser.add_argument('--cell-factor', type=float, default=1.0)
    index_parser.add_argument('--omega', type=float, default=1.0, help='Cell volume (Bohr^3)')
    index_parser.add_argument('-v', '--verbose', action='store_true')

    ylm_parser = subparsers.add_parser('ylm', help='Real spherical harmonics of a vector')
    ylm_parser.add_argument('--lmax', type=int, default=2)
    ylm_parser.add_argument('vector', type=float, nargs=3)

    leg_parser = subparsers.add_parser('legendre', help='Associated Legendre polynomial')
    leg_parser.add_argument('l', type=int)
    leg_parser.add_argument('m', type=int)
    leg_parser.add_argument('x', type=float)

    args = parser.parse_args(argv)

    commands = {
        'index': _cmd_index,
        'ylm': _cmd_ylm,
        'legendre': _cmd_legendre,
    }
    if args.command not in commands:
        parser.print_help()
        return 0

    try:
        commands[args.command](args)
    except (ConfigurationError, DomainError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
