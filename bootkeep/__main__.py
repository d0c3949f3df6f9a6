# vim:fileencoding=utf-8
# (c) 2011-2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

import argparse
import logging
import os
import os.path
import shlex
import sys
import typing

from pathlib import Path

from bootkeep import __version__
from bootkeep import probe
from bootkeep.hospice import (
    backup_extra_dir,
    restore_extra_dir,
    write_exclude_file,
    )
from bootkeep.kernel import find_kernel_files
from bootkeep.parse import (
    get_path_from_lsblk_output,
    is_mounted,
    parse_board_info,
    parse_lsb_release_output,
    parse_os_prober_output,
    )

bootkeep_desc = '''
Keep a system bootable across image upgrades and rollbacks: find kernel
files for a release and preserve extra directories in a hospice.
'''


def cmd_find_kernel(args: argparse.Namespace) -> int:
    release = args.release or probe.current_kernel_release(args.root)
    arch = args.arch or probe.uname().machine
    boot_dir = args.boot_dir or args.root / 'boot'
    logging.debug(f'release: {release}, arch: {arch}, boot: {boot_dir}')

    kfs = find_kernel_files(release, arch, boot_dir)
    print(f'linux: {kfs.linux}')
    print(f'initrd: {kfs.initrd or ""}')
    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    backup_extra_dir(args.origin, args.exclude, args.hospice)
    print(f'Backed up {args.origin} to {args.hospice}')
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    restore_extra_dir(args.origin, args.exclude, args.hospice)
    print(f'Restored {args.origin} from {args.hospice}')
    return 0


def cmd_exclude_file(args: argparse.Namespace) -> int:
    print(write_exclude_file(args.paths, directory=args.dir))
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    u = probe.uname()
    print(f'release: {probe.current_kernel_release(args.root)}')
    print(f'machine: {u.machine}')

    board = parse_board_info(probe.read_board_info(args.root))
    if board.bios_version:
        print(f'bios version: {board.bios_version}')
    model = probe.read_board_model(args.root)
    if model:
        print(f'board model: {model}')

    lsb = parse_lsb_release_output(probe.run_lsb_release())
    for k, v in lsb.items():
        print(f'{k}: {v}')

    for dev in parse_os_prober_output(probe.run_os_prober()):
        print(f'other linux: {dev}')
    return 0


def cmd_is_mounted(args: argparse.Namespace) -> int:
    if is_mounted(probe.read_mounts(args.root), args.path):
        print(f'{args.path} is mounted')
        return 0
    print(f'{args.path} is not mounted')
    return 1


def cmd_uuid_path(args: argparse.Namespace) -> int:
    path = get_path_from_lsblk_output(probe.run_lsblk(), args.uuid)
    if not path:
        print(f'No device with UUID {args.uuid!r}')
        return 1
    print(path)
    return 0


def main(argv: typing.List[str]) -> int:
    argp = argparse.ArgumentParser(description=bootkeep_desc.strip())
    argp.add_argument('-V', '--version',
                      action='version',
                      version=__version__)
    argp.add_argument('-D', '--debug',
                      action='store_true',
                      help='Enable debugging output')
    argp.add_argument('-r', '--root',
                      type=Path,
                      default=Path('/'),
                      help='Alternate filesystem root to use')

    subp = argp.add_subparsers(title='commands', dest='command')
    subp.required = True

    p = subp.add_parser('find-kernel',
                        help='Find kernel image and initrd for a release')
    p.add_argument('--release',
                   help='Kernel release (default: booted kernel)')
    p.add_argument('--arch',
                   help='Machine architecture (default: uname -m)')
    p.add_argument('--boot-dir',
                   type=Path,
                   help='Boot directory (default: ROOT/boot)')
    p.set_defaults(func=cmd_find_kernel)

    for name, func, desc in (
            ('backup', cmd_backup,
             'Copy an extra directory into the hospice'),
            ('restore', cmd_restore,
             'Hardlink an extra directory back from the hospice')):
        p = subp.add_parser(name, help=desc)
        p.add_argument('origin',
                       type=Path,
                       help='Extra directory')
        p.add_argument('hospice',
                       type=Path,
                       help='Hospice directory')
        p.add_argument('-x', '--exclude',
                       default='',
                       help='Subpath of the extra directory to skip')
        p.set_defaults(func=func)

    p = subp.add_parser('exclude-file',
                        help='Write an exclude list for rsync and '
                             'print its path')
    p.add_argument('paths',
                   nargs='*',
                   help='Paths to exclude')
    p.add_argument('--dir',
                   type=Path,
                   help='Directory to create the file in')
    p.set_defaults(func=cmd_exclude_file)

    p = subp.add_parser('info',
                        help='Print kernel, board and distribution info')
    p.set_defaults(func=cmd_info)

    p = subp.add_parser('is-mounted',
                        help='Check whether a path is a mount point')
    p.add_argument('path')
    p.set_defaults(func=cmd_is_mounted)

    p = subp.add_parser('uuid-path',
                        help='Find device path for a filesystem UUID')
    p.add_argument('uuid')
    p.set_defaults(func=cmd_uuid_path)

    all_args = []
    config_dirs = os.environ.get('XDG_CONFIG_DIRS', '/etc/xdg').split(':')
    config_dirs.insert(0, os.environ.get('XDG_CONFIG_HOME', '~/.config'))
    for x in reversed(config_dirs):
        try:
            with open(Path(os.path.expanduser(x)) / 'bootkeep.rc',
                      'r') as f:
                all_args.extend(shlex.split(f.read(), comments=True))
        except FileNotFoundError:
            pass
        except NotADirectoryError:
            # XDG_CONFIG_* does not have to be correct
            pass

    all_args.extend(argv)
    args = argp.parse_args(all_args)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.INFO)

    try:
        return args.func(args)
    except Exception as e:
        if args.debug:
            raise
        print('bootkeep has met the following issue:\n')

        if hasattr(e, 'friendly_desc'):
            print(getattr(e, 'friendly_desc'))
        else:
            print(f'  {e!r}')
        return 1


def setuptools_main() -> None:
    sys.exit(main(sys.argv[1:]))


if __name__ == '__main__':
    setuptools_main()
