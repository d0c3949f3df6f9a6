# vim:fileencoding=utf-8
# (c) 2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

import logging
import os
import subprocess
import typing

from pathlib import Path

from bootkeep.parse import (
    chars_to_string,
    get_boot_image_name,
    get_kernel_release_with_boot_option,
    )
from bootkeep.util import read_if_exists


class Utsname(typing.NamedTuple):
    machine: str
    release: str


def read_proc_file(root: Path, path: str) -> str:
    content = read_if_exists(root / path)
    if content is None:
        logging.debug(f'{root / path} not found')
        return ''
    assert isinstance(content, str)
    return content


def read_cmdline(root: Path = Path('/')) -> str:
    return read_proc_file(root, 'proc/cmdline')


def read_mounts(root: Path = Path('/')) -> str:
    return read_proc_file(root, 'proc/self/mounts')


def read_board_info(root: Path = Path('/')) -> str:
    """Read BIOS information provided by Loongson firmware"""
    return read_proc_file(root, 'proc/boardinfo')


def read_board_model(root: Path = Path('/')) -> str:
    """Read board model from the device tree (NUL-terminated)"""
    model = read_if_exists(root / 'proc/device-tree/model', 'rb')
    assert not isinstance(model, str)
    return chars_to_string(model)


def run_command(cmd: typing.List[str]) -> str:
    """
    Run `cmd` and return its stdout

    Return '' if the program is not installed or fails.
    """

    try:
        p = subprocess.run(cmd,
                           stdout=subprocess.PIPE,
                           stderr=subprocess.PIPE,
                           universal_newlines=True)
    except FileNotFoundError:
        logging.debug(f'{cmd[0]} not found')
        return ''
    if p.returncode != 0:
        logging.debug(f'{" ".join(cmd)} exited with {p.returncode} '
                      f'status: {p.stderr.strip()}')
        return ''
    return p.stdout


def run_lsb_release() -> str:
    return run_command(['lsb_release', '-a'])


def run_lsblk() -> str:
    return run_command(['lsblk', '-P', '-o', 'UUID,PATH'])


def run_os_prober() -> str:
    return run_command(['os-prober'])


def uname() -> Utsname:
    u = os.uname()
    return Utsname(u.machine, u.release)


def current_kernel_release(root: Path = Path('/')) -> str:
    """Get release of the booted kernel, preferring BOOT_IMAGE="""
    cmdline = read_cmdline(root)
    release = get_kernel_release_with_boot_option(cmdline)
    # unversioned image names, e.g. BOOT_IMAGE=/vmlinuz, carry no release
    if not release or release == get_boot_image_name(cmdline):
        release = uname().release
        logging.debug(f'no versioned BOOT_IMAGE= in cmdline, '
                      f'using uname: {release}')
    return release
