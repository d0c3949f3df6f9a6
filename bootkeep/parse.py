# vim:fileencoding=utf-8
# (c) 2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

"""
Parsers for the output of system information utilities

All parsers accept str, bytes or None and never raise on malformed
input.  Missing data yields empty values, which callers must treat
as "not found".
"""

import logging
import os.path
import re
import typing


Text = typing.Union[str, bytes, None]

LSB_RELEASE_KEY_DIST_ID = 'DistributorID'
LSB_RELEASE_KEY_DESC = 'Description'
LSB_RELEASE_KEY_RELEASE = 'Release'
LSB_RELEASE_KEY_CODENAME = 'Codename'

lsb_release_labels = {
    'distributorid': LSB_RELEASE_KEY_DIST_ID,
    'description': LSB_RELEASE_KEY_DESC,
    'release': LSB_RELEASE_KEY_RELEASE,
    'codename': LSB_RELEASE_KEY_CODENAME,
}

# (section, label) -> BoardInfo field
board_info_fields = {
    ('BIOS Information', 'Vendor'): 'bios_vendor',
    ('BIOS Information', 'Version'): 'bios_version',
    ('BIOS Information', 'Release date'): 'bios_release_date',
    ('Base Board Information', 'Manufacturer'): 'board_vendor',
    ('Base Board Information', 'Board name'): 'board_name',
    ('Base Board Information', 'Family'): 'board_family',
}

image_prefixes = ('vmlinuz-', 'vmlinux-', 'kernel-', 'bzImage-', 'Image-')

lsblk_pair_re = re.compile(r'(?P<key>[A-Z:_-]+)="(?P<value>[^"]*)"')
mount_escape_re = re.compile(r'\\([0-7]{3})')


class BoardInfo(typing.NamedTuple):
    bios_vendor: str = ''
    bios_version: str = ''
    bios_release_date: str = ''
    board_vendor: str = ''
    board_name: str = ''
    board_family: str = ''


def to_text(text: Text) -> str:
    if text is None:
        return ''
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode('utf-8', errors='replace')
    return text


def parse_board_info(text: Text) -> BoardInfo:
    """
    Parse BIOS and board information

    Parse `Label : Value` lines grouped in sections introduced
    by a header line (e.g. `BIOS Information`), as found
    in /proc/boardinfo.  Return a `BoardInfo` with the recognized
    fields, empty strings for the missing ones.
    """

    fields: typing.Dict[str, str] = {}
    section = ''
    for line in to_text(text).splitlines():
        if not line.strip():
            section = ''
            continue
        key, sep, value = line.partition(':')
        if not sep:
            section = line.strip()
            continue
        field = board_info_fields.get((section, key.strip()))
        if field is not None:
            fields.setdefault(field, value.strip())
    return BoardInfo(**fields)


def parse_lsb_release_output(text: Text) -> typing.Dict[str, str]:
    """Parse `lsb_release -a` output into a dict of LSB_RELEASE_KEY_*"""
    ret: typing.Dict[str, str] = {}
    for line in to_text(text).splitlines():
        label, sep, value = line.partition(':')
        if not sep:
            continue
        key = lsb_release_labels.get(''.join(label.lower().split()))
        if key is not None:
            ret[key] = value.strip()
    return ret


def unescape_mount_path(path: str) -> str:
    return mount_escape_re.sub(lambda m: chr(int(m.group(1), 8)), path)


def is_mounted(mount_table: Text, target: str) -> bool:
    """
    Check whether `target` is a mount point

    Return True if any record of `mount_table` (in /proc/mounts format)
    has `target` as its mount point.  Parents, children and source
    devices do not count.
    """

    for line in to_text(mount_table).splitlines():
        fields = line.split()
        if len(fields) < 2:
            continue
        if unescape_mount_path(fields[1]) == target:
            return True
    return False


def get_boot_image_name(cmdline: Text) -> str:
    """Return file name of the first BOOT_IMAGE= in `cmdline`, or ''"""
    for token in to_text(cmdline).split():
        if not token.startswith('BOOT_IMAGE='):
            continue
        image = token[len('BOOT_IMAGE='):]
        # strip GRUB device, e.g. (hd0,gpt2)/vmlinuz-...
        if image.startswith('('):
            image = image.partition(')')[2]
        return os.path.basename(image)
    return ''


def get_kernel_release_with_boot_option(cmdline: Text) -> str:
    """
    Get kernel release from the BOOT_IMAGE= kernel parameter

    Return the release encoded in the image name of the first
    BOOT_IMAGE= token in `cmdline`, or '' if there is none.
    """

    image = get_boot_image_name(cmdline)
    for prefix in image_prefixes:
        if image.startswith(prefix):
            return image[len(prefix):]
    if image:
        logging.debug(f'unrecognized BOOT_IMAGE name: {image}')
    return image


def get_path_from_lsblk_output(text: Text, uuid: str) -> str:
    """
    Find device path for filesystem `uuid`

    Search `lsblk -P -o UUID,PATH` output and return the path
    of the device with `uuid`, or '' if none.  Devices without a UUID
    never match.
    """

    if not uuid:
        return ''
    for line in to_text(text).splitlines():
        record = {m.group('key'): m.group('value')
                  for m in lsblk_pair_re.finditer(line)}
        if record.get('UUID') == uuid:
            return record.get('PATH', '')
    return ''


def parse_os_prober_output(text: Text) -> typing.List[str]:
    """Return devices of Linux systems found by os-prober, in order"""
    ret = []
    for line in to_text(text).splitlines():
        fields = line.strip().split(':')
        if len(fields) < 4:
            continue
        # labels may contain colons
        if fields[-1] == 'linux':
            ret.append(fields[0])
    return ret


def chars_to_string(chars: typing.Optional[typing.Iterable[int]]) -> str:
    """Convert a NUL-terminated C character buffer into a str"""
    if chars is None:
        return ''
    buf = bytearray()
    for c in chars:
        if c == 0:
            break
        # signed char
        buf.append(c & 0xff)
    return buf.decode('utf-8', errors='replace')
