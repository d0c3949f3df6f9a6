# vim:fileencoding=utf-8
# (c) 2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

import unittest

from bootkeep.parse import (
    LSB_RELEASE_KEY_CODENAME,
    LSB_RELEASE_KEY_DESC,
    LSB_RELEASE_KEY_DIST_ID,
    LSB_RELEASE_KEY_RELEASE,
    BoardInfo,
    chars_to_string,
    get_boot_image_name,
    get_kernel_release_with_boot_option,
    get_path_from_lsblk_output,
    is_mounted,
    parse_board_info,
    parse_lsb_release_output,
    parse_os_prober_output,
    )


BOARD_INFO = '''BIOS Information
Vendor\t\t\t: Kunlun
Version\t\t\t: Kunlun-A1801-V3.1.7-20190716
BIOS ROMSIZE\t\t: 1024
Release date\t\t: 20190716

Base Board Information\t\t
Manufacturer\t\t: LEMOTE
Board name\t\t: LEMOTE-LS3A3000-7A1000-1w-V0.1-pc
Family\t\t\t: LOONGSON3

'''

LSB_RELEASE = '''Distributor ID: Deepin
Description:    Deepin 15.10.1
Release:        15.10.1
Codename:       stable
'''

MOUNTS = '''mqueue /dev/mqueue mqueue rw,relatime 0 0
configfs /sys/kernel/config configfs rw,relatime 0 0
/dev/loop0 /snap/core/5145 squashfs ro,nodev,relatime 0 0
/dev/sda2 /home ext4 rw,relatime,data=ordered 0 0
/dev/sda3 /home/tp1/ext ext4 rw,relatime,data=ordered 0 0
tmpfs /run/user/1000 tmpfs rw,nosuid,nodev,relatime,size=790424k 0 0
/dev/sda5 /media/tp1/My\\040Disk ext4 rw,nosuid,nodev,relatime 0 0
'''

LSBLK = '''UUID="" PATH="/dev/sda"
UUID="309ca993-66a3-469d-bb6e-22a4b2d800da" PATH="/dev/sda1"
UUID="eb5aaf62-4375-47a4-b518-68e3973b153e" PATH="/dev/sda2"
UUID="" PATH="/dev/sdb"
UUID="" PATH="/dev/sr0"
UUID="cWU76A-fvpc-NlSD-Xw3z-G4qQ-4yWg-jDvnsj" PATH="/dev/mapper/luks_crypt0"
UUID="8b7aec2d-9084-4969-a13a-405d1d5ec82e" PATH="/dev/mapper/vg0-Roota"
UUID="e4376f24-55e9-4980-8d2e-003dde15ff83" PATH="/dev/mapper/vg0-Rootb"
UUID="1c461280-bf0c-451f-8033-3e1041b71e6e" PATH="/dev/mapper/vg0-SWAP"
'''

CMDLINE_ARGS = ('root=UUID=f18109bb-57ab-4b0f-8bae-a000e59e720a ro splash '
                'quiet DEEPIN_GFXMODE=0,1920x1080,1152x864')


class BoardInfoTests(unittest.TestCase):
    def test_bios_version(self) -> None:
        self.assertEqual(
            parse_board_info(BOARD_INFO).bios_version,
            'Kunlun-A1801-V3.1.7-20190716')

    def test_all_fields(self) -> None:
        self.assertEqual(
            parse_board_info(BOARD_INFO.encode()),
            BoardInfo(bios_vendor='Kunlun',
                      bios_version='Kunlun-A1801-V3.1.7-20190716',
                      bios_release_date='20190716',
                      board_vendor='LEMOTE',
                      board_name='LEMOTE-LS3A3000-7A1000-1w-V0.1-pc',
                      board_family='LOONGSON3'))

    def test_version_outside_bios_section(self) -> None:
        self.assertEqual(
            parse_board_info('Version : 1.0\n').bios_version,
            '')

    def test_garbage(self) -> None:
        self.assertEqual(parse_board_info(None), BoardInfo())
        self.assertEqual(parse_board_info(b'\xff\xfe::\n\n:'), BoardInfo())


class LsbReleaseTests(unittest.TestCase):
    def test_parse(self) -> None:
        self.assertEqual(
            parse_lsb_release_output(LSB_RELEASE),
            {LSB_RELEASE_KEY_DIST_ID: 'Deepin',
             LSB_RELEASE_KEY_DESC: 'Deepin 15.10.1',
             LSB_RELEASE_KEY_RELEASE: '15.10.1',
             LSB_RELEASE_KEY_CODENAME: 'stable',
             })

    def test_partial(self) -> None:
        self.assertEqual(
            parse_lsb_release_output(b'No LSB modules are available.\n'
                                     b'distributor id:\tDebian\n'
                                     b'LSB Version: core-11\n'),
            {LSB_RELEASE_KEY_DIST_ID: 'Debian'})

    def test_empty(self) -> None:
        self.assertEqual(parse_lsb_release_output(None), {})


class MountTests(unittest.TestCase):
    def test_mounted(self) -> None:
        self.assertTrue(is_mounted(MOUNTS, '/home'))
        self.assertTrue(is_mounted(MOUNTS.encode(), '/home/tp1/ext'))

    def test_prefix_and_child(self) -> None:
        self.assertFalse(is_mounted(MOUNTS, '/home/tp1'))
        self.assertFalse(is_mounted(MOUNTS, '/hom'))
        self.assertFalse(is_mounted(MOUNTS, '/home/tp1/ext/sub'))

    def test_source_device(self) -> None:
        self.assertFalse(is_mounted(MOUNTS, '/dev/sda3'))

    def test_escaped_target(self) -> None:
        self.assertTrue(is_mounted(MOUNTS, '/media/tp1/My Disk'))

    def test_empty(self) -> None:
        self.assertFalse(is_mounted(None, '/'))
        self.assertFalse(is_mounted('garbage\n\n', 'garbage'))


class BootOptionTests(unittest.TestCase):
    def test_first(self) -> None:
        self.assertEqual(
            get_kernel_release_with_boot_option(
                f'BOOT_IMAGE=/boot/vmlinuz-4.19.0-6-amd64 {CMDLINE_ARGS}'),
            '4.19.0-6-amd64')

    def test_middle(self) -> None:
        self.assertEqual(
            get_kernel_release_with_boot_option(
                'root=UUID=f18109bb-57ab-4b0f-8bae-a000e59e720a ro '
                'BOOT_IMAGE=/boot/vmlinuz-4.19.0-6-amd64 splash quiet'),
            '4.19.0-6-amd64')

    def test_last(self) -> None:
        self.assertEqual(
            get_kernel_release_with_boot_option(
                f'{CMDLINE_ARGS} BOOT_IMAGE=/boot/vmlinuz-4.19.0-6-amd64\n'),
            '4.19.0-6-amd64')

    def test_no_directory(self) -> None:
        self.assertEqual(
            get_kernel_release_with_boot_option(
                'BOOT_IMAGE=/vmlinuz-4.19.0-arm64-desktop root=UUID=f436eb5f '
                'ro splash earlycon=pl011,0xFFF02000 console=tty quiet '
                'DEEPIN_GFXMODE='),
            '4.19.0-arm64-desktop')

    def test_grub_device(self) -> None:
        self.assertEqual(
            get_kernel_release_with_boot_option(
                b'BOOT_IMAGE=(hd0,gpt2)/vmlinuz-6.1.0-13-amd64 ro'),
            '6.1.0-13-amd64')

    def test_first_match_wins(self) -> None:
        self.assertEqual(
            get_kernel_release_with_boot_option(
                'BOOT_IMAGE=/vmlinuz-1.2.3 BOOT_IMAGE=/vmlinuz-4.5.6'),
            '1.2.3')

    def test_unversioned(self) -> None:
        self.assertEqual(
            get_boot_image_name('BOOT_IMAGE=(hd0,1)/boot/vmlinuz ro'),
            'vmlinuz')
        self.assertEqual(
            get_kernel_release_with_boot_option('BOOT_IMAGE=/vmlinuz ro'),
            'vmlinuz')

    def test_missing(self) -> None:
        self.assertEqual(get_kernel_release_with_boot_option(CMDLINE_ARGS),
                         '')
        self.assertEqual(get_kernel_release_with_boot_option(None), '')


class LsblkTests(unittest.TestCase):
    def test_match(self) -> None:
        self.assertEqual(
            get_path_from_lsblk_output(
                LSBLK, 'e4376f24-55e9-4980-8d2e-003dde15ff83'),
            '/dev/mapper/vg0-Rootb')

    def test_no_match(self) -> None:
        self.assertEqual(
            get_path_from_lsblk_output(
                LSBLK, 'e4376f24-55e9-4980-8d2e-003dde15ff831'),
            '')
        self.assertEqual(
            get_path_from_lsblk_output(
                LSBLK, 'e4376f24-55e9-4980-8d2e-003dde15ff8'),
            '')

    def test_empty_uuid(self) -> None:
        self.assertEqual(get_path_from_lsblk_output(LSBLK, ''), '')

    def test_column_order(self) -> None:
        self.assertEqual(
            get_path_from_lsblk_output(
                b'PATH="/dev/vda1" FSTYPE="ext4" UUID="abcd"\n', 'abcd'),
            '/dev/vda1')


class OsProberTests(unittest.TestCase):
    def test_single(self) -> None:
        self.assertEqual(
            parse_os_prober_output(
                b'/dev/nvme0n1p4:UnionTech OS 20 (20):uos:linux'),
            ['/dev/nvme0n1p4'])

    def test_multiple(self) -> None:
        self.assertEqual(
            parse_os_prober_output(
                b'/dev/nvme0n1p4:UnionTech OS 20 (20):uos:linux\n'
                b'/dev/nvme0n1p5:Deepin OS 20 (20):deepin:linux\n'
                b'/dev/nvme0n1p6:Windows 7:win7:windows\n'),
            ['/dev/nvme0n1p4', '/dev/nvme0n1p5'])

    def test_empty(self) -> None:
        self.assertEqual(parse_os_prober_output(None), [])
        self.assertEqual(parse_os_prober_output(''), [])
        self.assertEqual(parse_os_prober_output('garbage\n'), [])


class CharsToStringTests(unittest.TestCase):
    def test_plain(self) -> None:
        self.assertEqual(chars_to_string([ord(c) for c in 'abc']), 'abc')

    def test_none(self) -> None:
        self.assertEqual(chars_to_string(None), '')
        self.assertEqual(chars_to_string([]), '')

    def test_truncate(self) -> None:
        self.assertEqual(chars_to_string(b'abc\0def'), 'abc')
        self.assertEqual(
            chars_to_string([ord('a'), ord('b'), ord('c'), 0,
                             ord('d'), ord('e'), ord('f')]),
            'abc')

    def test_signed(self) -> None:
        # UTF-8 'ą' as signed chars
        self.assertEqual(chars_to_string([-60, -123, 0]), 'ą')
