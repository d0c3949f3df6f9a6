# vim:fileencoding=utf-8
# (c) 2011-2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

import logging
import os
import typing

from pathlib import Path

from bootkeep.file import KernelFileType, classify_filename


# uname -m and Debian architecture names mapped to an arch family
arch_families = {
    'x86_64': 'x86',
    'amd64': 'x86',
    'i386': 'x86',
    'i486': 'x86',
    'i586': 'x86',
    'i686': 'x86',
    'aarch64': 'arm64',
    'arm64': 'arm64',
    'mips64': 'mips',
    'mips64el': 'mips',
    'mipsel': 'mips',
    'loongarch64': 'loongarch',
    'loong64': 'loongarch',
    'sw_64': 'sw64',
    'sw64': 'sw64',
}

# image prefixes to prefer, in order, when a release has several images
arch_image_prefixes: typing.Dict[str, typing.Tuple[str, ...]] = {
    'x86': ('vmlinuz-', 'bzImage-'),
    'arm64': ('vmlinuz-', 'Image-'),
    'mips': ('vmlinuz-', 'vmlinux-'),
    'loongarch': ('vmlinuz-', 'vmlinux-'),
    'sw64': ('vmlinux-',),
}


class KernelFileSet(typing.NamedTuple):
    """Boot files selected for a single kernel release"""

    release: str
    arch: str
    linux: Path
    # None if the kernel boots without an initrd
    initrd: typing.Optional[Path]


class KernelResolveError(Exception):
    def __init__(self,
                 message: str,
                 release: str,
                 arch: str,
                 candidates: typing.List[str] = []
                 ) -> None:
        Exception.__init__(self, message)
        self.release = release
        self.arch = arch
        self.candidates = list(candidates)


class KernelImageNotFound(KernelResolveError):
    def __init__(self,
                 release: str,
                 arch: str
                 ) -> None:
        super().__init__(f'No kernel image found for {release} ({arch})',
                         release, arch)

    @property
    def friendly_desc(self) -> str:
        return f'''No kernel image was found for release {self.release}.

The boot directory does not contain a vmlinuz-{self.release} file (or
an equivalent image name). The system cannot boot this release
without a kernel image, so no boot entry can be built for it.'''


class AmbiguousKernelFiles(KernelResolveError):
    ftype: KernelFileType

    def __init__(self,
                 release: str,
                 arch: str,
                 candidates: typing.List[str]
                 ) -> None:
        super().__init__(
            f'Multiple {self.ftype.value} files match {release} '
            f'({arch}): {", ".join(candidates)}',
            release, arch, candidates)

    @property
    def friendly_desc(self) -> str:
        files = '\n'.join(f'  {c}' for c in self.candidates)
        return f'''More than one {self.ftype.value} file matches {self.release}:
{files}

Picking one of them at random could result in an unbootable system.
Please remove the stale files from the boot directory.'''


class KernelImageAmbiguous(AmbiguousKernelFiles):
    ftype = KernelFileType.KERNEL


class InitrdAmbiguous(AmbiguousKernelFiles):
    ftype = KernelFileType.INITRAMFS


def normalize_arch(arch: str) -> str:
    """Return the arch family for `arch`, or `arch` if unknown"""
    return arch_families.get(arch, arch)


def resolve_kernel_files(release: str,
                         arch: str,
                         filenames: typing.Iterable[str],
                         boot_dir: Path
                         ) -> KernelFileSet:
    """
    Find the kernel image and initrd for `release`

    Classify `filenames` (a listing of `boot_dir`) and return
    the `KernelFileSet` for `release`.  Only files whose version equals
    `release` exactly are considered.  `arch` is used only to choose
    between several kernel images of the same release.

    Raise `KernelImageNotFound` if no image matches, `KernelImageAmbiguous`
    or `InitrdAmbiguous` if the choice is not unique.  A missing initrd
    is represented by None.
    """

    matches: typing.Dict[KernelFileType, typing.List[typing.Tuple[str, str]]]
    matches = {}
    for fn in filenames:
        cf = classify_filename(fn)
        if cf is None or cf.version != release:
            continue
        matches.setdefault(cf.ftype, []).append((cf.prefix, fn))

    images = sorted(matches.get(KernelFileType.KERNEL, []))
    if not images:
        raise KernelImageNotFound(release, arch)
    if len(images) > 1:
        logging.debug(f'{len(images)} images match {release}, '
                      f'trying {arch} preferences')
        for prefix in arch_image_prefixes.get(normalize_arch(arch), ()):
            preferred = [x for x in images if x[0] == prefix]
            if preferred:
                images = preferred
                break
        if len(images) > 1:
            raise KernelImageAmbiguous(release, arch,
                                       [fn for _, fn in images])

    initrds = sorted(matches.get(KernelFileType.INITRAMFS, []))
    if len(initrds) > 1:
        raise InitrdAmbiguous(release, arch, [fn for _, fn in initrds])

    linux = Path(boot_dir) / images[0][1]
    initrd: typing.Optional[Path] = None
    if initrds:
        initrd = Path(boot_dir) / initrds[0][1]
    else:
        logging.debug(f'no initrd found for {release}')
    logging.debug(f'kernel files for {release}: {linux}, {initrd}')
    return KernelFileSet(release, arch, linux, initrd)


def find_kernel_files(release: str,
                      arch: str,
                      boot_dir: Path
                      ) -> KernelFileSet:
    """Resolve kernel files for `release` among files in `boot_dir`"""
    filenames = []
    for fn in os.listdir(boot_dir):
        path = Path(boot_dir) / fn
        if path.is_symlink() or not path.is_file():
            continue
        filenames.append(fn)
    return resolve_kernel_files(release, arch, filenames, boot_dir)
