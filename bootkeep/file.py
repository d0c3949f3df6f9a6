# vim:fileencoding=utf-8
# (c) 2011-2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

import enum
import typing


@enum.unique
class KernelFileType(enum.Enum):
    KERNEL = 'vmlinuz'
    INITRAMFS = 'initrd'
    SYSTEM_MAP = 'systemmap'
    CONFIG = 'config'


prefixes = [
    (KernelFileType.KERNEL, 'vmlinuz-'),
    (KernelFileType.KERNEL, 'vmlinux-'),
    (KernelFileType.KERNEL, 'kernel-'),
    (KernelFileType.KERNEL, 'bzImage-'),
    (KernelFileType.KERNEL, 'Image-'),
    (KernelFileType.INITRAMFS, 'initrd.img-'),
    (KernelFileType.INITRAMFS, 'initramfs-'),
    (KernelFileType.INITRAMFS, 'initrd-'),
    (KernelFileType.SYSTEM_MAP, 'System.map-'),
    (KernelFileType.CONFIG, 'config-'),
]

# decorations appended after the version, per file type
suffixes: typing.Dict[KernelFileType, typing.Tuple[str, ...]] = {
    KernelFileType.INITRAMFS: ('.img',),
    KernelFileType.CONFIG: ('.bz2', '.gz', '.lz', '.xz'),
}


class ClassifiedFile(typing.NamedTuple):
    ftype: KernelFileType
    prefix: str
    version: str


def classify_filename(fn: str) -> typing.Optional[ClassifiedFile]:
    """
    Classify a /boot filename

    Return a `ClassifiedFile` describing the kernel part `fn` belongs
    to, the matched prefix and the version encoded in the name.  Return
    None for unrecognized, hidden, signature and unversioned files.
    """

    # skip hidden and GRUB signature files
    if fn.startswith('.') or fn.endswith('.sig'):
        return None

    for ftype, prefix in prefixes:
        if not fn.startswith(prefix):
            continue
        ver = fn[len(prefix):]
        # initrd.img-X is a Debian name, initrd-X.img is not
        if prefix != 'initrd.img-':
            for suffix in suffixes.get(ftype, ()):
                if ver.endswith(suffix):
                    ver = ver[:-len(suffix)]
                    break
        # skip unversioned files
        if not ver:
            return None
        return ClassifiedFile(ftype, prefix, ver)
    return None
