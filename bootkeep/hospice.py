# vim:fileencoding=utf-8
# (c) 2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

"""
Hospice: storage for extra directories surviving system image swaps

`backup_extra_dir()` copies an extra directory into the hospice,
`restore_extra_dir()` hardlinks the hospice copy back.  A restored
file and its hospice copy are the same storage object (inode) until
either path is replaced, so edits made through one are visible
through the other.  Neither operation removes anything from
the hospice; retention is up to the caller.

The operations are not locked.  Callers must not run them
concurrently against the same directories.
"""

import errno
import hashlib
import logging
import os
import os.path
import re
import shutil
import stat
import tempfile
import typing

from pathlib import Path


PathLike = typing.Union[str, 'os.PathLike[str]']

# in-progress files, never treated as record content
tmp_re = re.compile(r'^\.bootkeep-[0-9a-f]{16}\.tmp$')


def tmp_name(name: str) -> str:
    """Return the fixed-length name of the in-progress copy of `name`"""
    digest = hashlib.sha1(os.fsencode(name)).hexdigest()
    return f'.bootkeep-{digest[:16]}.tmp'


class HospiceError(Exception):
    def __init__(self,
                 path: PathLike,
                 error: OSError
                 ) -> None:
        self.path = Path(path)
        self.error = error
        Exception.__init__(
            self, f'{path}: {error.strerror or error}')

    @property
    def errno(self) -> typing.Optional[int]:
        return self.error.errno

    @property
    def friendly_desc(self) -> str:
        desc = f'''The following path could not be processed:
  {self.path}
  ({self.error.strerror or self.error})

The operation was aborted. It is safe to run it again once
the problem is fixed.'''
        if self.errno == errno.EXDEV:
            desc += '''

Restoring uses hardlinks, so the hospice directory needs to be
on the same filesystem as the restored directory.'''
        return desc


def hospice_record_dir(origin_dir: PathLike,
                       hospice_dir: PathLike
                       ) -> Path:
    """Return the hospice directory holding the copy of `origin_dir`"""
    name = os.path.basename(os.path.normpath(origin_dir))
    return Path(hospice_dir) / name


def normalize_subpath(subpath: typing.Optional[str]) -> str:
    if not subpath:
        return ''
    subpath = os.path.normpath(subpath.strip('/'))
    if subpath == '.':
        return ''
    return subpath


def is_excluded(rel_path: str, exclude: str) -> bool:
    """Return True if `rel_path` is `exclude` or lies under it"""
    if not exclude:
        return False
    return rel_path == exclude or rel_path.startswith(exclude + os.sep)


def walk_tree(top: Path,
              exclude: str
              ) -> typing.Iterator[typing.Tuple[str, bool]]:
    """
    Walk the tree at `top`, skipping `exclude`

    Yield (relative path, is directory) tuples, parents before their
    contents.  Symlinks to directories are reported as files and not
    followed.  Errors raise `HospiceError`.
    """

    def onerror(e: OSError) -> None:
        raise HospiceError(e.filename or top, e) from e

    for dirpath, dirnames, filenames in os.walk(top, onerror=onerror):
        reldir = os.path.relpath(dirpath, top)
        if reldir == '.':
            reldir = ''

        subdirs = []
        for d in sorted(dirnames):
            rel = os.path.join(reldir, d)
            if is_excluded(rel, exclude):
                logging.debug(f'excluded: {rel}')
                continue
            if os.path.islink(os.path.join(dirpath, d)):
                yield rel, False
                continue
            subdirs.append(d)
            yield rel, True
        dirnames[:] = subdirs

        for f in sorted(filenames):
            if tmp_re.match(f):
                continue
            rel = os.path.join(reldir, f)
            if is_excluded(rel, exclude):
                logging.debug(f'excluded: {rel}')
                continue
            yield rel, False


def is_same_file(src: Path, dst: Path) -> bool:
    """Return True if `dst` exists and is the same inode as `src`"""
    try:
        return os.path.samestat(os.lstat(src), os.lstat(dst))
    except FileNotFoundError:
        return False


def make_dir(src: Path, dst: Path) -> None:
    """
    Create `dst` if missing, taking permissions from `src`

    A symlink at `dst` is replaced with a real directory, so that
    nothing is written outside the target tree.
    """
    try:
        st = os.lstat(dst)
    except FileNotFoundError:
        pass
    else:
        if stat.S_ISDIR(st.st_mode):
            return
        if stat.S_ISLNK(st.st_mode):
            logging.debug(f'{dst} is a symlink, replacing with a directory')
            os.unlink(dst)
    os.makedirs(dst, exist_ok=True)
    shutil.copymode(src, dst)


def copy_to(src: Path, tmp: Path) -> None:
    if os.path.islink(src):
        os.symlink(os.readlink(src), tmp)
    else:
        shutil.copy2(src, tmp)


def replace_with(dst: Path,
                 create: typing.Callable[[Path], None]
                 ) -> None:
    """
    Atomically replace `dst` with a new file

    Call `create` with a temporary path next to `dst`, then rename
    the result over `dst`.  Leftovers of an interrupted earlier run
    are removed first.
    """

    tmp = dst.with_name(tmp_name(dst.name))
    if os.path.lexists(tmp):
        os.unlink(tmp)
    try:
        create(tmp)
        os.replace(tmp, dst)
    except BaseException:
        if os.path.lexists(tmp):
            os.unlink(tmp)
        raise


def backup_file(src: Path, dst: Path) -> None:
    if is_same_file(src, dst):
        # restored earlier, already shares storage with the hospice
        logging.debug(f'{dst} is a link to {src}, skipping')
        return
    replace_with(dst, lambda tmp: copy_to(src, tmp))


def link_file(src: Path, dst: Path) -> None:
    if is_same_file(src, dst):
        logging.debug(f'{dst} already linked, skipping')
        return

    def create(tmp: Path) -> None:
        try:
            os.link(src, tmp, follow_symlinks=False)
        except OSError as e:
            if e.errno not in (errno.EPERM, errno.EOPNOTSUPP):
                raise
            logging.warning(
                f'Unable to hardlink {src} ({e.strerror}), copying '
                f'instead. Changes to {dst} will not be shared with '
                f'the hospice.')
            copy_to(src, tmp)

    os.makedirs(dst.parent, exist_ok=True)
    replace_with(dst, create)


def backup_extra_dir(origin_dir: PathLike,
                     exclude_subpath: typing.Optional[str],
                     hospice_dir: PathLike
                     ) -> None:
    """
    Back up `origin_dir` into `hospice_dir`

    Copy the contents of `origin_dir`, except for `exclude_subpath`
    (relative to `origin_dir`), into `hospice_dir/<basename>`.  Files
    are real copies, replaced atomically.  Files already sharing
    storage with the hospice are kept as they are.  Running it again
    over unchanged sources is harmless.

    Raise `HospiceError` on the first failure.
    """

    origin = Path(origin_dir)
    record = hospice_record_dir(origin, hospice_dir)
    exclude = normalize_subpath(exclude_subpath)
    logging.debug(f'backing up {origin} to {record}, '
                  f'excluding {exclude!r}')

    try:
        if not origin.is_dir():
            raise FileNotFoundError(
                errno.ENOENT, os.strerror(errno.ENOENT), str(origin))
        make_dir(origin, record)
    except OSError as e:
        raise HospiceError(e.filename or record, e) from e

    for rel, is_dir in walk_tree(origin, exclude):
        src = origin / rel
        dst = record / rel
        try:
            if is_dir:
                make_dir(src, dst)
            else:
                backup_file(src, dst)
        except OSError as e:
            raise HospiceError(src, e) from e


def restore_extra_dir(origin_dir: PathLike,
                      exclude_subpath: typing.Optional[str],
                      hospice_dir: PathLike
                      ) -> None:
    """
    Restore `origin_dir` from `hospice_dir`

    Hardlink every file of `hospice_dir/<basename>`, except for those
    under `exclude_subpath`, into `origin_dir`, replacing whatever
    exists there.  The hospice directory must be on the same
    filesystem as `origin_dir`.  Running it again is harmless.

    Raise `HospiceError` on the first failure.
    """

    origin = Path(origin_dir)
    record = hospice_record_dir(origin, hospice_dir)
    exclude = normalize_subpath(exclude_subpath)
    logging.debug(f'restoring {origin} from {record}, '
                  f'excluding {exclude!r}')

    try:
        if not record.is_dir():
            raise FileNotFoundError(
                errno.ENOENT, os.strerror(errno.ENOENT), str(record))
        make_dir(record, origin)
    except OSError as e:
        raise HospiceError(e.filename or origin, e) from e

    for rel, is_dir in walk_tree(record, exclude):
        src = record / rel
        dst = origin / rel
        try:
            if is_dir:
                make_dir(src, dst)
            else:
                link_file(src, dst)
        except OSError as e:
            raise HospiceError(dst, e) from e


def write_exclude_file(paths: typing.Iterable[str],
                       directory: typing.Optional[PathLike] = None
                       ) -> Path:
    """
    Write an exclude list for rsync --exclude-from and similar tools

    Write `paths`, one per line, into a new temporary file
    in `directory` (the default temporary directory if None) and return
    its path.  The caller is responsible for removing it.
    """

    fd, name = tempfile.mkstemp(prefix='bootkeep-exclude-',
                                dir=directory)
    with os.fdopen(fd, 'w') as f:
        for p in paths:
            f.write(f'{p}\n')
    return Path(name)


def is_symlink(path: PathLike) -> bool:
    """Return True if `path` is a symlink, raise if it does not exist"""
    return stat.S_ISLNK(os.lstat(path).st_mode)


def get_file_content(path: PathLike) -> str:
    with open(path) as f:
        return f.read()
