# vim:fileencoding=utf-8
# (c) 2010-2020 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

import typing

from pathlib import Path


def read_if_exists(path: Path,
                   mode: str = 'r'
                   ) -> typing.Union[str, bytes, None]:
    """
    Read the whole file if it exists

    Return file contents, or None if `path` does not exist.  Other
    errors are re-raised.
    """
    try:
        with open(path, mode) as f:
            return f.read()
    except FileNotFoundError:
        return None
