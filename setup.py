#!/usr/bin/python
# vim:fileencoding=utf-8
# (c) 2011 Michał Górny <mgorny@gentoo.org>
# Released under the terms of the 2-clause BSD license.

from setuptools import setup, find_packages

from bootkeep import __version__

setup(
    name='bootkeep',
    version=__version__,
    author='Michał Górny',
    author_email='mgorny@gentoo.org',
    description='Kernel file lookup and extra directory preservation '
                'for system image upgrades',

    packages=find_packages(exclude=['test']),
    entry_points={
        'console_scripts': [
            'bootkeep=bootkeep.__main__:setuptools_main',
        ],
    },
    python_requires='>=3.8',
    extras_require={
        'test': ['pytest'],
    },

    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: BSD License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3 :: Only',
        'Topic :: System :: Installation/Setup'
    ]
)
