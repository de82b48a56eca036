#!/usr/bin/env python
from setuptools import find_packages, setup

DEPENDENCIES = {
    'aprslib': [],
    'humanize': [],
    'numpy': [],
    'python-dateutil': [],
    'pyyaml': [],
    'requests': [],
    'typepigeon<2': [],
    'typer': [],
}

setup(
    name='aprs2sondehub',
    version='1.0.0',
    author='aprs2sondehub contributors',
    description='forward amateur balloon telemetry from APRS-IS to SondeHub',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.8',
    setup_requires=['setuptools>=41.2'],
    install_requires=list(DEPENDENCIES),
    extras_require={
        'testing': ['pytest', 'pytest-cov', 'pytest-xdist'],
        'development': ['flake8', 'isort', 'oitnb', 'wheel'],
    },
    entry_points={'console_scripts': ['aprs2sondehub=aprs2sondehub.__main__:main']},
)
