#!/usr/bin/env python

"""Setup file and install script for structural variant evidence preparation"""

import os
import subprocess

import setuptools

VERSION = '0.3.0'

# add version number and git commit hash of the current revision to version.py
try:
    git_run = subprocess.run(['git', 'rev-parse', '--short', 'HEAD'], stdout=subprocess.PIPE,
                             stderr=subprocess.DEVNULL)
    git_run.check_returncode()
except (OSError, subprocess.SubprocessError):
    commit_hash = ''
else:
    commit_hash = git_run.stdout.strip().decode()

here = os.path.dirname(os.path.abspath(__file__))
with open(os.path.join(here, 'svprep', 'pipeline', 'version.py'), 'w') as version_file:
    version_file.writelines([f'__version__ = "{VERSION}"\n',
                             f'__git_revision__ = "{commit_hash}"\n'])

# samtools, samblaster, lumpy and optionally sambamba are external programs,
# installed separately (bioconda) or configured in the YAML system config
setuptools.setup(
    name='svprep',
    version=VERSION,
    description='Split-read and discordant-pair evidence preparation for lumpy structural variant calling',
    packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
    scripts=['scripts/svprep_lumpy.py'],
    python_requires='>=3.7',
    install_requires=[
        'joblib',
        'logbook',
        'numpy',
        'pysam',
        'PyYAML',
        'toolz',
    ],
    extras_require={
        'test': ['pytest', 'pytest-mock'],
    },
)
