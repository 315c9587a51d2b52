"""
Setup script for robo-estimation package.

This package provides recursive Bayesian estimators for mobile robot pose
estimation: Extended Kalman Filter, Monte Carlo Localization and FastSLAM.
"""

from setuptools import setup, find_packages
import os

# Read long description from README
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(here, 'requirements.txt'), encoding='utf-8') as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Split core and dev dependencies
core_requirements = []
dev_requirements = []

for req in requirements:
    if any(dev_pkg in req for dev_pkg in ['pytest', 'black', 'flake8', 'mypy', 'sphinx']):
        dev_requirements.append(req)
    else:
        core_requirements.append(req)

setup(
    name='robo-estimation',
    version='1.0.0',
    description='Recursive Bayesian Pose Estimation: EKF, Monte Carlo Localization and FastSLAM',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Robo Estimation Team',

    packages=find_packages(where='src'),
    package_dir={'': 'src'},

    # Core dependencies
    install_requires=core_requirements,

    # Optional dependencies
    extras_require={
        'dev': dev_requirements,
    },

    # Python version requirement
    python_requires='>=3.8',

    # Entry points for command line usage
    entry_points={
        'console_scripts': [
            'robo-estimation=robo_estimation.main:main',
        ],
    },

    # Classifiers for PyPI
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Developers',
        'Topic :: Scientific/Engineering :: Mathematics',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],

    # Keywords for searchability
    keywords='robotics localization slam kalman-filter particle-filter fastslam monte-carlo-localization',
)
