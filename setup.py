#!/usr/bin/env python
# -*- encoding: utf-8 -*-

from setuptools import setup, find_packages


setup(
    name = "upgrade-testrunner",
    version = '0.1.0',
    author = "SUSE Containers Team",
    author_email = "containers@suse.com",
    description = "Validates service availability while a cluster is upgraded in place",
    license = "Apache License 2.0",
    keywords = "kubernetes upgrade e2e",
    packages=find_packages(include=['upgrade_testrunner', 'upgrade_testrunner.*']),
    python_requires='>=3.6',
    install_requires=[
        'requests',
        'PyYAML',
        'timeout-decorator',
    ],
    extras_require={
        'test': [
            'pytest',
            'mock',
        ],
    },
    classifiers=[
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
    ],
    entry_points = {
        'console_scripts': [
            'upgrade-testrunner = upgrade_testrunner.testrunner:main'
        ]
    }
)
