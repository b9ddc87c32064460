# -*- coding: utf-8 -
import os
from setuptools import setup, find_packages


def read(fname):
    return open(os.path.join(os.path.dirname(__file__), fname)).read()


setup(
    name="vmexporters",
    version=read("vmexporters/version.txt").strip(),
    description="Install the Prometheus node exporter and the NVIDIA DCGM "
    "exporter on a virtual machine",
    license="GPL-3.0",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Topic :: System :: Monitoring",
        ],
    keywords="Prometheus, node_exporter, DCGM, monitoring, provisioning",
    long_description=read("README.rst"),
    packages=find_packages(),
    python_requires=">=3.8",
    install_requires=[
        "click>=8.0",
        "jinja2>=3.0",
        "jsonschema>=4.0",
        "pyyaml>=5.4",
        "requests>=2.25",
        "rich>=12.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "ddt>=1.4",
        ],
    },
    entry_points={
        "console_scripts": [
            "vmexporters=vmexporters.cli:main",
        ],
    },
    package_data={
        "vmexporters": ["version.txt", "templates/*.j2"],
    },
    include_package_data=True
)
