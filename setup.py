# SPDX-License-Identifier: LGPL-3.0-or-later
from setuptools import setup, find_packages

setup(
    name="vmbootstrap",
    version="0.1.0",
    packages=find_packages(include=["vmbootstrap", "vmbootstrap.*"]),
    python_requires=">=3.8",
    install_requires=[l.strip() for l in open("requirements.txt", encoding="utf-8") if l.strip() and not l.startswith("#")],
    extras_require={"test": ["pytest>=7"]},
    entry_points={"console_scripts": ["vmbootstrap=vmbootstrap.__main__:main"]},
)
