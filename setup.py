#!/usr/bin/env python

from setuptools import find_packages, setup


setup(
    name="vela",
    version="0.1.0",
    description=(
        "Vela is a template engine for Python that reproduces the output"
        " of the Velocity Template Language, including its whitespace"
        " gobbling modes and loop limits."
    ),
    license="BSD",
    keywords="web.templating velocity vtl",
    python_requires=">=3.7",
    install_requires=[
        "cachetools",
    ],
    extras_require={"dev": [
        "black",
        "isort",
        "flake8",
        "flake8-black",
        "flake8-isort",
        "pytest",
    ]},
    test_suite="tests",
    tests_require=[],
    classifiers=[
        "Environment :: Web Environment",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    packages=find_packages(exclude=["examples", "tests", "tests.*", "docs"]),
    include_package_data=False,
    zip_safe=True,
    entry_points={
        "web.templating": [
            "vela = vela.api:Vela",
        ]
    },
)
