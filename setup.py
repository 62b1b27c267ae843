#!/usr/bin/env python

from setuptools import setup

setup(
    name="esbootstrap",
    version="1.0.0",
    description="Create and migrate elasticsearch indices from resource schemas",
    packages=["esbootstrap"],
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.11",
    keywords=["elasticsearch", "mapping", "reindex"],
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Topic :: Database",
    ],
    install_requires=[
        "elasticsearch~=8.6",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "typing_extensions",
    ],
    extras_require={
        'dev': [
            'pytest',
            'mypy',
            'flake8',
        ]
    },
    entry_points={
        'console_scripts': [
            'esbootstrap = esbootstrap.__main__:main'
        ]
    },
)
