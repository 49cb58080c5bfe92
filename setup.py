from setuptools import setup, find_packages

setup(
    name="fediscover",
    version="1.0.0",
    description="Crawler building a directory of active Lemmy and PieFed instances",
    packages=find_packages(exclude=["tests", "tests.*"]),
    license="GPLv3",
    python_requires=">=3.11",
    install_requires=[
        "aiohttp[speedups]",
        "aiohttp_retry",
        "tqdm",
        "requests",
        "colorlog",
        "pydantic>=2",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "fediscover = fediscover.cli:main",
        ],
    },
)
