# -*- coding: utf-8 -*-
import setuptools
import pathlib
import site
import sys

# odd bug with develop (editable) installs, see: https://github.com/pypa/pip/issues/7953
site.ENABLE_USER_SITE = "--user" in sys.argv[1:]

required = [
    "numpy",
    "simplejson>= 3.19.2",
    "mashumaro[msgpack]",
    "pyzmq",
    "websockets>=12.0",
    "loguru",
    "rich>=13.0.0",
    "setproctitle",
    "click>=8.0.0",
]

here = pathlib.Path(__file__).parent.resolve()

long_description = (here / "README.md").read_text(encoding="utf-8")

# Read version
version = {}
with open("src/daqlink/_version.py", "r") as f:
    exec(f.read(), version)

if __name__ == "__main__":
    setuptools.setup(
        name="daqlink",
        version=version["__version__"],
        author="The daqlink developers",
        description="Session client for websocket-controlled detector DAQ devices.",
        long_description=long_description,
        long_description_content_type="text/markdown",
        keywords=[
            "DAQ",
            "Detector",
            "Beam Monitor",
            "WebSocket",
        ],
        classifiers=[
            "License :: OSI Approved :: MIT License",
            "Development Status :: 2 - Pre-Alpha",
        ],
        license="MIT",
        package_dir={"": "src"},
        packages=setuptools.find_packages(
            where="src",
            exclude=["*.test", "*.test.*", "test.*", "test", "test_*"],
        ),
        entry_points={
            "console_scripts": [
                "daqlink=daqlink.cli:cli",
            ],
        },
        install_requires=required,
        extras_require={
            "tests": ["pytest", "pytest_asyncio>=0.24.0"],
        },
        python_requires=">= 3.11",
        package_data={
            "": ["*.md", "*.ini"],
            "daqlink": ["sysconfig/detectors/*.ini"],
        },
        setup_requires=["wheel"],  # force install of wheel first
    )
# https://setuptools.readthedocs.io/en/latest/userguide/datafiles.html
