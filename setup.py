import re
import sys
from pathlib import Path

from setuptools import find_packages, setup

project_dir = Path(__file__).parent


def get_version():
    text = (project_dir / "src" / "routesync" / "version.py").read_text()
    match = re.compile(r"__version__\s*=\s*\"?([^\n\"]+)\"?.*").match(text)
    if match:
        if match.group(1) != "None":
            return match.group(1)
        else:
            return None
    else:
        sys.exit("Can't parse version.py")


def get_long_description():
    return open(project_dir / "README.md").read()


BASE_DEPS = [
    "pyyaml",
    "typing-extensions>=4.0.0",
    "cryptography",
    "rich",
    "rich-argparse",
    "argcomplete>=3.5.0",
    "pydantic>=2.0.0",
    "orjson",
    "watchfiles",
]

TEST_DEPS = [
    "pytest",
    "pytest-asyncio>=0.21",
]

setup(
    name="routesync",
    version=get_version(),
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["tests", "tests.*"]),
    include_package_data=True,
    scripts=[],
    entry_points={
        "console_scripts": ["routesync=routesync._internal.cli.main:main"],
    },
    description="routesync keeps a reverse proxy's routing configuration in sync with a declarative applications file.",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    python_requires=">=3.11",
    install_requires=BASE_DEPS,
    extras_require={
        "tests": TEST_DEPS,
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Topic :: System :: Networking",
        "Programming Language :: Python :: 3",
    ],
)
