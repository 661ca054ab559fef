"""Setup script for calhub."""

import os
from pathlib import Path

from setuptools import find_packages, setup
from setuptools.command.develop import develop
from setuptools.command.install import install


def post_install_setup():
    """Create the default configuration and data directories."""
    config_dir = Path.home() / ".config" / "calhub"
    data_dir = Path.home() / ".local" / "share" / "calhub"

    try:
        for directory in [config_dir, data_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            if hasattr(os, "chmod"):
                os.chmod(directory, 0o755)
    except OSError as e:
        print(f"Warning: could not create calhub directories: {e}")
        return

    if not (config_dir / "config.yaml").exists():
        print("\n" + "=" * 60)
        print("calhub installed")
        print("=" * 60)
        print(f"Configuration directory: {config_dir}")
        print(f"Data directory: {data_dir}")
        print("\nNext steps:")
        print("1. Copy config/config.yaml.example to the configuration directory")
        print("2. Register calendars with 'calhub add-ics URL' or 'calhub add-google ID'")
        print("3. Run 'calhub --help' to see all commands")
        print("=" * 60)


class PostInstallCommand(install):
    """Custom install command with post-install setup."""

    def run(self):
        install.run(self)
        post_install_setup()


class PostDevelopCommand(develop):
    """Custom develop command with post-install setup."""

    def run(self):
        develop.run(self)
        post_install_setup()


readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Test-only packages go to the dev extra
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
dev_requirements = []

if requirements_file.exists():
    for line in requirements_file.read_text().strip().split("\n"):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "pytest" in line:
            dev_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="calhub",
    version="0.1.0",
    description="Aggregates Google Calendar and ICS feeds into a local store with recurrence expansion",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="calhub developers",
    packages=find_packages(include=["calhub", "calhub.*"]),
    include_package_data=True,
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements,
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="calendar ics icalendar google-calendar rrule sync async",
    entry_points={
        "console_scripts": [
            "calhub=calhub.__main__:main",
        ],
    },
    cmdclass={
        "install": PostInstallCommand,
        "develop": PostDevelopCommand,
    },
    zip_safe=False,
)
