"""Setup script for SuperCal Lite."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements, splitting out test-only dependencies
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
dev_requirements = []

if requirements_file.exists():
    content = requirements_file.read_text().strip()
    lines = content.split("\n")

    for line in lines:
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        # Separate development dependencies
        if "pytest" in line or "development" in line.lower() or "testing" in line.lower():
            dev_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="supercal-lite",
    version="0.1.0",
    description="Recurrence expansion and iCalendar/JSON interchange for the SuperCal desktop calendar",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="SuperCal Team",
    # Package configuration
    packages=find_packages(include=["supercal_lite", "supercal_lite.*"]),
    include_package_data=True,
    package_data={"supercal_lite": ["config.yaml.example"]},
    # Dependencies
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements,
        "test": dev_requirements,
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
    ],
    keywords="calendar ics icalendar rrule recurrence",
    # Entry points
    entry_points={
        "console_scripts": [
            "supercal-lite=supercal_lite.__main__:main",
        ],
    },
    zip_safe=False,
)
