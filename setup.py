"""Setup configuration for the audit sampling engine."""

from pathlib import Path

from setuptools import find_packages, setup

# Read long description from README
readme_file = Path(__file__).parent / "README.md"
long_description = (
    readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""
)

setup(
    name="gl-audit-sampling",
    version="1.0.0",
    description=(
        "Audit sampling engine for general-ledger populations: scoping, "
        "sample sizing, selection and coverage"
    ),
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0.0",
        "structlog>=24.1.0",
        "xlsxwriter>=3.1.0",
        "tqdm>=4.66.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "openpyxl>=3.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "audit-sample=audit_sampling.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
