from setuptools import setup, find_namespace_packages
import os
import re

# Read version from repotransfer/__init__.py
with open(os.path.join('repotransfer', '__init__.py'), 'r') as f:
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", f.read(), re.M)
    if version_match:
        version = version_match.group(1)
    else:
        raise RuntimeError("Unable to find version string in repotransfer/__init__.py")

# Read long description from README.md
with open('README.md', 'r', encoding='utf-8') as f:
    long_description = f.read()

# Read requirements from requirements.txt
with open('requirements.txt', 'r') as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith('#')]

setup(
    name="repotransfer",
    version=version,
    author="RepoTransfer Developers",
    description="Resumable repository transfer state and snapshot tracking",
    long_description=long_description,
    long_description_content_type="text/markdown",
    # Subpackages have no __init__.py
    packages=find_namespace_packages(include=["repotransfer", "repotransfer.*"]),
    py_modules=["main"],
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0", "pytest-mock>=3.10"],
    },
    entry_points={
        "console_scripts": [
            "repotransfer=main:main",
        ],
    },
    include_package_data=True,
)
