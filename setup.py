import os
import setuptools


def read_file(path_segments):
    """Read a file from the package. Takes a list of strings to join to
    make the path"""
    file_path = os.path.join(
        os.path.abspath(os.path.dirname(__file__)), *path_segments
    )
    with open(file_path) as f:
        return f.read()


def exec_file(path_segments):
    """Execute a single python file to get the variables defined in it"""
    result = {}
    code = read_file(path_segments)
    exec(code, result)
    return result


version = exec_file(("catalog_smoke", "__init__.py"))["__version__"]
long_description = read_file(("README.md",))

setuptools.setup(
    name='catalog-smoke',
    version=version,
    description="Smoke test a package catalog on a throwaway cloud instance",
    install_requires=[
        "cryptography>=3.1",
        "paramiko>=2.7",
        "PyYAML>=5.1",
        "requests>=2.22",
        "tabulate>=0.8",
    ],
    extras_require={
        "test": ["pytest>=6.0"],
    },
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=("tests", "tests.*")),
    classifiers=[
        "Programming Language :: Python :: 3 :: Only",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.6",
    data_files=[
        ("config", ["config.sample.yaml"])
    ],
)
