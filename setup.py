from setuptools import setup, find_packages

setup(
    name="cxxdoc",
    version="0.1.0",
    description="C++ documentation comment parser and cross-document linker",
    keywords="mkdocs cxxdoc c++ markdown documentation python",
    packages=find_packages(exclude=["tests"]),
    install_requires=[
        "mkdocs>=1.4",
        "Markdown>=3.4",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers = [
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Documentation",
    ],
)
