from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name="welfare_market",
    version="0.1.0",
    description="Welfare maximising clearing of an energy market over representative periods with quadratic costs.",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
    ],

    install_requires=[
        "pandas>=1.2",
        "numpy>=1.19",
        "scipy>=1.5",
    ],

    extras_require={
        "dev": [
            "pytest>=6.0.1",
            "twine",
        ],
    },
)
