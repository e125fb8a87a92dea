from setuptools import setup, find_packages

setup(
    name="dft_paw",
    version="0.1.0",
    description="PAW projector indexing and spherical harmonics for plane wave DFT",
    author="DFT Developer",
    packages=find_packages(include=["dft_paw", "dft_paw.*"]),
    install_requires=[
        "numpy>=1.20.0",
        "scipy>=1.7.0",
        "h5py>=3.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0", "scipy>=1.15.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "dft-paw=dft_paw.cli:main",
        ],
    },
)
