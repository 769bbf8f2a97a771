from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="address-zk-proofs",
    version="0.1.0",
    author="Hany Almnaem",
    author_email="",
    description="Zero-knowledge proofs over postal identifiers with Groth16 on BN254 (experimental)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/Hany-Almnaem/address-zk-proofs",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security :: Cryptography",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    python_requires=">=3.10",
    install_requires=[
        "py_ecc>=7.0.0",
        "structlog>=24.1.0",
        "trio>=0.27.0",
        "cbor2>=5.6.0",
        "pynacl>=1.5.0",
        "cryptography>=44.0.0",
        "click>=8.1.0",
        "rich>=13.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-trio>=0.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "address-zk=address_zk.cli:main",
        ],
    },
)
