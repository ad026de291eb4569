from setuptools import find_packages, setup


setup(
    name="mongo_scram_client",
    version="1.0.0",
    description="SCRAM-SHA-1 / SCRAM-SHA-256 SASL client for MongoDB authentication",
    packages=find_packages(exclude=["tests", "tests.*"]),
    license="LGPLv3",
    python_requires=">=3.11",
    install_requires=[],
    extras_require={
        "test": [
            "pytest",
            "scramp",
        ],
    },
)
