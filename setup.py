from setuptools import setup, find_packages


setup(
    name="slurp",
    version="0.4.0",
    packages=find_packages(include=["slurp", "slurp.*"]),
    package_data={"slurp": ["FORMAT.md"]},
    description="Self-documenting, text-based file archives with optional gzip and AES-256-GCM layers.",
    author="slurp contributors",
    python_requires=">=3.8",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "slurp=slurp.cli:main",
        ]
    },
)
