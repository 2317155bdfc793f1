# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="data_restore",
    version="0.1.0",
    packages=find_namespace_packages(include=["data_restore", "data_restore.*"]),
    python_requires=">=3.10",
    install_requires=[
        "rlp",                 # account leaf encoding
        "msgpack",             # operation identity
        "pycryptodome",        # keccak
        "cryptography",        # address derivation
        "prometheus_client",   # replay metrics
        "psutil",              # monitoring
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "data-restore=data_restore.replay_tool:main",
        ],
    },
)
