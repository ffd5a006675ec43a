from setuptools import setup, find_packages


setup(
    name="sealdrive",
    version="0.1",
    packages=find_packages(include=["sealdrive", "sealdrive.*"]),
    description="Password-encrypted file envelopes over content-addressable storage with logical file ids.",
    author="vercingetorx",
    python_requires=">=3.9",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "httpx>=0.27",
        "aiofiles>=23.2",
    ],
    entry_points={
        "console_scripts": [
            "sealdrive=sealdrive.cli:main",
        ]
    },
)
