import os
import re
from codecs import open

from setuptools import find_packages
from setuptools import setup

# Based on https://github.com/pypa/sampleproject/blob/main/setup.py
# and https://python-packaging-user-guide.readthedocs.org/

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()
long_description_content_type = "text/markdown"

with open(os.path.join(here, "tlsgate/version.py")) as f:
    match = re.search(r'VERSION = "(.+?)"', f.read())
    assert match
    VERSION = match.group(1)

setup(
    name="tlsgate",
    version=VERSION,
    description="A TLS-terminating CONNECT proxy that only tunnels to allow-listed destinations.",
    long_description=long_description,
    long_description_content_type=long_description_content_type,
    license="MIT",
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Operating System :: MacOS",
        "Operating System :: POSIX",
        "Operating System :: Microsoft :: Windows",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Security",
        "Topic :: Internet :: Proxy Servers",
    ],
    packages=find_packages(
        include=[
            "tlsgate",
            "tlsgate.*",
        ]
    ),
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "tlsgate = tlsgate.tools.main:tlsgate",
        ],
    },
    python_requires=">=3.10",
    # https://packaging.python.org/en/latest/discussions/install-requires-vs-requirements/#install-requires
    # It is not considered best practice to use install_requires to pin dependencies to specific versions.
    install_requires=[
        "cryptography>=42.0",
        "pyOpenSSL>=24.0",
        "ruamel.yaml>=0.17",
    ],
    extras_require={
        "dev": [
            "pytest-asyncio>=0.23",
            "pytest-cov>=4.0",
            "pytest-timeout>=2.1",
            "pytest>=7.4",
        ],
    },
)
