import platform

import cryptography
from OpenSSL import SSL

from tlsgate import version


def dump_system_info():
    tlsgate_version = version.get_dev_version()
    openssl_version: str | bytes = SSL.SSLeay_version(SSL.SSLEAY_VERSION)
    if isinstance(openssl_version, bytes):
        openssl_version = openssl_version.decode()

    data = [
        f"tlsgate:      {tlsgate_version}",
        f"Python:       {platform.python_version()}",
        f"OpenSSL:      {openssl_version}",
        f"cryptography: {cryptography.__version__}",
        f"Platform:     {platform.platform()}",
    ]
    return "\n".join(data)
