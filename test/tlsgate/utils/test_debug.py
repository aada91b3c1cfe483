from tlsgate.utils import debug


def test_dump_system_info():
    info = debug.dump_system_info()
    assert "tlsgate:" in info
    assert "Python:" in info
    assert "OpenSSL:" in info
    assert "cryptography:" in info
