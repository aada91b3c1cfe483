import pytest

from tlsgate.net import check


@pytest.mark.parametrize(
    "host",
    [
        "example.com",
        "one.two",
        "one.two.",
        "one_two",
        "bücher.example",
        "localhost",
        "127.0.0.1",
        "::1",
        "2001:db8:85a3::8a2e:370:7334",
    ],
)
def test_valid_host(host):
    assert check.is_valid_host(host)


@pytest.mark.parametrize(
    "host",
    [
        "",
        "xn--ke.ws",
        "one" * 255,
        "a." * 128 + "com",
        "one..two",
        "2001:db8::85a3::7334",
        "ex@mple",
        "exa mple.com",
        "[::1]",
    ],
)
def test_invalid_host(host):
    assert not check.is_valid_host(host)


def test_is_valid_port():
    assert check.is_valid_port(0)
    assert check.is_valid_port(443)
    assert check.is_valid_port(65535)
    assert not check.is_valid_port(-1)
    assert not check.is_valid_port(65536)
