import argparse

import pytest

from tlsgate import options
from tlsgate.tools import cmdline
from tlsgate.tools import main


def test_common():
    parser = argparse.ArgumentParser()
    opts = options.Options()
    cmdline.common_options(parser, opts)
    args = parser.parse_args(args=[])
    main.process_options(parser, opts, args)
    assert opts.bind_address == "127.0.0.1"
    assert opts.bind_port == 8080
    assert opts.cert_path == "MyCertificate.crt"
    assert opts.key_path == "MyKey.key"
    assert opts.allow == []
    assert opts.termlog_verbosity == "info"


def test_tlsgate():
    opts = options.Options()
    ap = cmdline.tlsgate(opts)
    args = ap.parse_args(
        [
            "-p",
            "8443",
            "--bind-address",
            "0.0.0.0",
            "-a",
            "example.com:443",
            "--allow",
            "10.0.0.1:22",
            "--cert-path",
            "proxy.crt",
            "--idle-timeout",
            "30",
            "--max-request-size",
            "16k",
        ]
    )
    main.process_options(ap, opts, args)
    assert opts.bind_port == 8443
    assert opts.bind_address == "0.0.0.0"
    assert opts.allow == ["example.com:443", "10.0.0.1:22"]
    assert opts.cert_path == "proxy.crt"
    assert opts.idle_timeout == 30.0
    assert opts.max_request_size == "16k"
    assert opts.handshake_timeout == 10.0


def test_set():
    opts = options.Options()
    ap = cmdline.tlsgate(opts)
    args = ap.parse_args(["--set", "read_timeout=2.5", "--set", "allow=a.test:1"])
    assert args.setoptions == ["read_timeout=2.5", "allow=a.test:1"]


def test_groups():
    ap = cmdline.tlsgate(options.Options())
    titles = [g.title for g in ap._action_groups]
    for title, _ in cmdline.OPTION_GROUPS:
        if title is not None:
            assert title in titles


def test_quiet_and_verbose_conflict(capsys):
    ap = cmdline.tlsgate(options.Options())
    with pytest.raises(SystemExit):
        ap.parse_args(["-q", "-v"])
    assert "not allowed with argument" in capsys.readouterr().err
