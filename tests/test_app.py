#!/usr/bin/env python3
"""
Test script to verify the obadgen command line interface
"""
import json
import logging

import pytest

from conftest import OTHER_VERIFY_URL, VERIFY_URL
from obadgen import __version__, patcher
from obadgen.app import EXIT_CONFLICT, EXIT_FAILURE, build_parser, main, verbosity
from obadgen.crypto_utils import public_key_pem, verify_signed_assertion
from obadgen.settings import Verbosity


def test_version(capsys):
    assert main(["-V"]) == 0
    assert capsys.readouterr().out.strip() == f"obadgen {__version__}"
    assert main(["-V", "-q"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_no_command(capsys):
    assert main([]) == EXIT_FAILURE
    assert "usage" in capsys.readouterr().out


@pytest.mark.parametrize("argv, expected", [
    (["-q", "extract", "x.png"], Verbosity.NONE),
    (["-F", "debug", "extract", "x.png"], Verbosity.DEBUG),
    (["-q", "-F", "debug", "extract", "x.png"], Verbosity.NONE),
])
def test_verbosity(argv, expected):
    assert verbosity(build_parser().parse_args(argv)) is expected


def test_verbose_flags_raise_default(monkeypatch):
    monkeypatch.setattr("obadgen.settings.LOG_LEVEL", "info")
    assert verbosity(build_parser().parse_args(["-vv", "extract", "x.png"])) is Verbosity.TRACE


def test_bake_and_extract(make_png, tmp_path, capsys):
    baked = tmp_path / "baked.png"

    assert main(["-q", "bake", str(make_png()), str(baked), "--verify", VERIFY_URL, "--no-sign"]) == 0
    assert main(["-q", "extract", str(baked)]) == 0
    assert capsys.readouterr().out.strip() == VERIFY_URL


def test_bake_conflict(make_svg, tmp_path):
    source = make_svg()
    baked = tmp_path / "baked.svg"
    assert main(["-q", "bake", str(source), str(baked), "--verify", OTHER_VERIFY_URL, "--no-sign"]) == 0

    rebaked = tmp_path / "rebaked.svg"
    argv = ["-q", "bake", str(baked), str(rebaked), "--verify", VERIFY_URL, "--no-sign"]
    assert main(argv) == EXIT_CONFLICT
    assert main(argv + ["--overwrite"]) == 0
    assert patcher.extract(rebaked) == VERIFY_URL


def test_bake_unsupported_image(tmp_path):
    argv = ["-q", "bake", str(tmp_path / "badge.gif"), str(tmp_path / "baked.gif"), "--verify", VERIFY_URL]
    assert main(argv) == EXIT_FAILURE


def test_bake_requires_payload(tmp_path):
    with pytest.raises(SystemExit):
        main(["bake", str(tmp_path / "badge.png"), str(tmp_path / "baked.png")])


def test_extract_without_badge(make_png, capsys):
    assert main(["-q", "extract", str(make_png())]) == EXIT_FAILURE
    assert capsys.readouterr().out == ""


def test_extract_missing_file(tmp_path):
    assert main(["-q", "extract", str(tmp_path / "missing.svg")]) == EXIT_FAILURE


def test_signed_badge_workflow(make_svg, tmp_path, capsys):
    key_path = tmp_path / "signing.key"
    assertion_path = tmp_path / "assertion.json"
    baked = tmp_path / "baked.svg"

    assert main(["-q", "keygen", str(key_path)]) == 0
    public_key = capsys.readouterr().out.strip()
    assert main(["-q", "assertion", "--id", "urn:uuid:2bd16fc8-4f51-4d4e-9a4b-3c8d1e4a9f10",
                 "--badge", "https://example.org/badges/reader.json",
                 "--recipient", "recipient@email.com", "--salt", "abcdefg123456789",
                 "--signed", "--creator", "https://example.org/keys/1",
                 "--output", str(assertion_path)]) == 0
    assert main(["-q", "bake", str(make_svg()), str(baked),
                 "--assertion", str(assertion_path), "--sign-key", str(key_path)]) == 0

    assertion = verify_signed_assertion(patcher.extract(baked), public_key)
    assert assertion == json.loads(assertion_path.read_text())
    assert assertion["verification"] == {"type": "signed", "creator": "https://example.org/keys/1"}


def test_assertion_to_stdout(capsys):
    assert main(["-q", "assertion", "--id", "https://example.org/assertions/123.json",
                 "--badge", "https://example.org/badges/reader.json",
                 "--recipient", "recipient@email.com", "--plain",
                 "--issued-on", "2022-06-17T23:59:59Z"]) == 0

    assertion = json.loads(capsys.readouterr().out)
    assert assertion["recipient"] == {"type": "email", "hashed": False, "identity": "recipient@email.com"}
    assert assertion["issuedOn"] == "2022-06-17T23:59:59Z"
    assert assertion["verification"] == {"type": "hosted"}


@pytest.fixture
def root_level():
    level = logging.getLogger().level
    yield
    logging.getLogger().setLevel(level)


def test_bake_settings_carry_the_verbosity(monkeypatch, make_png, tmp_path, root_level):
    captured = []
    monkeypatch.setattr("obadgen.app.run", captured.append)

    assert main(["-F", "debug", "bake", str(make_png()), str(tmp_path / "baked.png"),
                 "--verify", VERIFY_URL, "--no-sign", "--overwrite"]) == 0

    (settings,) = captured
    assert settings.verbosity is Verbosity.DEBUG
    assert settings.verify_url == VERIFY_URL
    assert settings.private_key is None
    assert settings.fail_if_verify_present is False
    assert logging.getLogger().level == Verbosity.DEBUG.to_logging_level()


def test_quiet_silences_logging(make_png, root_level):
    main(["-q", "extract", str(make_png())])
    assert logging.getLogger().level > logging.CRITICAL


def test_badge_class(tmp_path):
    output = tmp_path / "reader.json"
    assert main(["-q", "badge-class", "--id", "https://example.org/badges/reader.json",
                 "--name", "Reader", "--description", "Reader of the example blog.",
                 "--image", "https://example.org/badges/reader.png",
                 "--criteria", "https://example.org/subscribe",
                 "--issuer", "https://example.org/issuer.json",
                 "--tag", "subscriber", "--tag", "reader", "-o", str(output)]) == 0

    badge_class = json.loads(output.read_text())
    assert badge_class["type"] == "BadgeClass"
    assert badge_class["criteria"] == "https://example.org/subscribe"
    assert badge_class["tags"] == ["subscriber", "reader"]


def test_badge_class_with_criteria_narrative(capsys):
    assert main(["-q", "badge-class", "--id", "https://example.org/badges/reader.json",
                 "--name", "Reader", "--description", "Reader of the example blog.",
                 "--image", "https://example.org/badges/reader.png",
                 "--criteria-narrative", "Read every post.",
                 "--issuer", "https://example.org/issuer.json"]) == 0

    badge_class = json.loads(capsys.readouterr().out)
    assert badge_class["criteria"] == {"type": "Criteria", "narrative": "Read every post."}


def test_badge_class_without_criteria():
    assert main(["-q", "badge-class", "--id", "https://example.org/badges/reader.json",
                 "--name", "Reader", "--description", "Reader of the example blog.",
                 "--image", "https://example.org/badges/reader.png",
                 "--issuer", "https://example.org/issuer.json"]) == EXIT_FAILURE


def test_issuer(capsys):
    assert main(["-q", "issuer", "--id", "https://example.org/issuer.json", "--name", "Example Org",
                 "--url", "https://example.org", "--public-key", "https://example.org/keys/1.json"]) == 0

    issuer = json.loads(capsys.readouterr().out)
    assert issuer["type"] == "Issuer"
    assert issuer["name"] == "Example Org"
    assert issuer["publicKey"] == "https://example.org/keys/1.json"


def test_key_from_signing_key(tmp_path, capsys):
    key_path = tmp_path / "signing.key"
    assert main(["-q", "keygen", str(key_path)]) == 0
    public_key = capsys.readouterr().out.strip()

    assert main(["-q", "key", "--id", "https://example.org/keys/1.json",
                 "--owner", "https://example.org/issuer.json", "--sign-key", str(key_path)]) == 0

    key = json.loads(capsys.readouterr().out)
    assert key["type"] == "CryptographicKey"
    assert key["owner"] == "https://example.org/issuer.json"
    assert key["publicKeyPem"] == public_key_pem(public_key)


def test_key_with_invalid_public_key():
    assert main(["-q", "key", "--id", "https://example.org/keys/1.json",
                 "--owner", "https://example.org/issuer.json", "--public-key", "not-a-key"]) == EXIT_FAILURE
