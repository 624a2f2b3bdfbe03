# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for settings loading and protected-settings decryption."""
from __future__ import annotations

import base64
import datetime
import json

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs7
from cryptography.x509.oid import NameOID

from vmbootstrap.config.decryptor import CertificateDecryptor
from vmbootstrap.config.loader import ConfigLoader, resolve_settings_file
from vmbootstrap.config.models import PublicSettings
from vmbootstrap.core.exceptions import ConfigLoadError, DecryptionError


def _write_settings(path, handler):
    path.write_text(json.dumps({"runtimeSettings": [{"handlerSettings": handler}]}), encoding="utf-8")
    return path


class FakeDecryptor:
    """Plaintext is the ciphertext itself; records the thumbprints asked for."""

    def __init__(self, fail=None):
        self.fail = fail
        self.calls = []

    def decrypt(self, ciphertext, thumbprint):
        self.calls.append(thumbprint)
        if self.fail is not None:
            raise self.fail
        return ciphertext


def _protected(obj):
    return base64.b64encode(json.dumps(obj).encode("utf-8")).decode("ascii")


@pytest.mark.unit
class TestConfigLoader:
    def test_public_only(self, tmp_path):
        f = _write_settings(
            tmp_path / "0.settings",
            {
                "publicSettings": {
                    "scriptFileUri": "https://x/y/install.ps1",
                    "dependencyFileUris": ["https://x/a.zip", "https://x/b.zip"],
                    "installGuide": "true",
                    "custom": 1,
                }
            },
        )
        pc = ConfigLoader(f).load()

        assert pc.public.script_uri == "https://x/y/install.ps1"
        assert pc.public.dependency_uris == ("https://x/a.zip", "https://x/b.zip")
        assert pc.public.install_guide is True
        assert pc.public.extra == {"custom": 1}
        assert pc.private is None
        assert pc.credential is None

    def test_protected_settings_decrypted(self, tmp_path, account_key):
        f = _write_settings(
            tmp_path / "0.settings",
            {
                "publicSettings": {"fileUri": "https://x/run.sh", "storageAccountName": "pubacct"},
                "protectedSettingsCertThumbprint": "ABCDEF",
                "protectedSettings": _protected({"storageAccountName": "acct", "storageAccountKey": account_key}),
            },
        )
        decryptor = FakeDecryptor()
        pc = ConfigLoader(f, decryptor).load()

        assert decryptor.calls == ["ABCDEF"]
        assert pc.credential.account_name == "acct"
        assert pc.credential.account_key == account_key

    def test_public_credential_is_used_without_protected(self, tmp_path, account_key):
        f = _write_settings(
            tmp_path / "0.settings",
            {"publicSettings": {"scriptUri": "https://x/run.sh", "storageAccountName": "acct", "storageAccountKey": account_key}},
        )
        assert ConfigLoader(f).load().credential.account_name == "acct"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError) as ei:
            ConfigLoader(tmp_path / "nope.settings").load()
        assert ei.value.code == 10

    def test_bad_json(self, tmp_path):
        f = tmp_path / "0.settings"
        f.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            ConfigLoader(f).load()

    @pytest.mark.parametrize("doc", [{}, {"runtimeSettings": []}, {"runtimeSettings": [{}]}, []])
    def test_missing_handler_settings(self, tmp_path, doc):
        f = tmp_path / "0.settings"
        f.write_text(json.dumps(doc), encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            ConfigLoader(f).load()

    def test_missing_script_uri(self, tmp_path):
        f = _write_settings(tmp_path / "0.settings", {"publicSettings": {"installGuide": True}})
        with pytest.raises(ConfigLoadError):
            ConfigLoader(f).load()

    def test_missing_thumbprint(self, tmp_path):
        f = _write_settings(
            tmp_path / "0.settings",
            {"publicSettings": {"fileUri": "https://x/run.sh"}, "protectedSettings": _protected({})},
        )
        with pytest.raises(DecryptionError) as ei:
            ConfigLoader(f, FakeDecryptor()).load()
        assert ei.value.code == 11

    def test_no_decryptor(self, tmp_path):
        f = _write_settings(
            tmp_path / "0.settings",
            {
                "publicSettings": {"fileUri": "https://x/run.sh"},
                "protectedSettingsCertThumbprint": "AB",
                "protectedSettings": _protected({}),
            },
        )
        with pytest.raises(DecryptionError):
            ConfigLoader(f).load()

    def test_decryptor_failure_is_decryption_error(self, tmp_path):
        f = _write_settings(
            tmp_path / "0.settings",
            {
                "publicSettings": {"fileUri": "https://x/run.sh"},
                "protectedSettingsCertThumbprint": "AB",
                "protectedSettings": _protected({}),
            },
        )
        with pytest.raises(DecryptionError) as ei:
            ConfigLoader(f, FakeDecryptor(fail=RuntimeError("bad key"))).load()
        assert isinstance(ei.value.cause, RuntimeError)
        # DecryptionError is also a ConfigLoadError
        assert isinstance(ei.value, ConfigLoadError)

    def test_plaintext_not_json(self, tmp_path):
        f = _write_settings(
            tmp_path / "0.settings",
            {
                "publicSettings": {"fileUri": "https://x/run.sh"},
                "protectedSettingsCertThumbprint": "AB",
                "protectedSettings": base64.b64encode(b"\x00\x01garbage").decode("ascii"),
            },
        )
        with pytest.raises(DecryptionError):
            ConfigLoader(f, FakeDecryptor()).load()

    def test_bad_base64(self, tmp_path):
        f = _write_settings(
            tmp_path / "0.settings",
            {
                "publicSettings": {"fileUri": "https://x/run.sh"},
                "protectedSettingsCertThumbprint": "AB",
                "protectedSettings": "!!!not base64!!!",
            },
        )
        with pytest.raises(DecryptionError):
            ConfigLoader(f, FakeDecryptor()).load()


@pytest.mark.unit
class TestResolveSettingsFile:
    def test_file_is_used_as_is(self, tmp_path):
        f = tmp_path / "x.json"
        assert resolve_settings_file(f) == f

    def test_directory_picks_highest_sequence(self, tmp_path):
        for n in (0, 2, 10):
            (tmp_path / f"{n}.settings").write_text("{}", encoding="utf-8")
        (tmp_path / "HandlerState").write_text("", encoding="utf-8")
        assert resolve_settings_file(tmp_path) == tmp_path / "10.settings"

    def test_empty_directory(self, tmp_path):
        with pytest.raises(ConfigLoadError):
            resolve_settings_file(tmp_path)


@pytest.mark.unit
class TestPublicSettings:
    def test_string_dependencies_and_arguments(self):
        ps = PublicSettings.from_mapping(
            {
                "fileUri": " https://x/run.sh ",
                "dependencyFileUris": "https://x/a.zip; https://x/b.zip",
                "scriptArguments": "-Mode 'full install'",
                "scriptSentinelFileName": "sentinel.txt",
            }
        )
        assert ps.script_uri == "https://x/run.sh"
        assert ps.dependency_uris == ("https://x/a.zip", "https://x/b.zip")
        assert ps.script_arguments == ("-Mode", "full install")
        assert ps.sentinel_blob_name == "sentinel.txt"

    def test_comma_inside_uri_is_kept(self):
        ps = PublicSettings.from_mapping(
            {"fileUri": "https://x/run.sh", "dependencyFileUris": "https://x/a.zip?rscd=a,b;https://x/b.zip"}
        )
        assert ps.dependency_uris == ("https://x/a.zip?rscd=a,b", "https://x/b.zip")

    def test_key_hidden_from_repr(self, account_key):
        ps = PublicSettings.from_mapping({"fileUri": "https://x/r.sh", "storageAccountKey": account_key})
        assert account_key not in repr(ps)


@pytest.mark.unit
@pytest.mark.security
class TestCertificateDecryptor:
    def test_missing_certificate(self, tmp_path):
        with pytest.raises(DecryptionError) as ei:
            CertificateDecryptor(tmp_path).decrypt(b"x", "abcdef")
        assert ei.value.context["thumbprint"] == "ABCDEF"

    def test_finds_lowercase_files(self, tmp_path):
        (tmp_path / "abcdef.crt").write_text("c", encoding="utf-8")
        (tmp_path / "abcdef.prv").write_text("p", encoding="utf-8")
        crt, prv = CertificateDecryptor(tmp_path).find_certificate("ABCDEF")
        assert crt.name == "abcdef.crt"
        assert prv.name == "abcdef.prv"

    def test_unreadable_certificate(self, tmp_path):
        (tmp_path / "AB.crt").write_text("not a certificate", encoding="utf-8")
        (tmp_path / "AB.prv").write_text("not a key", encoding="utf-8")
        with pytest.raises(DecryptionError):
            CertificateDecryptor(tmp_path).decrypt(b"x", "AB")


THUMBPRINT = "0A1B2C3D4E5F"


def _self_signed(key):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "vmbootstrap-test")])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )


@pytest.fixture(scope="module")
def rsa_pair():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key, _self_signed(key)


def _install_pair(cert_dir, key, cert, *, der=False):
    enc = serialization.Encoding.DER if der else serialization.Encoding.PEM
    (cert_dir / f"{THUMBPRINT}.crt").write_bytes(cert.public_bytes(enc))
    (cert_dir / f"{THUMBPRINT}.prv").write_bytes(
        key.private_bytes(enc, serialization.PrivateFormat.PKCS8, serialization.NoEncryption())
    )


def _envelope(cert, plaintext):
    return pkcs7.PKCS7EnvelopeBuilder().set_data(plaintext).add_recipient(cert).encrypt(serialization.Encoding.DER, [])


@pytest.mark.unit
@pytest.mark.security
class TestEnvelopeDecryption:
    @pytest.mark.parametrize("der", [False, True])
    def test_round_trip(self, tmp_path, rsa_pair, der):
        key, cert = rsa_pair
        _install_pair(tmp_path, key, cert, der=der)
        secret = b'{"storageAccountName": "acct", "storageAccountKey": "a2V5"}'

        assert CertificateDecryptor(tmp_path).decrypt(_envelope(cert, secret), THUMBPRINT.lower()) == secret

    def test_loader_end_to_end(self, tmp_path, rsa_pair, account_key):
        key, cert = rsa_pair
        certs = tmp_path / "certs"
        certs.mkdir()
        _install_pair(certs, key, cert)
        private = json.dumps({"storageAccountName": "acct", "storageAccountKey": account_key}).encode("utf-8")
        f = _write_settings(
            tmp_path / "0.settings",
            {
                "publicSettings": {"fileUri": "https://x/run.ps1"},
                "protectedSettingsCertThumbprint": THUMBPRINT,
                "protectedSettings": base64.b64encode(_envelope(cert, private)).decode("ascii"),
            },
        )

        pc = ConfigLoader(f, CertificateDecryptor(certs)).load()

        assert pc.credential.account_name == "acct"
        assert pc.credential.account_key == account_key

    def test_envelope_for_another_certificate(self, tmp_path, rsa_pair):
        key, cert = rsa_pair
        _install_pair(tmp_path, key, cert)
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        ciphertext = _envelope(_self_signed(other_key), b"{}")

        with pytest.raises(DecryptionError):
            CertificateDecryptor(tmp_path).decrypt(ciphertext, THUMBPRINT)

    def test_garbage_ciphertext(self, tmp_path, rsa_pair):
        key, cert = rsa_pair
        _install_pair(tmp_path, key, cert)
        with pytest.raises(DecryptionError):
            CertificateDecryptor(tmp_path).decrypt(b"\x30\x03garbage", THUMBPRINT)

    def test_non_rsa_key_rejected(self, tmp_path):
        key = ec.generate_private_key(ec.SECP256R1())
        _install_pair(tmp_path, key, _self_signed(key))
        with pytest.raises(DecryptionError) as ei:
            CertificateDecryptor(tmp_path).decrypt(b"x", THUMBPRINT)
        assert "RSA" in str(ei.value)
