# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/config/decryptor.py
"""
Protected-settings decryption.

The host agent drops the tenant certificate for each extension into a
certificate directory as ``<THUMBPRINT>.crt`` (public) and ``<THUMBPRINT>.prv``
(private key), PEM or DER. Protected settings are a PKCS#7 enveloped-data blob
(DER) addressed to that certificate.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs7

from ..core.exceptions import wrap_decryption_error

LOG = logging.getLogger(__name__)

_PEM_MARKER = b"-----BEGIN"


class Decryptor(Protocol):
    def decrypt(self, ciphertext: bytes, thumbprint: str) -> bytes:
        """Return the plaintext or raise DecryptionError."""
        ...


def load_certificate(path: Path) -> x509.Certificate:
    data = path.read_bytes()
    if _PEM_MARKER in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def load_private_key(path: Path) -> rsa.RSAPrivateKey:
    data = path.read_bytes()
    if _PEM_MARKER in data:
        key = serialization.load_pem_private_key(data, password=None)
    else:
        key = serialization.load_der_private_key(data, password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise TypeError(f"{path.name} holds a {type(key).__name__}; PKCS#7 envelopes need an RSA key")
    return key


class CertificateDecryptor:
    """Opens PKCS#7 envelopes with the certificate pair on disk."""

    def __init__(self, cert_dir: Union[str, Path], *, logger: Optional[logging.Logger] = None):
        self.cert_dir = Path(cert_dir)
        self.logger = logger or LOG

    def find_certificate(self, thumbprint: str) -> Tuple[Path, Path]:
        tp = thumbprint.strip().upper()
        for name in (tp, tp.lower()):
            crt = self.cert_dir / f"{name}.crt"
            prv = self.cert_dir / f"{name}.prv"
            if crt.is_file() and prv.is_file():
                return crt, prv
        raise wrap_decryption_error(
            f"No certificate with thumbprint {tp} in {self.cert_dir}",
            thumbprint=tp,
            cert_dir=str(self.cert_dir),
        )

    def decrypt(self, ciphertext: bytes, thumbprint: str) -> bytes:
        crt, prv = self.find_certificate(thumbprint)
        try:
            certificate = load_certificate(crt)
            private_key = load_private_key(prv)
        except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise wrap_decryption_error(f"Cannot load certificate {crt.stem}: {e}", e, thumbprint=thumbprint) from e

        self.logger.debug("Decrypting protected settings with %s", crt.name)
        try:
            return pkcs7.pkcs7_decrypt_der(ciphertext, certificate, private_key, [])
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise wrap_decryption_error(f"Protected settings did not decrypt: {e}", e, thumbprint=thumbprint) from e
