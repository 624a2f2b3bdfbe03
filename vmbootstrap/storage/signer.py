# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmbootstrap/storage/signer.py
"""
SharedKeyLite request signing for the blob endpoint.

String to sign (newline-joined):

    VERB
    <empty Content-MD5>
    <empty Content-Type>
    <empty Date; the date travels in x-ms-date>
    name1:value1\\nname2:value2...      (lower-cased, ordinal sort)
    /<account><uri path>

The HMAC-SHA256 of that string, keyed with the base64-decoded account key,
is base64 encoded and sent as ``Authorization: SharedKeyLite <account>:<sig>``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from typing import Dict, Mapping
from urllib.parse import urlsplit

from .exceptions import wrap_invalid_key, wrap_signing_error
from .models import AUTH_SCHEME, BLOB_TYPE_HEADER, DATE_HEADER, SigningRequest, StorageCredential


def canonicalize_headers(headers: Mapping[str, str]) -> str:
    lowered: Dict[str, str] = {}
    for name, value in headers.items():
        key = name.strip().lower()
        if key in lowered:
            raise wrap_signing_error(f"Duplicate header after lower-casing: {key}", header=key)
        lowered[key] = str(value)
    # sorted() on str compares code points, which is the ordinal order the
    # service uses; locale never enters into it.
    return "\n".join(f"{k}:{lowered[k]}" for k in sorted(lowered))


def canonicalize_resource(account_name: str, target_uri: str) -> str:
    return f"/{account_name}{urlsplit(target_uri).path}"


def decode_account_key(account_key: str) -> bytes:
    try:
        return base64.b64decode(account_key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise wrap_invalid_key("Storage account key is not valid base64", e) from e


class RequestSigner:
    """Pure, stateless signer. Identical inputs always give identical tokens."""

    scheme = AUTH_SCHEME

    @staticmethod
    def _validate(request: SigningRequest) -> None:
        if request.header(DATE_HEADER) is None:
            raise wrap_signing_error(f"Request is missing the {DATE_HEADER} header", uri=request.target_uri)
        if request.method == "PUT" and request.header(BLOB_TYPE_HEADER) is None:
            raise wrap_signing_error(f"PUT request is missing the {BLOB_TYPE_HEADER} header", uri=request.target_uri)

    @classmethod
    def string_to_sign(cls, credential: StorageCredential, request: SigningRequest) -> str:
        cls._validate(request)
        return "\n".join(
            [
                request.method,
                "",  # Content-MD5
                "",  # Content-Type
                "",  # Date
                canonicalize_headers(request.headers),
                canonicalize_resource(credential.account_name, request.target_uri),
            ]
        )

    @classmethod
    def sign_request(cls, credential: StorageCredential, request: SigningRequest) -> str:
        key = decode_account_key(credential.account_key)
        payload = cls.string_to_sign(credential, request)
        digest = hmac.new(key, payload.encode("utf-8"), hashlib.sha256).digest()
        signature = base64.b64encode(digest).decode("ascii")
        return f"{cls.scheme} {credential.account_name}:{signature}"

    @classmethod
    def sign(
        cls,
        credential: StorageCredential,
        method: str,
        target_uri: str,
        headers: Mapping[str, str],
    ) -> str:
        return cls.sign_request(credential, SigningRequest(method=method, target_uri=target_uri, headers=headers))
