# SPDX-License-Identifier: LGPL-3.0-or-later
import base64
import logging
import os
import sys
from pathlib import Path

import pytest

_THIS_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _THIS_DIR.parent

for _p in (_REPO_ROOT, _THIS_DIR):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

os.environ.setdefault("PYTHONPATH", str(_REPO_ROOT))


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, no network, no root")
    config.addinivalue_line("markers", "security: secret handling and signing")


@pytest.fixture
def account_key():
    return base64.b64encode(b"0123456789abcdef0123456789abcdef").decode("ascii")


@pytest.fixture
def credential(account_key):
    from vmbootstrap.storage.models import StorageCredential

    return StorageCredential(account_name="acct", account_key=account_key)


@pytest.fixture
def test_logger():
    logger = logging.getLogger("vmbootstrap_tests")
    logger.setLevel(logging.DEBUG)
    return logger
