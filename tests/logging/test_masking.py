import io
import logging

import pytest

from kubeseed.logging.masking import (
    MaskingFilter,
    clear_registered,
    is_username_key,
    mask_password,
    mask_username,
    preview,
    redact,
    register_secret,
)


@pytest.fixture(autouse=True)
def _clean_registry():
    clear_registered()
    yield
    clear_registered()


@pytest.fixture
def captured():
    """A private logger with only a masking handler attached."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(MaskingFilter())
    logger = logging.getLogger("kubeseed.test.masking")
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    yield logger, stream
    logger.handlers = []


def _substrings(value, size=5):
    return {value[i:i + size] for i in range(len(value) - size + 1)}


@pytest.mark.parametrize(
    "key,expected",
    [
        ("REGISTRY_USERNAME", True),
        ("DB_USER", True),
        ("ADMIN_LOGIN", True),
        ("DB_USER_NAME", True),
        ("DB_PASSWORD", False),
        ("USER_TOKEN", False),
    ],
)
def test_is_username_key(key, expected):
    assert is_username_key(key) is expected


def test_username_preview():
    assert mask_username("deploy-bot") == "de****ot"
    assert mask_username("bob") == "****"
    assert preview("REGISTRY_USERNAME", "deploy-bot") == "de****ot"


def test_password_preview_reveals_only_length():
    assert mask_password("s3cr3t-value") == "**** (len=12)"
    assert preview("REGISTRY_PASSWORD", "s3cr3t-value") == "**** (len=12)"
    assert preview("API_KEY", "abc") == "**** (len=3)"


def test_redact_prefers_longest_match():
    register_secret("abcd")
    register_secret("abcdefgh1234")
    assert redact("token=abcdefgh1234") == "token=**** (len=12)"


def test_registered_secrets_never_reach_the_handler(captured):
    logger, stream = captured
    password = "Zq81mXv0pLr7sT2u"
    register_secret(password)

    logger.info("connecting with %s", password)
    logger.info(f"url=postgresql://u:{password}@db:5432/app")
    logger.warning("retrying %s times for %s", 3, password)

    out = stream.getvalue()
    assert out.count("**** (len=16)") == 3
    for chunk in _substrings(password):
        assert chunk not in out


def test_unregistered_messages_are_untouched(captured):
    logger, stream = captured
    logger.info("step %s ready", "database-server")
    assert stream.getvalue() == "step database-server ready\n"
