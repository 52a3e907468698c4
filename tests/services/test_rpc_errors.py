import pytest

from antenna.core.errors import ProviderError, ProviderErrorKind
from antenna.services.rpc_errors import (
    ERROR_MAP,
    classify_error_kind,
    classify_rpc_error,
    decode_contract_error,
)


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ('could not coalesce error (error={ "code": -32000, "data": "BAD_DATA" })', "contract may not be deployed on base"),
        ("could not decode result data", "empty response"),
        ("NETWORK_ERROR: could not connect", "network error"),
        ("connect ECONNREFUSED 127.0.0.1:8545", "network error"),
        ("fetch failed", "network error"),
        ("getaddrinfo ENOTFOUND bad-rpc.example.com", "network error"),
        ("HTTP 429 Too Many Requests", "rate limit"),
        ("rate limit exceeded for project", "rate limit"),
        ("too many requests", "rate limit"),
        ("request quota exceeded", "rate limit"),
        ("request throttled by provider", "rate limit"),
    ],
)
def test_classify_rpc_error_hints(message, expected):
    hint = classify_rpc_error(RuntimeError(message), "getTopic", "base")
    assert hint is not None
    assert expected in hint
    assert hint.startswith("getTopic failed")


def test_classify_rpc_error_unknown():
    assert classify_rpc_error(RuntimeError("some random error"), "getTopic", "base") is None


def test_rate_limit_hint_names_method_and_chain():
    hint = classify_rpc_error(ProviderError("HTTP 429"), "eth_getLogs", "avalanche")
    assert "eth_getLogs" in hint
    assert "avalanche" in hint


@pytest.mark.parametrize(
    ("message", "kind"),
    [
        ("could not decode result data", ProviderErrorKind.WRONG_NETWORK),
        ("NETWORK_ERROR: refused", ProviderErrorKind.NETWORK),
        ("HTTP 503 server error", ProviderErrorKind.TRANSIENT),
        ("request timeout", ProviderErrorKind.TRANSIENT),
        ("execution reverted", ProviderErrorKind.PERMANENT),
    ],
)
def test_classify_error_kind(message, kind):
    assert classify_error_kind(ProviderError(message)) is kind


def test_error_map_has_known_selectors():
    assert len(ERROR_MAP) == 17
    assert all(len(selector) == 10 and selector.startswith("0x") for selector in ERROR_MAP)


def test_decode_contract_error_from_message():
    err = RuntimeError('execution reverted (action="estimateGas", data="0xea8e4eb5", reason=null)')
    assert decode_contract_error(err).startswith("NotAuthorized")


def test_decode_contract_error_from_bare_selector():
    err = RuntimeError("reverted with 0x16ea6d54")
    assert decode_contract_error(err).startswith("PublicKeyNotRegistered")


def test_decode_contract_error_from_data_attribute():
    err = ProviderError("execution reverted", code=3, data="0x04A29D55")
    assert decode_contract_error(err).startswith("TopicNotFound")


def test_decode_contract_error_from_nested_info():
    err = RuntimeError("call failed")
    err.info = {"error": {"data": "0xf4d678b8" + "00" * 32}}
    assert decode_contract_error(err).startswith("InsufficientBalance")


def test_decode_contract_error_unknown_returns_message():
    err = RuntimeError('execution reverted (data="0xdeadbeef")')
    assert decode_contract_error(err) == 'execution reverted (data="0xdeadbeef")'
