"""
Bearer token parsing and verification
"""
from datetime import timedelta

from marketplace.core.security import bearer_token, issue_access_token, token_subject


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc.def") == "abc.def"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


def test_token_subject_round_trip():
    token = issue_access_token("65f0c0ffee0000000000abcd")
    assert token_subject(token) == "65f0c0ffee0000000000abcd"


def test_expired_token_is_rejected():
    token = issue_access_token("65f0c0ffee0000000000abcd", lifetime=timedelta(seconds=-1))
    assert token_subject(token) is None


def test_tampered_token_is_rejected():
    token = issue_access_token("65f0c0ffee0000000000abcd")
    header_and_claims = token.rsplit(".", 1)[0]
    assert token_subject(f"{header_and_claims}.invalidsignature") is None
