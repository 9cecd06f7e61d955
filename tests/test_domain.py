# tests/test_domain.py
import pytest

from pkg_multiauth.domain.constants import CACHE_KEY_PREFIX, ValidationErrorKind
from pkg_multiauth.domain.entities import (
    CacheEntry,
    IssuerProfile,
    KeySet,
    StoredJWKS,
    ValidatedClaims,
    ValidationResult,
)
from pkg_multiauth.domain.exceptions import ConfigurationError, MissingIssuerError, ValidationError
from pkg_multiauth.domain.value_objects import (
    UnverifiedToken,
    audience_matches,
    issuer_cache_key,
    normalize_audience,
)


def test_issuer_profile_from_mapping():
    profile = IssuerProfile.from_mapping("customer", {
        "issuer": "https://auth.example.com",
        "jwks_url": "https://auth.example.com/auth/jwks",
        "audience": "my-api",
        "cache_ttl": 600,
    })
    assert profile.issuer_type == "customer"
    assert profile.issuer_url == "https://auth.example.com"
    assert profile.audience == "my-api"
    assert profile.cache_ttl == 600.0

    # defaults + issuer_url alias
    profile = IssuerProfile.from_mapping("employee", {
        "issuer_url": "https://admin.example.com",
        "jwks_url": "https://admin.example.com/jwks",
    })
    assert profile.issuer_url == "https://admin.example.com"
    assert profile.audience is None
    assert profile.cache_ttl == 3600.0


@pytest.mark.parametrize(
    "config",
    [
        {"jwks_url": "https://x/jwks"},
        {"issuer": "https://x"},
        {"issuer": "https://x", "jwks_url": "https://x/jwks", "cache_ttl": "soon"},
        {"issuer": "https://x", "jwks_url": "https://x/jwks", "cache_ttl": 0},
        "not-a-mapping",
    ],
)
def test_issuer_profile_rejects_bad_config(config):
    with pytest.raises(ConfigurationError):
        IssuerProfile.from_mapping("customer", config)


def test_issuer_profile_is_immutable(customer_profile):
    with pytest.raises(AttributeError):
        customer_profile.audience = "other"


def test_key_set_candidates():
    key_set = KeySet(keys={"a": "key-a", "b": "key-b"})
    assert "a" in key_set
    assert "z" not in key_set
    assert len(key_set) == 2
    assert key_set.kids == ("a", "b")
    assert key_set.candidates("a") == ["key-a"]
    assert key_set.candidates("z") == []
    assert key_set.candidates(None) == ["key-a", "key-b"]


def test_cache_entry_freshness_and_kid():
    entry = CacheEntry(key_set=KeySet(keys={"a": "key-a"}), fetched_at=1000.0)
    assert entry.is_fresh(ttl=60, now=1059.0)
    assert not entry.is_fresh(ttl=60, now=1060.0)
    assert entry.age(1100.0) == 100.0
    assert entry.satisfies(None)
    assert entry.satisfies("a")
    assert not entry.satisfies("b")


def test_stored_jwks_document_format():
    stored = StoredJWKS(jwks={"keys": [{"kid": "k1"}]}, fetched_at=1234)
    document = stored.to_document()
    assert document == {"jwks": {"keys": [{"kid": "k1"}]}, "time": 1234}
    assert StoredJWKS.from_document(document) == StoredJWKS(jwks={"keys": [{"kid": "k1"}]}, fetched_at=1234.0)


@pytest.mark.parametrize(
    "document",
    [
        None,
        [],
        {"time": 1},
        {"jwks": {"keys": []}},
        {"jwks": "nope", "time": 1},
        {"jwks": {"keys": []}, "time": "yesterday"},
        {"jwks": {"keys": []}, "time": True},
    ],
)
def test_stored_jwks_rejects_corrupt_documents(document):
    with pytest.raises(ValueError):
        StoredJWKS.from_document(document)


def test_validated_claims():
    payload = {"iss": "https://a.example", "sub": "u1", "aud": ["x", "y"], "exp": 10, "nbf": 5}
    claims = ValidatedClaims(payload, issuer_type="customer", kid="k1")

    assert claims == {**payload, "issuer_type": "customer"}
    assert claims["sub"] == "u1"
    assert claims.issuer_type == "customer"
    assert claims.issuer == "https://a.example"
    assert claims.subject == "u1"
    assert claims.audiences == ("x", "y")
    assert claims.expires_at == 10
    assert claims.not_before == 5
    assert claims.kid == "k1"
    assert claims.to_dict() == {**payload, "issuer_type": "customer"}

    # the original payload is not touched
    assert "issuer_type" not in payload


def test_validated_claims_overrides_token_issuer_type():
    claims = ValidatedClaims({"iss": "x", "issuer_type": "employee"}, issuer_type="customer")
    assert claims["issuer_type"] == "customer"


def test_validation_result():
    ok = ValidationResult(claims=ValidatedClaims({"iss": "x"}, issuer_type="customer"))
    assert ok.ok
    assert ok.kind is None

    failed = ValidationResult(error=MissingIssuerError())
    assert not failed.ok
    assert failed.kind is ValidationErrorKind.MISSING_ISSUER


def test_validation_error_messages():
    exc = MissingIssuerError("Token has no 'iss' claim", kid="k1")
    assert isinstance(exc, ValidationError)
    assert exc.detail == "Token has no 'iss' claim"
    assert exc.public_message == "Unauthorized"
    assert exc.kid == "k1"

    exc.with_context(issuer="https://a.example", kid="other")
    assert exc.issuer == "https://a.example"
    assert exc.kid == "k1"

    assert MissingIssuerError().detail == "missing_issuer"


def test_unverified_token_accessors():
    token = UnverifiedToken(
        raw="a.b.c",
        header={"alg": "RS256", "kid": "k1"},
        payload={"iss": "https://a.example"},
    )
    assert token.kid == "k1"
    assert token.algorithm == "RS256"
    assert token.issuer == "https://a.example"

    assert UnverifiedToken(raw="a.b.c", payload={"iss": ""}).issuer is None
    assert UnverifiedToken(raw="a.b.c", payload={"iss": 42}).issuer is None


def test_issuer_cache_key():
    key = issuer_cache_key("customer")
    assert key.startswith(CACHE_KEY_PREFIX)
    assert key == issuer_cache_key("customer")
    assert key != issuer_cache_key("employee")
    assert "/" not in issuer_cache_key("../../etc/passwd")


def test_audience_helpers():
    assert normalize_audience("a") == ("a",)
    assert normalize_audience(["a", 1, "b"]) == ("a", "b")
    assert normalize_audience(None) == ()
    assert audience_matches("my-api", "my-api")
    assert audience_matches(["other", "my-api"], "my-api")
    assert not audience_matches("my-api-2", "my-api")
    assert not audience_matches(None, "my-api")
