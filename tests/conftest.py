import pytest

from pkg_multiauth.adapters.cache.memory_backend import MemoryCacheBackend
from pkg_multiauth.application.key_cache import KeyCache
from pkg_multiauth.application.persistent_cache import PersistentKeyCache
from pkg_multiauth.application.use_cases.validate import MultiIssuerJWTValidator
from pkg_multiauth.domain.entities import IssuerProfile

from jwt_helpers import (
    CUSTOMER_ISS,
    CUSTOMER_JWKS_URL,
    EMPLOYEE_ISS,
    EMPLOYEE_JWKS_URL,
    FakeClock,
    FakeFetcher,
    generate_rsa_key,
    jwks_document,
    public_jwk,
)


@pytest.fixture(scope="session")
def customer_key():
    return generate_rsa_key()


@pytest.fixture(scope="session")
def employee_key():
    return generate_rsa_key()


@pytest.fixture(scope="session")
def rotated_key():
    return generate_rsa_key()


@pytest.fixture
def customer_profile():
    return IssuerProfile(
        issuer_type="customer",
        issuer_url=CUSTOMER_ISS,
        jwks_url=CUSTOMER_JWKS_URL,
        audience="my-api",
        cache_ttl=3600,
    )


@pytest.fixture
def employee_profile():
    return IssuerProfile(
        issuer_type="employee",
        issuer_url=EMPLOYEE_ISS,
        jwks_url=EMPLOYEE_JWKS_URL,
        cache_ttl=3600,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher(customer_key, employee_key):
    return FakeFetcher({
        CUSTOMER_JWKS_URL: jwks_document(public_jwk(customer_key, "cust-1")),
        EMPLOYEE_JWKS_URL: jwks_document(public_jwk(employee_key, "emp-1")),
    })


@pytest.fixture
def shared_store():
    """Stands in for the cross-process store shared by sibling workers."""
    return MemoryCacheBackend()


@pytest.fixture
def make_validator(customer_profile, employee_profile, fetcher, clock, shared_store):
    def _make(profiles=None, *, backends=None, fetcher_=None, **cache_options):
        persistent = PersistentKeyCache(
            backends=[shared_store] if backends is None else backends,
            clock=clock,
        )
        key_cache = KeyCache(fetcher_ or fetcher, persistent, clock=clock, **cache_options)
        return MultiIssuerJWTValidator(
            profiles if profiles is not None else [customer_profile, employee_profile],
            key_cache,
        )

    return _make


@pytest.fixture
def validator(make_validator):
    return make_validator()
