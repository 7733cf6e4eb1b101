"""Tests for identity and the re-authentication gate."""

import pytest

from budget_ledger.exceptions import ReauthenticationError, ValidationError
from budget_ledger.services.auth import (
    Identity,
    IdentityProvider,
    InMemoryIdentityProvider,
    ReauthGate,
    pwd_context,
)
from tests.conftest import PASSWORD, USER_ID, USER_NAME


class TestInMemoryIdentityProvider:
    """Test password verification and the session user."""

    def test_verify_password(self, identity_provider: InMemoryIdentityProvider):
        assert identity_provider.verify_password(USER_ID, PASSWORD) is True
        assert identity_provider.verify_password(USER_ID, "wrong") is False
        assert identity_provider.verify_password("someone-else", PASSWORD) is False

    def test_stores_bcrypt_hash_not_password(self):
        provider = InMemoryIdentityProvider()
        provider.register("u-1", "s3cret")

        stored = provider._users["u-1"]

        assert stored != "s3cret"
        assert pwd_context.identify(stored) == "bcrypt"
        assert provider.verify_password("u-1", "s3cret") is True

    def test_sign_in_sets_current_user(self, identity_provider: InMemoryIdentityProvider):
        assert identity_provider.current_user() is None

        user = identity_provider.sign_in(USER_ID)

        assert identity_provider.current_user() == user == Identity(USER_ID, USER_NAME)
        identity_provider.sign_out()
        assert identity_provider.current_user() is None

    def test_sign_in_unknown_user(self, identity_provider: InMemoryIdentityProvider):
        with pytest.raises(KeyError):
            identity_provider.sign_in("ghost")

    def test_satisfies_protocol(self, identity_provider: InMemoryIdentityProvider):
        assert isinstance(identity_provider, IdentityProvider)

    def test_display_name_falls_back_to_id(self):
        assert Identity("u-7").name == "u-7"


class TestReauthGate:
    """Test the password challenge for guarded actions."""

    def test_correct_password_passes(self, identity_provider, actor):
        ReauthGate(identity_provider).require("po.close", actor, PASSWORD)

    @pytest.mark.parametrize("password", [None, "", "   "])
    def test_missing_password(self, identity_provider, actor, password):
        with pytest.raises(ReauthenticationError, match="Password is required"):
            ReauthGate(identity_provider).require("po.cancel", actor, password)

    def test_wrong_password(self, identity_provider, actor):
        with pytest.raises(ReauthenticationError) as exc_info:
            ReauthGate(identity_provider).require("invoice.cancel", actor, "hunter2")

        assert exc_info.value.action == "invoice.cancel"
        # Reauth failures are validation errors: nothing has been written
        assert isinstance(exc_info.value, ValidationError)
