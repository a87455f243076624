"""Identity Resolver: profile normalization, resolution order, provisioning."""

import uuid

import pytest

from tracker.auth.identity import IdentityResolver, LegacyIdentityShim, Principal, legacy_key
from tracker.errors import DuplicateError, ValidationError


class TestPrincipalFromProfile:
    def test_top_level_email_is_normalized(self):
        principal = Principal.from_profile({"email": "  Ada@Example.COM "})
        assert principal.email == "ada@example.com"

    def test_first_email_of_emails_list(self):
        principal = Principal.from_profile(
            {
                "displayName": "Ada Lovelace",
                "emails": [{"value": ""}, {"value": "Ada@Example.com", "verified": True}],
            }
        )
        assert principal.email == "ada@example.com"
        assert principal.display_name == "Ada Lovelace"

    def test_emails_list_of_strings(self):
        assert Principal.from_profile({"emails": ["grace@example.com"]}).email == "grace@example.com"

    def test_structured_name(self):
        principal = Principal.from_profile({"name": {"givenName": "Grace", "familyName": "Hopper"}})
        assert principal.display_name == "Grace Hopper"

    def test_subject_from_id(self):
        principal = Principal.from_profile({"id": 1700000123})
        assert principal.email is None
        assert principal.subject == "1700000123"

    def test_fallback_name_uses_email_local_part(self):
        assert Principal(email="ada@example.com").fallback_name == "ada"


class TestLegacyKey:
    def test_prefix_and_leading_zeros_are_ignored(self):
        assert legacy_key("emp-000123") == "legacy:123"
        assert legacy_key("123") == "legacy:123"

    def test_no_digits_means_no_key(self):
        assert legacy_key("admin") is None
        assert legacy_key("") is None
        assert legacy_key(None) is None

    def test_very_long_digit_runs(self):
        assert legacy_key("emp-" + "9" * 5000) == "legacy:" + "9" * 5000


class TestResolve:
    async def test_by_email(self, repo, make_user):
        user = await make_user("ada@example.com")
        assert await IdentityResolver(repo).resolve(Principal(email="ada@example.com")) == user.id

    async def test_email_wins_over_subject(self, repo, make_user):
        ada = await make_user("ada@example.com")
        grace = await make_user("grace@example.com")
        principal = Principal(email="ada@example.com", subject=str(grace.id))
        assert await IdentityResolver(repo).resolve(principal) == ada.id

    async def test_by_durable_id(self, repo, make_user):
        user = await make_user("ada@example.com")
        principal = Principal(email=None, subject=str(user.id))
        assert await IdentityResolver(repo).resolve(principal) == user.id

    async def test_by_legacy_id(self, repo, make_user):
        user = await make_user("ada@example.com")
        async with repo.atomic():
            await LegacyIdentityShim(repo).register("emp-000123", user.id)

        principal = Principal(email=None, subject="123")
        assert await IdentityResolver(repo, legacy_enabled=True).resolve(principal) == user.id

    async def test_legacy_lookup_can_be_switched_off(self, repo, make_user):
        user = await make_user("ada@example.com")
        async with repo.atomic():
            await LegacyIdentityShim(repo).register("emp-000123", user.id)

        principal = Principal(email=None, subject="emp-123")
        assert await IdentityResolver(repo, legacy_enabled=False).resolve(principal) is None

    async def test_colliding_legacy_key_stays_with_first_user(self, repo, make_user):
        ada_id = (await make_user("ada@example.com")).id
        bob_id = (await make_user("bob@example.com")).id
        shim = LegacyIdentityShim(repo)
        async with repo.atomic():
            await shim.register("emp-12-3", ada_id)

        with pytest.raises(DuplicateError) as exc_info:
            async with repo.atomic():
                await shim.register("emp-123", bob_id)
        assert exc_info.value.details["duplicates"] == ["emp-12-3", "emp-123"]

        resolver = IdentityResolver(repo, legacy_enabled=True)
        assert await resolver.resolve(Principal(email=None, subject="emp-12-3")) == ada_id

    async def test_registering_again_for_same_user_is_a_no_op(self, repo, make_user):
        ada_id = (await make_user("ada@example.com")).id
        shim = LegacyIdentityShim(repo)
        async with repo.atomic():
            await shim.register("emp-000123", ada_id)
        async with repo.atomic():
            assert await shim.register("123", ada_id) == "legacy:123"

        entry = await repo.get_legacy_identity("legacy:123")
        assert entry.user_id == ada_id
        assert entry.legacy_id == "emp-000123"

    async def test_legacy_id_too_long_to_register(self, repo, make_user):
        ada_id = (await make_user("ada@example.com")).id
        with pytest.raises(ValidationError):
            await LegacyIdentityShim(repo).register("emp-" + "1" * 100, ada_id)

    async def test_legacy_id_too_long_to_look_up(self, repo):
        principal = Principal(email=None, subject="1" * 100)
        assert await IdentityResolver(repo, legacy_enabled=True).resolve(principal) is None

    async def test_unknown_principal(self, repo):
        principal = Principal(email="nobody@example.com", subject=str(uuid.uuid4()))
        assert await IdentityResolver(repo).resolve(principal) is None


class TestProvisioning:
    async def test_unknown_email_becomes_employee(self, repo):
        principal = Principal(email="new@example.com", display_name="New Person")
        user = await IdentityResolver(repo).resolve_or_provision(principal)

        assert user.email == "new@example.com"
        assert user.name == "New Person"
        assert user.role == "employee"
        assert not user.protected

    async def test_provisioning_is_idempotent(self, repo):
        resolver = IdentityResolver(repo)
        first = await resolver.resolve_or_provision(Principal(email="new@example.com"))
        second = await resolver.resolve_or_provision(Principal(email="new@example.com"))
        assert first.id == second.id

    async def test_no_email_and_no_match_is_not_provisioned(self, repo):
        principal = Principal(email=None, subject="no-digits-here")
        assert await IdentityResolver(repo).resolve_or_provision(principal) is None

    async def test_long_display_name_is_cut_to_column_width(self, repo):
        principal = Principal(email="long@example.com", display_name="A" * 300)
        user = await IdentityResolver(repo).resolve_or_provision(principal)
        assert len(user.name) == 255

    async def test_resolve_target_by_email(self, repo, make_user):
        user = await make_user("ada@example.com")
        target = await IdentityResolver(repo).resolve_target(email=" ADA@example.com ")
        assert target.id == user.id
