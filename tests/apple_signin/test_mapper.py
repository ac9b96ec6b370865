import json

import pytest

import apple_signin as m


def _claims(**payload: object) -> m.IdentityClaims:
    base = {"iss": "https://appleid.apple.com", "sub": "sub-value", "email": "a@b.com"}
    base.update(payload)
    return m.IdentityClaims.from_mapping(base)


@pytest.fixture
def mapper() -> m.IdentityMapper:
    return m.IdentityMapper()


class TestIdentityMapper:
    def test_maps_subject_and_email(self, mapper: m.IdentityMapper):
        identity = mapper.map(_claims())

        assert identity.id == "sub-value"
        assert identity.email == "a@b.com"
        assert identity.name is None
        assert identity.raw["iss"] == "https://appleid.apple.com"

    def test_missing_subject_raises(self, mapper: m.IdentityMapper):
        with pytest.raises(m.MappingError) as exc_info:
            mapper.map(m.IdentityClaims.from_mapping({"email": "a@b.com"}))

        assert exc_info.value.kind is m.ErrorKind.MAPPING

    def test_missing_email_is_none(self, mapper: m.IdentityMapper):
        identity = mapper.map(m.IdentityClaims.from_mapping({"sub": "s"}))

        assert identity.email is None

    def test_name_comes_from_user_payload(self, mapper: m.IdentityMapper):
        user = {"name": {"firstName": " Jane", "lastName": "Doe "}}

        identity = mapper.map(_claims(), user)

        assert identity.name == "Jane Doe"
        assert identity.raw["name"] == {"firstName": " Jane", "lastName": "Doe "}
        assert identity.raw["sub"] == "sub-value"

    def test_partial_name_is_trimmed(self, mapper: m.IdentityMapper):
        identity = mapper.map(_claims(), {"name": {"firstName": "Jane"}})

        assert identity.name == "Jane"

    def test_empty_name_is_none(self, mapper: m.IdentityMapper):
        identity = mapper.map(_claims(), {"name": {"firstName": "", "lastName": ""}})

        assert identity.name is None

    def test_email_is_never_taken_from_user_payload(self, mapper: m.IdentityMapper):
        identity = mapper.map(
            m.IdentityClaims.from_mapping({"sub": "s"}), {"email": "spoofed@example.com"}
        )

        assert identity.email is None

    def test_tokens_are_copied(self, mapper: m.IdentityMapper):
        tokens = m.TokenResponse.from_mapping(
            {
                "id_token": "a.b.c",
                "access_token": "tok",
                "refresh_token": "ref",
                "expires_in": 3600,
            }
        )

        identity = mapper.map(_claims(), None, tokens)

        assert identity.token == "tok"
        assert identity.refresh_token == "ref"
        assert identity.expires_in == 3600
        assert identity.id_token == "a.b.c"
        assert identity.token_response["access_token"] == "tok"

    def test_identity_is_immutable(self, mapper: m.IdentityMapper):
        identity = mapper.map(_claims())

        with pytest.raises(AttributeError):
            identity.id = "other"  # type: ignore[misc]
        with pytest.raises(TypeError):
            identity.raw["sub"] = "other"  # type: ignore[index]


class TestParseUserPayload:
    def test_mapping_passes_through(self):
        assert m.parse_user_payload({"name": {"firstName": "J"}}) == {"name": {"firstName": "J"}}

    def test_json_string_is_decoded(self):
        value = json.dumps({"name": {"firstName": "J", "lastName": "D"}})

        assert m.parse_user_payload(value)["name"]["lastName"] == "D"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_empty(self, value: object):
        assert m.parse_user_payload(value) == {}

    @pytest.mark.parametrize("value", ["{broken", "[1, 2]", '"text"'])
    def test_malformed_is_ignored(self, value: str):
        assert m.parse_user_payload(value) == {}
