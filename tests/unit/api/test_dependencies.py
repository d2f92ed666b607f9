"""Tests for session parsing and credential source selection."""

from unittest.mock import Mock

import pytest

from previewspot.api.dependencies import (
    get_credential_source,
    get_user_session,
    parse_bearer_token,
)
from previewspot.domain.entities import UserSession
from previewspot.domain.exceptions import AuthenticationError
from previewspot.infrastructure.integrations import (
    AppCredentialSource,
    TokenBroker,
    UserCredentialSource,
)


@pytest.fixture
def broker_mock() -> TokenBroker:
    """Create a mock token broker (never called by these dependencies)."""
    return Mock(spec=TokenBroker)


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc", "abc"),
        ("bearer abc ", "abc"),
        ("abc", "abc"),
    ],
)
def test_parse_bearer_token(header: str, expected: str) -> None:
    """Test Bearer prefix handling."""
    assert parse_bearer_token(header) == expected


async def test_header_beats_cookie() -> None:
    """Test that an explicit Authorization header wins over the access cookie."""
    session = await get_user_session(
        authorization="Bearer from-header",
        x_spotify_refresh_token=None,
        access_cookie="from-cookie",
        refresh_cookie="refresh-cookie",
    )

    assert session == UserSession(access_token="from-header", refresh_token="refresh-cookie")


async def test_blank_values_are_absent() -> None:
    """Test that whitespace-only headers and cookies don't make a session."""
    session = await get_user_session(
        authorization="   ",
        x_spotify_refresh_token="",
        access_cookie=" ",
        refresh_cookie=None,
    )

    assert session.is_empty


def test_no_session_uses_app_credential(broker_mock, settings) -> None:
    """Test the default: shared app credential."""
    source = get_credential_source(UserSession(), broker_mock, settings)

    assert isinstance(source, AppCredentialSource)


def test_session_uses_user_credential(broker_mock, settings) -> None:
    """Test that any session token selects the user credential."""
    session = UserSession(refresh_token="refresh-1")

    source = get_credential_source(session, broker_mock, settings)

    assert isinstance(source, UserCredentialSource)
    assert source.session is session


def test_required_session_missing(broker_mock, settings) -> None:
    """Test 401-style error when the deployment requires a user session."""
    settings.resolver.require_user_session = True

    with pytest.raises(AuthenticationError) as exc_info:
        get_credential_source(UserSession(), broker_mock, settings)

    assert exc_info.value.session_required is True
