"""Shared fixtures: fake Steam collaborators, a controllable clock, a wired bridge."""

import asyncio
from urllib.parse import parse_qs, urlsplit

import pytest

from oauth.bridge import SteamBridge
from oauth.profile import EquippedItems, PlayerSummary, ProfileFetchError, merge_profile
from oauth.steam_openid import SteamOpenIDProvider
from oauth.stores import SessionStore

STEAM_ID = "76561198000000000"
CLIENT_ID = "relying-app"
CLIENT_SECRET = "s3cret-value"
JWT_SECRET = "test-secret-key-for-jwt-signing-0123456789"
ISSUER = "https://bridge.example"
RETURN_URL = "https://bridge.example/auth/steam/callback"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeSteamProvider(SteamOpenIDProvider):
    """Real redirect building, scripted verification."""

    def __init__(self, result=STEAM_ID):
        super().__init__(realm="https://bridge.example", return_url=RETURN_URL)
        self.result = result
        self.verified_urls = []

    async def verify_assertion(self, callback_url):
        self.verified_urls.append(callback_url)
        await asyncio.sleep(0)
        return self.result


class FakeProfiles:
    def __init__(self, error: ProfileFetchError = None):
        self.error = error
        self.requested = []

    async def fetch_profile(self, identity):
        self.requested.append(identity)
        if self.error is not None:
            return self.error
        summary = PlayerSummary(
            steamid=identity,
            personaname="gaben",
            profileurl=f"https://steamcommunity.com/profiles/{identity}/",
            avatar="https://avatars.example/small.jpg",
            avatarmedium="https://avatars.example/medium.jpg",
            avatarfull="https://avatars.example/full.jpg",
        )
        return merge_profile(identity, summary, EquippedItems())


def session_key_from_redirect(url: str) -> str:
    """Pull the correlation id out of a Steam login redirect."""
    return_to = parse_qs(urlsplit(url).query)["openid.return_to"][0]
    return parse_qs(urlsplit(return_to).query)["session_key"][0]


def query_of(url: str) -> dict:
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(ttl_seconds=600, clock=clock)


@pytest.fixture
def provider():
    return FakeSteamProvider()


@pytest.fixture
def profiles():
    return FakeProfiles()


@pytest.fixture
def bridge(provider, profiles, store, clock):
    return SteamBridge(
        provider=provider,
        profiles=profiles,
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        jwt_secret=JWT_SECRET,
        issuer=ISSUER,
        store=store,
        clock=clock,
    )
