"""Steam profile lookups for /userinfo.

A profile is assembled from two independent Steam Web API calls:
- ISteamUser/GetPlayerSummaries (needs the API key)
- IPlayerService/GetProfileItemsEquipped (public)

Both payloads are parsed into explicit dataclasses and flattened by
merge_profile(), which does no I/O.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

logger = logging.getLogger(__name__)

PLAYER_SUMMARIES_URL = "https://api.steampowered.com/ISteamUser/GetPlayerSummaries/v0002/"
PROFILE_ITEMS_URL = "https://api.steampowered.com/IPlayerService/GetProfileItemsEquipped/v1/"
CDN_BASE = "https://cdn.akamai.steamstatic.com/steamcommunity/public/images"


@dataclass(frozen=True)
class PlayerSummary:
    steamid: str
    personaname: str
    profileurl: str
    avatar: str
    avatarmedium: str
    avatarfull: str
    realname: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "PlayerSummary":
        return cls(
            steamid=str(data.get("steamid", "")),
            personaname=data.get("personaname", ""),
            profileurl=data.get("profileurl", ""),
            avatar=data.get("avatar", ""),
            avatarmedium=data.get("avatarmedium", ""),
            avatarfull=data.get("avatarfull", ""),
            realname=data.get("realname"),
        )


@dataclass(frozen=True)
class ProfileItem:
    image_large: Optional[str] = None
    image_small: Optional[str] = None
    movie_webm: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[dict]) -> Optional["ProfileItem"]:
        if not isinstance(data, dict):
            return None
        return cls(
            image_large=data.get("image_large") or None,
            image_small=data.get("image_small") or None,
            movie_webm=data.get("movie_webm") or None,
        )


@dataclass(frozen=True)
class EquippedItems:
    profile_background: Optional[ProfileItem] = None
    mini_profile_background: Optional[ProfileItem] = None
    avatar_frame: Optional[ProfileItem] = None
    animated_avatar: Optional[ProfileItem] = None

    @classmethod
    def from_api(cls, data: Optional[dict]) -> "EquippedItems":
        data = data if isinstance(data, dict) else {}
        return cls(
            profile_background=ProfileItem.from_api(data.get("profile_background")),
            mini_profile_background=ProfileItem.from_api(data.get("mini_profile_background")),
            avatar_frame=ProfileItem.from_api(data.get("avatar_frame")),
            animated_avatar=ProfileItem.from_api(data.get("animated_avatar")),
        )


@dataclass(frozen=True)
class ProfileFetchError:
    """Profile lookup failed. not_found means Steam has no such player."""

    description: str
    not_found: bool = False


def _cdn(path: Optional[str]) -> Optional[str]:
    return f"{CDN_BASE}/{path}" if path else None


def merge_profile(identity: str, summary: PlayerSummary, items: EquippedItems) -> dict:
    """Flatten a player summary and equipped items into the userinfo payload."""
    background = items.profile_background or ProfileItem()
    mini_background = items.mini_profile_background or ProfileItem()
    frame = items.avatar_frame or ProfileItem()
    animated = items.animated_avatar or ProfileItem()

    return {
        "steamId": identity,
        "sub": identity,
        "username": summary.personaname,
        "name": summary.personaname,
        "realName": summary.realname,
        "profileUrl": summary.profileurl,
        "avatarSmall": summary.avatar,
        "avatarMedium": summary.avatarmedium,
        "avatarLarge": summary.avatarfull,
        "animatedAvatarStatic": _cdn(animated.image_large) or summary.avatarfull,
        "animatedAvatarMovie": _cdn(animated.image_small) or summary.avatarfull,
        "avatarFrameStatic": _cdn(frame.image_large),
        "avatarFrameMovie": _cdn(frame.image_small),
        "backgroundStatic": _cdn(background.image_large),
        "backgroundMovie": _cdn(background.movie_webm),
        "miniBackgroundStatic": _cdn(mini_background.image_large),
        "miniBackgroundMovie": _cdn(mini_background.movie_webm),
    }


class SteamProfileClient:
    """Resolves a Steam ID into a flattened profile."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def _player_summary(self, client: httpx.AsyncClient, steam_id: str) -> Optional[PlayerSummary]:
        response = await client.get(
            PLAYER_SUMMARIES_URL,
            params={"key": self.api_key, "steamids": steam_id},
        )
        response.raise_for_status()
        players = (response.json().get("response") or {}).get("players") or []
        if not isinstance(players, list):
            raise ValueError(f"unexpected players payload: {type(players).__name__}")
        if not players:
            return None
        return PlayerSummary.from_api(players[0])

    async def _equipped_items(self, client: httpx.AsyncClient, steam_id: str) -> EquippedItems:
        try:
            response = await client.get(PROFILE_ITEMS_URL, params={"steamid": steam_id})
            response.raise_for_status()
            return EquippedItems.from_api(response.json().get("response"))
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            # Cosmetic data only; the profile is still usable without it
            logger.warning(f"[PROFILE] Equipped items lookup failed for {steam_id}: {e!r}")
            return EquippedItems()

    async def fetch_profile(self, identity: str) -> Union[dict, ProfileFetchError]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            # Both lookups finish before the client closes, even if one fails
            summary, items = await asyncio.gather(
                self._player_summary(client, identity),
                self._equipped_items(client, identity),
                return_exceptions=True,
            )

        if isinstance(items, BaseException):
            raise items
        if isinstance(summary, httpx.TimeoutException):
            logger.warning(f"[PROFILE] Player summary lookup timed out for {identity}")
            return ProfileFetchError("Steam profile service timed out.")
        if isinstance(summary, (httpx.HTTPError, ValueError, AttributeError)):
            logger.warning(f"[PROFILE] Player summary lookup failed for {identity}: {summary!r}")
            return ProfileFetchError("Steam profile service error.")
        if isinstance(summary, BaseException):
            raise summary

        if summary is None:
            logger.info(f"[PROFILE] No player found for {identity}")
            return ProfileFetchError("No player found for the given SteamID.", not_found=True)

        profile = merge_profile(identity, summary, items)
        logger.info(f"[PROFILE] Fetched Steam profile for {profile['username']}")
        return profile
