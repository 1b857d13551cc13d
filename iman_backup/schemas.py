"""TypedDict schemas for the user document stored in the live store.

The live store keeps each user's app state as one opaque JSON document. The
backup tooling never rewrites that document; it only reads a handful of known
fields from it:

- Top level: totalPoints / level, checked by the integrity scan
- Profile: iman_profile (or the older profile key), read by the registry
- Everything else (prayer logs, habit logs, quiz progress, ...) is an unknown
  extra and travels through snapshots byte for byte
"""

from typing import TypedDict, Optional, Dict, Any, Union, TypeGuard


PROFILE_KEYS = ("iman_profile", "profile")


class ProfileData(TypedDict, total=False):
    """User profile as written by the mini-app."""
    name: str
    city: str
    level: str
    totalPoints: Union[int, float]
    streak: int
    longestStreak: int
    joinedAt: str


class UserPayload(TypedDict, total=False):
    """Known fields of a user document. Other keys are allowed and ignored."""
    totalPoints: Union[int, float]
    level: str
    iman_profile: ProfileData
    profile: ProfileData


def is_points_value(value: Any) -> TypeGuard[Union[int, float]]:
    """Numeric check for point counters; booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_user_payload(data: Any) -> TypeGuard[UserPayload]:
    """Validate that a decoded document can be read as a UserPayload."""
    return isinstance(data, dict)


def profile_of(data: UserPayload) -> Dict[str, Any]:
    """Return the nested profile document, or the top level when there is none."""
    for key in PROFILE_KEYS:
        profile = data.get(key)
        if isinstance(profile, dict):
            return profile
    return data


def points_of(data: UserPayload) -> Union[int, float]:
    """Point total, preferring the top-level counter over the profile's."""
    for source in (data, profile_of(data)):
        value = source.get("totalPoints")
        if is_points_value(value):
            return value
    return 0


def level_of(data: UserPayload) -> Optional[str]:
    for source in (data, profile_of(data)):
        value = source.get("level")
        if isinstance(value, str) and value:
            return value
    return None
