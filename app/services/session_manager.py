"""
Session & Attribution Cookie Manager

Issues the two cookies set on a successful affiliate redirect:

- Session cookie: a partner-independent pseudo-anonymous identifier,
  valid for SESSION_COOKIE_MAX_AGE_DAYS. Reused verbatim while valid,
  never rotated mid-life.
- Partner attribution cookie: named per partner so several attributions
  can coexist, valid for the partner's cookie_duration (last-touch window).
"""

import secrets
from dataclasses import dataclass
from typing import Optional

from starlette.responses import Response

from app.core.setting import Settings, settings as default_settings
from app.core.validators import is_well_formed_session_id
from app.db.models import AffiliatePartner

SECONDS_PER_DAY = 24 * 60 * 60

# 16 random bytes = 128 bits of entropy, 22 URL-safe characters
SESSION_ID_BYTES = 16


@dataclass(frozen=True)
class CookieSpec:
    """A cookie to set on the redirect response."""
    name: str
    value: str
    max_age: int
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"
    path: str = "/"

    def apply(self, response: Response) -> None:
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=self.http_only,
            samesite=self.same_site,
        )


def generate_session_id() -> str:
    """Generate a cryptographically random, URL-safe session id."""
    return secrets.token_urlsafe(SESSION_ID_BYTES)


def existing_session_id(cookie_value: Optional[str]) -> Optional[str]:
    """Return the cookie value if it is a well-formed session id, else None."""
    if is_well_formed_session_id(cookie_value):
        return cookie_value
    return None


def get_or_create_session(cookie_value: Optional[str]) -> str:
    """
    Reuse a valid session id or mint a new one.

    Malformed or missing values are treated as 'no session'.
    """
    return existing_session_id(cookie_value) or generate_session_id()


def attribution_cookie_name(partner_id: int, config: Settings = default_settings) -> str:
    return f"{config.PARTNER_COOKIE_PREFIX}{partner_id}"


def attribution_window_days(
    partner: AffiliatePartner,
    config: Settings = default_settings,
) -> int:
    """Partner cookie duration in days, falling back to the default when unset or <= 0."""
    if partner.cookie_duration and partner.cookie_duration > 0:
        return partner.cookie_duration
    return config.DEFAULT_COOKIE_DURATION_DAYS


def build_session_cookie(session_id: str, config: Settings = default_settings) -> CookieSpec:
    return CookieSpec(
        name=config.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=config.SESSION_COOKIE_MAX_AGE_DAYS * SECONDS_PER_DAY,
        secure=config.is_production,
    )


def build_attribution_cookie(
    partner: AffiliatePartner,
    session_id: str,
    config: Settings = default_settings,
) -> CookieSpec:
    """
    Build the per-partner attribution cookie.

    Args:
        partner: The link's partner (its id scopes the cookie name)
        session_id: Value stored in the cookie, used to find the last click later
        config: Settings providing the prefix and default window

    Returns:
        CookieSpec with max_age = attribution window in seconds
    """
    return CookieSpec(
        name=attribution_cookie_name(partner.id, config),
        value=session_id,
        max_age=attribution_window_days(partner, config) * SECONDS_PER_DAY,
        secure=config.is_production,
    )
