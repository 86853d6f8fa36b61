"""
codifyr.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for **non-secret** settings: the public site URL
that redirect links point at, the identity provider's base URL, and the
route paths presentation maps to the named routes.  Secrets (anon key,
JWT secret, database URL) stay in the environment / ``.env``.

Usage::

    from codifyr.config import load_config

    cfg = load_config()                       # reads ./config.yaml by default
    cfg.url_for(Route.VERIFICATION_STEP)      # "https://codifyr.co/verification-upload"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from codifyr.constants import Route


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CodifyrConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Public site (redirect targets are built from this)
    site_url: str

    # Identity provider (Supabase project URL)
    provider_url: str

    # Route paths for the named navigation targets
    login_path: str
    home_path: str
    verification_path: str

    # Dashboard API
    api_port: int

    # Optional
    announce_level_ups: bool = True

    def path_for(self, route: Route) -> str:
        """Return the configured path for a named route."""
        return {
            Route.LOGIN: self.login_path,
            Route.APPLICATION_HOME: self.home_path,
            Route.VERIFICATION_STEP: self.verification_path,
        }[route]

    def url_for(self, route: Route) -> str:
        """Absolute URL for *route*, used as an email redirect target."""
        return f"{self.site_url.rstrip('/')}{self.path_for(route)}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> CodifyrConfig:
    """Read *path* and return a :class:`CodifyrConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh)

    routes = raw.get("routes") or {}
    return CodifyrConfig(
        community_name=raw["community_name"],
        site_url=raw["site_url"],
        provider_url=raw["provider_url"],
        login_path=routes.get("login", "/auth"),
        home_path=routes.get("application_home", "/dashboard"),
        verification_path=routes.get("verification_step", "/verification-upload"),
        api_port=int(raw["api_port"]),
        announce_level_ups=bool(raw.get("announce_level_ups", True)),
    )
