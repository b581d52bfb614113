from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from telescope.exceptions import ConfigurationError

DEFAULT_WATCHERS = ["RequestWatcher", "ErrorWatcher", "ClientRequestWatcher", "LogWatcher", "DumpWatcher"]

AuthorizeFunction = Callable[[Any], "bool | Awaitable[bool]"]
GetUserFunction = Callable[[Any], Any]


class TelescopeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    enabled_watchers: list[str] = Field(default_factory=lambda: list(DEFAULT_WATCHERS), alias="TELESCOPE_ENABLED_WATCHERS")
    database_url: str = Field(default="", alias="TELESCOPE_DATABASE_URL")
    # Kilobytes; 0 disables the limit.
    response_size_limit: int = Field(default=64, alias="TELESCOPE_RESPONSE_SIZE_LIMIT")
    params_to_hide: list[str] = Field(
        default_factory=lambda: ["password", "token", "_csrf", "authorization", "cookie"],
        alias="TELESCOPE_PARAMS_TO_HIDE",
    )
    ignore_paths: list[str] = Field(default_factory=list, alias="TELESCOPE_IGNORE_PATHS")
    client_ignore_urls: list[str] = Field(default_factory=list, alias="TELESCOPE_CLIENT_IGNORE_URLS")
    route_prefix: str = Field(default="/telescope", alias="TELESCOPE_ROUTE_PREFIX")


@lru_cache(maxsize=1)
def get_settings() -> TelescopeSettings:
    return TelescopeSettings()


@dataclass(frozen=True)
class TelescopeOptions:
    """Setup-time overrides. Fields left as ``None`` fall back to the settings.

    ``storage``, ``ignore_errors``, ``is_authorized`` and ``get_user`` cannot
    come from the environment and are only set here.
    """

    enabled_watchers: Sequence[str | type] | None = None
    storage: Any | None = None
    database_url: str | None = None
    response_size_limit: int | None = None
    params_to_hide: Sequence[str] | None = None
    ignore_paths: Sequence[str] | None = None
    client_ignore_urls: Sequence[str] | None = None
    ignore_errors: Sequence[type[BaseException]] = ()
    is_authorized: AuthorizeFunction | None = None
    get_user: GetUserFunction | None = None
    route_prefix: str | None = None

    def with_defaults(self, settings: TelescopeSettings) -> TelescopeOptions:
        """Fill unset fields from ``settings`` and validate the result."""

        def pick(value: Any, default: Any) -> Any:
            return default if value is None else value

        resolved = replace(
            self,
            enabled_watchers=list(pick(self.enabled_watchers, settings.enabled_watchers)),
            database_url=pick(self.database_url, settings.database_url),
            response_size_limit=pick(self.response_size_limit, settings.response_size_limit),
            params_to_hide=[p.lower() for p in pick(self.params_to_hide, settings.params_to_hide)],
            ignore_paths=list(pick(self.ignore_paths, settings.ignore_paths)),
            client_ignore_urls=list(pick(self.client_ignore_urls, settings.client_ignore_urls)),
            ignore_errors=tuple(self.ignore_errors),
            route_prefix=pick(self.route_prefix, settings.route_prefix).rstrip("/"),
        )
        resolved.validate()
        return resolved

    def validate(self) -> None:
        if self.response_size_limit is not None and self.response_size_limit < 0:
            raise ConfigurationError("response_size_limit must be >= 0")

        for error_class in self.ignore_errors:
            if not (isinstance(error_class, type) and issubclass(error_class, BaseException)):
                raise ConfigurationError(f"ignore_errors entries must be exception classes, got {error_class!r}")

        if self.route_prefix is not None and not self.route_prefix.startswith("/"):
            raise ConfigurationError("route_prefix must be a non-root path starting with '/'")

        for name, func in (("is_authorized", self.is_authorized), ("get_user", self.get_user)):
            if func is not None and not callable(func):
                raise ConfigurationError(f"{name} must be callable")
