"""
Favorite builder.

Turns an ``add`` request (optional name plus flags) into a saved Favorite.
Every flag check and the duplicate-name check run before any remote call
or prompt, so a request that cannot succeed never pays for authentication
or eligibility lookups.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from pydantic import ValidationError

from grant.config import API_TIMEOUT_SECONDS
from grant.context import CallContext
from grant.eligibility import EligibilityAggregator
from grant.errors import (
    AlreadyExists,
    InvalidArguments,
    MissingName,
    NetworkFailure,
    NoEligibleTargets,
    PromptFailed,
    SelectionFailed,
)
from grant.favorites import FavoriteStore
from grant.models import (
    FALLBACK_PROVIDER,
    GROUPS_PROVIDER,
    SUPPORTED_PROVIDERS,
    Config,
    Favorite,
    FavoriteType,
)
from grant.selection import CloudSelection, GroupSelection, SelectionItem, UnifiedSelector

logger = logging.getLogger("grant.builder")


class NamePrompter(Protocol):
    def prompt_name(self) -> str: ...


@dataclass
class AddFavoriteFlags:
    """Raw ``favorites add`` flags; empty string means not given."""

    provider: str = ""
    target: str = ""
    role: str = ""
    type: str = ""
    group: str = ""

    def validate(self) -> FavoriteType:
        """Check the flag combination and return the requested type.

        ``provider`` is normalized in place (trimmed, lower-case).

        Raises:
            InvalidArguments: the combination is not accepted
        """
        raw_type = (self.type or "").strip().lower()
        if raw_type and raw_type not in {t.value for t in FavoriteType}:
            raise InvalidArguments(f"invalid --type {self.type!r}: must be one of: cloud, groups")
        fav_type = FavoriteType(raw_type) if raw_type else FavoriteType.CLOUD

        provider = self.provider = (self.provider or "").strip().lower()
        if provider and provider not in SUPPORTED_PROVIDERS:
            raise InvalidArguments(
                f"provider {self.provider!r} is not supported, supported providers: "
                + ", ".join(SUPPORTED_PROVIDERS)
            )

        if fav_type is FavoriteType.GROUPS:
            if self.target or self.role:
                raise InvalidArguments("--target and --role cannot be used with --type groups")
            if provider and provider != GROUPS_PROVIDER:
                raise InvalidArguments(f"groups favorites are only supported for {GROUPS_PROVIDER}")
        else:
            if self.group:
                raise InvalidArguments("--group requires --type groups")
            if bool(self.target) != bool(self.role):
                raise InvalidArguments("both --target and --role must be provided")
        return fav_type

    def is_non_interactive(self, fav_type: FavoriteType) -> bool:
        if fav_type is FavoriteType.GROUPS:
            return bool(self.group)
        return bool(self.target and self.role)


@dataclass(frozen=True)
class AddedFavorite:
    name: str
    favorite: Favorite

    def describe(self) -> str:
        return f'Added favorite "{self.name}": {self.favorite.summary()}'


class FavoriteBuilder:
    """Adds, lists and removes favorites.

    The aggregator, selector and prompter are only used on the interactive
    path and may be omitted when only flag-driven adds are needed.
    """

    def __init__(
        self,
        store: FavoriteStore,
        aggregator: Optional[EligibilityAggregator] = None,
        selector: Optional[UnifiedSelector] = None,
        prompter: Optional[NamePrompter] = None,
        timeout: float = API_TIMEOUT_SECONDS,
    ):
        self.store = store
        self.aggregator = aggregator
        self.selector = selector
        self.prompter = prompter
        self.timeout = timeout

    def add_favorite(self, name: Optional[str], flags: AddFavoriteFlags) -> AddedFavorite:
        """
        Build a favorite from flags or an interactive pick and save it.

        Args:
            name: Favorite name; prompted for after selection when omitted
            flags: Requested type, provider, target/role or group

        Returns:
            The saved name and favorite
        """
        fav_type = flags.validate()
        name = (name or "").strip() or None
        non_interactive = flags.is_non_interactive(fav_type)

        if non_interactive and not name:
            if fav_type is FavoriteType.GROUPS:
                raise MissingName("name is required when using --group")
            raise MissingName("name is required when using --target and --role")

        config = self.store.load()
        if name:
            self._ensure_available(config, name)

        if non_interactive:
            logger.info(
                "Non-interactive mode: type=%s target=%r role=%r provider=%r group=%r",
                fav_type.value,
                flags.target,
                flags.role,
                flags.provider,
                flags.group,
            )
            favorite = self._favorite_from_flags(config, flags, fav_type)
        else:
            favorite, name = self._favorite_from_selection(config, name, flags, fav_type)

        logger.info("Saving favorite %r", name)
        self.store.add(config, name, favorite)
        self.store.save(config)
        return AddedFavorite(name, config.favorites[name])

    def list_favorites(self) -> List[Tuple[str, Favorite]]:
        return self.store.list(self.store.load())

    def remove_favorite(self, name: str) -> None:
        config = self.store.load()
        logger.info("Removing favorite %r", name)
        self.store.remove(config, name)
        self.store.save(config)

    def _ensure_available(self, config: Config, name: str) -> None:
        if self.store.exists(config, name):
            raise AlreadyExists(name)

    def _favorite_from_flags(
        self, config: Config, flags: AddFavoriteFlags, fav_type: FavoriteType
    ) -> Favorite:
        if fav_type is FavoriteType.GROUPS:
            return Favorite.groups(flags.group)
        provider = flags.provider or config.default_provider
        return Favorite.cloud(flags.target, flags.role, provider)

    def _favorite_from_selection(
        self,
        config: Config,
        name: Optional[str],
        flags: AddFavoriteFlags,
        fav_type: FavoriteType,
    ) -> Tuple[Favorite, str]:
        if self.aggregator is None or self.selector is None or self.prompter is None:
            raise InvalidArguments(
                "interactive selection is not available; pass --target and --role"
                " (or --type groups --group)"
            )

        items = self._collect_items(flags, fav_type)
        if not items:
            raise NoEligibleTargets()

        selected = self.selector.select_item(items)
        try:
            favorite = self._to_favorite(selected, flags, config)
        except ValidationError as e:
            raise SelectionFailed(f"selected item cannot be saved as a favorite: {e}") from e

        if not name:
            name = self._prompt_name()
            self._ensure_available(config, name)
        return favorite, name

    def _collect_items(self, flags: AddFavoriteFlags, fav_type: FavoriteType) -> List[SelectionItem]:
        ctx = CallContext.with_timeout(self.timeout)
        items: List[SelectionItem] = []

        if fav_type is FavoriteType.GROUPS:
            groups = self.aggregator.fetch_group_targets(ctx)
            items.extend(GroupSelection(g) for g in groups)
            return items

        fetch = self.aggregator.fetch_cloud_targets(ctx, flags.provider or None)
        items.extend(CloudSelection(t) for t in fetch.targets)

        if self.aggregator.has_groups:
            # A filtered fetch leaves targets untagged, so directory names
            # are looked up separately.
            cloud_pool = None if flags.provider else fetch.targets
            try:
                groups = self.aggregator.fetch_group_targets(ctx, cloud_pool=cloud_pool)
            except NetworkFailure as e:
                logger.info("Groups not offered: %s", e)
            else:
                items.extend(GroupSelection(g) for g in groups)
        return items

    def _to_favorite(
        self, selected: SelectionItem, flags: AddFavoriteFlags, config: Config
    ) -> Favorite:
        if isinstance(selected, GroupSelection):
            return Favorite.groups(selected.group.group_name, selected.group.directory_id)
        target = selected.target
        provider = (
            flags.provider or target.provider or config.default_provider or FALLBACK_PROVIDER
        )
        return Favorite.cloud(target.workspace_name, target.role_name, provider)

    def _prompt_name(self) -> str:
        try:
            name = self.prompter.prompt_name()
        except (KeyboardInterrupt, EOFError) as e:
            raise PromptFailed("name prompt aborted") from e
        except Exception as e:
            raise PromptFailed(f"failed to read favorite name: {e}") from e
        name = (name or "").strip()
        if not name:
            raise PromptFailed("favorite name cannot be empty")
        return name
