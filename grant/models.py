from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Providers queried when no provider filter is given, in query order.
SUPPORTED_PROVIDERS = ("azure", "aws")

# Directory groups are only offered by a single directory-backed provider.
GROUPS_PROVIDER = "azure"

# Provider stamped on favorites saved without one.
FALLBACK_PROVIDER = "azure"

DEFAULT_PROFILE = "grant"


class FavoriteType(str, Enum):
    CLOUD = "cloud"
    GROUPS = "groups"


class Favorite(BaseModel):
    """A named, reusable elevation request.

    Cloud favorites carry ``target`` and ``role``; group favorites carry
    ``group`` and ``directory_id``. The two field sets never mix.
    """

    model_config = ConfigDict(frozen=True)

    type: FavoriteType = FavoriteType.CLOUD
    provider: str = ""
    target: str = ""
    role: str = ""
    group: str = ""
    directory_id: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, value: Any) -> Any:
        # Entries written before group favorites existed have no type.
        return value or FavoriteType.CLOUD

    @field_validator("provider", "target", "role", "group", "directory_id", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _check_fields_match_type(self) -> "Favorite":
        if self.type is FavoriteType.GROUPS:
            if not self.group:
                raise ValueError("group favorite requires a group name")
            if self.target or self.role:
                raise ValueError("group favorite cannot have a target or role")
        else:
            if not self.target or not self.role:
                raise ValueError("cloud favorite requires both target and role")
            if self.group or self.directory_id:
                raise ValueError("cloud favorite cannot have a group")
        return self

    @classmethod
    def cloud(cls, target: str, role: str, provider: str = "") -> "Favorite":
        return cls(type=FavoriteType.CLOUD, provider=provider.lower(), target=target, role=role)

    @classmethod
    def groups(cls, group: str, directory_id: str = "") -> "Favorite":
        return cls(
            type=FavoriteType.GROUPS,
            provider=GROUPS_PROVIDER,
            group=group,
            directory_id=directory_id,
        )

    @property
    def is_group(self) -> bool:
        return self.type is FavoriteType.GROUPS

    def summary(self) -> str:
        """Short ``provider/target/role`` or ``groups/group`` rendering."""
        if self.is_group:
            return f"groups/{self.group}"
        return f"{self.provider}/{self.target}/{self.role}"

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        return {k: v for k, v in data.items() if k in ("type", "provider") or v}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Favorite":
        return cls.model_validate(data)


class Config(BaseModel):
    """Process-wide persisted state: defaults plus the favorites mapping."""

    profile: str = DEFAULT_PROFILE
    default_provider: str = ""
    cache_ttl: str = ""
    favorites: Dict[str, Favorite] = Field(default_factory=dict)

    @field_validator("profile", mode="before")
    @classmethod
    def _none_to_default_profile(cls, value: Any) -> Any:
        return DEFAULT_PROFILE if value is None else value

    @field_validator("default_provider", "cache_ttl", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("favorites", mode="before")
    @classmethod
    def _none_to_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "profile": self.profile,
            "default_provider": self.default_provider,
        }
        if self.cache_ttl:
            data["cache_ttl"] = self.cache_ttl
        data["favorites"] = {name: fav.to_dict() for name, fav in self.favorites.items()}
        return data


class RoleInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""


class EligibleCloudTarget(BaseModel):
    """One cloud elevation candidate as returned by the eligibility service.

    ``provider`` is not part of the service payload; the aggregator sets it
    when results from several providers are merged into one list.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: Optional[str] = None
    organization_id: str = Field("", alias="organizationId")
    workspace_id: str = Field("", alias="workspaceId")
    workspace_name: str = Field("", alias="workspaceName")
    workspace_type: str = Field("", alias="workspaceType")
    role_info: RoleInfo = Field(default_factory=RoleInfo, alias="roleInfo")

    @model_validator(mode="before")
    @classmethod
    def _accept_role_key(cls, data: Any) -> Any:
        # The live API sends "roleInfo"; the published schema calls it "role".
        if isinstance(data, dict) and not (data.get("roleInfo") or data.get("role_info")):
            if data.get("role"):
                data = dict(data)
                data["roleInfo"] = data.pop("role")
        return data

    @property
    def role_id(self) -> str:
        return self.role_info.id

    @property
    def role_name(self) -> str:
        return self.role_info.name


class EligibleGroupTarget(BaseModel):
    """One directory group the current identity may join."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    directory_id: str = Field("", alias="directoryId")
    directory_name: Optional[str] = Field(None, exclude=True)
    group_id: str = Field("", alias="groupId")
    group_name: str = Field("", alias="groupName")


class EligibilityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: List[EligibleCloudTarget] = Field(default_factory=list)
    next_token: Optional[str] = Field(None, alias="nextToken")
    total: int = 0


class GroupsEligibilityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: List[EligibleGroupTarget] = Field(default_factory=list)
    next_token: Optional[str] = Field(None, alias="nextToken")
    total: int = 0
