"""Data models for dashboards, widgets, favorites and user identities."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ValidationError(ValueError):
    """Raised when a model value fails validation."""


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class AvailableTemplates(_StrEnum):
    LANDING_PAGE = "landingPage"


class AvailableWidgets(_StrEnum):
    FAVORITE_SERVICES = "favoriteServices"
    NOTIFICATIONS_EVENTS = "notificationsEvents"
    LEARNING_RESOURCES = "learningResources"
    EXPLORE_CAPABILITIES = "exploreCapabilities"
    EDGE = "edge"
    ANSIBLE = "ansible"
    RHEL = "rhel"
    OPENSHIFT = "openshift"
    RECENTLY_VISITED = "recentlyVisited"
    OPENSHIFT_AI = "openshiftAi"
    QUAY = "quay"
    ACS = "acs"
    SUBSCRIPTIONS = "subscriptions"
    SUPPORT_CASES = "supportCases"


class WidgetIcons(_StrEnum):
    BELL_ICON = "BellIcon"
    HISTORY_ICON = "HistoryIcon"
    OUTLINED_BOOKMARK_ICON = "OutlinedBookmarkIcon"
    ROCKET_ICON = "RocketIcon"
    STAR_ICON = "StarIcon"
    CREDIT_CARD_ICON = "CreditCardIcon"
    RHEL_ICON = "RhelIcon"
    OPENSHIFT_ICON = "OpenShiftIcon"
    EDGE_ICON = "EdgeIcon"
    ANSIBLE_ICON = "AnsibleIcon"
    QUAY_ICON = "QuayIcon"
    ACS_ICON = "ACSIcon"
    OPENSHIFT_AI_ICON = "OpenShiftAiIcon"
    HEADSET_ICON = "HeadsetIcon"


class GridSizes(_StrEnum):
    SM = "sm"
    MD = "md"
    LG = "lg"
    XL = "xl"


class WidgetPermissionMethods(_StrEnum):
    ORG_ADMIN = "isOrgAdmin"
    FEATURE_FLAG = "featureFlag"
    HAS_PERMISSIONS = "hasPermissions"


_GRID_MAX_WIDTH = {GridSizes.SM: 1, GridSizes.MD: 2, GridSizes.LG: 3, GridSizes.XL: 4}

_WIDGET_MESSAGE_ORDER = (
    AvailableWidgets.FAVORITE_SERVICES,
    AvailableWidgets.NOTIFICATIONS_EVENTS,
    AvailableWidgets.LEARNING_RESOURCES,
    AvailableWidgets.EXPLORE_CAPABILITIES,
    AvailableWidgets.EDGE,
    AvailableWidgets.ANSIBLE,
    AvailableWidgets.RHEL,
    AvailableWidgets.OPENSHIFT,
    AvailableWidgets.QUAY,
    AvailableWidgets.ACS,
    AvailableWidgets.SUBSCRIPTIONS,
    AvailableWidgets.OPENSHIFT_AI,
    AvailableWidgets.RECENTLY_VISITED,
    AvailableWidgets.SUPPORT_CASES,
)


def validate_template_name(name: str) -> AvailableTemplates:
    """Return the dashboard template for ``name`` or raise ValidationError."""
    try:
        return AvailableTemplates(name)
    except ValueError:
        raise ValidationError(
            f"invalid dashboard template. Expected one of "
            f"{AvailableTemplates.LANDING_PAGE.value}, got {name}"
        ) from None


def validate_widget_name(name: str) -> AvailableWidgets:
    """Return the widget for ``name`` or raise ValidationError."""
    try:
        return AvailableWidgets(name)
    except ValueError:
        expected = ", ".join(w.value for w in _WIDGET_MESSAGE_ORDER)
        raise ValidationError(
            f"invalid widget. Expected one of [{expected}] got {name}"
        ) from None


def validate_widget_icon(name: str) -> WidgetIcons:
    """Return the widget icon for ``name`` or raise ValidationError."""
    try:
        return WidgetIcons(name)
    except ValueError:
        expected = ", ".join(i.value for i in WidgetIcons)
        raise ValidationError(
            f"invalid widget icon. Expected one of {expected} got {name}"
        ) from None


def validate_grid_size(size: str) -> GridSizes:
    """Return the grid size for ``size`` or raise ValidationError."""
    try:
        return GridSizes(size)
    except ValueError:
        expected = ", ".join(s.value for s in GridSizes)
        raise ValidationError(
            f"invalid grid size, expected one of {expected}"
        ) from None


def grid_max_width(size: str) -> int:
    """Number of columns available in a layout variant."""
    return _GRID_MAX_WIDTH[validate_grid_size(size)]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"invalid timestamp {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"invalid timestamp {value!r}") from None


def _int_field(data: dict, key: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'field "{key}" must be an integer, got {value!r}')
    return value


def _str_field(data: dict, key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f'field "{key}" must be a string, got {value!r}')
    return value


def _bool_field(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError(f'field "{key}" must be a boolean, got {value!r}')
    return value


def _require_mapping(data: Any, what: str) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be an object, got {type(data).__name__}")
    return data


@dataclass
class _Record:
    id: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    def _record_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id:
            out["id"] = self.id
        if self.created_at is not None:
            out["createdAt"] = _iso(self.created_at)
        if self.updated_at is not None:
            out["updatedAt"] = _iso(self.updated_at)
        out["deletedAt"] = _iso(self.deleted_at)
        return out

    @staticmethod
    def _record_kwargs(data: dict) -> dict[str, Any]:
        return {
            "id": _int_field(data, "id"),
            "created_at": _parse_time(data.get("createdAt")),
            "updated_at": _parse_time(data.get("updatedAt")),
            "deleted_at": _parse_time(data.get("deletedAt")),
        }


@dataclass
class BaseWidgetDimensions:
    width: int = 0
    height: int = 0
    max_height: int = 0
    min_height: int = 0

    @classmethod
    def create(cls, w: int, h: int, max_h: int, min_h: int) -> BaseWidgetDimensions:
        """Build dimensions, all of which must be positive."""
        if w < 1 or h < 1 or max_h < 1 or min_h < 1:
            raise ValidationError(
                "invalid widget dimensions, all values must be greater than 0"
            )
        return cls(width=w, height=h, max_height=max_h, min_height=min_h)

    def to_dict(self) -> dict[str, int]:
        return {
            "w": self.width,
            "h": self.height,
            "maxH": self.max_height,
            "minH": self.min_height,
        }


@dataclass
class GridItem:
    id: str = ""
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    max_height: int = 0
    min_height: int = 0
    title: str = ""
    static: bool = False

    def validate(self, variant: str) -> None:
        """Raise ValidationError if the item does not fit the layout variant."""
        size = validate_grid_size(variant)
        if not self.id:
            raise ValidationError('invalid grid item, field id "i" is required')
        if self.width < 1 or self.height < 1 or self.max_height < 1 or self.min_height < 1:
            raise ValidationError(
                'invalid grid item, height "h", width "w", maxHeight "maxH", '
                'mixHeight "minH" must be greater than 0'
            )
        if self.height > self.max_height:
            raise ValidationError(
                f'invalid grid item, height "h" {self.height} must be less than '
                f'or equal to max height "maxH" {self.max_height}'
            )
        if self.height < self.min_height:
            raise ValidationError(
                f'invalid grid item, height "h" {self.height} must be greater than '
                f'or equal to min height "minH" {self.min_height}'
            )
        max_width = grid_max_width(size)
        if self.width > max_width:
            raise ValidationError(
                f"invalid grid item, layout variant {size.value}, width must be "
                f"less than or equal to {max_width}"
            )
        if self.x > max_width:
            raise ValidationError(
                f"invalid grid item, layout variant {size.value}, coordinate X must "
                f"be less than {max_width}, current value is {self.x}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "w": self.width,
            "h": self.height,
            "maxH": self.max_height,
            "minH": self.min_height,
            "title": self.title,
            "i": self.id,
            "x": self.x,
            "y": self.y,
            "static": self.static,
        }

    @classmethod
    def from_dict(cls, data: Any) -> GridItem:
        data = _require_mapping(data, "grid item")
        return cls(
            id=_str_field(data, "i"),
            x=_int_field(data, "x"),
            y=_int_field(data, "y"),
            width=_int_field(data, "w"),
            height=_int_field(data, "h"),
            max_height=_int_field(data, "maxH"),
            min_height=_int_field(data, "minH"),
            title=_str_field(data, "title"),
            static=_bool_field(data, "static"),
        )


@dataclass
class TemplateConfig:
    sm: list[GridItem] = field(default_factory=list)
    md: list[GridItem] = field(default_factory=list)
    lg: list[GridItem] = field(default_factory=list)
    xl: list[GridItem] = field(default_factory=list)

    def items_for(self, size: str) -> list[GridItem]:
        return getattr(self, validate_grid_size(size).value)

    def set_items(self, size: str, items: list[GridItem]) -> TemplateConfig:
        setattr(self, validate_grid_size(size).value, list(items))
        return self

    def validate(self) -> None:
        """Validate every item against its layout variant."""
        for size in GridSizes:
            for item in self.items_for(size):
                item.validate(size)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            size.value: [item.to_dict() for item in self.items_for(size)]
            for size in GridSizes
        }

    @classmethod
    def from_dict(cls, data: Any) -> TemplateConfig:
        data = _require_mapping(data, "template config")
        config = cls()
        for size in GridSizes:
            raw = data.get(size.value) or []
            if not isinstance(raw, list):
                raise ValidationError(f"layout variant {size.value} must be a list")
            config.set_items(size, [GridItem.from_dict(item) for item in raw])
        return config


@dataclass
class DashboardTemplateBase:
    name: str = ""
    display_name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "displayName": self.display_name}

    @classmethod
    def from_dict(cls, data: Any) -> DashboardTemplateBase:
        data = _require_mapping(data, "template base")
        return cls(
            name=_str_field(data, "name"),
            display_name=_str_field(data, "displayName"),
        )


@dataclass
class DashboardTemplate(_Record):
    user_identity_id: int = 0
    default: bool = False
    template_base: DashboardTemplateBase = field(default_factory=DashboardTemplateBase)
    template_config: TemplateConfig = field(default_factory=TemplateConfig)

    def validate(self) -> None:
        if not self.template_base.name:
            raise ValidationError("invalid template name")
        if not self.template_base.display_name:
            raise ValidationError("invalid template display name")
        self.template_config.validate()

    def to_dict(self) -> dict[str, Any]:
        out = self._record_dict()
        out["userIdentityID"] = self.user_identity_id
        out["default"] = self.default
        # The wire name of the template base is capitalised.
        out["TemplateBase"] = self.template_base.to_dict()
        out["templateConfig"] = self.template_config.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Any) -> DashboardTemplate:
        data = _require_mapping(data, "dashboard template")
        base = data.get("TemplateBase", data.get("templateBase"))
        return cls(
            **cls._record_kwargs(data),
            user_identity_id=_int_field(data, "userIdentityID"),
            default=_bool_field(data, "default"),
            template_base=DashboardTemplateBase.from_dict(base),
            template_config=TemplateConfig.from_dict(data.get("templateConfig")),
        )

    def _stripped(self) -> DashboardTemplate:
        return DashboardTemplate(
            template_base=self.template_base,
            template_config=self.template_config,
            default=False,
        )

    def encode_base64(self) -> str:
        """Validate and encode the shareable part of the template."""
        self.validate()
        payload = json.dumps(self._stripped().to_dict()) + "\n"
        return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_dashboard_base64(encoded: str) -> DashboardTemplate:
    """Decode a shared template, dropping all user-specific data."""
    try:
        raw = base64.b64decode("".join(encoded.split()), validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"unable to decode dashboard template: {exc}") from None
    template = DashboardTemplate.from_dict(data)
    template.validate()
    return template._stripped()


@dataclass
class BaseDashboardTemplate:
    name: str = ""
    display_name: str = ""
    template_config: TemplateConfig = field(default_factory=TemplateConfig)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "templateConfig": self.template_config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> BaseDashboardTemplate:
        data = _require_mapping(data, "base dashboard template")
        return cls(
            name=_str_field(data, "name"),
            display_name=_str_field(data, "displayName"),
            template_config=TemplateConfig.from_dict(data.get("templateConfig")),
        )


@dataclass
class WidgetHeaderLink:
    title: str = ""
    href: str = ""

    def to_dict(self) -> dict[str, str]:
        out = {}
        if self.title:
            out["title"] = self.title
        if self.href:
            out["href"] = self.href
        return out


@dataclass
class WidgetPermission:
    method: WidgetPermissionMethods | None = None
    apps: list[str] = field(default_factory=list)
    args: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.method:
            out["method"] = str(self.method)
        if self.apps:
            out["apps"] = list(self.apps)
        if self.args:
            out["args"] = list(self.args)
        return out


@dataclass
class WidgetConfiguration:
    title: str = ""
    icon: WidgetIcons | None = None
    header_link: WidgetHeaderLink = field(default_factory=WidgetHeaderLink)
    permissions: list[WidgetPermission] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"title": self.title}
        if self.icon:
            out["icon"] = str(self.icon)
        out["headerLink"] = self.header_link.to_dict()
        if self.permissions:
            out["permissions"] = [p.to_dict() for p in self.permissions]
        return out


@dataclass
class ModuleFederationMetadata:
    scope: str = ""
    module: str = ""
    import_name: str = ""
    defaults: BaseWidgetDimensions = field(default_factory=BaseWidgetDimensions)
    config: WidgetConfiguration = field(default_factory=WidgetConfiguration)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"scope": self.scope, "module": self.module}
        if self.import_name:
            out["importName"] = self.import_name
        out["defaults"] = self.defaults.to_dict()
        out["config"] = self.config.to_dict()
        return out


@dataclass
class VisitedPage:
    bundle: str = ""
    pathname: str = ""
    title: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"bundle": self.bundle, "pathname": self.pathname, "title": self.title}

    @classmethod
    def from_dict(cls, data: Any) -> VisitedPage:
        data = _require_mapping(data, "visited page")
        return cls(
            bundle=_str_field(data, "bundle"),
            pathname=_str_field(data, "pathname"),
            title=_str_field(data, "title"),
        )


@dataclass
class FavoritePage(_Record):
    pathname: str = ""
    favorite: bool = False
    user_identity_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        out = self._record_dict()
        out.update(
            pathname=self.pathname,
            favorite=self.favorite,
            userIdentityId=self.user_identity_id,
        )
        return out

    @classmethod
    def from_dict(cls, data: Any) -> FavoritePage:
        data = _require_mapping(data, "favorite page")
        return cls(
            **cls._record_kwargs(data),
            pathname=_str_field(data, "pathname"),
            favorite=_bool_field(data, "favorite"),
            user_identity_id=_int_field(data, "userIdentityId"),
        )


@dataclass
class SelfReport(_Record):
    products_of_interest: list[str] = field(default_factory=list)
    job_role: str = ""
    user_identity_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        out = self._record_dict()
        out.update(
            productsOfInterest=list(self.products_of_interest),
            jobRole=self.job_role,
            userIdentityID=self.user_identity_id,
        )
        return out

    @classmethod
    def from_dict(cls, data: Any) -> SelfReport:
        data = _require_mapping(data, "self report")
        products = data.get("productsOfInterest") or []
        if not isinstance(products, list) or not all(isinstance(p, str) for p in products):
            raise ValidationError('field "productsOfInterest" must be a list of strings')
        return cls(
            **cls._record_kwargs(data),
            products_of_interest=list(products),
            job_role=_str_field(data, "jobRole"),
            user_identity_id=_int_field(data, "userIdentityID"),
        )


@dataclass
class ProductOfInterest(_Record):
    name: str = ""
    user_identity_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        out = self._record_dict()
        out.update(name=self.name, userIdentityId=self.user_identity_id)
        return out


@dataclass
class UserIdentity(_Record):
    account_id: str = ""
    first_login: bool = False
    day_one: bool = False
    last_login: datetime | None = None
    last_visited_pages: list[VisitedPage] = field(default_factory=list)
    favorite_pages: list[FavoritePage] = field(default_factory=list)
    self_report: SelfReport = field(default_factory=SelfReport)
    visited_bundles: dict[str, bool] | None = None
    dashboard_templates: list[DashboardTemplate] = field(default_factory=list)
    ui_preview: bool = False

    def to_dict(self) -> dict[str, Any]:
        out = self._record_dict()
        if self.account_id:
            out["accountId"] = self.account_id
        out["firstLogin"] = self.first_login
        out["dayOne"] = self.day_one
        out["lastLogin"] = _iso(self.last_login)
        out["lastVisitedPages"] = [p.to_dict() for p in self.last_visited_pages]
        out["favoritePages"] = [p.to_dict() for p in self.favorite_pages]
        out["selfReport"] = self.self_report.to_dict()
        if self.visited_bundles is not None:
            out["visitedBundles"] = dict(self.visited_bundles)
        if self.dashboard_templates:
            out["dashboardTemplates"] = [t.to_dict() for t in self.dashboard_templates]
        out["uiPreview"] = self.ui_preview
        return out