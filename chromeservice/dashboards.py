"""Dashboard templates of users and the widgets they may contain."""

from __future__ import annotations

import copy
import json
import sqlite3
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from chromeservice.database import Database
from chromeservice.models import (
    AvailableTemplates,
    AvailableWidgets,
    BaseDashboardTemplate,
    BaseWidgetDimensions,
    DashboardTemplate,
    DashboardTemplateBase,
    GridItem,
    GridSizes,
    ModuleFederationMetadata,
    TemplateConfig,
    WidgetConfiguration,
    WidgetHeaderLink,
    WidgetIcons,
    WidgetPermission,
    WidgetPermissionMethods,
    decode_dashboard_base64,
    validate_template_name,
)
from chromeservice.responses import NotAuthorizedError, RecordNotFoundError


def _widget(
    scope: str,
    module: str,
    dims: tuple[int, int, int, int],
    icon: WidgetIcons,
    title: str,
    header_link: WidgetHeaderLink | None = None,
    permissions: list[WidgetPermission] | None = None,
) -> ModuleFederationMetadata:
    return ModuleFederationMetadata(
        scope=scope,
        module=module,
        defaults=BaseWidgetDimensions.create(*dims),
        config=WidgetConfiguration(
            title=title,
            icon=icon,
            header_link=header_link or WidgetHeaderLink(),
            permissions=permissions or [],
        ),
    )


WIDGET_MAPPING: dict[AvailableWidgets, ModuleFederationMetadata] = {
    AvailableWidgets.EXPLORE_CAPABILITIES: _widget(
        "landing", "./ExploreCapabilities", (3, 5, 10, 1),
        WidgetIcons.ROCKET_ICON, "Explore capabilities",
    ),
    AvailableWidgets.EDGE: _widget(
        "landing", "./EdgeWidget", (1, 4, 10, 1), WidgetIcons.EDGE_ICON, "Edge Management"
    ),
    AvailableWidgets.ANSIBLE: _widget(
        "landing", "./AnsibleWidget", (1, 4, 10, 1),
        WidgetIcons.ANSIBLE_ICON, "Ansible Automation Platform",
    ),
    AvailableWidgets.RHEL: _widget(
        "landing", "./RhelWidget", (1, 4, 10, 1),
        WidgetIcons.RHEL_ICON, "Red Hat Enterprise Linux",
    ),
    AvailableWidgets.OPENSHIFT: _widget(
        "landing", "./OpenShiftWidget", (1, 4, 10, 1),
        WidgetIcons.OPENSHIFT_ICON, "Red Hat OpenShift",
    ),
    AvailableWidgets.QUAY: _widget(
        "landing", "./QuayWidget", (1, 4, 10, 1), WidgetIcons.QUAY_ICON, "Quay.io"
    ),
    AvailableWidgets.ACS: _widget(
        "landing", "./AcsWidget", (1, 4, 10, 1),
        WidgetIcons.ACS_ICON, "Advanced Cluster Security",
    ),
    AvailableWidgets.OPENSHIFT_AI: _widget(
        "landing", "./OpenShiftAiWidget", (1, 4, 10, 1),
        WidgetIcons.OPENSHIFT_AI_ICON, "Red Hat OpenShift AI",
    ),
    AvailableWidgets.RECENTLY_VISITED: _widget(
        "landing", "./RecentlyVisited", (1, 7, 10, 1),
        WidgetIcons.HISTORY_ICON, "Recently visited",
    ),
    AvailableWidgets.FAVORITE_SERVICES: _widget(
        "chrome", "./DashboardFavorites", (1, 6, 10, 1),
        WidgetIcons.STAR_ICON, "My favorite services",
        header_link=WidgetHeaderLink(title="View all services", href="/allservices"),
    ),
    AvailableWidgets.NOTIFICATIONS_EVENTS: _widget(
        "notifications", "./DashboardWidget", (1, 3, 10, 1),
        WidgetIcons.BELL_ICON, "Events",
        header_link=WidgetHeaderLink(
            title="View event log", href="/settings/notifications/eventlog"
        ),
        permissions=[WidgetPermission(method=WidgetPermissionMethods.ORG_ADMIN)],
    ),
    AvailableWidgets.LEARNING_RESOURCES: _widget(
        "learningResources", "./BookmarkedLearningResourcesWidget", (2, 4, 10, 1),
        WidgetIcons.OUTLINED_BOOKMARK_ICON, "Bookmarked learning resources",
    ),
    AvailableWidgets.SUPPORT_CASES: _widget(
        "landing", "./SupportCaseWidget", (2, 4, 10, 1),
        WidgetIcons.HEADSET_ICON, "My support cases",
        header_link=WidgetHeaderLink(
            title="Open a support case",
            href="https://access.redhat.com/support/cases/#/case/new/get-support?caseCreate=true",
        ),
    ),
    AvailableWidgets.SUBSCRIPTIONS: _widget(
        "subscriptionInventory", "./SubscriptionsWidget", (4, 3, 5, 1),
        WidgetIcons.CREDIT_CARD_ICON, "Subscriptions",
        header_link=WidgetHeaderLink(
            title="Manage subscriptions", href="/subscriptions/inventory"
        ),
        permissions=[
            WidgetPermission(
                method=WidgetPermissionMethods.FEATURE_FLAG,
                args=["chrome-service.subscriptions-widget.enabled", True],
            ),
            WidgetPermission(
                method=WidgetPermissionMethods.HAS_PERMISSIONS,
                args=[["subscriptions:products:read"]],
            ),
        ],
    ),
}

_LANDING_ITEMS = (
    (AvailableWidgets.RHEL, "rhel#rhel", 0, 0),
    (AvailableWidgets.OPENSHIFT, "openshift#openshift", 1, 0),
    (AvailableWidgets.ANSIBLE, "ansible#ansible", 2, 0),
    (AvailableWidgets.EXPLORE_CAPABILITIES, "exploreCapabilities#exploreCapabilities", 0, 2),
    (AvailableWidgets.RECENTLY_VISITED, "recentlyVisited#recentlyVisited", 3, 0),
    (AvailableWidgets.FAVORITE_SERVICES, "favoriteServices#favoriteServices", 4, 3),
    (AvailableWidgets.OPENSHIFT_AI, "openshiftAi#openshiftAi", 0, 3),
    (AvailableWidgets.EDGE, "edge#edge", 1, 3),
    (AvailableWidgets.ACS, "acs#acs", 2, 3),
)


def landing_page_base_layout(x: int) -> list[GridItem]:
    """Default landing page layout clamped to ``x`` columns."""
    if x == 0:
        x = 1
    items = []
    for widget, item_id, item_x, item_y in _LANDING_ITEMS:
        dims = WIDGET_MAPPING[widget].defaults
        items.append(
            GridItem(
                id=item_id,
                x=min(item_x, x),
                y=item_y,
                width=min(dims.width, x),
                height=dims.height,
                max_height=dims.max_height,
                min_height=dims.min_height,
            )
        )
    return items


LANDING_PAGE_SM = landing_page_base_layout(1)
LANDING_PAGE_MD = landing_page_base_layout(2)
LANDING_PAGE_LG = landing_page_base_layout(3)
LANDING_PAGE_XL = landing_page_base_layout(4)

_ACTIVE = "deleted_at IS NULL"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _dump_items(items: list[GridItem]) -> str:
    return json.dumps([item.to_dict() for item in items])


def _load_items(raw: str | None) -> list[GridItem]:
    return [GridItem.from_dict(item) for item in json.loads(raw or "[]") or []]


def _from_row(row: sqlite3.Row) -> DashboardTemplate:
    config = TemplateConfig()
    for size in GridSizes:
        config.set_items(size, _load_items(row[size.value]))
    return DashboardTemplate(
        id=row["id"],
        created_at=_time(row["created_at"]),
        updated_at=_time(row["updated_at"]),
        deleted_at=_time(row["deleted_at"]),
        user_identity_id=row["user_identity_id"] or 0,
        default=bool(row["default"]),
        template_base=DashboardTemplateBase(
            name=row["name"], display_name=row["display_name"]
        ),
        template_config=config,
    )


class DashboardService:
    """Stores users' dashboard templates and serves the base templates."""

    def __init__(
        self,
        db: Database,
        base_templates: dict[AvailableTemplates, BaseDashboardTemplate] | None = None,
    ) -> None:
        self.db = db
        self.base_templates: dict[Any, BaseDashboardTemplate] = dict(base_templates or {})

    def _create(self, template: DashboardTemplate) -> DashboardTemplate:
        now = _now()
        config = template.template_config
        cursor = self.db.execute(
            'INSERT INTO dashboard_templates (created_at, updated_at, user_identity_id, '
            '"default", name, display_name, sm, md, lg, xl) '
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                _iso(now), _iso(now), template.user_identity_id, int(template.default),
                template.template_base.name, template.template_base.display_name,
                _dump_items(config.sm), _dump_items(config.md),
                _dump_items(config.lg), _dump_items(config.xl),
            ],
        )
        template.id = cursor.lastrowid
        template.created_at = now
        template.updated_at = now
        return template

    def _find(self, template_id: int) -> DashboardTemplate:
        rows = self.db.query(
            f"SELECT * FROM dashboard_templates WHERE id = ? AND {_ACTIVE}", [template_id]
        )
        if not rows:
            raise RecordNotFoundError()
        return _from_row(rows[0])

    def _find_owned(self, user_id: int, template_id: int) -> DashboardTemplate:
        template = self._find(template_id)
        if template.user_identity_id != user_id:
            raise NotAuthorizedError()
        return template

    def fork_base_template(self, user_id: int, dashboard: str) -> DashboardTemplate:
        """Create a default user template from a base template."""
        name = validate_template_name(dashboard)
        base = self.base_templates.get(name, BaseDashboardTemplate())
        template = self._create(
            DashboardTemplate(
                user_identity_id=user_id,
                default=True,
                template_base=DashboardTemplateBase(
                    name=name.value, display_name=base.display_name
                ),
                template_config=copy.deepcopy(base.template_config),
            )
        )
        self.change_default_template(user_id, template.id)
        return template

    def get_all_user_templates(self, user_id: int) -> list[DashboardTemplate]:
        rows = self.db.query(
            f"SELECT * FROM dashboard_templates WHERE user_identity_id = ? AND {_ACTIVE} "
            "ORDER BY id",
            [user_id],
        )
        return [_from_row(row) for row in rows]

    def get_user_templates(self, user_id: int, dashboard: str) -> list[DashboardTemplate]:
        """Templates of one dashboard type; a first one is forked if none exist."""
        rows = self.db.query(
            f"SELECT * FROM dashboard_templates WHERE user_identity_id = ? AND name = ? "
            f"AND {_ACTIVE} ORDER BY id",
            [user_id, str(dashboard)],
        )
        if not rows:
            return [self.fork_base_template(user_id, dashboard)]
        return [_from_row(row) for row in rows]

    def get_templates(self, user_id: int, dashboard: str | None) -> list[DashboardTemplate]:
        if not dashboard:
            return self.get_all_user_templates(user_id)
        return self.get_user_templates(user_id, dashboard)

    def update_template(
        self, template_id: int, user_id: int, template: DashboardTemplate
    ) -> DashboardTemplate:
        """Replace the non-empty layouts of a user's template."""
        stored = self._find_owned(user_id, template_id)
        template.template_config.validate()
        now = _now()
        assignments = ["updated_at = ?"]
        params: list[Any] = [_iso(now)]
        for size in GridSizes:
            items = template.template_config.items_for(size)
            if items:
                assignments.append(f"{size.value} = ?")
                params.append(_dump_items(items))
                stored.template_config.set_items(size, items)
        params.append(template_id)
        self.db.execute(
            f"UPDATE dashboard_templates SET {', '.join(assignments)} WHERE id = ?", params
        )
        stored.updated_at = now
        return stored

    def get_all_base_templates(self) -> list[BaseDashboardTemplate]:
        return list(self.base_templates.values())

    def get_base_template(self, dashboard: str) -> BaseDashboardTemplate:
        name = validate_template_name(dashboard)
        return self.base_templates.get(name, BaseDashboardTemplate())

    def copy_template(self, user_id: int, template_id: int) -> DashboardTemplate:
        """Copy any existing template into a new, non-default one for the user."""
        source = self._find(template_id)
        return self._create(
            DashboardTemplate(
                user_identity_id=user_id,
                template_base=copy.deepcopy(source.template_base),
                template_config=copy.deepcopy(source.template_config),
            )
        )

    def delete_template(self, user_id: int, template_id: int) -> None:
        self._find_owned(user_id, template_id)
        self.db.execute(
            "UPDATE dashboard_templates SET deleted_at = ? WHERE id = ?",
            [_iso(_now()), template_id],
        )

    def change_default_template(self, user_id: int, template_id: int) -> DashboardTemplate:
        """Make the template the only default of its dashboard type."""
        template = self._find_owned(user_id, template_id)
        now = _now()
        with self.db.transaction():
            self.db.execute(
                'UPDATE dashboard_templates SET "default" = 0, updated_at = ? '
                f"WHERE user_identity_id = ? AND name = ? AND {_ACTIVE}",
                [_iso(now), user_id, template.template_base.name],
            )
            self.db.execute(
                'UPDATE dashboard_templates SET "default" = 1, updated_at = ? WHERE id = ?',
                [_iso(now), template_id],
            )
        template.default = True
        template.updated_at = now
        return template

    def encode_template(self, user_id: int, template_id: int) -> str:
        return self._find_owned(user_id, template_id).encode_base64()

    def decode_template(self, encoded: str) -> DashboardTemplate:
        return decode_dashboard_base64(encoded)