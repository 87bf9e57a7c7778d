"""User identities, favorite pages, visited pages and self reports."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from chromeservice.database import Database
from chromeservice.identity_cache import UserIdentityCache
from chromeservice.models import (
    FavoritePage,
    SelfReport,
    UserIdentity,
    VisitedPage,
)
from chromeservice.responses import LAST_VISITED_MAX

logger = logging.getLogger(__name__)

_ACTIVE = "deleted_at IS NULL"


class IntercomApp(str, Enum):
    OPENSHIFT = "openshift"
    HAC_CORE = "hacCore"
    ACS = "acs"
    ANSIBLE = "ansible"
    ANSIBLE_DASHBOARD = "ansibleDashboard"
    AUTOMATION_HUB = "automationHub"
    AUTOMATION_ANALYTICS = "automationAnalytics"
    DBAAS = "dbaas"

    def __str__(self) -> str:
        return self.value


@dataclass
class IntercomPayload:
    prod: str = ""
    dev: str = ""

    def to_dict(self) -> dict[str, str]:
        out = {}
        if self.prod:
            out["prod"] = self.prod
        if self.dev:
            out["dev"] = self.dev
        return out


def page_exists(pages: Iterable[FavoritePage], page: FavoritePage) -> bool:
    """True if a page with the same pathname is among ``pages``."""
    return any(existing.pathname == page.pathname for existing in pages)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _user_from_row(row: sqlite3.Row) -> UserIdentity:
    bundles = row["visited_bundles"]
    return UserIdentity(
        id=row["id"],
        created_at=_time(row["created_at"]),
        updated_at=_time(row["updated_at"]),
        deleted_at=_time(row["deleted_at"]),
        account_id=row["account_id"] or "",
        first_login=bool(row["first_login"]),
        day_one=bool(row["day_one"]),
        last_login=_time(row["last_login"]),
        last_visited_pages=[
            VisitedPage.from_dict(page)
            for page in json.loads(row["last_visited_pages"] or "[]") or []
        ],
        visited_bundles=json.loads(bundles) if bundles is not None else None,
        ui_preview=bool(row["ui_preview"]),
    )


def _favorite_from_row(row: sqlite3.Row) -> FavoritePage:
    return FavoritePage(
        id=row["id"],
        created_at=_time(row["created_at"]),
        updated_at=_time(row["updated_at"]),
        deleted_at=_time(row["deleted_at"]),
        pathname=row["pathname"],
        favorite=bool(row["favorite"]),
        user_identity_id=row["user_identity_id"] or 0,
    )


def _report_from_row(row: sqlite3.Row) -> SelfReport:
    return SelfReport(
        id=row["id"],
        created_at=_time(row["created_at"]),
        updated_at=_time(row["updated_at"]),
        deleted_at=_time(row["deleted_at"]),
        products_of_interest=list(json.loads(row["products_of_interest"] or "[]") or []),
        job_role=row["job_role"] or "",
        user_identity_id=row["user_identity_id"] or 0,
    )


class UserService:
    """Stores and reads per-user data."""

    def __init__(
        self,
        db: Database,
        cache: UserIdentityCache | None = None,
        intercom_keys: Mapping[str, str] | None = None,
        debug_favorite_ids: Iterable[str] = (),
    ) -> None:
        self.db = db
        self.cache = cache if cache is not None else UserIdentityCache()
        self.intercom_keys = dict(intercom_keys or {})
        self.debug_favorite_ids = frozenset(debug_favorite_ids)

    # identities

    def create_identity(self, account_id: str, skip_cache: bool = False) -> UserIdentity:
        """Return the user's identity, creating its row on first login."""
        if not skip_cache:
            cached = self.cache.get(account_id)
            if cached is not None:
                return cached
        rows = self.db.query(
            f"SELECT * FROM user_identities WHERE account_id = ? AND {_ACTIVE} "
            "ORDER BY id LIMIT 1",
            [account_id],
        )
        if rows:
            identity = _user_from_row(rows[0])
        else:
            now = _now()
            identity = UserIdentity(
                account_id=account_id,
                first_login=True,
                day_one=True,
                last_login=now,
                last_visited_pages=[],
                visited_bundles={},
                created_at=now,
                updated_at=now,
            )
            cursor = self.db.execute(
                "INSERT INTO user_identities (created_at, updated_at, account_id, "
                "first_login, day_one, last_login, last_visited_pages, visited_bundles, "
                "ui_preview) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [_iso(now), _iso(now), account_id, 1, 1, _iso(now), "[]", "{}", 0],
            )
            identity.id = cursor.lastrowid
        self.cache.set(account_id, identity)
        return identity

    def _debug_identity(self, account_id: str) -> None:
        if account_id in self.debug_favorite_ids:
            logger.warning("DEBUG_FAVORITES_ACCOUNT_ID %s", account_id)

    def get_identity_data(self, user: UserIdentity) -> UserIdentity:
        """Return a copy of the user with its favorite pages loaded."""
        pages = self.get_all_favorite_pages(user.id)
        self._debug_identity(user.account_id)
        return replace(user, favorite_pages=pages)

    def add_visited_bundle(self, user: UserIdentity, bundle: str) -> UserIdentity:
        """Mark a bundle visited and return the updated copy of the user."""
        bundles = dict(user.visited_bundles or {})
        bundles[bundle] = True
        self.db.execute(
            "UPDATE user_identities SET visited_bundles = ?, updated_at = ? WHERE id = ?",
            [json.dumps(bundles), _iso(_now()), user.id],
        )
        return replace(user, visited_bundles=bundles)

    def get_visited_bundles(self, user: UserIdentity) -> dict[str, bool]:
        return dict(user.visited_bundles or {})

    def _encode_key(self, namespace: str, account_id: str) -> str:
        key = self.intercom_keys.get(namespace)
        if key is None:
            return ""
        digest = hmac.new(key.encode("utf-8"), account_id.encode("utf-8"), hashlib.sha256)
        return digest.hexdigest()

    def get_intercom_hash(self, account_id: str, app: str) -> IntercomPayload:
        """HMAC hashes of the account id for an app's prod and dev keys."""
        try:
            namespace = IntercomApp(app).value
        except ValueError:
            logger.info("Unable to verify intercom namespace %s", app)
            return IntercomPayload()
        return IntercomPayload(
            prod=self._encode_key(namespace, account_id),
            dev=self._encode_key(f"{namespace}_dev", account_id),
        )

    def update_ui_preview(self, user: UserIdentity, preview: bool) -> UserIdentity:
        user.ui_preview = preview
        self.db.execute(
            "UPDATE user_identities SET ui_preview = ?, updated_at = ? WHERE id = ?",
            [int(preview), _iso(_now()), user.id],
        )
        return user

    def store_last_visited_pages(
        self, user: UserIdentity, pages: Iterable[VisitedPage]
    ) -> list[VisitedPage]:
        """Replace the user's recent pages with the first ten given."""
        recent = list(pages)[:LAST_VISITED_MAX]
        logger.debug("Pages to be inserted: %s", recent)
        now = _now()
        self.db.execute(
            "UPDATE user_identities SET last_visited_pages = ?, updated_at = ? WHERE id = ?",
            [json.dumps([page.to_dict() for page in recent]), _iso(now), user.id],
        )
        user.last_visited_pages = recent
        user.updated_at = now
        return recent

    # favorite pages

    def _favorites(self, where: str, params: list[Any]) -> list[FavoritePage]:
        rows = self.db.query(
            f"SELECT * FROM favorite_pages WHERE {where} AND {_ACTIVE} ORDER BY id", params
        )
        return [_favorite_from_row(row) for row in rows]

    def get_active_favorite_pages(self, user_id: int) -> list[FavoritePage]:
        return self._favorites("user_identity_id = ? AND favorite = 1", [user_id])

    def get_all_favorite_pages(self, user_id: int) -> list[FavoritePage]:
        return self._favorites("user_identity_id = ?", [user_id])

    def get_archived_favorite_pages(self, user_id: int) -> list[FavoritePage]:
        return self._favorites("user_identity_id = ? AND favorite = 0", [user_id])

    def update_favorite_page(self, page: FavoritePage) -> None:
        """Set the favorite flag of the pages with the page's pathname."""
        self.db.execute(
            f"UPDATE favorite_pages SET favorite = ?, updated_at = ? "
            f"WHERE pathname = ? AND {_ACTIVE}",
            [int(page.favorite), _iso(_now()), page.pathname],
        )

    def _debug_favorite(self, account_id: str, page: FavoritePage) -> None:
        if account_id in self.debug_favorite_ids:
            logger.warning(
                "\n_____\nDEBUG_FAVORITES_ACCOUNT_ID: %s\nDEBUG_FAVORITES_PATH: %s\n"
                "DEBUG_FAVORITES_FLAG: %s\n_____",
                account_id,
                page.pathname,
                str(page.favorite).lower(),
            )

    def save_favorite_page(
        self, user_id: int, account_id: str, page: FavoritePage
    ) -> FavoritePage:
        """Update an existing favorite with the same pathname or create a new one."""
        existing = self.get_all_favorite_pages(user_id)
        self._debug_favorite(account_id, page)
        if page_exists(existing, page):
            self.update_favorite_page(page)
            return page
        now = _now()
        cursor = self.db.execute(
            "INSERT INTO favorite_pages (created_at, updated_at, pathname, favorite, "
            "user_identity_id) VALUES (?, ?, ?, ?, ?)",
            [_iso(now), _iso(now), page.pathname, int(page.favorite), page.user_identity_id],
        )
        return replace(page, id=cursor.lastrowid, created_at=now, updated_at=now)

    # self reports

    def get_self_report(self, user_id: int) -> SelfReport:
        """The user's self report, or an empty one if none was stored."""
        rows = self.db.query(
            f"SELECT * FROM self_reports WHERE user_identity_id = ? AND {_ACTIVE} "
            "ORDER BY id LIMIT 1",
            [user_id],
        )
        return _report_from_row(rows[0]) if rows else SelfReport()

    def save_self_report(self, user_id: int, report: SelfReport) -> SelfReport:
        """Store the job role and products of interest of the user."""
        now = _now()
        products = json.dumps(list(report.products_of_interest))
        current = self.get_self_report(user_id)
        if current.id:
            self.db.execute(
                "UPDATE self_reports SET job_role = ?, products_of_interest = ?, "
                "updated_at = ? WHERE id = ?",
                [report.job_role, products, _iso(now), current.id],
            )
            return replace(
                current,
                job_role=report.job_role,
                products_of_interest=list(report.products_of_interest),
                updated_at=now,
            )
        cursor = self.db.execute(
            "INSERT INTO self_reports (created_at, updated_at, products_of_interest, "
            "job_role, user_identity_id) VALUES (?, ?, ?, ?, ?)",
            [_iso(now), _iso(now), products, report.job_role, user_id],
        )
        return SelfReport(
            id=cursor.lastrowid,
            created_at=now,
            updated_at=now,
            products_of_interest=list(report.products_of_interest),
            job_role=report.job_role,
            user_identity_id=user_id,
        )