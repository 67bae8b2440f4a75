"""
test_auth.py: Credential lookup against the admin sheet, route guard and session file.
"""

import json

import pytest

from core.auth import (
    AuthSession,
    Permission,
    admin_path,
    allowed_uploads,
    authenticate,
    can_access,
    require_permission,
    require_upload,
)
from core.errors import AuthenticationError, AuthorizationError, MalformedTableError
from core.session import PageCache, SessionStore, new_client_id

ADMIN_SHEET = [
    ["EMAIL", "PASS", "ACCES"],
    ["Boss@Example.com", "s3cret", "SUPERADMIN"],
    ["clock@example.com", 1234, "POINTAGE"],
    ["odd@example.com", "pw", "VISITOR"],
]


class TestAuthenticate:

    def test_email_case_insensitive(self):
        session = authenticate(ADMIN_SHEET, "  BOSS@example.COM ", "s3cret")
        assert session == AuthSession(email="boss@example.com", permission=Permission.SUPERADMIN)
        assert session.is_authenticated

    def test_password_exact(self):
        with pytest.raises(AuthenticationError, match="Email ou mot de passe incorrect"):
            authenticate(ADMIN_SHEET, "boss@example.com", "S3CRET")

    def test_numeric_password_cell(self):
        assert authenticate(ADMIN_SHEET, "clock@example.com", "1234").permission is Permission.POINTAGE

    def test_unknown_permission(self):
        with pytest.raises(AuthorizationError):
            authenticate(ADMIN_SHEET, "odd@example.com", "pw")

    def test_missing_header_column(self):
        with pytest.raises(MalformedTableError, match="Invalid data structure"):
            authenticate([["EMAIL", "PASS"], ["a", "b"]], "a", "b")

    @pytest.mark.parametrize("table", [[], None, {"EMAIL": 1}])
    def test_not_a_table(self, table):
        with pytest.raises(MalformedTableError):
            authenticate(table, "a", "b")


class TestGuard:

    def test_landing_paths(self):
        assert admin_path(Permission.SUPERADMIN) == "/admin/superadmin"
        assert admin_path("POINTAGE") == "/admin/pointage"
        assert admin_path(Permission.LABOURAL) == "/admin/laboural"

    def test_require_permission(self):
        session = AuthSession(email="a@b.c", permission=Permission.LABOURAL)
        assert require_permission(session, Permission.LABOURAL) is session
        with pytest.raises(AuthorizationError):
            require_permission(session, Permission.SUPERADMIN)
        with pytest.raises(AuthenticationError):
            require_permission(None, Permission.LABOURAL)

    def test_can_access(self):
        session = AuthSession(email="a@b.c", permission=Permission.POINTAGE)
        assert can_access(session, Permission.POINTAGE)
        assert not can_access(session, Permission.LABOURAL)
        assert not can_access(None, Permission.POINTAGE)


class TestSessionStore:

    def test_round_trip_and_clear(self, tmp_path):
        path = tmp_path / "session.json"
        store = SessionStore(path)
        assert store.session is None

        session = AuthSession(email="a@b.c", permission=Permission.POINTAGE)
        store.save(session)
        assert json.loads(path.read_text()) == {"email": "a@b.c", "permission": "POINTAGE", "is_authenticated": True}
        assert SessionStore(path).session == session

        store.clear()
        assert store.session is None
        assert not path.exists()

    def test_corrupt_file_discarded(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert SessionStore(path).session is None
        assert not path.exists()

    def test_unknown_permission_discarded(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"email": "a@b.c", "permission": "ROOT"}))
        assert SessionStore(path).session is None

    def test_clients_do_not_share_a_login(self, tmp_path):
        first = SessionStore.for_client(tmp_path, new_client_id())
        second = SessionStore.for_client(tmp_path, new_client_id())
        first.save(AuthSession(email="boss@example.com", permission=Permission.SUPERADMIN))

        assert second.session is None
        assert second.load() is None
        assert first.path != second.path

        second.save(AuthSession(email="clock@example.com", permission=Permission.POINTAGE))
        second.clear()
        assert first.load().email == "boss@example.com"

    def test_reload_finds_the_same_client_session(self, tmp_path):
        client_id = new_client_id()
        SessionStore.for_client(tmp_path, client_id).save(AuthSession(email="a@b.c", permission=Permission.LABOURAL))
        assert SessionStore.for_client(tmp_path, client_id).session.permission is Permission.LABOURAL

    @pytest.mark.parametrize("client_id", ["", "../../etc/passwd", "ABC", None])
    def test_invalid_client_id(self, tmp_path, client_id):
        with pytest.raises(ValueError):
            SessionStore.for_client(tmp_path, client_id)


class TestUploadGuard:

    def test_allowed_uploads_per_permission(self):
        def targets(permission):
            return allowed_uploads(AuthSession(email="a@b.c", permission=permission))

        assert targets(Permission.SUPERADMIN) == ["pointage", "presence", "turnover_form"]
        assert targets(Permission.POINTAGE) == ["pointage", "presence"]
        assert targets(Permission.LABOURAL) == ["database", "recruitment", "temporary", "turnover_form"]
        assert allowed_uploads(None) == []

    def test_require_upload(self):
        pointage = AuthSession(email="a@b.c", permission=Permission.POINTAGE)
        assert require_upload(pointage, "presence") is pointage
        with pytest.raises(AuthorizationError):
            require_upload(pointage, "database")
        with pytest.raises(AuthorizationError):
            require_upload(pointage, "payroll")
        with pytest.raises(AuthenticationError):
            require_upload(None, "pointage")


class TestPageCache:

    def test_tables_kept_while_on_the_same_page(self):
        cache = PageCache()
        cache.for_page("Présence")["attendance"] = "table"
        assert cache.for_page("Présence") == {"attendance": "table"}

    def test_navigation_drops_tables(self):
        cache = PageCache()
        cache.for_page("Présence")["attendance"] = "table"
        assert cache.for_page("Effectif") == {}
        assert cache.for_page("Présence") == {}

    def test_clear_keeps_the_page(self):
        cache = PageCache()
        cache.for_page("Turnover")["turnover"] = "table"
        cache.clear()
        assert cache.tables == {}
        assert cache.page == "Turnover"
