"""Tests for the auth blueprint (login / logout)."""

from liftflow.extensions import db
from liftflow.models.user import User


class TestLogin:
    """Tests for the /auth/login route."""

    def test_login_page_loads(self, client, seed_data):
        resp = client.get("/auth/login")
        assert resp.status_code == 200
        assert b"Log in" in resp.data

    def test_login_valid_credentials(self, client, seed_data, login):
        """POST with valid credentials should redirect."""
        resp = login(seed_data["athlete_email"])
        assert resp.status_code == 302

    def test_login_with_next_param(self, client, seed_data):
        """The post-checkout page survives the login round trip."""
        next_url = f"/payment/success?session_id=cs_1&program_id={seed_data['program_id']}"
        resp = client.post(
            "/auth/login",
            data={
                "email": seed_data["athlete_email"],
                "password": "liftpass123",
                "next": next_url,
            },
            follow_redirects=False,
        )
        assert resp.status_code == 302
        assert "/payment/success" in resp.headers["Location"]

    def test_login_invalid_password(self, client, seed_data, login):
        resp = login(seed_data["athlete_email"], password="wrongpassword")
        assert resp.status_code == 401
        assert b"Invalid email or password" in resp.data

    def test_login_nonexistent_email(self, client, seed_data, login):
        resp = login("nobody@example.com", password="anything")
        assert resp.status_code == 401
        assert b"Invalid email or password" in resp.data

    def test_login_email_is_case_insensitive(self, client, seed_data, login):
        resp = login("  Athlete@Test.com ")
        assert resp.status_code == 302

    def test_login_deactivated_account(self, client, seed_data, app, login):
        with app.app_context():
            athlete = db.session.get(User, seed_data["athlete_id"])
            athlete.is_active = False
            db.session.commit()

        resp = login(seed_data["athlete_email"])
        assert resp.status_code == 403
        assert b"deactivated" in resp.data.lower()

    def test_login_missing_fields(self, client, seed_data):
        resp = client.post(
            "/auth/login",
            data={"email": "", "password": ""},
        )
        assert resp.status_code == 400
        assert b"required" in resp.data.lower()

    def test_login_open_redirect_prevention(self, client, seed_data):
        """POST with external URL in next param should redirect to /."""
        for next_url in ("https://evil.com/steal", "//evil.com/steal"):
            client.get("/auth/logout")
            resp = client.post(
                "/auth/login",
                data={
                    "email": seed_data["athlete_email"],
                    "password": "liftpass123",
                    "next": next_url,
                },
                follow_redirects=False,
            )
            assert resp.status_code == 302
            assert "evil.com" not in resp.headers["Location"]


class TestLogout:
    """Tests for the /auth/logout route."""

    def test_logout(self, client, seed_data, login):
        login(seed_data["athlete_email"])

        resp = client.get("/auth/logout", follow_redirects=False)
        assert resp.status_code == 302
        assert "/auth/login" in resp.headers["Location"]

        resp = client.get(f"/payment/status?program_id={seed_data['program_id']}")
        assert resp.status_code == 302

    def test_logout_when_not_logged_in(self, client, seed_data):
        resp = client.get("/auth/logout", follow_redirects=False)
        assert resp.status_code == 302
        assert "/auth/login" in resp.headers["Location"]


class TestAuthenticatedRedirects:

    def test_login_page_redirects_when_authenticated(self, client, seed_data, login):
        login(seed_data["athlete_email"])

        resp = client.get("/auth/login", follow_redirects=False)
        assert resp.status_code == 302

    def test_root_sends_user_to_their_programs(self, client, seed_data, login):
        login(seed_data["athlete_email"])

        resp = client.get("/", follow_redirects=False)
        assert resp.status_code == 302
        assert "/athlete/access" in resp.headers["Location"]

    def test_root_sends_anonymous_to_login(self, client, seed_data):
        resp = client.get("/", follow_redirects=False)
        assert resp.status_code == 302
        assert "/auth/login" in resp.headers["Location"]
