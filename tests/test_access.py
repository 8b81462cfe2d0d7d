"""Tests for the access blueprint and the coach-side access service.

Covers:
- Coach assign / list / update expiry / revoke, with program ownership checks
- Unique grant per (athlete, program) on the assignment path
- Athlete reads of their own grants
"""

import json
from datetime import datetime, timedelta, timezone

from liftflow.extensions import db
from liftflow.models.access import ProgramAccess
from liftflow.services import access_service


def _assign(client, program_id, athlete_id, expires_at=None):
    body = {"athlete_id": athlete_id}
    if expires_at is not None:
        body["expires_at"] = expires_at
    return client.post(f"/coach/programs/{program_id}/access", json=body)


class TestAssignProgram:

    def test_coach_assigns_program(self, client, seed_data, login, app):
        login(seed_data["coach_email"])

        resp = _assign(client, seed_data["program_id"], seed_data["athlete_id"])
        assert resp.status_code == 201
        data = json.loads(resp.data)
        assert data["access_type"] == "assigned"
        assert data["coach_id"] == seed_data["coach_id"]
        assert data["expires_at"] is None

        with app.app_context():
            assert access_service.has_access(
                seed_data["athlete_id"], seed_data["program_id"]
            )

    def test_assign_with_expiry(self, client, seed_data, login):
        login(seed_data["coach_email"])

        resp = _assign(client, seed_data["program_id"], seed_data["athlete_id"],
                       expires_at="2030-01-31")
        assert resp.status_code == 201
        assert json.loads(resp.data)["expires_at"].startswith("2030-01-31")

    def test_second_assignment_is_409(self, client, seed_data, login, app):
        login(seed_data["coach_email"])
        _assign(client, seed_data["program_id"], seed_data["athlete_id"])

        resp = _assign(client, seed_data["program_id"], seed_data["athlete_id"])
        assert resp.status_code == 409
        assert b"already has access" in resp.data

        with app.app_context():
            assert ProgramAccess.query.count() == 1

    def test_assign_after_purchase_is_409(self, client, seed_data, login, app,
                                          post_webhook, make_checkout_event):
        post_webhook(make_checkout_event(
            "evt_bought", seed_data["athlete_id"], seed_data["program_id"]
        ))
        login(seed_data["coach_email"])

        resp = _assign(client, seed_data["program_id"], seed_data["athlete_id"])
        assert resp.status_code == 409

        with app.app_context():
            grant = ProgramAccess.query.one()
            assert grant.access_type == "purchased"

    def test_missing_athlete_id_is_400(self, client, seed_data, login):
        login(seed_data["coach_email"])
        resp = client.post(f"/coach/programs/{seed_data['program_id']}/access", json={})
        assert resp.status_code == 400

    def test_bad_expiry_is_400(self, client, seed_data, login):
        login(seed_data["coach_email"])
        resp = _assign(client, seed_data["program_id"], seed_data["athlete_id"],
                       expires_at="next tuesday")
        assert resp.status_code == 400

    def test_unknown_athlete_is_404(self, client, seed_data, login):
        login(seed_data["coach_email"])
        resp = _assign(client, seed_data["program_id"], "no-such-user")
        assert resp.status_code == 404

    def test_coach_cannot_be_assigned(self, client, seed_data, login):
        login(seed_data["coach_email"])
        resp = _assign(client, seed_data["program_id"], seed_data["other_coach_id"])
        assert resp.status_code == 404

    def test_other_coachs_program_is_403(self, client, seed_data, login, app):
        login(seed_data["coach_email"])
        resp = _assign(client, seed_data["other_program_id"], seed_data["athlete_id"])
        assert resp.status_code == 403

        with app.app_context():
            assert ProgramAccess.query.count() == 0

    def test_unknown_program_is_404(self, client, seed_data, login):
        login(seed_data["coach_email"])
        resp = _assign(client, "no-such-program", seed_data["athlete_id"])
        assert resp.status_code == 404

    def test_athlete_cannot_assign(self, client, seed_data, login):
        login(seed_data["athlete_email"])
        resp = _assign(client, seed_data["program_id"], seed_data["second_athlete_id"])
        assert resp.status_code == 403


class TestCoachListings:

    def test_program_access_lists_grants_with_profile(self, client, seed_data, login):
        login(seed_data["coach_email"])
        _assign(client, seed_data["program_id"], seed_data["athlete_id"])

        resp = client.get(f"/coach/programs/{seed_data['program_id']}/access")
        assert resp.status_code == 200
        grants = json.loads(resp.data)
        assert len(grants) == 1
        assert grants[0]["profile"]["email"] == seed_data["athlete_email"]

    def test_available_athletes_marks_existing_access(self, client, seed_data, login):
        login(seed_data["coach_email"])
        _assign(client, seed_data["program_id"], seed_data["athlete_id"])

        resp = client.get(f"/coach/programs/{seed_data['program_id']}/athletes")
        athletes = {a["user_id"]: a for a in json.loads(resp.data)}

        assert set(athletes) == {seed_data["athlete_id"], seed_data["second_athlete_id"]}
        assert athletes[seed_data["athlete_id"]]["access_type"] == "assigned"
        assert athletes[seed_data["athlete_id"]]["access_id"] is not None
        assert athletes[seed_data["second_athlete_id"]]["access_type"] is None

    def test_listing_other_coachs_program_is_403(self, client, seed_data, login):
        login(seed_data["coach_email"])
        resp = client.get(f"/coach/programs/{seed_data['other_program_id']}/access")
        assert resp.status_code == 403


class TestUpdateAndRevoke:

    def _access_id(self, client, seed_data):
        resp = _assign(client, seed_data["program_id"], seed_data["athlete_id"])
        return json.loads(resp.data)["id"]

    def test_set_and_clear_expiry(self, client, seed_data, login, app):
        login(seed_data["coach_email"])
        access_id = self._access_id(client, seed_data)

        past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        resp = client.put(f"/coach/access/{access_id}", json={"expires_at": past})
        assert resp.status_code == 200
        with app.app_context():
            assert not access_service.has_access(
                seed_data["athlete_id"], seed_data["program_id"]
            )

        resp = client.put(f"/coach/access/{access_id}", json={"expires_at": None})
        assert resp.status_code == 200
        assert json.loads(resp.data)["expires_at"] is None
        with app.app_context():
            assert access_service.has_access(
                seed_data["athlete_id"], seed_data["program_id"]
            )

    def test_remove_access(self, client, seed_data, login, app):
        login(seed_data["coach_email"])
        access_id = self._access_id(client, seed_data)

        resp = client.delete(f"/coach/access/{access_id}")
        assert resp.status_code == 200
        assert json.loads(resp.data) == {"status": "removed"}

        with app.app_context():
            assert db.session.get(ProgramAccess, access_id) is None

    def test_other_coach_cannot_touch_grant(self, client, seed_data, login, app):
        login(seed_data["coach_email"])
        access_id = self._access_id(client, seed_data)
        client.get("/auth/logout")

        login(seed_data["other_coach_email"])
        assert client.delete(f"/coach/access/{access_id}").status_code == 403
        assert client.put(f"/coach/access/{access_id}", json={}).status_code == 403

        with app.app_context():
            assert db.session.get(ProgramAccess, access_id) is not None

    def test_unknown_grant_is_404(self, client, seed_data, login):
        login(seed_data["coach_email"])
        assert client.delete("/coach/access/nope").status_code == 404


class TestAthleteAccess:

    def test_my_access_lists_only_own_grants(self, client, seed_data, login, app):
        with app.app_context():
            db.session.add_all([
                ProgramAccess(
                    user_id=seed_data["athlete_id"],
                    program_id=seed_data["program_id"],
                    access_type="assigned",
                ),
                ProgramAccess(
                    user_id=seed_data["second_athlete_id"],
                    program_id=seed_data["other_program_id"],
                    access_type="assigned",
                ),
            ])
            db.session.commit()

        login(seed_data["athlete_email"])
        grants = json.loads(client.get("/athlete/access").data)

        assert len(grants) == 1
        assert grants[0]["program_id"] == seed_data["program_id"]
        assert grants[0]["program"]["price"] == 199.0

    def test_my_program_access(self, client, seed_data, login, app):
        login(seed_data["athlete_email"])
        url = f"/athlete/programs/{seed_data['program_id']}/access"

        assert json.loads(client.get(url).data) == {"hasAccess": False}

        with app.app_context():
            db.session.add(ProgramAccess(
                user_id=seed_data["athlete_id"],
                program_id=seed_data["program_id"],
                access_type="assigned",
            ))
            db.session.commit()

        assert json.loads(client.get(url).data) == {"hasAccess": True}
