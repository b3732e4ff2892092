"""Tests for households and memberships over HTTP."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from models import Category, Household, HouseholdMember, HouseholdRole
from schemas import HouseholdCreate
from services.households import DEFAULT_CATEGORIES, create_household


class TestHouseholdCrud:
    """Tests for creating, reading, updating and deleting households."""

    def test_requires_token(self, client):
        resp = client.get("/households")
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Authentication required"}

    def test_rejects_unknown_token(self, client):
        resp = client.get("/households", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_create_makes_creator_sole_owner(self, app, owner, household):
        assert household["name"] == "Home"
        assert household["currency"] == "ILS"
        assert [(m["user_id"], m["role"]) for m in household["members"]] == [(owner.id, "owner")]
        with app.app_context():
            owners = HouseholdMember.query.filter_by(
                household_id=household["id"], role=HouseholdRole.OWNER
            ).all()
            assert len(owners) == 1

    def test_create_seeds_system_categories(self, owner, household):
        rows = owner.get(f"/households/{household['id']}/categories").get_json()
        assert len(rows) == len(DEFAULT_CATEGORIES)
        assert all(c["is_system"] for c in rows)
        assert "Food & Groceries" in {c["name"] for c in rows}

    def test_create_validates_name(self, owner):
        resp = owner.post("/households", json={"name": "   "})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Validation failed"

    def test_create_is_atomic(self, app, owner, monkeypatch):
        """A failing insert leaves no household, membership or category behind."""
        broken = [("Fine", None, "#000000", "x"), (None, None, "#000000", "x")]
        monkeypatch.setattr("services.households.DEFAULT_CATEGORIES", broken)
        with app.app_context():
            with pytest.raises(SQLAlchemyError):
                create_household(HouseholdCreate(name="Broken"), owner.id)
            assert Household.query.filter_by(name="Broken").count() == 0
            assert HouseholdMember.query.filter_by(user_id=owner.id).count() == 0
            assert Category.query.count() == 0

    def test_list_only_mine(self, owner, household, login):
        other = login("carol")
        other.post("/households", json={"name": "Carol's"})
        assert [h["id"] for h in owner.get("/households").get_json()] == [household["id"]]

    def test_get_household(self, owner, household):
        resp = owner.get(f"/households/{household['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["id"] == household["id"]

    def test_get_missing_is_404(self, owner):
        assert owner.get("/households/does-not-exist").status_code == 404

    def test_non_member_denied(self, household, login):
        stranger = login("mallory")
        hid = household["id"]
        assert stranger.get(f"/households/{hid}").status_code == 403
        assert stranger.patch(f"/households/{hid}", json={"name": "Mine"}).status_code == 403
        assert stranger.delete(f"/households/{hid}").status_code == 403
        assert stranger.get(f"/households/{hid}/categories").status_code == 403
        assert stranger.get(f"/households/{hid}/transactions").status_code == 403
        assert stranger.post(f"/households/{hid}/leave").status_code == 403

    def test_admin_may_rename(self, owner, household, add_member):
        admin = add_member("adam", "admin")
        resp = admin.patch(f"/households/{household['id']}", json={"name": "Renamed"})
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Renamed"

    def test_only_owner_updates_settings(self, owner, household, add_member):
        admin = add_member("adam", "admin")
        hid = household["id"]
        assert admin.patch(f"/households/{hid}", json={"settings": {"week_start": "sun"}}).status_code == 403
        assert admin.patch(f"/households/{hid}", json={"currency": "USD"}).status_code == 403
        resp = owner.patch(f"/households/{hid}", json={"settings": {"week_start": "sun"}, "currency": "USD"})
        assert resp.status_code == 200
        assert resp.get_json()["settings"] == {"week_start": "sun"}
        assert resp.get_json()["currency"] == "USD"

    def test_member_may_not_rename(self, household, add_member):
        member = add_member("bob")
        assert member.patch(f"/households/{household['id']}", json={"name": "X"}).status_code == 403

    def test_only_owner_deletes(self, app, owner, household, add_member):
        admin = add_member("adam", "admin")
        hid = household["id"]
        assert admin.delete(f"/households/{hid}").status_code == 403
        assert owner.delete(f"/households/{hid}").status_code == 204
        assert owner.get(f"/households/{hid}").status_code == 404
        with app.app_context():
            assert Category.query.filter_by(household_id=hid).count() == 0


class TestMembers:
    """Tests for adding, removing and re-roling members."""

    def test_add_member(self, owner, household, add_member):
        member = add_member("bob", "viewer")
        members = owner.get(f"/households/{household['id']}").get_json()["members"]
        assert {(m["user_id"], m["role"]) for m in members} == {(owner.id, "owner"), (member.id, "viewer")}

    def test_add_unknown_user_is_404(self, owner, household):
        resp = owner.post(f"/households/{household['id']}/members", json={"user_id": "user-ghost"})
        assert resp.status_code == 404

    def test_add_existing_member_is_400(self, owner, household, add_member):
        member = add_member("bob")
        resp = owner.post(f"/households/{household['id']}/members", json={"user_id": member.id})
        assert resp.status_code == 400

    def test_owner_role_cannot_be_granted(self, owner, household, login):
        bob = login("bob")
        resp = owner.post(f"/households/{household['id']}/members", json={"user_id": bob.id, "role": "owner"})
        assert resp.status_code == 400

    def test_member_cannot_add_members(self, household, add_member, login):
        member = add_member("bob")
        carol = login("carol")
        resp = member.post(f"/households/{household['id']}/members", json={"user_id": carol.id})
        assert resp.status_code == 403

    def test_admin_removes_member(self, household, add_member):
        admin = add_member("adam", "admin")
        member = add_member("bob")
        assert admin.delete(f"/households/{household['id']}/members/{member.id}").status_code == 204
        assert member.get(f"/households/{household['id']}").status_code == 403

    def test_nobody_removes_owner(self, owner, household, add_member):
        admin = add_member("adam", "admin")
        hid = household["id"]
        assert admin.delete(f"/households/{hid}/members/{owner.id}").status_code == 403
        assert owner.delete(f"/households/{hid}/members/{owner.id}").status_code == 403

    def test_remove_non_member_is_404(self, owner, household, login):
        carol = login("carol")
        assert owner.delete(f"/households/{household['id']}/members/{carol.id}").status_code == 404

    def test_removed_member_can_be_added_again(self, owner, household, add_member):
        member = add_member("bob")
        owner.delete(f"/households/{household['id']}/members/{member.id}")
        resp = owner.post(
            f"/households/{household['id']}/members", json={"user_id": member.id, "role": "admin"}
        )
        assert resp.status_code == 201
        assert resp.get_json()["role"] == "admin"

    def test_only_owner_changes_roles(self, owner, household, add_member):
        admin = add_member("adam", "admin")
        member = add_member("bob")
        url = f"/households/{household['id']}/members/{member.id}/role"
        assert admin.patch(url, json={"role": "admin"}).status_code == 403
        resp = owner.patch(url, json={"role": "viewer"})
        assert resp.status_code == 200
        assert resp.get_json()["role"] == "viewer"

    def test_owner_role_is_fixed(self, owner, household, add_member):
        member = add_member("bob")
        hid = household["id"]
        assert owner.patch(f"/households/{hid}/members/{member.id}/role", json={"role": "owner"}).status_code == 400
        assert owner.patch(f"/households/{hid}/members/{owner.id}/role", json={"role": "admin"}).status_code == 403

    def test_member_leaves(self, household, add_member):
        member = add_member("bob")
        resp = member.post(f"/households/{household['id']}/leave")
        assert resp.status_code == 200
        assert member.get("/households").get_json() == []

    def test_owner_cannot_leave(self, owner, household):
        resp = owner.post(f"/households/{household['id']}/leave")
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "The household owner cannot leave the household"


class TestHouseholdScenario:
    """End-to-end: create, invite, accept, and the owner/member limits."""

    def test_full_lifecycle(self, owner, household, login, mailbox):
        hid = household["id"]
        bob = login("bob")
        carol = login("carol")

        me = owner.get(f"/households/{hid}").get_json()["members"][0]
        assert me["role"] == "owner"

        invite = owner.post(f"/invitations/household/{hid}/invite", json={"email": bob.email})
        assert invite.status_code == 201
        assert mailbox[-1]["email"] == bob.email

        accepted = bob.post(f"/invitations/{invite.get_json()['id']}/accept")
        assert accepted.status_code == 200
        assert accepted.get_json()["membership"]["role"] == "member"

        denied = bob.post(f"/invitations/household/{hid}/invite", json={"email": carol.email})
        assert denied.status_code == 403

        assert owner.delete(f"/households/{hid}/members/{bob.id}").status_code == 204
        assert owner.post(f"/households/{hid}/leave").status_code == 403
