"""
Nutrition Portal - Voucher Routing Tests
"""

import pytest

from nutrition_portal.auth.models import ActiveFlag, Role
from nutrition_portal.auth.tokens import issue_bearer_token
from tests.conftest import auth_headers, create_account, login_headers, sample_details


FILE_URL = "https://storage.example.org/vouchers/2024-05.pdf"


@pytest.fixture
def deo_headers(client, test_deo):
    return login_headers(client, "deo0")


@pytest.fixture
def vo_headers(client, test_vo):
    return login_headers(client, "vo0")


def submit(client, headers, file_path=FILE_URL):
    return client.post("/api/vouchers", json={"file_path": file_path}, headers=headers)


def token_headers(user_id: int, role: Role) -> dict:
    """Inactive accounts cannot log in; mint their token directly."""
    token, _ = issue_bearer_token(user_id, role)
    return auth_headers(token)


class TestSubmit:

    def test_routed_to_active_vo(self, client, deo_headers, test_deo, test_vo):
        response = submit(client, deo_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["deo_id"] == test_deo.id
        assert data["vo_id"] == test_vo.id
        assert data["vo_full_name"] == "Vo Zero"
        assert data["deo_username"] == "deo0"

    def test_no_active_vo(self, client, deo_headers):
        response = submit(client, deo_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "No active Verification Officer found"

    def test_vo_with_inactive_details_not_routed(self, client, deo_headers, db_session):
        create_account(
            db_session, "vo1", role=Role.VO,
            details={**sample_details(), "is_active": ActiveFlag.NO},
        )

        assert submit(client, deo_headers).status_code == 400

    def test_file_path_required(self, client, deo_headers, test_vo):
        response = submit(client, deo_headers, file_path="  ")

        assert response.status_code == 400
        assert response.json()["errors"][0]["message"] == "File path is required"

    def test_pending_deo_cannot_submit(self, client, db_session, test_vo):
        create_account(db_session, "deo_new", role=Role.DEO)

        response = submit(client, login_headers(client, "deo_new"))

        assert response.status_code == 403
        assert response.json()["error_code"] == "details_required"

    def test_vo_cannot_submit(self, client, vo_headers):
        assert submit(client, vo_headers).status_code == 403

    def test_admin_cannot_submit(self, client, admin_headers, test_vo):
        assert submit(client, admin_headers).status_code == 403


class TestReadVouchers:

    def test_listing_is_filtered_by_role(self, client, deo_headers, vo_headers, admin_headers, db_session):
        submit(client, deo_headers)
        submit(client, deo_headers, file_path=FILE_URL + "?v=2")

        other = create_account(
            db_session, "deo_other", role=Role.DEO, is_active=ActiveFlag.NO,
            details=sample_details("200077776666"),
        )
        other_headers = token_headers(other.id, Role.DEO)

        assert len(client.get("/api/vouchers", headers=deo_headers).json()["data"]) == 2
        assert len(client.get("/api/vouchers", headers=vo_headers).json()["data"]) == 2
        assert len(client.get("/api/vouchers", headers=admin_headers).json()["data"]) == 2
        assert client.get("/api/vouchers", headers=other_headers).json()["data"] == []

    def test_newest_first(self, client, deo_headers, vo_headers):
        first = submit(client, deo_headers).json()["data"]["id"]
        second = submit(client, deo_headers).json()["data"]["id"]

        ids = [v["id"] for v in client.get("/api/vouchers", headers=vo_headers).json()["data"]]

        assert ids == [second, first]

    def test_get_by_id(self, client, deo_headers, vo_headers):
        voucher_id = submit(client, deo_headers).json()["data"]["id"]

        response = client.get(f"/api/vouchers/{voucher_id}", headers=vo_headers)

        assert response.status_code == 200
        assert response.json()["data"]["file_path"] == FILE_URL

    def test_get_missing(self, client, deo_headers):
        assert client.get("/api/vouchers/9999", headers=deo_headers).status_code == 404

    def test_non_party_forbidden(self, client, deo_headers, test_vo, db_session):
        voucher_id = submit(client, deo_headers).json()["data"]["id"]
        other = create_account(db_session, "vo_other", role=Role.VO, is_active=ActiveFlag.NO)

        response = client.get(f"/api/vouchers/{voucher_id}", headers=token_headers(other.id, Role.VO))

        assert response.status_code == 403


class TestVerify:

    def test_vo_approves(self, client, deo_headers, vo_headers):
        voucher_id = submit(client, deo_headers).json()["data"]["id"]

        response = client.put(
            f"/api/vouchers/{voucher_id}/verify",
            json={"status": "approved", "comment": "Looks right"},
            headers=vo_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Voucher approved successfully"
        assert data["data"]["status"] == "approved"
        assert data["data"]["comment"] == "Looks right"

        seen_by_deo = client.get(f"/api/vouchers/{voucher_id}", headers=deo_headers).json()["data"]
        assert seen_by_deo["status"] == "approved"

    def test_vo_rejects_without_comment(self, client, deo_headers, vo_headers):
        voucher_id = submit(client, deo_headers).json()["data"]["id"]

        response = client.put(
            f"/api/vouchers/{voucher_id}/verify", json={"status": "rejected"}, headers=vo_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["comment"] is None

    def test_invalid_status(self, client, deo_headers, vo_headers):
        voucher_id = submit(client, deo_headers).json()["data"]["id"]

        response = client.put(
            f"/api/vouchers/{voucher_id}/verify", json={"status": "maybe"}, headers=vo_headers
        )

        assert response.status_code == 400

    def test_deo_cannot_verify(self, client, deo_headers, test_vo):
        voucher_id = submit(client, deo_headers).json()["data"]["id"]

        response = client.put(
            f"/api/vouchers/{voucher_id}/verify", json={"status": "approved"}, headers=deo_headers
        )

        assert response.status_code == 403

    def test_only_assigned_vo(self, client, admin_headers, deo_headers, test_vo):
        voucher_id = submit(client, deo_headers).json()["data"]["id"]

        # hand over to a new VO; the voucher stays with vo0
        client.post(
            "/api/auth/register",
            json={
                "username": "vo_next",
                "password": "Secret123",
                "confirmPassword": "Secret123",
                "role": "vo",
                "deactivateConflicting": True,
            },
            headers=admin_headers,
        )
        vo_next = client.get("/api/users", headers=admin_headers).json()["users"][-1]
        client.post(
            f"/api/user-details/vo/{vo_next['id']}",
            json={"fullName": "Vo Next", "nicNumber": "200155554444"},
            headers=admin_headers,
        )

        response = client.put(
            f"/api/vouchers/{voucher_id}/verify",
            json={"status": "approved"},
            headers=login_headers(client, "vo_next"),
        )

        assert response.status_code == 404
