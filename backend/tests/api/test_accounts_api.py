import pytest
from httpx import AsyncClient

from celestia.infra.jwt import encode_access
from celestia.moderation.domain.notifications import NotificationKind

BASE = "/api/mod/v1/accounts"


async def _register(api_client: AsyncClient, admin_headers, user_id: str) -> dict:
	resp = await api_client.post(BASE, json={"userId": user_id}, headers=admin_headers)
	assert resp.status_code == 201, resp.text
	return resp.json()


@pytest.mark.asyncio
async def test_register_then_approve(api_client: AsyncClient, admin_headers, recording_dispatcher):
	created = await _register(api_client, admin_headers, "u1")
	assert created["profileStatus"] == "pending"
	assert created["visibility"] is False
	assert created["moderationFlags"]["isBanned"] is False

	resp = await api_client.post(f"{BASE}/u1/approve", headers=admin_headers)

	assert resp.status_code == 200
	body = resp.json()
	assert body["profileStatus"] == "active"
	assert body["visibility"] is True
	assert recording_dispatcher.kinds_for("u1") == [NotificationKind.APPROVED]


@pytest.mark.asyncio
async def test_reject_renders_template_and_owner_can_retry(api_client: AsyncClient, admin_headers):
	await _register(api_client, admin_headers, "u1")

	resp = await api_client.post(
		f"{BASE}/u1/reject",
		json={"reasonCode": "no_face_photo", "adminNote": "Please smile"},
		headers=admin_headers,
	)
	assert resp.status_code == 200
	body = resp.json()
	assert body["profileStatus"] == "rejected"
	assert body["profileStatusReasonCode"] == "no_face_photo"
	assert "Please smile" in body["profileStatusFixInstructions"]

	retry = await api_client.post(f"{BASE}/me/retry", headers={"X-User-Id": "u1"})
	assert retry.status_code == 200
	assert retry.json()["profileStatus"] == "pending"

	me = await api_client.get(f"{BASE}/me", headers={"X-User-Id": "u1"})
	assert me.status_code == 200
	assert me.json()["id"] == "u1"


@pytest.mark.asyncio
async def test_workflow_errors_map_to_status_codes(api_client: AsyncClient, admin_headers):
	missing = await api_client.post(f"{BASE}/ghost/approve", headers=admin_headers)
	assert missing.status_code == 404
	assert missing.json()["detail"] == "account_not_found"
	assert "request_id" in missing.json()

	await _register(api_client, admin_headers, "u1")
	await api_client.post(f"{BASE}/u1/ban", json={"reason": "Scam"}, headers=admin_headers)

	conflict = await api_client.post(f"{BASE}/u1/suspend", json={"reason": "Spam", "days": 3}, headers=admin_headers)
	assert conflict.status_code == 409
	assert conflict.json()["detail"] == "invalid_transition"

	await _register(api_client, admin_headers, "u2")
	invalid = await api_client.post(f"{BASE}/u2/reject", json={"reasonCode": "bad_vibes"}, headers=admin_headers)
	assert invalid.status_code == 422
	assert invalid.json()["detail"] == "unknown_reason_code"


@pytest.mark.asyncio
async def test_suspend_sets_moderation_flags(api_client: AsyncClient, admin_headers):
	await _register(api_client, admin_headers, "u1")
	await api_client.post(f"{BASE}/u1/approve", headers=admin_headers)

	resp = await api_client.post(f"{BASE}/u1/suspend", json={"reason": "Harassment", "days": 3}, headers=admin_headers)

	assert resp.status_code == 200
	flags = resp.json()["moderationFlags"]
	assert flags["isSuspended"] is True
	assert flags["suspensionReason"] == "Harassment"
	assert flags["suspendedUntil"] is not None
	assert resp.json()["visibility"] is False


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(api_client: AsyncClient):
	resp = await api_client.post(f"{BASE}/u1/approve", headers={"X-User-Id": "u9"})
	assert resp.status_code == 403

	anonymous = await api_client.get(f"{BASE}/u1")
	assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_list_accounts_filters_by_status(api_client: AsyncClient, admin_headers):
	await _register(api_client, admin_headers, "u1")
	await _register(api_client, admin_headers, "u2")
	await api_client.post(f"{BASE}/u2/approve", headers=admin_headers)

	resp = await api_client.get(BASE, params={"status": "pending"}, headers=admin_headers)

	assert resp.status_code == 200
	assert [item["id"] for item in resp.json()] == ["u1"]


@pytest.mark.asyncio
async def test_audit_trail_lists_newest_first(api_client: AsyncClient, admin_headers):
	await _register(api_client, admin_headers, "u1")
	await api_client.post(f"{BASE}/u1/approve", headers=admin_headers)
	await api_client.post(f"{BASE}/u1/warn", json={"reason": "Spam"}, headers=admin_headers)

	resp = await api_client.get(f"{BASE}/u1/audit", headers=admin_headers)

	assert resp.status_code == 200
	entries = resp.json()
	assert [e["action"] for e in entries] == ["account.warn", "account.approve"]
	assert entries[1]["actorId"] == "admin-1"
	assert entries[1]["targetId"] == "u1"

	missing = await api_client.get(f"{BASE}/ghost/audit", headers=admin_headers)
	assert missing.status_code == 404
	forbidden = await api_client.get(f"{BASE}/u1/audit", headers={"X-User-Id": "u1"})
	assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_bearer_token_roles_gate_admin_routes(api_client: AsyncClient, admin_headers):
	await _register(api_client, admin_headers, "u1")
	admin_token = encode_access({"sub": "admin-9", "roles": ["admin"]})
	member_token = encode_access({"sub": "u2", "roles": "member"})

	denied = await api_client.post(f"{BASE}/u1/approve", headers={"Authorization": f"Bearer {member_token}"})
	assert denied.status_code == 403

	resp = await api_client.post(f"{BASE}/u1/approve", headers={"Authorization": f"Bearer {admin_token}"})
	assert resp.status_code == 200
	trail = await api_client.get(f"{BASE}/u1/audit", headers={"Authorization": f"Bearer {admin_token}"})
	assert trail.json()[0]["actorId"] == "admin-9"


@pytest.mark.asyncio
async def test_invalid_bearer_token_is_unauthorized(api_client: AsyncClient):
	resp = await api_client.get(f"{BASE}/u1/audit", headers={"Authorization": "Bearer not-a-token"})
	assert resp.status_code == 401
