from datetime import timedelta

from gateway.app.config.settings import settings
from gateway.app.db.models import Tier, UserRecord
from gateway.app.providers.types import GenerationError
from gateway.app.services.quota_service import as_utc

from conftest import CLIENT_IP, DEVICE_ID, IMAGE_URL


def _prompt(client, prompt="a lighthouse at dusk", ip=CLIENT_IP, id=DEVICE_ID):
    params = {"prompt": prompt, "ip": ip, "id": id}
    return client.get("/prompt", params={k: v for k, v in params.items() if v is not None})


def _record(db_session, identity=DEVICE_ID):
    db_session.expire_all()
    return db_session.query(UserRecord).filter(UserRecord.identity == identity).first()


def test_prompt_success_returns_url_and_counts_usage(client, db_session, generation):
    response = _prompt(client)
    assert response.status_code == 200
    assert response.json() == {"code": 200, "url": IMAGE_URL}
    assert generation.prompts == ["a lighthouse at dusk"]

    record = _record(db_session)
    assert record.requests_made == 1
    assert record.tier == Tier.FREE


def test_prompt_missing_params_is_400(client, db_session):
    for params in ({"ip": CLIENT_IP, "id": DEVICE_ID}, {"prompt": "x", "id": DEVICE_ID}, {"prompt": "x", "ip": CLIENT_IP}):
        response = client.get("/prompt", params=params)
        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_PARAMS"
    assert _record(db_session) is None


def test_prompt_invalid_identity_is_403(client, db_session, reputation):
    response = _prompt(client, id="not-a-device-id")
    assert response.status_code == 403
    assert response.json()["code"] == "INVALID_IDENTITY"
    assert reputation.calls == []


def test_prompt_vpn_ip_is_403(client, db_session, reputation, generation):
    reputation.blocked.add(CLIENT_IP)
    response = _prompt(client)
    assert response.status_code == 403
    assert response.json()["code"] == "IP_REJECTED"
    assert generation.prompts == []


def test_prompt_malformed_ip_is_rejected_without_lookup(client, reputation):
    response = _prompt(client, ip="../../admin")
    assert response.status_code == 403
    assert reputation.calls == []


def test_fourth_free_prompt_is_quota_exceeded(client, generation):
    for _ in range(3):
        assert _prompt(client).status_code == 200

    response = _prompt(client, prompt="something completely different")
    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "QUOTA_EXCEEDED"
    assert "Daily limit exceeded" in body["error"]
    assert len(generation.prompts) == 3


def test_quota_resets_on_next_day(client, clock, db_session):
    for _ in range(3):
        _prompt(client)
    assert _prompt(client).status_code == 403

    clock.advance(days=1)
    assert _prompt(client).status_code == 200
    assert _record(db_session).requests_made == 1


def test_paid_identity_is_admitted_after_three_uses(client, db_session, clock):
    for _ in range(3):
        _prompt(client)

    response = client.get("/add", params={"id": DEVICE_ID})
    assert response.status_code == 200
    assert response.json() == {"code": 200, "message": "Account upgraded to premium successfully."}

    record = _record(db_session)
    assert record.tier == Tier.PAID
    assert abs(as_utc(record.premium_expiration) - (clock.now + timedelta(days=30))) <= timedelta(seconds=1)

    assert _prompt(client).status_code == 200
    assert _record(db_session).requests_made == 4


def test_banned_identity_is_denied(client, db_session):
    client.get("/add", params={"id": DEVICE_ID})
    assert client.get(f"/ban/{DEVICE_ID}").status_code == 200

    response = _prompt(client)
    assert response.status_code == 403
    assert response.json()["code"] == "BANNED"


def test_reputation_outage_fails_closed(client, db_session, reputation, generation):
    reputation.fail = True
    response = _prompt(client)
    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "REPUTATION_UNAVAILABLE"
    assert body["error"] == "Internal server error. Please try again later."
    assert generation.prompts == []
    assert _record(db_session) is None


def test_generation_error_is_500_and_still_counts(client, db_session, generation):
    generation.result = GenerationError("Failed to parse generation response. Please try again later.")
    response = _prompt(client)
    assert response.status_code == 500
    assert response.json()["code"] == "GENERATION_FAILED"
    assert _record(db_session).requests_made == 1


def test_error_response_carries_request_id(client):
    response = client.get("/prompt")
    assert response.status_code == 400
    assert response.json()["request_id"] == response.headers["X-Request-ID"]


def test_ip_identity_mode(client, db_session, monkeypatch):
    monkeypatch.setattr(settings, "identity_mode", "ip")

    response = client.get("/prompt", params={"prompt": "x", "ip": CLIENT_IP})
    assert response.status_code == 200
    assert _record(db_session, CLIENT_IP).requests_made == 1

    missing = client.get("/prompt", params={"prompt": "x"})
    assert missing.status_code == 400


def test_ip_mode_keys_records_by_canonical_address(client, db_session, monkeypatch):
    monkeypatch.setattr(settings, "identity_mode", "ip")

    assert client.get("/prompt", params={"prompt": "x", "ip": "2001:4860:4860:0:0:0:0:8888"}).status_code == 200
    assert client.get("/prompt", params={"prompt": "x", "ip": "2001:4860:4860::8888"}).status_code == 200

    assert db_session.query(UserRecord).count() == 1
    assert _record(db_session, "2001:4860:4860::8888").requests_made == 2


def test_ipv6_zone_identifier_is_rejected(client, db_session, reputation):
    response = _prompt(client, ip="fe80::1%" + "e" * 80)
    assert response.status_code == 403
    assert response.json()["code"] == "IP_REJECTED"
    assert reputation.calls == []
    assert db_session.query(UserRecord).count() == 0
