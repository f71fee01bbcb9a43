# [파일 설명]
# - 목적: 인증 없는 파이프라인 엔드포인트(/sql/validate, /ai/classify)와 공통 오류 봉투를 검증한다.
# - 제공 기능: 정상 응답, 게이트 거부, 요청 검증 실패, 404 응답 구조를 테스트한다.
# - 입력/출력: TestClient로 고정 JSON을 전송하고 봉투 필드를 단언한다.
# - 주의 사항: 원문 SQL이나 비밀 값은 로그/출력에 포함하지 않는다.
# - 연관 모듈: app.main, app.api.pipeline, app.api.envelope와 연동된다.
from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app
from app.services.ai_codes import CODE_MESSAGES


# [함수 설명]
# - 목적: 허용 테이블 안의 SELECT가 ok=true로 보고되는지 확인한다.
# - 입력: sql, allowedTables
# - 출력: statementKinds/statementCount 검증
# - 에러 처리: 실패 시 pytest assertion으로 보고한다.
# - 결정론: 동일 입력에 대해 동일 결과를 검증한다.
# - 보안: 응답에 SQL 원문이 포함되지 않는다.
def test_validate_accepts_allowed_select() -> None:
    client = TestClient(app)

    response = client.post(
        "/sql/validate",
        json={"sql": "SELECT * FROM users", "allowedTables": ["users"]},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "data": {
            "ok": True,
            "reason": None,
            "statementKinds": ["select"],
            "statementCount": 1,
        },
        "error": None,
    }


def test_validate_reports_rejection_in_data() -> None:
    client = TestClient(app)

    response = client.post("/sql/validate", json={"sql": "SELECT 1; DROP ROLE admin"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["ok"] is False
    assert data["reason"] == "Operation 'DROP ROLE' is not allowed in PGlite (browser environment)."
    assert data["statementKinds"] == []
    assert data["statementCount"] == 0


def test_validate_empty_sql_is_rejected_not_invalid() -> None:
    client = TestClient(app)

    response = client.post("/sql/validate", json={"sql": ""})

    assert response.status_code == 200
    assert response.json()["data"]["reason"] == "Empty SQL"


def test_validate_missing_sql_is_invalid_request() -> None:
    client = TestClient(app)

    response = client.post("/sql/validate", json={"allowedTables": ["users"]})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "INVALID_REQUEST"
    assert body["error"]["details"][0]["loc"] == ["body", "sql"]


def test_classify_returns_outcome() -> None:
    client = TestClient(app)

    response = client.post(
        "/ai/classify",
        json={"text": "CODE:NO_DATA\nEXPLANATION: Nobody ordered yet."},
    )

    assert response.status_code == 200
    assert response.json()["data"] == {
        "code": "NO_DATA",
        "message": CODE_MESSAGES["NO_DATA"],
        "sql": "",
        "explanation": "Nobody ordered yet.",
    }


def test_classify_does_not_require_auth() -> None:
    client = TestClient(app)

    response = client.post("/ai/classify", json={"text": "```sql\nSELECT 1\n```"})

    assert response.status_code == 200
    assert response.json()["data"]["sql"] == "SELECT 1"


def test_unknown_route_returns_not_found_envelope() -> None:
    client = TestClient(app)

    response = client.get("/nope")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "data": None,
        "error": {"message": "Not found", "code": "NOT_FOUND"},
    }


def test_classify_accepts_lone_surrogate() -> None:
    client = TestClient(app)

    response = client.post(
        "/ai/classify",
        content=b'{"text": "\\ud800 hello world"}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["code"] == "SUCCESS"


def test_validate_accepts_lone_surrogate() -> None:
    client = TestClient(app)

    response = client.post(
        "/sql/validate",
        content=b'{"sql": "SELECT \'\\ud800\'"}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
