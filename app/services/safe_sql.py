# [파일 설명]
# - 목적: SQL/프롬프트/모델 응답 원문 대신 요약 정보를 계산해 안전한 로그 출력에 활용한다.
# - 제공 기능: 길이/해시 요약과 비어 있지 않은 줄 목록을 제공한다.
# - 입력/출력: 원문 텍스트를 입력으로 받아 요약 dict 또는 줄 목록을 반환한다.
# - 주의 사항: 원문 텍스트 자체는 반환하거나 로그에 남기지 않는다.
# - 연관 모듈: 분류기(app.services.ai_codes), 검증기(app.services.sql_validation), API 라우트.
from __future__ import annotations

import hashlib


# [함수 설명]
# - 목적: 텍스트의 길이와 sha256 앞 8자리를 계산한다.
# - 입력: text: str
# - 출력: {"len": int, "sha256_8": str}
# - 보안: 원문 대신 이 요약만 로그에 기록한다.
def summarize_sql(text: str) -> dict[str, int | str]:
    text_hash = hashlib.sha256(text.encode("utf-8", errors="surrogatepass")).hexdigest()[:8]
    return {"len": len(text), "sha256_8": text_hash}


def non_blank_lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line.strip()]
