"""
App layer: UI 서버 (FastAPI + Jinja2).

역할:
- 앱 빌더 화면 (프롬프트 → 미리보기/QR)
- 채팅 화면 (세션 목록, 검색, 스트리밍 응답)
- LLM / 샌드박스 호출 (providers, services)
- ⚠️ 파싱/저장 규칙 없음 (core에 위임)
"""
