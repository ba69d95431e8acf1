"""
CodeBrick: 재사용 가능한 코드 템플릿 관리 도구.

레이어:
- domain/    → 상수, 에러, 스키마
- core/      → store.json / brick.json 저장소 (원자적 쓰기)
- templates/ → 템플릿 엔진 (로컬, 원격, apply, archive, clean)
- cli/       → `brick` 명령어
"""

__version__ = "0.3.0"
