"""
LingoFlow Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Sample catalog, fixed clock, in-memory repository
    ├── unit/                # Engine and service tests (no database)
    │   ├── test_text.py
    │   ├── test_session_generator.py
    │   ├── test_answer_evaluator.py
    │   ├── test_progression.py
    │   ├── test_session_service.py
    │   └── ...
    └── integration/         # SQLite-backed repository and HTTP API tests
        ├── test_sql_repository.py
        ├── test_practice_api.py
        └── test_health.py

Running Tests:
    # Run all tests
    pytest -v

    # Run only unit tests
    pytest backend/tests/unit/ -v

    # Run only integration tests
    pytest -m integration -v
"""
