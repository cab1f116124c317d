"""
Integration Tests

Run the SQL repository and the FastAPI app against a throwaway SQLite
database (aiosqlite). No external services are needed.
"""
