"""Engine construction."""

from sqlalchemy import text

from config.database import build_engine


class TestBuildEngine:
    def test_sqlite_enforces_foreign_keys(self):
        engine = build_engine("sqlite://")

        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        engine.dispose()

    def test_foreign_keys_on_every_pooled_connection(self):
        engine = build_engine("sqlite://")

        with engine.connect() as first, engine.connect() as second:
            assert first.execute(text("PRAGMA foreign_keys")).scalar() == 1
            assert second.execute(text("PRAGMA foreign_keys")).scalar() == 1
        engine.dispose()
