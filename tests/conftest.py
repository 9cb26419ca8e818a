from datetime import datetime, timezone
from types import SimpleNamespace

from sqlalchemy.sql.elements import TextClause


class FakeResult:
    def __init__(self, rows=(), rowcount=0):
        self.rows = list(rows)
        self.rowcount = rowcount

    def one(self):
        assert len(self.rows) == 1
        return self.rows[0]

    def scalar_one_or_none(self):
        return self.rows[0] if self.rows else None

    def all(self):
        return list(self.rows)


class FakeSession:
    """Stands in for a SQLAlchemy session; replays queued results in order."""

    def __init__(self, results, dialect="postgresql", error=None):
        self.results = list(results)
        self.dialect = dialect
        self.error = error
        self.statements = []
        self.settings = []
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name=self.dialect))

    def execute(self, stmt, params=None):
        if isinstance(stmt, TextClause):
            self.settings.append((stmt.text, params))
            return FakeResult()
        self.statements.append(stmt)
        if self.error is not None:
            raise self.error
        return self.results.pop(0)

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class FakeSessionFactory:
    def __init__(self, *results, **session_kwargs):
        self.results = results
        self.session_kwargs = session_kwargs
        self.sessions = []

    def __call__(self):
        session = FakeSession(self.results, **self.session_kwargs)
        self.sessions.append(session)
        return session

    @property
    def session(self):
        assert len(self.sessions) == 1
        return self.sessions[0]


def make_record(**overrides):
    fields = {
        "id": 1,
        "created_at": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        "title": "The Left Hand of Darkness",
        "year": 1969,
        "runtime": 304,
        "genres": ["fiction", "scifi"],
        "version": 1,
        "price": 18,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)
