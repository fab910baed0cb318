"""
Engine lifecycle and transactional scope.
"""

import pytest
from sqlalchemy import select

from efactura_kernel.db.engine import get_engine, get_session, reset_engine, session_scope
from efactura_kernel.models.tenant import Tenant


class TestUninitialized:
    def test_get_engine_before_init(self):
        reset_engine()

        with pytest.raises(RuntimeError, match="Engine not initialized"):
            get_engine()
        with pytest.raises(RuntimeError, match="Engine not initialized"):
            get_session()


class TestSessionScope:
    def test_commits_on_exit(self, engine, fetch):
        with session_scope() as session:
            session.add(Tenant(name="Alfa SRL", tax_id="11223344", country="RO"))

        assert [t.tax_id for t in fetch(select(Tenant))] == ["11223344"]

    def test_rolls_back_on_error(self, engine, fetch, captured_logs):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(Tenant(name="Alfa SRL", tax_id="11223344", country="RO"))
                session.flush()
                raise ValueError("abort")

        assert fetch(select(Tenant)) == []
        record = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"][0]
        assert record["exc_type"] == "ValueError"

    def test_in_memory_sessions_share_database(self, engine, session_factory):
        with session_factory() as first:
            first.add(Tenant(name="Alfa SRL", tax_id="11223344", country="RO"))
            first.commit()

        with session_factory() as second:
            assert second.scalars(select(Tenant)).one().name == "Alfa SRL"

    def test_sqlite_savepoints(self, engine, session_factory, fetch):
        with session_factory() as session:
            session.add(Tenant(name="Alfa SRL", tax_id="11223344", country="RO"))
            savepoint = session.begin_nested()
            session.add(Tenant(name="Beta SRL", tax_id="55667788", country="RO"))
            session.flush()
            savepoint.rollback()
            session.commit()

        assert [t.tax_id for t in fetch(select(Tenant))] == ["11223344"]
