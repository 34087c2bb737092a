"""
Tests for core.db
"""
from sqlalchemy import inspect
from sqlmodel import Session

import core.db
from core.db import create_db_and_tables, get_engine, get_session


def test_engine_is_created_once():
    assert get_engine() is get_engine()


def test_create_db_and_tables():
    create_db_and_tables()
    tables = inspect(get_engine()).get_table_names()
    assert "filerecord" in tables
    assert "filerecordattachment" in tables


def test_get_session():
    session = next(get_session())
    assert isinstance(session, Session)
    session.close()


def test_module_has_no_engine_reset():
    assert not hasattr(core.db, "reset_engine")
