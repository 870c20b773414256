import pytest

from irrigation_app.models.tables import MIRRORED_TABLES
from irrigation_app.schema import normalize_async_url, notify_function_sql, trigger_sql


@pytest.mark.parametrize(
    "raw",
    [
        "postgresql://u:p@db:5432/irrigation",
        "postgres://u:p@db:5432/irrigation",
        "postgresql+asyncpg://u:p@db:5432/irrigation",
    ],
)
def test_async_url_uses_psycopg_driver(raw):
    assert normalize_async_url(raw) == "postgresql+psycopg://u:p@db:5432/irrigation"


def test_async_url_rejects_other_databases():
    with pytest.raises(ValueError):
        normalize_async_url("mysql://u:p@db/irrigation")


def test_notify_function_publishes_table_and_operation():
    body = notify_function_sql("irrigation_changes")

    assert "pg_notify" in body
    assert "'irrigation_changes'" in body
    assert "TG_TABLE_NAME" in body and "TG_OP" in body


def test_trigger_for_every_mirrored_table():
    for table in MIRRORED_TABLES:
        drop, create = trigger_sql(table)
        assert drop.startswith("DROP TRIGGER IF EXISTS")
        assert f'ON "{table}"' in create
        assert "AFTER INSERT OR UPDATE OR DELETE" in create
