"""Tests for the pglast-based SQL indexer."""

import logging

import pytest

pytest.importorskip("pglast")

from blockdoc.indexers import (  # noqa: E402
    IndexerError,
    index_sql_dir,
    index_sql_file,
    index_sql_text,
    raise_kinds,
)
from blockdoc.validators import validate_source  # noqa: E402

CHECK_SQL = """\
/**
 * Checks whether a subject holds a permission.
 *
 * @param p_subject - Subject id
 * @param p_permission - Permission name
 * @return - True when granted
 */
CREATE FUNCTION authz.check(p_subject text, p_permission text)
RETURNS boolean
AS $$
BEGIN
  RETURN true;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION authz._cleanup(p_limit integer DEFAULT 100)
RETURNS void
AS $$
BEGIN
  RAISE EXCEPTION 'missing' USING ERRCODE = 'P0002';
END;
$$ LANGUAGE plpgsql;

CREATE FUNCTION authz.list_grants(p_subject text)
RETURNS TABLE(resource text, permission text)
AS $$
  SELECT 'doc', 'read'
$$ LANGUAGE sql;
"""


class TestIndexSqlText:
    """Describing CREATE FUNCTION statements as symbols."""

    def symbols(self):
        return {s.name: s for s in index_sql_text(CHECK_SQL, "sql/authz.sql").symbols}

    def test_functions_in_source_order(self):
        unit = index_sql_text(CHECK_SQL, "sql/authz.sql")
        assert unit.language == "sql"
        assert [s.name for s in unit.symbols] == [
            "authz.check",
            "authz._cleanup",
            "authz.list_grants",
        ]

    def test_declaration_line_skips_leading_comment(self):
        symbols = self.symbols()
        assert symbols["authz.check"].declaration_line == 8
        assert symbols["authz._cleanup"].declaration_line == 16

    def test_parameters(self):
        check = self.symbols()["authz.check"]
        assert [(p.name, p.type.text, p.optional) for p in check.parameters] == [
            ("p_subject", "text", False),
            ("p_permission", "text", False),
        ]
        assert check.return_type.text == "bool"
        assert check.is_exported

    def test_default_makes_parameter_optional(self):
        cleanup = self.symbols()["authz._cleanup"]
        (limit,) = cleanup.parameters
        assert limit.optional
        assert limit.type.text == "int4"

    def test_void_and_internal(self):
        cleanup = self.symbols()["authz._cleanup"]
        assert cleanup.return_type is None
        assert not cleanup.is_exported
        assert cleanup.raise_kinds == ("P0002",)

    def test_table_return_exposes_columns(self):
        grants = self.symbols()["authz.list_grants"]
        assert [p.name for p in grants.parameters] == ["p_subject"]
        assert [f.name for f in grants.return_type.fields] == ["resource", "permission"]

    def test_unparsable_sql(self):
        with pytest.raises(IndexerError):
            index_sql_text("CREATE FUNCTION (", "bad.sql")


class TestRaiseKinds:
    def test_codes_and_conditions(self):
        body = """
        RAISE EXCEPTION 'no row' USING ERRCODE = 'p0002';
        RAISE SQLSTATE '22023';
        RAISE unique_violation USING MESSAGE = 'dup';
        RAISE NOTICE 'just saying';
        RAISE EXCEPTION 'again' USING ERRCODE = 'P0002';
        """
        assert raise_kinds(body) == ("P0002", "22023", "unique_violation")


class TestEndToEnd:
    def test_documented_function_is_clean(self):
        unit = index_sql_text(CHECK_SQL, "sql/authz.sql")
        diagnostics = validate_source(unit)
        assert {d.symbol for d in diagnostics} == {"authz.list_grants"}
        assert [d.code for d in diagnostics] == ["MISSING_DOC"]


class TestFiles:
    def test_index_file_relative_to_root(self, tmp_path):
        sql_dir = tmp_path / "sql"
        sql_dir.mkdir()
        path = sql_dir / "authz.sql"
        path.write_text(CHECK_SQL)

        unit = index_sql_file(path, tmp_path)
        assert unit.path == "sql/authz.sql"
        assert unit.mtime == path.stat().st_mtime

    def test_index_dir_skips_broken_files(self, tmp_path, caplog):
        (tmp_path / "a.sql").write_text(CHECK_SQL)
        (tmp_path / "b.sql").write_text("CREATE FUNCTION (")
        (tmp_path / "notes.txt").write_text("ignored")

        with caplog.at_level(logging.WARNING):
            units = index_sql_dir(tmp_path, tmp_path)

        assert [u.path for u in units] == ["a.sql"]
        assert "b.sql" in caplog.text
