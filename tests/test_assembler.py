"""Tests for the statement builder and the script assembler."""

from datetime import datetime

import pytest

from db_snapshot.backup import statements
from db_snapshot.backup.assembler import ScriptAssembler
from db_snapshot.backup.models import RowBatch
from db_snapshot.errors import EncodingError
from db_snapshot.restore.script import split_statements
from db_snapshot.schema.models import ObjectKind, SchemaInventory, SchemaObject

CREATED_AT = datetime(2024, 1, 31, 8, 15, 0)


def _table(name: str = "accounts", columns=("id", "email")) -> SchemaObject:
    return SchemaObject(
        kind=ObjectKind.TABLE,
        name=name,
        definition=f"CREATE TABLE `{name}` (\n  `id` int NOT NULL\n) ENGINE=InnoDB;",
        columns=columns,
    )


def _view() -> SchemaObject:
    return SchemaObject(
        kind=ObjectKind.VIEW,
        name="active_accounts",
        definition="CREATE VIEW `active_accounts` AS select `id` from `accounts`",
    )


def _procedure() -> SchemaObject:
    return SchemaObject(
        kind=ObjectKind.PROCEDURE,
        name="touch",
        definition="CREATE PROCEDURE `touch`()\nBEGIN\n  SELECT 1;\n  SELECT 2;\nEND",
    )


def _batch(rows, index=0) -> RowBatch:
    return RowBatch(table="accounts", columns=("id", "email"), rows=rows, index=index)


# ------------------------------------------------------------------
# Statement builder
# ------------------------------------------------------------------


class TestStatements:
    """Pure statement builders shared by artifact and live modes."""

    def test_drop_statement_per_kind(self):
        assert statements.drop_statement(_table()) == "DROP TABLE IF EXISTS `accounts`"
        assert statements.drop_statement(_view()) == "DROP VIEW IF EXISTS `active_accounts`"
        assert statements.drop_statement(_procedure()) == "DROP PROCEDURE IF EXISTS `touch`"

    def test_create_statement_strips_terminator(self):
        assert statements.create_statement(_table()).endswith("ENGINE=InnoDB")

    def test_insert_names_columns_once(self):
        sql = statements.insert_statement(_batch([(1, "a"), (2, "b")]))
        assert sql == "INSERT INTO `accounts` (`id`, `email`) VALUES\n(1, 'a'),\n(2, 'b')"
        assert sql.count("`email`") == 1

    def test_insert_encodes_values(self):
        sql = statements.insert_statement(_batch([(1, None), (2, "O'Brien")]))
        assert "(1, NULL)" in sql
        assert "(2, 'O''Brien')" in sql

    def test_empty_batch_rejected(self):
        with pytest.raises(ValueError):
            statements.insert_statement(_batch([]))

    def test_encoding_error_names_table_and_column(self):
        with pytest.raises(EncodingError) as exc_info:
            statements.insert_statement(_batch([(1, object())]))
        assert exc_info.value.table == "accounts"
        assert exc_info.value.column == "email"

    def test_row_width_mismatch(self):
        with pytest.raises(EncodingError, match="2 columns"):
            statements.insert_statement(_batch([(1,)]))

    def test_constraint_toggles(self):
        assert statements.disable_constraints() == "SET FOREIGN_KEY_CHECKS=0"
        assert statements.enable_constraints() == "SET FOREIGN_KEY_CHECKS=1"

    def test_session_preamble_disables_constraints(self):
        assert statements.DISABLE_CONSTRAINTS in statements.session_preamble()


# ------------------------------------------------------------------
# Assembler segments
# ------------------------------------------------------------------


class TestHeaderFooter:
    def test_header_settings_in_order(self):
        header = ScriptAssembler().header("app", CREATED_AT)
        expected = [
            "SET NAMES utf8mb4;",
            "SET FOREIGN_KEY_CHECKS=0;",
            "SET SQL_MODE='NO_AUTO_VALUE_ON_ZERO';",
            "SET AUTOCOMMIT=0;",
            "START TRANSACTION;",
        ]
        positions = [header.index(line) for line in expected]
        assert positions == sorted(positions)
        assert "-- Database Backup: app" in header
        assert "2024-01-31T08:15:00" in header

    def test_header_without_create_database_by_default(self):
        assert "CREATE DATABASE" not in ScriptAssembler().header("app", CREATED_AT)

    def test_header_with_create_database(self):
        header = ScriptAssembler(create_database=True).header("app", CREATED_AT)
        assert "CREATE DATABASE IF NOT EXISTS `app`;" in header
        assert "USE `app`;" in header

    def test_footer(self):
        footer = ScriptAssembler().footer()
        assert footer.index("SET FOREIGN_KEY_CHECKS=1;") < footer.index("COMMIT;")


class TestSegments:
    def test_table_segment_drop_before_create(self):
        text = ScriptAssembler().table_segment_start(_table())
        assert text.index("DROP TABLE IF EXISTS `accounts`;") < text.index("CREATE TABLE")

    def test_data_segment_wraps_in_lock(self):
        assembler = ScriptAssembler()
        text = assembler.data_segment(_table(), [_batch([(1, "a")]), _batch([(2, "b")], 1)])
        assert text.index("LOCK TABLES `accounts` WRITE;") < text.index("INSERT INTO")
        assert text.count("INSERT INTO") == 2
        assert text.rstrip().endswith("UNLOCK TABLES;")

    def test_zero_batches_emit_nothing(self):
        assert ScriptAssembler().data_segment(_table(), []) == ""

    def test_routine_segment_uses_delimiter(self):
        text = ScriptAssembler().routine_segment(_procedure())
        lines = text.splitlines()
        assert lines[0] == "DROP PROCEDURE IF EXISTS `touch`;"
        assert lines[1] == "DELIMITER $$"
        assert "END$$" in lines
        assert "DELIMITER ;" in lines

    def test_view_segment(self):
        text = ScriptAssembler().view_segment(_view())
        assert "DROP VIEW IF EXISTS `active_accounts`;" in text
        assert "CREATE VIEW `active_accounts`" in text
        assert "DELIMITER" not in text

    def test_segment_dispatch(self):
        assembler = ScriptAssembler()
        assert assembler.segment(_view()) == assembler.view_segment(_view())
        assert assembler.segment(_procedure()) == assembler.routine_segment(_procedure())


class TestAssemble:
    """Whole-artifact assembly."""

    def _inventory(self) -> SchemaInventory:
        return SchemaInventory(
            schema_name="app",
            objects=[_table(), _view(), _procedure()],
        )

    def test_object_order(self):
        text = ScriptAssembler().assemble(
            self._inventory(), {"accounts": [_batch([(1, "a")])]}, CREATED_AT
        )
        assert (
            text.index("CREATE TABLE `accounts`")
            < text.index("INSERT INTO `accounts`")
            < text.index("CREATE VIEW")
            < text.index("CREATE PROCEDURE")
            < text.index("COMMIT;")
        )

    def test_structure_only_has_no_inserts(self):
        text = ScriptAssembler().assemble(self._inventory(), None, CREATED_AT)
        assert "INSERT INTO" not in text
        assert "LOCK TABLES" not in text

    def test_section_banners(self):
        text = ScriptAssembler().assemble(self._inventory(), None, CREATED_AT)
        assert "-- Views" in text
        assert "-- Stored Procedures" in text
        assert "-- Triggers" not in text

    def test_artifact_splits_into_expected_statements(self):
        text = ScriptAssembler().assemble(
            self._inventory(),
            {"accounts": [_batch([(1, "a;b"), (2, "c")])]},
            CREATED_AT,
        )
        sqls = [s.sql for s in split_statements(text)]

        assert sqls[:5] == [
            "SET NAMES utf8mb4",
            "SET FOREIGN_KEY_CHECKS=0",
            "SET SQL_MODE='NO_AUTO_VALUE_ON_ZERO'",
            "SET AUTOCOMMIT=0",
            "START TRANSACTION",
        ]
        assert sqls[-2:] == ["SET FOREIGN_KEY_CHECKS=1", "COMMIT"]
        # Semicolon inside a literal and inside the procedure body stay put
        assert any(s.startswith("INSERT INTO") and "'a;b'" in s for s in sqls)
        assert _procedure().definition in sqls
