"""Tests for artifact replay and live copy."""

from unittest.mock import AsyncMock

import pytest

from fake_mysql import FakeMySQL, LostConnection
from db_snapshot.backup.exporter import DataExporter
from db_snapshot.errors import ApplyError, ConnectivityError
from db_snapshot.restore.executor import RestoreExecutor, statement_object_name
from db_snapshot.schema.enumerator import SchemaEnumerator

SCRIPT = """\
-- test artifact
SET FOREIGN_KEY_CHECKS=0;
DROP TABLE IF EXISTS `accounts`;
CREATE TABLE `accounts` (
  `id` int NOT NULL,
  `email` varchar(255)
);
LOCK TABLES `accounts` WRITE;
INSERT INTO `accounts` (`id`, `email`) VALUES
(1, 'a;b'),
(2, 'O''Brien');
UNLOCK TABLES;
DROP PROCEDURE IF EXISTS `p`;
DELIMITER $$
CREATE PROCEDURE `p`()
BEGIN
  SELECT 1;
END$$
DELIMITER ;
SET FOREIGN_KEY_CHECKS=1;
COMMIT;
"""


class TestStatementObjectName:
    @pytest.mark.parametrize(
        "sql, expected",
        [
            ("DROP TABLE IF EXISTS `accounts`", "accounts"),
            ("CREATE TABLE `accounts` (\n  `id` int\n)", "accounts"),
            ("CREATE ALGORITHM=UNDEFINED SQL SECURITY DEFINER VIEW `v` AS select 1", "v"),
            ("CREATE PROCEDURE `we``ird`() BEGIN END", "we`ird"),
            ("CREATE TRIGGER `trg` BEFORE INSERT ON `t` FOR EACH ROW SET @a = 1", "trg"),
            ("INSERT INTO `orders` (`id`) VALUES\n(1)", "orders"),
            ("LOCK TABLES `orders` WRITE", "orders"),
            ("SET FOREIGN_KEY_CHECKS=0", None),
            ("COMMIT", None),
        ],
    )
    def test_names(self, sql, expected):
        assert statement_object_name(sql) == expected


class TestReplay:
    async def test_replay_text(self):
        target = FakeMySQL("copy")
        result = await RestoreExecutor(target).replay_text(SCRIPT)

        assert target.row_count("accounts") == 2
        assert "p" in target.objects["PROCEDURE"]
        assert result.statements_executed == 10

    async def test_constraints_toggled_around_replay(self):
        target = FakeMySQL("copy")
        await RestoreExecutor(target).replay_text("SELECT 1;")
        assert target.executed[0] == "SET FOREIGN_KEY_CHECKS=0"
        assert target.executed[-1] == "SET FOREIGN_KEY_CHECKS=1"
        assert target.fk_checks == 1

    async def test_replay_twice_is_idempotent(self):
        target = FakeMySQL("copy")
        executor = RestoreExecutor(target)
        await executor.replay_text(SCRIPT)
        await executor.replay_text(SCRIPT)
        assert target.row_count("accounts") == 2
        assert list(target.objects["PROCEDURE"]) == ["p"]

    async def test_replay_file(self, tmp_path):
        path = tmp_path / "artifact.sql"
        path.write_text(SCRIPT, encoding="utf-8")
        target = FakeMySQL("copy")

        result = await RestoreExecutor(target).replay_file(path)

        assert result.path == str(path)
        assert target.row_count("accounts") == 2

    async def test_replay_file_with_crlf_line_endings(self, tmp_path):
        path = tmp_path / "artifact.sql"
        path.write_bytes(SCRIPT.replace("\n", "\r\n").encode("utf-8"))
        target = FakeMySQL("copy")

        result = await RestoreExecutor(target).replay_file(path)

        assert result.statements_executed == 10
        body = target.objects["PROCEDURE"]["p"]["definition"]
        assert body == "CREATE PROCEDURE `p`()\r\nBEGIN\r\n  SELECT 1;\r\nEND"

    async def test_unicode_line_separator_inside_literal(self):
        target = FakeMySQL("copy")
        script = (
            "CREATE TABLE `notes` (\n  `body` text\n);\n"
            "INSERT INTO `notes` (`body`) VALUES\n('a\u2028b; c');\n"
        )

        result = await RestoreExecutor(target).replay_text(script)

        assert result.statements_executed == 2
        assert target.tables["notes"]["rows"] == ["('a\u2028b; c')"]

    async def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await RestoreExecutor(FakeMySQL()).replay_file(tmp_path / "nope.sql")

    async def test_rejected_statement_reports_line_and_object(self):
        target = FakeMySQL("copy")
        target.fail_on = "INSERT INTO"

        with pytest.raises(ApplyError) as exc_info:
            await RestoreExecutor(target).replay_text(SCRIPT)

        error = exc_info.value
        assert error.object_name == "accounts"
        assert error.line == 9
        assert error.batch_index is None
        assert error.preview.startswith("INSERT INTO `accounts`")
        assert "syntax" in error.detail

    async def test_failure_stops_without_reenabling_constraints(self):
        target = FakeMySQL("copy")
        target.fail_on = "CREATE PROCEDURE"

        with pytest.raises(ApplyError):
            await RestoreExecutor(target).replay_text(SCRIPT)

        assert target.executed[-1].startswith("CREATE PROCEDURE")
        assert target.fk_checks == 0
        # Earlier statements are not rolled back
        assert target.row_count("accounts") == 2

    async def test_lost_connection(self):
        target = AsyncMock()
        target.execute = AsyncMock(side_effect=LostConnection("SET FOREIGN_KEY_CHECKS=0"))
        with pytest.raises(ConnectivityError, match="target"):
            await RestoreExecutor(target).replay_text(SCRIPT)


class TestCopyLive:
    async def _copy(self, source: FakeMySQL, target: FakeMySQL, **kwargs):
        inventory = await SchemaEnumerator(source, source.schema).enumerate()
        exporter = DataExporter(source, source.schema, batch_size=100)
        return await RestoreExecutor(target).copy_live(exporter, inventory, **kwargs)

    async def test_copies_objects_and_rows(self, shop_source):
        target = FakeMySQL("shop_copy")
        result = await self._copy(shop_source, target)

        assert result.row_counts == {"customers": 5, "orders": 250}
        assert target.row_count("orders") == 250
        assert set(target.objects["VIEW"]) == {"order_totals"}
        assert set(target.objects["PROCEDURE"]) == {"purge_orders"}
        assert target.objects["TRIGGER"]["orders_bi"]["table"] == "orders"
        assert result.object_counts.total == 5

    async def test_inserts_run_with_constraints_disabled(self, shop_source):
        target = FakeMySQL("shop_copy")
        await self._copy(shop_source, target)
        assert target.inserts_with_checks_on == 0
        assert target.fk_checks == 1

    async def test_batches_sized_by_batch_size(self, shop_source):
        target = FakeMySQL("shop_copy")
        await self._copy(shop_source, target)
        inserts = [s for s in target.executed if s.startswith("INSERT INTO `orders`")]
        assert len(inserts) == 3

    async def test_routine_sent_without_delimiter(self, shop_source):
        target = FakeMySQL("shop_copy")
        await self._copy(shop_source, target)
        assert not any("DELIMITER" in s for s in target.executed)

    async def test_structure_only(self, shop_source):
        target = FakeMySQL("shop_copy")
        result = await self._copy(shop_source, target, structure_only=True)

        assert result.row_counts == {"customers": 0, "orders": 0}
        assert target.row_count("orders") == 0
        assert not any(s.startswith("INSERT") for s in target.executed)

    async def test_rejected_batch_reports_batch_index(self, shop_source):
        target = FakeMySQL("shop_copy")
        target.fail_on = "(201, "

        with pytest.raises(ApplyError) as exc_info:
            await self._copy(shop_source, target)

        assert exc_info.value.object_name == "orders"
        assert exc_info.value.batch_index == 2
        assert exc_info.value.line is None

    async def test_stream_released_when_batch_rejected(self):
        rows = [(i, f"row {i}") for i in range(1, 6)]
        closed: list[str] = []
        source = FakeMySQL("app")
        source.add_table("t", ["id", "body"], rows)

        async def stream(sql, batch_size):
            try:
                for start in range(0, len(rows), batch_size):
                    yield rows[start : start + batch_size]
            finally:
                closed.append(sql)

        source.stream = stream
        target = FakeMySQL("app_copy")
        target.fail_on = "(3, "
        inventory = await SchemaEnumerator(source, "app").enumerate()
        exporter = DataExporter(source, "app", batch_size=2)

        with pytest.raises(ApplyError) as exc_info:
            await RestoreExecutor(target).copy_live(exporter, inventory)

        assert exc_info.value.batch_index == 1
        assert len(closed) == 1
