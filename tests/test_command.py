import pytest

from kvbind import command
from kvbind.command import Command
from kvbind.exceptions import CommandError
from kvbind.types import SetOpType


class TestCommand:
    def test_binary_arguments_are_kept_verbatim(self):
        value = b"a\x00b\xff\xfe"
        assert Command("SET").binary(b"k").binary(value).parts == (b"SET", b"k", value)

    def test_str_arguments_are_utf8_encoded(self):
        assert Command("GET").binary("clé").parts == (b"GET", "clé".encode())

    def test_memoryview_arguments(self):
        assert Command("GET").binary(memoryview(b"key")).parts == (b"GET", b"key")

    @pytest.mark.parametrize("value", [1, 1.5, None, object()])
    def test_binary_rejects_non_binary(self, value):
        with pytest.raises(CommandError):
            Command("GET").binary(value)

    @pytest.mark.parametrize("value", [True, "5", 2.0])
    def test_number_rejects_non_int(self, value):
        with pytest.raises(CommandError):
            Command("EXPIRE").number(value)

    def test_number_is_ascii(self):
        assert Command("EXPIREAT").binary(b"k").number(-1700000000).parts[-1] == b"-1700000000"

    def test_name_and_len(self):
        cmd = Command("SISMEMBER").binary("s").binary("m")
        assert cmd.name == "SISMEMBER"
        assert len(cmd) == 3


class TestFixedArity:
    def test_select(self):
        assert command.select(3).parts == (b"SELECT", b"3")

    def test_expire(self):
        assert command.expire(b"k\x00", 30).parts == (b"EXPIRE", b"k\x00", b"30")

    def test_expireat(self):
        assert command.expireat("k", 1893456000).parts == (b"EXPIREAT", b"k", b"1893456000")

    @pytest.mark.parametrize("name", ["TTL", "GET", "SCARD", "SMEMBERS", "PERSIST", "EXISTS"])
    def test_key_commands(self, name):
        assert command.key_command(name, b"key").parts == (name.encode(), b"key")

    def test_sismember(self):
        assert command.sismember("s", b"\x00").parts == (b"SISMEMBER", b"s", b"\x00")


class TestVariadic:
    def test_primary_and_rest(self):
        assert command.variadic("SADD", "s", ["a", b"b"]).parts == (b"SADD", b"s", b"a", b"b")

    def test_without_primary(self):
        assert command.variadic("SDIFF", None, ["a", "b"]).parts == (b"SDIFF", b"a", b"b")

    def test_empty_rest(self):
        assert command.variadic("SINTERSTORE", "dest", []).parts == (b"SINTERSTORE", b"dest")

    def test_many_arguments_are_not_truncated(self):
        keys = [f"key:{i}".encode() for i in range(5000)]
        parts = command.variadic("SINTER", None, keys).parts
        assert len(parts) == 5001
        assert parts[1:] == tuple(keys)

    def test_generator_rest(self):
        parts = command.variadic("DEL", None, (f"k{i}" for i in range(3))).parts
        assert parts == (b"DEL", b"k0", b"k1", b"k2")


class TestMapCommands:
    def test_ordered_fields_is_lexicographic_by_bytes(self):
        assert command.ordered_fields(["b", b"a", "c", "B"]) == ["B", b"a", "b", "c"]

    def test_ordered_fields_from_mapping_uses_keys(self):
        assert command.ordered_fields({"z": "", "m": "", "a": ""}) == ["a", "m", "z"]

    def test_hmget(self):
        assert command.hmget("h", {"b": "", "a": ""}).parts == (b"HMGET", b"h", b"a", b"b")

    def test_hmset_pairs_fields_with_values(self):
        parts = command.hmset("h", {"b": b"2", "a": "1"}).parts
        assert parts == (b"HMSET", b"h", b"a", b"1", b"b", b"2")


class TestSet:
    @pytest.mark.parametrize(
        ("ttl", "op_type", "tail"),
        [
            (None, SetOpType.ANYHOW, ()),
            (None, SetOpType.IF_NOT_EXIST, (b"NX",)),
            (None, SetOpType.IF_EXIST, (b"XX",)),
            (60, SetOpType.ANYHOW, (b"EX", b"60")),
            (60, SetOpType.IF_NOT_EXIST, (b"EX", b"60", b"NX")),
            (60, SetOpType.IF_EXIST, (b"EX", b"60", b"XX")),
        ],
    )
    def test_variants(self, ttl, op_type, tail):
        parts = command.set_(b"k", b"v\x00", ttl, op_type).parts
        assert parts == (b"SET", b"k", b"v\x00", *tail)

    def test_plain_int_op_type(self):
        assert command.set_("k", "v", None, 1).parts[-1] == b"NX"

    @pytest.mark.parametrize("op_type", [3, -1, "NX", None])
    def test_unsupported_op_type(self, op_type):
        with pytest.raises(CommandError, match="unsupported op_type"):
            command.set_("k", "v", None, op_type)
