import pytest

from chainlookup.models import TokenMetadata
from chainlookup.services import tokens


def abi_string(text: str) -> str:
    raw = text.encode()
    padded = raw.hex().ljust(((len(raw) + 31) // 32) * 64 or 64, "0")
    return "0x" + f"{32:064x}" + f"{len(raw):064x}" + padded


def abi_uint(value: int) -> str:
    return "0x" + f"{value:064x}"


def test_decode_dynamic_abi_string():
    assert tokens.decode_abi_string(abi_string("Tether USD")) == "Tether USD"


def test_decode_bytes32_string_strips_nulls():
    data = "0x" + b"MKR".hex().ljust(64, "0")
    assert tokens.decode_abi_string(data) == "MKR"


def test_decode_empty_or_invalid_string():
    assert tokens.decode_abi_string("0x") == ""
    assert tokens.decode_abi_string(None) == ""
    assert tokens.decode_abi_string("0xzz") == ""


def test_decode_non_utf8_bytes32_drops_invalid_bytes():
    data = "0x" + (b"ABC" + b"\xff").hex().ljust(64, "0")
    assert tokens.decode_abi_string(data) == "ABC"


def test_decode_abi_uint():
    assert tokens.decode_abi_uint(abi_uint(6)) == 6
    assert tokens.decode_abi_uint("0x") is None
    assert tokens.decode_abi_uint("0x0f4240") is None
    assert tokens.decode_abi_uint(abi_uint(300), "uint8") is None


def test_decode_transfer_value():
    assert tokens.decode_transfer_value(abi_uint(1_000_000)) == 1_000_000
    assert tokens.decode_transfer_value(f"{2 ** 256 - 1:064x}") == 2 ** 256 - 1
    assert tokens.decode_transfer_value("0x") == 0
    assert tokens.decode_transfer_value(None) == 0
    assert tokens.decode_transfer_value("not-hex") is None


def test_metadata_from_abi():
    metadata = tokens.metadata_from_abi(abi_string("TST"), abi_uint(8), abi_string("Test Token"))
    assert metadata == TokenMetadata(symbol="TST", name="Test Token", decimals=8)


def test_metadata_from_abi_placeholders():
    metadata = tokens.metadata_from_abi("0x", None, None, default_decimals=6)
    assert metadata.symbol == tokens.UNKNOWN_SYMBOL
    assert metadata.name == tokens.UNKNOWN_TOKEN_NAME
    assert metadata.decimals == 6


def test_metadata_from_abi_rejects_absurd_decimals():
    metadata = tokens.metadata_from_abi(abi_string("BAD"), abi_uint(255))
    assert metadata.decimals == 18


def test_lookup_known_token_is_case_insensitive_for_evm():
    metadata = tokens.lookup_known_token(tokens.ERC20_TOKENS, "0xdAC17F958D2ee523a2206206994597C13D831ec7")
    assert metadata.symbol == "USDT"
    assert metadata.decimals == 6


def test_bep20_usdt_has_18_decimals():
    metadata = tokens.lookup_known_token(tokens.BEP20_TOKENS, "0x55d398326f99059ff775485246999027b3197955")
    assert metadata.decimals == 18


def test_token_tables_are_read_only():
    with pytest.raises(TypeError):
        tokens.ERC20_TOKENS["0x0"] = TokenMetadata(symbol="X", name="X", decimals=1)


@pytest.mark.asyncio
async def test_resolve_known_token_skips_introspection():
    async def introspect(address):
        raise AssertionError("should not be called")

    metadata = await tokens.resolve_token_metadata(
        tokens.TRC20_TOKENS, "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t", introspect
    )
    assert metadata.symbol == "USDT"


@pytest.mark.asyncio
async def test_resolve_unknown_token_uses_introspection():
    async def introspect(address):
        return TokenMetadata(symbol="TST", name="Test Token", decimals=9)

    metadata = await tokens.resolve_token_metadata(tokens.ERC20_TOKENS, "0x" + "1" * 40, introspect)
    assert metadata.symbol == "TST"
    assert metadata.decimals == 9


@pytest.mark.asyncio
async def test_resolve_falls_back_to_unknown_placeholder():
    async def introspect(address):
        raise RuntimeError("node down")

    metadata = await tokens.resolve_token_metadata(
        tokens.ERC20_TOKENS, "0x" + "1" * 40, introspect, default_decimals=18
    )
    assert metadata == TokenMetadata(symbol="UNKNOWN", name="Unknown Token", decimals=18)
