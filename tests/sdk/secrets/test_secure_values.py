import pytest

from missio.sdk.secrets.secure import (
    SecureValueBridge,
    extract_secure_id,
    generate_secure_ref,
    secure_store_key,
)


def test_generate_and_extract_reference() -> None:
    ref = generate_secure_ref()
    assert ref.startswith("secure:")
    secure_id = extract_secure_id(ref)
    assert secure_id is not None
    assert len(secure_id) == 36
    assert generate_secure_ref() != ref


@pytest.mark.parametrize(
    "value",
    [None, "", "plain", "secure:", "secure:abc def", "xsecure:abc", "secure:abc/def"],
)
def test_extract_secure_id_rejects_non_references(value) -> None:
    assert extract_secure_id(value) is None


def test_store_key_is_namespaced() -> None:
    assert secure_store_key("abc") == "missio:secure:abc"


@pytest.mark.asyncio
async def test_bridge_roundtrip(secret_store) -> None:
    bridge = SecureValueBridge(secret_store)
    assert await bridge.get_secure_value("abc") is None

    await bridge.store_secure_value("abc", "s3cret")
    assert await bridge.get_secure_value("abc") == "s3cret"
    assert await secret_store.get("missio:secure:abc") == "s3cret"

    await bridge.delete_secure_value("abc")
    assert await bridge.get_secure_value("abc") is None
