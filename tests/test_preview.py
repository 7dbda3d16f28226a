from blescan.core.model import CharacteristicProperties
from blescan.core.preview import decode_preview, text_preview

READABLE = CharacteristicProperties(read=True)


def test_valid_text_is_returned_verbatim() -> None:
    assert decode_preview("Température 21°C".encode(), READABLE) == "Température 21°C"


def test_binary_payload_falls_back_to_hex() -> None:
    assert decode_preview(bytes([0xDE, 0xAD]), READABLE) == "0xdead"
    assert decode_preview(bytes([0x01, 0x02]), READABLE) == "0x0102"


def test_nul_padding_is_dropped() -> None:
    assert text_preview(b"Model X\x00\x00") == "Model X"


def test_zero_valued_payload_is_shown_as_hex() -> None:
    assert decode_preview(b"\x00", READABLE) == "0x00"
    assert decode_preview(b"\x00\x00\x00\x00", READABLE) == "0x00000000"


def test_empty_payload_is_empty_text() -> None:
    assert decode_preview(b"", READABLE) == ""


def test_notify_only_characteristic_gets_preview() -> None:
    assert decode_preview(b"\xff", CharacteristicProperties(notify=True)) == "0xff"


def test_write_only_characteristic_gets_no_preview() -> None:
    props = CharacteristicProperties(write=True, write_without_response=True, indicate=True)
    assert decode_preview(b"hello", props) is None


def test_properties_from_bleak_names() -> None:
    props = CharacteristicProperties.from_names(["read", "write-without-response", "notify"])
    assert props == CharacteristicProperties(read=True, write_without_response=True, notify=True)
    assert props.describe() == "read | writeNR | notify"
