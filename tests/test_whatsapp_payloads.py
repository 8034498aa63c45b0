from app.whatsapp.payloads import (
    MessageContent,
    classify_message_content,
    extract_connection_phone,
    normalize_connection_status,
    normalize_event_name,
    normalize_messages,
    parse_connect_qr,
    parse_instance_list,
    parse_qrcode_event,
    select_instance,
    strip_jid,
)
from tests.fixtures_data import FETCH_INSTANCES_V1, FETCH_INSTANCES_V2, IMAGE_MESSAGE, OUTGOING_MESSAGE


def test_parse_connect_qr_prefers_base64_then_code_then_nested():
    assert parse_connect_qr({"base64": "B64", "code": "CODE"}).shape == "base64"
    assert parse_connect_qr({"base64": "", "code": "CODE"}).value == "CODE"

    nested = parse_connect_qr({"qrcode": {"base64": "NESTED"}})
    assert nested.shape == "qrcode.base64"
    assert nested.value == "NESTED"


def test_parse_connect_qr_without_known_shape_is_unknown():
    for data in [{}, {"count": 0}, {"qrcode": {}}, None, ["base64"]]:
        qr = parse_connect_qr(data)
        assert qr.shape == "unknown"
        assert qr.present is False


def test_parse_qrcode_event_accepts_string_and_nested_shapes():
    assert parse_qrcode_event({"qrcode": "RAW"}).value == "RAW"
    assert parse_qrcode_event({"qrcode": {"base64": "NESTED"}}).value == "NESTED"
    assert parse_qrcode_event({"base64": "TOP"}).value == "TOP"
    assert parse_qrcode_event({"qrcode": {"code": "2@abc"}}).present is False
    assert parse_qrcode_event({}).present is False


def test_strip_jid_removes_domain_and_device_suffix():
    assert strip_jid("5511999999999@s.whatsapp.net") == "5511999999999"
    assert strip_jid("5511999999999:12@s.whatsapp.net") == "5511999999999"
    assert strip_jid("5511999999999") == "5511999999999"
    assert strip_jid("") is None
    assert strip_jid(None) is None


def test_normalize_connection_status_reads_either_field():
    assert normalize_connection_status({"state": "open"}) == "connected"
    assert normalize_connection_status({"connectionStatus": "open"}) == "connected"
    assert normalize_connection_status({"state": "connecting"}) == "connecting"
    assert normalize_connection_status({"state": "close"}) == "disconnected"
    assert normalize_connection_status({"state": "refused"}) == "disconnected"
    assert normalize_connection_status({}) == "disconnected"


def test_extract_connection_phone_probes_known_fields():
    assert extract_connection_phone({"phoneNumber": "5511911112222"}) == "5511911112222"
    assert extract_connection_phone({"owner": "5511933334444@s.whatsapp.net"}) == "5511933334444"
    assert extract_connection_phone({"wuid": "5511955556666@s.whatsapp.net"}) == "5511955556666"
    assert extract_connection_phone({"id": "5511999999999@s.whatsapp.net"}) == "5511999999999"
    assert extract_connection_phone({"state": "open"}) is None


def test_normalize_event_name_accepts_upper_case_variants():
    assert normalize_event_name("CONNECTION_UPDATE") == "connection.update"
    assert normalize_event_name("messages.upsert") == "messages.upsert"
    assert normalize_event_name(None) == ""


def test_normalize_messages_handles_single_list_and_wrapper():
    assert normalize_messages(IMAGE_MESSAGE) == [IMAGE_MESSAGE]
    assert normalize_messages([IMAGE_MESSAGE, OUTGOING_MESSAGE]) == [IMAGE_MESSAGE, OUTGOING_MESSAGE]
    assert normalize_messages({"messages": [OUTGOING_MESSAGE]}) == [OUTGOING_MESSAGE]
    assert normalize_messages("garbage") == []


def test_classify_message_content_priority_and_placeholders():
    text = classify_message_content({"conversation": "oi", "imageMessage": {"caption": "x"}})
    assert (text.content, text.media_type) == ("oi", None)

    extended = classify_message_content({"extendedTextMessage": {"text": "link"}})
    assert (extended.content, extended.media_type) == ("link", None)

    image = classify_message_content({"imageMessage": {"mimetype": "image/jpeg"}})
    assert (image.content, image.media_type) == ("[Imagem]", "image")

    audio = classify_message_content({"audioMessage": {"seconds": 4}})
    assert (audio.content, audio.media_type) == ("[Áudio]", "audio")

    video = classify_message_content({"videoMessage": {"caption": "veja"}})
    assert (video.content, video.media_type) == ("veja", "video")

    document = classify_message_content({"documentMessage": {"fileName": "cardapio.pdf"}})
    assert (document.content, document.media_type) == ("cardapio.pdf", "document")

    sticker = classify_message_content({"stickerMessage": {"isAnimated": False}})
    assert (sticker.content, sticker.media_type) == ("[Figurinha]", "sticker")

    unknown = classify_message_content({"reactionMessage": {"text": "👍"}})
    assert (unknown.shape, unknown.content, unknown.media_type) == ("unknown", "", None)


def test_select_instance_matches_name_or_falls_back_to_first():
    instances = parse_instance_list(FETCH_INSTANCES_V1)

    found = select_instance(instances, "bot-b1")
    assert found.name == "bot-b1"
    assert found.is_open is True
    assert found.owner_jid == "5511999999999@s.whatsapp.net"

    fallback = select_instance(instances, "bot-missing")
    assert fallback.name == "bot-other"
    assert select_instance([], "bot-b1") is None


def test_parse_instance_list_accepts_flat_v2_shape_and_single_object():
    instances = parse_instance_list(FETCH_INSTANCES_V2)
    assert len(instances) == 1
    assert instances[0].state == "connecting"
    assert instances[0].is_open is False

    single = parse_instance_list({"instance": {"instanceName": "bot-b1", "state": "close"}})
    assert [item.name for item in single] == ["bot-b1"]


def test_classify_message_content_counts_empty_media_objects_as_present():
    assert classify_message_content({"imageMessage": {}}) == MessageContent(
        shape="imageMessage", content="[Imagem]", media_type="image"
    )
    assert classify_message_content({"audioMessage": {}}).media_type == "audio"
    assert classify_message_content({"videoMessage": {}}).content == "[Vídeo]"
    assert classify_message_content({"documentMessage": {}}).content == "[Documento]"
    assert classify_message_content({"stickerMessage": {}}).media_type == "sticker"
