from conftest import auth
from counseling.domain.chat.rooms import ChatRoomManager
from counseling.storage import MAX_ATTACHMENT_BYTES, attachment_key

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def upload(client, room, user, content=PNG, filename="photo.png", content_type="image/png"):
    return client.post(
        f"/chat/rooms/{room.id}/attachments",
        files={"file": (filename, content, content_type)},
        headers=auth(user),
    )


def test_upload_then_send_as_message(client, s3_client, confirmed_room):
    booking, room = confirmed_room

    uploaded = upload(client, room, booking.client)

    assert uploaded.status_code == 201
    data = uploaded.json()
    assert data["key"].startswith(f"chat-files/{room.id}/")
    assert data["key"].endswith(".png")
    assert data["url"] == f"https://files.test/{data['key']}"
    assert data["size"] == len(PNG)
    assert s3_client.objects[data["key"]]["content_type"] == "image/png"

    sent = client.post(
        f"/chat/rooms/{room.id}/messages", json={"attachmentUrl": data["url"]}, headers=auth(booking.client)
    )
    assert sent.status_code == 201
    assert sent.json()["attachmentUrl"] == data["url"]
    assert sent.json()["body"] is None


def test_rejects_unsupported_type(client, s3_client, confirmed_room):
    booking, room = confirmed_room

    response = upload(client, room, booking.client, b"MZ...", "tool.exe", "application/x-msdownload")

    assert response.status_code == 400
    assert s3_client.objects == {}


def test_rejects_oversized_file(client, confirmed_room):
    booking, room = confirmed_room

    response = upload(client, room, booking.client, b"\x00" * (MAX_ATTACHMENT_BYTES + 1))

    assert response.status_code == 413


def test_rejects_empty_file(client, confirmed_room):
    booking, room = confirmed_room
    assert upload(client, room, booking.client, b"").status_code == 400


def test_storage_failure(client, s3_client, confirmed_room):
    booking, room = confirmed_room
    s3_client.fail = True

    response = upload(client, room, booking.client)

    assert response.status_code == 502
    assert response.json()["code"] == "upload_failed"


def test_closed_session_takes_no_uploads(client, s3_client, db, parties, make_booking):
    client_user, counselor = parties
    room = ChatRoomManager(db).get_or_create_room(make_booking(client_user, counselor).id).room

    response = upload(client, room, client_user)

    assert response.status_code == 423
    assert s3_client.objects == {}


def test_outsider_cannot_upload(client, confirmed_room, make_user):
    _, room = confirmed_room
    assert upload(client, room, make_user("Stranger")).status_code == 403


def test_key_ignores_client_filename():
    key = attachment_key(7, "../../etc/passwd.pdf", "application/pdf")
    assert key.startswith("chat-files/7/")
    assert ".." not in key
    assert key.endswith(".pdf")
