import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from guesthouse.main import app
from guesthouse.utils.phone import last10, normalize_phone_strict

client = TestClient(app)


def _payload(**overrides):
    data = {
        "name": "Lokanta Bir",
        "cuisine": "Turkish",
        "phone": "+90 532 111 22 33",
        "address": "Cumhuriyet Cd. 1",
        "lat": 37.0,
        "lng": 35.3,
        "is_published": True,
    }
    data.update(overrides)
    return data


def _create(headers, **overrides):
    r = client.post("/api/restaurants", json=_payload(**overrides), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("05321112233", "05321112233"),
        ("+90 532 111 22 33", "05321112233"),
        ("905321112233", "05321112233"),
        ("0090 532 111 2233", "05321112233"),
        ("5321112233", "05321112233"),
        ("(0532) 111-22-33", "05321112233"),
        ("12345", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_phone_strict(raw, expected):
    assert normalize_phone_strict(raw) == expected


def test_last10():
    assert last10("+90 532 111 22 33") == "5321112233"
    assert last10(None) is None


def test_create_normalizes_phone(editor_headers):
    body = _create(editor_headers)
    assert body["phone"] == "05321112233"
    assert body["status"] == "published"
    assert body["image_url"] == []


def test_create_requires_fields(editor_headers):
    r = client.post("/api/restaurants", json=_payload(address=None), headers=editor_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "REQUIRED_FIELDS"


def test_create_rejects_invalid_phone(editor_headers):
    r = client.post("/api/restaurants", json=_payload(phone="123"), headers=editor_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_PHONE"


def test_duplicate_name_and_phone_conflict(editor_headers):
    _create(editor_headers)
    r = client.post("/api/restaurants", json=_payload(name="lokanta bir", phone="05550000000"), headers=editor_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "DUPLICATE_NAME"
    r = client.post("/api/restaurants", json=_payload(name="Other", phone="0532 111 22 33"), headers=editor_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "phone_taken"


def test_update_keeps_own_phone_and_checks_others(editor_headers):
    first = _create(editor_headers)
    _create(editor_headers, name="Second", phone="05550000000")
    r = client.put(f"/api/restaurants/{first['id']}", json=_payload(cuisine="Kebab"), headers=editor_headers)
    assert r.status_code == 200
    assert r.json()["cuisine"] == "Kebab"
    r = client.put(f"/api/restaurants/{first['id']}", json=_payload(phone="05550000000"), headers=editor_headers)
    assert r.status_code == 409


def test_public_list_defaults_to_published(editor_headers):
    _create(editor_headers)
    _create(editor_headers, name="Hidden", phone="05550000000", is_published=False)
    names = [r["name"] for r in client.get("/api/restaurants").json()]
    assert names == ["Lokanta Bir"]
    assert len(client.get("/api/restaurants", params={"published": "all"}).json()) == 2
    hits = client.get("/api/restaurants", params={"published": "all", "q": "Hidd"}).json()
    assert [r["name"] for r in hits] == ["Hidden"]


def test_get_unknown_restaurant_is_404():
    assert client.get("/api/restaurants/nope").status_code == 404


def test_gallery_operations(editor_headers):
    rid = _create(editor_headers)["id"]
    r = client.post(f"/api/restaurants/{rid}/images", json={"url": "https://img.test/a.png"}, headers=editor_headers)
    assert r.status_code == 201
    assert r.json() == {"images": ["https://img.test/a.png"], "cover_url": "https://img.test/a.png"}
    client.post(f"/api/restaurants/{rid}/images", json={"url": "https://img.test/b.png"}, headers=editor_headers)
    r = client.post(f"/api/restaurants/{rid}/images", json={"url": "https://img.test/b.png"}, headers=editor_headers)
    assert r.json()["images"] == ["https://img.test/a.png", "https://img.test/b.png"]

    r = client.request("DELETE", f"/api/restaurants/{rid}/images", json={"url": "https://img.test/a.png"}, headers=editor_headers)
    assert r.status_code == 200
    assert r.json() == {"images": ["https://img.test/b.png"], "cover_url": "https://img.test/b.png"}

    r = client.put(f"/api/restaurants/{rid}/images", json={"images": ["https://img.test/c.png"]}, headers=editor_headers)
    assert r.json() == {"images": ["https://img.test/c.png"]}
    assert client.get(f"/api/restaurants/{rid}/images").json() == {"images": ["https://img.test/c.png"]}

    r = client.put(f"/api/restaurants/{rid}/images", json={"images": "nope"}, headers=editor_headers)
    assert r.status_code == 400

    r = client.put(f"/api/restaurants/{rid}/cover", json={"cover_url": "https://img.test/c.png"}, headers=editor_headers)
    assert r.json()["cover_image"] == "https://img.test/c.png"


def test_multipart_image_upload(editor_headers):
    rid = _create(editor_headers)["id"]
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 10, 10)).save(buf, format="PNG")
    files = {"file": ("dish.png", buf.getvalue(), "image/png")}
    r = client.post(f"/api/restaurants/{rid}/upload", files=files, headers=editor_headers)
    assert r.status_code == 201
    url = r.json()["images"][0]
    assert url.startswith("http://blobs.test/public/food/")
    assert url.endswith(".png")
    assert r.json()["cover_url"] == url


def test_multipart_upload_rejects_non_images(editor_headers):
    rid = _create(editor_headers)["id"]
    files = {"file": ("notes.png", b"plain text, not an image", "image/png")}
    r = client.post(f"/api/restaurants/{rid}/upload", files=files, headers=editor_headers)
    assert r.status_code == 415


def test_upload_ticket_and_delete_blob(editor_headers):
    r = client.post("/api/restaurants/upload-sas", json={"type": "pdf", "filename": "menu.pdf"}, headers=editor_headers)
    assert r.status_code == 400
    r = client.post("/api/restaurants/upload-sas", json={"type": "image", "size": 10 * 1024 * 1024}, headers=editor_headers)
    assert r.status_code == 400
    r = client.post("/api/restaurants/upload-sas", json={"type": "image", "filename": "a.gif"}, headers=editor_headers)
    assert r.status_code == 400
    r = client.post("/api/restaurants/upload-sas", json={"type": "image", "filename": "a.jpg"}, headers=editor_headers)
    assert r.status_code == 200
    blob_url = r.json()["blobUrl"]
    assert "/food/" in blob_url

    r = client.post("/api/restaurants/delete-blob", json={"url": blob_url}, headers=editor_headers)
    assert r.json() == {"ok": True}
    r = client.post("/api/restaurants/delete-blob", json={"url": "https://elsewhere.test/x.png"}, headers=editor_headers)
    assert r.status_code == 400


def test_delete_requires_admin(editor_headers, admin_headers):
    rid = _create(editor_headers)["id"]
    assert client.delete(f"/api/restaurants/{rid}", headers=editor_headers).status_code == 403
    assert client.delete(f"/api/restaurants/{rid}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/restaurants/{rid}").status_code == 404
