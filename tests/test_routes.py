import io
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient
from PIL import Image

from gallery.main import create_app
from gallery.gallery_service.models import ImageRecord


def make_png_bytes(color="blue"):
    img = Image.new("RGB", (10, 10), color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def upload(client, names, group=None):
    data = make_png_bytes()
    files = [("images", (name, data, "image/png")) for name in names]
    form = {"group": group} if group is not None else {}
    return client.post("/api/upload", data=form, files=files)


# ------------------------------
# /api/upload [POST]
# ------------------------------

def test_upload_images_success(test_client, metadata_store):
    resp = upload(test_client, ["a.png", "b.png", "c.png"], group="holiday")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert len(body["images"]) == 3
    for image in body["images"]:
        assert image["group"] == "holiday"
        assert image["contentType"] == "image/png"
        assert image["storageKey"].endswith(".png")
        assert image["url"] == f"/api/image/{image['storageKey']}"
        assert image["size"] > 0

    assert len(metadata_store.get("gallery:index")) == 3
    assert metadata_store.get("group:holiday") == [img["id"] for img in body["images"]]


def test_upload_grows_index(test_client, metadata_store):
    upload(test_client, ["a.png"], group="G")
    resp = upload(test_client, ["b.png", "c.png"], group="G")
    assert resp.status_code == 200
    assert len(metadata_store.get("gallery:index")) == 3
    assert len(metadata_store.get("group:G")) == 3


def test_upload_default_group(test_client):
    resp = upload(test_client, ["a.png"])
    assert resp.json()["images"][0]["group"] == "Ungrouped"

    resp = upload(test_client, ["b.png"], group="")
    assert resp.json()["images"][0]["group"] == "Ungrouped"


def test_upload_without_images(test_client, blob_store, metadata_store):
    resp = test_client.post("/api/upload", data={"group": "G"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No images provided"}
    assert metadata_store.list_keys() == []
    assert blob_store.list() == []


def test_upload_only_non_file_values(test_client, blob_store, metadata_store):
    # `images` sent as plain form fields, not files
    resp = test_client.post(
        "/api/upload",
        content=b"--xyz\r\nContent-Disposition: form-data; name=\"images\"\r\n\r\nnot-a-file\r\n--xyz--\r\n",
        headers={"Content-Type": "multipart/form-data; boundary=xyz"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "No valid images provided"}
    assert metadata_store.list_keys() == []
    assert blob_store.list() == []


def test_upload_empty_file_fails_verification(test_client, metadata_store):
    files = [("images", ("empty.png", b"", "image/png"))]
    resp = test_client.post("/api/upload", data={"group": "G"}, files=files)
    assert resp.status_code == 500
    assert "verification failed" in resp.json()["error"]
    assert metadata_store.list_keys() == []


# ------------------------------
# /api/gallery and /api/groups [GET]
# ------------------------------

def test_gallery_newest_first(test_client, metadata_store):
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    for image_id, minutes in (("t2", 1), ("t1", 0), ("t3", 2)):
        metadata_store.put(f"image:{image_id}", ImageRecord(
            id=image_id,
            storage_key=f"{image_id}.png",
            group="G",
            uploaded_at=base + timedelta(minutes=minutes),
            size=1,
            content_type="image/png",
        ).to_store())
    metadata_store.put("gallery:index", ["t2", "t1", "t3", "missing"])

    resp = test_client.get("/api/gallery")
    assert resp.status_code == 200
    assert [img["id"] for img in resp.json()["images"]] == ["t3", "t2", "t1"]


def test_gallery_empty(test_client):
    resp = test_client.get("/api/gallery")
    assert resp.status_code == 200
    assert resp.json() == {"images": []}


def test_groups_sorted(test_client):
    upload(test_client, ["a.png"], group="zebras")
    upload(test_client, ["b.png"], group="apes")
    assert test_client.get("/api/groups").json() == ["apes", "zebras"]

    upload(test_client, ["c.png"])
    assert test_client.get("/api/groups").json() == ["Ungrouped", "apes", "zebras"]


# ------------------------------
# /api/delete/{id} and /api/delete-group/{label} [DELETE]
# ------------------------------

def test_delete_image(test_client, blob_store, metadata_store):
    images = upload(test_client, ["a.png", "b.png"], group="G").json()["images"]
    first, second = images

    resp = test_client.delete(f"/api/delete/{first['id']}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    gallery_ids = [img["id"] for img in test_client.get("/api/gallery").json()["images"]]
    assert gallery_ids == [second["id"]]
    assert blob_store.get(first["storageKey"]) is None
    assert test_client.get(first["url"]).status_code == 404
    assert metadata_store.get("group:G") == [second["id"]]


def test_delete_last_image_removes_group(test_client):
    image = upload(test_client, ["a.png"], group="solo").json()["images"][0]
    assert "solo" in test_client.get("/api/groups").json()

    test_client.delete(f"/api/delete/{image['id']}")
    assert "solo" not in test_client.get("/api/groups").json()


def test_delete_nonexistent_image(test_client):
    resp = test_client.delete("/api/delete/nope")
    assert resp.status_code == 404
    assert "error" in resp.json()


def test_delete_group(test_client, blob_store):
    doomed = upload(test_client, ["a.png", "b.png"], group="Summer 2024/beach").json()["images"]
    kept = upload(test_client, ["c.png"], group="other").json()["images"]

    resp = test_client.delete("/api/delete-group/Summer%202024%2Fbeach")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    gallery_ids = [img["id"] for img in test_client.get("/api/gallery").json()["images"]]
    assert gallery_ids == [kept[0]["id"]]
    for image in doomed:
        assert blob_store.get(image["storageKey"]) is None
    assert test_client.get("/api/groups").json() == ["other"]


def test_delete_nonexistent_group(test_client):
    resp = test_client.delete("/api/delete-group/nope")
    assert resp.status_code == 404


# ------------------------------
# /api/image/{key} [GET]
# ------------------------------

def test_serve_image(test_client):
    data = make_png_bytes()
    image = test_client.post(
        "/api/upload", data={"group": "G"}, files=[("images", ("a.png", data, "image/png"))]
    ).json()["images"][0]

    resp = test_client.get(image["url"])
    assert resp.status_code == 200
    assert resp.content == data
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["cache-control"] == "public, max-age=3600"
    assert resp.headers["etag"]


def test_serve_image_legacy_prefix(test_client, blob_store):
    blob_store.put("images/legacy.gif", b"GIF89a...", content_type="image/gif")
    resp = test_client.get("/api/image/legacy.gif")
    assert resp.status_code == 200
    assert resp.content == b"GIF89a..."
    assert resp.headers["content-type"] == "image/gif"


def test_serve_unknown_image(test_client):
    resp = test_client.get("/api/image/nope.png")
    assert resp.status_code == 404
    assert "error" in resp.json()


# ------------------------------
# routing and CORS
# ------------------------------

def test_wrong_method_on_known_path(test_client):
    resp = test_client.get("/api/upload")
    assert resp.status_code == 405
    assert resp.headers["allow"] == "POST"
    assert resp.json() == {"error": "Method Not Allowed"}

    resp = test_client.post("/api/gallery")
    assert resp.status_code == 405
    assert "GET" in resp.headers["allow"]


def test_unknown_path(test_client):
    resp = test_client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


def test_options_preflight(test_client):
    resp = test_client.options("/api/upload")
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "DELETE" in resp.headers["access-control-allow-methods"]

    resp = test_client.options(
        "/api/delete/123",
        headers={"Origin": "https://example.com", "Access-Control-Request-Method": "DELETE"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"


def test_missing_store_is_configuration_error():
    # No lifespan run, so nothing builds the stores
    client = TestClient(create_app())
    resp = client.get("/api/gallery")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Metadata store is not configured."}


def test_read_root(test_client):
    resp = test_client.get("/")
    assert resp.status_code == 200
    assert resp.json() == "Gallery API is running."


def test_upload_runs_store_calls_in_threadpool(test_client, mocker):
    from gallery.routers import gallery as gallery_routes

    spy = mocker.patch.object(
        gallery_routes, "run_in_threadpool", wraps=gallery_routes.run_in_threadpool
    )
    resp = upload(test_client, ["a.png", "b.png"], group="G")
    assert resp.status_code == 200
    spy.assert_called_once()
    assert spy.call_args.args[0] is gallery_routes.save_images
    assert len(resp.json()["images"]) == 2


def test_unhandled_error_keeps_cors_headers(mocker):
    metadata_store = mocker.Mock()
    metadata_store.get.side_effect = RuntimeError("store exploded")
    client = TestClient(create_app(blob_store=mocker.Mock(), metadata_store=metadata_store))

    resp = client.get("/api/gallery", headers={"Origin": "https://example.com"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "store exploded"}
    assert resp.headers["access-control-allow-origin"] == "*"
