import io

import pytest
from PIL import Image


def _png_bytes(mode="RGBA", size=(8, 5)):
    buf = io.BytesIO()
    Image.new(mode, size, color=(255, 0, 0, 128) if mode == "RGBA" else "red").save(buf, format="PNG")
    return buf.getvalue()


def test_root_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "online"
    assert root.json()["docs"] == "/docs"

    assert client.get("/health").json()["status"] == "healthy"


def test_unknown_path(client):
    response = client.get("/api/v1/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_openapi_document(client):
    response = client.get("/docs-json")
    assert response.status_code == 200
    paths = response.json()["paths"]
    assert "/api/v1/tools/qr" in paths
    assert "/api/tools/qr" not in paths


def test_system_info(client):
    info = client.get("/api/system/info").json()
    assert info["cpus"] >= 1
    assert info["memory"]["total"] > 0
    assert info["memory"]["usage"].endswith("%")


def test_system_stats(client, store):
    store.incr("usage:total")
    store.incr("usage:total")
    store.incr("usage:qr")
    store.incr("usage:fetch")
    response = client.get("/api/v1/system/stats")
    assert response.json() == {"total_requests": 2, "features": {"fetch": 1, "qr": 1}}


def test_system_storage(client, store):
    store.set("counter:home", 4)
    store.set("counter:about", 1)
    store.set("comments:home", [])
    response = client.get("/api/system/storage")
    assert response.json() == {
        "backend": "memory",
        "keys": 3,
        "namespaces": {"counter": 2, "comments": 1},
    }


@pytest.mark.parametrize("target, pil_format", [("jpg", "JPEG"), ("webp", "WEBP"), ("BMP", "BMP")])
def test_convert_image(client, store, target, pil_format):
    response = client.post(
        "/api/images/convert",
        files={"image": ("dot.png", _png_bytes(), "image/png")},
        data={"format": target},
    )
    assert response.status_code == 200
    converted = Image.open(io.BytesIO(response.content))
    assert converted.format == pil_format
    assert converted.size == (8, 5)
    assert store.get("usage:image_convert") == 1


def test_convert_requires_image(client):
    response = client.post("/api/images/convert", data={"format": "png"})
    assert response.status_code == 400
    assert response.json() == {"error": "No image"}


def test_convert_rejects_unknown_format(client):
    response = client.post(
        "/api/images/convert",
        files={"image": ("dot.png", _png_bytes(), "image/png")},
        data={"format": "svg"},
    )
    assert response.status_code == 400
    assert "svg" in response.json()["error"]


def test_convert_corrupt_image(client, store):
    response = client.post(
        "/api/images/convert",
        files={"image": ("junk.png", b"not an image", "image/png")},
        data={"format": "png"},
    )
    assert response.status_code == 500
    assert response.json()["error"] == "Conversion failed"
    assert response.json()["details"]
    assert store.get("usage:image_convert") is None


def test_image_metadata(client):
    response = client.post(
        "/api/images/metadata",
        files={"image": ("dot.png", _png_bytes("RGB", (3, 7)), "image/png")},
    )
    assert response.json() == {
        "width": 3,
        "height": 7,
        "format": "PNG",
        "mime": "image/png",
        "mode": "RGB",
    }


def test_image_metadata_failure(client):
    response = client.post("/api/images/metadata", files={"image": ("x.bin", b"\x00\x01", "application/octet-stream")})
    assert response.status_code == 500
    assert response.json() == {"error": "Metadata read failed"}
