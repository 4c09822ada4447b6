import httpx

from rento.storage import ObjectStorage


def make_storage(handler, api_key=""):
    return ObjectStorage(
        "http://storage.test/", "rental-images", api_key=api_key,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_public_url():
    storage = make_storage(lambda request: httpx.Response(200))

    assert storage.get_public_url("items/u1/a.jpg") == (
        "http://storage.test/storage/v1/object/public/rental-images/items/u1/a.jpg"
    )


def test_upload_sends_bytes_and_key():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["type"] = request.headers.get("Content-Type")
        seen["body"] = request.content
        return httpx.Response(200)

    storage = make_storage(handler, api_key="service-key")

    assert storage.upload("items/u1/a.jpg", b"abc", "image/jpeg") is True
    assert seen == {
        "path": "/storage/v1/object/rental-images/items/u1/a.jpg",
        "auth": "Bearer service-key",
        "type": "image/jpeg",
        "body": b"abc",
    }


def test_upload_error_returns_false():
    storage = make_storage(lambda request: httpx.Response(400, json={"error": "Duplicate"}))

    assert storage.upload("items/u1/a.jpg", b"abc") is False


def test_upload_transport_error_returns_false():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert make_storage(handler).upload("items/u1/a.jpg", b"abc") is False
