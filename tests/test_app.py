def test_home(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_api_docs_document(client):
    response = client.get("/apispec.json")

    assert response.status_code == 200
    document = response.get_json()
    assert document["info"]["title"] == "Tailor Shop Backend API"
    assert any(path.endswith("/orders/{order_id}/status") for path in document["paths"])


def test_unknown_route_is_json(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json()["status"] == "error"
