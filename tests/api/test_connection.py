def test_connection(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "paypal_configured": True, "paypal_mode": "sandbox"}
