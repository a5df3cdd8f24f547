def signup(client, email="user@example.com", password="password123", name="Test User"):
    client.post("/api/register", json={"name": name, "email": email, "password": password})
    response = client.post("/api/login", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def checkout_payload(address, payment_method="COD"):
    return {"shipping_address": address.model_dump(), "payment_method": payment_method}
