import pytest
from conftest import auth_headers, make_admin, make_co_admin, make_property, make_user

from propertyhub.models import PROPERTY_STATUS_SOLD, Property
from propertyhub.models_notification import Notification

LISTING = {
    "title": "Casa Azul",
    "description": "Three bedroom house with a large yard",
    "businessMode": "sale",
    "address": {"street": "123 Main St", "city": "Austin", "state": "TX", "zipCode": "78701"},
    "price": {"sale": 350000},
    "details": {"bedrooms": 3, "bathrooms": 2, "squareFeet": 1800, "propertyType": "house"},
    "amenities": "pool, garage ,",
}

FORM = {
    "title": "Loft Centro",
    "description": "Bright loft close to downtown",
    "businessMode": "rent",
    "address.street": "9 Congress Ave",
    "address.city": "Austin",
    "address.state": "TX",
    "address.zipCode": "78701",
    "price[rent]": "1800",
    "details.bedrooms": "1",
    "details.bathrooms": "1",
    "details.squareFeet": "700",
    "details.propertyType": "apartment",
}


def png(name: str = "front.png"):
    return ("images", (name, b"\x89PNG fake image", "image/png"))


def test_create_property_from_json(client, db):
    admin = make_admin(db)

    res = client.post("/properties", json=LISTING, headers=auth_headers(admin))

    assert res.status_code == 201
    body = res.json()
    assert body["notificationScheduled"] is False
    prop = body["property"]
    assert prop["status"] == "DISPONIBLE"
    assert prop["amenities"] == ["pool", "garage"]
    assert prop["price"]["sale"] == 350000
    assert prop["createdBy"] == admin.id


def test_create_property_from_multipart_with_images(client, db, storage):
    co_admin = make_co_admin(db)

    res = client.post(
        "/properties",
        data=FORM,
        files=[png("front.png"), png("kitchen.png")],
        headers=auth_headers(co_admin),
    )

    assert res.status_code == 201
    prop = res.json()["property"]
    assert prop["businessMode"] == "rent"
    assert prop["price"]["rent"] == 1800
    assert [image["isMain"] for image in prop["images"]] == [True, False]
    stored = db.query(Property).one().images[0]
    assert (storage.root / stored["key"]).is_file()


@pytest.mark.parametrize(
    "mode,price",
    [("sale", {"rent": 1200}), ("rent", {"sale": 200000}), ("both", {"sale": 200000}), ("sale", {"sale": 0})],
)
def test_create_property_requires_matching_prices(client, db, mode, price):
    admin = make_admin(db)

    res = client.post("/properties", json={**LISTING, "businessMode": mode, "price": price}, headers=auth_headers(admin))

    assert res.status_code == 400
    assert db.query(Property).count() == 0


def test_create_property_is_staff_only(client, db):
    user = make_user(db)

    assert client.post("/properties", json=LISTING, headers=auth_headers(user)).status_code == 403
    assert client.post("/properties", json=LISTING).status_code == 401


def test_create_property_rejects_bad_uploads(client, db):
    admin = make_admin(db)

    wrong_type = client.post(
        "/properties",
        data=FORM,
        files=[("images", ("notes.txt", b"hello", "text/plain"))],
        headers=auth_headers(admin),
    )
    too_many = client.post(
        "/properties",
        data=FORM,
        files=[png(f"{i}.png") for i in range(11)],
        headers=auth_headers(admin),
    )

    assert wrong_type.status_code == 400
    assert too_many.status_code == 400
    assert too_many.json() == {"message": ["Maximum 10 images allowed"]}
    assert db.query(Property).count() == 0


def test_notify_users_schedules_new_property_broadcast(client, db, messaging):
    admin = make_admin(db)
    buyer = make_user(db)

    res = client.post("/properties", json={**LISTING, "notifyUsers": True}, headers=auth_headers(admin))

    assert res.json()["notificationScheduled"] is True
    [sms] = messaging.sms.to(buyer.phone)
    assert sms.startswith("NEW PROPERTY AVAILABLE")
    notification = db.query(Notification).one()
    assert notification.type == "new_property"
    assert notification.created_by_id == admin.id


def test_update_property_rechecks_pricing(client, db):
    admin = make_admin(db)
    prop = make_property(db)

    switched = client.put(
        f"/properties/{prop.id}", json={"businessMode": "both"}, headers=auth_headers(admin)
    )
    updated = client.put(
        f"/properties/{prop.id}",
        json={"businessMode": "both", "price": {"rent": 2100}, "details": {"bedrooms": 4}},
        headers=auth_headers(admin),
    )

    assert switched.status_code == 400
    assert updated.status_code == 200
    body = updated.json()
    assert body["businessMode"] == "both"
    assert body["price"]["sale"] == 350000
    assert body["price"]["rent"] == 2100
    assert body["details"]["bedrooms"] == 4


def test_public_listing_shows_available_properties_only(client, db):
    make_property(db, title="Open House", city="Austin")
    make_property(db, title="Gone", status=PROPERTY_STATUS_SOLD, is_available=False)
    make_property(db, title="Rental", business_mode="rent", price_sale=None, price_rent=1500, city="Dallas")

    everything = client.get("/properties/public").json()
    in_dallas = client.get("/properties/public", params={"city": "dallas"}).json()
    rentals = client.get("/properties/public", params={"businessMode": "rent"}).json()

    assert sorted(p["title"] for p in everything) == ["Open House", "Rental"]
    assert [p["title"] for p in in_dallas] == ["Rental"]
    assert [p["title"] for p in rentals] == ["Rental"]
    assert client.get("/properties/public/999").status_code == 404


def test_status_change_back_to_available_announces_once(client, db, messaging):
    admin = make_admin(db)
    buyer = make_user(db)
    prop = make_property(db)

    to_contract = client.put(
        f"/properties/{prop.id}/status", json={"status": "EN_CONTRATO"}, headers=auth_headers(admin)
    )
    back = client.put(
        f"/properties/{prop.id}/status",
        json={"status": "DISPONIBLE", "reason": "Buyer financing fell through"},
        headers=auth_headers(admin),
    )
    again = client.put(f"/properties/{prop.id}/status", json={"status": "DISPONIBLE"}, headers=auth_headers(admin))

    assert to_contract.json()["notificationScheduled"] is False
    assert back.json()["notificationScheduled"] is True
    assert again.json()["notificationScheduled"] is False
    [sms] = messaging.sms.to(buyer.phone)
    assert sms.startswith("PROPERTY AVAILABLE AGAIN")
    assert db.query(Notification).filter(Notification.type == "available_again").count() == 1

    history = client.get(f"/properties/{prop.id}/history", headers=auth_headers(admin)).json()["history"]
    assert [(h["status"], h["new_status"]) for h in history] == [
        ("DISPONIBLE", "EN_CONTRATO"),
        ("EN_CONTRATO", "DISPONIBLE"),
        ("DISPONIBLE", "DISPONIBLE"),
    ]
    assert history[1]["reason"] == "Buyer financing fell through"
    assert history[0]["changed_by"] == admin.id


def test_rental_back_from_contract_is_not_announced(client, db, messaging):
    admin = make_admin(db)
    make_user(db)
    prop = make_property(db, business_mode="rent", price_sale=None, price_rent=1500)

    client.put(f"/properties/{prop.id}/status", json={"status": "EN_CONTRATO"}, headers=auth_headers(admin))
    back = client.put(f"/properties/{prop.id}/status", json={"status": "DISPONIBLE"}, headers=auth_headers(admin))

    assert back.json()["notificationScheduled"] is False
    assert messaging.sms.sent == []


def test_sold_property_is_no_longer_available(client, db):
    admin = make_admin(db)
    prop = make_property(db)

    res = client.put(f"/properties/{prop.id}/status", json={"status": "VENDIDA"}, headers=auth_headers(admin))
    invalid = client.put(f"/properties/{prop.id}/status", json={"status": "RENTED"}, headers=auth_headers(admin))

    assert res.json()["property"]["availability"]["isAvailable"] is False
    assert invalid.status_code == 400
    assert client.get("/properties/public").json() == []


def test_image_management(client, db, storage):
    admin = make_admin(db)
    prop = make_property(db)
    headers = auth_headers(admin)

    added = client.post(
        f"/properties/{prop.id}/images", files=[png("a.png"), png("b.png"), png("c.png")], headers=headers
    ).json()
    first, second, third = (image["id"] for image in added["images"])
    assert [image["isMain"] for image in added["images"]] == [True, False, False]

    main = client.put(f"/properties/{prop.id}/images/{third}/main", headers=headers).json()
    assert [image["isMain"] for image in main["images"]] == [False, False, True]

    captioned = client.put(f"/properties/{prop.id}/images/{second}", json={"caption": "Kitchen"}, headers=headers)
    assert captioned.json()["images"][1]["caption"] == "Kitchen"

    db.expire_all()
    key = db.query(Property).one().images[2]["key"]
    after_delete = client.delete(f"/properties/{prop.id}/images/{third}", headers=headers).json()
    assert [image["id"] for image in after_delete["images"]] == [first, second]
    assert [image["isMain"] for image in after_delete["images"]] == [True, False]
    assert not (storage.root / key).exists()

    assert client.delete(f"/properties/{prop.id}/images/missing", headers=headers).status_code == 404


def test_image_limit_counts_existing_images(client, db):
    admin = make_admin(db)
    prop = make_property(db)
    headers = auth_headers(admin)
    client.post(f"/properties/{prop.id}/images", files=[png(f"{i}.png") for i in range(9)], headers=headers)

    res = client.post(f"/properties/{prop.id}/images", files=[png("x.png"), png("y.png")], headers=headers)

    assert res.status_code == 400
    db.expire_all()
    assert len(db.query(Property).one().images) == 9


def test_documents_and_videos(client, db):
    admin = make_admin(db)
    prop = make_property(db)
    headers = auth_headers(admin)

    docs = client.post(
        f"/properties/{prop.id}/documents",
        files=[("documents", ("deed.pdf", b"%PDF-1.4", "application/pdf"))],
        headers=headers,
    )
    video = client.post(
        f"/properties/{prop.id}/videos",
        files=[("videos", ("tour.mp4", b"\x00\x00\x00\x18ftyp", "video/mp4"))],
        headers=headers,
    )
    bad_video = client.post(
        f"/properties/{prop.id}/videos",
        files=[("videos", ("tour.pdf", b"%PDF-1.4", "application/pdf"))],
        headers=headers,
    )

    assert docs.json()["documents"][0]["filename"] == "deed.pdf"
    assert video.json()["videos"][0]["contentType"] == "video/mp4"
    assert bad_video.status_code == 400

    document_id = docs.json()["documents"][0]["id"]
    removed = client.delete(f"/properties/{prop.id}/documents/{document_id}", headers=headers)
    assert removed.json()["documents"] == []


def test_delete_property(client, db):
    admin = make_admin(db)
    prop = make_property(db)

    res = client.delete(f"/properties/{prop.id}", headers=auth_headers(admin))
    missing = client.delete(f"/properties/{prop.id}", headers=auth_headers(admin))

    assert res.status_code == 200
    assert missing.status_code == 404
    assert db.query(Property).count() == 0
