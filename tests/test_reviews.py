from datetime import datetime

import pytest
from conftest import auth_headers, make_admin, make_co_admin, make_property, make_user

from propertyhub.domain.reviews.service import compute_stats
from propertyhub.models import Appointment, Property, Review


def submit(client, user, prop, rating=5, comment="Great location and a very honest agent", **extra):
    return client.post(
        "/reviews",
        json={"propertyId": prop.id, "rating": rating, "comment": comment, **extra},
        headers=auth_headers(user),
    )


def reviewers(db, count: int) -> list:
    return [make_user(db, f"reviewer{i}", phone=f"+1555200{i:04d}") for i in range(count)]


def test_submitted_review_waits_for_moderation(client, db):
    user = make_user(db)
    prop = make_property(db)

    res = submit(client, user, prop, subcategories={"location": 5, "value": 4})

    assert res.status_code == 201
    review = res.json()["review"]
    assert review["status"] == "pending"
    assert review["subcategories"] == {"location": 5, "value": 4}
    assert review["user"]["username"] == user.username
    listing = client.get(f"/properties/{prop.id}/reviews").json()
    assert listing["reviews"] == []
    assert listing["stats"]["total"] == 0


def test_one_review_per_user_and_property(client, db):
    user = make_user(db)
    prop = make_property(db)
    submit(client, user, prop)

    res = submit(client, user, prop, rating=1)

    assert res.status_code == 400
    assert res.json() == {"message": ["You have already reviewed this property"]}


@pytest.mark.parametrize(
    "overrides",
    [{"rating": 0}, {"rating": 6}, {"comment": "too short"}, {"subcategories": {"location": 7}}],
)
def test_review_validation(client, db, overrides):
    user = make_user(db)
    prop = make_property(db)

    res = client.post(
        "/reviews",
        json={"propertyId": prop.id, "rating": 4, "comment": "Nice and quiet street", **overrides},
        headers=auth_headers(user),
    )

    assert res.status_code == 400
    assert db.query(Review).count() == 0


def test_review_must_match_own_appointment(client, db):
    user = make_user(db)
    other = make_user(db, "other", phone="+15550000002")
    prop = make_property(db)
    elsewhere = make_property(db, title="Elsewhere")
    visit = Appointment(
        property_id=elsewhere.id,
        user_id=other.id,
        visitor_name=other.username,
        visitor_phone=other.phone,
        visitor_email=other.email,
        appointment_date=datetime(2030, 1, 7, 10, 0),
        appointment_time="10:00",
        time_slot="2030-01-07-10:00",
        status="completed",
    )
    db.add(visit)
    db.commit()

    res = submit(client, user, prop, appointmentId=visit.id)

    assert res.status_code == 400
    assert res.json() == {"message": ["Appointment does not match this property"]}


def test_review_with_photos(client, db, storage):
    user = make_user(db)
    prop = make_property(db)

    res = client.post(
        "/reviews",
        data={"propertyId": str(prop.id), "rating": "4", "comment": "Bright rooms and a lovely garden",
              "subcategories.condition": "4"},
        files=[("images", ("garden.jpg", b"\xff\xd8\xff fake", "image/jpeg"))],
        headers=auth_headers(user),
    )
    too_many = client.post(
        "/reviews",
        data={"propertyId": str(prop.id), "rating": "4", "comment": "Bright rooms and a lovely garden"},
        files=[("images", (f"{i}.jpg", b"\xff\xd8\xff", "image/jpeg")) for i in range(6)],
        headers=auth_headers(make_user(db, "second", phone="+15550000002")),
    )

    assert res.status_code == 201
    review = res.json()["review"]
    assert review["subcategories"] == {"condition": 4}
    assert review["images"][0]["url"].startswith("/media/reviews/images/")
    assert too_many.status_code == 400


def test_moderation_recomputes_property_rating(client, db):
    moderator = make_co_admin(db)
    prop = make_property(db)
    first, second, third = reviewers(db, 3)
    ids = [submit(client, u, prop, rating=r).json()["review"]["id"] for u, r in ((first, 5), (second, 4), (third, 1))]

    approve_first = client.put(
        f"/reviews/{ids[0]}/moderate", json={"action": "approve"}, headers=auth_headers(moderator)
    ).json()
    assert approve_first["propertyRating"] == {"average": 5.0, "count": 1}

    approve_second = client.put(
        f"/reviews/{ids[1]}/moderate", json={"action": "approve"}, headers=auth_headers(moderator)
    ).json()
    assert approve_second["propertyRating"] == {"average": 4.5, "count": 2}

    rejected = client.put(
        f"/reviews/{ids[2]}/moderate",
        json={"action": "reject", "moderationNotes": "Off-topic"},
        headers=auth_headers(moderator),
    ).json()
    assert rejected["review"]["status"] == "rejected"
    assert rejected["review"]["moderationNotes"] == "Off-topic"
    assert rejected["propertyRating"] == {"average": 4.5, "count": 2}

    revoked = client.put(
        f"/reviews/{ids[0]}/moderate", json={"action": "request_changes"}, headers=auth_headers(moderator)
    ).json()
    assert revoked["review"]["status"] == "changes_requested"
    assert revoked["propertyRating"] == {"average": 4.0, "count": 1}

    db.expire_all()
    assert db.get(Property, prop.id).rating_count == 1


def test_moderation_is_staff_only(client, db):
    user = make_user(db)
    prop = make_property(db)
    review_id = submit(client, user, prop).json()["review"]["id"]

    forbidden = client.put(f"/reviews/{review_id}/moderate", json={"action": "approve"}, headers=auth_headers(user))
    unknown_action = client.put(
        f"/reviews/{review_id}/moderate", json={"action": "publish"}, headers=auth_headers(make_admin(db))
    )

    assert forbidden.status_code == 403
    assert unknown_action.status_code == 400
    assert client.get("/reviews/pending", headers=auth_headers(user)).status_code == 403


def test_pending_queue(client, db):
    admin = make_admin(db)
    user = make_user(db)
    prop = make_property(db)
    submit(client, user, prop)

    pending = client.get("/reviews/pending", headers=auth_headers(admin)).json()

    assert len(pending) == 1
    assert pending[0]["propertyTitle"] == "Casa Azul"


def test_listing_puts_featured_first_and_paginates(client, db):
    admin = make_admin(db)
    prop = make_property(db)
    users = reviewers(db, 4)
    ids = [
        submit(client, u, prop, rating=r, recommendation=r > 2).json()["review"]["id"]
        for u, r in zip(users, (5, 4, 2, 3))
    ]
    for review_id in ids:
        client.put(f"/reviews/{review_id}/moderate", json={"action": "approve"}, headers=auth_headers(admin))

    featured = client.put(f"/reviews/{ids[0]}/featured", headers=auth_headers(admin)).json()
    assert featured == {"message": "Review featured", "featured": True}

    page_one = client.get(f"/properties/{prop.id}/reviews", params={"limit": 3}).json()
    page_two = client.get(f"/properties/{prop.id}/reviews", params={"limit": 3, "page": 2}).json()

    assert page_one["reviews"][0]["id"] == ids[0]
    assert [r["id"] for r in page_one["reviews"][1:]] == [ids[3], ids[2]]
    assert [r["id"] for r in page_two["reviews"]] == [ids[1]]
    assert page_one["pagination"] == {"page": 1, "limit": 3, "total": 4, "pages": 2}
    assert page_one["stats"]["average"] == 3.5
    assert page_one["stats"]["distribution"] == {"1": 0, "2": 1, "3": 1, "4": 1, "5": 1}
    assert page_one["stats"]["recommendationRate"] == 75.0


def test_featured_toggle_is_admin_only(client, db):
    co_admin = make_co_admin(db)
    user = make_user(db)
    prop = make_property(db)
    review_id = submit(client, user, prop).json()["review"]["id"]

    assert client.put(f"/reviews/{review_id}/featured", headers=auth_headers(co_admin)).status_code == 403


def test_helpful_vote_toggles(client, db):
    author = make_user(db)
    voter = make_user(db, "voter", phone="+15550000002")
    prop = make_property(db)
    review_id = submit(client, author, prop).json()["review"]["id"]

    voted = client.post(f"/reviews/{review_id}/helpful", headers=auth_headers(voter)).json()
    withdrawn = client.post(f"/reviews/{review_id}/helpful", headers=auth_headers(voter)).json()

    assert (voted["helpfulCount"], voted["votedHelpful"]) == (1, True)
    assert (withdrawn["helpfulCount"], withdrawn["votedHelpful"]) == (0, False)
    assert client.post("/reviews/999/helpful", headers=auth_headers(voter)).status_code == 404


def test_deleting_review_recomputes_rating(client, db):
    admin = make_admin(db)
    prop = make_property(db)
    first, second = reviewers(db, 2)
    ids = [submit(client, u, prop, rating=r).json()["review"]["id"] for u, r in ((first, 5), (second, 2))]
    for review_id in ids:
        client.put(f"/reviews/{review_id}/moderate", json={"action": "approve"}, headers=auth_headers(admin))

    res = client.delete(f"/reviews/{ids[1]}", headers=auth_headers(admin))

    assert res.status_code == 200
    db.expire_all()
    prop = db.get(Property, prop.id)
    assert (prop.rating_average, prop.rating_count) == (5.0, 1)
    assert client.delete(f"/reviews/{ids[1]}", headers=auth_headers(admin)).status_code == 404


def test_compute_stats_empty_and_rounding():
    assert compute_stats([])["average"] == 0.0
    stats = compute_stats([(5, True), (4, True), (4, False)])
    assert stats["average"] == 4.3
    assert stats["recommendationRate"] == 66.7
