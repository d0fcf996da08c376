from datetime import datetime, timedelta, timezone

import pytest

from prohealth.models import Service


@pytest.fixture
def catalog(db):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    services = [
        Service(name="Yoga Class", description="Gentle morning yoga", price=800.0, category="Fitness",
                created_at=base),
        Service(name="Deep Tissue Massage", description="Relieves muscle tension", price=3500.0,
                category="Massage", created_at=base + timedelta(days=1)),
        Service(name="Nutrition Consultation", description="Diet plan with a nutritionist", price=2000.0,
                category="Consultation", created_at=base + timedelta(days=2)),
    ]
    db.add_all(services)
    db.commit()
    return services


def names(response) -> list[str]:
    return [item["name"] for item in response.json()]


def test_list_services_newest_first_by_default(client, catalog):
    response = client.get("/services")

    assert response.status_code == 200
    assert names(response) == ["Nutrition Consultation", "Deep Tissue Massage", "Yoga Class"]


def test_filter_by_category(client, catalog):
    assert names(client.get("/services", params={"category": "Massage"})) == ["Deep Tissue Massage"]


def test_search_is_case_insensitive_over_name_and_description(client, catalog):
    assert names(client.get("/services", params={"search": "YOGA"})) == ["Yoga Class"]
    assert names(client.get("/services", params={"search": "muscle"})) == ["Deep Tissue Massage"]


@pytest.mark.parametrize(
    "sort_by,sort_order,expected",
    [
        ("price", "asc", ["Yoga Class", "Nutrition Consultation", "Deep Tissue Massage"]),
        ("price", "desc", ["Deep Tissue Massage", "Nutrition Consultation", "Yoga Class"]),
        ("name", "asc", ["Deep Tissue Massage", "Nutrition Consultation", "Yoga Class"]),
    ],
)
def test_sorting(client, catalog, sort_by, sort_order, expected):
    response = client.get("/services", params={"sort_by": sort_by, "sort_order": sort_order})

    assert names(response) == expected


def test_invalid_sort_field_is_rejected(client, catalog):
    assert client.get("/services", params={"sort_by": "password"}).status_code == 422


def test_get_service(client, catalog):
    response = client.get(f"/services/{catalog[0].id}")

    assert response.status_code == 200
    assert response.json()["price"] == 800.0


def test_get_missing_service(client):
    response = client.get("/services/does-not-exist")

    assert response.status_code == 404
    assert response.json()["detail"] == "Service with ID 'does-not-exist' not found."


def test_list_by_category_route(client, catalog):
    assert names(client.get("/services/category/Fitness")) == ["Yoga Class"]
