"""
Validation rules of the request models
"""
import pytest
from pydantic import ValidationError

from waydown.schemas import (
    LocationIn,
    PostCommentCreate,
    ProfileUpdate,
    RegisterRequest,
    SpotCreate,
    SpotReviewCreate,
)

VALID_SPOT = {
    "name": "Hidden Falls",
    "content": "A quiet waterfall at the end of a forest trail.",
    "latitude": 12.97,
    "longitude": 77.59,
}


class TestSpotCreate:
    def test_defaults(self):
        spot = SpotCreate(**VALID_SPOT)
        assert spot.tags == ["Nature"]
        assert spot.difficulty == "Unknown"
        assert spot.city == ""

    def test_strips_text(self):
        spot = SpotCreate(**{**VALID_SPOT, "name": "  Hidden Falls  "})
        assert spot.name == "Hidden Falls"

    @pytest.mark.parametrize("override", [
        {"name": "ab"},
        {"content": "too short"},
        {"latitude": 90.5},
        {"longitude": -181},
        {"tags": ["Volcanoes"]},
        {"difficulty": "Extreme"},
    ])
    def test_rejects(self, override):
        with pytest.raises(ValidationError):
            SpotCreate(**{**VALID_SPOT, **override})


class TestLocation:
    def test_geojson_order(self):
        loc = LocationIn(coordinates=[77.59, 12.97])
        assert loc.type == "Point"

    def test_latitude_out_of_range(self):
        # [lon, lat] with lat > 90
        with pytest.raises(ValidationError):
            LocationIn(coordinates=[12.0, 120.0])

    def test_needs_two_numbers(self):
        with pytest.raises(ValidationError):
            LocationIn(coordinates=[1.0])

    def test_profile_update_nests_location(self):
        update = ProfileUpdate(location={"type": "Point", "coordinates": [0, 0]}, bio="  hi ")
        assert update.location.coordinates == [0, 0]
        assert update.bio == "hi"


class TestRegister:
    def test_email_is_lowercased(self):
        req = RegisterRequest(email="Alice@Example.COM", password="secret123", display_name="alice")
        assert req.email == "alice@example.com"

    @pytest.mark.parametrize("name", ["ab", "has space", "x" * 21, "dash-name"])
    def test_display_name_pattern(self, name):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@example.com", password="secret123", display_name=name)

    def test_short_password(self):
        with pytest.raises(ValidationError):
            RegisterRequest(email="a@example.com", password="12345", display_name="alice")


def test_review_rating_bounds():
    assert SpotReviewCreate(content="nice", rating=5).rating == 5
    with pytest.raises(ValidationError):
        SpotReviewCreate(content="nice", rating=0)


def test_blank_comment():
    with pytest.raises(ValidationError):
        PostCommentCreate(text="   ")
