import pytest

from schemas import (
    EventUpdateForm,
    LoginForm,
    SermonOutlineForm,
    SignupForm,
    StkPushForm,
    TeachingForm,
    TeamMemberForm,
    validate,
)


def test_signup_form_reports_every_bad_field():
    form, errors = validate(SignupForm, {"name": "A", "email": "not-an-email", "phone": "123", "password": "abc"})

    assert form is None
    assert errors == {
        "name": ["Name must be at least 2 characters."],
        "email": ["Please enter a valid email."],
        "phone": ["Please enter a valid phone number."],
        "password": ["Password must be at least 6 characters."],
    }


def test_missing_fields_get_the_same_messages_as_short_ones():
    _, errors = validate(SignupForm, {})

    assert set(errors) == {"name", "email", "phone", "password"}
    assert errors["email"] == ["Please enter a valid email."]


def test_valid_signup_is_stripped():
    form, errors = validate(
        SignupForm,
        {"name": "  Grace  ", "email": "grace@church.org", "phone": "0712345678", "password": "secret123"},
    )

    assert errors is None
    assert form.name == "Grace"


def test_login_role_must_be_known():
    _, errors = validate(LoginForm, {"identifier": "x", "password": "y", "role": "bishop"})

    assert errors == {"role": ["Role must be member or pastor."]}


def test_teaching_media_type_is_enumerated():
    _, errors = validate(TeachingForm, {"media_type": "podcast"})

    assert list(errors) == ["media_type"]


def test_event_update_requires_id_and_fields():
    _, errors = validate(EventUpdateForm, {"title": "Sunday Service"})

    assert errors["id"] == ["Event ID is required."]
    assert errors["location"] == ["Location is required."]
    assert "title" not in errors


def test_team_member_needs_an_image_url():
    _, errors = validate(TeamMemberForm, {"name": "Grace", "position": "Choir", "image_url": "nope"})

    assert errors == {"image_url": ["A valid image URL is required."]}


def test_sermon_outline_needs_points():
    _, errors = validate(SermonOutlineForm, {"sermon_title": "Hope", "outline": []})

    assert errors == {"outline": ["The outline must contain at least one point."]}


@pytest.mark.parametrize("amount", ["-5", "0", "0.5", "nan", "inf", "-inf"])
def test_stk_push_amount_must_be_a_finite_amount_of_at_least_one(amount):
    _, errors = validate(StkPushForm, {"phone": "0712345678", "amount": amount})

    assert errors == {"amount": ["Amount must be at least 1."]}


def test_stk_push_amount_accepts_numbers():
    form, errors = validate(StkPushForm, {"phone": "0712345678", "amount": "1"})
    assert errors is None
    assert form.amount == "1"

    form, errors = validate(StkPushForm, {"phone": "0712345678", "amount": 250})
    assert errors is None
    assert form.amount == "250"
