import pytest

from storefront.checkout.form import validate, prefill_form, clear_form, import_address, saved_address_options
from storefront.checkout.models import Address, CheckoutForm, ContactInfo
from storefront.errors import ValidationError


def test_validate_complete_form_returns_trimmed_values(valid_form):
    form = valid_form.model_copy(update={
        "contact": ContactInfo(first_name="  John ", last_name="Smith", email=" john@example.com ", phone="+447700900123"),
    })
    validated = validate(form)
    assert validated.contact.first_name == "John"
    assert validated.contact.email == "john@example.com"
    assert validated.billing_address is None
    assert validated.warnings == {}


def test_validate_empty_form_lists_every_required_field():
    with pytest.raises(ValidationError) as exc:
        validate(CheckoutForm(shipping_address=Address(country="")))
    errors = exc.value.field_errors
    for field in ("first_name", "last_name", "email", "phone"):
        assert f"contact.{field}" in errors
    for field in ("address", "city", "postcode", "country"):
        assert f"shipping_address.{field}" in errors


def test_validate_single_missing_field_is_the_only_error(valid_form):
    form = valid_form.model_copy(update={
        "shipping_address": valid_form.shipping_address.model_copy(update={"city": "   "}),
    })
    with pytest.raises(ValidationError) as exc:
        validate(form)
    assert exc.value.field_errors == {"shipping_address.city": "City is required"}


def test_validate_is_idempotent(valid_form):
    assert validate(valid_form) == validate(valid_form)
    bad = CheckoutForm()
    with pytest.raises(ValidationError) as first:
        validate(bad)
    with pytest.raises(ValidationError) as second:
        validate(bad)
    assert first.value.field_errors == second.value.field_errors


def test_billing_required_only_when_not_same_as_shipping(valid_form):
    same = valid_form.model_copy(update={"billing_address": Address(address="", city="")})
    assert validate(same).billing_address is None

    separate = valid_form.model_copy(update={"billing_same_as_shipping": False})
    with pytest.raises(ValidationError) as exc:
        validate(separate)
    assert set(exc.value.field_errors) == {
        "billing_address.address",
        "billing_address.city",
        "billing_address.postcode",
        "billing_address.country",
    }

    filled = separate.model_copy(update={
        "billing_address": Address(address="1 High St", city="Leeds", postcode="LS1 1AA", country="United Kingdom"),
    })
    assert validate(filled).billing_address.city == "Leeds"


def test_format_issues_are_warnings_by_default(valid_form):
    form = valid_form.model_copy(update={
        "contact": valid_form.contact.model_copy(update={"email": "john-at-example", "phone": "abc"}),
        "shipping_address": valid_form.shipping_address.model_copy(update={"postcode": "12345"}),
    })
    validated = validate(form, strict_countries=[])
    assert set(validated.warnings) == {"contact.email", "contact.phone", "shipping_address.postcode"}


def test_format_issues_block_in_strict_countries(valid_form):
    form = valid_form.model_copy(update={
        "shipping_address": valid_form.shipping_address.model_copy(update={"postcode": "12345"}),
    })
    with pytest.raises(ValidationError) as exc:
        validate(form, strict_countries=["United Kingdom"])
    assert exc.value.field_errors == {"shipping_address.postcode": "Please enter a valid postcode"}


def test_prefill_from_profile_and_default_address():
    form = prefill_form(
        {"firstName": "Jane", "lastName": "Doe", "email": "jane@example.com"},
        [
            {"address": "1 Other Rd", "city": "York", "postcode": "YO1 7HH", "country": "United Kingdom"},
            {"address": "2 Main St", "city": "Bath", "zipCode": "BA1 1AA", "country": "United Kingdom", "isDefault": True},
        ],
    )
    assert form.contact.first_name == "Jane"
    assert form.contact.phone == ""
    assert form.shipping_address.city == "Bath"
    assert form.shipping_address.postcode == "BA1 1AA"


def test_prefill_without_data_gives_empty_form():
    form = prefill_form(None, None)
    assert form == clear_form()


def test_import_address_by_id_keeps_contact(valid_form):
    saved = [
        {"id": "home", "address": "2 Main St", "city": "Bath", "postalCode": "BA1 1AA", "country": "United Kingdom"},
        {"address": "3 Side Rd", "city": "York", "postcode": "YO1 7HH"},
    ]
    form = import_address(valid_form, saved, "1")
    assert form.shipping_address.city == "York"
    assert form.contact == valid_form.contact
    assert import_address(valid_form, saved, "home").shipping_address.postcode == "BA1 1AA"
    with pytest.raises(KeyError):
        import_address(valid_form, saved, "office")
    assert [o["id"] for o in saved_address_options(saved)] == ["home", "1"]
