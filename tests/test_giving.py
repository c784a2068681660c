import giving
from database import CONTRIBUTIONS

DARAJA = {
    "mpesa_consumer_key": "key",
    "mpesa_consumer_secret": "secret",
    "mpesa_business_shortcode": "174379",
    "mpesa_passkey": "passkey",
}


def test_contributions_are_labelled_with_their_giver(db, make_user):
    alice = make_user()
    db[CONTRIBUTIONS].insert_many(
        [
            {"mpesa_ref": "SGH45KL8OP", "user_id": str(alice["_id"]), "amount": 500, "date": "2024-07-21"},
            {"mpesa_ref": "SGH56MN9PQ", "user_id": "deleted-user", "date": "2024-07-28"},
        ]
    )

    contributions = giving.list_contributions(db)

    assert [c.mpesa_ref for c in contributions] == ["SGH56MN9PQ", "SGH45KL8OP"]
    assert contributions[1].user_name == "Alice Johnson"
    assert contributions[1].user_email == "alice@church.org"
    assert contributions[0].user_name == giving.UNKNOWN_NAME


def test_no_contributions_means_an_empty_ledger(db):
    assert giving.list_contributions(db) == []


def test_stk_push_rejects_bad_input(settings):
    settings = settings.model_copy(update=DARAJA)

    result = giving.initiate_stk_push(settings, {"phone": "0712", "amount": ""})

    assert result.success is False
    assert result.message == "Invalid input provided."
    assert set(result.errors) == {"phone", "amount"}


def test_stk_push_needs_configuration(settings):
    result = giving.initiate_stk_push(settings, {"phone": "0712345678", "amount": "100"})
    placeholder = giving.initiate_stk_push(
        settings.model_copy(update=dict(DARAJA, mpesa_consumer_key="YOUR_CONSUMER_KEY")),
        {"phone": "0712345678", "amount": "100"},
    )

    for r in (result, placeholder):
        assert r.success is False
        assert r.message == "The payment service is not configured correctly. Please contact support."


def test_stk_push_simulated_success(settings, db):
    result = giving.initiate_stk_push(settings.model_copy(update=DARAJA), {"phone": "0712345678", "amount": "100"})

    assert result.success is True
    assert db[CONTRIBUTIONS].count_documents({}) == 0


def test_stk_push_rejects_amounts_that_are_not_finite_or_below_one(settings):
    configured = settings.model_copy(update=DARAJA)

    for amount in ("nan", "inf", "0.5"):
        result = giving.initiate_stk_push(configured, {"phone": "0712345678", "amount": amount})
        assert result.success is False
        assert result.errors == {"amount": ["Amount must be at least 1."]}
