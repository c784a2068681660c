"""
Giving: the contributions ledger and the mobile-money push.

The M-Pesa STK push is simulated. It validates the request and checks the
Daraja credentials are configured, then logs the push instead of calling
Safaricom. Contributions are never written here.
"""

import logging
from typing import Any, Dict, List, Mapping

from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from database import CONTRIBUTIONS, USERS, Database, parse_object_id
from schemas import ActionResult, Contribution, StkPushForm, to_view, validate
from settings import Settings

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Member User"
UNKNOWN_EMAIL = "unknown"


def fetch_contributions(db: Database) -> List[Contribution]:
    """All contributions, newest first, labelled with the giver's name and email."""
    docs = db.get_documents(CONTRIBUTIONS, sort=[("date", DESCENDING)])
    user_ids = {oid for oid in (parse_object_id(doc.get("user_id")) for doc in docs) if oid is not None}
    givers: Dict[str, Dict[str, Any]] = {}
    if user_ids:
        for user in db[USERS].find({"_id": {"$in": list(user_ids)}}, {"name": 1, "email": 1}):
            givers[str(user["_id"])] = user

    contributions = []
    for doc in docs:
        giver = givers.get(doc.get("user_id") or "", {})
        contribution = to_view(
            Contribution,
            doc,
            user_name=giver.get("name") or UNKNOWN_NAME,
            user_email=giver.get("email") or UNKNOWN_EMAIL,
        )
        if contribution:
            contributions.append(contribution)
    return contributions


def list_contributions(db: Database) -> List[Contribution]:
    try:
        return fetch_contributions(db)
    except PyMongoError:
        logger.exception("Failed to fetch contributions")
        return []


def initiate_stk_push(settings: Settings, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(StkPushForm, raw)
    if errors:
        return ActionResult(success=False, message="Invalid input provided.", errors=errors)

    if not settings.mpesa_configured:
        logger.error("M-Pesa credentials are not configured")
        return ActionResult(
            success=False,
            message="The payment service is not configured correctly. Please contact support.",
        )

    # TODO: call the Daraja OAuth and stkpush endpoints, and record the contribution from the callback.
    logger.info(
        "Simulating STK push to %s for amount %s (shortcode %s)",
        form.phone,
        form.amount,
        settings.mpesa_business_shortcode,
    )
    return ActionResult(success=True, message="Check your phone to complete the payment.")
