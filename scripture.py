"""
Bible passage lookup, proxied to bible-api.com.
"""

import logging
import re
from typing import List

import requests
from pydantic import BaseModel, ValidationError

from settings import Settings

logger = logging.getLogger(__name__)

TRANSLATIONS = {"kjv": "King James Version", "ksw09": "Swahili Union Version"}


class ScriptureLookupError(Exception):
    pass


class InvalidPassageRequest(ValueError):
    """The reference or translation was rejected before any call was made."""


class Verse(BaseModel):
    book_name: str
    chapter: int
    verse: int
    text: str


class Passage(BaseModel):
    reference: str
    translation_id: str
    translation_name: str
    text: str
    verses: List[Verse] = []


def normalize_ref(ref: str) -> str:
    r = (ref or "").strip()
    r = r.replace("–", "-").replace("—", "-")
    return re.sub(r"\s+", " ", r)


def lookup_passage(settings: Settings, book: str, chapter: int, translation: str = "kjv") -> Passage:
    if translation not in TRANSLATIONS:
        raise InvalidPassageRequest(f"Unknown translation '{translation}'.")
    if not (book or "").strip():
        raise InvalidPassageRequest("A book name is required.")
    if chapter < 1:
        raise InvalidPassageRequest("Chapter must be 1 or greater.")
    ref = normalize_ref(f"{book} {chapter}")

    url = f"{settings.scripture_api_base}/{requests.utils.quote(ref)}"
    try:
        r = requests.get(url, params={"translation": translation}, timeout=8)
    except requests.RequestException as e:
        logger.warning("Scripture lookup for %s failed: %s", ref, e)
        raise ScriptureLookupError("An error occurred while fetching the scripture.") from e

    try:
        data = r.json()
    except ValueError:
        data = None

    if not r.ok or not isinstance(data, dict):
        detail = data.get("error") if isinstance(data, dict) else None
        logger.info("Scripture lookup for %s returned HTTP %s", ref, r.status_code)
        raise ScriptureLookupError(detail or "Scripture not found. Please check the reference and try again.")

    try:
        return Passage(
            reference=data.get("reference") or ref,
            translation_id=data.get("translation_id") or translation,
            translation_name=data.get("translation_name") or TRANSLATIONS[translation],
            text=re.sub(r"\s+", " ", data.get("text") or "").strip(),
            verses=data.get("verses") or [],
        )
    except ValidationError as e:
        logger.warning("Unexpected scripture payload for %s: %s", ref, e)
        raise ScriptureLookupError("An error occurred while fetching the scripture.") from e
