"""
Extract dossier fields from a pasted client email

Pattern matching only: fast and deterministic. Every field is optional.
"""

import re

PHONE_RE = re.compile(
    r"(?:0[1-9][\s.\-]?(?:\d{2}[\s.\-]?){4}|\+33[\s.\-]?\d[\s.\-]?(?:\d{2}[\s.\-]?){4})"
)
PHONE_SEPARATORS_RE = re.compile(r"[\s.\-]")
EMAIL_RE = re.compile(r"[\w.+-]+@[\w.-]+\.[a-zA-Z]{2,}")

NAME_PATTERNS = [
    re.compile(r"(?:M\.|Mme|Mr|Monsieur|Madame)\s+([A-ZÀ-Ü][a-zà-ü]+)\s+([A-ZÀ-Ü][A-ZÀ-Üa-zà-ü]+)"),
    re.compile(
        r"(?:Nom|Client|Demandeur)\s*:\s*([A-ZÀ-Ü][a-zà-ü]+)\s+([A-ZÀ-Ü][A-ZÀ-Üa-zà-ü]+)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:Prénom|Prenom)\s*:\s*([A-ZÀ-Ü][a-zà-ü]+)[\s\S]*?(?:Nom)\s*:\s*([A-ZÀ-Ü][A-ZÀ-Üa-zà-ü]+)",
        re.IGNORECASE,
    ),
]

ADDRESS_RE = re.compile(
    r"\d{1,4}[\s,]+(?:rue|avenue|boulevard|av\.|bd|impasse|allée|chemin|place|cours|passage)"
    r"[\s\S]{5,80}?\d{5}\s+[A-ZÀ-Üa-zà-ü\s-]+",
    re.IGNORECASE,
)

# First match wins, in this order
CATEGORY_KEYWORDS = {
    "wc": ["wc", "toilette", "toilettes", "chasse d'eau"],
    "fuite": ["fuite", "fuit", "coule", "dégât des eaux", "degat des eaux", "inondation"],
    "chauffe_eau": ["chauffe-eau", "chauffe eau", "ballon", "cumulus", "eau chaude"],
    "evier": ["évier", "evier", "robinet cuisine", "siphon"],
    "douche": ["douche", "baignoire", "bac à douche", "colonne de douche"],
}

URGENT_TODAY_RE = re.compile(r"urgent|immédiat|aujourd.?hui|tout de suite|en urgence", re.IGNORECASE)
URGENT_48H_RE = re.compile(r"48\s?h|sous\s+2\s+jours|rapidement", re.IGNORECASE)

MAX_DESCRIPTION_LENGTH = 5000


def parse_email_content(raw: str) -> dict:
    """Return the dossier fields found in raw email text (missing keys = not found)"""
    result = {}
    text = (raw or "").strip()

    phone_match = PHONE_RE.search(text)
    if phone_match:
        result["client_phone"] = PHONE_SEPARATORS_RE.sub("", phone_match.group(0))

    email_match = EMAIL_RE.search(text)
    if email_match:
        result["client_email"] = email_match.group(0)

    for pattern in NAME_PATTERNS:
        name_match = pattern.search(text)
        if name_match:
            result["client_first_name"] = name_match.group(1)
            result["client_last_name"] = name_match.group(2)
            break

    address_match = ADDRESS_RE.search(text)
    if address_match:
        result["address"] = address_match.group(0).strip()

    lower_text = text.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lower_text for keyword in keywords):
            result["category"] = category
            break

    if URGENT_TODAY_RE.search(text):
        result["urgency"] = "aujourdhui"
    elif URGENT_48H_RE.search(text):
        result["urgency"] = "48h"

    if len(text) > 10:
        result["description"] = text[:MAX_DESCRIPTION_LENGTH]

    return result
