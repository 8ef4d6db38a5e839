"""
Static routing vocabulary for the query router.

An unmatched query falls back to unscoped retrieval.
All patterns run against lowercased text. Cue patterns match whole words;
activities match at a word start, so suffixed forms ("restaurants") count.
"""

from typing import List, Tuple

from lifelog_rag.models import DataType


COUNT_PATTERNS: List[str] = [
    r"\bhow many\b",
    r"\bnumber of\b",
    r"\bcount\b",
    r"\btimes\b",
    r"\bhow often\b",
]

AVERAGE_PATTERNS: List[str] = [
    r"\baverage\b",
    r"\bmean\b",
    r"\btypical(ly)?\b",
]

COMPARISON_PATTERNS: List[str] = [
    r"\bmore than\b",
    r"\bless than\b",
    r"\bcompared?\b",
    r"\bcomparing\b",
    r"\bversus\b",
    r"\bvs\.?(?=\s|$)",
]

# Checked in this order; the first category with a matching cue wins.
# A question mentioning both a photo and a walk is routed to photos.
DATA_TYPE_CUES: List[Tuple[DataType, List[str]]] = [
    (DataType.PHOTO, [
        r"\bphotos?\b", r"\bpictures?\b", r"\bimages?\b", r"\btook\b",
        r"\bcaptured\b", r"\bshow me\b", r"\bvisual\b",
    ]),
    (DataType.HEALTH, [
        r"\bsteps?\b", r"\bwalk(s|ed|ing)?\b", r"\bheart\b", r"\bsleep\b", r"\bslept\b",
        r"\bworkouts?\b", r"\bexercis(e|ed|ing)\b", r"\bfitness\b", r"\bhealth\b", r"\btraining\b",
    ]),
    (DataType.LOCATION, [
        r"\blocations?\b", r"\bplaces?\b", r"\bwhere\b", r"\bvisit(s|ed)?\b", r"\bbeen to\b",
    ]),
    (DataType.VOICE, [
        r"\bvoice\b", r"\bnotes?\b", r"\bsaid\b", r"\brecorded\b", r"\baudio\b",
    ]),
]

ACTIVITY_VOCABULARY: List[str] = [
    "badminton",
    "gym",
    "work",
    "restaurant",
    "running",
    "cycling",
    "swimming",
    "yoga",
]
