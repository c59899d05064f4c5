import logging
import uuid
from collections import defaultdict
from typing import Dict, List, Optional

from ..core.config import settings
from ..schemas.match import ConsultationRecord
from ..schemas.patient import PatientProfile
from ..schemas.trial import TrialMatch

logger = logging.getLogger(__name__)

# Best final score needed for each summary bucket
HIGH_MATCH_SCORE = 75
MEDIUM_MATCH_SCORE = 40


def summarize_profile(profile: PatientProfile) -> str:
    """One-line display summary, e.g. "52yo female | HER2+ breast cancer"."""
    return f"{profile.age}yo {profile.gender.value} | {', '.join(profile.conditions)}"


def summarize_match_type(matches: List[TrialMatch]) -> str:
    best = max((m.result.match_score for m in matches), default=0)
    if best >= HIGH_MATCH_SCORE:
        return "High"
    if best >= MEDIUM_MATCH_SCORE:
        return "Med"
    return "None"


class ConsultationHistory:
    """
    Recent consultations per session, newest first.
    Stores display summaries only; nothing is written for a failed or cancelled request.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = settings.HISTORY_MAX_ENTRIES if max_entries is None else max_entries
        # In-memory storage (use Redis in production)
        self._records: Dict[str, List[ConsultationRecord]] = defaultdict(list)

    def add(
        self,
        session_id: str,
        profile: PatientProfile,
        matches: List[TrialMatch],
        original_notes: Optional[str] = None
    ) -> ConsultationRecord:
        record = ConsultationRecord(
            id=str(uuid.uuid4()),
            diagnosis=profile.conditions[0] if profile.conditions else "Unknown",
            match_type=summarize_match_type(matches),
            patient_summary=summarize_profile(profile),
            original_notes=original_notes,
        )
        records = self._records[session_id]
        records.insert(0, record)
        del records[self.max_entries:]
        logger.debug("Recorded consultation %s for session %s", record.id, session_id)
        return record

    def get(self, session_id: str) -> List[ConsultationRecord]:
        return list(self._records.get(session_id, []))

    def clear(self, session_id: str) -> None:
        self._records.pop(session_id, None)
