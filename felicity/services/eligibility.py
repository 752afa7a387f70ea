from felicity.models.events import EventEligibility
from felicity.models.users import ParticipantType


def _value(item) -> str | None:
    if item is None:
        return None
    return getattr(item, "value", item)


def is_eligible(event_eligibility, participant_category) -> bool:
    """Decide whether a participant category may join an event audience.

    Unknown eligibility values or categories are refused.
    """
    eligibility = _value(event_eligibility)
    category = _value(participant_category)

    if eligibility == EventEligibility.ALL.value:
        return True
    if eligibility == EventEligibility.IIIT_ONLY.value:
        return category == ParticipantType.IIIT.value
    if eligibility == EventEligibility.NON_IIIT_ONLY.value:
        return category == ParticipantType.NON_IIIT.value
    return False
