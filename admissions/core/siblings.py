import logging
from admissions.core.exceptions import UpstreamUnavailableError
from admissions.core.utils import normalize_email

logger = logging.getLogger(__name__)


class SiblingResolver:

    def __init__(self, enrollments):
        self.enrollments = enrollments

    def resolve(self, school_id, parent_emails):
        """Maps each (lower-cased) parent email to the lead ids holding an
        active enrollment at `school_id` under that email."""
        emails = sorted({normalize_email(e) for e in parent_emails if normalize_email(e)})
        if not emails:
            return {}
        try:
            pairs = self.enrollments.find_active_enrollments_by_parent_emails(school_id, emails)
        except UpstreamUnavailableError as e:
            logger.warning(f"Sibling lookup unavailable for school {school_id}: {e}")
            return {}

        siblings = {}
        for parent_email, lead_id in pairs:
            email = normalize_email(parent_email)
            if email and lead_id:
                siblings.setdefault(email, set()).add(lead_id)
        return siblings

    @staticmethod
    def has_siblings(sibling_map, parent_email, lead_id):
        lead_ids = sibling_map.get(normalize_email(parent_email), set())
        return bool(lead_ids) and lead_id not in lead_ids
