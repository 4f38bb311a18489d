import logging
from admissions.core.exceptions import AlreadyQueuedError
from admissions.core.models import WaitlistStatus
from admissions.core.reorder import PositionReorderer

logger = logging.getLogger(__name__)


class AdmissionTransition:
    """Status changes for waitlist entries.

    A terminal status (declined, enrolled) freezes the entry's position and
    leaves the gap in place; the next reorder, append or renormalization
    closes it.
    """

    def __init__(self, store):
        self.store = store
        self.reorderer = PositionReorderer(store)

    def set_status(self, entry_id, status):
        status = WaitlistStatus.parse(status)
        current_entry = self.store.get(entry_id)
        school_id, program = current_entry.partition

        with self.store.transaction(school_id, program, lead_id=current_entry.lead_id):
            entry = self.store.get(entry_id, for_update=True)
            current = WaitlistStatus.parse(entry.status)
            if current == status:
                return entry

            if current.is_terminal and not status.is_terminal:
                # Re-activated entries rejoin at the back of the line
                other = self.store.find_active_by_lead(entry.lead_id)
                if other is not None and other.id != entry.id:
                    raise AlreadyQueuedError(
                        f"Lead {entry.lead_id} already has active waitlist entry {other.id}.")
                position = self.reorderer.next_position(school_id, program)
                self.store.update_fields(entry_id, {'status': status.value})
                entry = self.store.update_position(entry_id, position)
            else:
                entry = self.store.update_fields(entry_id, {'status': status.value})

        logger.info(f"Waitlist entry {entry_id} status {current.value} -> {status.value}")
        return entry

    def enroll(self, entry_id):
        return self.set_status(entry_id, WaitlistStatus.ENROLLED)

    def decline(self, entry_id):
        return self.set_status(entry_id, WaitlistStatus.DECLINED)
