import logging
from dataclasses import dataclass
from admissions.core.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

UNKNOWN_PROGRAM = 'Unknown'


@dataclass
class ProgramCapacity:
    capacity: int = 0
    enrolled: int = 0

    @property
    def available(self):
        return max(0, self.capacity - self.enrolled)

    def to_dict(self):
        return {'capacity': self.capacity, 'enrolled': self.enrolled, 'available': self.available}


def _field(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def aggregate_capacity(classes, into=None):
    """Sums capacity and current enrollment per program."""
    totals = into if into is not None else {}
    for record in classes:
        program = _field(record, 'program') or UNKNOWN_PROGRAM
        bucket = totals.setdefault(program, ProgramCapacity())
        bucket.capacity += _field(record, 'capacity') or 0
        bucket.enrolled += _field(record, 'current_enrollment') or 0
    return totals


class CapacityAggregator:
    """Per-program class capacity for a school.

    Capacity is display data: if the class lookup is down the snapshot is
    empty, which reads as "no classes" rather than failing the caller.
    """

    def __init__(self, classes):
        self.classes = classes

    def classes_for(self, school_id):
        try:
            return list(self.classes.list_classes(school_id))
        except UpstreamUnavailableError as e:
            logger.warning(f"Class capacity unavailable for school {school_id}: {e}")
            return []

    def snapshot(self, school_id):
        return aggregate_capacity(self.classes_for(school_id))

    def snapshot_many(self, school_ids):
        """Returns ({school_id: snapshot}, combined snapshot across schools)."""
        per_school, combined = {}, {}
        for school_id in school_ids:
            classes = self.classes_for(school_id)
            per_school[school_id] = aggregate_capacity(classes)
            aggregate_capacity(classes, into=combined)
        return per_school, combined

    @staticmethod
    def available(snapshot, program):
        bucket = snapshot.get(program)
        return bucket.available if bucket else 0
