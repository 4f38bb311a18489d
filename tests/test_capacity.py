from unittest.mock import MagicMock
from admissions.core.capacity import CapacityAggregator, ProgramCapacity, aggregate_capacity
from admissions.core.exceptions import UpstreamUnavailableError


def test_aggregate_capacity_sums_per_program():
    classes = [
        {'program': 'toddler', 'capacity': 10, 'current_enrollment': 8},
        {'program': 'toddler', 'capacity': 12, 'current_enrollment': 12},
        {'program': 'infant', 'capacity': 6, 'current_enrollment': 7},
        {'program': None, 'capacity': 4, 'current_enrollment': None},
    ]
    totals = aggregate_capacity(classes)

    assert totals['toddler'] == ProgramCapacity(capacity=22, enrolled=20)
    assert totals['toddler'].available == 2
    assert totals['infant'].available == 0
    assert totals['Unknown'].to_dict() == {'capacity': 4, 'enrolled': 0, 'available': 4}


def test_snapshot_many_combines_schools():
    classes = MagicMock()
    classes.list_classes.side_effect = lambda school_id: {
        's1': [{'program': 'toddler', 'capacity': 10, 'current_enrollment': 9}],
        's2': [{'program': 'toddler', 'capacity': 5, 'current_enrollment': 1},
               {'program': 'infant', 'capacity': 4, 'current_enrollment': 4}],
    }[school_id]

    per_school, combined = CapacityAggregator(classes).snapshot_many(['s1', 's2'])

    assert CapacityAggregator.available(per_school['s1'], 'toddler') == 1
    assert 'infant' not in per_school['s1']
    assert combined['toddler'].to_dict() == {'capacity': 15, 'enrolled': 10, 'available': 5}
    assert CapacityAggregator.available(combined, 'infant') == 0


def test_missing_program_has_no_availability():
    assert CapacityAggregator.available({}, 'preschool') == 0


def test_unavailable_class_lookup_degrades_to_empty():
    classes = MagicMock()
    classes.list_classes.side_effect = UpstreamUnavailableError("class lookup failed")
    aggregator = CapacityAggregator(classes)

    assert aggregator.snapshot('s1') == {}
    assert aggregator.snapshot_many(['s1']) == ({'s1': {}}, {})


def test_class_lookup_reads_classes_table(db_session, seed):
    from admissions.core.lookups import ClassLookup
    seed.classroom(program='toddler', capacity=10, enrolled=4)
    seed.classroom(program='toddler', capacity=8, enrolled=8)

    snapshot = CapacityAggregator(ClassLookup(db_session)).snapshot('s1')
    assert snapshot['toddler'].to_dict() == {'capacity': 18, 'enrolled': 12, 'available': 6}
