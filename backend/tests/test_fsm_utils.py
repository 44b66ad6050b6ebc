import pytest
from werkzeug.exceptions import BadRequest
from service_center.utils.fsm import TransitionValidator
from service_center.utils.validation import validate_status, parse_amount, string_list, normalize_phone_number, ValidationFailed
from service_center.constants.statuses import build_transition_graph, normalize_status


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'pending': {'approved', 'rejected'}, 'approved': {'rejected'}, 'rejected': set()})
    assert fsm.can_transition('pending', 'approved')
    assert fsm.assert_can_transition('approved', 'rejected') is True


def test_transition_validator_blocks_invalid(app_instance):
    fsm = TransitionValidator({'pending': {'approved'}, 'approved': set()}, field_name='payment status')
    with app_instance.test_request_context():
        with pytest.raises(BadRequest) as exc:
            fsm.assert_can_transition('approved', 'pending')
    assert 'payment status' in exc.value.description


def test_normalizer_applies_to_legacy_states():
    fsm = TransitionValidator(build_transition_graph(), normalizer=normalize_status)
    assert fsm.can_transition('process', 'testing')
    assert fsm.can_transition('proses_pengerjaan', 'ready')
    assert not fsm.can_transition('done', 'testing')
    assert fsm.allowed_targets('cancel') == set()


def test_validate_status_helper(app_instance):
    with app_instance.test_request_context():
        assert validate_status('a', ['a', 'b']) == 'a'
        with pytest.raises(BadRequest):
            validate_status('z', ['a', 'b'])


def test_parse_amount_keeps_digits_only():
    assert parse_amount('Rp 1.250.000') == 1250000
    assert parse_amount(150000) == 150000
    assert parse_amount(-5) == 0
    assert parse_amount('') == 0
    assert parse_amount(None) == 0
    assert parse_amount(True) == 0


def test_string_list_dedupes_and_trims():
    assert string_list([' Charger ', 'Charger', '', 3, 'Tas']) == ['Charger', 'Tas']
    assert string_list('Laptop') == ['Laptop']
    assert string_list({'a': 1}) == []


def test_phone_normalization():
    assert normalize_phone_number('+62 812-3456-7890') == '6281234567890'
    assert normalize_phone_number('0812 3456 7890') == '6281234567890'
    assert normalize_phone_number('6281234567890') == '6281234567890'


def test_validation_failed_carries_all_messages():
    err = ValidationFailed(['Nama wajib diisi.', 'Email wajib diisi.'])
    assert err.code == 400
    assert err.errors == ['Nama wajib diisi.', 'Email wajib diisi.']
    assert err.description == 'Nama wajib diisi.'
