from service_center import get_db
from service_center.models.service_request import ServiceRequest
from service_center.models.dp_payment import DpPayment
from tests.test_utils_seed import new_user
from tests.test_lifecycle_helpers import staff_in_new_branch, create_request, save_estimate, headers_for


def _request_with_estimate(client, subtotal=1000000):
    branch, user, headers = staff_in_new_branch()
    rid = create_request(client, headers, branch.id)['id']
    save_estimate(client, rid, headers, [{'item': 'Ganti motherboard', 'harga': subtotal, 'qty': 1}])
    return branch, user, headers, rid


def _submit(client, rid, headers, amount, key=None):
    h = dict(headers)
    if key:
        h['Idempotency-Key'] = key
    return client.post(f'/service-requests/{rid}/dp-payments', json={'amount': amount, 'note': 'Transfer BCA'}, headers=h)


def _assert_totals_consistent(rid):
    sr = get_db().get(ServiceRequest, rid)
    approved = sum(p.amount for p in sr.dp_payments if p.status == DpPayment.STATUS_APPROVED)
    assert sr.dp == approved
    assert sr.total_biaya == sr.subtotal - sr.dp


def test_submit_leaves_totals_until_approved(client, app_instance):
    with app_instance.app_context():
        _, user, headers, rid = _request_with_estimate(client)
        resp = _submit(client, rid, headers, 300000)
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        assert body['status'] == 'pending'
        assert body['created_by'] == user.email
        listing = client.get(f'/service-requests/{rid}/dp-payments', headers=headers).get_json()
        assert listing['dp'] == 0 and listing['total_biaya'] == 1000000
        _assert_totals_consistent(rid)


def test_approve_reject_delete_keep_dp_equal_to_approved_sum(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        p1 = _submit(client, rid, headers, 300000).get_json()['id']
        p2 = _submit(client, rid, headers, 200000).get_json()['id']
        r = client.post(f'/service-requests/{rid}/dp-payments/{p1}/approve', headers=headers)
        assert r.status_code == 200, r.get_json()
        assert r.get_json()['dp'] == 300000 and r.get_json()['total_biaya'] == 700000
        _assert_totals_consistent(rid)
        r = client.post(f'/service-requests/{rid}/dp-payments/{p2}/approve', headers=headers)
        assert r.get_json()['dp'] == 500000
        _assert_totals_consistent(rid)
        # an approved claim can still be rejected (bounced transfer)
        r = client.post(f'/service-requests/{rid}/dp-payments/{p1}/reject', headers=headers)
        assert r.status_code == 200
        assert r.get_json()['dp'] == 200000 and r.get_json()['total_biaya'] == 800000
        _assert_totals_consistent(rid)
        admin = headers_for(new_user(role='admin', prefix='admin'))
        r = client.delete(f'/service-requests/{rid}/dp-payments/{p2}', headers=admin)
        assert r.status_code == 200, r.get_json()
        assert r.get_json()['dp'] == 0 and r.get_json()['total_biaya'] == 1000000
        _assert_totals_consistent(rid)


def test_rejected_is_final(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        pid = _submit(client, rid, headers, 150000).get_json()['id']
        assert client.post(f'/service-requests/{rid}/dp-payments/{pid}/reject', headers=headers).status_code == 200
        r = client.post(f'/service-requests/{rid}/dp-payments/{pid}/approve', headers=headers)
        assert r.status_code == 400
        _assert_totals_consistent(rid)


def test_estimate_change_keeps_approved_dp(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        pid = _submit(client, rid, headers, 400000).get_json()['id']
        client.post(f'/service-requests/{rid}/dp-payments/{pid}/approve', headers=headers)
        body = save_estimate(client, rid, headers, [{'item': 'Ganti motherboard', 'harga': 1200000, 'qty': 1}])
        assert body['dp'] == 400000
        assert body['total_biaya'] == 800000
        _assert_totals_consistent(rid)


def test_amount_limits(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client, subtotal=500000)
        low = _submit(client, rid, headers, 50000)
        assert low.status_code == 400
        assert low.get_json()['error']['errors'] == ['Nominal DP minimal Rp 100.000.']
        high = _submit(client, rid, headers, 600000)
        assert high.status_code == 400
        assert 'melebihi' in high.get_json()['error']['errors'][0]
        assert get_db().get(ServiceRequest, rid).dp_payments == []


def test_claim_needs_estimate(client, app_instance):
    with app_instance.app_context():
        branch, _, headers = staff_in_new_branch()
        rid = create_request(client, headers, branch.id)['id']
        resp = _submit(client, rid, headers, 200000)
        assert resp.status_code == 400
        assert 'Estimasi biaya belum tersedia.' in resp.get_json()['error']['errors']


def test_idempotency_key_replays_same_claim(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        first = _submit(client, rid, headers, 250000, key='form-123')
        again = _submit(client, rid, headers, 250000, key='form-123')
        assert first.status_code == 201 and again.status_code == 200
        assert first.get_json()['id'] == again.get_json()['id']
        assert len(get_db().get(ServiceRequest, rid).dp_payments) == 1


def test_staff_cannot_delete_claim(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        pid = _submit(client, rid, headers, 150000).get_json()['id']
        r = client.delete(f'/service-requests/{rid}/dp-payments/{pid}', headers=headers)
        assert r.status_code == 403


def test_unknown_payment_404(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        r = client.post(f'/service-requests/{rid}/dp-payments/424242/approve', headers=headers)
        assert r.status_code == 404


def test_idempotent_retry_with_stale_if_match_replays(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        etag = client.get(f'/service-requests/{rid}', headers=headers).headers['ETag']
        h = dict(headers, **{'If-Match': etag})
        first = _submit(client, rid, h, 250000, key='form-retry')
        assert first.status_code == 201, first.get_json()
        again = _submit(client, rid, h, 250000, key='form-retry')
        assert again.status_code == 200, again.get_json()
        assert again.get_json()['id'] == first.get_json()['id']
        # a fresh claim with the same stale tag is still refused
        other = _submit(client, rid, h, 250000, key='form-other')
        assert other.status_code == 412
        assert len(get_db().get(ServiceRequest, rid).dp_payments) == 1


def test_dp_summary_counts_only_approved_claims(client, app_instance):
    with app_instance.app_context():
        _, _, headers, rid = _request_with_estimate(client)
        p1 = _submit(client, rid, headers, 300000).get_json()['id']
        _submit(client, rid, headers, 200000)
        client.post(f'/service-requests/{rid}/dp-payments/{p1}/approve', headers=headers)
        summary = client.get(f'/service-requests/{rid}', headers=headers).get_json()['dp_summary']
        assert summary == {'approved_amount': 300000, 'pending_count': 1, 'pending_amount': 200000}
