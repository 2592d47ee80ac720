from datetime import date, timedelta

from conftest import application_payload, lease_payload


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_requires_a_token(client):
    assert client.get('/api/leases').status_code == 401


def test_full_lifecycle_over_http(client, auth_header, tenant, landlord, property):
    as_tenant, as_landlord = auth_header(tenant), auth_header(landlord)
    move_in = (date.today() + timedelta(days=60)).isoformat()

    response = client.post('/api/applications', headers=as_tenant, json=application_payload(
        property.id, desired_move_in_date=move_in, submit_now=True
    ))
    assert response.status_code == 201
    application = response.get_json()['application']
    assert application['status'] == 'Submitted'

    response = client.post(f"/api/applications/{application['id']}/review", headers=as_landlord)
    assert response.get_json()['application']['status'] == 'UnderReview'

    response = client.post(f"/api/applications/{application['id']}/decision", headers=as_landlord,
                           json={'status': 'Approved', 'comments': 'Welcome aboard'})
    assert response.status_code == 200
    assert response.get_json()['application']['reviewed_at'] is not None

    response = client.post('/api/leases', headers=as_landlord, json={
        'application_id': application['id'],
        'monthly_rent': '45000',
        'security_deposit': '90000',
        'payment_due_day': 5,
    })
    assert response.status_code == 201
    lease = response.get_json()['lease']
    assert lease['status'] == 'Draft'
    assert lease['start_date'] == move_in

    response = client.post(f"/api/leases/{lease['id']}/sign", headers=as_tenant,
                           json={'signer_role': 'tenant', 'signature': 'https://docs.example.com/t.png'})
    assert response.get_json()['lease']['status'] == 'PendingLandlordSignature'

    response = client.post(f"/api/leases/{lease['id']}/sign", headers=as_landlord,
                           json={'signer_role': 'landlord', 'signature': 'https://docs.example.com/l.png'})
    assert response.get_json()['lease']['status'] == 'Active'

    response = client.get(f"/api/leases/{lease['id']}/payments", headers=as_tenant)
    payments = response.get_json()['payments']
    assert len(payments) == 13
    assert payments[0]['payment_type'] == 'Deposit'
    assert payments[0]['amount'] == '90000.00'

    rent = payments[1]
    response = client.post(f"/api/payments/{rent['id']}/record", headers=as_tenant,
                           json={'amount': '45000', 'method': 'mpesa'})
    assert response.status_code == 403

    response = client.post(f"/api/payments/{rent['id']}/record", headers=as_landlord,
                           json={'amount': '45000', 'method': 'mpesa', 'reference': 'QHX7Y2'})
    assert response.status_code == 200
    assert response.get_json()['payment']['status'] == 'Paid'

    response = client.get(f"/api/payments/{rent['id']}", headers=as_tenant)
    payment = response.get_json()['payment']
    assert payment['amount_paid'] == '45000.00'
    assert payment['paid_history'][0]['reference'] == 'QHX7Y2'


def test_validation_errors_name_the_field(client, auth_header, landlord, tenant, property):
    response = client.post('/api/leases', headers=auth_header(landlord),
                           json=lease_payload(property.id, tenant.id, end_date='2024-01-01'))
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'validation_error'
    assert body['field'] == 'end_date'


def test_conflicting_active_lease_is_409(client, auth_header, active_lease, landlord, other_tenant, property):
    response = client.post('/api/leases', headers=auth_header(landlord),
                           json=lease_payload(property.id, other_tenant.id))
    assert response.status_code == 409
    body = response.get_json()
    assert body['error'] == 'conflicting_active_lease'
    assert body['active_lease_id'] == active_lease.id


def test_invalid_transition_is_409(client, auth_header, draft_lease, landlord):
    response = client.post(f'/api/leases/{draft_lease.id}/terminate', headers=auth_header(landlord),
                           json={'reason': 'Other', 'termination_date': '2024-02-01'})
    assert response.status_code == 409
    assert response.get_json()['error'] == 'invalid_transition'
    assert response.get_json()['current_status'] == 'Draft'


def test_unknown_lease_is_404(client, auth_header, landlord):
    response = client.get('/api/leases/4040', headers=auth_header(landlord))
    assert response.status_code == 404
    assert response.get_json()['error'] == 'not_found'


def test_role_guards(client, auth_header, draft_lease, tenant, other_tenant, property):
    response = client.post('/api/leases', headers=auth_header(tenant),
                           json=lease_payload(property.id, tenant.id))
    assert response.status_code == 403

    response = client.get(f'/api/leases/{draft_lease.id}', headers=auth_header(other_tenant))
    assert response.status_code == 403
    assert response.get_json()['error'] == 'not_authorized'


def test_lease_listing_is_scoped_and_filtered(client, auth_header, active_lease, tenant, other_tenant, admin):
    body = client.get('/api/leases?status=Active', headers=auth_header(tenant)).get_json()
    assert [lease['id'] for lease in body['leases']] == [active_lease.id]
    assert body['total'] == 1

    body = client.get('/api/leases', headers=auth_header(other_tenant)).get_json()
    assert body['leases'] == []

    body = client.get('/api/leases?status=Terminated', headers=auth_header(admin)).get_json()
    assert body['total'] == 0

    response = client.get('/api/leases?sort_by=colour', headers=auth_header(admin))
    assert response.status_code == 400


def test_application_listing_filters(client, auth_header, submitted_application, landlord, other_landlord):
    body = client.get('/api/applications?status=Submitted', headers=auth_header(landlord)).get_json()
    assert [a['id'] for a in body['applications']] == [submitted_application.id]

    body = client.get('/api/applications', headers=auth_header(other_landlord)).get_json()
    assert body['applications'] == []

    response = client.get('/api/applications?status=Pending', headers=auth_header(landlord))
    assert response.status_code == 400


def test_payment_listing_filters(client, auth_header, active_lease, tenant):
    body = client.get('/api/payments?payment_type=Rent&sort_by=duedate&sort_order=asc',
                      headers=auth_header(tenant)).get_json()
    assert [p['due_date'] for p in body['payments']] == ['2024-02-01', '2024-03-01', '2024-04-01']

    body = client.get('/api/payments?due_after=2024-03-01', headers=auth_header(tenant)).get_json()
    assert body['total'] == 2


def test_add_and_waive_over_http(client, auth_header, active_lease, landlord):
    headers = auth_header(landlord)
    response = client.post('/api/payments', headers=headers, json={
        'lease_id': active_lease.id, 'payment_type': 'Other', 'amount': '750', 'due_date': '2024-02-20',
        'description': 'Service charge',
    })
    assert response.status_code == 201
    entry = response.get_json()['payment']

    response = client.post(f"/api/payments/{entry['id']}/waive", headers=headers, json={'reason': 'Goodwill'})
    assert response.get_json()['payment']['status'] == 'Waived'

    response = client.post(f"/api/payments/{entry['id']}/refund", headers=headers, json={'amount': '10'})
    assert response.status_code == 400


def test_renew_over_http(client, auth_header, active_lease, landlord):
    response = client.post(f'/api/leases/{active_lease.id}/renew', headers=auth_header(landlord),
                           json={'new_end_date': '2025-04-15'})
    assert response.status_code == 201
    assert response.get_json()['lease']['previous_lease_id'] == active_lease.id


def test_audit_log_access(client, auth_header, active_lease, admin, tenant):
    response = client.get('/api/audit?action=lease-activated', headers=auth_header(admin))
    assert response.status_code == 200
    logs = response.get_json()['logs']
    assert [log['resource_id'] for log in logs] == [active_lease.id]
    assert 'lease-signed' in response.get_json()['distinct_actions']

    assert client.get('/api/audit', headers=auth_header(tenant)).status_code == 403

    mine = client.get('/api/audit/my', headers=auth_header(tenant)).get_json()['logs']
    assert {log['action'] for log in mine} == {'lease-signed'}


def test_update_draft_lease_over_http(client, auth_header, draft_lease, landlord, tenant):
    response = client.put(f'/api/leases/{draft_lease.id}', headers=auth_header(landlord),
                          json={'monthly_rent': '5200', 'late_fee_amount': '500', 'late_fee_grace_days': 3})
    assert response.status_code == 200
    lease = response.get_json()['lease']
    assert lease['monthly_rent'] == '5200.00'
    assert lease['late_fee_amount'] == '500.00'
    assert lease['late_fee_grace_days'] == 3

    response = client.put(f'/api/leases/{draft_lease.id}', headers=auth_header(tenant),
                          json={'monthly_rent': '1'})
    assert response.status_code == 403


def test_editing_an_active_lease_is_409(client, auth_header, active_lease, landlord):
    response = client.put(f'/api/leases/{active_lease.id}', headers=auth_header(landlord),
                          json={'monthly_rent': '9000'})
    assert response.status_code == 409
    assert response.get_json()['current_status'] == 'Active'


def test_update_payment_over_http(client, auth_header, active_lease, landlord):
    headers = auth_header(landlord)
    payments = client.get(f'/api/leases/{active_lease.id}/payments', headers=headers).get_json()['payments']
    rent = next(p for p in payments if p['due_date'] == '2024-03-01')

    response = client.put(f"/api/payments/{rent['id']}", headers=headers,
                          json={'amount': '4800', 'description': 'Rent for March (adjusted)'})
    assert response.status_code == 200
    payment = response.get_json()['payment']
    assert payment['amount'] == '4800.00'
    assert payment['description'] == 'Rent for March (adjusted)'

    client.post(f"/api/payments/{rent['id']}/record", headers=headers,
                json={'amount': '4800', 'method': 'Bank & Cash', 'reference': 'INV<7>&8'})
    response = client.put(f"/api/payments/{rent['id']}", headers=headers, json={'amount': '5000'})
    assert response.status_code == 409
    assert response.get_json()['error'] == 'invalid_state'

    history = client.get(f"/api/payments/{rent['id']}", headers=headers).get_json()['payment']['paid_history']
    assert history[0]['reference'] == 'INV<7>&8'
    assert history[0]['method'] == 'Bank & Cash'
