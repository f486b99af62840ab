"""
HTTP layer tests: identity header handling, role gating and the JSON shape
of the main borrow/return flow.
"""

from tracker.services import user_service


class TestActorResolution:

    def test_missing_header_is_401(self, client, db_session):
        response = client.get('/api/items')
        assert response.status_code == 401

    def test_malformed_header_is_401(self, client, db_session):
        response = client.get('/api/items', headers={'X-User-Id': 'abc'})
        assert response.status_code == 401

    def test_unknown_user_is_401(self, client, db_session):
        response = client.get('/api/items', headers={'X-User-Id': '9999'})
        assert response.status_code == 401

    def test_deactivated_user_is_403(self, actor_headers, make_user, client, db_session):
        ghost = make_user("ghost", status="deactive")
        response = client.get('/api/items', headers=actor_headers(ghost))
        assert response.status_code == 403

    def test_actor_is_resolved_through_user_directory(self, actor_headers, client, alice, monkeypatch):
        looked_up = []
        original_get_user = user_service.get_user

        def recording_get_user(user_id):
            looked_up.append(user_id)
            return original_get_user(user_id)

        monkeypatch.setattr(user_service, 'get_user', recording_get_user)

        response = client.get('/api/items', headers=actor_headers(alice))
        assert response.status_code == 200
        assert looked_up == [alice.id]


class TestRoleGating:

    def test_employee_cannot_create_item(self, actor_headers, client, alice):
        response = client.post('/api/items', headers=actor_headers(alice),
                               json={'material': 'Saw', 'serial_number': 'SAW-9'})
        assert response.status_code == 403
        assert response.get_json()['required_operation'] == 'create_item'

    def test_manager_can_read_history_but_not_approve(self, actor_headers, client, item, manager, alice):
        submitted = client.post(f'/api/items/{item.id}/requests', headers=actor_headers(alice), json={'type': 'use'})
        request_id = submitted.get_json()['id']

        assert client.get(f'/api/items/{item.id}/history', headers=actor_headers(manager)).status_code == 200
        response = client.post(f'/api/requests/{request_id}/approve', headers=actor_headers(manager))
        assert response.status_code == 403

    def test_employee_cannot_see_dashboard(self, actor_headers, client, alice):
        assert client.get('/api/requests/grouped', headers=actor_headers(alice)).status_code == 403
        assert client.get('/api/history/recent', headers=actor_headers(alice)).status_code == 403


class TestItemsApi:

    def test_create_and_fetch(self, actor_headers, client, admin):
        response = client.post('/api/items', headers=actor_headers(admin),
                               json={'material': ' Ladder ', 'serial_number': 'LAD-1'})
        assert response.status_code == 201
        body = response.get_json()
        assert body['material'] == 'Ladder'
        assert body['status'] == 'available'
        assert body['changed_by_user'] == {'id': admin.id, 'username': 'admin'}

        fetched = client.get(f"/api/items/{body['id']}", headers=actor_headers(admin))
        assert fetched.status_code == 200

    def test_create_missing_serial_is_400(self, actor_headers, client, admin):
        response = client.post('/api/items', headers=actor_headers(admin), json={'material': 'Ladder'})
        assert response.status_code == 400
        assert response.get_json()['kind'] == 'ValidationError'

    def test_create_duplicate_serial_is_409(self, actor_headers, client, item, admin):
        response = client.post('/api/items', headers=actor_headers(admin),
                               json={'material': 'Drill', 'serial_number': 'SN-0001'})
        assert response.status_code == 409

    def test_unknown_item_is_404(self, actor_headers, client, admin):
        assert client.get('/api/items/4242', headers=actor_headers(admin)).status_code == 404

    def test_search(self, actor_headers, client, item, alice):
        response = client.get('/api/items/search?q=cordless', headers=actor_headers(alice))
        assert [i['id'] for i in response.get_json()['items']] == [item.id]

    def test_archive_and_restore(self, actor_headers, client, item, admin):
        response = client.post(f'/api/items/{item.id}/archive', headers=actor_headers(admin), json={'reason': 'Broken'})
        assert response.status_code == 200
        assert response.get_json()['status'] == 'archived'

        listed = client.get('/api/items', headers=actor_headers(admin)).get_json()['items']
        assert listed == []

        response = client.post(f'/api/items/{item.id}/restore', headers=actor_headers(admin), json={})
        assert response.status_code == 200
        assert response.get_json()['status'] == 'available'

    def test_archive_without_reason_is_400(self, actor_headers, client, item, admin):
        response = client.post(f'/api/items/{item.id}/archive', headers=actor_headers(admin), json={})
        assert response.status_code == 400


class TestBorrowFlow:

    def test_competing_borrow_requests(self, actor_headers, client, item, admin, alice, bob):
        first = client.post(f'/api/items/{item.id}/requests', headers=actor_headers(alice), json={'type': 'use'})
        second = client.post(f'/api/items/{item.id}/requests', headers=actor_headers(bob), json={'type': 'use'})
        assert first.status_code == 201
        assert second.status_code == 201
        assert first.get_json()['requested_by_user']['username'] == 'alice'

        duplicate = client.post(f'/api/items/{item.id}/requests', headers=actor_headers(alice), json={'type': 'use'})
        assert duplicate.status_code == 409

        stats = client.get('/api/requests/stats', headers=actor_headers(admin)).get_json()
        assert stats['borrow_requests'] == 2

        approved = client.post(f"/api/requests/{first.get_json()['id']}/approve", headers=actor_headers(admin))
        assert approved.status_code == 200
        body = approved.get_json()
        assert body['status'] == 'used'
        assert body['last_used_by_user']['username'] == 'alice'

        stale = client.post(f"/api/requests/{second.get_json()['id']}/approve", headers=actor_headers(admin))
        assert stale.status_code == 409
        assert stale.get_json()['kind'] == 'RequestNoLongerPendingError'

        queue = client.get(f'/api/items/{item.id}/requests', headers=actor_headers(alice)).get_json()
        assert queue['requests'] == []

        history = client.get(f'/api/items/{item.id}/history', headers=actor_headers(admin)).get_json()['history']
        assert [h['action'] for h in history[:2]] in (['rejected', 'borrowed'], ['borrowed', 'rejected'])

    def test_return_by_other_user_is_403(self, actor_headers, client, item, admin, alice, bob):
        submitted = client.post(f'/api/items/{item.id}/requests', headers=actor_headers(alice), json={'type': 'use'})
        client.post(f"/api/requests/{submitted.get_json()['id']}/approve", headers=actor_headers(admin))

        response = client.post(f'/api/items/{item.id}/requests', headers=actor_headers(bob), json={'type': 'return'})
        assert response.status_code == 403
        assert response.get_json()['kind'] == 'NotAuthorizedForReturnError'

    def test_reject_then_reject_again(self, actor_headers, client, item, admin, alice):
        submitted = client.post(f'/api/items/{item.id}/requests', headers=actor_headers(alice), json={'type': 'use'})
        request_id = submitted.get_json()['id']

        response = client.post(f'/api/requests/{request_id}/reject', headers=actor_headers(admin))
        assert response.status_code == 200
        assert response.get_json() == {'status': 'rejected', 'request_id': request_id}

        assert client.post(f'/api/requests/{request_id}/reject', headers=actor_headers(admin)).status_code == 404

    def test_employee_sees_only_own_requests(self, actor_headers, client, item, alice, bob):
        client.post(f'/api/items/{item.id}/requests', headers=actor_headers(alice), json={'type': 'use'})
        client.post(f'/api/items/{item.id}/requests', headers=actor_headers(bob), json={'type': 'use'})

        mine = client.get('/api/requests', headers=actor_headers(alice)).get_json()['requests']
        assert [r['requested_by_user']['username'] for r in mine] == ['alice']
        assert mine[0]['item']['id'] == item.id


class TestUsersApi:

    def test_create_and_deactivate(self, actor_headers, client, admin):
        created = client.post('/api/users', headers=actor_headers(admin), json={'username': 'carol', 'role': 'employee'})
        assert created.status_code == 201
        user_id = created.get_json()['id']

        duplicate = client.post('/api/users', headers=actor_headers(admin), json={'username': 'carol', 'role': 'employee'})
        assert duplicate.status_code == 409

        updated = client.patch(f'/api/users/{user_id}', headers=actor_headers(admin), json={'status': 'deactive'})
        assert updated.status_code == 200
        assert updated.get_json()['status'] == 'deactive'

        blocked = client.get('/api/items', headers={'X-User-Id': str(user_id)})
        assert blocked.status_code == 403

    def test_employee_cannot_manage_users(self, actor_headers, client, alice):
        assert client.get('/api/users', headers=actor_headers(alice)).status_code == 403


class TestHealth:

    def test_health_reports_counts(self, client, item):
        response = client.get('/api/health')
        assert response.status_code == 200
        body = response.get_json()
        assert body['status'] == 'ok'
        assert body['database']['details']['items'] == 1


class TestDashboard:

    def test_grouped_requests_carry_item(self, actor_headers, client, item, admin, alice, bob):
        client.post(f'/api/items/{item.id}/requests', headers=actor_headers(alice), json={'type': 'use'})
        client.post(f'/api/items/{item.id}/requests', headers=actor_headers(bob), json={'type': 'use'})

        response = client.get('/api/requests/grouped', headers=actor_headers(admin))
        assert response.status_code == 200
        groups = response.get_json()['groups']

        group = groups[f'{item.id}-use']
        assert group['item']['id'] == item.id
        assert group['item']['serial_number'] == 'SN-0001'
        assert group['item']['status'] == 'available'
        assert {r['requested_by_user']['username'] for r in group['requests']} == {'alice', 'bob'}
