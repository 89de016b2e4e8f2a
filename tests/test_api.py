"""End-to-end requests through the /api blueprint."""

import pytest

ADMIN = {'name': 'Owner', 'username': 'owner', 'email': 'owner@example.com', 'password': 'secret123'}


def bearer(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_token(client):
    response = client.post('/api/auth/signup', json=ADMIN)
    assert response.status_code == 201
    return response.get_json()['data']['token']


@pytest.fixture
def hotel_id(client, admin_token):
    response = client.post('/api/hotels', headers=bearer(admin_token), json={
        'name': 'Hill Top', 'address': '2 Ridge Road', 'phone': '9876500000', 'totalRooms': 3,
    })
    assert response.status_code == 201
    return response.get_json()['data']['id']


@pytest.fixture
def cash_id(client, admin_token):
    response = client.post('/api/payment-modes', headers=bearer(admin_token), json={'paymentMode': 'Cash'})
    return response.get_json()['data']['id']


class TestAuth:
    def test_signup_signin_and_me(self, client, admin_token):
        response = client.post('/api/auth/signin', json={'username': 'owner', 'password': 'secret123'})
        body = response.get_json()
        assert response.status_code == 200
        assert body['success'] is True
        assert body['data']['user']['role'] == 'admin'
        assert body['data']['user']['lastLogin'] is not None

        me = client.get('/api/auth/me', headers=bearer(body['data']['token']))
        assert me.get_json()['data']['user']['username'] == 'owner'

    def test_signin_by_email(self, client, admin_token):
        response = client.post('/api/auth/signin', json={'email': 'OWNER@example.com', 'password': 'secret123'})
        assert response.status_code == 200

    def test_wrong_password(self, client, admin_token):
        response = client.post('/api/auth/signin', json={'username': 'owner', 'password': 'nope'})
        assert response.status_code == 401
        assert response.get_json()['success'] is False

    def test_duplicate_signup(self, client, admin_token):
        response = client.post('/api/auth/signup', json=ADMIN)
        assert response.status_code == 409

    def test_unknown_role_rejected(self, client):
        response = client.post('/api/auth/signup', json=dict(ADMIN, role='owner'))
        assert response.status_code == 400

    def test_update_profile(self, client, admin_token):
        response = client.put('/api/auth/profile', headers=bearer(admin_token), json={
            'name': 'Hotel Owner', 'email': 'NEW@example.com',
        })
        assert response.status_code == 200
        user = response.get_json()['data']['user']
        assert (user['name'], user['email']) == ('Hotel Owner', 'new@example.com')

        client.post('/api/auth/signup', json={
            'name': 'Desk', 'username': 'desk', 'email': 'desk@example.com', 'password': 'secret123',
        })
        taken = client.put('/api/auth/profile', headers=bearer(admin_token), json={'email': 'desk@example.com'})
        assert taken.status_code == 409

    def test_missing_or_bad_token(self, client):
        assert client.get('/api/hotels').status_code == 401
        response = client.get('/api/hotels', headers=bearer('not-a-token'))
        assert response.status_code == 401
        assert response.get_json() == {
            'success': False, 'error': 'Unauthorized', 'message': 'Authentication required',
        }


class TestGuestFlow:
    def test_check_in_pay_and_read_back(self, client, admin_token, hotel_id, cash_id):
        headers = bearer(admin_token)
        created = client.post('/api/guest-records', headers=headers, json={
            'hotelId': hotel_id,
            'guestName': 'Meera',
            'phoneNo': '9000000001',
            'roomNo': '1',
            'rent': 1000,
            'advancePayment': 400,
            'paymentModeId': cash_id,
        })
        assert created.status_code == 201
        record = created.get_json()['data']
        assert record['serialNo'] == 1
        assert record['pendingAmount'] == '600.00'

        updated = client.put(f"/api/guest-records/{record['id']}", headers=headers, json={
            'payment': {'amount': '100', 'paymentType': 'advance', 'paymentModeId': cash_id},
        })
        assert updated.get_json()['data']['pendingAmount'] == '500.00'
        assert len(updated.get_json()['data']['transactions']) == 1

        pending = client.get(f"/api/guest-records/{record['id']}/pending", headers=headers)
        assert pending.get_json()['data']['pendingAmount'] == '500.00'

        listing = client.get(f'/api/guest-records/hotel/{hotel_id}?limit=5', headers=headers).get_json()
        assert listing['summary']['totalRecords'] == 1
        assert listing['summary']['totalPendingAmount'] == '500.00'
        assert listing['pagination']['recordsPerPage'] == 5

        rooms = client.get(f'/api/hotels/{hotel_id}/rooms?status=occupied', headers=headers).get_json()
        assert [room['roomNo'] for room in rooms['data']] == ['1']

    def test_food_order_round_trip(self, client, admin_token, hotel_id):
        headers = bearer(admin_token)
        menu = client.post('/api/menus', headers=headers, json={
            'name': 'Dal', 'halfPlatePrice': 50, 'fullPlatePrice': 90,
        }).get_json()['data']
        record = client.post('/api/guest-records', headers=headers, json={
            'hotelId': hotel_id, 'guestName': 'Kabir', 'phoneNo': '9000000002', 'roomNo': '2', 'rent': 800,
        }).get_json()['data']

        added = client.post(f"/api/guest-food/{record['id']}", headers=headers, json={
            'items': [{'menuId': menu['id'], 'portionType': 'half', 'quantity': 2}],
        })
        assert added.status_code == 201
        assert added.get_json()['data']['grandTotal'] == '100.00'

        expense_id = added.get_json()['data']['orders'][0]['expenseId']
        replaced = client.put(f'/api/guest-food/expense/{expense_id}', headers=headers, json={
            'items': [{'menuId': menu['id'], 'portionType': 'full', 'quantity': 1}],
        })
        assert replaced.get_json()['data']['grandTotal'] == '90.00'

        today = client.get(f"/api/guest-food/{record['id']}", headers=headers).get_json()['data']
        assert [(o['portionType'], o['totalPrice']) for o in today['orders']] == [('full', '90.00')]

        bill = client.get(f"/api/guest-records/{record['id']}/bill", headers=headers).get_json()['data']
        assert bill['billSummary']['totalFoodExpenses'] == '90.00'

    def test_half_plate_unavailable(self, client, admin_token, hotel_id):
        headers = bearer(admin_token)
        menu = client.post('/api/menus', headers=headers, json={'name': 'Naan', 'fullPlatePrice': 30})
        record = client.post('/api/guest-records', headers=headers, json={
            'hotelId': hotel_id, 'guestName': 'Ira', 'phoneNo': '9000000003', 'roomNo': '3', 'rent': 800,
        }).get_json()['data']
        response = client.post(f"/api/guest-food/{record['id']}", headers=headers, json={
            'items': [{'menuId': menu.get_json()['data']['id'], 'portionType': 'half', 'quantity': 1}],
        })
        assert response.status_code == 400
        assert response.get_json()['message'] == 'half plate not available for Naan'


    def test_room_cleaned_after_checkout(self, client, admin_token, hotel_id):
        headers = bearer(admin_token)
        record = client.post('/api/guest-records', headers=headers, json={
            'hotelId': hotel_id, 'guestName': 'Tara', 'phoneNo': '9000000005', 'roomNo': '2', 'rent': 700,
            'checkinDate': '2024-01-01', 'checkinTime': '12:00',
        }).get_json()['data']
        client.put(f"/api/guest-records/{record['id']}", headers=headers, json={
            'checkoutDate': '2024-01-02', 'checkoutTime': '11:00',
        })

        cleaning = client.get(f'/api/hotels/{hotel_id}/rooms?status=cleaning', headers=headers).get_json()['data']
        assert [room['roomNo'] for room in cleaning] == ['2']

        updated = client.put(f"/api/rooms/{cleaning[0]['id']}", headers=headers, json={'status': 'empty'})
        assert updated.status_code == 200
        assert updated.get_json()['data']['status'] == 'empty'
        assert client.get(f'/api/hotels/{hotel_id}/rooms?status=cleaning', headers=headers).get_json()['data'] == []

    def test_list_guest_records_across_hotels(self, client, admin_token, hotel_id):
        headers = bearer(admin_token)
        for name, room in (('Anil', '1'), ('Bina', '3')):
            client.post('/api/guest-records', headers=headers, json={
                'hotelId': hotel_id, 'guestName': name, 'phoneNo': '9000000006', 'roomNo': room, 'rent': 500,
            })
        body = client.get('/api/guest-records?roomNo=3', headers=headers).get_json()
        assert body['success'] is True
        assert [r['guestName'] for r in body['records']] == ['Bina']
        assert body['pagination']['totalRecords'] == 1

    def test_oversized_amount_is_a_validation_error(self, client, admin_token, hotel_id):
        response = client.post('/api/guest-records', headers=bearer(admin_token), json={
            'hotelId': hotel_id, 'guestName': 'Big', 'phoneNo': '9000000007', 'roomNo': '1', 'rent': '1e30',
        })
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Validation error'


class TestAdministration:
    def test_category_update_and_delete(self, client, admin_token, hotel_id):
        headers = bearer(admin_token)
        category = client.post(f'/api/hotels/{hotel_id}/categories', headers=headers,
                               json={'categoryName': 'Deluxe'}).get_json()['data']
        renamed = client.put(f"/api/hotel-categories/{category['id']}", headers=headers,
                             json={'categoryName': 'Suite'})
        assert renamed.get_json()['data']['categoryName'] == 'Suite'

        room = client.post(f'/api/hotels/{hotel_id}/rooms', headers=headers,
                           json={'roomNo': 'P1', 'categoryId': category['id']})
        assert room.status_code == 201
        assert client.delete(f"/api/hotel-categories/{category['id']}", headers=headers).status_code == 409

        assert client.delete(f"/api/rooms/{room.get_json()['data']['id']}", headers=headers).status_code == 200
        assert client.delete(f"/api/hotel-categories/{category['id']}", headers=headers).status_code == 200

    def test_expense_and_expense_mode_updates(self, client, admin_token, hotel_id):
        headers = bearer(admin_token)
        mode = client.post('/api/expense-modes', headers=headers, json={'expenseMode': 'Gas'}).get_json()['data']
        renamed = client.put(f"/api/expense-modes/{mode['id']}", headers=headers, json={'expenseMode': 'LPG'})
        assert renamed.get_json()['data']['expenseMode'] == 'LPG'

        expense = client.post('/api/expenses', headers=headers, json={
            'hotelId': hotel_id, 'expenseModeId': mode['id'], 'amount': '900',
        }).get_json()['data']
        updated = client.put(f"/api/expenses/{expense['id']}", headers=headers, json={'amount': '950.50'})
        assert updated.status_code == 200
        assert updated.get_json()['data']['amount'] == '950.50'
        assert updated.get_json()['data']['expenseMode'] == 'LPG'


class TestErrors:
    def test_not_found_envelope(self, client, admin_token):
        response = client.get('/api/guest-records/missing', headers=bearer(admin_token))
        assert response.status_code == 404
        assert response.get_json() == {
            'success': False, 'error': 'Guest record not found', 'message': 'Guest record not found',
        }

    def test_validation_envelope(self, client, admin_token, hotel_id):
        response = client.post('/api/guest-records', headers=bearer(admin_token), json={'hotelId': hotel_id})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Validation error'

    def test_manager_without_assignment_is_forbidden(self, client, admin_token, hotel_id):
        client.post('/api/auth/signup', json={
            'name': 'Desk', 'username': 'desk', 'email': 'desk@example.com', 'password': 'secret123',
            'role': 'manager',
        })
        token = client.post('/api/auth/signin', json={'username': 'desk', 'password': 'secret123'})
        response = client.get(f'/api/hotels/{hotel_id}', headers=bearer(token.get_json()['data']['token']))
        assert response.status_code == 403

    def test_managers_cannot_create_hotels(self, client):
        signup = client.post('/api/auth/signup', json={
            'name': 'Desk', 'username': 'desk', 'email': 'desk@example.com', 'password': 'secret123',
            'role': 'manager',
        })
        response = client.post('/api/hotels', headers=bearer(signup.get_json()['data']['token']), json={})
        assert response.status_code == 403

    def test_delete_hotel_with_guests_conflicts(self, client, admin_token, hotel_id):
        client.post('/api/guest-records', headers=bearer(admin_token), json={
            'hotelId': hotel_id, 'guestName': 'Zoya', 'phoneNo': '9000000004', 'roomNo': '1', 'rent': 500,
        })
        response = client.delete(f'/api/hotels/{hotel_id}', headers=bearer(admin_token))
        assert response.status_code == 409

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_health(self, client):
        assert client.get('/health').get_json()['status'] == 'healthy'
