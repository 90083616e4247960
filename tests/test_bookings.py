"""
Service booking tests
Tests slot validation, double-booking prevention and the booking lifecycle
"""
import json
from datetime import date, timedelta

from booking_slots import generate_slot_grid
from models import db, Booking


def _booking_payload(provider, service, booking_date, booking_time='10:00', **extra):
    payload = {
        'provider_id': provider.id,
        'service_id': service.id,
        'booking_date': booking_date,
        'booking_time': booking_time,
        'customer_phone': '09171234567',
        'notes': 'First visit',
    }
    payload.update(extra)
    return payload


class TestCreateBooking:
    """Test booking creation"""

    def test_create_booking_success(self, client, customer_headers, provider, service, future_date):
        response = client.post('/api/bookings', headers=customer_headers,
                               json=_booking_payload(provider, service, future_date))
        assert response.status_code == 201
        booking = json.loads(response.data)['booking']
        assert booking['status'] == 'pending'
        assert booking['booking_time'] == '10:00'
        assert booking['customer_phone'] == '+639171234567'
        assert booking['service_name'] == 'Haircut'

    def test_taken_slot_returns_conflict(self, client, customer_headers, other_customer_headers,
                                         provider, service, future_date):
        first = client.post('/api/bookings', headers=customer_headers,
                            json=_booking_payload(provider, service, future_date))
        assert first.status_code == 201

        second = client.post('/api/bookings', headers=other_customer_headers,
                             json=_booking_payload(provider, service, future_date))
        assert second.status_code == 409
        assert json.loads(second.data)['error'] == (
            'This time slot was just booked by someone else. Please choose another time.'
        )

    def test_cancelled_booking_frees_slot(self, client, customer_headers, other_customer_headers,
                                          provider, service, future_date):
        first = json.loads(client.post('/api/bookings', headers=customer_headers,
                                       json=_booking_payload(provider, service, future_date)).data)
        cancel = client.post(f"/api/bookings/{first['booking']['id']}/cancel", headers=customer_headers)
        assert cancel.status_code == 200

        again = client.post('/api/bookings', headers=other_customer_headers,
                            json=_booking_payload(provider, service, future_date))
        assert again.status_code == 201

    def test_time_outside_grid_rejected(self, client, customer_headers, provider, service, future_date):
        for bad_time in ('08:30', '10:15', '18:00', '10:00am'):
            response = client.post('/api/bookings', headers=customer_headers,
                                   json=_booking_payload(provider, service, future_date, bad_time))
            assert response.status_code == 400

    def test_past_date_rejected(self, client, customer_headers, provider, service):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        response = client.post('/api/bookings', headers=customer_headers,
                               json=_booking_payload(provider, service, yesterday))
        assert response.status_code == 400

    def test_fully_booked_date_rejected(self, client, customer, customer_headers, other_customer_headers,
                                        provider, service, future_date):
        day = date.fromisoformat(future_date)
        for slot in generate_slot_grid():
            db.session.add(Booking(
                customer_id=customer.id, provider_id=provider.id, service_id=service.id,
                booking_date=day, booking_time=slot, status='confirmed',
            ))
        db.session.commit()

        response = client.post('/api/bookings', headers=other_customer_headers,
                               json=_booking_payload(provider, service, future_date, '09:00'))
        assert response.status_code == 400
        assert 'fully booked' in json.loads(response.data)['error']

    def test_invalid_phone_rejected(self, client, customer_headers, provider, service, future_date):
        response = client.post('/api/bookings', headers=customer_headers,
                               json=_booking_payload(provider, service, future_date,
                                                     customer_phone='12345'))
        assert response.status_code == 400

    def test_notes_limit_applies_before_escaping(self, client, customer_headers, provider, service,
                                                 future_date):
        response = client.post('/api/bookings', headers=customer_headers,
                               json=_booking_payload(provider, service, future_date, notes='&' * 500))
        assert response.status_code == 201
        assert json.loads(response.data)['booking']['notes'] == '&amp;' * 500

        response = client.post('/api/bookings', headers=customer_headers,
                               json=_booking_payload(provider, service, future_date, '11:00',
                                                     notes='<' * 501))
        assert response.status_code == 400

    def test_non_string_fields_rejected(self, client, customer_headers, provider, service, future_date):
        for extra in ({'booking_time': 1000}, {'customer_phone': 9171234567}, {'notes': ['hi']}):
            response = client.post('/api/bookings', headers=customer_headers,
                                   json=_booking_payload(provider, service, future_date, **extra))
            assert response.status_code == 400

    def test_service_must_belong_to_provider(self, client, customer_headers, other_provider,
                                             service, future_date):
        response = client.post('/api/bookings', headers=customer_headers,
                               json=_booking_payload(other_provider, service, future_date))
        assert response.status_code == 404

    def test_requires_auth(self, client, provider, service, future_date):
        response = client.post('/api/bookings', json=_booking_payload(provider, service, future_date))
        assert response.status_code == 401


class TestAvailability:
    """Test GET /api/providers/<id>/availability"""

    def test_reports_taken_and_open_slots(self, client, customer_headers, provider, service, future_date):
        client.post('/api/bookings', headers=customer_headers,
                    json=_booking_payload(provider, service, future_date, '11:30'))

        response = client.get(f'/api/providers/{provider.id}/availability?date={future_date}')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert len(data['slots']) == 18
        assert data['taken'][future_date] == ['11:30']
        assert future_date in data['partially_booked_dates']
        assert '11:30' not in data['available_slots']
        assert len(data['available_slots']) == 17

    def test_cancelled_bookings_not_counted(self, client, customer, provider, service, future_date):
        db.session.add(Booking(
            customer_id=customer.id, provider_id=provider.id, service_id=service.id,
            booking_date=date.fromisoformat(future_date), booking_time='09:00', status='cancelled',
        ))
        db.session.commit()
        data = json.loads(client.get(f'/api/providers/{provider.id}/availability').data)
        assert data['taken'] == {}

    def test_bad_date(self, client, provider):
        response = client.get(f'/api/providers/{provider.id}/availability?date=tomorrow')
        assert response.status_code == 400


class TestBookingLifecycle:
    """Test provider status changes and customer cancellation"""

    def _create(self, client, headers, provider, service, booking_date):
        response = client.post('/api/bookings', headers=headers,
                               json=_booking_payload(provider, service, booking_date))
        return json.loads(response.data)['booking']['id']

    def test_provider_confirms_then_completes(self, client, customer_headers, provider_headers,
                                              provider, service, future_date):
        booking_id = self._create(client, customer_headers, provider, service, future_date)

        response = client.put(f'/api/bookings/{booking_id}/status', headers=provider_headers,
                              json={'status': 'confirmed'})
        assert response.status_code == 200
        response = client.put(f'/api/bookings/{booking_id}/status', headers=provider_headers,
                              json={'status': 'completed'})
        assert json.loads(response.data)['booking']['status'] == 'completed'

    def test_invalid_transition(self, client, customer_headers, provider_headers,
                                provider, service, future_date):
        booking_id = self._create(client, customer_headers, provider, service, future_date)
        response = client.put(f'/api/bookings/{booking_id}/status', headers=provider_headers,
                              json={'status': 'completed'})
        assert response.status_code == 400

    def test_other_provider_cannot_change_status(self, client, customer_headers, other_provider_headers,
                                                 provider, service, future_date):
        booking_id = self._create(client, customer_headers, provider, service, future_date)
        response = client.put(f'/api/bookings/{booking_id}/status', headers=other_provider_headers,
                              json={'status': 'confirmed'})
        assert response.status_code == 403

    def test_customer_cannot_cancel_confirmed(self, client, customer_headers, provider_headers,
                                              provider, service, future_date):
        booking_id = self._create(client, customer_headers, provider, service, future_date)
        client.put(f'/api/bookings/{booking_id}/status', headers=provider_headers,
                   json={'status': 'confirmed'})
        response = client.post(f'/api/bookings/{booking_id}/cancel', headers=customer_headers)
        assert response.status_code == 400

    def test_listings(self, client, customer_headers, provider_headers, provider, service, future_date):
        self._create(client, customer_headers, provider, service, future_date)

        mine = json.loads(client.get('/api/bookings', headers=customer_headers).data)
        assert len(mine['bookings']) == 1

        theirs = json.loads(client.get('/api/bookings/provider?status=pending',
                                       headers=provider_headers).data)
        assert len(theirs['bookings']) == 1
        assert theirs['bookings'][0]['customer_name'] == 'Maria Santos'
