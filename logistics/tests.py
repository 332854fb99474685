"""
AMENADE Logistics Tests
=======================

Tests for:
1. Package / Trip validation and marketplace listing
2. Radius search (haversine)
3. Assignment flow (capacity, confirmations, lifecycle)
4. Reviews and rating recomputation
5. Google Places proxy
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch, MagicMock

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from core.models import User, UserRole, SubscriptionStatus
from logistics.models import (
    Package, PackageStatus, Trip, TripStatus, TrackingEvent, SafetyConfirmation,
    Review,
)
from logistics.serializers import TripSerializer
from logistics.services.assignment import AssignmentService, NOTIFY_PACKAGE
from logistics.utils import haversine_distance, filter_within_radius
from messaging.models import Chat, ChatType, Notification, NotificationType

PASSWORD = 'Str0ng!Pass'

ACCRA = {'street': '1 Oxford St', 'city': 'Accra', 'country': 'Ghana', 'latitude': 5.6037, 'longitude': -0.1870}
KUMASI = {'street': '2 Adum Rd', 'city': 'Kumasi', 'country': 'Ghana', 'latitude': 6.6885, 'longitude': -1.6244}
TEMA = {'street': '3 Harbour Rd', 'city': 'Tema', 'country': 'Ghana', 'latitude': 5.6698, 'longitude': -0.0166}

ALL_CONFIRMED = {
    'legalCompliance': True,
    'damageInspection': True,
    'accurateDescription': True,
    'safetyMeasures': True,
    'termsAcceptance': True,
}


def make_user(email, role=UserRole.SENDER, **extra):
    return User.objects.create_user(email=email, password=PASSWORD, role=role, **extra)


def make_package(sender, weight=2.0, origin=ACCRA, destination=KUMASI, **extra):
    now = timezone.now()
    fields = {
        'sender': sender,
        'title': 'Box of books',
        'description': 'Ten paperback novels, well packed',
        'category': 'books',
        'length_cm': 30, 'width_cm': 20, 'height_cm': 15,
        'weight_kg': weight,
        'pickup_address': origin,
        'pickup_city': origin['city'], 'pickup_country': origin['country'],
        'pickup_latitude': origin['latitude'], 'pickup_longitude': origin['longitude'],
        'delivery_address': destination,
        'delivery_city': destination['city'], 'delivery_country': destination['country'],
        'delivery_latitude': destination['latitude'], 'delivery_longitude': destination['longitude'],
        'pickup_date': now + timedelta(days=2),
        'delivery_date': now + timedelta(days=4),
        'offered_price': Decimal('40.00'),
    }
    fields.update(extra)
    return Package.objects.create(**fields)


def make_trip(traveler, max_weight=10.0, origin=ACCRA, destination=KUMASI, **extra):
    now = timezone.now()
    fields = {
        'traveler': traveler,
        'title': 'Accra to Kumasi',
        'origin_address': origin,
        'origin_city': origin['city'], 'origin_country': origin['country'],
        'origin_latitude': origin['latitude'], 'origin_longitude': origin['longitude'],
        'destination_address': destination,
        'destination_city': destination['city'], 'destination_country': destination['country'],
        'destination_latitude': destination['latitude'], 'destination_longitude': destination['longitude'],
        'departure_date': now + timedelta(days=3),
        'arrival_date': now + timedelta(days=3, hours=5),
        'max_weight_kg': max_weight,
        'price_per_kg': Decimal('5.00'),
    }
    fields.update(extra)
    return Trip.objects.create(**fields)


def package_payload(**overrides):
    now = timezone.now()
    payload = {
        'title': 'Laptop',
        'description': 'A 14 inch laptop in its original box',
        'category': 'electronics',
        'length_cm': 40, 'width_cm': 30, 'height_cm': 10, 'weight_kg': 2.5,
        'pickup_address': ACCRA,
        'delivery_address': KUMASI,
        'pickup_date': (now + timedelta(days=1)).isoformat(),
        'delivery_date': (now + timedelta(days=3)).isoformat(),
        'offered_price': '60.00',
        'is_fragile': True,
    }
    payload.update(overrides)
    return payload


def trip_payload(**overrides):
    now = timezone.now()
    payload = {
        'title': 'Weekend drive',
        'origin_address': ACCRA,
        'destination_address': KUMASI,
        'departure_date': (now + timedelta(days=1)).isoformat(),
        'arrival_date': (now + timedelta(days=1, hours=6)).isoformat(),
        'max_weight_kg': 15,
        'transport_mode': 'car',
        'price_per_kg': '4.00',
        'minimum_price': '10.00',
        'maximum_price': '80.00',
    }
    payload.update(overrides)
    return payload


class TestDistanceUtils(TestCase):

    def test_haversine_accra_kumasi(self):
        distance = haversine_distance(ACCRA['latitude'], ACCRA['longitude'], KUMASI['latitude'], KUMASI['longitude'])
        self.assertAlmostEqual(distance, 200, delta=15)

    def test_filter_within_radius(self):
        sender = make_user('s@example.com')
        near = make_package(sender, origin=TEMA)
        far = make_package(sender, origin=KUMASI)
        qs = filter_within_radius(
            Package.objects.all(), 'pickup_latitude', 'pickup_longitude',
            ACCRA['latitude'], ACCRA['longitude'], 50
        )
        self.assertIn(near, qs)
        self.assertNotIn(far, qs)


class TestTripModel(TestCase):

    def test_available_space_initialised_to_max_weight(self):
        trip = make_trip(make_user('t@example.com', UserRole.TRAVELER), max_weight=12)
        self.assertEqual(trip.available_space_kg, 12)

    def test_completed_trip_counts_once(self):
        traveler = make_user('t@example.com', UserRole.TRAVELER)
        trip = make_trip(traveler)
        trip.status = TripStatus.COMPLETED
        trip.save()
        trip.save()
        traveler.profile.refresh_from_db()
        self.assertEqual(traveler.profile.total_trips, 1)


class TestPackageAPI(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.sender = make_user('sender@example.com')
        self.client.force_authenticate(self.sender)

    def test_create_package_fills_denormalised_fields(self):
        response = self.client.post('/api/packages/', package_payload(), format='json')
        self.assertEqual(response.status_code, 201, response.data)
        package = Package.objects.get(pk=response.data['id'])
        self.assertEqual(package.sender, self.sender)
        self.assertEqual(package.pickup_city, 'Accra')
        self.assertEqual(package.delivery_latitude, KUMASI['latitude'])
        self.assertEqual(package.status, PackageStatus.POSTED)

    def test_pickup_date_in_past_rejected(self):
        past = (timezone.now() - timedelta(days=1)).isoformat()
        response = self.client.post('/api/packages/', package_payload(pickup_date=past), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('pickup_date', response.data)

    def test_delivery_before_pickup_rejected(self):
        now = timezone.now()
        response = self.client.post('/api/packages/', package_payload(
            pickup_date=(now + timedelta(days=5)).isoformat(),
            delivery_date=(now + timedelta(days=2)).isoformat(),
        ), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('delivery_date', response.data)

    def test_address_requires_city(self):
        response = self.client.post('/api/packages/', package_payload(pickup_address={'country': 'Ghana'}), format='json')
        self.assertEqual(response.status_code, 400)

    def test_post_limit_enforced(self):
        for _ in range(3):
            make_package(self.sender)
        response = self.client.post('/api/packages/', package_payload(), format='json')
        self.assertEqual(response.status_code, 403)
        self.assertTrue(response.data['needsResubscribe'])

    def test_inactive_subscription_cannot_post(self):
        self.sender.subscription_status = SubscriptionStatus.INACTIVE
        self.sender.save()
        response = self.client.post('/api/packages/', package_payload(), format='json')
        self.assertEqual(response.status_code, 403)

    def test_public_list_hides_drafts_and_delivered(self):
        visible = make_package(self.sender)
        make_package(self.sender, status=PackageStatus.DRAFT)
        make_package(self.sender, status=PackageStatus.DELIVERED)

        self.client.force_authenticate(None)
        response = self.client.get('/api/packages/')
        self.assertEqual(response.status_code, 200)
        ids = [item['id'] for item in response.data['results']]
        self.assertEqual(ids, [str(visible.id)])
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_mine_lists_every_status(self):
        make_package(self.sender)
        make_package(self.sender, status=PackageStatus.DRAFT)
        response = self.client.get('/api/packages/', {'mine': 'true'})
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_filters_and_sort(self):
        cheap = make_package(self.sender, offered_price=Decimal('10.00'))
        make_package(self.sender, offered_price=Decimal('90.00'), is_fragile=True)
        response = self.client.get('/api/packages/', {'offeredPriceMax': 50})
        self.assertEqual([p['id'] for p in response.data['results']], [str(cheap.id)])

        response = self.client.get('/api/packages/', {'sortBy': 'offeredPrice', 'sortOrder': 'asc'})
        self.assertEqual(response.data['results'][0]['id'], str(cheap.id))

        response = self.client.get('/api/packages/', {'isFragile': 'true'})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_radius_search(self):
        near = make_package(self.sender, origin=TEMA)
        make_package(self.sender, origin=KUMASI)
        response = self.client.get('/api/packages/', {
            'pickupLatitude': ACCRA['latitude'],
            'pickupLongitude': ACCRA['longitude'],
            'locationRadius': 40,
        })
        self.assertEqual([p['id'] for p in response.data['results']], [str(near.id)])

    def test_free_text_search(self):
        make_package(self.sender, title='Wedding dress')
        make_package(self.sender)
        response = self.client.get('/api/packages/', {'search': 'wedding'})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_other_user_cannot_edit(self):
        package = make_package(self.sender)
        self.client.force_authenticate(make_user('other@example.com'))
        response = self.client.patch(f'/api/packages/{package.id}/', {'title': 'Mine now'}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_cannot_delete_matched_package(self):
        package = make_package(self.sender, status=PackageStatus.MATCHED)
        response = self.client.delete(f'/api/packages/{package.id}/')
        self.assertEqual(response.status_code, 400)

    def test_delete_posted_package(self):
        package = make_package(self.sender)
        response = self.client.delete(f'/api/packages/{package.id}/')
        self.assertEqual(response.status_code, 204)


class TestTripAPI(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.client.force_authenticate(self.traveler)

    def test_create_trip(self):
        response = self.client.post('/api/trips/', trip_payload(), format='json')
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data['available_space_kg'], 15)
        self.assertEqual(response.data['origin_city'], 'Accra')

    def test_arrival_before_departure_rejected(self):
        now = timezone.now()
        response = self.client.post('/api/trips/', trip_payload(
            departure_date=(now + timedelta(days=3)).isoformat(),
            arrival_date=(now + timedelta(days=2)).isoformat(),
        ), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('arrival_date', response.data)

    def test_minimum_above_maximum_rejected(self):
        response = self.client.post('/api/trips/', trip_payload(minimum_price='100.00', maximum_price='50.00'), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('maximum_price', response.data)

    def test_public_list_and_filters(self):
        plane = make_trip(self.traveler, transport_mode='plane')
        make_trip(self.traveler, status=TripStatus.COMPLETED)
        make_trip(self.traveler, max_weight=3)
        response = self.client.get('/api/trips/', {'transportMode': 'plane'})
        self.assertEqual([t['id'] for t in response.data['results']], [str(plane.id)])

        response = self.client.get('/api/trips/', {'availableSpaceMin': 5})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_reducing_capacity_below_booked_weight(self):
        trip = make_trip(self.traveler, max_weight=10)
        sender = make_user('s@example.com')
        AssignmentService.create_assignment(make_package(sender, weight=6).id, trip.id, ALL_CONFIRMED, sender)

        response = self.client.patch(f'/api/trips/{trip.id}/', {'max_weight_kg': 5}, format='json')
        self.assertEqual(response.status_code, 400)

        response = self.client.patch(f'/api/trips/{trip.id}/', {'max_weight_kg': 12}, format='json')
        self.assertEqual(response.status_code, 200)
        trip.refresh_from_db()
        self.assertEqual(trip.available_space_kg, 6)

    def test_capacity_change_uses_current_bookings(self):
        trip = make_trip(self.traveler, max_weight=10)
        stale = Trip.objects.get(pk=trip.pk)
        sender = make_user('s@example.com')
        AssignmentService.create_assignment(make_package(sender, weight=6).id, trip.id, ALL_CONFIRMED, sender)

        serializer = TripSerializer(stale, data={'max_weight_kg': 12}, partial=True)
        self.assertTrue(serializer.is_valid(), serializer.errors)
        serializer.save()
        trip.refresh_from_db()
        self.assertEqual(trip.max_weight_kg, 12)
        self.assertEqual(trip.available_space_kg, 6)

        stale = Trip.objects.get(pk=trip.pk)
        AssignmentService.create_assignment(make_package(sender, weight=3).id, trip.id, ALL_CONFIRMED, sender)
        serializer = TripSerializer(stale, data={'max_weight_kg': 8}, partial=True)
        self.assertTrue(serializer.is_valid(), serializer.errors)
        with self.assertRaises(ValidationError):
            serializer.save()
        trip.refresh_from_db()
        self.assertEqual(trip.max_weight_kg, 12)
        self.assertEqual(trip.available_space_kg, 3)


class TestAssignmentService(TestCase):

    def setUp(self):
        self.sender = make_user('sender@example.com')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.package = make_package(self.sender, weight=4)
        self.trip = make_trip(self.traveler, max_weight=10)

    def test_assignment_updates_package_trip_and_chat(self):
        result = AssignmentService.create_assignment(
            self.package.id, self.trip.id, ALL_CONFIRMED, self.sender, notification=NOTIFY_PACKAGE
        )
        self.package.refresh_from_db()
        self.trip.refresh_from_db()

        self.assertTrue(result['success'])
        self.assertEqual(self.package.status, PackageStatus.MATCHED)
        self.assertEqual(self.package.trip, self.trip)
        self.assertEqual(self.trip.available_space_kg, 6)

        chat = result['chat']
        self.assertEqual(chat.chat_type, ChatType.NOTIFICATION)
        self.assertTrue(chat.has_participant(self.sender))
        self.assertTrue(TrackingEvent.objects.filter(package=self.package, event='MATCHED').exists())
        self.assertTrue(Notification.objects.filter(
            user=self.sender, notification_type=NotificationType.PACKAGE_MATCH).exists())
        self.assertTrue(Notification.objects.filter(
            user=self.traveler, notification_type=NotificationType.TRIP_REQUEST).exists())
        self.assertEqual(SafetyConfirmation.objects.count(), 1)

    def test_chat_reused_for_same_pairing(self):
        first = AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, self.sender)
        AssignmentService.cancel(self.package.id, self.sender)
        second = AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, self.sender)
        self.assertEqual(first['chat'].id, second['chat'].id)
        self.assertEqual(Chat.objects.count(), 1)

    def test_missing_confirmation_rejected(self):
        confirmations = dict(ALL_CONFIRMED, termsAcceptance=False)
        with self.assertRaises(ValueError):
            AssignmentService.create_assignment(self.package.id, self.trip.id, confirmations, self.sender)

    def test_capacity_enforced(self):
        heavy = make_package(self.sender, weight=11)
        with self.assertRaises(ValueError):
            AssignmentService.create_assignment(heavy.id, self.trip.id, ALL_CONFIRMED, self.sender)
        self.trip.refresh_from_db()
        self.assertEqual(self.trip.available_space_kg, 10)

    def test_package_cannot_be_assigned_twice(self):
        AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, self.sender)
        other_trip = make_trip(self.traveler)
        with self.assertRaises(ValueError):
            AssignmentService.create_assignment(self.package.id, other_trip.id, ALL_CONFIRMED, self.sender)

    def test_completed_trip_rejected(self):
        self.trip.status = TripStatus.COMPLETED
        self.trip.save()
        with self.assertRaises(ValueError):
            AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, self.sender)

    def test_stranger_cannot_assign(self):
        stranger = make_user('stranger@example.com')
        with self.assertRaises(PermissionError):
            AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, stranger)

    def test_full_lifecycle(self):
        AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, self.traveler)

        with self.assertRaises(PermissionError):
            AssignmentService.confirm_pickup(self.package.id, self.sender)

        package = AssignmentService.confirm_pickup(self.package.id, self.traveler)
        self.assertEqual(package.status, PackageStatus.IN_TRANSIT)
        self.trip.refresh_from_db()
        self.assertEqual(self.trip.status, TripStatus.ACTIVE)

        with self.assertRaises(ValueError):
            AssignmentService.cancel(self.package.id, self.sender)

        package = AssignmentService.mark_delivered(self.package.id, self.sender)
        self.assertEqual(package.status, PackageStatus.DELIVERED)
        self.traveler.profile.refresh_from_db()
        self.assertEqual(self.traveler.profile.total_deliveries, 1)
        self.assertEqual(Notification.objects.filter(
            notification_type=NotificationType.DELIVERY_CONFIRMATION).count(), 2)

    def test_cancel_restores_capacity(self):
        AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, self.sender)
        package = AssignmentService.cancel(self.package.id, self.traveler)
        self.trip.refresh_from_db()
        self.assertEqual(package.status, PackageStatus.POSTED)
        self.assertIsNone(package.trip)
        self.assertEqual(self.trip.available_space_kg, 10)

    def test_available_lookups(self):
        make_trip(self.traveler, max_weight=2)
        trips = AssignmentService.available_trips_for(self.package, self.traveler)
        self.assertEqual(list(trips), [self.trip])

        make_package(self.sender, status=PackageStatus.DRAFT)
        packages = AssignmentService.available_packages_for(self.trip, self.sender)
        self.assertEqual(list(packages), [self.package])


class TestAssignmentAPI(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.sender = make_user('sender@example.com')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.package = make_package(self.sender, weight=3)
        self.trip = make_trip(self.traveler)

    def _assign(self, user, **overrides):
        self.client.force_authenticate(user)
        payload = {
            'package_id': str(self.package.id),
            'trip_id': str(self.trip.id),
            'confirmations': ALL_CONFIRMED,
        }
        payload.update(overrides)
        return self.client.post('/api/assignments/', payload, format='json')

    def test_create_assignment(self):
        response = self._assign(self.sender)
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data['package']['status'], PackageStatus.MATCHED)
        self.assertIn('chatId', response.data)

    def test_unknown_trip_returns_404(self):
        response = self._assign(self.sender, trip_id='00000000-0000-0000-0000-000000000000')
        self.assertEqual(response.status_code, 404)

    def test_rule_violation_returns_400(self):
        response = self._assign(self.sender, confirmations=dict(ALL_CONFIRMED, safetyMeasures=False))
        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.data)

    def test_available_trips(self):
        self.client.force_authenticate(self.traveler)
        response = self.client.get('/api/assignments/', {'type': 'available-trips', 'packageId': str(self.package.id)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([t['id'] for t in response.data], [str(self.trip.id)])

    def test_invalid_lookup_type(self):
        self.client.force_authenticate(self.traveler)
        response = self.client.get('/api/assignments/', {'type': 'everything'})
        self.assertEqual(response.status_code, 400)

    def test_actions(self):
        self._assign(self.sender)
        self.client.force_authenticate(self.traveler)
        response = self.client.post(f'/api/assignments/{self.package.id}/confirm/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['package']['status'], PackageStatus.IN_TRANSIT)

        response = self.client.post(f'/api/assignments/{self.package.id}/explode/')
        self.assertEqual(response.status_code, 400)

    def test_dispute_action(self):
        self._assign(self.sender)
        response = self.client.post(f'/api/assignments/{self.package.id}/dispute/', {
            'dispute_type': 'damaged_package',
            'description': 'The traveler never picked it up.',
        }, format='json')
        self.assertEqual(response.status_code, 201, response.data)
        self.package.refresh_from_db()
        self.assertEqual(self.package.status, PackageStatus.DISPUTED)


class TestReviews(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.sender = make_user('sender@example.com')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.trip = make_trip(self.traveler)
        self.package = make_package(self.sender, trip=self.trip, status=PackageStatus.DELIVERED)

    def test_sender_reviews_traveler(self):
        self.client.force_authenticate(self.sender)
        response = self.client.post('/api/reviews/', {
            'package': str(self.package.id), 'rating': 4, 'comment': 'On time',
        }, format='json')
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data['receiver']['id'], str(self.traveler.id))
        self.traveler.profile.refresh_from_db()
        self.assertEqual(self.traveler.profile.traveler_rating, Decimal('4.00'))

    def test_traveler_reviews_sender(self):
        Review.objects.create(giver=self.traveler, receiver=self.sender, rating=5, package=self.package)
        self.sender.profile.refresh_from_db()
        self.assertEqual(self.sender.profile.sender_rating, Decimal('5.00'))

    def test_only_once_per_package(self):
        self.client.force_authenticate(self.sender)
        payload = {'package': str(self.package.id), 'rating': 5}
        self.assertEqual(self.client.post('/api/reviews/', payload, format='json').status_code, 201)
        self.assertEqual(self.client.post('/api/reviews/', payload, format='json').status_code, 400)

    def test_stranger_cannot_review(self):
        self.client.force_authenticate(make_user('x@example.com'))
        response = self.client.post('/api/reviews/', {'package': str(self.package.id), 'rating': 1}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_undelivered_package_cannot_be_reviewed(self):
        pending = make_package(self.sender, trip=self.trip, status=PackageStatus.IN_TRANSIT)
        self.client.force_authenticate(self.sender)
        response = self.client.post('/api/reviews/', {'package': str(pending.id), 'rating': 3}, format='json')
        self.assertEqual(response.status_code, 400)


class TestPlacesProxy(TestCase):

    def setUp(self):
        self.client = APIClient()

    @override_settings(GOOGLE_MAPS_API_KEY='')
    def test_missing_key_returns_503(self):
        response = self.client.get('/api/places/autocomplete/', {'input': 'Acc'})
        self.assertEqual(response.status_code, 503)

    def test_input_required(self):
        response = self.client.get('/api/places/autocomplete/')
        self.assertEqual(response.status_code, 400)

    @override_settings(GOOGLE_MAPS_API_KEY='test-key')
    @patch('logistics.services.places.requests.get')
    def test_geocode_is_cached(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = {
            'status': 'OK',
            'results': [{
                'place_id': 'abc',
                'formatted_address': 'Accra, Ghana',
                'geometry': {'location': {'lat': 5.6, 'lng': -0.18}},
                'address_components': [
                    {'long_name': 'Accra', 'short_name': 'Accra', 'types': ['locality']},
                    {'long_name': 'Ghana', 'short_name': 'GH', 'types': ['country']},
                ],
            }],
        }
        for _ in range(2):
            response = self.client.get('/api/places/geocode/', {'address': 'Accra'})
            self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['city'], 'Accra')
        self.assertEqual(response.data['country_code'], 'GH')
        mock_get.assert_called_once()

    @override_settings(GOOGLE_MAPS_API_KEY='test-key')
    @patch('logistics.services.places.requests.get')
    def test_google_error_returns_502(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = {'status': 'REQUEST_DENIED', 'error_message': 'Bad key'}
        response = self.client.get('/api/places/search/', {'query': 'Accra mall'})
        self.assertEqual(response.status_code, 502)
