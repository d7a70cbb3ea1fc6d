from datetime import datetime
from decimal import Decimal

import pytest

from galerago import models
from galerago.exceptions import AuthorizationError, ValidationError
from galerago.services import reviews as review_service
from galerago.services import statistics

from conftest import caller_for


class TestEmptyDatabase:
    """Every rollup answers with zeros, never None or an error"""

    def test_review_statistics(self, db):
        assert statistics.review_statistics(db) == {
            "total_reviews": 0,
            "average_rating": 0.0,
            "rating_breakdown": {5: 0, 4: 0, 3: 0, 2: 0, 1: 0},
        }

    def test_review_stats_by_activity_type(self, db):
        rows = statistics.review_stats_by_activity_type(db)
        assert [row["activity_type"] for row in rows] == list(models.ACTIVITY_TYPES)
        assert all(row["review_count"] == 0 and row["average_rating"] == 0.0 for row in rows)

    def test_monthly_trends(self, db):
        months = statistics.monthly_booking_trends(db, now=datetime(2026, 3, 15))
        assert len(months) == 12
        assert months[0]["month"] == "2025-04"
        assert months[-1]["month"] == "2026-03"
        assert months[-1]["label"] == "Mar 2026"
        assert all(m["booking_count"] == 0 and m["revenue"] == Decimal("0.00") for m in months)

    def test_booking_totals(self, db):
        totals = statistics.booking_totals(db)
        assert totals["total_bookings"] == 0
        assert totals["total_revenue"] == Decimal("0.00")
        assert totals["average_booking_value"] == Decimal("0.00")
        assert totals["refunds_processed"] == 0
        assert set(totals["by_status"]) == set(models.BOOKING_STATUSES)
        assert totals["by_status"]["pending"] == {
            "count": 0,
            "total_amount": Decimal("0.00"),
            "average_amount": Decimal("0.00"),
        }

    def test_popular_packages(self, db):
        assert statistics.popular_packages(db) == []
        assert statistics.popular_packages(db, by="reviews") == []

    def test_admin_dashboard(self, db, admin):
        stats = statistics.admin_booking_stats(db, caller_for(admin))
        assert stats["overall"]["total_bookings"] == 0
        assert len(stats["monthly"]) == 12
        assert stats["popular_packages"] == []

    def test_provider_dashboard(self, db, provider):
        dashboard = statistics.provider_dashboard(db, caller_for(provider))
        assert dashboard["total_packages"] == 0
        assert dashboard["total_bookings"] == 0
        assert dashboard["pending_bookings"] == 0


class TestBookingRollups:
    @pytest.fixture
    def mixed_bookings(self, tourist, package, make_booking):
        # price is 1500.00 per participant
        make_booking(tourist, package, status=models.STATUS_PENDING, participants=1)
        make_booking(tourist, package, status=models.STATUS_CONFIRMED, participants=2)
        make_booking(tourist, package, status=models.STATUS_COMPLETED, participants=4)
        make_booking(tourist, package, status=models.STATUS_CANCELLED, participants=3, refund_processed=True)

    def test_revenue_counts_confirmed_and_completed_only(self, db, mixed_bookings):
        totals = statistics.booking_totals(db)
        assert totals["total_bookings"] == 4
        assert totals["total_revenue"] == Decimal("9000.00")
        assert totals["average_booking_value"] == Decimal("4500.00")
        assert totals["by_status"]["cancelled"]["total_amount"] == Decimal("4500.00")
        assert totals["refunds_processed"] == 1

    def test_provider_scope(self, db, mixed_bookings, provider, make_user):
        other = make_user(models.ROLE_ACTIVITY_PROVIDER)
        assert statistics.booking_totals(db, provider_id=provider.id)["total_bookings"] == 4
        assert statistics.booking_totals(db, provider_id=other.id)["total_bookings"] == 0

        dashboard = statistics.provider_dashboard(db, caller_for(provider))
        assert dashboard["total_packages"] == 1
        assert dashboard["active_bookings"] == 1
        assert dashboard["pending_bookings"] == 1

    def test_monthly_buckets(self, db, tourist, package, make_booking):
        make_booking(tourist, package, status=models.STATUS_COMPLETED, participants=2,
                     created_at=datetime(2026, 3, 2, 9, 30))
        make_booking(tourist, package, status=models.STATUS_PENDING,
                     created_at=datetime(2026, 3, 10))
        make_booking(tourist, package, status=models.STATUS_CONFIRMED,
                     created_at=datetime(2025, 12, 31, 23, 59))
        # Outside the trailing window
        make_booking(tourist, package, status=models.STATUS_COMPLETED,
                     created_at=datetime(2025, 3, 31))

        months = {m["month"]: m for m in statistics.monthly_booking_trends(db, now=datetime(2026, 3, 15))}
        assert months["2026-03"]["booking_count"] == 2
        assert months["2026-03"]["revenue"] == Decimal("3000.00")
        assert months["2025-12"]["booking_count"] == 1
        assert months["2025-12"]["revenue"] == Decimal("1500.00")
        assert "2025-03" not in months
        assert sum(m["booking_count"] for m in months.values()) == 3

    def test_popular_by_bookings(self, db, tourist, provider, package, make_package, make_booking):
        quiet = make_package(provider, name="Quiet Cove", activity_type="Snorkeling")
        make_booking(tourist, package)
        make_booking(tourist, package, status=models.STATUS_CONFIRMED)
        make_booking(tourist, quiet)

        ranked = statistics.popular_packages(db)
        assert [row["package_id"] for row in ranked] == [package.id, quiet.id]
        assert ranked[0]["booking_count"] == 2
        assert ranked[0]["total_revenue"] == Decimal("1500.00")

    def test_popular_rejects_unknown_ranking(self, db):
        with pytest.raises(ValidationError):
            statistics.popular_packages(db, by="revenue")

    def test_admin_only(self, db, provider):
        with pytest.raises(AuthorizationError):
            statistics.admin_booking_stats(db, caller_for(provider))


class TestReviewRollups:
    def test_by_activity_type(self, db, make_tourist, provider, package, make_package, make_booking):
        reef = make_package(provider, name="Reef", activity_type="Snorkeling")
        for target, rating in ((package, 5), (package, 4), (reef, 3)):
            user = make_tourist()
            booking = make_booking(user, target, status=models.STATUS_COMPLETED)
            review_service.create_review(db, caller_for(user), booking.id, rating)

        rows = {row["activity_type"]: row for row in statistics.review_stats_by_activity_type(db)}
        assert rows["Island Hopping"]["review_count"] == 2
        assert rows["Island Hopping"]["average_rating"] == 4.5
        assert rows["Snorkeling"]["rating_breakdown"][3] == 1

        overall = statistics.review_statistics(db)
        assert overall["total_reviews"] == 3
        assert overall["average_rating"] == 4.0

        top = statistics.popular_packages(db, by="reviews")
        assert top[0]["package_id"] == package.id
        assert top[0]["review_count"] == 2


class TestTouristDemographics:
    @pytest.fixture
    def register(self, db, make_tourist):
        """Tourist profile with the given gender, age and registration time"""
        def _register(gender=None, age=None, created_at=None):
            profile = make_tourist().tourist
            profile.gender = gender
            profile.age = age
            profile.created_at = created_at
            db.commit()
            return profile
        return _register

    def test_empty_window_is_zero_filled(self, db, admin):
        months = statistics.monthly_tourist_demographics(db, caller_for(admin), now=datetime(2026, 3, 15))
        assert [m["month"] for m in months][:2] == ["2025-04", "2025-05"]
        assert len(months) == 12
        assert months[-1]["label"] == "Mar 2026"
        for month in months:
            assert month["total"] == 0
            assert month["gender"] == {gender: 0 for gender in statistics.GENDERS}
            assert month["age"] == {bucket: 0 for bucket in statistics.AGE_BUCKETS}

    def test_counts_by_month_gender_and_age(self, db, admin, register):
        register("Female", 29, datetime(2026, 3, 1, 8, 0))
        register("male", 12, datetime(2026, 3, 20))
        register(None, None, datetime(2026, 3, 31, 23, 59))
        register("Nonbinary", 61, datetime(2026, 1, 5))
        # Outside the trailing window
        register("Female", 40, datetime(2025, 3, 31))

        months = {
            m["month"]: m
            for m in statistics.monthly_tourist_demographics(db, caller_for(admin), now=datetime(2026, 3, 31))
        }
        march = months["2026-03"]
        assert march["total"] == 3
        assert march["gender"] == {"Male": 1, "Female": 1, "Other": 0, "Unspecified": 1}
        assert march["age"]["25-34"] == 1
        assert march["age"]["0-12"] == 1
        assert march["age"]["Unknown"] == 1

        january = months["2026-01"]
        assert january["gender"]["Other"] == 1
        assert january["age"]["55+"] == 1
        assert "2025-03" not in months
        assert sum(m["total"] for m in months.values()) == 4

    def test_shorter_window(self, db, admin):
        months = statistics.monthly_tourist_demographics(db, caller_for(admin), months=3, now=datetime(2026, 1, 10))
        assert [m["month"] for m in months] == ["2025-11", "2025-12", "2026-01"]

    @pytest.mark.parametrize("age,bucket", [
        (0, "0-12"),
        (12, "0-12"),
        (13, "13-17"),
        (17, "13-17"),
        (18, "18-24"),
        (24, "18-24"),
        (25, "25-34"),
        (44, "35-44"),
        (54, "45-54"),
        (55, "55+"),
        (90, "55+"),
        (None, "Unknown"),
    ])
    def test_age_bucket_edges(self, age, bucket):
        assert statistics.age_bucket(age) == bucket

    @pytest.mark.parametrize("gender,bucket", [
        ("Male", "Male"),
        ("FEMALE", "Female"),
        (" other ", "Other"),
        ("prefer not to say", "Other"),
        ("", "Unspecified"),
        ("   ", "Unspecified"),
        (None, "Unspecified"),
    ])
    def test_gender_bucket(self, gender, bucket):
        assert statistics.gender_bucket(gender) == bucket

    @pytest.mark.parametrize("role", [models.ROLE_ACTIVITY_PROVIDER, models.ROLE_ENTRY_PROVIDER, models.ROLE_TOURIST])
    def test_admin_only(self, db, make_user, role):
        with pytest.raises(AuthorizationError):
            statistics.monthly_tourist_demographics(db, caller_for(make_user(role)))
