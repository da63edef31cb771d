from datetime import timedelta

from conftest import TestSessionLocal
from app.billing import resets, scheduler
from app.billing.resets import apply_period_reset, is_period_expired, reset_monthly_quotas
from app.billing.timeutils import ensure_utc, now_utc
from app.models.subscription import Subscription
from app.models.user import User


def _expired(current):
    return {
        "current_period_start": current - timedelta(days=35),
        "current_period_end": current - timedelta(days=5),
    }


def test_apply_period_reset_opens_new_period(make_user):
    current = now_utc()
    user = make_user(plan="PRO", status="active", used=12.0, **_expired(current))
    assert is_period_expired(user, current)
    assert apply_period_reset(user, current, 30)
    assert user.analysis_used_this_month == 0.0
    assert user.current_period_start == current
    assert user.current_period_end == current + timedelta(days=30)


def test_apply_period_reset_leaves_running_period_alone(make_user):
    user = make_user(plan="PRO", status="active", used=12.0)
    assert not apply_period_reset(user, now_utc())
    assert user.analysis_used_this_month == 12.0


def test_reset_monthly_quotas_only_touches_expired_billable_users(db, make_user):
    current = now_utc()
    make_user(user_id="expired", email="a@example.com", plan="PRO", status="active", used=9.0, **_expired(current))
    make_user(user_id="running", email="b@example.com", plan="PRO", status="active", used=9.0)
    make_user(user_id="canceled", email="c@example.com", plan="FREE", status="canceled", used=9.0, **_expired(current))
    make_user(user_id="past-due", email="d@example.com", plan="SMART", status="past_due", used=3.0, **_expired(current))
    db.add(Subscription(user_id="expired", plan_id="PRO", status="active", analyses_used_current_month=9.0))
    db.commit()

    report = reset_monthly_quotas(db, current)

    assert report.reset == 2
    assert report.errors == 0
    db.expire_all()
    assert db.get(User, "expired").analysis_used_this_month == 0.0
    assert db.get(User, "past-due").analysis_used_this_month == 0.0
    assert db.get(User, "running").analysis_used_this_month == 9.0
    assert db.get(User, "canceled").analysis_used_this_month == 9.0
    assert ensure_utc(db.get(User, "expired").current_period_end) > current
    record = db.query(Subscription).filter_by(user_id="expired").one()
    assert record.analyses_used_current_month == 0.0


def test_reset_all_users_runs_the_reset_in_a_fresh_session(db, make_user, monkeypatch):
    current = now_utc()
    make_user(plan="SMART", status="active", used=6.0, **_expired(current))
    monkeypatch.setattr(scheduler, "SessionLocal", TestSessionLocal)

    report = scheduler.reset_all_users()

    assert report.reset == 1
    db.expire_all()
    assert db.get(User, "user-1").analysis_used_this_month == 0.0


def test_reset_sweep_continues_after_a_failing_user(db, make_user, monkeypatch):
    current = now_utc()
    make_user(user_id="broken", email="a@example.com", plan="PRO", status="active", used=9.0, **_expired(current))
    make_user(user_id="healthy", email="b@example.com", plan="PRO", status="active", used=7.0, **_expired(current))
    real_lookup = resets.get_subscription_record

    def flaky_lookup(session, user_id):
        if user_id == "broken":
            raise RuntimeError("row locked")
        return real_lookup(session, user_id)

    monkeypatch.setattr(resets, "get_subscription_record", flaky_lookup)

    report = reset_monthly_quotas(db, current)

    assert report.reset == 1
    assert report.errors == 1
    db.expire_all()
    assert db.get(User, "broken").analysis_used_this_month == 9.0
    assert db.get(User, "healthy").analysis_used_this_month == 0.0
