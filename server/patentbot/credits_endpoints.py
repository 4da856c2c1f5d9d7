# Subscription status and free-trial search credits

from datetime import datetime, timedelta
import logging

import stripe
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from patentbot.internal.auth import is_admin
from patentbot.internal.billing import (
    configure_stripe,
    find_customer_id,
    from_timestamp,
    log_step,
    upsert_subscription,
)
from patentbot.internal.settings import get_settings
from patentbot.models import Subscription, UserSearchCredits
from patentbot.schemas import AuthUser

logger = logging.getLogger(__name__)

ADMIN_SEARCHES_REMAINING = 999999
ADMIN_PERIOD_DAYS = 365

ADMIN_CREDITS_RESPONSE = {
    "success": True,
    "has_subscription": True,
    "free_searches_remaining": ADMIN_SEARCHES_REMAINING,
    "searches_used": 0,
    "can_search": True,
    "subscription_status": "admin",
    "plan": "admin",
}


def _active_subscription(db: Session, user_id: str):
    return db.scalar(
        select(Subscription).where(Subscription.user_id == user_id, Subscription.status == "active")
    )


def _get_or_create_credits(db: Session, user_id: str) -> UserSearchCredits:
    credits = db.scalar(select(UserSearchCredits).where(UserSearchCredits.user_id == user_id))
    if credits is None:
        credits = UserSearchCredits(
            user_id=user_id,
            searches_used=0,
            free_searches_remaining=get_settings().free_searches_limit,
        )
        db.add(credits)
        db.commit()
        db.refresh(credits)
    return credits


def check_search_credits(user: AuthUser, db: Session):
    """
    Report whether the user may run another prior art search

    Admins always can; subscribers always can; everyone else while free
    searches remain.
    """
    if is_admin(db, user):
        logger.info(f"Admin user detected - granting unlimited searches ({user.id})")
        return dict(ADMIN_CREDITS_RESPONSE)

    subscription = _active_subscription(db, user.id)
    has_subscription = subscription is not None
    credits = _get_or_create_credits(db, user.id)

    return {
        "success": True,
        "has_subscription": has_subscription,
        "free_searches_remaining": credits.free_searches_remaining,
        "searches_used": credits.searches_used,
        "can_search": has_subscription or credits.free_searches_remaining > 0,
        "subscription_status": subscription.status if subscription else "inactive",
        "plan": subscription.plan if subscription else "free_trial",
    }


def use_search_credit(user: AuthUser, db: Session):
    """Charge one free search, or answer 402 when the trial is used up"""
    if is_admin(db, user):
        return {"success": True, "free_searches_remaining": "unlimited", "charged": False}

    if _active_subscription(db, user.id):
        return {"success": True, "free_searches_remaining": "unlimited", "charged": False}

    credits = _get_or_create_credits(db, user.id)
    if credits.free_searches_remaining <= 0:
        logger.info(f"Search blocked for {user.id}: no credits left")
        return JSONResponse(
            status_code=402,
            content={
                "success": False,
                "detail": "No search credits remaining. Please subscribe to continue.",
                "requires_subscription": True,
            },
        )

    credits.searches_used += 1
    credits.free_searches_remaining -= 1
    credits.last_search_at = datetime.utcnow()
    db.commit()
    logger.info(f"Search credit used by {user.id}, {credits.free_searches_remaining} remaining")

    return {"success": True, "free_searches_remaining": credits.free_searches_remaining, "charged": True}


def check_subscription(user: AuthUser, db: Session):
    """
    Sync the local subscription row with the payment processor

    Admins (role table only, no email bypass) get a year-long admin plan.
    """
    tag = "CHECK-SUBSCRIPTION"
    log_step(tag, "Function started")
    configure_stripe()
    log_step(tag, "User authenticated", {"userId": user.id, "email": user.email})

    if is_admin(db, user, allow_email=False):
        log_step(tag, "Admin user detected, granting full access")
        now = datetime.utcnow()
        period_end = now + timedelta(days=ADMIN_PERIOD_DAYS)
        upsert_subscription(
            db, user.id,
            status="active",
            plan="admin",
            current_period_start=now,
            current_period_end=period_end,
            stripe_subscription_id=None,
        )
        db.commit()
        return {
            "hasSubscription": True,
            "subscribed": True,
            "plan": "admin",
            "current_period_end": period_end.isoformat(),
        }

    try:
        customer_id = find_customer_id(user.email)
        active = None
        if customer_id:
            log_step(tag, "Found Stripe customer", {"customerId": customer_id})
            subscriptions = stripe.Subscription.list(customer=customer_id, status="active", limit=1)
            active = subscriptions.data[0] if subscriptions.data else None
    except stripe.StripeError as e:
        log_step(tag, "ERROR in check-subscription", {"message": str(e)})
        raise HTTPException(status_code=500, detail=str(e))

    if active is None:
        log_step(tag, "No active subscription found")
        upsert_subscription(
            db, user.id,
            status="inactive",
            plan="free",
            current_period_start=None,
            current_period_end=None,
            stripe_subscription_id=None,
        )
        db.commit()
        return {"hasSubscription": False, "subscribed": False, "plan": "free", "current_period_end": None}

    period_start = from_timestamp(active["current_period_start"])
    period_end = from_timestamp(active["current_period_end"])
    log_step(tag, "Active subscription found", {"subscriptionId": active.id, "endDate": str(period_end)})

    upsert_subscription(
        db, user.id,
        status="active",
        plan="check_and_see",
        current_period_start=period_start,
        current_period_end=period_end,
        stripe_subscription_id=active.id,
    )
    db.commit()
    log_step(tag, "Updated database with subscription info", {"subscribed": True, "plan": "check_and_see"})

    return {
        "hasSubscription": True,
        "subscribed": True,
        "plan": "check_and_see",
        "current_period_end": period_end.isoformat() if period_end else None,
    }
