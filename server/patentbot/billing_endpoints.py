# Payment processor endpoints: checkout sessions, payment verification and webhooks

from datetime import datetime, timedelta
import json
import logging

import stripe
from fastapi import HTTPException, Request
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from patentbot.internal.billing import (
    CHECK_AND_SEE_PRICE_CENTS,
    PATENT_APPLICATION_PRICE_CENTS,
    PATENT_APPLICATION_PRODUCT_NAME,
    configure_stripe,
    field,
    from_timestamp,
    get_or_create_customer_id,
    log_step,
    object_id,
    resolve_subscription_price_id,
    return_url,
    upsert_subscription,
)
from patentbot.internal.settings import get_settings
from patentbot.models import ApplicationPayment, PatentSession, PaymentTransaction, Subscription
from patentbot.schemas import AuthUser, CheckoutRequest, PaymentRequest, VerifyPaymentRequest

logger = logging.getLogger(__name__)

SUBSCRIPTION_PERIOD_DAYS = 30


def _record(db: Session, tag: str, *rows) -> bool:
    """Insert bookkeeping rows; a failure is logged and the payment flow continues"""
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_step(tag, "Error recording transaction", {"error": str(e)})
        return False
    log_step(tag, "Transaction recorded successfully")
    return True


def create_checkout(request: CheckoutRequest, user: AuthUser, db: Session):
    """
    Start an embedded Check & See subscription checkout

    Returns:
        {"clientSecret": ...} for the embedded checkout widget
    """
    tag = "CREATE-CHECKOUT"
    log_step(tag, "Function started")
    configure_stripe()
    log_step(tag, "User authenticated", {"userId": user.id, "email": user.email})
    log_step(tag, "Request parsed", {"planType": request.plan_type})

    try:
        price_id = resolve_subscription_price_id(tag)
        log_step(tag, "Resolved subscription price", {"priceId": price_id, "planType": request.plan_type})

        customer_id = get_or_create_customer_id(user.email, user.id, tag)

        session = stripe.checkout.Session.create(
            customer=customer_id,
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            ui_mode="embedded",
            return_url=return_url(),
            metadata={"user_id": user.id, "plan_type": request.plan_type},
        )
    except stripe.StripeError as e:
        log_step(tag, "ERROR in create-checkout", {"message": str(e)})
        raise HTTPException(status_code=500, detail=str(e))

    log_step(tag, "Checkout session created", {"sessionId": session.id})

    _record(db, tag, PaymentTransaction(
        user_id=user.id,
        stripe_session_id=session.id,
        amount=CHECK_AND_SEE_PRICE_CENTS,
        currency="usd",
        status="pending",
        payment_type="subscription",
        description="Check & See Subscription",
        transaction_metadata={"price_id": price_id, "plan_type": request.plan_type},
    ))

    return {"clientSecret": session.client_secret}


def create_payment(request: PaymentRequest, user: AuthUser, db: Session):
    """Start an embedded one-time payment for filing one patent application"""
    tag = "CREATE-PAYMENT"
    log_step(tag, "Function started")
    configure_stripe()

    if not request.application_id:
        raise HTTPException(status_code=400, detail="Application ID is required")
    log_step(tag, "Request parsed", {"applicationId": request.application_id})

    try:
        customer_id = get_or_create_customer_id(user.email, user.id, tag)
        session = stripe.checkout.Session.create(
            customer=customer_id,
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": PATENT_APPLICATION_PRODUCT_NAME,
                        "description": "Complete AI-guided patent application with USPTO-ready formatting",
                    },
                    "unit_amount": PATENT_APPLICATION_PRICE_CENTS,
                },
                "quantity": 1,
            }],
            mode="payment",
            ui_mode="embedded",
            return_url=return_url(),
            metadata={"user_id": user.id, "application_id": request.application_id},
        )
    except stripe.StripeError as e:
        log_step(tag, "ERROR in create-payment", {"message": str(e)})
        raise HTTPException(status_code=500, detail=str(e))

    log_step(tag, "Payment session created", {"sessionId": session.id})

    _record(
        db, tag,
        PaymentTransaction(
            user_id=user.id,
            application_id=request.application_id,
            stripe_session_id=session.id,
            amount=PATENT_APPLICATION_PRICE_CENTS,
            currency="usd",
            status="pending",
            payment_type="one_time",
            description=PATENT_APPLICATION_PRODUCT_NAME,
            transaction_metadata={"stripe_customer_id": customer_id},
        ),
        ApplicationPayment(
            user_id=user.id,
            application_id=request.application_id,
            stripe_session_id=session.id,
            amount=PATENT_APPLICATION_PRICE_CENTS,
            currency="usd",
            status="pending",
        ),
    )

    return {"clientSecret": session.client_secret}


# ===================================================================
# Verification after the embedded checkout returns
# ===================================================================

def verify_payment(request: VerifyPaymentRequest, db: Session):
    """
    Confirm a finished checkout session and persist its outcome

    Subscription sessions upsert the user's subscription; payment sessions
    upsert the application payment and complete the patent session once paid.
    """
    tag = "VERIFY-PAYMENT"
    configure_stripe()

    if not request.session_id:
        raise HTTPException(status_code=400, detail="Session ID is required")
    log_step(tag, "Verifying payment session", {"sessionId": request.session_id})

    try:
        session = stripe.checkout.Session.retrieve(
            request.session_id, expand=["line_items", "subscription"]
        )
    except stripe.StripeError as e:
        log_step(tag, "Error verifying payment", {"error": str(e)})
        raise HTTPException(status_code=400, detail=str(e))

    mode = field(session, "mode")
    payment_status = field(session, "payment_status")
    metadata = field(session, "metadata", {})
    log_step(tag, "Session retrieved", {"id": session.id, "mode": mode, "status": payment_status})

    user_id = field(metadata, "user_id")
    if not user_id:
        raise HTTPException(status_code=400, detail="User not found")

    paid = payment_status == "paid"
    payment_intent_id = object_id(field(session, "payment_intent"))
    currency = field(session, "currency", "usd")

    if mode == "subscription":
        subscription = field(session, "subscription")
        if not subscription:
            log_step(tag, "Subscription session has no subscription", {"id": session.id, "status": payment_status})
            raise HTTPException(status_code=400, detail="No subscription found in session")
        subscription_id = object_id(subscription)
        status = field(subscription, "status", "active")
        log_step(tag, "Processing subscription", {"id": subscription_id, "status": status, "userId": user_id})

        upsert_subscription(
            db, user_id,
            stripe_subscription_id=subscription_id,
            status=status,
            plan=field(metadata, "plan_type", "check_and_see"),
            current_period_start=from_timestamp(field(subscription, "current_period_start")),
            current_period_end=from_timestamp(field(subscription, "current_period_end")),
        )
        db.add(PaymentTransaction(
            user_id=user_id,
            stripe_session_id=session.id,
            stripe_payment_intent_id=payment_intent_id,
            amount=field(session, "amount_total", CHECK_AND_SEE_PRICE_CENTS),
            currency=currency,
            status="completed" if paid else "pending",
            payment_type="subscription",
            description="Check & See Subscription",
            transaction_metadata={"subscription_id": subscription_id},
        ))
        db.commit()

        return {
            "success": True,
            "type": "subscription",
            "subscription": {"id": subscription_id, "status": status},
        }

    if mode == "payment":
        application_id = field(metadata, "application_id")
        log_step(tag, "Processing one-time payment", {
            "applicationId": application_id, "paymentIntentId": payment_intent_id, "status": payment_status,
        })
        if not application_id:
            raise HTTPException(status_code=400, detail="No application ID found in session metadata")

        amount = field(session, "amount_total", PATENT_APPLICATION_PRICE_CENTS)
        payment = db.scalar(
            select(ApplicationPayment).where(ApplicationPayment.stripe_session_id == session.id)
        )
        if payment is None:
            payment = ApplicationPayment(stripe_session_id=session.id)
            db.add(payment)
        payment.application_id = application_id
        payment.user_id = user_id
        payment.stripe_payment_id = payment_intent_id
        payment.amount = amount
        payment.currency = currency
        payment.status = "completed" if paid else "pending"
        payment.updated_at = datetime.utcnow()

        db.add(PaymentTransaction(
            user_id=user_id,
            application_id=application_id,
            stripe_session_id=session.id,
            stripe_payment_intent_id=payment_intent_id,
            amount=amount,
            currency=currency,
            status="completed" if paid else "pending",
            payment_type="patent_application",
            description="Patent Application Payment",
            transaction_metadata={"application_id": application_id},
        ))

        if paid:
            db.execute(
                update(PatentSession)
                .where(PatentSession.id == application_id)
                .values(status="completed")
            )
        db.commit()

        return {
            "success": True,
            "type": "payment",
            "payment": {"id": payment_intent_id, "status": payment_status, "applicationId": application_id},
        }

    raise HTTPException(status_code=400, detail=f"Unknown session mode: {mode}")


# ===================================================================
# Webhooks
# ===================================================================

async def stripe_webhook(request: Request, db: Session):
    """
    Receive processor events

    The signature header is always required. Without STRIPE_WEBHOOK_SECRET the
    payload is trusted as-is, which is only acceptable in development.
    """
    tag = "STRIPE-WEBHOOK"
    log_step(tag, "Webhook received")
    configure_stripe()

    body = (await request.body()).decode("utf-8")
    signature = request.headers.get("stripe-signature")
    if not signature:
        log_step(tag, "Missing stripe-signature header")
        raise HTTPException(status_code=400, detail="Missing Stripe signature")

    webhook_secret = get_settings().stripe_webhook_secret
    if webhook_secret:
        try:
            event = stripe.Webhook.construct_event(body, signature, webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            log_step(tag, "Webhook signature verification failed", {"error": str(e)})
            raise HTTPException(status_code=400, detail=f"Webhook signature verification failed: {e}")
        log_step(tag, "Webhook signature verified")
    else:
        try:
            event = json.loads(body)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid webhook payload: {e}")
        log_step(tag, "WARNING: Webhook signature not verified - set STRIPE_WEBHOOK_SECRET in production")

    event_type = field(event, "type")
    obj = field(field(event, "data", {}), "object", {})
    log_step(tag, "Processing event", {"type": event_type, "id": field(event, "id")})

    if event_type == "checkout.session.completed":
        _handle_checkout_completed(db, obj, tag)
    elif event_type in (
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    ):
        _handle_subscription_change(db, obj, event_type, tag)
    elif event_type == "invoice.payment_succeeded":
        _set_status_for_invoice(db, obj, "active", tag)
    elif event_type == "invoice.payment_failed":
        _set_status_for_invoice(db, obj, "past_due", tag)
    else:
        log_step(tag, "Unhandled event type", {"type": event_type})

    return {"received": True}


def _handle_checkout_completed(db: Session, session, tag: str) -> None:
    session_id = field(session, "id")
    payment_intent_id = object_id(field(session, "payment_intent"))
    metadata = field(session, "metadata", {})
    mode = field(session, "mode")
    log_step(tag, "Checkout session completed", {"sessionId": session_id})

    db.execute(
        update(PaymentTransaction)
        .where(PaymentTransaction.stripe_session_id == session_id)
        .values(status="completed", stripe_payment_intent_id=payment_intent_id, updated_at=datetime.utcnow())
    )

    user_id = field(metadata, "user_id")
    if mode == "subscription" and user_id:
        plan_type = field(metadata, "plan_type", "check_and_see")
        now = datetime.utcnow()
        upsert_subscription(
            db, user_id,
            status="active",
            plan=plan_type,
            stripe_subscription_id=object_id(field(session, "subscription")),
            current_period_start=now,
            current_period_end=now + timedelta(days=SUBSCRIPTION_PERIOD_DAYS),
        )
        log_step(tag, "Subscription updated successfully", {"userId": user_id, "planType": plan_type})

    application_id = field(metadata, "application_id")
    if mode == "payment" and application_id:
        db.execute(
            update(ApplicationPayment)
            .where(ApplicationPayment.stripe_session_id == session_id)
            .values(status="completed", stripe_payment_id=payment_intent_id, updated_at=datetime.utcnow())
        )
        log_step(tag, "Application payment completed", {"applicationId": application_id})

    db.commit()


def _handle_subscription_change(db: Session, subscription, event_type: str, tag: str) -> None:
    subscription_id = field(subscription, "id")
    log_step(tag, "Subscription event", {"type": event_type, "subId": subscription_id})

    existing = db.scalar(
        select(Subscription).where(Subscription.stripe_subscription_id == subscription_id)
    )
    if existing is None:
        return

    if event_type == "customer.subscription.deleted":
        new_status = "cancelled"
    else:
        new_status = field(subscription, "status", existing.status)

    existing.status = new_status
    existing.current_period_start = from_timestamp(field(subscription, "current_period_start"))
    existing.current_period_end = from_timestamp(field(subscription, "current_period_end"))
    existing.updated_at = datetime.utcnow()
    db.commit()
    log_step(tag, "Subscription status updated", {"status": new_status})


def _set_status_for_invoice(db: Session, invoice, status: str, tag: str) -> None:
    subscription_id = object_id(field(invoice, "subscription"))
    log_step(tag, f"Invoice {'payment succeeded' if status == 'active' else 'payment failed'}", {
        "invoiceId": field(invoice, "id"), "subscriptionId": subscription_id,
    })
    if not subscription_id:
        return

    db.execute(
        update(Subscription)
        .where(Subscription.stripe_subscription_id == subscription_id)
        .values(status=status, updated_at=datetime.utcnow())
    )
    db.commit()
