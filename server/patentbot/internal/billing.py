"""
Payment processor helpers

Wraps the handful of Stripe calls the payment routes share: API key setup,
customer lookup, the subscription price, and timestamp conversion.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import stripe
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from patentbot.internal.settings import get_settings
from patentbot.models import Subscription

logger = logging.getLogger(__name__)

# Amounts in cents
CHECK_AND_SEE_PRICE_CENTS = 999
PATENT_APPLICATION_PRICE_CENTS = 100000

CHECK_AND_SEE_PRODUCT_NAME = "PatentBot Check & See"
PATENT_APPLICATION_PRODUCT_NAME = "Patent Application Filing"

STRIPE_API_VERSION = "2023-10-16"


def log_step(tag: str, step: str, details: Optional[dict] = None) -> None:
    """Log one step of a payment flow as "[TAG] step - {details}" """
    suffix = f" - {details}" if details else ""
    logger.info(f"[{tag}] {step}{suffix}")


def configure_stripe() -> None:
    """Set the module-level API key, failing with 500 when it is missing"""
    secret_key = get_settings().stripe_secret_key
    if not secret_key:
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY is not set")
    stripe.api_key = secret_key
    stripe.api_version = STRIPE_API_VERSION


def find_customer_id(email: str) -> Optional[str]:
    customers = stripe.Customer.list(email=email, limit=1)
    if customers.data:
        return customers.data[0].id
    return None


def get_or_create_customer_id(email: str, user_id: str, tag: str) -> str:
    customer_id = find_customer_id(email)
    if customer_id:
        log_step(tag, "Existing customer found", {"customerId": customer_id})
        return customer_id

    customer = stripe.Customer.create(email=email, metadata={"user_id": user_id})
    log_step(tag, "New customer created", {"customerId": customer.id})
    return customer.id


def resolve_subscription_price_id(tag: str = "CREATE-CHECKOUT") -> str:
    """
    Find or create the monthly Check & See price

    1. Find the product by name, creating it when absent
    2. Reuse an active USD monthly price of CHECK_AND_SEE_PRICE_CENTS on that product
    3. Otherwise create the price
    """
    products = stripe.Product.list(active=True, limit=100)
    product = next((p for p in products.data if p.name == CHECK_AND_SEE_PRODUCT_NAME), None)

    if product is None:
        product = stripe.Product.create(
            name=CHECK_AND_SEE_PRODUCT_NAME,
            description="Unlimited prior patent searches. Cancel anytime.",
            metadata={"app": "patentbot"},
        )
        log_step(tag, "Created PatentBot product", {"productId": product.id})
    else:
        log_step(tag, "Found existing PatentBot product", {"productId": product.id})

    prices = stripe.Price.list(product=product.id, active=True, limit=100)
    for price in prices.data:
        recurring = price.get("recurring")
        if (
            price.currency == "usd"
            and price.unit_amount == CHECK_AND_SEE_PRICE_CENTS
            and recurring
            and recurring.get("interval") == "month"
        ):
            log_step(tag, "Found existing PatentBot price", {"priceId": price.id})
            return price.id

    created = stripe.Price.create(
        product=product.id,
        currency="usd",
        unit_amount=CHECK_AND_SEE_PRICE_CENTS,
        recurring={"interval": "month"},
        metadata={"app": "patentbot"},
    )
    log_step(tag, "Created PatentBot price", {"productId": product.id, "priceId": created.id})
    return created.id


def return_url() -> str:
    return f"{get_settings().app_url}/payment/return?session_id={{CHECKOUT_SESSION_ID}}"


def from_timestamp(value: Optional[Any]) -> Optional[datetime]:
    """Stripe epoch seconds to a naive UTC datetime"""
    if value is None:
        return None
    return datetime.utcfromtimestamp(int(value))


def field(obj: Any, key: str, default: Any = None) -> Any:
    """
    Read a key from a Stripe object or a plain dict

    Expanded fields are objects while unexpanded ones are ids, and webhook
    payloads are plain dicts, so attribute access is not always safe.
    """
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, IndexError):
        return default
    return default if value is None else value


def object_id(value: Any) -> Optional[str]:
    """Id of an expandable field that may be an id string or an expanded object"""
    if value is None or isinstance(value, str):
        return value
    return field(value, "id")


def upsert_subscription(db: Session, user_id: str, **values) -> Subscription:
    """Update the user's subscription row in place, creating it first if needed"""
    subscription = db.scalar(select(Subscription).where(Subscription.user_id == user_id))
    if subscription is None:
        subscription = Subscription(user_id=user_id)
        db.add(subscription)
    for key, value in values.items():
        setattr(subscription, key, value)
    subscription.updated_at = datetime.utcnow()
    return subscription
