from fastapi import FastAPI, Depends, HTTPException, Request, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from fastapi.concurrency import run_in_threadpool
from contextlib import asynccontextmanager
from sqlalchemy.orm import Session
from datetime import datetime, timezone
import logging
from typing import List, Optional
import stripe

# Database imports
from app.database import get_db, engine
from app import models

# Authentication and security imports
from app.auth.security import get_current_user, verify_cron_secret

# Models
from app.models.user import User
from app.models.product import Product, ProductAnalysis

# Services
from app.services.stripe_service import stripe_service, stripe_field
from app.services.openai_service import openai_service, AnalysisUnavailable
from app.services.image_service import image_service
from app.services.identity_service import delete_auth_user

# Billing system
from app.billing.scheduler import start_scheduler
from app.billing.enforce import require_remaining_quota
from app.billing.errors import BillingError
from app.billing.plans import (
    PAID_PLAN_IDS, PLAN_QUOTAS, normalize_plan_id, get_stripe_price_id, stripe_price_ids,
)
from app.billing.quota import QuotaInfo, get_user_quota_info, increment_analysis_count, is_valid_amount
from app.billing.assigns import change_plan, mark_canceling, get_subscription_record, upsert_subscription_record
from app.billing.sync import fetch_active_snapshot, apply_snapshot, sync_checkout_session, subscription_price_id
from app.billing.resets import reset_monthly_quotas
from app.billing.webhooks import handle_stripe_event

# Analysis
from app.analysis.competition import CompetitionEstimateError, estimate_competition, generate_etsy_queries
from app.analysis.launch_potential import calculate_launch_potential_score
from app.analysis.time_to_first_sale import (
    estimate_time_to_first_sale_from_score, estimate_time_to_first_sale_with_ads,
)

# Pydantic schemas
from app.models.schemas import (
    CheckoutRequest, UpgradeRequest, SyncSessionRequest, DeductCreditsRequest,
    TestIncrementRequest, AnalyzeRequest, CompetitionEstimateRequest, GenerateImagesRequest, QuotaInfoOut,
    AnalysisOut,
)

# Config
from app.config import settings

# Setup Logger
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("etsmart")

ANALYSIS_COST = 0.5
IMAGE_GENERATION_COST = 1.0

# Lifespan events to handle startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Etsmart API starting up...")
    # Create DB tables
    models.Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables created")

    if not stripe_service.configured:
        logger.warning("⚠️ Stripe is not configured. Billing endpoints will answer 500.")

    # Start quota reset scheduler
    scheduler = None
    if settings.enable_scheduler:
        try:
            scheduler = start_scheduler()
            logger.info("✅ Background quota reset scheduler started")
        except Exception as e:
            logger.error(f"Failed to start quota reset scheduler: {e}")

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info("🛑 Etsmart API shutting down...")

# Create FastAPI app with lifespan
app = FastAPI(
    title="Etsmart API",
    description="Etsy product analysis with plan quotas and Stripe subscriptions",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware: front-end origins only
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Stripe-Signature"],
)

# API Routers
billing_router = APIRouter(prefix="/api", tags=["Billing"])
quota_router = APIRouter(prefix="/api", tags=["Quota"])
analysis_router = APIRouter(prefix="/api", tags=["Analysis"])
account_router = APIRouter(prefix="/api/user", tags=["Account"])
debug_router = APIRouter(prefix="/api", tags=["Debug"])
health_router = APIRouter(tags=["Health"])


def _billing_http_error(e: BillingError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


def _require_stripe():
    if not stripe_service.configured:
        raise HTTPException(status_code=500, detail="Stripe is not configured")


def _quota_response(info: QuotaInfo) -> QuotaInfoOut:
    return QuotaInfoOut(**info.to_dict())

# =============================================================================
# BILLING ROUTES
# =============================================================================

@billing_router.post("/create-checkout-session")
def create_checkout_session(payload: CheckoutRequest, current_user: User = Depends(get_current_user)):
    """Start a Stripe Checkout for one of the paid plans"""
    _require_stripe()
    plan_id = normalize_plan_id(payload.planId)
    if plan_id not in PAID_PLAN_IDS:
        raise HTTPException(status_code=400, detail="Invalid plan ID")
    price_id = get_stripe_price_id(plan_id)
    if not price_id:
        raise HTTPException(status_code=500, detail=f"Price ID not configured for plan {plan_id}")

    try:
        session = stripe_service.create_checkout_session(
            price_id=price_id,
            metadata={"user_id": current_user.id, "plan_id": plan_id},
            success_url=f"{settings.site_url}/subscribe/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.site_url}/pricing?canceled=true",
            customer_id=current_user.stripe_customer_id,
            customer_email=current_user.email,
        )
    except stripe.StripeError as e:
        logger.error(f"Checkout session creation failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create checkout session: {e}")

    logger.info(f"Checkout session {stripe_field(session, 'id')} created for user {current_user.id} ({plan_id})")
    return {"sessionId": stripe_field(session, "id"), "url": stripe_field(session, "url")}


@billing_router.post("/upgrade-subscription")
def upgrade_subscription(
    payload: UpgradeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _require_stripe()
    new_plan = normalize_plan_id(payload.newPlan)
    if new_plan not in PAID_PLAN_IDS:
        raise HTTPException(status_code=400, detail="Invalid plan")
    new_price_id = get_stripe_price_id(new_plan)
    if not new_price_id:
        raise HTTPException(status_code=400, detail="Price ID not found for plan")
    if not current_user.email:
        raise HTTPException(status_code=401, detail="Account has no email")

    try:
        customer = stripe_service.find_customer_by_email(current_user.email)
        customer_id = stripe_field(customer, "id") if customer is not None else None
        subscriptions = stripe_service.list_active_subscriptions(customer_id) if customer_id else []

        if not subscriptions:
            # Nothing to prorate against, buy the plan through Checkout
            session = stripe_service.create_checkout_session(
                price_id=new_price_id,
                metadata={"user_id": current_user.id, "plan_id": new_plan, "type": "upgrade"},
                success_url=f"{settings.site_url}/dashboard?upgrade=success&plan={new_plan}",
                cancel_url=f"{settings.site_url}/dashboard?upgrade=cancelled",
                customer_id=customer_id,
                customer_email=current_user.email,
            )
            return {"type": "checkout", "url": stripe_field(session, "url")}

        subscription = subscriptions[0]
        item = stripe_field(stripe_field(subscription, "items"), "data")[0]
        if subscription_price_id(subscription) == new_price_id:
            raise HTTPException(
                status_code=400,
                detail={"error": "Already on this plan", "message": f"You are already subscribed to {new_plan}."},
            )

        stripe_service.update_subscription(stripe_field(subscription, "id"), stripe_field(item, "id"), new_price_id)
    except stripe.StripeError as e:
        logger.error(f"Upgrade to {new_plan} failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Upgrade failed: {e}")

    # Current usage is kept, only the quota grows
    change_plan(current_user, new_plan)
    try:
        upsert_subscription_record(db, current_user, price_id=new_price_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Database update after upgrade failed for user {current_user.id}: {e}")

    quota = PLAN_QUOTAS[new_plan]
    logger.info(f"User {current_user.id} upgraded to {new_plan}")
    return {
        "type": "upgraded",
        "success": True,
        "plan": new_plan,
        "quota": quota,
        "message": f"You are now on the {new_plan} plan with {quota} analyses per month.",
        "prorationApplied": True,
    }


def _find_subscription_id(db: Session, user: User) -> Optional[str]:
    record = get_subscription_record(db, user.id)
    if record is not None and record.stripe_subscription_id:
        return record.stripe_subscription_id
    if user.stripe_subscription_id:
        return user.stripe_subscription_id
    if not user.email:
        return None
    customer = stripe_service.find_customer_by_email(user.email)
    if customer is None:
        return None
    subscriptions = stripe_service.list_active_subscriptions(stripe_field(customer, "id"))
    return stripe_field(subscriptions[0], "id") if subscriptions else None


@billing_router.post("/cancel-subscription")
def cancel_subscription(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Cancel at the end of the paid period; access stays until then"""
    _require_stripe()
    try:
        subscription_id = _find_subscription_id(db, current_user)
        if not subscription_id:
            raise HTTPException(status_code=404, detail="No active subscription found")
        subscription = stripe_service.schedule_cancellation(subscription_id)
    except stripe.StripeError as e:
        logger.error(f"Cancellation failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to cancel subscription: {e}")

    try:
        mark_canceling(current_user, get_subscription_record(db, current_user.id))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Database update after cancellation failed for user {current_user.id}: {e}")

    logger.info(f"Subscription {subscription_id} of user {current_user.id} set to cancel at period end")
    return {
        "success": True,
        "message": "Subscription will be canceled at the end of the current billing period",
        "cancelAt": stripe_field(subscription, "current_period_end") or stripe_field(subscription, "cancel_at"),
    }


@billing_router.post("/subscription/sync-session")
def sync_session(
    payload: SyncSessionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Activate the purchased plan straight from the checkout session, ahead of the webhook"""
    _require_stripe()
    try:
        snapshot = sync_checkout_session(db, current_user, payload.sessionId)
    except BillingError as e:
        raise _billing_http_error(e)
    except stripe.StripeError as e:
        logger.error(f"Session sync failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to sync session: {e}")
    return {"success": True, "subscription": snapshot.to_dict()}


@billing_router.post("/force-sync-subscription")
def force_sync_subscription(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _require_stripe()
    if not current_user.email:
        raise HTTPException(status_code=401, detail="Account has no email")
    try:
        snapshot = fetch_active_snapshot(current_user.email)
    except BillingError as e:
        raise _billing_http_error(e)
    except stripe.StripeError as e:
        logger.error(f"Force sync failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Sync failed: {e}")

    if snapshot is None:
        return {"success": False, "error": "No active subscription found in Stripe", "email": current_user.email}

    subscription = {**snapshot.to_dict(), "used": 0, "remaining": snapshot.quota}
    try:
        apply_snapshot(db, current_user, snapshot, reset_usage=True)
    except Exception as e:
        db.rollback()
        logger.error(f"Database update failed during force sync for user {current_user.id}: {e}")
        return {
            "success": True,
            "warning": "Database update failed but Stripe subscription is active",
            "dbError": str(e),
            "subscription": subscription,
        }
    return {"success": True, "subscription": subscription}


@billing_router.get("/check-stripe-subscription")
def check_stripe_subscription(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _require_stripe()
    if not current_user.email:
        raise HTTPException(status_code=401, detail="Account has no email")
    try:
        snapshot = fetch_active_snapshot(current_user.email)
    except BillingError as e:
        raise _billing_http_error(e)
    except stripe.StripeError as e:
        logger.error(f"Stripe check failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to check subscription: {e}")

    if snapshot is None:
        return {"hasSubscription": False, "message": "No active subscription"}

    try:
        apply_snapshot(db, current_user, snapshot, reset_usage=False)
    except Exception as e:
        db.rollback()
        logger.error(f"Database update failed during Stripe check for user {current_user.id}: {e}")

    used = current_user.analysis_used_this_month or 0.0
    return {
        "hasSubscription": True,
        "plan": snapshot.plan,
        "status": snapshot.status,
        "quota": snapshot.quota,
        "used": used,
        "remaining": max(0, snapshot.quota - used),
        "periodStart": snapshot.period_start.isoformat(),
        "periodEnd": snapshot.period_end.isoformat(),
    }


@billing_router.get("/stripe/get-prices")
def get_prices():
    _require_stripe()
    try:
        prices = stripe_service.list_monthly_prices()
    except stripe.StripeError as e:
        logger.error(f"Failed to list Stripe prices: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch prices: {e}")
    return {"prices": prices, "configured": stripe_price_ids()}


@billing_router.post("/webhooks/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")
    try:
        event = stripe_service.construct_event(payload, signature)
    except BillingError as e:
        raise _billing_http_error(e)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    try:
        # Handlers hit the database and Stripe synchronously
        outcome = await run_in_threadpool(handle_stripe_event, db, event)
    except Exception as e:
        db.rollback()
        logger.error(f"Webhook handler error for {stripe_field(event, 'type')}: {e}")
        raise HTTPException(status_code=500, detail="Webhook handler failed")
    logger.info(f"Webhook {stripe_field(event, 'type')}: {outcome}")
    return {"received": True}

# =============================================================================
# QUOTA ROUTES
# =============================================================================

@quota_router.get("/user/subscription", response_model=QuotaInfoOut)
def get_subscription(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _quota_response(get_user_quota_info(db, current_user.id))


@quota_router.post("/sync-subscription", response_model=QuotaInfoOut)
def sync_subscription(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _quota_response(get_user_quota_info(db, current_user.id))


@quota_router.post("/deduct-credits")
def deduct_credits(
    payload: DeductCreditsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    amount = payload.amount
    if not is_valid_amount(amount):
        raise HTTPException(
            status_code=400,
            detail={"error": "INVALID_AMOUNT", "message": "Amount must be a positive number"},
        )

    quota_info = get_user_quota_info(db, current_user.id)
    if not quota_info.has_access:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "SUBSCRIPTION_REQUIRED",
                "message": "An active subscription is required.",
                "subscriptionStatus": quota_info.status,
            },
        )
    if quota_info.remaining < amount:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "QUOTA_EXCEEDED",
                "message": f"Insufficient quota. You need {amount} credit(s) but only have {quota_info.remaining} remaining.",
                "used": quota_info.used,
                "quota": quota_info.quota,
                "remaining": quota_info.remaining,
                "requires_upgrade": quota_info.requires_upgrade,
            },
        )

    result = increment_analysis_count(db, current_user.id, float(amount))
    if not result.success:
        raise HTTPException(
            status_code=500,
            detail={"error": "DEDUCTION_FAILED", "message": result.error or "Failed to deduct credits"},
        )
    logger.info(f"Deducted {amount} credit(s) from user {current_user.id} ({payload.reason or 'no reason'})")
    return {
        "success": True,
        "used": result.used,
        "quota": result.quota,
        "remaining": result.remaining,
        "amount": amount,
    }


@quota_router.api_route("/cron/reset-quotas", methods=["GET", "POST"], dependencies=[Depends(verify_cron_secret)])
def cron_reset_quotas(db: Session = Depends(get_db)):
    try:
        report = reset_monthly_quotas(db)
    except Exception as e:
        logger.error(f"Quota reset cron failed: {e}")
        raise HTTPException(status_code=500, detail={"error": "INTERNAL_ERROR", "message": str(e)})
    return {
        "success": True,
        "reset": report.reset,
        "errors": report.errors,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

# =============================================================================
# ANALYSIS ROUTES
# =============================================================================

def _competition(payload: AnalyzeRequest, analysis: dict):
    """Competition score for the launch estimate, with the Etsy estimate when one was built."""
    if payload.competitionScore is not None:
        return payload.competitionScore, None
    if payload.competitionResults:
        category = payload.productCategory or payload.niche
        try:
            estimate = estimate_competition(category, payload.competitionResults)
            return estimate.competition_score, estimate
        except CompetitionEstimateError as e:
            logger.warning(f"Competition estimate skipped for '{payload.productTitle}': {e}")
    # No Etsy counts: 250+ competitors counts as a saturated market
    competitors = analysis.get("estimatedCompetitors") or 50
    return min(100.0, float(competitors) * 100 / 250), None


@analysis_router.post("/competition-estimate")
def competition_estimate(payload: CompetitionEstimateRequest):
    """Without result counts, answers with the Etsy queries the caller should run."""
    queries = generate_etsy_queries(payload.productTitle, payload.productType)
    if not queries:
        raise HTTPException(status_code=400, detail="Could not build valid search queries")
    if not payload.resultsCounts:
        return {"success": False, "needsResultsCounts": True, "queries": queries}

    try:
        estimate = estimate_competition(payload.category, payload.resultsCounts, payload.market)
    except CompetitionEstimateError as e:
        raise HTTPException(status_code=400, detail={"error": "INSUFFICIENT_DATA", "message": str(e)})
    return {"success": True, "estimate": estimate.to_dict()}


@analysis_router.post("/ai-analyze")
def ai_analyze(
    payload: AnalyzeRequest,
    current_user: User = Depends(get_current_user),
    quota_info: QuotaInfo = Depends(require_remaining_quota(ANALYSIS_COST)),
    db: Session = Depends(get_db),
):
    try:
        analysis, model = openai_service.analyze_product(
            payload.productTitle, payload.productPrice, payload.niche, payload.productImageUrl,
        )
    except AnalysisUnavailable as e:
        logger.error(f"Analysis unavailable for user {current_user.id}: {e}")
        raise HTTPException(status_code=503, detail={"error": "AI_UNAVAILABLE", "message": str(e)})

    competition_score, competition = _competition(payload, analysis)
    launch = calculate_launch_potential_score(
        competition_score=competition_score,
        niche=payload.niche,
        product_title=payload.productTitle,
        product_type=analysis.get("productType") or payload.productCategory or "",
        product_visual_description=analysis.get("productVisualDescription") or "",
        ai_score=analysis.get("launchPotentialScore"),
        ai_justification=analysis.get("launchPotentialScoreJustification"),
        ai_classification=analysis.get("classification"),
        ai_scoring_breakdown=analysis.get("scoringBreakdown"),
    )
    without_ads = estimate_time_to_first_sale_from_score(launch.score)
    with_ads = estimate_time_to_first_sale_with_ads(without_ads)

    try:
        product = Product(
            user_id=current_user.id,
            url=payload.productUrl,
            source="alibaba" if payload.productUrl and "alibaba" in payload.productUrl else "aliexpress",
            title=payload.productTitle,
            price=payload.productPrice,
            niche=payload.niche,
            image_url=payload.productImageUrl,
        )
        db.add(product)
        db.flush()
        record = ProductAnalysis(
            product_id=product.id,
            user_id=current_user.id,
            verdict=analysis.get("decision"),
            confidence_score=analysis.get("confidenceScore"),
            launch_potential_score=launch.score,
            launch_tier=launch.tier,
            time_to_first_sale_days=without_ads.expected,
            time_to_first_sale_with_ads_days=with_ads.expected,
            summary=analysis.get("finalVerdict"),
            full_analysis=analysis,
        )
        db.add(record)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to store analysis for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail={"error": "INTERNAL_ERROR", "message": "Failed to store analysis"})

    deduction = increment_analysis_count(db, current_user.id, ANALYSIS_COST)
    if deduction.success:
        logger.info(f"Analysis credit deducted for user {current_user.id}: {deduction.used}/{deduction.quota}")
    else:
        logger.error(f"Analysis credit deduction failed for user {current_user.id}: {deduction.error}")

    return {
        "success": True,
        "analysisId": record.id,
        "analysis": analysis,
        "launchPotential": launch.to_dict(),
        "competition": competition.to_dict() if competition else None,
        "timeToFirstSale": {"withoutAds": without_ads.to_dict(), "withAds": with_ads.to_dict()},
        "quota": {"used": deduction.used, "quota": deduction.quota, "remaining": deduction.remaining},
        "model": model,
    }


@analysis_router.get("/analyses", response_model=List[AnalysisOut])
def list_analyses(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(ProductAnalysis)
        .filter(ProductAnalysis.user_id == current_user.id)
        .order_by(ProductAnalysis.created_at.desc(), ProductAnalysis.id.desc())
        .all()
    )


@analysis_router.post("/generate-images")
def generate_images(
    payload: GenerateImagesRequest,
    current_user: User = Depends(get_current_user),
    quota_info: QuotaInfo = Depends(require_remaining_quota(IMAGE_GENERATION_COST)),
    db: Session = Depends(get_db),
):
    if not image_service.configured:
        raise HTTPException(status_code=500, detail="Image generation is not configured")

    source = payload.sourceImage
    image_data_url = source if source.startswith("data:image/") else f"data:image/jpeg;base64,{source}"

    task_ids = []
    for index in range(payload.quantity):
        prompt = image_service.build_prompt(index, payload.customInstructions)
        task_id = image_service.submit(prompt, image_data_url, payload.aspectRatio)
        if task_id:
            task_ids.append(task_id)
    logger.info(f"Submitted {len(task_ids)}/{payload.quantity} image task(s) for user {current_user.id}")

    if not task_ids:
        raise HTTPException(status_code=500, detail="Image submission failed. Please try again.")

    # One credit per generation request, charged once something was queued
    deduction = increment_analysis_count(db, current_user.id, IMAGE_GENERATION_COST)
    if not deduction.success:
        logger.error(f"Image credit deduction failed for user {current_user.id}: {deduction.error}")

    return {"success": True, "imageTaskIds": task_ids}


@analysis_router.get("/check-image-status")
def check_image_status(taskId: Optional[str] = Query(None), current_user: User = Depends(get_current_user)):
    if not taskId:
        raise HTTPException(status_code=400, detail="taskId required")
    if not image_service.configured:
        raise HTTPException(status_code=500, detail="Image generation is not configured")
    return image_service.check_status(taskId)

# =============================================================================
# ACCOUNT ROUTES
# =============================================================================

@account_router.delete("/delete-account")
def delete_account(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user_id = current_user.id
    try:
        db.query(ProductAnalysis).filter(ProductAnalysis.user_id == user_id).delete(synchronize_session=False)
        db.query(Product).filter(Product.user_id == user_id).delete(synchronize_session=False)
        record = get_subscription_record(db, user_id)
        if record is not None:
            db.delete(record)
        db.delete(current_user)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete account {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete account")

    auth_deleted = delete_auth_user(user_id)
    logger.info(f"Account {user_id} deleted (identity record removed: {auth_deleted})")
    return {"success": True, "authDeleted": auth_deleted}

# =============================================================================
# DEBUG ROUTES
# =============================================================================

def require_debug_enabled():
    if not settings.enable_debug_endpoints:
        raise HTTPException(status_code=404, detail="Not found")


@debug_router.get("/debug-subscription", dependencies=[Depends(require_debug_enabled)])
def debug_subscription(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    record = get_subscription_record(db, current_user.id)
    return {
        "user": {
            "id": current_user.id,
            "email": current_user.email,
            "plan": current_user.subscription_plan,
            "status": current_user.subscription_status,
            "used": current_user.analysis_used_this_month,
            "quota": current_user.analysis_quota,
            "periodStart": current_user.current_period_start,
            "periodEnd": current_user.current_period_end,
            "stripeCustomerId": current_user.stripe_customer_id,
            "stripeSubscriptionId": current_user.stripe_subscription_id,
        },
        "subscription": None if record is None else {
            "plan": record.plan_id,
            "status": record.status,
            "used": record.analyses_used_current_month,
            "stripeSubscriptionId": record.stripe_subscription_id,
            "stripePriceId": record.stripe_price_id,
            "cancelAtPeriodEnd": record.cancel_at_period_end,
        },
        "quota": get_user_quota_info(db, current_user.id).to_dict(),
    }


@debug_router.post("/test-increment", dependencies=[Depends(require_debug_enabled)])
def test_increment(
    payload: TestIncrementRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = increment_analysis_count(db, current_user.id, payload.amount)
    return {
        "success": result.success,
        "used": result.used,
        "quota": result.quota,
        "remaining": result.remaining,
        "error": result.error,
    }

# =====================================================================
# HEALTH ROUTES
# =====================================================================

@health_router.get("/health")
def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "stripe": stripe_service.configured,
    }

# Register all routers
app.include_router(billing_router)
app.include_router(quota_router)
app.include_router(analysis_router)
app.include_router(account_router)
app.include_router(debug_router)
app.include_router(health_router)

# =========================
# ERROR HANDLERS
# =========================

@app.exception_handler(404)
async def custom_404_handler(request: Request, exc):
    return JSONResponse(
        status_code=404,
        content={"error": "Not found", "detail": getattr(exc, "detail", "The requested resource was not found")},
    )

@app.exception_handler(500)
async def custom_500_handler(request: Request, exc):
    logger.error(f"Internal Server Error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": getattr(exc, "detail", "An unexpected error occurred.")},
    )

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
