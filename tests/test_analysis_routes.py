"""
Tests for the metered analysis and image routes, plus account deletion.
"""
import pytest

from app import main
from app.models.product import Product, ProductAnalysis
from app.models.subscription import Subscription
from app.models.user import User
from app.services.image_service import image_service
from app.services.openai_service import AnalysisUnavailable, normalize_analysis, openai_service

ANALYZE_BODY = {
    "productTitle": "Ceramic mushroom lamp",
    "productPrice": 12.5,
    "niche": "home-decor",
    "productUrl": "https://www.aliexpress.com/item/1.html",
}


@pytest.fixture
def fake_openai(monkeypatch):
    calls = []

    def analyze_product(title, price, niche, image_url=None):
        calls.append((title, price, niche, image_url))
        return normalize_analysis({
            "decision": "LAUNCH",
            "confidenceScore": 80,
            "estimatedCompetitors": 40,
            "launchPotentialScore": 9,
            "finalVerdict": "Worth launching.",
        }), "gpt-4o"

    monkeypatch.setattr(openai_service, "analyze_product", analyze_product)
    return calls


@pytest.fixture
def fake_images(monkeypatch):
    submitted = []

    def submit(prompt, image_data_url, aspect_ratio="1:1"):
        submitted.append((prompt, image_data_url, aspect_ratio))
        return f"task-{len(submitted)}"

    monkeypatch.setattr(image_service, "api_key", "image-key")
    monkeypatch.setattr(image_service, "submit", submit)
    return submitted


def test_analyze_requires_subscription(client, auth_headers, fake_openai):
    response = client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "SUBSCRIPTION_REQUIRED"
    assert fake_openai == []


def test_analyze_refused_when_quota_exhausted(client, auth_headers, make_user, fake_openai):
    make_user(plan="SMART", status="active", used=15.0)
    response = client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers)
    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["error"] == "QUOTA_EXCEEDED"
    assert detail["requires_upgrade"] == "PRO"


def test_analyze_stores_results_and_charges_half_credit(client, db, auth_headers, make_user, fake_openai):
    make_user(plan="PRO", status="active", used=2.0)

    response = client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["launchPotential"]["score"] == 9.0
    assert body["timeToFirstSale"]["withoutAds"]["expected"] == 3
    assert body["timeToFirstSale"]["withAds"]["expected"] == 2
    assert body["quota"]["used"] == 2.5
    assert body["model"] == "gpt-4o"

    product = db.query(Product).filter_by(user_id="user-1").one()
    assert product.source == "aliexpress"
    record = db.query(ProductAnalysis).filter_by(user_id="user-1").one()
    assert record.verdict == "LAUNCH"
    assert record.time_to_first_sale_days == 3
    assert record.full_analysis["finalVerdict"] == "Worth launching."


def test_analyze_when_ai_unavailable(client, auth_headers, make_user, monkeypatch):
    make_user(plan="PRO", status="active")

    def unavailable(*args, **kwargs):
        raise AnalysisUnavailable("OpenAI API key not configured")

    monkeypatch.setattr(openai_service, "analyze_product", unavailable)
    response = client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers)
    assert response.status_code == 503


def test_list_analyses(client, auth_headers, make_user, fake_openai):
    make_user(plan="PRO", status="active")
    client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers)
    client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers)
    analyses = client.get("/api/analyses", headers=auth_headers).json()
    assert len(analyses) == 2
    assert analyses[0]["launch_tier"] == "favorable"


def test_normalize_analysis_fills_defaults():
    analysis = normalize_analysis({"estimatedSupplierPrice": 10, "estimatedShippingCost": 5})
    assert analysis["decision"] == "LAUNCH_COMPETITIVE"
    assert analysis["estimatedCompetitors"] == 50
    assert analysis["saturationLevel"] == "low"
    assert analysis["recommendedPrice"]["optimal"] == 45
    assert analysis["recommendedPrice"]["min"] == 37.5


def test_generate_images_charges_one_credit(client, db, auth_headers, make_user, fake_images):
    make_user(plan="SMART", status="active", used=3.0)
    response = client.post(
        "/api/generate-images",
        json={"sourceImage": "aGVsbG8=", "quantity": 3, "aspectRatio": "4:3"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["imageTaskIds"] == ["task-1", "task-2", "task-3"]
    assert fake_images[0][1] == "data:image/jpeg;base64,aGVsbG8="
    assert fake_images[0][2] == "4:3"
    db.expire_all()
    assert db.get(User, "user-1").analysis_used_this_month == 4.0


def test_generate_images_needs_a_full_credit(client, auth_headers, make_user, fake_images):
    make_user(plan="SMART", status="active", used=14.5)
    response = client.post("/api/generate-images", json={"sourceImage": "aGVsbG8="}, headers=auth_headers)
    assert response.status_code == 403
    assert fake_images == []


def test_generate_images_when_every_submission_fails(client, db, auth_headers, make_user, monkeypatch):
    make_user(plan="SMART", status="active", used=1.0)
    monkeypatch.setattr(image_service, "api_key", "image-key")
    monkeypatch.setattr(image_service, "submit", lambda prompt, image_data_url, aspect_ratio="1:1": None)
    response = client.post("/api/generate-images", json={"sourceImage": "aGVsbG8="}, headers=auth_headers)
    assert response.status_code == 500
    db.expire_all()
    assert db.get(User, "user-1").analysis_used_this_month == 1.0


def test_check_image_status(client, auth_headers, monkeypatch):
    monkeypatch.setattr(image_service, "api_key", "image-key")
    monkeypatch.setattr(image_service, "check_status", lambda task_id: {"status": "ready", "url": f"https://img/{task_id}"})
    assert client.get("/api/check-image-status", headers=auth_headers).status_code == 400
    body = client.get("/api/check-image-status?taskId=t1", headers=auth_headers).json()
    assert body == {"status": "ready", "url": "https://img/t1"}


def test_delete_account_removes_everything(client, db, auth_headers, make_user, fake_openai, monkeypatch):
    deleted = []
    monkeypatch.setattr(main, "delete_auth_user", lambda user_id: deleted.append(user_id) or True)
    make_user(plan="PRO", status="active")
    db.add(Subscription(user_id="user-1", plan_id="PRO", status="active"))
    db.commit()
    client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers)

    response = client.delete("/api/user/delete-account", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "authDeleted": True}
    assert deleted == ["user-1"]
    db.expire_all()
    assert db.get(User, "user-1") is None
    assert db.query(Product).count() == 0
    assert db.query(ProductAnalysis).count() == 0
    assert db.query(Subscription).count() == 0


def test_analyze_scores_competition_from_etsy_counts(client, auth_headers, make_user, fake_openai):
    make_user(plan="PRO", status="active")
    body = {**ANALYZE_BODY, "productCategory": "Home Decor", "competitionResults": {"mushroom lamp": 8000, "lamp ceramic": 12000}}

    response = client.post("/api/ai-analyze", json=body, headers=auth_headers)

    assert response.status_code == 200
    competition = response.json()["competition"]
    assert competition["competitionScore"] == 55.0
    assert competition["saturationLevel"] == "high"


def test_analyze_without_counts_has_no_competition_estimate(client, auth_headers, make_user, fake_openai):
    make_user(plan="PRO", status="active")
    body = client.post("/api/ai-analyze", json=ANALYZE_BODY, headers=auth_headers).json()
    assert body["competition"] is None
