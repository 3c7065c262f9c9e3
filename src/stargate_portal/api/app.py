"""REST API for StargatePortal."""

import logging
import uuid
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel, Field

from ..agents import DesignCompetition, get_agent_profiles
from ..analytics import AnalyticsService
from ..commerce import CommerceService
from ..core.types import (
    BusinessBrief,
    DesignRequest,
    IntegrationConfig,
    OrderStatus,
    SiteTemplate,
)
from ..design import detect_industry, get_industry, list_blueprints, list_industries
from ..design.industries import has_industry
from ..integrations import generate_script_for_integration, list_integrations
from ..marketing import CampaignService
from ..pipeline import MerlinOrchestrator

logger = logging.getLogger(__name__)


# Global instances
orchestrator: Optional[MerlinOrchestrator] = None
competition: Optional[DesignCompetition] = None
commerce: Optional[CommerceService] = None
campaigns: Optional[CampaignService] = None
analytics: Optional[AnalyticsService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global orchestrator, competition, commerce, campaigns, analytics

    try:
        from ..config import ConfigManager

        config = ConfigManager()
        orchestrator = MerlinOrchestrator(config=config)
        await orchestrator.initialize()

        storage = orchestrator.storage
        competition = DesignCompetition(orchestrator.llm_backend, storage=storage)
        commerce = CommerceService(storage, settings=config.settings.commerce)
        campaigns = CampaignService(storage)
        analytics = AnalyticsService(storage)

        logger.info("StargatePortal API initialized")
    except Exception as e:
        logger.error(f"Failed to initialize StargatePortal API: {e}")

    yield

    if orchestrator:
        await orchestrator.shutdown()
    logger.info("StargatePortal API shutdown complete")


app = FastAPI(
    title="StargatePortal",
    description="AI website generation with quality feedback, design competitions and a store back office",
    version="0.1.0",
    lifespan=lifespan,
)


# Request models

class DetectIndustryRequest(BaseModel):
    business_name: str
    description: str = ""


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    business_name: Optional[str] = None
    description: Optional[str] = None
    industry_id: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)


class GenerateRequest(BaseModel):
    brief: BusinessBrief
    project_id: Optional[str] = None


class WinnerRequest(BaseModel):
    winner: str = Field(..., description="Agent ID or design philosophy")


class ScriptPreviewRequest(BaseModel):
    id: str
    config: Dict[str, Any] = Field(default_factory=dict)


class IntegrationRequest(BaseModel):
    integration_id: str
    config: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    description: str = ""
    inventory: Optional[int] = None
    category: Optional[str] = None
    sku: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int = 1


class OrderCreate(BaseModel):
    items: List[OrderItemRequest]
    customer_email: Optional[str] = None
    shipping_country: Optional[str] = None
    shipping_address: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class ShippingQuoteRequest(BaseModel):
    items: List[OrderItemRequest]
    country: Optional[str] = None


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1)
    subject: str = ""
    content: str = ""
    audience: Optional[str] = None


class CampaignSchedule(BaseModel):
    send_at: datetime


class CampaignSend(BaseModel):
    recipients: Optional[int] = None


class CampaignStats(BaseModel):
    recipients: Optional[int] = None
    opens: Optional[int] = None
    clicks: Optional[int] = None


class EventCreate(BaseModel):
    event_type: str
    page: Optional[str] = None
    session_id: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    industry_id: Optional[str] = None
    blueprint_id: Optional[str] = None
    description: str = ""
    html: str = ""
    css: str = ""
    tags: List[str] = Field(default_factory=list)


# Helpers

def _require(component, name: str = "System"):
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return component


def _found(item, what: str):
    if item is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return item


@contextmanager
def api_errors(action: str):
    """Map service errors to HTTP responses: ValueError is 400, anything else 500."""
    try:
        yield
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to {action}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to {action}: {e}")


# Health and status

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(),
        "services": {
            "orchestrator": orchestrator is not None,
            "competition": competition is not None,
            "commerce": commerce is not None,
            "campaigns": campaigns is not None,
            "analytics": analytics is not None,
        },
    }


@app.get("/api/status")
async def get_system_status():
    """Get overall system status."""
    merlin = _require(orchestrator)
    with api_errors("get system status"):
        return await merlin.get_system_status()


# Catalog

@app.get("/api/industries")
async def get_industries():
    return {"industries": list_industries()}


@app.post("/api/industries/detect")
async def detect(request: DetectIndustryRequest):
    """Detect the industry of a business from its name and description."""
    profile = detect_industry(request.business_name, request.description)
    return {"id": profile.id, "name": profile.name}


@app.get("/api/industries/{industry_id}")
async def get_industry_profile(industry_id: str):
    if not has_industry(industry_id):
        raise HTTPException(status_code=404, detail="Industry not found")
    return get_industry(industry_id).model_dump(mode="json", by_alias=True)


@app.get("/api/blueprints")
async def get_blueprints():
    return {"blueprints": [blueprint.model_dump(mode="json") for blueprint in list_blueprints()]}


@app.get("/api/agents")
async def get_agents():
    return {"agents": [profile.to_dict() for profile in get_agent_profiles()]}


# Projects and generation

@app.post("/api/projects", status_code=201)
async def create_project(request: ProjectCreate):
    merlin = _require(orchestrator)
    with api_errors("create project"):
        project = await merlin.create_project(**request.model_dump())
        return project.model_dump(mode="json")


@app.get("/api/projects")
async def get_projects(
    user_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    merlin = _require(orchestrator)
    with api_errors("list projects"):
        projects = await merlin.list_projects(user_id=user_id, limit=limit, offset=offset)
        return {"projects": [project.model_dump(mode="json") for project in projects]}


@app.get("/api/projects/{project_id}")
async def get_project(project_id: str):
    merlin = _require(orchestrator)
    with api_errors("get project"):
        project = _found(await merlin.get_project(project_id), "Project")
        return project.model_dump(mode="json")


@app.get("/api/projects/{project_id}/site", response_class=HTMLResponse)
async def get_project_site(project_id: str):
    """Serve the HTML of the project's latest generated site."""
    merlin = _require(orchestrator)
    with api_errors("load site"):
        html = _found(await merlin.get_latest_site_html(project_id), "Generated site")
        return HTMLResponse(content=html)


@app.post("/api/generate")
async def generate_website(request: GenerateRequest):
    """Run the full generation pipeline and return the finished run."""
    merlin = _require(orchestrator)
    with api_errors("generate website"):
        run = await merlin.generate_website(request.brief, project_id=request.project_id)
        return run.summary()


@app.get("/api/runs")
async def get_runs(
    project_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
):
    merlin = _require(orchestrator)
    with api_errors("list runs"):
        runs = await merlin.list_runs(project_id=project_id, status=status, limit=limit)
        return {"runs": [run.summary() for run in runs]}


@app.get("/api/runs/{run_id}")
async def get_run(run_id: str):
    merlin = _require(orchestrator)
    with api_errors("get run"):
        run = _found(await merlin.get_run(run_id), "Run")
        return run.model_dump(mode="json", exclude={"site"})


@app.post("/api/runs/{run_id}/cancel")
async def cancel_run(run_id: str):
    merlin = _require(orchestrator)
    with api_errors("cancel run"):
        if not await merlin.cancel_run(run_id):
            raise HTTPException(status_code=404, detail="Active run not found")
        return {"status": "cancelling", "run_id": run_id}


@app.get("/api/runs/{run_id}/report", response_class=PlainTextResponse)
async def get_quality_report(run_id: str):
    """Markdown quality report of a run."""
    merlin = _require(orchestrator)
    with api_errors("get quality report"):
        report = _found(await merlin.get_quality_report(run_id), "Quality report")
        return PlainTextResponse(content=report, media_type="text/markdown")


# Design competitions

@app.post("/api/competitions", status_code=201)
async def start_competition(request: DesignRequest):
    """Have every agent design the requested component."""
    service = _require(competition, "Design competition")
    with api_errors("run competition"):
        result = await service.start_competition(request)
        return result.model_dump(mode="json")


@app.get("/api/competitions/stats")
async def get_competition_stats(user_id: Optional[str] = None, project_id: Optional[str] = None):
    service = _require(competition, "Design competition")
    with api_errors("get competition stats"):
        return await service.get_competition_stats(user_id=user_id, project_id=project_id)


@app.get("/api/competitions/{competition_id}")
async def get_competition(competition_id: str):
    service = _require(competition, "Design competition")
    with api_errors("get competition"):
        result = _found(await service.get_competition_result(competition_id), "Competition")
        return result.model_dump(mode="json")


@app.post("/api/competitions/{competition_id}/winner")
async def select_winner(competition_id: str, request: WinnerRequest):
    service = _require(competition, "Design competition")
    with api_errors("select winner"):
        result = _found(await service.select_winner(competition_id, request.winner), "Competition")
        return result.model_dump(mode="json")


@app.get("/api/projects/{project_id}/competitions")
async def get_project_competitions(project_id: str, user_id: Optional[str] = None):
    service = _require(competition, "Design competition")
    with api_errors("list competitions"):
        results = await service.get_competitions_for_project(project_id, user_id=user_id)
        return {"competitions": [result.model_dump(mode="json") for result in results]}


# Integrations

@app.get("/api/integrations")
async def get_integrations(category: Optional[str] = None):
    return {"integrations": list_integrations(category)}


@app.post("/api/integrations/script")
async def preview_script(request: ScriptPreviewRequest):
    """Render the snippet of one integration without saving anything."""
    script = generate_script_for_integration(request.model_dump())
    if not script:
        raise HTTPException(status_code=400, detail=f"Unknown integration or missing configuration: {request.id}")
    return script


@app.get("/api/projects/{project_id}/integrations")
async def get_project_integrations(project_id: str):
    merlin = _require(orchestrator)
    with api_errors("list integrations"):
        configured = await merlin.storage.list_integrations(project_id)
        return {"integrations": [item.model_dump(mode="json") for item in configured]}


@app.post("/api/projects/{project_id}/integrations")
async def configure_integration(project_id: str, request: IntegrationRequest):
    """Add or update an integration; it is injected into the project's next generation."""
    merlin = _require(orchestrator)
    with api_errors("configure integration"):
        _found(await merlin.get_project(project_id), "Project")
        if not generate_script_for_integration({"id": request.integration_id, "config": request.config}):
            raise ValueError(f"Unknown integration or missing configuration: {request.integration_id}")

        existing = await merlin.storage.list_integrations(project_id)
        current = next((item for item in existing if item.integration_id == request.integration_id), None)
        integration = IntegrationConfig(
            id=current.id if current else str(uuid.uuid4()),
            project_id=project_id,
            integration_id=request.integration_id,
            config=request.config,
            enabled=request.enabled,
        )
        await merlin.storage.save_integration(integration)
        return integration.model_dump(mode="json")


# Commerce

@app.post("/api/projects/{project_id}/products", status_code=201)
async def add_product(project_id: str, request: ProductCreate):
    service = _require(commerce, "Commerce")
    with api_errors("add product"):
        product = await service.add_product(project_id, **request.model_dump())
        return product.model_dump(mode="json")


@app.get("/api/projects/{project_id}/products")
async def get_products(project_id: str):
    service = _require(commerce, "Commerce")
    with api_errors("list products"):
        products = await service.list_products(project_id)
        return {"products": [product.model_dump(mode="json") for product in products]}


@app.post("/api/shipping/quote")
async def quote_shipping(request: ShippingQuoteRequest):
    service = _require(commerce, "Commerce")
    items = [item.model_dump() for item in request.items]
    return {"shipping": service.calculate_shipping(items, request.country), "currency": service.settings.currency}


@app.post("/api/projects/{project_id}/orders", status_code=201)
async def create_order(project_id: str, request: OrderCreate):
    service = _require(commerce, "Commerce")
    with api_errors("create order"):
        order = await service.create_order(
            project_id,
            items=[item.model_dump() for item in request.items],
            customer_email=request.customer_email,
            shipping_country=request.shipping_country,
            shipping_address=request.shipping_address,
            user_id=request.user_id,
        )
        return order.model_dump(mode="json")


@app.get("/api/projects/{project_id}/orders")
async def get_orders(project_id: str, status: Optional[str] = None):
    service = _require(commerce, "Commerce")
    with api_errors("list orders"):
        orders = await service.list_orders(project_id, status=status)
        return {"orders": [order.model_dump(mode="json") for order in orders]}


@app.get("/api/projects/{project_id}/sales")
async def get_sales_summary(project_id: str):
    service = _require(commerce, "Commerce")
    with api_errors("get sales summary"):
        return await service.get_sales_summary(project_id)


@app.get("/api/orders/{order_id}")
async def get_order(order_id: str):
    service = _require(commerce, "Commerce")
    with api_errors("get order"):
        order = _found(await service.get_order(order_id), "Order")
        return order.model_dump(mode="json")


@app.post("/api/orders/{order_id}/status")
async def update_order_status(order_id: str, request: OrderStatusUpdate):
    service = _require(commerce, "Commerce")
    with api_errors("update order status"):
        order = _found(await service.update_order_status(order_id, request.status), "Order")
        return order.model_dump(mode="json")


# Campaigns

@app.post("/api/projects/{project_id}/campaigns", status_code=201)
async def create_campaign(project_id: str, request: CampaignCreate):
    service = _require(campaigns, "Campaigns")
    with api_errors("create campaign"):
        campaign = await service.create_campaign(project_id, **request.model_dump())
        return campaign.model_dump(mode="json")


@app.get("/api/projects/{project_id}/campaigns")
async def get_campaigns(project_id: str):
    service = _require(campaigns, "Campaigns")
    with api_errors("list campaigns"):
        results = await service.list_campaigns(project_id)
        return {"campaigns": [campaign.model_dump(mode="json") for campaign in results]}


@app.post("/api/campaigns/{campaign_id}/schedule")
async def schedule_campaign(campaign_id: str, request: CampaignSchedule):
    service = _require(campaigns, "Campaigns")
    with api_errors("schedule campaign"):
        campaign = _found(await service.schedule_campaign(campaign_id, request.send_at), "Campaign")
        return campaign.model_dump(mode="json")


@app.post("/api/campaigns/{campaign_id}/send")
async def send_campaign(campaign_id: str, request: CampaignSend):
    service = _require(campaigns, "Campaigns")
    with api_errors("send campaign"):
        campaign = _found(await service.mark_sent(campaign_id, recipients=request.recipients), "Campaign")
        return campaign.model_dump(mode="json")


@app.post("/api/campaigns/{campaign_id}/stats")
async def record_campaign_stats(campaign_id: str, request: CampaignStats):
    service = _require(campaigns, "Campaigns")
    with api_errors("record campaign stats"):
        campaign = _found(await service.record_stats(campaign_id, **request.model_dump()), "Campaign")
        return campaign.model_dump(mode="json")


@app.get("/api/campaigns/{campaign_id}/report")
async def get_campaign_report(campaign_id: str):
    service = _require(campaigns, "Campaigns")
    with api_errors("get campaign report"):
        return _found(await service.get_campaign_report(campaign_id), "Campaign")


# Analytics

@app.post("/api/projects/{project_id}/events", status_code=201)
async def record_event(project_id: str, request: EventCreate):
    service = _require(analytics, "Analytics")
    with api_errors("record event"):
        event = await service.record_event(project_id, **request.model_dump())
        return event.model_dump(mode="json")


@app.get("/api/projects/{project_id}/analytics")
async def get_analytics_dashboard(project_id: str, days: int = Query(30, ge=1, le=365)):
    service = _require(analytics, "Analytics")
    with api_errors("build analytics dashboard"):
        return await service.get_dashboard(project_id, days=days)


# Templates

@app.get("/api/templates")
async def get_templates(industry_id: Optional[str] = None):
    merlin = _require(orchestrator)
    with api_errors("list templates"):
        templates = await merlin.storage.list_templates(industry_id=industry_id)
        return {"templates": [template.model_dump(mode="json") for template in templates]}


@app.post("/api/templates", status_code=201)
async def create_template(request: TemplateCreate):
    merlin = _require(orchestrator)
    with api_errors("create template"):
        template = SiteTemplate(id=str(uuid.uuid4()), **request.model_dump())
        await merlin.storage.save_template(template)
        return template.model_dump(mode="json")


@app.get("/api/templates/{template_id}")
async def get_template(template_id: str):
    merlin = _require(orchestrator)
    with api_errors("get template"):
        template = _found(await merlin.storage.get_template(template_id), "Template")
        return template.model_dump(mode="json")


@app.delete("/api/templates/{template_id}")
async def delete_template(template_id: str):
    merlin = _require(orchestrator)
    with api_errors("delete template"):
        if not await merlin.storage.delete_template(template_id):
            raise HTTPException(status_code=404, detail="Template not found")
        return {"status": "deleted", "template_id": template_id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
