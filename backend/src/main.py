from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import Coordinates, PriceRange, Restaurant, RestaurantRecommendation, TasteProfile
from services.catalog import JsonCatalog, PersistedCatalog
from services.filters import filter_within_radius
from services.geo import distance_km
from services.mapbox import MapboxClient
from services.ranking import RankingPolicy, build_dashboard, rank_recommendations
from services.recommendations import personalized_recommendations
from services.report import build_top_picks_report
from services.selection import SelectionSynchronizer
from services.session import MapSession, MapSessionManager
from services.viewport import Geocoder, LiveSearch, ViewportFetchController


load_dotenv()

app = FastAPI(title="Nexus Nosh Recommendation Engine")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@dataclass
class AppServices:
    cfg: Configuration
    catalog: PersistedCatalog
    search: LiveSearch
    geocoder: Geocoder
    sessions: MapSessionManager


def build_services(
    cfg: Configuration,
    *,
    catalog: Optional[PersistedCatalog] = None,
    search: Optional[LiveSearch] = None,
    geocoder: Optional[Geocoder] = None,
    scheduler: Any = None,
) -> AppServices:
    catalog = catalog or JsonCatalog.from_file(cfg.catalog_path)
    if search is None or geocoder is None:
        client = MapboxClient(cfg)
        search = search or client
        geocoder = geocoder or client

    def new_session() -> MapSession:
        return MapSession(
            controller=ViewportFetchController.from_config(cfg, search, geocoder=geocoder, scheduler=scheduler),
            selection=SelectionSynchronizer(ttl_sec=cfg.focus_ttl_sec, tolerance_deg=cfg.focus_tolerance_deg),
            persisted=catalog.get_all(cfg.catalog_limit),
            origin=Coordinates(lat=cfg.default_lat, lng=cfg.default_lng),
        )

    sessions = MapSessionManager(new_session, ttl_sec=cfg.session_ttl_sec)
    return AppServices(cfg=cfg, catalog=catalog, search=search, geocoder=geocoder, sessions=sessions)


_services: Optional[AppServices] = None


def get_services() -> AppServices:
    global _services
    if _services is None:
        cfg = Configuration.from_env()
        logger.info("cfg: {}", cfg.log_summary())
        _services = build_services(cfg)
    return _services


class CoordinatesPayload(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RestaurantPayload(BaseModel):
    id: str
    name: str
    address: str
    lat: float
    lng: float
    cuisine_type: List[str] = []
    provenance: str
    price_range: Optional[Dict[str, float]] = None
    rating: Optional[Dict[str, Any]] = None
    attributes: Optional[Dict[str, Any]] = None
    image_url: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    distance_km: Optional[float] = None


class RecommendationPayload(BaseModel):
    restaurant: RestaurantPayload
    match_score: float
    match_type: str
    reasons: List[str] = []
    adjusted_score: Optional[float] = None


class RestaurantListResponse(BaseModel):
    restaurants: List[RestaurantPayload]
    live_count: int
    fetch_state: str
    focused_id: Optional[str] = None


class CenterResponse(BaseModel):
    scheduled: bool
    fetch_state: str


class BoundsRequest(BaseModel):
    min_lng: float = Field(..., ge=-180, le=180)
    min_lat: float = Field(..., ge=-90, le=90)
    max_lng: float = Field(..., ge=-180, le=180)
    max_lat: float = Field(..., ge=-90, le=90)


class RelocateRequest(BaseModel):
    postal_code: str = Field(..., description="Postal code to jump to")


class RelocateResponse(BaseModel):
    center: CoordinatesPayload
    live_count: int


class FocusRequest(BaseModel):
    restaurant_id: str


class FocusResponse(BaseModel):
    found: bool
    restaurant_id: Optional[str] = None
    requested_id: Optional[str] = None
    center: Optional[CoordinatesPayload] = None
    filters_cleared: bool = False


class TasteProfilePayload(BaseModel):
    quietness: float = Field(50, ge=0, le=100)
    service_quality: float = Field(50, ge=0, le=100)
    healthiness: float = Field(50, ge=0, le=100)
    value: float = Field(50, ge=0, le=100)
    atmosphere: float = Field(50, ge=0, le=100)
    cuisine_types: List[str] = []
    price_min: float = 10
    price_max: float = 100


class TopPicksRequest(BaseModel):
    session_id: str = Field("default", description="Map session whose catalog is ranked")
    profile: Optional[TasteProfilePayload] = None
    favorite_ids: List[str] = []
    friend_recommended_ids: List[str] = []
    meeting_type: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    day: Optional[date] = None
    policy: RankingPolicy = RankingPolicy.DAILY_TOP_PICKS


class TopPicksResponse(BaseModel):
    top_picks: List[RecommendationPayload]
    friend_picks: List[RecommendationPayload] = []
    personal_match: Optional[RecommendationPayload] = None
    nearby_picks: List[RecommendationPayload] = []
    report_markdown: str


def _to_payload(r: Restaurant, origin: Optional[Coordinates] = None) -> RestaurantPayload:
    return RestaurantPayload(
        id=r.id,
        name=r.name,
        address=r.address,
        lat=r.coordinates.lat,
        lng=r.coordinates.lng,
        cuisine_type=r.cuisine_type,
        provenance=r.provenance.value,
        price_range=asdict(r.price_range) if r.price_range else None,
        rating=asdict(r.rating) if r.rating else None,
        attributes=asdict(r.attributes) if r.attributes else None,
        image_url=r.image_url,
        website=r.website,
        phone=r.phone,
        distance_km=round(distance_km(origin, r.coordinates), 3) if origin else None,
    )


def _rec_payload(rec: RestaurantRecommendation, origin: Optional[Coordinates]) -> RecommendationPayload:
    return RecommendationPayload(
        restaurant=_to_payload(rec.restaurant, origin),
        match_score=rec.match_score,
        match_type=rec.match_type.value,
        reasons=rec.reasons,
        adjusted_score=rec.adjusted_score,
    )


def _list_response(session: MapSession, items: List[Restaurant]) -> RestaurantListResponse:
    return RestaurantListResponse(
        restaurants=[_to_payload(r, session.origin) for r in items],
        live_count=len(session.controller.live_results),
        fetch_state=session.controller.state.value,
        focused_id=session.selection.focused_id,
    )


def _require_live(services: AppServices) -> None:
    try:
        services.cfg.require_mapbox()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/healthz")
def healthz(services: AppServices = Depends(get_services)) -> dict:
    logger.info("cfg: {}", services.cfg.log_summary())
    return {"status": "ok"}


@app.get("/restaurants", response_model=RestaurantListResponse)
async def list_restaurants(
    session_id: str = "default",
    zip: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: Optional[float] = None,
    services: AppServices = Depends(get_services),
) -> RestaurantListResponse:
    session = services.sessions.get(session_id)
    if zip is not None:
        session.zip_filter = zip
    if lat is not None and lng is not None:
        session.origin = Coordinates(lat=lat, lng=lng)

    items = session.visible()
    if radius_km is not None and session.origin is not None:
        forced = {r.id for r in session.selection.overrides}
        inside = {r.id for r in filter_within_radius(items, session.origin, radius_km)}
        items = [r for r in items if r.id in inside or r.id in forced]

    return _list_response(session, items)


@app.post("/sessions/{session_id}/bounds", response_model=RestaurantListResponse)
async def bounds_changed(
    session_id: str,
    req: BoundsRequest,
    services: AppServices = Depends(get_services),
) -> RestaurantListResponse:
    session = services.sessions.get(session_id)
    try:
        items = session.update_bounds((req.min_lng, req.min_lat, req.max_lng, req.max_lat))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _list_response(session, items)


@app.post("/sessions/{session_id}/center", response_model=CenterResponse)
async def center_changed(
    session_id: str,
    center: CoordinatesPayload,
    services: AppServices = Depends(get_services),
) -> CenterResponse:
    _require_live(services)
    session = services.sessions.get(session_id)
    scheduled = session.controller.on_center_change(Coordinates(lat=center.lat, lng=center.lng))
    return CenterResponse(scheduled=scheduled, fetch_state=session.controller.state.value)


@app.post("/sessions/{session_id}/relocate", response_model=RelocateResponse)
async def relocate(
    session_id: str,
    req: RelocateRequest,
    services: AppServices = Depends(get_services),
) -> RelocateResponse:
    _require_live(services)
    session = services.sessions.get(session_id)
    center = await session.controller.jump_to_postal_code(req.postal_code)
    if center is None:
        raise HTTPException(status_code=404, detail=f"postal code {req.postal_code!r} not found")
    session.origin = center
    return RelocateResponse(
        center=CoordinatesPayload(lat=center.lat, lng=center.lng),
        live_count=len(session.controller.live_results),
    )


@app.post("/sessions/{session_id}/focus", response_model=FocusResponse)
async def focus(
    session_id: str,
    req: FocusRequest,
    services: AppServices = Depends(get_services),
) -> FocusResponse:
    session = services.sessions.get(session_id)
    instruction = session.focus_restaurant(req.restaurant_id)
    if instruction is None:
        return FocusResponse(found=False, requested_id=req.restaurant_id)
    return FocusResponse(
        found=True,
        restaurant_id=instruction.restaurant_id,
        requested_id=instruction.requested_id,
        center=CoordinatesPayload(lat=instruction.coordinates.lat, lng=instruction.coordinates.lng),
        filters_cleared=instruction.filters_cleared,
    )


@app.post("/recommendations/top-picks", response_model=TopPicksResponse)
async def top_picks(req: TopPicksRequest, services: AppServices = Depends(get_services)) -> TopPicksResponse:
    try:
        session = services.sessions.get(req.session_id)
        location = Coordinates(lat=req.lat, lng=req.lng) if req.lat is not None and req.lng is not None else session.origin
        profile = None
        if req.profile is not None:
            p = req.profile
            if p.price_min > p.price_max:
                raise ValueError("price_min must not exceed price_max")
            profile = TasteProfile(
                quietness=p.quietness,
                service_quality=p.service_quality,
                healthiness=p.healthiness,
                value=p.value,
                atmosphere=p.atmosphere,
                cuisine_types=p.cuisine_types,
                price_range=PriceRange(min=p.price_min, max=p.price_max),
            )

        recs = personalized_recommendations(
            session.combined(),
            profile,
            favorite_ids=req.favorite_ids,
            friend_recommended_ids=req.friend_recommended_ids,
            meeting_type=req.meeting_type,
            user_location=location,
        )
        session.recommendations = recs

        day = req.day or date.today()
        picks = rank_recommendations(recs, policy=req.policy, day=day, limit=services.cfg.top_picks_count)
        sections = build_dashboard(recs, picks)
        md = build_top_picks_report(picks, day)
        logger.info(
            "top picks session={} policy={} candidates={} picks={}",
            req.session_id,
            req.policy.value,
            len(recs),
            len(picks),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.exception("top picks failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    return TopPicksResponse(
        top_picks=[_rec_payload(r, location) for r in picks],
        friend_picks=[_rec_payload(r, location) for r in sections.friend_picks],
        personal_match=_rec_payload(sections.personal_match, location) if sections.personal_match else None,
        nearby_picks=[_rec_payload(r, location) for r in sections.nearby_picks],
        report_markdown=md,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
