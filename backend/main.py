"""
FastAPI Backend for the Grid Thermal Stress Engine
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import settings
from contingency import MAX_CONTINGENCIES
from grid_engine import GridStressEngine
from ieee738 import load_conductor_library
from line_stress import Conditions
from load_model import LoadScenario
from logging_config import setup_logging
from regions import load_regions
from topology import TopologyCache, TopologyLoadError
from weather_service import WeatherData, WeatherService, WeatherUnavailableError

logger = logging.getLogger(__name__)

# Created on first use; tests replace them through app.dependency_overrides
engine: Optional[GridStressEngine] = None
weather_service: Optional[WeatherService] = None


def get_engine() -> GridStressEngine:
    global engine
    if engine is None:
        regions = load_regions(settings.regions_geojson_path) if settings.regions_geojson_path else None
        engine = GridStressEngine(
            TopologyCache(
                settings.grid_data_source,
                ttl_s=settings.topology_cache_ttl_s,
                timeout=settings.http_timeout_s,
            ),
            regions=regions,
        )
    return engine


def get_weather_service() -> WeatherService:
    global weather_service
    if weather_service is None:
        weather_service = WeatherService(
            base_url=settings.open_meteo_url,
            lat=settings.weather_lat,
            lon=settings.weather_lon,
            cache_ttl_s=settings.weather_cache_ttl_s,
            timeout=settings.http_timeout_s,
        )
    return weather_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(json_format=settings.log_json)

    if settings.conductor_library_path:
        try:
            load_conductor_library(settings.conductor_library_path)
        except (OSError, ValueError) as e:
            logger.warning("Conductor library not loaded from %s: %s", settings.conductor_library_path, e)

    # Warm the topology cache; requests report 503 until it loads
    try:
        topology = get_engine().topology
        logger.info("Loaded %d transmission lines", len(topology))
    except TopologyLoadError as e:
        logger.error("Grid data not loaded: %s", e)

    yield


# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Weather-dependent line ratings, system stress and outage what-if analysis",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TopologyLoadError)
async def topology_unavailable_handler(request: Request, exc: TopologyLoadError):
    return JSONResponse(
        status_code=503,
        content={"detail": {"error": "topology_unavailable", "message": str(exc)}},
    )


@app.exception_handler(WeatherUnavailableError)
async def weather_unavailable_handler(request: Request, exc: WeatherUnavailableError):
    return JSONResponse(
        status_code=503,
        content={"detail": {"error": "weather_unavailable", "message": str(exc)}},
    )


# Pydantic models for API
class ConditionsRequest(BaseModel):
    """Weather and load scenario for a computation"""
    ambient_temp_c: Optional[float] = Field(None, ge=-50, le=60, description="Ambient temperature (°C)")
    wind_speed_ms: Optional[float] = Field(None, ge=0, le=50, description="Wind speed (m/s)")
    wind_direction_deg: Optional[float] = Field(None, ge=0, le=360, description="Wind direction (° from)")
    scenario: LoadScenario = Field("nominal", description="Load scenario: min, nominal or max")
    weather_source: Literal["manual", "scenario", "live"] = Field(
        "manual", description="Weather source: 'manual', 'scenario' or 'live'"
    )
    weather_scenario: Optional[str] = Field(None, description="Scenario name if using scenario weather")


class ContingencyRequest(ConditionsRequest):
    top_n: int = Field(MAX_CONTINGENCIES, ge=1, le=100)


class OutageRequest(ConditionsRequest):
    cut_line_ids: List[str] = Field(default_factory=list)
    cut_regions: List[str] = Field(default_factory=list)
    include_interties: bool = False


class RegionStatsRequest(ConditionsRequest):
    cut_line_ids: List[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    lines_loaded: int
    buses_loaded: int
    timestamp: str


def resolve_conditions(request: ConditionsRequest, weather: WeatherService) -> Conditions:
    """
    Turn a request into Conditions, pulling weather from the selected source.

    Manual values left unset use the Conditions defaults.
    """
    if request.weather_source == "live":
        observed = weather.get_current()
    elif request.weather_source == "scenario":
        if not request.weather_scenario:
            raise HTTPException(status_code=400, detail="weather_scenario is required for scenario weather")
        try:
            observed = weather.get_weather_scenario(request.weather_scenario)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
    else:
        values = {
            "ambient_temp_c": request.ambient_temp_c,
            "wind_speed_ms": request.wind_speed_ms,
            "wind_direction_deg": request.wind_direction_deg,
        }
        return Conditions(scenario=request.scenario, **{k: v for k, v in values.items() if v is not None})

    return Conditions(
        ambient_temp_c=observed.temperature_c,
        wind_speed_ms=observed.wind_speed_ms,
        wind_direction_deg=observed.wind_direction_deg % 360,
        scenario=request.scenario,
    )


# API Endpoints

@app.get("/", response_model=Dict)
async def root():
    """Root endpoint"""
    return {
        "message": settings.app_name,
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "compute_ratings": "/compute_ratings",
            "line_detail": "/lines/{line_id}",
            "contingency": "/contingency",
            "outage_simulate": "/outage/simulate",
            "regions": "/regions",
            "region_stats": "/regions/stats",
            "forecast": "/forecast",
            "validate": "/validate",
            "buses": "/buses",
            "weather_current": "/weather/current",
            "weather_forecast": "/weather/forecast",
            "weather_scenarios": "/weather/scenarios",
        },
    }


@app.get("/health", response_model=HealthResponse)
def health_check(engine: GridStressEngine = Depends(get_engine)):
    """Health check endpoint; 503 when grid data cannot be loaded"""
    topology = engine.topology
    return HealthResponse(
        status="healthy",
        lines_loaded=len(topology.lines),
        buses_loaded=len(topology.buses),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.post("/topology/reload")
def reload_topology(engine: GridStressEngine = Depends(get_engine)):
    """Drop the cached topology and load it again"""
    engine.topology_cache.invalidate()
    topology = engine.topology
    return {"lines_loaded": len(topology.lines), "buses_loaded": len(topology.buses)}


# Weather

@app.get("/weather/current", response_model=WeatherData)
def weather_current(weather: WeatherService = Depends(get_weather_service)):
    """Current observation from Open-Meteo"""
    return weather.get_current()


@app.get("/weather/forecast", response_model=List[WeatherData])
def weather_forecast(
    hours: int = Query(24, ge=1, le=48, description="Forecast horizon (hours)"),
    weather: WeatherService = Depends(get_weather_service),
):
    """Hourly forecast starting at the current hour"""
    return weather.get_hourly_forecast(hours)


@app.get("/weather/scenarios")
async def weather_scenarios(weather: WeatherService = Depends(get_weather_service)):
    """List pre-defined demo weather scenarios"""
    return weather.list_scenarios()


# Ratings and stress

@app.post("/compute_ratings")
def compute_ratings(
    request: ConditionsRequest,
    engine: GridStressEngine = Depends(get_engine),
    weather: WeatherService = Depends(get_weather_service),
):
    """
    Rate every line for the given conditions.

    Returns per-line rating, current, stress and overload temperature plus
    band counts, average/max stress and SSI.
    """
    conditions = resolve_conditions(request, weather)
    return engine.compute_ratings(conditions)


@app.get("/lines/{line_id}")
def line_detail(
    line_id: str,
    ambient_temp_c: float = Query(25.0, ge=-50, le=60, description="Ambient temperature (°C)"),
    wind_speed_ms: float = Query(2.0, ge=0, le=50, description="Wind speed (m/s)"),
    wind_direction_deg: float = Query(90.0, ge=0, le=360, description="Wind direction (° from)"),
    scenario: LoadScenario = Query("nominal", description="Load scenario"),
    engine: GridStressEngine = Depends(get_engine),
):
    """Heat balance breakdown and overload temperature of one line"""
    conditions = Conditions(
        ambient_temp_c=ambient_temp_c,
        wind_speed_ms=wind_speed_ms,
        wind_direction_deg=wind_direction_deg,
        scenario=scenario,
    )
    try:
        return engine.line_detail(line_id, conditions)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Line {line_id} not found")


@app.post("/contingency")
def contingency(
    request: ContingencyRequest,
    engine: GridStressEngine = Depends(get_engine),
    weather: WeatherService = Depends(get_weather_service),
):
    """N-1 screening: worst single-line outages by neighbor stress"""
    conditions = resolve_conditions(request, weather)
    return engine.run_contingency(conditions, top_n=request.top_n)


@app.post("/outage/simulate")
def simulate_outage(
    request: OutageRequest,
    engine: GridStressEngine = Depends(get_engine),
    weather: WeatherService = Depends(get_weather_service),
):
    """What-if: cut lines (or whole regions) and recompute stress"""
    conditions = resolve_conditions(request, weather)
    try:
        return engine.simulate_outage(
            conditions,
            cut_line_ids=request.cut_line_ids,
            cut_regions=request.cut_regions,
            include_interties=request.include_interties,
        )
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0] if e.args else "Not found")


# Regions

@app.get("/regions")
async def list_regions(engine: GridStressEngine = Depends(get_engine)):
    """Region polygons available for stats and bulk cuts"""
    return [region.model_dump() for region in engine.regions]


@app.post("/regions/stats")
def region_stats(
    request: RegionStatsRequest,
    engine: GridStressEngine = Depends(get_engine),
    weather: WeatherService = Depends(get_weather_service),
):
    """Stress statistics per region, optionally with lines cut"""
    conditions = resolve_conditions(request, weather)
    try:
        return engine.region_stats(conditions, cut_line_ids=request.cut_line_ids)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=e.args[0] if e.args else "Not found")


# Forecast, validation, buses

@app.get("/forecast")
def forecast(
    hours: int = Query(24, ge=1, le=48, description="Forecast horizon (hours)"),
    scenario: LoadScenario = Query("nominal", description="Load scenario"),
    engine: GridStressEngine = Depends(get_engine),
    weather: WeatherService = Depends(get_weather_service),
):
    """Line stress for every forecast hour, with alert summary"""
    hourly = weather.get_hourly_forecast(hours)
    return engine.forecast(hourly, scenario)


@app.get("/validate")
def validate(
    sample_size: int = Query(5, ge=1, le=100),
    seed: Optional[int] = Query(None, description="Random seed for a reproducible sample"),
    engine: GridStressEngine = Depends(get_engine),
):
    """Compare dynamic ratings with nameplate ratings for sampled lines"""
    return engine.validate(sample_size=sample_size, seed=seed)


@app.get("/buses")
def buses(engine: GridStressEngine = Depends(get_engine)):
    """Buses with coordinates, voltage and degree"""
    return {"buses": engine.buses()}


# Run with: uvicorn main:app --reload --host 0.0.0.0 --port 8000
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
