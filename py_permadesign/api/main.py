"""FastAPI main application."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import list_element_kinds, settings
from ..core.boundary import Boundary
from ..core.climate import ClimateRecord, fallback_rain
from ..core.export import export_design
from ..core.patterns import PATTERN_INFO
from ..core.placement import PlacedElement
from ..core.session import DesignSession, MoveResult, SynthesisInProgressError
from ..core.water_management import water_plan

# Configure logging
logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level.upper(), logging.INFO))

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="PermaDesign API",
    description="Terrain analysis and constrained placement for permaculture site design",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Single in-process design and its synthesis jobs
design_session = DesignSession()
jobs: Dict[str, "JobResponse"] = {}


# Request/Response models
class BoundaryRequest(BaseModel):
    """Boundary as GeoJSON or as a plain ring."""

    geojson: Optional[Dict[str, Any]] = Field(None, description="GeoJSON Feature or Polygon")
    coordinates: Optional[List[List[float]]] = Field(None, description="Ring of [lng, lat] pairs")


class PointRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ElementRequest(PointRequest):
    kind: str = Field(..., description="Element catalog code")


class ClimateRefreshRequest(BaseModel):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class TerrainResponse(BaseModel):
    """Summary of the current terrain snapshot."""

    generation: int
    samples: int
    analyzed: int
    flow_paths: int
    contours: int
    has_boundary: bool
    anchor: Dict[str, float]
    region: Dict[str, float]
    slope_percent: float


class MoveResponse(BaseModel):
    result: MoveResult
    element: Optional[PlacedElement] = None


class ClimateRefreshResponse(BaseModel):
    applied: bool
    climate: Optional[ClimateRecord] = None


class JobResponse(BaseModel):
    """Response with job information."""

    job_id: str
    status: str
    progress_percent: int
    message: str
    added: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None


def _terrain_response() -> TerrainResponse:
    terrain = design_session.terrain
    if terrain is None:
        raise HTTPException(status_code=503, detail="Terrain not generated yet")

    region = terrain.region
    return TerrainResponse(
        **terrain.summary(),
        has_boundary=design_session.has_boundary,
        anchor={"lat": design_session.anchor.lat, "lng": design_session.anchor.lng},
        region={
            "min_lat": region.min_lat,
            "max_lat": region.max_lat,
            "min_lng": region.min_lng,
            "max_lng": region.max_lng,
        },
        slope_percent=design_session.slope_percent(),
    )


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    logger.info("Starting PermaDesign API", generation=design_session.generation)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "PermaDesign API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "terrain_generation": design_session.generation,
        "is_designing": design_session.is_designing,
    }


@app.get("/element-kinds")
async def get_element_kinds():
    """Placeable element kinds in priority order."""
    return [kind.model_dump() for kind in list_element_kinds()]


@app.put("/design/boundary", response_model=TerrainResponse)
async def set_boundary(request: BoundaryRequest):
    """Replace the design boundary and regenerate terrain."""
    try:
        if request.geojson is not None:
            boundary = Boundary.from_geojson(request.geojson)
        elif request.coordinates is not None:
            boundary = Boundary.from_coordinates(request.coordinates)
        else:
            raise ValueError("Provide either 'geojson' or 'coordinates'")
    except (ValueError, TypeError, IndexError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not boundary.is_valid:
        raise HTTPException(status_code=400, detail="Boundary needs at least 3 distinct vertices")

    design_session.set_boundary(boundary)
    return _terrain_response()


@app.delete("/design/boundary", response_model=TerrainResponse)
async def delete_boundary():
    """Remove the boundary; terrain falls back to the anchor window."""
    design_session.clear_boundary()
    return _terrain_response()


@app.put("/design/anchor", response_model=TerrainResponse)
async def set_anchor(request: PointRequest):
    """Move the terrain anchor and regenerate terrain."""
    design_session.set_anchor(request.lat, request.lng)
    return _terrain_response()


@app.get("/design/terrain", response_model=TerrainResponse)
async def get_terrain():
    """Summary of the current terrain snapshot."""
    return _terrain_response()


@app.get("/design/elements", response_model=List[PlacedElement])
async def list_elements():
    return list(design_session.elements)


@app.post("/design/elements", response_model=PlacedElement, status_code=201)
async def add_element(request: ElementRequest):
    """Place an element at a point inside the boundary."""
    try:
        element = design_session.add_element(request.kind, request.lat, request.lng)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if element is None:
        raise HTTPException(status_code=400, detail="Elements must be placed inside the boundary")
    return element


@app.delete("/design/elements")
async def clear_elements():
    removed = design_session.clear_elements()
    return {"removed": removed}


@app.patch("/design/elements/{element_id}/position", response_model=MoveResponse)
async def move_element(element_id: str, request: PointRequest):
    """
    Move a point element.

    A move outside the boundary is reported in the result and leaves the
    element where it was.
    """
    result = design_session.move_element(element_id, request.lat, request.lng)

    if result == MoveResult.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Element not found")
    if result == MoveResult.NOT_MOVABLE:
        raise HTTPException(status_code=400, detail="Only point elements can be moved")

    return MoveResponse(result=result, element=design_session.get_element(element_id))


@app.post("/design/synthesize", response_model=JobResponse)
async def synthesize_layout(background_tasks: BackgroundTasks):
    """Start placement synthesis for the current boundary."""
    if not design_session.has_boundary:
        raise HTTPException(status_code=400, detail="Draw a boundary before synthesizing a layout")

    in_flight = any(job.status in ("pending", "running") for job in jobs.values())
    if design_session.is_designing or in_flight:
        raise HTTPException(status_code=409, detail="Placement synthesis already in progress")

    job_id = str(uuid.uuid4())
    job = JobResponse(job_id=job_id, status="pending", progress_percent=0,
                      message="Placement synthesis queued")
    jobs[job_id] = job

    logger.info("Placement synthesis requested", job_id=job_id)
    background_tasks.add_task(run_placement_synthesis, job_id)
    return job


@app.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job_status(job_id: str):
    """Get synthesis job status."""
    job = jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@app.post("/design/climate/refresh", response_model=ClimateRefreshResponse)
async def refresh_climate(request: Optional[ClimateRefreshRequest] = None):
    """Look up climate for a point, the anchor by default."""
    request = request or ClimateRefreshRequest()
    record = design_session.refresh_climate(request.lat, request.lng)
    return ClimateRefreshResponse(applied=record is not None, climate=record)


@app.get("/design/export")
async def export():
    """Full design state as JSON."""
    return export_design(design_session)


@app.get("/design/water-plan")
async def get_water_plan(roof_area: Optional[float] = None):
    """Harvesting potential, swale sizing and flood risk at the anchor."""
    anchor = design_session.anchor
    climate = design_session.climate
    rainfall = climate.avg_rainfall_mm if climate else fallback_rain(anchor.lat, anchor.lng)
    return water_plan(anchor.lat, anchor.lng, design_session.slope_percent(), rainfall, roof_area)


@app.get("/design/patterns/{pattern}")
async def get_pattern(pattern: str):
    """Natural pattern points centred on the anchor."""
    key = pattern.upper()
    if key not in PATTERN_INFO:
        raise HTTPException(status_code=404, detail=f"Unknown pattern '{pattern}'")

    points = design_session.pattern_points(key)
    return {
        "pattern": key,
        **PATTERN_INFO[key].model_dump(),
        "points": [{"lat": p.lat, "lng": p.lng} for p in points],
    }


def run_placement_synthesis(job_id: str):
    """Background task running placement synthesis for a job."""
    job = jobs[job_id]
    job.status = "running"
    job.progress_percent = 10
    job.message = "Synthesizing layout"
    logger.info("Starting placement synthesis", job_id=job_id)

    try:
        result = design_session.request_placement_synthesis()
    except (SynthesisInProgressError, ValueError) as e:
        logger.error("Placement synthesis failed", job_id=job_id, error=str(e))
        job.status = "failed"
        job.message = "Placement synthesis failed"
        job.error_message = str(e)
        job.completed_at = datetime.utcnow()
        return

    job.status = "completed"
    job.progress_percent = 100
    if result.superseded:
        job.message = "Design changed during synthesis; layout discarded"
    else:
        job.message = f"Placed {len(result.added)} elements"
    job.added = result.kinds()
    job.skipped = result.skipped
    job.completed_at = datetime.utcnow()
    logger.info("Placement synthesis completed", job_id=job_id, added=len(result.added))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
