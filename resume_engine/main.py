from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from resume_engine.api.routes.sections import router as sections_router

TAGS = [
    {"name": "sections", "description": "Parse, repair and render resume section collections"},
    {"name": "health", "description": "Liveness checks"},
]

app = FastAPI(
    title="Resume Section Engine",
    description="Turns resume content (uploads, generated markdown/HTML, stored JSON records) into ordered, typed sections and renders them back",
    version="0.1.0",
    openapi_tags=TAGS,
)

app.include_router(sections_router)

@app.get("/", tags=["health"])
def root():
    return {"service": "resume-section-engine", "status": "running"}

@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}

def custom_openapi():
    """OpenAPI schema built once and cached on the app."""
    if app.openapi_schema:
        return app.openapi_schema
    app.openapi_schema = get_openapi(
        title="Resume Section Engine API",
        version=app.version,
        description="Section parsing, reconciliation and rendering for resume documents",
        routes=app.routes,
        tags=TAGS,
    )
    return app.openapi_schema

app.openapi = custom_openapi
