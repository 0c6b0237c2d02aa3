"""Generate typed procedure routers (FastAPI + pydantic) from OpenAPI documents."""
