"""Main FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from takeon.config import CORS_ALLOW_ORIGINS, configure_logging
from takeon.database import init_db
from takeon.api.routes import router

configure_logging()
logger = logging.getLogger(__name__)

# Create database tables
init_db()

# Create FastAPI app
app = FastAPI(
    title="Take-On Sheet Service",
    description="Employee onboarding workflow: take-on sheets, role-gated sections and transitions, "
                "and one-time conversion into permanent employee records.",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api", tags=["Take-on sheets"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Take-On Sheet Service"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
