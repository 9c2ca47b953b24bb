from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from dotenv import load_dotenv
import uvicorn
import os
import time
import uuid
from datetime import datetime
import logging

# Load environment variables before importing services so they see rule source config
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

from routers import safety_router
from services.safety_rules import load_rule_table, get_rule_source

SERVICE_VERSION = "1.0.0"


# === Request Timing Logger Middleware ===
class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Middleware to log request timing and attach request id headers"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        # Route handlers read this for their timing logs
        request.state.request_id = request_id
        request.state.start_time = start_time

        print(f"\n🔵 [{timestamp}] ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
        print(f"📥 [{request_id}] {request.method} {request.url.path}")

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        status_code = response.status_code

        if status_code >= 400:
            status_emoji = "❌"
        elif status_code >= 300:
            status_emoji = "↪️"
        else:
            status_emoji = "✅"

        print(f"{status_emoji} [{request_id}] {request.method} {request.url.path} → {status_code}")
        print(f"   ⚡ Duration: {duration_ms:.2f}ms")
        print(f"━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━\n")

        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.2f}"
        response.headers["X-Request-Id"] = request_id

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup and shutdown events"""
    # Startup: resolve the rule table once (hosted URL, file, or built-in)
    rules = load_rule_table()
    print(f"🧴 Safety rules ready: {len(rules)} families (source: {get_rule_source()})")

    yield


# Create FastAPI app
app = FastAPI(
    title="Freshies Safety Service",
    description="Age-aware ingredient safety ratings for kids' and teens' skincare",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Add request timing middleware FIRST (so it captures total time including other middleware)
app.add_middleware(RequestTimingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify your frontend domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

# Include routers
app.include_router(safety_router, tags=["safety"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Freshies Safety Service",
        "version": SERVICE_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "freshies-safety"
    }


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8001))

    print(f"""
    ╔═══════════════════════════════════════════════════╗
    ║     Freshies Safety Service Starting...           ║
    ╠═══════════════════════════════════════════════════╣
    ║  • Loading safety rule table                      ║
    ║  • Starting server on port {port}                   ║
    ╚═══════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info"
    )
