import logging

from fastapi import FastAPI

from app.api.v1 import alerts, auth, care_logs, caregivers, recipients
from app.db.base import Base
from app.db.session import engine
from app.models import care_log, user  # noqa: F401  (register tables on Base)

logging.basicConfig(level=logging.INFO)

# Auto-create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Anchor Care Log API")

# Include Routers
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(recipients.router, prefix="/api/v1/care-recipients", tags=["Care Recipients"])
app.include_router(caregivers.router, prefix="/api/v1/caregivers", tags=["Caregivers"])
app.include_router(care_logs.router, prefix="/api/v1/care-logs", tags=["Care Logs"])
app.include_router(alerts.router, prefix="/api/v1/alerts", tags=["Alerts"])


@app.get("/")
def root():
    return {"message": "System Operational"}
