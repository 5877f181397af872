from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from priceport.api.routers.price_schedules import router as price_schedules_router
from priceport.core.config import settings

app = FastAPI(title="PRICEPORT API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o for o in settings.CORS_ALLOW_ORIGINS.split(",") if o] or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(price_schedules_router)


@app.get("/health")
def health():
    return {"status": "up"}
