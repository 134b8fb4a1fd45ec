from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from simulation_api import router as simulation_router, get_simulation_service

logging.basicConfig(
    level=os.getenv("SIMULATION_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Only close a service that was actually built.
    if get_simulation_service.cache_info().currsize:
        await get_simulation_service().aclose()


app = FastAPI(title="Financial Impact Simulator API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(simulation_router)


@app.get("/")
def read_root():
    return {"message": "Financial Impact Simulator API is running"}
