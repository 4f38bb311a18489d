#!/usr/bin/env python3

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from admissions.routes import api
from admissions.configs import OPTIONS, LOG_LEVEL, CORS_ORIGINS
from admissions.core import db as database
from admissions import __version__ as VERSION

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database.init()
    yield


app = FastAPI(
    title="Admissions API",
    description="Admissions: waitlist ranking and position management for admissions intake",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api.router, prefix="/v1/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("admissions.app:app", **OPTIONS)
