import logging

from fastapi import FastAPI

from .db import init_db
from .routers import health
from .routers import history
from .routers import speaking
from .routers import write

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="English Practice API")
app.include_router(health.router)
app.include_router(history.router)
app.include_router(write.router)
app.include_router(speaking.router)


@app.on_event("startup")
async def startup_event():
	# Create the history tables if this is a fresh database
	init_db()
