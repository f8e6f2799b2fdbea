from contextlib import asynccontextmanager

from fastapi import FastAPI
from doorwin.api.routes import customers, orders, products, quotes
from doorwin.core.database import init_db
from doorwin.core.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = configure_logging()
    logger.info("Initializing database...")
    init_db()
    logger.info("Database ready.")
    yield


app = FastAPI(
    title="DoorWin Backend",
    description="Storefront and back-office API for a doors and windows retailer",
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])
app.include_router(products.router, prefix="/api/v1/products", tags=["products"])
app.include_router(quotes.router, prefix="/api/v1/quotes", tags=["quotes"])
app.include_router(customers.router, prefix="/api/v1/customers", tags=["customers"])

@app.get("/")
async def root():
    return {"message": "DoorWin Backend API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
