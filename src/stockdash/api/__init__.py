"""
StockDash REST API (FastAPI).

Run with:
    uvicorn stockdash.api.main:app
"""
