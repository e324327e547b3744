import os
import time
import uuid
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from loguru import logger
from dotenv import load_dotenv
from typing import List, Optional
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from models import (
    NOT_FOUND_MESSAGE,
    ProductDirectoryError,
    ProductNotFoundError,
    ProductStore,
    parse_price_bound,
)
from schemas import DeleteResponse, ErrorResponse, ProductCreate, ProductPatch, ProductResponse, ProductUpdate

# Chargement des variables d'environnement
load_dotenv()

SERVICE_NAME = "products-service"
ROUTE_NOT_FOUND_MESSAGE = "route not found"
INVALID_BODY_MESSAGE = "request body must be a JSON object"

# Config logging JSON (niveaux INFO, WARNING, ERROR)
logger.remove()
logger.add(
    sink=os.getenv("LOG_FILE", "logs.json"),
    format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message} | {extra}",
    level=os.getenv("LOG_LEVEL", "INFO"),
    serialize=True,
    rotation="1 day",
)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["service", "method", "endpoint"]
)
ERROR_COUNT = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["service", "endpoint", "error_type"]
)

app = FastAPI(title="Product Directory Service")
app.state.store = ProductStore()


def get_store(request: Request) -> ProductStore:
    return request.app.state.store


def endpoint_label(request: Request) -> str:
    # Template de la route (/products/{product_id}), jamais le chemin brut
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


def error_response(request: Request, status_code: int, message: str, error_type: str) -> JSONResponse:
    logger.bind(status=status_code, error_type=error_type).warning(
        f"{request.method} {request.url.path} failed: {message}"
    )
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint_label(request), error_type=error_type).inc()
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


# Routage non strict: /products/ et /products/1/ servent comme /products et /products/1
@app.middleware("http")
async def strip_trailing_slash(request: Request, call_next):
    path = request.scope["path"]
    if path != "/" and path.endswith("/"):
        request.scope["path"] = path.rstrip("/") or "/"
    return await call_next(request)


# Middleware pour logger les requests avec correlation ID
@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Generate or propagate correlation ID (trace-id)
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    start_time = time.time()

    with logger.contextualize(trace_id=trace_id, service=SERVICE_NAME):
        logger.bind(method=request.method, url=str(request.url)).info(
            f"Request: {request.method} {request.url.path}"
        )

        response = await call_next(request)

        latency = time.time() - start_time
        endpoint = endpoint_label(request)

        REQUEST_COUNT.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint
        ).observe(latency)

        logger.bind(status=response.status_code, latency=latency).info(
            f"Response status: {response.status_code}"
        )

        response.headers["X-Trace-ID"] = trace_id
        return response


@app.exception_handler(ProductDirectoryError)
async def product_error_handler(request: Request, exc: ProductDirectoryError):
    error_type = "not_found" if isinstance(exc, ProductNotFoundError) else "validation"
    return error_response(request, exc.status_code, exc.message, error_type)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Un id non entier ne peut correspondre à aucun produit
    if any(err["loc"] and err["loc"][0] == "path" for err in exc.errors()):
        return error_response(request, 404, NOT_FOUND_MESSAGE, "not_found")
    return error_response(request, 400, INVALID_BODY_MESSAGE, "invalid_body")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # 404 et 405 du routeur: la route n'existe pas pour cette méthode
    if exc.status_code in (404, 405):
        return error_response(request, 404, ROUTE_NOT_FOUND_MESSAGE, "route_not_found")
    return error_response(request, exc.status_code, str(exc.detail), "http_error")


@app.get("/", response_class=HTMLResponse)
async def index():
    return """
        <h1>Product Directory API</h1>
        <p>Available endpoints:</p>
        <ul>
            <li><strong>GET /products</strong> - list products (query: minPrice, maxPrice)</li>
            <li><strong>GET /products/:id</strong> - get a product by ID</li>
            <li><strong>POST /products</strong> - add a product (JSON: {name, price})</li>
            <li><strong>PUT /products/:id</strong> - replace a product (JSON: {name, price})</li>
            <li><strong>PATCH /products/:id</strong> - partially update a product (JSON: {name?, price?})</li>
            <li><strong>DELETE /products/:id</strong> - delete a product</li>
        </ul>
        <p>Example: <a href="/products">/products</a></p>
    """


@app.get("/metrics")
async def metrics():
    """Endpoint /metrics compatible Prometheus"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "service": SERVICE_NAME}


@app.get("/products", response_model=List[ProductResponse])
async def get_products(
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    store: ProductStore = Depends(get_store),
):
    logger.info(f"Fetching products (minPrice={min_price}, maxPrice={max_price})")
    return store.list(
        min_price=parse_price_bound("minPrice", min_price),
        max_price=parse_price_bound("maxPrice", max_price),
    )


@app.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, store: ProductStore = Depends(get_store)):
    logger.info(f"Fetching product {product_id}")
    return store.get(product_id)


@app.post("/products", response_model=ProductResponse, status_code=201)
async def create_product(payload: Optional[ProductCreate] = None, store: ProductStore = Depends(get_store)):
    payload = payload or ProductCreate()
    product = store.create(payload.name, payload.price)
    logger.info(f"Product created with ID {product.id}")
    return product


@app.put("/products/{product_id}", response_model=ProductResponse)
async def replace_product(
    product_id: int,
    payload: Optional[ProductUpdate] = None,
    store: ProductStore = Depends(get_store),
):
    payload = payload or ProductUpdate()
    product = store.replace(product_id, payload.name, payload.price)
    logger.info(f"Product {product_id} replaced")
    return product


@app.patch("/products/{product_id}", response_model=ProductResponse)
async def patch_product(
    product_id: int,
    payload: Optional[ProductPatch] = None,
    store: ProductStore = Depends(get_store),
):
    changes = payload.model_dump(exclude_unset=True) if payload else {}
    product = store.patch(product_id, changes)
    logger.info(f"Product {product_id} patched: {sorted(changes)}")
    return product


@app.delete("/products/{product_id}", response_model=DeleteResponse)
async def delete_product(product_id: int, store: ProductStore = Depends(get_store)):
    deleted_id = store.delete(product_id)
    logger.info(f"Product {deleted_id} deleted")
    return DeleteResponse(message="product deleted", deleted_id=deleted_id)


if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 3001))
    logger.info(f"Starting Product Directory Service on http://{host}:{port}")
    for method, path in [
        ("GET", "/products"),
        ("GET", "/products/:id"),
        ("POST", "/products"),
        ("PUT", "/products/:id"),
        ("PATCH", "/products/:id"),
        ("DELETE", "/products/:id"),
    ]:
        logger.info(f"- {method:<6} http://{host}:{port}{path}")
    import uvicorn
    uvicorn.run(app, host=host, port=port)
