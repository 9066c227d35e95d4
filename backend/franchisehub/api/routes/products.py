"""Franchise product catalogue."""

import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status

from franchisehub.core.file_utils import ALLOWED_IMAGE_EXTENSIONS, delete_stored_file, save_upload
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisorOrAdmin
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import Franchise, Product, ProductStatus
from franchisehub.schemas.franchise import ProductCreate, ProductResponse, ProductUpdate, StockUpdate
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = ("name", "category", "unit_price", "stock", "status", "created_at")


def _get_product(scope: TenantScope, franchise_id: int, product_id: int) -> Product:
    scope.get_or_404(Franchise, franchise_id, "Franchise")
    product = scope.get_or_404(Product, product_id, "Product")
    if product.franchise_id != franchise_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def _sku_taken(db, sku: Optional[str], exclude_id: Optional[int] = None) -> bool:
    if not sku:
        return False
    query = db.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


@router.get("/")
@limiter.limit("60/minute")
def list_products(
    request: Request,
    franchise_id: int,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    category: Optional[str] = Query(None),
    product_status: Optional[ProductStatus] = Query(None, alias="status"),
    low_stock: Optional[bool] = Query(None),
):
    scope.get_or_404(Franchise, franchise_id, "Franchise")
    query = db.query(Product).filter(Product.franchise_id == franchise_id)
    query = apply_filters(query, Product, {"category": category, "status": product_status})
    if low_stock:
        query = query.filter(Product.stock <= Product.minimum_stock)
    query = apply_search(query, params.search, [Product.name, Product.sku, Product.description])
    query = apply_sort(query, Product, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(ProductResponse, items), total, params.page, params.per_page)


@router.get("/categories")
@limiter.limit("60/minute")
def list_categories(request: Request, franchise_id: int, scope: Tenant, db: DbSession):
    scope.get_or_404(Franchise, franchise_id, "Franchise")
    rows = (
        db.query(Product.category)
        .filter(Product.franchise_id == franchise_id, Product.category.isnot(None))
        .distinct()
        .order_by(Product.category)
        .all()
    )
    return success_response([r[0] for r in rows])


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_product(
    request: Request,
    franchise_id: int,
    data: ProductCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    scope.get_or_404(Franchise, franchise_id, "Franchise")
    if _sku_taken(db, data.sku):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A product with this SKU already exists")
    try:
        product = Product(**data.model_dump(), franchise_id=franchise_id)
        db.add(product)
        db.commit()
        db.refresh(product)
        return success_response(serialize(ProductResponse, product), "Product created successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create product in franchise {franchise_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create product")


@router.get("/{product_id}")
@limiter.limit("60/minute")
def get_product(request: Request, franchise_id: int, product_id: int, scope: Tenant):
    return success_response(serialize(ProductResponse, _get_product(scope, franchise_id, product_id)))


@router.put("/{product_id}")
@limiter.limit("30/minute")
def update_product(
    request: Request,
    franchise_id: int,
    product_id: int,
    data: ProductUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    product = _get_product(scope, franchise_id, product_id)
    changes = data.model_dump(exclude_unset=True)
    if _sku_taken(db, changes.get("sku"), exclude_id=product.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A product with this SKU already exists")
    try:
        for field, value in changes.items():
            setattr(product, field, value)
        db.commit()
        db.refresh(product)
        return success_response(serialize(ProductResponse, product), "Product updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update product {product_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update product")


@router.patch("/{product_id}/stock")
@limiter.limit("30/minute")
def update_stock(
    request: Request,
    franchise_id: int,
    product_id: int,
    data: StockUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    product = _get_product(scope, franchise_id, product_id)
    if data.operation == "add":
        new_stock = product.stock + data.stock
    elif data.operation == "subtract":
        new_stock = product.stock - data.stock
        if new_stock < 0:
            raise HTTPException(
                status_code=422,
                detail=f"Insufficient stock: {product.stock} available, {data.stock} requested",
            )
    else:
        new_stock = data.stock
    product.stock = new_stock
    db.commit()
    db.refresh(product)
    logger.info(f"Product {product_id} stock {data.operation} {data.stock} -> {new_stock}")
    return success_response(serialize(ProductResponse, product), "Stock updated successfully")


@router.post("/{product_id}/image")
@limiter.limit("10/minute")
def upload_image(
    request: Request,
    franchise_id: int,
    product_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
    image: UploadFile = File(...),
):
    product = _get_product(scope, franchise_id, product_id)
    try:
        stored = save_upload(image, f"products/{franchise_id}", ALLOWED_IMAGE_EXTENSIONS)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    previous = product.image
    product.image = stored["path"]
    db.commit()
    db.refresh(product)
    delete_stored_file(previous)
    return success_response(serialize(ProductResponse, product), "Product image uploaded successfully")


@router.delete("/{product_id}/image")
@limiter.limit("10/minute")
def delete_image(
    request: Request,
    franchise_id: int,
    product_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    product = _get_product(scope, franchise_id, product_id)
    if product.image:
        delete_stored_file(product.image)
        product.image = None
        db.commit()
        db.refresh(product)
    return success_response(serialize(ProductResponse, product), "Product image deleted successfully")


@router.delete("/{product_id}")
@limiter.limit("30/minute")
def delete_product(
    request: Request,
    franchise_id: int,
    product_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    product = _get_product(scope, franchise_id, product_id)
    image = product.image
    try:
        db.delete(product)
        db.commit()
        delete_stored_file(image)
        return success_response(message="Product deleted successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete product {product_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete product")
