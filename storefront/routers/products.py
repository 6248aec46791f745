# storefront/routers/products.py
from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.core.security import TokenClaims
from storefront.db import database
from storefront.db.models import StaffRole
from storefront.schemas.product import ProductAdminOut, ProductCreate, ProductDetail, ProductOut, ProductUpdate
from storefront.services.product_service import AsyncProductService
from storefront.utils.exceptions import APIException, BadRequestError, InternalServerError
from storefront.utils.dependencies import require_staff_role
from storefront.utils.image_utils import ImageStorage, get_image_storage, validate_image_upload

router = APIRouter(prefix="/products", tags=["products"])
logger = get_logger(__name__)


@router.get("", response_model=List[ProductOut])
async def list_products(db: AsyncSession = Depends(database.get_db)):
    """Public catalog: available products only."""
    return await AsyncProductService(db).list_catalog()


@router.get("/manage", response_model=List[ProductAdminOut])
async def list_all_products(
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.employee)),
):
    return await AsyncProductService(db).list_all_products()


@router.get("/{product_id}", response_model=ProductDetail)
async def get_product(product_id: int, db: AsyncSession = Depends(database.get_db)):
    return await AsyncProductService(db).get_product(product_id)


@router.post("", response_model=ProductDetail, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.manager)),
):
    return await AsyncProductService(db).create_product(payload, claims.principal_id)


@router.put("/{product_id}", response_model=ProductDetail)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: AsyncSession = Depends(database.get_db),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.manager)),
):
    return await AsyncProductService(db).update_product(product_id, payload, staff_id=claims.principal_id)


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(database.get_db),
    storage: ImageStorage = Depends(get_image_storage),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.manager)),
):
    public_ids = await AsyncProductService(db).delete_product(product_id, staff_id=claims.principal_id)
    # Remote files are removed after the response; the rows are already gone
    for public_id in public_ids:
        background_tasks.add_task(storage.delete, public_id)
    return {"detail": "Product deleted"}


@router.post("/{product_id}/images", response_model=ProductDetail, status_code=status.HTTP_201_CREATED)
async def upload_product_images(
    product_id: int,
    files: List[UploadFile] = File(...),
    db: AsyncSession = Depends(database.get_db),
    storage: ImageStorage = Depends(get_image_storage),
    claims: TokenClaims = Depends(require_staff_role(StaffRole.manager)),
):
    """Upload up to MAX_IMAGES_PER_UPLOAD JPEG/PNG images; the first becomes the main image."""
    if len(files) > settings.MAX_IMAGES_PER_UPLOAD:
        raise BadRequestError(f"At most {settings.MAX_IMAGES_PER_UPLOAD} images per upload")

    service = AsyncProductService(db)
    # Fail before touching storage when the product does not exist
    await service.get_product(product_id)

    payloads = []
    for upload in files:
        data = await upload.read()
        validate_image_upload(upload.content_type, len(data))
        payloads.append(data)

    stored = []
    try:
        for data in payloads:
            stored.append(await run_in_threadpool(storage.store, data))
    except APIException:
        raise
    except Exception as e:
        logger.error("Image upload failed", product_id=product_id, error=str(e))
        raise InternalServerError("Image processing failed")

    return await service.add_images(product_id, stored)
