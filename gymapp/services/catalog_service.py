"""
Catalog service - product categories and products of a gym shop.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from gymapp.exceptions import (
    GymError, ValidationError, ConflictError, NotFoundError, InvalidOperationError
)
from gymapp.models import Product, ProductCategory
from gymapp.utils.pagination import paginate

logger = logging.getLogger(__name__)

CATEGORY_NAME_MAX_LENGTH = 100
PRODUCT_NAME_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
IMAGE_URL_MAX_LENGTH = 255

UPDATABLE_PRODUCT_FIELDS = ('name', 'description', 'image_url', 'price', 'category_id')


def _require_text(value: Any, label: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{label} is required')
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f'{label} must be at most {max_length} characters')
    return value


def _optional_text(value: Any, label: str, max_length: int) -> Optional[str]:
    """None or blank clears the field; anything but a string is rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{label} must be a string')
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f'{label} must be at most {max_length} characters')
    return value or None


def parse_price(value: Any) -> Decimal:
    """Non-negative money amount with two decimals."""
    if isinstance(value, bool) or value is None:
        raise ValidationError('Price is required')
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError('Price must be a number')
    if not price.is_finite() or price < 0:
        raise ValidationError('Price must be a non-negative number')
    return price.quantize(Decimal('0.01'))


def parse_stock(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError('Stock quantity must be a non-negative integer')
    return value


# =====================================================
# CATEGORIES
# =====================================================

def get_category(session, gym_id: int, category_id: int) -> ProductCategory:
    category = session.query(ProductCategory).filter(
        ProductCategory.id == category_id,
        ProductCategory.gym_id == gym_id,
        ProductCategory.deleted_at.is_(None)
    ).first()
    if not category:
        raise NotFoundError('Category not found')
    return category


def list_categories(session, gym_id: int):
    """Live categories with their live product counts, by name."""
    product_counts = session.query(
        Product.category_id.label('category_id'),
        func.count(Product.id).label('product_count')
    ).filter(
        Product.gym_id == gym_id,
        Product.deleted_at.is_(None)
    ).group_by(Product.category_id).subquery()

    rows = session.query(
        ProductCategory, func.coalesce(product_counts.c.product_count, 0)
    ).outerjoin(
        product_counts, product_counts.c.category_id == ProductCategory.id
    ).filter(
        ProductCategory.gym_id == gym_id,
        ProductCategory.deleted_at.is_(None)
    ).order_by(ProductCategory.name).all()

    return [dict(category.to_dict(), product_count=count) for category, count in rows]


def create_category(session, gym_id: int, name: str, image_url: Optional[str] = None) -> ProductCategory:
    """
    Raises:
        ValidationError, ConflictError (name already used in the gym)
    """
    name = _require_text(name, 'Category name', CATEGORY_NAME_MAX_LENGTH)
    image_url = _optional_text(image_url, 'Image URL', IMAGE_URL_MAX_LENGTH)

    try:
        exists = session.query(ProductCategory.id).filter(
            ProductCategory.gym_id == gym_id,
            ProductCategory.name == name,
            ProductCategory.deleted_at.is_(None)
        ).first()
        if exists:
            raise ConflictError('Category with this name already exists')

        category = ProductCategory(gym_id=gym_id, name=name, image_url=image_url)
        session.add(category)
        session.commit()
        return category

    except IntegrityError:
        session.rollback()
        raise ConflictError('Category with this name already exists')
    except GymError:
        session.rollback()
        raise


def delete_category(session, gym_id: int, category_id: int) -> None:
    """Soft delete; refused while live products reference the category."""
    try:
        category = get_category(session, gym_id, category_id)

        in_use = session.query(func.count(Product.id)).filter(
            Product.category_id == category.id,
            Product.deleted_at.is_(None)
        ).scalar()
        if in_use:
            raise InvalidOperationError(
                f'Cannot delete category. It has {in_use} product(s).'
            )

        category.deleted_at = datetime.now(timezone.utc)
        session.commit()

    except GymError:
        session.rollback()
        raise


# =====================================================
# PRODUCTS
# =====================================================

def _product_name_taken(session, gym_id, category_id, name, exclude_id=None) -> bool:
    query = session.query(Product.id).filter(
        Product.gym_id == gym_id,
        Product.category_id == category_id,
        Product.name == name,
        Product.deleted_at.is_(None)
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def get_product(session, gym_id: int, product_id: int, for_update: bool = False) -> Product:
    query = session.query(Product).filter(
        Product.id == product_id,
        Product.gym_id == gym_id,
        Product.deleted_at.is_(None)
    )
    if for_update:
        query = query.with_for_update()
    product = query.first()
    if not product:
        raise NotFoundError('Product not found')
    return product


def list_products(
    session,
    gym_id: int,
    category_id: int = None,
    search: str = None,
    active_only: bool = False,
    page: int = 1,
    limit: int = 20
):
    """List live products of a gym by name."""
    query = session.query(Product).options(joinedload(Product.category)).filter(
        Product.gym_id == gym_id,
        Product.deleted_at.is_(None)
    )
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))

    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, limit)


def create_product(
    session,
    gym_id: int,
    category_id: int,
    name: str,
    price: Any,
    stock_quantity: int = 0,
    description: Optional[str] = None,
    image_url: Optional[str] = None
) -> Product:
    """
    Raises:
        ValidationError: bad name, price, stock, description or image URL
        NotFoundError: category not in gym
        ConflictError: product name already used in the category
    """
    name = _require_text(name, 'Product name', PRODUCT_NAME_MAX_LENGTH)
    price = parse_price(price)
    stock_quantity = parse_stock(stock_quantity)
    description = _optional_text(description, 'Description', DESCRIPTION_MAX_LENGTH)
    image_url = _optional_text(image_url, 'Image URL', IMAGE_URL_MAX_LENGTH)

    try:
        category = get_category(session, gym_id, category_id)
        if _product_name_taken(session, gym_id, category.id, name):
            raise ConflictError('Product with this name already exists in this category')

        product = Product(
            gym_id=gym_id,
            category_id=category.id,
            name=name,
            description=description,
            image_url=image_url,
            price=price,
            stock_quantity=stock_quantity,
            is_active=True
        )
        session.add(product)
        session.commit()
        logger.info(f"Product '{name}' created in gym {gym_id}")
        return product

    except GymError:
        session.rollback()
        raise


def update_product(session, gym_id: int, product_id: int, **fields) -> Product:
    """Update descriptive fields, price or category. Stock goes through set_stock."""
    unknown = set(fields) - set(UPDATABLE_PRODUCT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown product field(s): {', '.join(sorted(unknown))}")

    try:
        product = get_product(session, gym_id, product_id)

        if 'category_id' in fields:
            product.category_id = get_category(session, gym_id, fields['category_id']).id
        if 'name' in fields:
            product.name = _require_text(fields['name'], 'Product name', PRODUCT_NAME_MAX_LENGTH)
        if 'price' in fields:
            product.price = parse_price(fields['price'])
        if 'description' in fields:
            product.description = _optional_text(fields['description'], 'Description', DESCRIPTION_MAX_LENGTH)
        if 'image_url' in fields:
            product.image_url = _optional_text(fields['image_url'], 'Image URL', IMAGE_URL_MAX_LENGTH)

        if _product_name_taken(session, gym_id, product.category_id, product.name, exclude_id=product.id):
            raise ConflictError('Product with this name already exists in this category')

        session.commit()
        return product

    except GymError:
        session.rollback()
        raise


def set_stock(session, gym_id: int, product_id: int, quantity: int) -> Product:
    """Overwrite the stock level (inventory count). The row is locked while writing."""
    quantity = parse_stock(quantity)
    try:
        product = get_product(session, gym_id, product_id, for_update=True)
        previous = product.stock_quantity
        product.stock_quantity = quantity
        session.commit()
        logger.info(f"Stock of product {product_id} set {previous} -> {quantity}")
        return product

    except GymError:
        session.rollback()
        raise


def toggle_activation(session, gym_id: int, product_id: int) -> Product:
    try:
        product = get_product(session, gym_id, product_id)
        product.is_active = not product.is_active
        session.commit()
        return product

    except GymError:
        session.rollback()
        raise


def delete_product(session, gym_id: int, product_id: int) -> None:
    """
    Soft delete. Order lines keep pointing at the row, and cancelling one of
    those orders still returns its quantity to the product's stock.
    """
    try:
        product = get_product(session, gym_id, product_id, for_update=True)
        product.deleted_at = datetime.now(timezone.utc)
        session.commit()
        logger.info(f"Product {product_id} deleted in gym {gym_id}")

    except GymError:
        session.rollback()
        raise


def get_product_stats(session, gym_id: int) -> dict:
    """Counts of live products by activation and stock, plus units in stock."""
    total, active, in_stock, units = session.query(
        func.count(Product.id),
        func.count(Product.id).filter(Product.is_active.is_(True)),
        func.count(Product.id).filter(Product.stock_quantity > 0),
        func.coalesce(func.sum(Product.stock_quantity), 0)
    ).filter(
        Product.gym_id == gym_id,
        Product.deleted_at.is_(None)
    ).one()

    return {
        'total': total,
        'active': active,
        'inactive': total - active,
        'in_stock': in_stock,
        'out_of_stock': total - in_stock,
        'total_stock_items': int(units),
    }
